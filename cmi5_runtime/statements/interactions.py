"""
Interaction Encoder: cmi.interaction answers as xAPI response strings.

Each interaction kind has its own response and correctResponsesPattern
encoding (xAPI 1.0.3, section 9.2.4). Encoders are pure; the *_statement
functions wrap an encoding in an Answered statement whose object id is
derived from the AU activity id, test id and question id.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from cmi5_runtime.core.constants import (
    INTERACTION_ACTIVITY_TYPE,
    ITEM_SEPARATOR,
    PAIR_SEPARATOR,
    Cmi5Verbs,
    InteractionType,
)
from cmi5_runtime.core.durations import Period
from cmi5_runtime.core.launch import LaunchContext

from .builder import Statement, allowed_statement

LanguageMap = Mapping[str, str]
InteractionComponent = Mapping[str, Any]


@dataclass(frozen=True)
class NumericExact:
    exact: float


@dataclass(frozen=True)
class NumericRange:
    min: float
    max: float

    def __post_init__(self):
        if self.min > self.max:
            raise ValueError("NumericRange min must not exceed max")


NumericCriteria = NumericExact | NumericRange


@dataclass(frozen=True)
class InteractionEncoding:
    """An encoded answer: interaction type, response and optional pattern."""

    interaction_type: InteractionType
    response: str
    correct_pattern: str | None = None

    def definition(
        self,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        **components: Sequence[InteractionComponent] | None,
    ) -> dict[str, Any]:
        """
        Build the interaction activity definition.

        Args:
            name: Question name language map
            description: Question text language map
            **components: choices, scale, source, target or steps lists
        """
        definition: dict[str, Any] = {
            "type": INTERACTION_ACTIVITY_TYPE,
            "interactionType": self.interaction_type.value,
        }
        if self.correct_pattern is not None:
            definition["correctResponsesPattern"] = [self.correct_pattern]
        for key, value in components.items():
            if value:
                definition[key] = [dict(component) for component in value]
        if name:
            definition["name"] = dict(name)
        if description:
            definition["description"] = dict(description)
        return definition


# =============================================================================
# Value formatting
# =============================================================================


def format_number(value: float | int) -> str:
    """Decimal string without a trailing ".0" for integral floats."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def numeric_criteria_to_string(criteria: object) -> str:
    """
    Encode numeric criteria: exact -> "5", range -> "1:10".

    Accepts NumericExact/NumericRange or mappings with the same keys. Any
    other shape yields ":" (an open range).
    """
    if isinstance(criteria, NumericExact):
        return format_number(criteria.exact)
    if isinstance(criteria, NumericRange):
        return f"{format_number(criteria.min)}:{format_number(criteria.max)}"
    if isinstance(criteria, Mapping):
        if "exact" in criteria:
            return format_number(criteria["exact"])
        if "min" in criteria and "max" in criteria:
            return f"{format_number(criteria['min'])}:{format_number(criteria['max'])}"
    return ":"


def _join(items: Sequence[str]) -> str:
    return ITEM_SEPARATOR.join(items)


def _pairs(pairs: Mapping[str, Any], encode_value=str) -> str:
    return _join([f"{key}{PAIR_SEPARATOR}{encode_value(value)}" for key, value in pairs.items()])


def _performance_value(value: Any) -> str:
    return format_number(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else str(value)


# =============================================================================
# Encoders
# =============================================================================


def encode_true_false(answer: bool, correct_answer: bool | None = None) -> InteractionEncoding:
    return InteractionEncoding(
        InteractionType.TRUE_FALSE,
        "true" if answer else "false",
        None if correct_answer is None else ("true" if correct_answer else "false"),
    )


def encode_choice(answer_ids: Sequence[str], correct_answer_ids: Sequence[str] | None = None) -> InteractionEncoding:
    return InteractionEncoding(
        InteractionType.CHOICE,
        _join(answer_ids),
        None if correct_answer_ids is None else _join(correct_answer_ids),
    )


def encode_sequencing(answer_ids: Sequence[str], correct_answer_ids: Sequence[str] | None = None) -> InteractionEncoding:
    return InteractionEncoding(
        InteractionType.SEQUENCING,
        _join(answer_ids),
        None if correct_answer_ids is None else _join(correct_answer_ids),
    )


def encode_fill_in(answers: Sequence[str], correct_answers: Sequence[str] | None = None) -> InteractionEncoding:
    return InteractionEncoding(
        InteractionType.FILL_IN,
        _join(answers),
        None if correct_answers is None else _join(correct_answers),
    )


def encode_long_fill_in(answers: Sequence[str], correct_answers: Sequence[str] | None = None) -> InteractionEncoding:
    return InteractionEncoding(
        InteractionType.LONG_FILL_IN,
        _join(answers),
        None if correct_answers is None else _join(correct_answers),
    )


def encode_likert(answer_id: str, correct_answer_id: str | None = None) -> InteractionEncoding:
    return InteractionEncoding(InteractionType.LIKERT, answer_id, correct_answer_id)


def encode_matching(
    answers: Mapping[str, str],
    correct_answers: Mapping[str, str] | None = None,
) -> InteractionEncoding:
    """Source/target pairs, in mapping order: {"a": "1"} -> "a[.]1"."""
    return InteractionEncoding(
        InteractionType.MATCHING,
        _pairs(answers),
        None if correct_answers is None else _pairs(correct_answers),
    )


def encode_performance(
    answers: Mapping[str, str | float],
    correct_answers: Mapping[str, NumericCriteria | Mapping[str, float]] | None = None,
) -> InteractionEncoding:
    """Step/value pairs; correct values are numeric criteria per step."""
    return InteractionEncoding(
        InteractionType.PERFORMANCE,
        _pairs(answers, _performance_value),
        None if correct_answers is None else _pairs(correct_answers, numeric_criteria_to_string),
    )


def encode_numeric(answer: float, correct_answer: NumericCriteria | Mapping[str, float] | None = None) -> InteractionEncoding:
    return InteractionEncoding(
        InteractionType.NUMERIC,
        format_number(answer),
        None if correct_answer is None else numeric_criteria_to_string(correct_answer),
    )


def encode_other(answer: str, correct_answer: str | None = None) -> InteractionEncoding:
    return InteractionEncoding(InteractionType.OTHER, answer, correct_answer)


# =============================================================================
# Answered statements
# =============================================================================


def interaction_activity_id(ctx: LaunchContext, test_id: str, question_id: str) -> str:
    return f"{ctx.launch_parameters.activity_id}/test/{test_id}/question/{question_id}"


def interaction_statement(
    ctx: LaunchContext,
    test_id: str,
    question_id: str,
    response: str,
    definition: Mapping[str, Any],
    success: bool | None = None,
    duration: Period | None = None,
    objective: Mapping[str, Any] | None = None,
) -> Statement:
    """
    Build an Answered statement for one interaction attempt.

    Args:
        ctx: Launch context
        test_id: Test (assessment) identifier
        question_id: Question identifier within the test
        response: Encoded learner response
        definition: Interaction activity definition
        success: Whether the response was correct, if known
        duration: Attempt period; sets result.duration when given
        objective: Objective activity added as a parent context activity
    """
    result: dict[str, Any] = {"response": response}
    if duration is not None:
        result["duration"] = duration.duration
    if success is not None:
        result["success"] = success

    statement: dict[str, Any] = {
        "verb": Cmi5Verbs.ANSWERED,
        "result": result,
        "object": {
            "objectType": "Activity",
            "id": interaction_activity_id(ctx, test_id, question_id),
            "definition": definition,
        },
    }
    if objective:
        statement["context"] = {"contextActivities": {"parent": [objective]}}
    return allowed_statement(ctx, statement)


def encoded_interaction_statement(
    ctx: LaunchContext,
    test_id: str,
    question_id: str,
    encoding: InteractionEncoding,
    *,
    name: LanguageMap | None = None,
    description: LanguageMap | None = None,
    success: bool | None = None,
    duration: Period | None = None,
    objective: Mapping[str, Any] | None = None,
    **components: Sequence[InteractionComponent] | None,
) -> Statement:
    """Answered statement for an InteractionEncoding produced by an encode_* function."""
    return interaction_statement(
        ctx,
        test_id,
        question_id,
        encoding.response,
        encoding.definition(name=name, description=description, **components),
        success=success,
        duration=duration,
        objective=objective,
    )
