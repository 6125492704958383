"""
Verb-specific statement builders and the moveOn sequence.

Completed, Passed and Failed are only constructible in Normal launch mode;
the check happens while building, before anything reaches a transport.
Passed additionally requires the score to reach launchData.masteryScore
when one is set (a tie passes).
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger

from cmi5_runtime.core.constants import (
    OBJECTIVE_ACTIVITY_TYPE,
    Cmi5ContextActivity,
    Cmi5Extension,
    Cmi5Verbs,
)
from cmi5_runtime.core.durations import iso8601_duration, utc_now
from cmi5_runtime.core.errors import InvalidStateError, MasteryNotMetError
from cmi5_runtime.core.launch import LaunchContext, LaunchMode

from .builder import (
    SendOptions,
    Statement,
    StatementTransform,
    allowed_statement,
    defined_statement,
)


@dataclass(frozen=True)
class ResultScore:
    """xAPI result.score; scaled is in [-1, 1], cmi5 uses [0, 1]."""

    scaled: float | None = None
    raw: float | None = None
    min: float | None = None
    max: float | None = None

    def to_dict(self) -> dict[str, float]:
        return {
            key: value
            for key, value in (("scaled", self.scaled), ("raw", self.raw), ("min", self.min), ("max", self.max))
            if value is not None
        }


ScoreInput = ResultScore | Mapping[str, float] | float | int


@dataclass(frozen=True)
class MoveOnOptions(SendOptions):
    """
    Options for the end-of-attempt sequence.

    transform applies to the Passed/Failed and Completed statements.
    """

    score: ScoreInput | None = None
    objective_activity: dict[str, Any] | None = None
    disable_send_terminated: bool = False


def to_result_score(score: ScoreInput | None) -> ResultScore | None:
    """Coerce a bare number to a scaled score; pass structured scores through."""
    if score is None or isinstance(score, ResultScore):
        return score
    if isinstance(score, Mapping):
        return ResultScore(**{key: score[key] for key in ("scaled", "raw", "min", "max") if key in score})
    return ResultScore(scaled=float(score))


def meets_mastery(score: ResultScore | None, mastery_score: float) -> bool:
    """True when the scaled score is at least the mastery score (a tie passes)."""
    if score is None or score.scaled is None or math.isnan(score.scaled):
        return False
    return score.scaled >= mastery_score


def set_result_score(score: ResultScore, statement: Statement) -> Statement:
    """Return a copy of the statement with result.score replaced."""
    return replace(statement, result={**(statement.result or {}), "score": score.to_dict()})


def objective_activity(
    objective_id: str,
    name: Mapping[str, str] | None = None,
    description: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Build an objective Activity for context.contextActivities.parent."""
    definition: dict[str, Any] = {"type": OBJECTIVE_ACTIVITY_TYPE}
    if name:
        definition["name"] = dict(name)
    if description:
        definition["description"] = dict(description)
    return {"objectType": "Activity", "id": objective_id, "definition": definition}


def require_normal_mode(ctx: LaunchContext, verb_label: str) -> None:
    if ctx.launch_data.launch_mode != LaunchMode.NORMAL:
        raise InvalidStateError(f"Can only send {verb_label} when launchMode is 'Normal'")


def _elapsed(ctx: LaunchContext) -> str:
    return iso8601_duration(ctx.initialized_date, utc_now())


def _mastery_context(ctx: LaunchContext) -> dict[str, Any]:
    mastery_score = ctx.launch_data.mastery_score
    if mastery_score is None:
        return {}
    return {"extensions": {Cmi5Extension.MASTERY_SCORE: mastery_score}}


# =============================================================================
# cmi5 defined statements
# =============================================================================


def initialized_statement(ctx: LaunchContext) -> Statement:
    return defined_statement(ctx, {"verb": Cmi5Verbs.INITIALIZED})


def completed_statement(ctx: LaunchContext) -> Statement:
    require_normal_mode(ctx, "COMPLETED")
    return defined_statement(ctx, {
        "verb": Cmi5Verbs.COMPLETED,
        "result": {
            "completion": True,
            "duration": _elapsed(ctx),
        },
        "context": {
            "contextActivities": {"category": [Cmi5ContextActivity.MOVE_ON]},
        },
    })


def passed_statement(
    ctx: LaunchContext,
    score: ScoreInput | None = None,
    objective: Mapping[str, Any] | None = None,
) -> Statement:
    """
    Build a Passed statement.

    Args:
        ctx: Launch context
        score: Structured score or bare scaled number
        objective: Objective activity added as a parent context activity

    Raises:
        InvalidStateError: If launchMode is not Normal
        MasteryNotMetError: If a mastery score is set and not reached
    """
    require_normal_mode(ctx, "PASSED")
    result_score = to_result_score(score)
    mastery_score = ctx.launch_data.mastery_score
    if mastery_score is not None and not meets_mastery(result_score, mastery_score):
        raise MasteryNotMetError()

    context_activities: dict[str, Any] = {"category": [Cmi5ContextActivity.MOVE_ON]}
    if objective:
        context_activities["parent"] = [objective]
    return defined_statement(ctx, {
        "verb": Cmi5Verbs.PASSED,
        "result": {
            "score": result_score.to_dict() if result_score else None,
            "success": True,
            "duration": _elapsed(ctx),
        },
        "context": {"contextActivities": context_activities, **_mastery_context(ctx)},
    })


def failed_statement(ctx: LaunchContext, score: ScoreInput | None = None) -> Statement:
    require_normal_mode(ctx, "FAILED")
    result_score = to_result_score(score)
    return defined_statement(ctx, {
        "verb": Cmi5Verbs.FAILED,
        "result": {
            "score": result_score.to_dict() if result_score else None,
            "success": False,
            "duration": _elapsed(ctx),
        },
        "context": {
            "contextActivities": {"category": [Cmi5ContextActivity.MOVE_ON]},
            **_mastery_context(ctx),
        },
    })


def terminated_statement(ctx: LaunchContext) -> Statement:
    return defined_statement(ctx, {
        "verb": Cmi5Verbs.TERMINATED,
        "result": {"duration": _elapsed(ctx)},
    })


# =============================================================================
# cmi5 allowed statements
# =============================================================================


def progressed_statement(ctx: LaunchContext, percent: int | float) -> Statement:
    if not 0 <= percent <= 100:
        raise ValueError(f"progress must be between 0 and 100, got {percent}")
    return allowed_statement(ctx, {
        "verb": Cmi5Verbs.PROGRESSED,
        "object": {
            "objectType": "Activity",
            "id": ctx.launch_parameters.activity_id,
        },
        "result": {
            "extensions": {Cmi5Extension.PROGRESS: percent},
        },
    })


# =============================================================================
# moveOn
# =============================================================================


def _stamp_score(score: ResultScore, transform: StatementTransform | None) -> StatementTransform:
    # Score goes on first; the caller's transform sees the stamped statement.
    def _transform(statement: Statement) -> Statement:
        stamped = set_result_score(score, statement)
        return transform(stamped) if transform else stamped

    return _transform


def iter_move_on(
    ctx: LaunchContext,
    options: MoveOnOptions | None = None,
) -> Iterator[tuple[Statement, SendOptions]]:
    """
    Yield the moveOn statements in emission order with their send options.

    Each statement is built only when the consumer asks for it, so a sender
    that awaits each round-trip before advancing gets timestamps and
    durations taken after the previous send resolved.

    Order: Passed or Failed (only when a score is given and a mastery score
    is set), Completed, then Terminated unless disabled. Without a mastery
    score a given score is stamped onto Completed instead.

    Raises:
        InvalidStateError: If launchMode is not Normal (before anything is yielded)
    """
    options = options or MoveOnOptions()
    require_normal_mode(ctx, "FAILED")

    completed_options: SendOptions = options
    result_score = to_result_score(options.score)
    if result_score is not None:
        mastery_score = ctx.launch_data.mastery_score
        if mastery_score is not None:
            if meets_mastery(result_score, mastery_score):
                logger.info(f"moveOn: score {result_score.scaled} meets mastery {mastery_score}, passing")
                yield passed_statement(ctx, result_score, objective=options.objective_activity), options
            else:
                logger.info(f"moveOn: score {result_score.scaled} below mastery {mastery_score}, failing")
                yield failed_statement(ctx, result_score), options
        else:
            logger.info("moveOn: no mastery score, recording score on Completed")
            completed_options = SendOptions(transform=_stamp_score(result_score, options.transform))

    yield completed_statement(ctx), completed_options

    if not options.disable_send_terminated:
        yield terminated_statement(ctx), SendOptions()


def move_on_statements(ctx: LaunchContext, options: MoveOnOptions | None = None) -> list[Statement]:
    """Preview the moveOn sequence as it would be sent, transforms applied."""
    return [send_options.apply(statement) for statement, send_options in iter_move_on(ctx, options)]
