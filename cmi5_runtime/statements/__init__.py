"""
Statement construction for cmi5 sessions.

All builders are synchronous and pure apart from reading the clock and
drawing a fresh statement id.
"""

from cmi5_runtime.statements.builder import (
    SendOptions,
    Statement,
    StatementTransform,
    allowed_statement,
    deep_merge,
    defined_statement,
)
from cmi5_runtime.statements.defined import (
    MoveOnOptions,
    ResultScore,
    completed_statement,
    failed_statement,
    initialized_statement,
    iter_move_on,
    move_on_statements,
    objective_activity,
    passed_statement,
    progressed_statement,
    set_result_score,
    terminated_statement,
    to_result_score,
)
from cmi5_runtime.statements.interactions import (
    InteractionEncoding,
    NumericExact,
    NumericRange,
    encode_choice,
    encode_fill_in,
    encode_likert,
    encode_long_fill_in,
    encode_matching,
    encode_numeric,
    encode_other,
    encode_performance,
    encode_sequencing,
    encode_true_false,
    encoded_interaction_statement,
    interaction_statement,
    numeric_criteria_to_string,
)

__all__ = [
    # Builder
    "SendOptions",
    "Statement",
    "StatementTransform",
    "allowed_statement",
    "deep_merge",
    "defined_statement",
    # Defined statements
    "MoveOnOptions",
    "ResultScore",
    "completed_statement",
    "failed_statement",
    "initialized_statement",
    "iter_move_on",
    "move_on_statements",
    "objective_activity",
    "passed_statement",
    "progressed_statement",
    "set_result_score",
    "terminated_statement",
    "to_result_score",
    # Interactions
    "InteractionEncoding",
    "NumericExact",
    "NumericRange",
    "encode_choice",
    "encode_fill_in",
    "encode_likert",
    "encode_long_fill_in",
    "encode_matching",
    "encode_numeric",
    "encode_other",
    "encode_performance",
    "encode_sequencing",
    "encode_true_false",
    "encoded_interaction_statement",
    "interaction_statement",
    "numeric_criteria_to_string",
]
