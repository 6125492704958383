"""
cmi5-runtime - assignable-unit runtime for the cmi5 xAPI profile.

Usage:
    params = LaunchParameters.from_mapping(launch_query)
    session = Cmi5Session(params)
    await session.initialize()
    await session.progress(50)
    await session.move_on(MoveOnOptions(score=0.9))
"""

from cmi5_runtime.core import (
    Cmi5Error,
    ConfigurationError,
    InvalidStateError,
    LaunchContext,
    LaunchData,
    LaunchMode,
    LaunchParameters,
    LearnerPreferences,
    MasteryNotMetError,
    MoveOnCriteria,
    Period,
    SessionState,
    Transport,
    TransportError,
)
from cmi5_runtime.session import Cmi5Session, SessionStatus
from cmi5_runtime.statements import (
    MoveOnOptions,
    NumericExact,
    NumericRange,
    ResultScore,
    SendOptions,
    Statement,
    objective_activity,
)

__version__ = "1.0.0"

__all__ = [
    "Cmi5Session",
    "SessionStatus",
    # Launch
    "LaunchContext",
    "LaunchData",
    "LaunchMode",
    "LaunchParameters",
    "LearnerPreferences",
    "MoveOnCriteria",
    "SessionState",
    # Statements
    "MoveOnOptions",
    "NumericExact",
    "NumericRange",
    "Period",
    "ResultScore",
    "SendOptions",
    "Statement",
    "objective_activity",
    # Transport
    "Transport",
    # Errors
    "Cmi5Error",
    "ConfigurationError",
    "InvalidStateError",
    "MasteryNotMetError",
    "TransportError",
]
