"""
Core Module - launch context, vocabulary, errors and transport interface.

Components:
- launch: LaunchParameters, LaunchData, LaunchContext, SessionState
- durations: ISO-8601 durations, timestamps, Period
- constants: cmi5 verbs, category activities, extensions, interaction types
- errors: ConfigurationError, InvalidStateError, MasteryNotMetError, TransportError
- transport: the Transport protocol the session sends through
"""

from cmi5_runtime.core.constants import (
    Cmi5ContextActivity,
    Cmi5Extension,
    Cmi5Verbs,
    InteractionType,
)
from cmi5_runtime.core.durations import Period, iso8601_duration, iso_timestamp
from cmi5_runtime.core.errors import (
    Cmi5Error,
    ConfigurationError,
    InvalidStateError,
    MasteryNotMetError,
    TransportError,
)
from cmi5_runtime.core.launch import (
    LaunchContext,
    LaunchData,
    LaunchMode,
    LaunchParameters,
    LearnerPreferences,
    MoveOnCriteria,
    SessionState,
)
from cmi5_runtime.core.transport import Transport

__all__ = [
    # Vocabulary
    "Cmi5ContextActivity",
    "Cmi5Extension",
    "Cmi5Verbs",
    "InteractionType",
    # Time
    "Period",
    "iso8601_duration",
    "iso_timestamp",
    # Errors
    "Cmi5Error",
    "ConfigurationError",
    "InvalidStateError",
    "MasteryNotMetError",
    "TransportError",
    # Launch
    "LaunchContext",
    "LaunchData",
    "LaunchMode",
    "LaunchParameters",
    "LearnerPreferences",
    "MoveOnCriteria",
    "SessionState",
    # Transport
    "Transport",
]
