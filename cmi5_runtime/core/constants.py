"""
cmi5 vocabulary: verbs, category activities, extensions and interaction types.

Reference: cmi5 Quartz, sections 9.3 (verbs), 9.6.2 (category activities)
and 9.7.1 (extensions).
"""

from __future__ import annotations

from enum import Enum
from typing import Any


def _verb(name: str) -> dict[str, Any]:
    return {
        "id": f"http://adlnet.gov/expapi/verbs/{name}",
        "display": {"en-US": name},
    }


class Cmi5Verbs:
    """Verbs used by the statements an AU may send."""

    # cmi5 defined
    INITIALIZED = _verb("initialized")
    COMPLETED = _verb("completed")
    PASSED = _verb("passed")
    FAILED = _verb("failed")
    TERMINATED = _verb("terminated")

    # cmi5 allowed
    PROGRESSED = _verb("progressed")
    ANSWERED = _verb("answered")


class Cmi5ContextActivity:
    """Category activities placed in context.contextActivities.category."""

    CMI5 = {
        "objectType": "Activity",
        "id": "https://w3id.org/xapi/cmi5/context/categories/cmi5",
    }
    MOVE_ON = {
        "objectType": "Activity",
        "id": "https://w3id.org/xapi/cmi5/context/categories/moveon",
    }


class Cmi5Extension:
    MASTERY_SCORE = "https://w3id.org/xapi/cmi5/context/extensions/masteryscore"
    PROGRESS = "https://w3id.org/xapi/cmi5/result/extensions/progress"


class InteractionType(str, Enum):
    """cmi.interaction types (xAPI 1.0.3 section 9.2)."""

    TRUE_FALSE = "true-false"
    CHOICE = "choice"
    FILL_IN = "fill-in"
    LONG_FILL_IN = "long-fill-in"
    LIKERT = "likert"
    MATCHING = "matching"
    PERFORMANCE = "performance"
    SEQUENCING = "sequencing"
    NUMERIC = "numeric"
    OTHER = "other"


INTERACTION_ACTIVITY_TYPE = "http://adlnet.gov/expapi/activities/cmi.interaction"
OBJECTIVE_ACTIVITY_TYPE = "http://adlnet.gov/expapi/activities/objective"

# Response pattern delimiters
ITEM_SEPARATOR = "[,]"
PAIR_SEPARATOR = "[.]"

# Document ids on the LRS
LAUNCH_DATA_STATE_ID = "LMS.LaunchData"
LEARNER_PREFERENCES_PROFILE_ID = "cmi5LearnerPreferences"
