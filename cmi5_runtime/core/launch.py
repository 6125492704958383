"""
Launch Context: who is learning what, under which launch configuration.

LaunchParameters arrive with the AU launch; LaunchData and LearnerPreferences
are fetched from the LRS during initialize(). LaunchContext bundles them with
the initialization time and is threaded through every statement builder.
None of these values change once the session is initialized.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .durations import as_utc
from .errors import ConfigurationError


class LaunchMode(str, Enum):
    """cmi5 launch modes (section 10.2.2)."""

    NORMAL = "Normal"
    BROWSE = "Browse"
    REVIEW = "Review"


class MoveOnCriteria(str, Enum):
    """Course-structure moveOn values (section 13.1.4)."""

    PASSED = "Passed"
    COMPLETED = "Completed"
    COMPLETED_AND_PASSED = "CompletedAndPassed"
    COMPLETED_OR_PASSED = "CompletedOrPassed"
    NOT_APPLICABLE = "NotApplicable"


# Checked in this order; the first missing one is reported.
_REQUIRED_LAUNCH_KEYS = (
    ("fetch", "fetch"),
    ("endpoint", "endpoint"),
    ("actor", "actor"),
    ("activity_id", "activityId"),
    ("registration", "registration"),
)


@dataclass(frozen=True, kw_only=True)
class LaunchParameters:
    """Launch URL parameters handed to the AU by the LMS."""

    fetch: str | None = None
    endpoint: str | None = None
    actor: dict[str, Any] | None = None
    activity_id: str | None = None
    registration: str | None = None
    auth_token: str | None = None

    def __post_init__(self):
        for attr, key in _REQUIRED_LAUNCH_KEYS:
            if not getattr(self, attr):
                raise ConfigurationError(key)

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> LaunchParameters:
        """
        Build from already-decoded launch keys.

        Args:
            params: Mapping with fetch, endpoint, actor, activityId,
                registration and optionally authToken (or `auth-token`, as
                the fetch URL names it). The actor may be a JSON string, as
                it is on the launch URL.

        Raises:
            ConfigurationError: For the first required key that is missing
        """
        actor = params.get("actor")
        if isinstance(actor, str) and actor:
            actor = json.loads(actor)
        return cls(
            fetch=params.get("fetch"),
            endpoint=params.get("endpoint"),
            actor=actor,
            activity_id=params.get("activityId"),
            registration=params.get("registration"),
            auth_token=params.get("authToken") or params.get("auth-token"),
        )


class EntitlementKey(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    course_structure: str | None = Field(default=None, alias="courseStructure")
    alternate: str | None = None


class LaunchData(BaseModel):
    """The LMS.LaunchData state document (section 10.2)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    context_template: dict[str, Any] = Field(default_factory=dict, alias="contextTemplate")
    launch_mode: LaunchMode | None = Field(default=None, alias="launchMode")
    move_on: MoveOnCriteria = Field(alias="moveOn")
    mastery_score: float | None = Field(default=None, alias="masteryScore", ge=0, le=1)
    launch_parameters: str | None = Field(default=None, alias="launchParameters")
    return_url: str | None = Field(default=None, alias="returnURL")
    entitlement_key: EntitlementKey | None = Field(default=None, alias="entitlementKey")


class LearnerPreferences(BaseModel):
    """The cmi5LearnerPreferences agent profile (section 11)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    language_preference: str | None = Field(default=None, alias="languagePreference")
    audio_preference: Literal["on", "off"] | None = Field(default=None, alias="audioPreference")


@dataclass(frozen=True)
class LaunchContext:
    """Everything a statement builder needs to know about the session."""

    initialized_date: datetime
    launch_parameters: LaunchParameters
    launch_data: LaunchData


@dataclass(frozen=True)
class SessionState:
    """
    Resumable session state.

    The host persists this between page loads so a relaunched AU can reuse
    its auth token and initialization time instead of fetching a new token
    and sending a second Initialized statement.
    """

    auth_token: str
    initialized_date: datetime

    def to_dict(self) -> dict[str, str]:
        return {
            "authToken": self.auth_token,
            "initializedDate": as_utc(self.initialized_date).isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionState:
        return cls(
            auth_token=data["authToken"],
            initialized_date=as_utc(datetime.fromisoformat(data["initializedDate"])),
        )
