"""
Error taxonomy for the cmi5 runtime.

Nothing here retries. Every error surfaces to the caller of the session
operation that raised it.
"""

from __future__ import annotations


class Cmi5Error(Exception):
    """Base class for all cmi5 runtime errors."""


class ConfigurationError(Cmi5Error):
    """Raised when a required launch parameter is missing or the launch data is malformed."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Unable to construct, no `{field}` launch parameter found.")


class InvalidStateError(Cmi5Error):
    """Raised when a statement is not legal in the current launch mode or session state."""


class MasteryNotMetError(Cmi5Error):
    """Raised when a pass is requested with a score below the mastery score."""

    def __init__(self, message: str = "Learner has not met Mastery Score"):
        super().__init__(message)


class TransportError(Cmi5Error):
    """Raised by a transport when the LRS or fetch URL request fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
