"""
Time helpers for statements: ISO-8601 durations and timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class Period:
    """Start/end of a single interaction attempt."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if as_utc(self.start) > as_utc(self.end):
            raise ValueError("Period start must not be after its end")

    @property
    def duration(self) -> str:
        return iso8601_duration(self.start, self.end)


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def iso_timestamp(moment: datetime | None = None) -> str:
    """Format a moment as an xAPI timestamp, e.g. 2024-05-01T10:00:00.000Z."""
    return as_utc(moment or utc_now()).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso8601_duration(start: datetime, end: datetime) -> str:
    """
    Elapsed whole seconds between two moments as an ISO-8601 duration.

    Components that are zero are omitted (125s -> "PT2M5S"). Hours are not
    folded into days. An empty or negative interval yields "PT0S".

    Args:
        start: Beginning of the interval
        end: End of the interval

    Returns:
        Duration string such as "PT2H6M33S"
    """
    total = max(int((as_utc(end) - as_utc(start)).total_seconds()), 0)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)

    duration = "PT"
    if hours:
        duration += f"{hours}H"
    if minutes:
        duration += f"{minutes}M"
    if seconds or duration == "PT":
        duration += f"{seconds}S"
    return duration
