"""
Shared schema types.

Room, membership and audit timestamps are stored as naive UTC datetimes;
these annotated types render them with a trailing Z so clients never have
to guess the timezone.
"""

from datetime import datetime
from typing import Annotated

from pydantic import PlainSerializer


def format_utc(dt: datetime | None) -> str | None:
    """Render a naive UTC datetime as e.g. 2026-10-19T08:30:00Z."""
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt else None


# Usage: joined_at: UTCDatetime instead of joined_at: datetime
UTCDatetime = Annotated[datetime, PlainSerializer(format_utc, return_type=str)]

# Nullable timestamps such as left_at, archived_at, suspended_until
UTCDatetimeOptional = Annotated[
    datetime | None, PlainSerializer(format_utc, return_type=str | None)
]
