"""
Utility functions
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, matching how timestamps are stored."""
    return datetime.now(UTC).replace(tzinfo=None)


__all__ = ["utc_now"]
