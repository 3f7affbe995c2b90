"""
Date utilities for doto.

All calendar dates are local dates in the fixed-width form YYYY-MM-DD, and
all timestamps are local timestamps in the form YYYY-MM-DDTHH:MM:SS.
Because both formats are zero-padded and fixed-width, plain string
comparison orders them chronologically; the store relies on that.
"""

import re
from datetime import date, datetime
from typing import Optional, Protocol, runtime_checkable

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def local_today() -> str:
    """Today's local calendar date (YYYY-MM-DD).

    This is the single source of truth for "today" in doto.
    """
    return datetime.now().strftime(DATE_FORMAT)


def local_now() -> str:
    """Current local timestamp in canonical format: YYYY-MM-DDTHH:MM:SS."""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def is_valid_date(value: object) -> bool:
    """True if value is a real calendar date in YYYY-MM-DD form.

    Rejects non-padded forms like "2025-3-1" as well as impossible dates
    like "2025-02-30".
    """
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return True


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string, raising ValueError for anything else."""
    if not is_valid_date(value):
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value!r}")
    return datetime.strptime(value, DATE_FORMAT).date()


@runtime_checkable
class Clock(Protocol):
    """Source of "today" and "now" for the store."""

    def today(self) -> str: ...

    def now(self) -> str: ...


class SystemClock:
    """Clock backed by the local system time."""

    def today(self) -> str:
        return local_today()

    def now(self) -> str:
        return local_now()


class FixedClock:
    """Clock frozen at a given date, for tests and reproducible exports.

    Args:
        today: Calendar date to report (YYYY-MM-DD)
        now: Timestamp to report; defaults to midnight on ``today``
    """

    def __init__(self, today: str, now: Optional[str] = None):
        parse_date(today)
        self._today = today
        self._now = now or f"{today}T00:00:00"

    def today(self) -> str:
        return self._today

    def now(self) -> str:
        return self._now

    def set(self, today: str, now: Optional[str] = None) -> None:
        """Move the clock, e.g. to simulate the next day."""
        parse_date(today)
        self._today = today
        self._now = now or f"{today}T00:00:00"
