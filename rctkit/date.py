"""Calendar fields of a point in time stored as UTC seconds."""

from __future__ import annotations

import functools
import time as _time
from enum import Enum


class DateMode(Enum):
    """Whether a time is read or written as local time or UTC."""

    LOCAL = "local"
    UTC = "utc"


@functools.lru_cache(maxsize=None)
def _init_timezone() -> None:
    tzset = getattr(_time, "tzset", None)
    if tzset is not None:
        tzset()


def _breakdown(seconds: int, mode: DateMode) -> _time.struct_time:
    if mode is DateMode.UTC:
        return _time.gmtime(seconds)
    return _time.localtime(seconds)


class Date:
    """A moment kept internally as seconds since the epoch in UTC."""

    def __init__(self, time: int = 0, mode: DateMode = DateMode.UTC) -> None:
        self._time = 0
        self.set_time(time, mode)

    def __repr__(self) -> str:
        return f"Date({self._time})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Date):
            return NotImplemented
        return self._time == other._time

    def __hash__(self) -> int:
        return hash(self._time)

    def is_epoch(self) -> bool:
        return not self._time

    def set_time(self, time: int, mode: DateMode = DateMode.UTC) -> None:
        """Store ``time``; in local mode the local UTC offset is added."""
        _init_timezone()
        time = int(time)
        if mode is DateMode.UTC:
            self._time = time
        else:
            self._time = time + _time.localtime(time).tm_gmtoff

    def date(self, mode: DateMode = DateMode.UTC) -> int:
        """Day of month, 1-31."""
        return _breakdown(self._time, mode).tm_mday

    def day(self, mode: DateMode = DateMode.UTC) -> int:
        """Day of week, 0-6 with Sunday as 0."""
        return (_breakdown(self._time, mode).tm_wday + 1) % 7

    def year(self, mode: DateMode = DateMode.UTC) -> int:
        """Four-digit year."""
        return _breakdown(self._time, mode).tm_year

    def hours(self, mode: DateMode = DateMode.UTC) -> int:
        """Hour, 0-23."""
        return _breakdown(self._time, mode).tm_hour

    def minutes(self, mode: DateMode = DateMode.UTC) -> int:
        """Minutes, 0-59."""
        return _breakdown(self._time, mode).tm_min

    def month(self, mode: DateMode = DateMode.UTC) -> int:
        """Month, 0-11."""
        return _breakdown(self._time, mode).tm_mon - 1

    def seconds(self, mode: DateMode = DateMode.UTC) -> int:
        """Seconds, 0-59."""
        return _breakdown(self._time, mode).tm_sec

    def time(self, mode: DateMode = DateMode.UTC) -> int:
        """Stored seconds; in local mode, passed through local time and back."""
        if mode is DateMode.UTC:
            return self._time
        return int(_time.mktime(_time.localtime(self._time)))