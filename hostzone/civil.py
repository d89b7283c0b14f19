"""Civil (calendar/clock) breakdowns of POSIX instants."""

from __future__ import annotations

import time
from typing import NamedTuple

SECONDS_PER_DAY = 60 * 60 * 24

MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)  # fmt: skip


class CivilTime(NamedTuple):
    """Calendar date and wall-clock time, month and day 1-based."""

    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int

    @classmethod
    def from_struct(cls, st: time.struct_time) -> CivilTime:
        return cls(st.tm_year, st.tm_mon, st.tm_mday, st.tm_hour, st.tm_min, st.tm_sec)


class LocalTime(NamedTuple):
    """Civil breakdown plus DST flag.

    isdst is 1 during DST, 0 outside it, and -1 for zones without DST.
    """

    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    isdst: int

    @property
    def civil(self) -> CivilTime:
        return CivilTime(*self[:6])

    def as_dict(self) -> dict:
        return self._asdict()


def utc_breakdown(instant: int) -> CivilTime:
    return CivilTime.from_struct(time.gmtime(instant))


def host_local_breakdown(instant: int) -> LocalTime:
    """Break down instant using the host's own timezone rules."""
    st = time.localtime(instant)
    return LocalTime(
        st.tm_year, st.tm_mon, st.tm_mday, st.tm_hour, st.tm_min, st.tm_sec, st.tm_isdst
    )


def civil_compare(a: CivilTime, b: CivilTime) -> int:
    """Return 1, 0 or -1 as a is later than, equal to or earlier than b."""
    return (a > b) - (a < b)


def diff_time(end: CivilTime, beginning: CivilTime) -> int:
    """Seconds from beginning to end, for breakdowns less than a day apart.

    Only the clock time is differenced. When the two breakdowns fall in
    different years or months, the later one is taken to be exactly one day
    ahead, which holds because UTC offsets stay below 24 hours.
    """
    end_secs = end.second + 60 * (end.minute + 60 * end.hour)
    beginning_secs = beginning.second + 60 * (beginning.minute + 60 * beginning.hour)
    if end.year > beginning.year:
        end_secs += SECONDS_PER_DAY
    elif end.year < beginning.year:
        beginning_secs += SECONDS_PER_DAY
    elif end.month > beginning.month:
        end_secs += SECONDS_PER_DAY
    elif end.month < beginning.month:
        beginning_secs += SECONDS_PER_DAY
    else:
        end_secs += SECONDS_PER_DAY * end.day
        beginning_secs += SECONDS_PER_DAY * beginning.day
    return end_secs - beginning_secs


def host_offset_seconds(instant: int) -> int:
    """Host local-minus-UTC offset for instant, in seconds."""
    local = host_local_breakdown(instant).civil
    return diff_time(local, utc_breakdown(instant))
