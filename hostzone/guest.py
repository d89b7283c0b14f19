"""Guest timezone: offset and local time as seen by the emulated clock.

A GuestTimeZone starts Unset and answers every query with the host's own
localtime/gmtime semantics. Once set_zone() succeeds it is Resolved and
answers from a TimeZoneRecord derived for the current UTC year; queries in
a different year re-derive the record first.

The module keeps one process-wide instance (get_default_timezone()) behind
timezone_set(), tzoffset_in_seconds() and guest_localtime().
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from .civil import (
    CivilTime,
    LocalTime,
    civil_compare,
    host_local_breakdown,
    host_offset_seconds,
    utc_breakdown,
)
from .config import get_probe_timeouts
from .logging import get_logger
from .probes import ProbeError, TransitionProbe, default_probe
from .resolver import clear_host_timezone_cache, remember_host_timezone
from .zonename import InvalidZoneNameError, is_zoneinfo_name, validate_zone_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class TimeZoneRecord:
    """Offsets and DST transitions of one zone for one UTC year."""

    zone: str
    year: int
    standard_offset: int
    daylight_offset: int
    daylight_transition_utc: CivilTime | None = None
    standard_transition_utc: CivilTime | None = None

    @property
    def has_dst(self) -> bool:
        return self.daylight_offset != 0

    def isdst(self, utc: CivilTime) -> int:
        """1 if utc is within DST, 0 if not, -1 if the zone has no DST.

        DST runs from daylight_transition_utc (inclusive) up to
        standard_transition_utc (exclusive).
        """
        if not self.has_dst:
            return -1
        if self.daylight_transition_utc is None or self.standard_transition_utc is None:
            return 0
        if (
            civil_compare(utc, self.daylight_transition_utc) < 0
            or civil_compare(utc, self.standard_transition_utc) >= 0
        ):
            return 0
        return 1

    def offset_for(self, utc: CivilTime) -> int:
        if self.isdst(utc) > 0:
            return self.standard_offset + self.daylight_offset
        return self.standard_offset


class GuestTimeZone:
    """Timezone of the emulated guest.

    All public methods are safe to call from any thread. Derivation runs an
    external probe while holding the lock, so a query that crosses into a new
    year may stall for up to the probe timeouts.
    """

    def __init__(
        self,
        probe: TransitionProbe | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if probe is None:
            zdump_timeout, date_timeout = get_probe_timeouts()
            probe = default_probe(zdump_timeout=zdump_timeout, date_timeout=date_timeout)
        self.probe = probe
        self.clock = clock
        self._lock = threading.RLock()
        self._year = utc_breakdown(int(clock())).year
        self._zone: str | None = None
        self._record: TimeZoneRecord | None = None

    @property
    def zone(self) -> str | None:
        with self._lock:
            return self._zone

    @property
    def record(self) -> TimeZoneRecord | None:
        with self._lock:
            return self._record

    @property
    def initialized(self) -> bool:
        return self.record is not None

    def _derive(self, zone: str, year: int) -> TimeZoneRecord | None:
        try:
            result = self.probe.probe(zone, year)
        except ProbeError as e:
            logger.warning(
                "Could not retrieve timezone information, using host localtime",
                timezone=zone,
                year=year,
                error=str(e),
            )
            return None
        record = TimeZoneRecord(
            zone=zone,
            year=year,
            standard_offset=result.standard_offset,
            daylight_offset=result.daylight_offset,
            daylight_transition_utc=result.daylight_transition_utc,
            standard_transition_utc=result.standard_transition_utc,
        )
        logger.debug("Derived timezone record", record=record)
        return record

    def set_zone(self, name: str) -> bool:
        """Switch the guest to zone name, deriving its rules for this year.

        Returns False, with state untouched, for a malformed name. Returns
        False and falls back to host time if the rules cannot be derived.
        """
        if not is_zoneinfo_name(name):
            logger.debug("Rejected malformed timezone", timezone=name)
            return False
        year = utc_breakdown(int(self.clock())).year
        with self._lock:
            self._zone = name
            self._year = year
            self._record = None
            self._record = self._derive(name, year)
            return self._record is not None

    def _record_for(self, utc: CivilTime) -> TimeZoneRecord | None:
        """Current record, re-derived first if utc is in another year."""
        if self._record is None or self._zone is None:
            return None
        if utc.year != self._year:
            logger.debug("Year changed, re-deriving timezone", old=self._year, new=utc.year)
            self._year = utc.year
            self._record = self._derive(self._zone, utc.year)
        return self._record

    def offset_seconds(self, instant: int) -> int:
        """Guest UTC offset in seconds (DST included) at a POSIX instant."""
        utc = utc_breakdown(instant)
        with self._lock:
            record = self._record_for(utc)
        if record is None:
            return host_offset_seconds(instant)
        return record.offset_for(utc)

    def local_time(self, instant: int) -> LocalTime:
        """Guest civil time, with DST flag, at a POSIX instant."""
        utc = utc_breakdown(instant)
        with self._lock:
            record = self._record_for(utc)
        if record is None:
            return host_local_breakdown(instant)
        local = utc_breakdown(instant + record.offset_for(utc))
        return LocalTime(*local, isdst=record.isdst(utc))


_default_timezone: GuestTimeZone | None = None
_default_lock = threading.Lock()


def get_default_timezone() -> GuestTimeZone:
    """The process-wide GuestTimeZone, created on first use."""
    global _default_timezone
    if _default_timezone is None:
        with _default_lock:
            if _default_timezone is None:
                _default_timezone = GuestTimeZone()
    return _default_timezone


def set_default_timezone(timezone: GuestTimeZone | None) -> None:
    """Install the process-wide instance (None drops it)."""
    global _default_timezone
    with _default_lock:
        _default_timezone = timezone


def timezone_set(name: str) -> bool:
    """Set the guest timezone for the whole process.

    On success the name also becomes the reported host zoneinfo name. On
    failure the host zone is resolved again on next use.
    """
    try:
        validate_zone_name(name)
    except InvalidZoneNameError as e:
        logger.debug("Rejected timezone", error=str(e))
        return False
    if get_default_timezone().set_zone(name):
        remember_host_timezone(name)
        return True
    clear_host_timezone_cache()
    return False


def tzoffset_in_seconds(instant: int | None = None) -> int:
    if instant is None:
        instant = int(time.time())
    return get_default_timezone().offset_seconds(instant)


def guest_localtime(instant: int | None = None) -> LocalTime:
    if instant is None:
        instant = int(time.time())
    return get_default_timezone().local_time(instant)
