"""Transition probes: derive offset and DST data for a zone and year.

No portable API reports a zone's DST rules, so each probe asks the host:

- ZdumpProbe runs `zdump -v <zone>` and reads the year's transition lines.
- DateProbe runs `date +%z` with TZ=<zone> for the current fixed offset.
- RegistryProbe reads the zone's TZI record from the Windows registry.

A probe returns a ProbeResult or raises ProbeError.
"""

from __future__ import annotations

import calendar
import os
import re
import struct
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Protocol, Sequence

from .civil import MONTH_NAMES, CivilTime, diff_time, utc_breakdown
from .logging import HostzoneError, get_logger
from .windows_zones import windows_name_for_zoneinfo

logger = get_logger(__name__)

ZDUMP_TIMEOUT = 5.0
DATE_TIMEOUT = 1.0

CommandRunner = Callable[[Sequence[str], float], tuple[int, Path]]


class ProbeError(HostzoneError):
    """A probe could not produce transition data."""


@dataclass(frozen=True)
class ProbeResult:
    """Offsets (seconds east of UTC) and the year's two transition instants.

    daylight_offset is the extra offset applied during DST; 0 means the zone
    has no DST and the transition fields are None.
    """

    standard_offset: int
    daylight_offset: int
    daylight_transition_utc: CivilTime | None = None
    standard_transition_utc: CivilTime | None = None


class TransitionProbe(Protocol):
    def probe(self, zone: str, year: int) -> ProbeResult: ...


def run_command(argv: Sequence[str], timeout: float) -> tuple[int, Path]:
    """Run argv with stdout dumped to a temp file.

    Returns:
        (exit code, path of the output file). The caller removes the file.

    Raises:
        ProbeError: If the command cannot be started or exceeds timeout
    """
    fd, name = tempfile.mkstemp(prefix="hostzone-", suffix=".out")
    output = Path(name)
    try:
        with os.fdopen(fd, "wb") as out:
            result = subprocess.run(
                list(argv), stdout=out, stderr=subprocess.DEVNULL, timeout=timeout
            )
    except subprocess.TimeoutExpired as e:
        output.unlink(missing_ok=True)
        raise ProbeError(f"{argv[0]} timed out after {timeout}s") from e
    except (OSError, ValueError) as e:
        output.unlink(missing_ok=True)
        raise ProbeError(f"Could not run {argv[0]}: {e}") from e
    return result.returncode, output


def _read_output(runner: CommandRunner, argv: Sequence[str], timeout: float) -> list[str]:
    """Run argv through runner and return its stdout lines."""
    logger.debug("Running probe command", argv=list(argv), timeout=timeout)
    exit_code, output = runner(argv, timeout)
    try:
        if exit_code != 0:
            raise ProbeError(f"{argv[0]} exited with status {exit_code}")
        return output.read_text(errors="replace").splitlines()
    finally:
        output.unlink(missing_ok=True)


def parse_zdump_date(tokens: Sequence[str]) -> CivilTime:
    """Parse zdump date tokens, e.g. ["Mar", "13", "07:00:00", "2016"]."""
    if len(tokens) < 4:
        raise ProbeError(f"Truncated zdump date: {' '.join(tokens)}")
    month_name, day, clock, year = tokens[:4]
    if month_name not in MONTH_NAMES:
        raise ProbeError(f"Unknown month in zdump output: {month_name}")
    try:
        hour, minute, second = (int(part) for part in clock.split(":"))
        return CivilTime(int(year), MONTH_NAMES.index(month_name) + 1, int(day), hour, minute, second)
    except ValueError as e:
        raise ProbeError(f"Malformed zdump date: {' '.join(tokens)}") from e


def parse_zdump_transitions(lines: Sequence[str]) -> ProbeResult:
    """Derive offsets from the four zdump lines of one year.

    Sample input (America/New_York, 2016):

        America/New_York  Sun Mar 13 06:59:59 2016 UT = Sun Mar 13 01:59:59 2016 EST isdst=0 gmtoff=-18000
        America/New_York  Sun Mar 13 07:00:00 2016 UT = Sun Mar 13 03:00:00 2016 EDT isdst=1 gmtoff=-14400
        America/New_York  Sun Nov  6 05:59:59 2016 UT = Sun Nov  6 01:59:59 2016 EDT isdst=1 gmtoff=-14400
        America/New_York  Sun Nov  6 06:00:00 2016 UT = Sun Nov  6 01:00:00 2016 EST isdst=0 gmtoff=-18000

    Lines come in before/after pairs; the second and fourth lines are the
    first instants after each transition. gmtoff is not printed on darwin,
    so offsets are computed from the UT and local dates.
    """
    if len(lines) != 4:
        raise ProbeError(f"Expected 4 zdump lines, got {len(lines)}")

    edges = []
    for line in (lines[1], lines[3]):
        tokens = line.split()
        if len(tokens) < 13:
            raise ProbeError(f"Unexpected zdump line: {line}")
        utc = parse_zdump_date(tokens[2:6])
        local = parse_zdump_date(tokens[9:13])
        edges.append((utc, diff_time(local, utc)))

    (daylight_utc, daylight_edge_offset), (standard_utc, standard_offset) = edges
    return ProbeResult(
        standard_offset=standard_offset,
        daylight_offset=daylight_edge_offset - standard_offset,
        daylight_transition_utc=daylight_utc,
        standard_transition_utc=standard_utc,
    )


_UTC_OFFSET_RE = re.compile(r"^([+-])(\d{2})(\d{2})$")


def parse_utc_offset(text: str) -> int:
    """Parse a ±HHMM offset such as "-0400" into seconds."""
    match = _UTC_OFFSET_RE.match(text.strip())
    if not match:
        raise ProbeError(f"Unexpected offset output: {text.strip()!r}")
    sign = 1 if match.group(1) == "+" else -1
    return sign * (int(match.group(2)) * 3600 + int(match.group(3)) * 60)


class ZdumpProbe:
    """Read a year's DST transitions from `zdump -v`."""

    def __init__(self, timeout: float = ZDUMP_TIMEOUT, runner: CommandRunner = run_command):
        self.timeout = timeout
        self.runner = runner

    def probe(self, zone: str, year: int) -> ProbeResult:
        lines = _read_output(self.runner, ["zdump", "-v", zone], self.timeout)
        year_token = str(year)
        rules = [line for line in lines if year_token in line]
        return parse_zdump_transitions(rules)


class DateProbe:
    """Read the zone's current offset from `date +%z`, assuming no DST."""

    def __init__(self, timeout: float = DATE_TIMEOUT, runner: CommandRunner = run_command):
        self.timeout = timeout
        self.runner = runner

    def probe(self, zone: str, year: int) -> ProbeResult:
        lines = _read_output(self.runner, ["env", f"TZ={zone}", "date", "+%z"], self.timeout)
        if not lines:
            raise ProbeError("date printed nothing")
        return ProbeResult(standard_offset=parse_utc_offset(lines[0]), daylight_offset=0)


class FallbackProbe:
    """Try each probe in turn; the first result wins."""

    def __init__(self, *probes: TransitionProbe):
        self.probes = probes

    def probe(self, zone: str, year: int) -> ProbeResult:
        errors = []
        for candidate in self.probes:
            try:
                return candidate.probe(zone, year)
            except ProbeError as e:
                logger.debug(
                    "Probe failed", probe=type(candidate).__name__, timezone=zone, error=str(e)
                )
                errors.append(str(e))
        raise ProbeError(f"No probe could describe {zone}: {'; '.join(errors)}")


# REG_TZI_FORMAT: Bias, StandardBias, DaylightBias (LONG, minutes), then the
# StandardDate and DaylightDate SYSTEMTIMEs (8 WORDs each)
TZI_FORMAT = "<3l8H8H"
TZI_SIZE = struct.calcsize(TZI_FORMAT)

TIME_ZONES_KEY = r"SOFTWARE\Microsoft\Windows NT\CurrentVersion\Time Zones"


@dataclass(frozen=True)
class SystemTime:
    """Windows SYSTEMTIME. In TZI records year 0 marks a recurring rule."""

    year: int
    month: int
    day_of_week: int  # 0 = Sunday
    day: int  # Week of the month (5 = last) for recurring rules
    hour: int
    minute: int
    second: int
    millisecond: int

    def locate(self, year: int) -> datetime:
        """Local wall-clock time this transition happens in year."""
        if self.year:
            return datetime(self.year, self.month, self.day, self.hour, self.minute, self.second)
        # SYSTEMTIME counts Sunday as 0, Python counts Monday as 0
        target_weekday = (self.day_of_week + 6) % 7
        result = datetime(year, self.month, 1, self.hour, self.minute, self.second)
        result += timedelta(days=(target_weekday - result.weekday()) % 7)
        result += timedelta(weeks=self.day - 1)
        # Week 5 means "last", which may be the 4th
        while result.month != self.month:
            result -= timedelta(weeks=1)
        return result


def _to_utc(local: datetime, offset: int) -> CivilTime:
    return utc_breakdown(calendar.timegm(local.timetuple()) - offset)


def parse_tzi(data: bytes, year: int) -> ProbeResult:
    """Derive offsets and transitions from a binary TZI registry record.

    UTC = local time + Bias, with Bias in minutes. DaylightDate is given in
    standard local time and StandardDate in daylight local time.
    """
    if len(data) < TZI_SIZE:
        raise ProbeError(f"TZI record too short: {len(data)} bytes")
    fields = struct.unpack(TZI_FORMAT, data[:TZI_SIZE])
    bias, standard_bias, daylight_bias = fields[:3]
    standard_date = SystemTime(*fields[3:11])
    daylight_date = SystemTime(*fields[11:19])

    standard_offset = -(bias + standard_bias) * 60
    daylight_offset = -(daylight_bias - standard_bias) * 60
    if daylight_offset == 0 or daylight_date.month == 0:
        return ProbeResult(standard_offset=standard_offset, daylight_offset=0)

    try:
        daylight_local = daylight_date.locate(year)
        standard_local = standard_date.locate(year)
    except ValueError as e:
        raise ProbeError(f"Malformed TZI transition date: {e}") from e
    daylight_utc = _to_utc(daylight_local, standard_offset)
    standard_utc = _to_utc(standard_local, standard_offset + daylight_offset)
    if daylight_utc < standard_utc:
        return ProbeResult(
            standard_offset=standard_offset,
            daylight_offset=daylight_offset,
            daylight_transition_utc=daylight_utc,
            standard_transition_utc=standard_utc,
        )
    # Southern hemisphere: DST straddles the new year. Keep the edges in date
    # order, as zdump lists them, so the window is the standard-time stretch.
    return ProbeResult(
        standard_offset=standard_offset + daylight_offset,
        daylight_offset=-daylight_offset,
        daylight_transition_utc=standard_utc,
        standard_transition_utc=daylight_utc,
    )


def read_registry_tzi(label: str) -> bytes:
    """Read the TZI value for a Windows timezone label. Windows only."""
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, rf"{TIME_ZONES_KEY}\{label}") as key:
            value, value_type = winreg.QueryValueEx(key, "TZI")
    except OSError as e:
        raise ProbeError(f"Could not read registry TZI for {label}: {e}") from e
    if value_type != winreg.REG_BINARY:
        raise ProbeError(f"Registry TZI for {label} is not binary")
    return value


class RegistryProbe:
    """Windows: TZI record of the first table label mapping to the zone."""

    def __init__(self, read_tzi: Callable[[str], bytes] = read_registry_tzi):
        self.read_tzi = read_tzi

    def probe(self, zone: str, year: int) -> ProbeResult:
        label = windows_name_for_zoneinfo(zone)
        if label is None:
            raise ProbeError(f"No Windows timezone maps to {zone}")
        return parse_tzi(self.read_tzi(label), year)


def default_probe(
    platform: str = sys.platform,
    zdump_timeout: float = ZDUMP_TIMEOUT,
    date_timeout: float = DATE_TIMEOUT,
) -> TransitionProbe:
    """Pick the transition probe for a host family (a sys.platform value)."""
    if platform == "win32":
        return RegistryProbe()
    return FallbackProbe(ZdumpProbe(timeout=zdump_timeout), DateProbe(timeout=date_timeout))
