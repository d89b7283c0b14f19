"""Tests for transition probes."""

from __future__ import annotations

import struct
import sys

import pytest

from hostzone.civil import CivilTime
from hostzone.guest import GuestTimeZone
from hostzone.probes import (
    TZI_FORMAT,
    DateProbe,
    FallbackProbe,
    ProbeError,
    RegistryProbe,
    SystemTime,
    ZdumpProbe,
    default_probe,
    parse_tzi,
    parse_utc_offset,
    parse_zdump_date,
    parse_zdump_transitions,
    run_command,
)
from tests.fixtures.commands import (
    BERLIN_2016_DARWIN,
    NEW_YORK_2016,
    NEW_YORK_2017,
    NEW_YORK_PREAMBLE,
)


class TestParseZdumpDate:
    def test_parses(self):
        assert parse_zdump_date(["Mar", "13", "07:00:00", "2016"]) == CivilTime(
            2016, 3, 13, 7, 0, 0
        )

    def test_unknown_month(self):
        with pytest.raises(ProbeError):
            parse_zdump_date(["Mär", "13", "07:00:00", "2016"])

    def test_malformed_clock(self):
        with pytest.raises(ProbeError):
            parse_zdump_date(["Mar", "13", "07:00", "2016"])

    def test_truncated(self):
        with pytest.raises(ProbeError):
            parse_zdump_date(["Mar", "13"])


class TestParseZdumpTransitions:
    """Tests for deriving offsets from four zdump lines."""

    def test_new_york(self):
        result = parse_zdump_transitions(NEW_YORK_2016.splitlines())
        assert result.standard_offset == -18000
        assert result.daylight_offset == 3600
        assert result.daylight_transition_utc == CivilTime(2016, 3, 13, 7, 0, 0)
        assert result.standard_transition_utc == CivilTime(2016, 11, 6, 6, 0, 0)

    def test_darwin_format(self):
        """darwin prints UTC and no gmtoff; offsets come from the dates."""
        result = parse_zdump_transitions(BERLIN_2016_DARWIN.splitlines())
        assert result.standard_offset == 3600
        assert result.daylight_offset == 3600
        assert result.daylight_transition_utc == CivilTime(2016, 3, 27, 1, 0, 0)
        assert result.standard_transition_utc == CivilTime(2016, 10, 30, 1, 0, 0)

    def test_wrong_line_count(self):
        with pytest.raises(ProbeError) as exc_info:
            parse_zdump_transitions(NEW_YORK_2016.splitlines()[:2])
        assert "Expected 4" in str(exc_info.value)

    def test_short_line(self):
        lines = NEW_YORK_2016.splitlines()
        lines[1] = "America/New_York  Sun Mar 13"
        with pytest.raises(ProbeError):
            parse_zdump_transitions(lines)


class TestParseUtcOffset:
    @pytest.mark.parametrize(
        "text,expected",
        [("-0400", -14400), ("+0530", 19800), ("+0000", 0), ("-0930\n", -34200)],
    )
    def test_parses(self, text, expected):
        assert parse_utc_offset(text) == expected

    @pytest.mark.parametrize("text", ["", "EST", "-04:00", "0400"])
    def test_rejects(self, text):
        with pytest.raises(ProbeError):
            parse_utc_offset(text)


class TestZdumpProbe:
    """Tests for ZdumpProbe against a scripted runner."""

    def test_filters_year(self, runner):
        runner.set("zdump", output=NEW_YORK_PREAMBLE + NEW_YORK_2016 + NEW_YORK_2017)
        result = ZdumpProbe(runner=runner).probe("America/New_York", 2017)
        assert result.daylight_transition_utc == CivilTime(2017, 3, 12, 7, 0, 0)
        assert result.standard_transition_utc == CivilTime(2017, 11, 5, 6, 0, 0)
        assert runner.calls == [["zdump", "-v", "America/New_York"]]

    def test_no_transitions_in_year(self, runner):
        """Zones without DST print no lines for the year."""
        runner.set("zdump", output=NEW_YORK_PREAMBLE)
        with pytest.raises(ProbeError):
            ZdumpProbe(runner=runner).probe("Asia/Tokyo", 2016)

    def test_nonzero_exit(self, runner):
        runner.set("zdump", exit_code=1, output=NEW_YORK_2016)
        with pytest.raises(ProbeError) as exc_info:
            ZdumpProbe(runner=runner).probe("America/New_York", 2016)
        assert "status 1" in str(exc_info.value)

    def test_timeout_propagates(self, runner):
        runner.fail("zdump")
        with pytest.raises(ProbeError):
            ZdumpProbe(runner=runner).probe("America/New_York", 2016)

    def test_output_file_removed(self, runner):
        runner.set("zdump", output=NEW_YORK_2016)
        ZdumpProbe(runner=runner).probe("America/New_York", 2016)
        assert list(runner.tmp_path.iterdir()) == []


class TestDateProbe:
    def test_fixed_offset(self, runner):
        runner.set("env", output="+0900\n")
        result = DateProbe(runner=runner).probe("Asia/Tokyo", 2016)
        assert result.standard_offset == 32400
        assert result.daylight_offset == 0
        assert result.daylight_transition_utc is None
        assert runner.calls == [["env", "TZ=Asia/Tokyo", "date", "+%z"]]

    def test_empty_output(self, runner):
        runner.set("env", output="")
        with pytest.raises(ProbeError):
            DateProbe(runner=runner).probe("Asia/Tokyo", 2016)


class TestFallbackProbe:
    """Tests for the zdump -> date chain."""

    def test_first_probe_wins(self, runner, posix_probe):
        runner.set("zdump", output=NEW_YORK_2016)
        runner.set("env", output="-0400\n")
        result = posix_probe.probe("America/New_York", 2016)
        assert result.daylight_offset == 3600
        assert runner.count("env") == 0

    def test_falls_back_on_parse_failure(self, runner, posix_probe):
        runner.set("zdump", output="garbage\n")
        runner.set("env", output="+0900\n")
        result = posix_probe.probe("Asia/Tokyo", 2016)
        assert result.standard_offset == 32400
        assert result.daylight_offset == 0

    def test_falls_back_on_timeout(self, runner, posix_probe):
        runner.fail("zdump")
        runner.set("env", output="-0300\n")
        assert posix_probe.probe("America/Sao_Paulo", 2016).standard_offset == -10800

    def test_all_fail(self, runner, posix_probe):
        runner.fail("zdump")
        runner.set("env", exit_code=1)
        with pytest.raises(ProbeError) as exc_info:
            posix_probe.probe("America/New_York", 2016)
        assert "America/New_York" in str(exc_info.value)


def _tzi(bias, standard_bias, daylight_bias, standard_date, daylight_date) -> bytes:
    return struct.pack(TZI_FORMAT, bias, standard_bias, daylight_bias, *standard_date, *daylight_date)


# Pacific Standard Time: 2nd Sunday of March 02:00 -> 1st Sunday of November 02:00
PACIFIC_TZI = _tzi(
    480,
    0,
    -60,
    (0, 11, 0, 1, 2, 0, 0, 0),
    (0, 3, 0, 2, 2, 0, 0, 0),
)
TOKYO_TZI = _tzi(-540, 0, 0, (0,) * 8, (0,) * 8)
# AUS Eastern Standard Time: 1st Sunday of October 02:00 -> 1st Sunday of April 03:00
SYDNEY_TZI = _tzi(
    -600,
    0,
    -60,
    (0, 4, 0, 1, 3, 0, 0, 0),
    (0, 10, 0, 1, 2, 0, 0, 0),
)


class TestSystemTime:
    def test_second_sunday(self):
        rule = SystemTime(0, 3, 0, 2, 2, 0, 0, 0)
        assert rule.locate(2016).timetuple()[:5] == (2016, 3, 13, 2, 0)

    def test_last_sunday(self):
        """Week 5 means the last occurrence in the month."""
        rule = SystemTime(0, 10, 0, 5, 3, 0, 0, 0)
        assert rule.locate(2016).timetuple()[:3] == (2016, 10, 30)
        assert rule.locate(2015).timetuple()[:3] == (2015, 10, 25)

    def test_absolute_date(self):
        rule = SystemTime(2016, 4, 0, 3, 1, 0, 0, 0)
        assert rule.locate(2020).timetuple()[:4] == (2016, 4, 3, 1)


class TestParseTzi:
    """Tests for binary TZI records."""

    def test_pacific(self):
        result = parse_tzi(PACIFIC_TZI, 2016)
        assert result.standard_offset == -28800
        assert result.daylight_offset == 3600
        # 02:00 PST = 10:00 UTC, 02:00 PDT = 09:00 UTC
        assert result.daylight_transition_utc == CivilTime(2016, 3, 13, 10, 0, 0)
        assert result.standard_transition_utc == CivilTime(2016, 11, 6, 9, 0, 0)

    def test_each_edge_comes_from_its_own_field(self):
        """DaylightDate feeds the DST start and StandardDate the DST end.

        Copying StandardDate into both slots would make the two transitions
        equal and DST would never be in effect.
        """
        result = parse_tzi(PACIFIC_TZI, 2016)
        assert result.daylight_transition_utc.month == 3
        assert result.standard_transition_utc.month == 11
        assert result.daylight_transition_utc != result.standard_transition_utc

    def test_southern_hemisphere_edges_in_date_order(self):
        result = parse_tzi(SYDNEY_TZI, 2016)
        # 03:00 AEDT = 16:00 UTC the day before, 02:00 AEST = 16:00 UTC the day before
        assert result.daylight_transition_utc == CivilTime(2016, 4, 2, 16, 0, 0)
        assert result.standard_transition_utc == CivilTime(2016, 10, 1, 16, 0, 0)
        assert result.standard_offset == 39600
        assert result.daylight_offset == -3600

    def test_southern_hemisphere_offsets(self):
        tz = GuestTimeZone(
            probe=RegistryProbe(read_tzi=lambda label: SYDNEY_TZI), clock=lambda: 1452816000
        )
        assert tz.set_zone("Australia/Sydney")
        assert tz.offset_seconds(1452816000) == 39600  # 2016-01-15
        assert tz.offset_seconds(1467331200) == 36000  # 2016-07-01
        assert tz.offset_seconds(1482624000) == 39600  # 2016-12-25

    def test_no_dst(self):
        result = parse_tzi(TOKYO_TZI, 2016)
        assert result.standard_offset == 32400
        assert result.daylight_offset == 0
        assert result.standard_transition_utc is None

    def test_too_short(self):
        with pytest.raises(ProbeError):
            parse_tzi(PACIFIC_TZI[:20], 2016)


class TestRegistryProbe:
    def test_reads_first_label(self):
        seen = []

        def read_tzi(label):
            seen.append(label)
            return PACIFIC_TZI

        result = RegistryProbe(read_tzi=read_tzi).probe("America/Los_Angeles", 2016)
        assert seen == ["Pacific Standard Time"]
        assert result.daylight_offset == 3600

    def test_unmapped_zone(self):
        with pytest.raises(ProbeError):
            RegistryProbe(read_tzi=lambda label: PACIFIC_TZI).probe("Mars/Olympus_Mons", 2016)


class TestDefaultProbe:
    def test_posix(self):
        probe = default_probe("linux", zdump_timeout=7.0, date_timeout=2.0)
        assert isinstance(probe, FallbackProbe)
        zdump, date = probe.probes
        assert isinstance(zdump, ZdumpProbe) and zdump.timeout == 7.0
        assert isinstance(date, DateProbe) and date.timeout == 2.0

    def test_windows(self):
        assert isinstance(default_probe("win32"), RegistryProbe)


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX utilities")
class TestRunCommand:
    """Tests for the subprocess boundary."""

    def test_captures_stdout(self):
        exit_code, output = run_command(["sh", "-c", "echo hello; exit 3"], timeout=5)
        try:
            assert exit_code == 3
            assert output.read_text() == "hello\n"
        finally:
            output.unlink()

    def test_timeout(self):
        with pytest.raises(ProbeError) as exc_info:
            run_command(["sleep", "5"], timeout=0.1)
        assert "timed out" in str(exc_info.value)

    def test_missing_program(self):
        with pytest.raises(ProbeError):
            run_command(["hostzone-no-such-program"], timeout=1)

    def test_embedded_null_byte(self):
        with pytest.raises(ProbeError):
            run_command(["zdump", "-v", "America/New\x00York"], timeout=1)
