"""Tests for the Windows zone table."""

from __future__ import annotations

from hostzone.windows_zones import (
    WINDOWS_ZONES,
    windows_name_for_zoneinfo,
    zoneinfo_for_windows_name,
)


class TestForwardLookup:
    """Windows label -> zoneinfo name."""

    def test_pacific(self):
        """First row for the label wins."""
        assert zoneinfo_for_windows_name("Pacific Standard Time") == "America/Los_Angeles"

    def test_eastern_australia(self):
        assert zoneinfo_for_windows_name("AUS Eastern Standard Time") == "Australia/Sydney"

    def test_unknown_label(self):
        assert zoneinfo_for_windows_name("Pacific Daylight Time") is None

    def test_none(self):
        assert zoneinfo_for_windows_name(None) is None


class TestReverseLookup:
    """zoneinfo name -> Windows label."""

    def test_los_angeles(self):
        assert windows_name_for_zoneinfo("America/Los_Angeles") == "Pacific Standard Time"

    def test_other_pacific_zone(self):
        """Other zones of the same label map back to that label."""
        assert windows_name_for_zoneinfo("America/Vancouver") == "Pacific Standard Time"

    def test_first_matching_label_wins(self):
        """A zone listed under several labels reports the first one."""
        labels = [label for label, zone in WINDOWS_ZONES if zone == "America/Los_Angeles"]
        assert windows_name_for_zoneinfo("America/Los_Angeles") == labels[0]

    def test_unknown_zone(self):
        assert windows_name_for_zoneinfo("Mars/Olympus_Mons") is None


class TestTable:
    def test_many_to_one(self):
        labels = [label for label, _ in WINDOWS_ZONES]
        assert len(set(labels)) < len(labels)

    def test_round_trip_is_not_guaranteed(self):
        """Reverse lookup of a non-first zone does not give back that zone."""
        label = windows_name_for_zoneinfo("America/Vancouver")
        assert zoneinfo_for_windows_name(label) == "America/Los_Angeles"
