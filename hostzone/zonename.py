"""Zoneinfo name grammar: Area/Location or Area/Location/SubLocation."""

from __future__ import annotations

from .logging import HostzoneError

UNKNOWN_ZONE = "Unknown/Unknown"

# Longest name accepted by timezone_set()
MAX_ZONE_NAME_LENGTH = 255


class InvalidZoneNameError(HostzoneError, ValueError):
    """Raised for names that are not of the form Area/Location[/SubLocation]."""


def is_zoneinfo_name(name: str | None) -> bool:
    """Check that name has two or three non-empty slash-separated parts.

    >>> is_zoneinfo_name("America/Argentina/Buenos_Aires")
    True
    >>> is_zoneinfo_name("UTC")
    False
    """
    if not name or not name.isprintable():
        return False
    parts = name.split("/")
    return 2 <= len(parts) <= 3 and all(parts)


def validate_zone_name(name: str | None) -> str:
    """Return name unchanged, or raise InvalidZoneNameError."""
    if name is None or not is_zoneinfo_name(name):
        raise InvalidZoneNameError(
            f"Invalid timezone {name!r}: expected Area/Location or Area/Location/SubLocation"
        )
    if len(name) > MAX_ZONE_NAME_LENGTH:
        raise InvalidZoneNameError(
            f"Invalid timezone: name longer than {MAX_ZONE_NAME_LENGTH} characters"
        )
    return name


def format_zoneinfo_timezone(name: str | None) -> str:
    """Render a resolved zone for display, falling back to Unknown/Unknown."""
    if name is None or not is_zoneinfo_name(name):
        return UNKNOWN_ZONE
    return name
