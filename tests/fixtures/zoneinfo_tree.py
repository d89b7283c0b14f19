"""Synthetic zoneinfo tree for resolver tests.

Zone files hold arbitrary bytes; resolvers only compare contents, they never
parse TZif data.
"""

from __future__ import annotations

import os
from pathlib import Path

NEW_YORK_DATA = b"TZif2\x00fake-new-york-rules\x00EST5EDT"
TOKYO_DATA = b"TZif2\x00fake-tokyo-rules\x00JST-9"
# Same length as NEW_YORK_DATA, different bytes
CHICAGO_DATA = b"TZif2\x00fake-chicago-rules\x00CST6C"


class ZoneinfoTreeBuilder:
    """Build a zoneinfo root and a localtime file under a base directory."""

    def __init__(self, base: Path):
        self.base = base
        self.root = base / "zoneinfo"
        self.root.mkdir(parents=True, exist_ok=True)
        self.localtime = base / "etc" / "localtime"
        self.localtime.parent.mkdir(parents=True, exist_ok=True)

    def add_zone(self, name: str, data: bytes) -> Path:
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def add_alias(self, name: str, target: str) -> Path:
        """Add a symlink in the tree pointing at another zone (relative)."""
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(os.path.relpath(self.root / target, path.parent), path)
        return path

    def copy_localtime(self, data: bytes) -> Path:
        self.localtime.write_bytes(data)
        return self.localtime

    def link_localtime(self, target: str) -> Path:
        """Make localtime an absolute symlink to target."""
        os.symlink(target, self.localtime)
        return self.localtime


def create_sample_tree(base: Path) -> ZoneinfoTreeBuilder:
    """A small tree with a few zones, a nested zone and metadata files."""
    builder = ZoneinfoTreeBuilder(base)
    builder.add_zone("America/New_York", NEW_YORK_DATA)
    builder.add_zone("America/Chicago", CHICAGO_DATA)
    builder.add_zone("America/Argentina/Buenos_Aires", b"TZif2\x00fake-buenos-aires")
    builder.add_zone("Asia/Tokyo", TOKYO_DATA)
    builder.add_zone("zone.tab", b"# not a zone\n")
    builder.add_zone("UTC", b"TZif2\x00fake-utc")
    return builder
