"""Detect the zoneinfo name the host is configured to use.

Each host family exposes its timezone differently, so there is one resolver
per family:

- SymlinkResolver (macOS): /etc/localtime is a symlink into the zoneinfo tree.
- DirectoryScanResolver (Linux, BSD): /etc/localtime may be a plain copy, so
  it is compared byte for byte against the files of the zoneinfo tree.
- LookupTableResolver (Windows): the current zone label is mapped through the
  Windows-to-zoneinfo table.

Resolvers return the zone name or None ("unknown") and never raise.
"""

from __future__ import annotations

import os
import stat
import sys
import threading
import time
from typing import Callable, Iterator, NamedTuple, Protocol

from . import paths
from .config import EnvOverrides, read_env_overrides
from .logging import get_logger
from .windows_zones import zoneinfo_for_windows_name
from .zonename import is_zoneinfo_name

logger = get_logger(__name__)

# Deepest directory level visited below the zoneinfo root
MAX_SCAN_DEPTH = 2

_COMPARE_CHUNK_SIZE = 64 * 1024


class HostZoneResolver(Protocol):
    def resolve(self) -> str | None: ...


def _strip_prefix(target: str, root: str) -> str | None:
    """Return the zone name below root that target points at, if valid."""
    prefix = root.rstrip("/") + "/"
    if not target.startswith(prefix):
        return None
    name = target[len(prefix) :]
    return name if is_zoneinfo_name(name) else None


class SymlinkResolver:
    """Read the zone name off the /etc/localtime symlink target."""

    def __init__(
        self,
        env: EnvOverrides | None = None,
        localtime: str | None = None,
        zoneinfo_dir: str | None = None,
    ):
        self.env = env if env is not None else read_env_overrides()
        self.localtime = localtime or paths.LOCALTIME_FILE
        self.zoneinfo_dir = zoneinfo_dir or paths.ZONEINFO_DIR

    def resolve(self) -> str | None:
        if self.env.tz is not None and is_zoneinfo_name(self.env.tz):
            logger.debug("Using TZ environment override", timezone=self.env.tz)
            return self.env.tz

        try:
            target = os.readlink(self.localtime)
        except OSError as e:
            logger.warning(
                "Could not read localtime link, something is wrong with the host setup",
                path=self.localtime,
                error=str(e),
            )
            return None

        logger.debug("Localtime link", path=self.localtime, target=target)
        if not target.startswith(self.zoneinfo_dir.rstrip("/") + "/"):
            logger.warning(
                "Localtime link does not point into the zoneinfo directory",
                target=target,
                zoneinfo_dir=self.zoneinfo_dir,
            )
            return None

        name = _strip_prefix(target, self.zoneinfo_dir)
        if name is None:
            logger.warning("Localtime link does not name a zoneinfo zone", target=target)
        return name


class CandidateFile(NamedTuple):
    """A regular file in the zoneinfo tree that may match localtime."""

    path: str
    name: str  # Relative to the zoneinfo root
    size: int
    depth: int


def files_identical(path_a: str, path_b: str) -> bool:
    """Byte-for-byte comparison of two files."""
    with open(path_a, "rb") as a, open(path_b, "rb") as b:
        while True:
            chunk_a = a.read(_COMPARE_CHUNK_SIZE)
            chunk_b = b.read(_COMPARE_CHUNK_SIZE)
            if chunk_a != chunk_b:
                return False
            if not chunk_a:
                return True


class DirectoryScanResolver:
    """Find the zoneinfo file whose contents equal /etc/localtime.

    The walk is pre-order in the order list_dir returns entries, which for
    the default os.listdir is whatever order the filesystem yields. When the
    tree holds several files with identical contents, which one is reported
    therefore depends on the filesystem.
    """

    def __init__(
        self,
        env: EnvOverrides | None = None,
        localtime: str | None = None,
        zoneinfo_dir: str | None = None,
        list_dir: Callable[[str], list[str]] = os.listdir,
    ):
        self.env = env if env is not None else read_env_overrides()
        self.localtime = localtime or paths.LOCALTIME_FILE
        self.zoneinfo_dir = zoneinfo_dir or paths.ZONEINFO_DIR
        self.list_dir = list_dir

    def _zoneinfo_root(self) -> str | None:
        root = self.env.tzdir
        if root is not None and not os.access(root, os.R_OK):
            logger.debug(
                "TZDIR is not a readable directory, using default",
                tzdir=root,
                default=self.zoneinfo_dir,
            )
            root = None
        if root is None:
            root = self.zoneinfo_dir
            if not os.access(root, os.R_OK):
                logger.warning(
                    "Could not find zoneinfo directory, unable to determine host timezone",
                    path=root,
                )
                return None
        return root.rstrip("/") or "/"

    def _localtime_file(self, root: str) -> str | None:
        if os.access(self.localtime, os.R_OK):
            return self.localtime
        fallback = os.path.join(root, "localtime")
        if os.access(fallback, os.R_OK):
            return fallback
        logger.warning(
            "Could not find localtime file, unable to determine host timezone",
            tried=[self.localtime, fallback],
        )
        return None

    def resolve(self) -> str | None:
        if self.env.tz is not None:
            if is_zoneinfo_name(self.env.tz):
                logger.debug("Using TZ environment override", timezone=self.env.tz)
                return self.env.tz
            logger.debug("Ignoring non-zoneinfo TZ environment variable", tz=self.env.tz)

        root = self._zoneinfo_root()
        if root is None:
            return None
        localtime = self._localtime_file(root)
        if localtime is None:
            return None
        logger.debug("Found zoneinfo files", root=root, localtime=localtime)

        # Quick check: localtime may still be a link into the tree
        try:
            target = os.readlink(localtime)
        except OSError:
            target = None
        if target is not None:
            name = _strip_prefix(target, root)
            if name is not None:
                logger.debug("Found zone from localtime link", timezone=name)
                return name
            logger.debug("Localtime link does not name a zone, comparing contents", target=target)

        try:
            size = os.stat(localtime).st_size
        except OSError as e:
            logger.warning("Could not stat localtime file", path=localtime, error=str(e))
            return None

        for candidate in self.iter_candidates(root):
            if self._matches(candidate, localtime, size):
                logger.debug("Found zone by content", timezone=candidate.name)
                return candidate.name
        logger.debug("No zoneinfo file matches localtime", localtime=localtime)
        return None

    def iter_candidates(self, root: str) -> Iterator[CandidateFile]:
        """Yield zone-named regular files below root, pre-order.

        Entries are examined with lstat so symlinked directories and files
        (aliases some distributions scatter through the tree) are skipped.
        """
        yield from self._walk(root, (), 0)

    def _walk(self, directory: str, parts: tuple[str, ...], depth: int) -> Iterator[CandidateFile]:
        try:
            entries = self.list_dir(directory)
        except OSError as e:
            logger.debug("Could not list directory", path=directory, error=str(e))
            return
        for entry in entries:
            if entry.startswith("."):
                continue
            path = os.path.join(directory, entry)
            try:
                st = os.lstat(path)
            except OSError:
                continue
            if stat.S_ISDIR(st.st_mode) and depth < MAX_SCAN_DEPTH:
                yield from self._walk(path, (*parts, entry), depth + 1)
            elif stat.S_ISREG(st.st_mode) and 1 <= depth <= MAX_SCAN_DEPTH:
                name = "/".join((*parts, entry))
                if is_zoneinfo_name(name):
                    yield CandidateFile(path, name, st.st_size, depth)

    def _matches(self, candidate: CandidateFile, localtime: str, size: int) -> bool:
        if candidate.size != size:
            return False
        try:
            return files_identical(candidate.path, localtime)
        except OSError as e:
            logger.debug("Could not compare", path=candidate.path, error=str(e))
            return False


def current_zone_label() -> str:
    """The host's timezone label for now, e.g. "Pacific Standard Time"."""
    return time.strftime("%Z", time.localtime())


class LookupTableResolver:
    """Map the host's current zone label through the Windows zone table.

    Localized Windows builds report translated labels, which the table does
    not contain; those hosts resolve to unknown. Looking the label up in the
    registry's Time Zones key would cover them but is not done.
    """

    def __init__(self, label_source: Callable[[], str] | None = None):
        self.label_source = label_source or current_zone_label

    def resolve(self) -> str | None:
        try:
            label = self.label_source()
        except (OSError, ValueError, OverflowError) as e:
            logger.debug("Could not determine current date/time", error=str(e))
            return None
        zone = zoneinfo_for_windows_name(label)
        if zone is None:
            logger.debug("Could not determine current timezone", label=label)
        return zone


def resolver_for_platform(
    platform: str = sys.platform, env: EnvOverrides | None = None
) -> HostZoneResolver:
    """Pick the resolver for a host family (a sys.platform value)."""
    if platform == "darwin":
        return SymlinkResolver(env=env)
    if platform == "win32":
        return LookupTableResolver()
    return DirectoryScanResolver(env=env)


class HostZoneCache:
    """Resolve the host zone at most once and remember the answer.

    remember() replaces the cached value, which is how an explicitly set
    guest zone becomes the process's current zoneinfo name.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._resolved = False
        self._zone: str | None = None

    def get(self, resolver: HostZoneResolver | None = None) -> str | None:
        with self._lock:
            if not self._resolved:
                self._zone = (resolver or resolver_for_platform()).resolve()
                self._resolved = True
                logger.debug("Resolved host timezone", timezone=self._zone)
            return self._zone

    def remember(self, zone: str) -> None:
        with self._lock:
            self._zone = zone
            self._resolved = True

    def clear(self) -> None:
        with self._lock:
            self._zone = None
            self._resolved = False


_host_zone_cache = HostZoneCache()


def host_timezone(resolver: HostZoneResolver | None = None) -> str | None:
    """Zoneinfo name of the host timezone, or None if it cannot be found."""
    return _host_zone_cache.get(resolver)


def remember_host_timezone(zone: str) -> None:
    _host_zone_cache.remember(zone)


def clear_host_timezone_cache() -> None:
    _host_zone_cache.clear()
