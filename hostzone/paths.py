"""Filesystem locations used by hostzone.

Host timezone files (read-only, never written):
- /etc/localtime             Currently configured zone (symlink or copy)
- /usr/share/zoneinfo/       Compiled zoneinfo tree

Own storage follows the XDG Base Directory Specification:
- ~/.config/hostzone/        Config file
- ~/.cache/hostzone/         JSON log (clearable)

See: https://specifications.freedesktop.org/basedir-spec/latest/
"""

from pathlib import Path

# Host timezone configuration
LOCALTIME_FILE = "/etc/localtime"
ZONEINFO_DIR = "/usr/share/zoneinfo"

# Base directories
CONFIG_DIR = Path.home() / ".config" / "hostzone"
CACHE_DIR = Path.home() / ".cache" / "hostzone"

CONFIG_FILE = CONFIG_DIR / "config.json"
LOG_FILE = CACHE_DIR / "hostzone.log"
