"""Main CLI entry point for hostzone."""

from __future__ import annotations

import json
import time

import click

from .civil import utc_breakdown
from .config import DEFAULT_CONFIG, get_config, read_env_overrides, set_config_value
from .errors import ErrorHandlingGroup
from .guest import get_default_timezone, timezone_set
from .logging import HostzoneError, configure_logging, get_logger
from .probes import ProbeError
from .resolver import (
    DirectoryScanResolver,
    LookupTableResolver,
    SymlinkResolver,
    host_timezone,
)
from .zonename import format_zoneinfo_timezone, validate_zone_name

logger = get_logger(__name__)

STRATEGIES = {
    "symlink": SymlinkResolver,
    "scan": DirectoryScanResolver,
    "table": LookupTableResolver,
}


@click.group(cls=ErrorHandlingGroup)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging to stderr")
@click.option(
    "--json-log",
    metavar="FILE",
    envvar="HOSTZONE_LOG",
    default="none",
    help='JSON log file path ("auto" for the cache dir, "-" for stdout, "none" to disable)',
)
def cli(verbose: bool, json_log: str):
    """hostzone: host timezone detection and guest clock offsets."""
    log_file = None if json_log == "none" else json_log
    configure_logging(verbose=verbose, json_log=log_file)


def _apply_zone(zone: str | None) -> bool:
    """Set the guest zone from --zone or the configured default.

    Returns whether a guest zone is in effect.
    """
    if zone is None:
        zone = get_config().get("default_zone")
        if not zone:
            return False
    validate_zone_name(zone)
    logger.debug("Setting guest timezone", timezone=zone)
    if not timezone_set(zone):
        click.echo(
            f"Warning: could not derive rules for {zone}, using host time", err=True
        )
        return False
    return True


zone_option = click.option(
    "--zone", "-z", help="Guest timezone (Area/Location), default: config default_zone"
)
at_option = click.option(
    "--at", "instant", type=int, help="POSIX timestamp to query (default: now)"
)


@cli.command()
@click.option(
    "--strategy",
    type=click.Choice(sorted(STRATEGIES)),
    help="Force a detection strategy (default: the one for this platform)",
)
def detect(strategy: str | None):
    """Print the host's zoneinfo timezone name."""
    if strategy is None:
        zone = host_timezone()
    elif strategy == "table":
        zone = LookupTableResolver().resolve()
    else:
        zone = STRATEGIES[strategy](env=read_env_overrides()).resolve()
    click.echo(
        json.dumps(
            {"timezone": format_zoneinfo_timezone(zone), "detected": zone is not None},
            indent=2,
        )
    )


@cli.command()
@zone_option
@at_option
def offset(zone: str | None, instant: int | None):
    """Print the guest UTC offset in seconds."""
    guest = _apply_zone(zone)
    if instant is None:
        instant = int(time.time())
    output = {
        "timezone": get_default_timezone().zone if guest else None,
        "instant": instant,
        "offset": get_default_timezone().offset_seconds(instant),
    }
    click.echo(json.dumps(output, indent=2))


@cli.command()
@zone_option
@at_option
def localtime(zone: str | None, instant: int | None):
    """Print the guest local time and DST flag."""
    guest = _apply_zone(zone)
    if instant is None:
        instant = int(time.time())
    output = {
        "timezone": get_default_timezone().zone if guest else None,
        "instant": instant,
        **get_default_timezone().local_time(instant).as_dict(),
    }
    click.echo(json.dumps(output, indent=2))


@cli.command()
@click.argument("zone")
@click.option("--year", type=int, help="Year to describe (default: current UTC year)")
def transitions(zone: str, year: int | None):
    """Print the offsets and DST transitions of ZONE for a year."""
    validate_zone_name(zone)
    if year is None:
        year = utc_breakdown(int(time.time())).year
    try:
        result = get_default_timezone().probe.probe(zone, year)
    except ProbeError as e:
        raise HostzoneError(str(e)) from e

    def _civil(value):
        return list(value) if value is not None else None

    output = {
        "timezone": zone,
        "year": year,
        "standard_offset": result.standard_offset,
        "daylight_offset": result.daylight_offset,
        "daylight_transition_utc": _civil(result.daylight_transition_utc),
        "standard_transition_utc": _civil(result.standard_transition_utc),
    }
    click.echo(json.dumps(output, indent=2))


@cli.group()
def config():
    """View or change hostzone settings."""


@config.command("show")
def config_show():
    """Print the effective configuration."""
    click.echo(json.dumps(get_config(), indent=2))


@config.command("set")
@click.argument("key", type=click.Choice(sorted(DEFAULT_CONFIG)))
@click.argument("value")
def config_set(key: str, value: str):
    """Set KEY to VALUE ("none" clears default_zone)."""
    if key == "default_zone":
        parsed: float | str | None = None if value.lower() == "none" else validate_zone_name(value)
    else:
        try:
            parsed = float(value)
        except ValueError:
            raise click.BadParameter(f"{key} must be a number of seconds", param_hint="VALUE")
        if parsed <= 0:
            raise click.BadParameter(f"{key} must be positive", param_hint="VALUE")
    set_config_value(key, parsed)
    click.echo(f"{key} = {json.dumps(parsed)}")


@cli.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]))
def completions(shell: str):
    """Generate shell completion script.

    \b
    Bash (~/.bashrc):
        eval "$(hostzone completions bash)"

    \b
    Zsh (~/.zshrc):
        eval "$(hostzone completions zsh)"

    \b
    Fish (~/.config/fish/config.fish):
        hostzone completions fish | source
    """
    from click.shell_completion import get_completion_class

    comp_cls = get_completion_class(shell)
    if comp_cls is None:
        raise HostzoneError(f"Unsupported shell: {shell}")

    comp = comp_cls(cli, {}, "hostzone", "_HOSTZONE_COMPLETE")
    click.echo(comp.source())
