"""Error handling for the hostzone CLI."""

from __future__ import annotations

import sys

import click

from .logging import HostzoneError, get_logger

logger = get_logger(__name__)


class ErrorHandlingGroup(click.Group):
    """Click group that turns HostzoneError into clean output and exit 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except HostzoneError as e:
            self._handle_error(str(e))

    def _handle_error(self, message: str) -> None:
        """Log error and exit cleanly."""
        logger.debug("Command failed", error=message)
        click.echo(f"Error: {message}", err=True)
        sys.exit(1)
