"""Pytest configuration and fixtures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from hostzone import config, guest, paths, resolver
from hostzone.probes import DateProbe, FallbackProbe, ZdumpProbe
from tests.fixtures.commands import ScriptedRunner
from tests.fixtures.zoneinfo_tree import ZoneinfoTreeBuilder, create_sample_tree


@pytest.fixture(autouse=True)
def isolated_state(tmp_path: Path, monkeypatch):
    """Keep process-wide caches and the config file out of the real system."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr(paths, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(paths, "CONFIG_FILE", config_dir / "config.json")
    config.read_env_overrides.cache_clear()
    resolver.clear_host_timezone_cache()
    guest.set_default_timezone(None)
    yield
    logging.getLogger("hostzone").handlers.clear()
    config.read_env_overrides.cache_clear()
    resolver.clear_host_timezone_cache()
    guest.set_default_timezone(None)


@pytest.fixture
def zoneinfo_builder(tmp_path: Path) -> ZoneinfoTreeBuilder:
    """Provide an empty zoneinfo tree for custom test scenarios."""
    return ZoneinfoTreeBuilder(tmp_path / "host")


@pytest.fixture
def sample_tree(tmp_path: Path) -> ZoneinfoTreeBuilder:
    """Provide a zoneinfo tree with sample zones and no localtime yet."""
    return create_sample_tree(tmp_path / "host")


@pytest.fixture
def runner(tmp_path: Path) -> ScriptedRunner:
    """Provide a command runner with no scripted programs."""
    out_dir = tmp_path / "commands"
    out_dir.mkdir()
    return ScriptedRunner(out_dir)


@pytest.fixture
def posix_probe(runner: ScriptedRunner) -> FallbackProbe:
    """The POSIX probe chain wired to the scripted runner."""
    return FallbackProbe(ZdumpProbe(runner=runner), DateProbe(runner=runner))
