"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture()
def flowline_root(tmp_path: Path) -> Path:
    """Return a temporary directory suitable for initializing .flowline/ in."""
    return tmp_path


@pytest.fixture()
def initialized_root(flowline_root: Path) -> Path:
    """Return a temporary directory with .flowline/ already initialized."""
    from flowline.core.config import default_config, serialize_config
    from flowline.storage.project import init_project

    init_project(flowline_root, serialize_config(default_config()))
    return flowline_root


@pytest.fixture()
def flowline_dir(initialized_root: Path) -> Path:
    from flowline.storage.project import FLOWLINE_DIR

    return initialized_root / FLOWLINE_DIR


@pytest.fixture()
def store(flowline_dir: Path):
    """Return an InitiativeStore backed by the initialized project."""
    from flowline.storage.store import InitiativeStore

    return InitiativeStore(flowline_dir)


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def cli_env(initialized_root: Path) -> dict[str, str]:
    """Return env dict with FLOWLINE_ROOT pointing to initialized_root."""
    return {"FLOWLINE_ROOT": str(initialized_root)}


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("create", "Spring launch", "--type", "Social")
    """
    from flowline.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.stdout)
        return parsed, result.exit_code

    return _invoke_json
