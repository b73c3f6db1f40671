"""Tests for the `flowline init` CLI command."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from flowline.cli.main import cli
from flowline.core.config import default_config


class TestInit:
    def test_creates_directory_structure(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "Flowline initialized" in result.output
        assert (tmp_path / ".flowline" / "initiatives").is_dir()
        assert (tmp_path / ".flowline" / "locks").is_dir()

    def test_writes_default_config(self, tmp_path: Path) -> None:
        CliRunner().invoke(cli, ["init", "--path", str(tmp_path)])
        config = json.loads((tmp_path / ".flowline" / "config.json").read_text())
        assert config == default_config()

    def test_custom_quiet_period(self, tmp_path: Path) -> None:
        CliRunner().invoke(cli, ["init", "--path", str(tmp_path), "--quiet-period", "0.5"])
        config = json.loads((tmp_path / ".flowline" / "config.json").read_text())
        assert config["autosave"]["quiet_period_seconds"] == 0.5
        assert config["autosave"]["saved_reset_seconds"] == 2.0

    def test_rejects_non_positive_quiet_period(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["init", "--path", str(tmp_path), "--quiet-period", "0"])
        assert result.exit_code != 0
        assert not (tmp_path / ".flowline").exists()

    def test_idempotent(self, tmp_path: Path) -> None:
        runner = CliRunner()
        runner.invoke(cli, ["init", "--path", str(tmp_path)])
        result = runner.invoke(cli, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "already initialized" in result.output

    def test_flowline_file_in_the_way(self, tmp_path: Path) -> None:
        (tmp_path / ".flowline").write_text("")
        result = CliRunner().invoke(cli, ["init", "--path", str(tmp_path)])
        assert result.exit_code != 0
        assert "not a directory" in result.output
