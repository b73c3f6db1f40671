"""CLI entry point and commands."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from flowline.core.config import default_config, serialize_config
from flowline.storage.project import FLOWLINE_DIR, init_project


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def cli(verbose: bool) -> None:
    """Flowline: stage pipelines, autosave and cadence planning for initiatives."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


@cli.command()
@click.option(
    "--path",
    "target_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Directory to initialize Flowline in (defaults to current directory).",
)
@click.option(
    "--quiet-period",
    type=float,
    default=None,
    help="Seconds of inactivity before edits are saved (default 1.0).",
)
def init(target_path: str, quiet_period: float | None) -> None:
    """Initialize a new Flowline project."""
    root = Path(target_path)
    flowline_dir = root / FLOWLINE_DIR

    if flowline_dir.is_dir():
        click.echo(f"Flowline already initialized in {FLOWLINE_DIR}/")
        return

    if flowline_dir.exists():
        raise click.ClickException(
            f"Cannot initialize: '{FLOWLINE_DIR}' exists but is not a directory. "
            "Remove it and try again."
        )

    if quiet_period is not None and quiet_period <= 0:
        raise click.ClickException("--quiet-period must be positive.")

    try:
        config: dict = dict(default_config())
        if quiet_period is not None:
            config["autosave"] = {**config["autosave"], "quiet_period_seconds": quiet_period}
        init_project(root, serialize_config(config))
    except PermissionError:
        raise click.ClickException(f"Permission denied: cannot create {FLOWLINE_DIR}/ in {root}")
    except OSError as e:
        raise click.ClickException(f"Failed to initialize Flowline: {e}")

    click.echo(f"Flowline initialized in {FLOWLINE_DIR}/")


def main() -> None:
    cli()


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from flowline.cli import initiative_cmds as _initiative_cmds  # noqa: E402, F401
from flowline.cli import plan_cmds as _plan_cmds  # noqa: E402, F401

if __name__ == "__main__":
    cli()
