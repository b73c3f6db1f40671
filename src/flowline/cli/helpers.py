"""Shared CLI helpers and output utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn

import click

from flowline.core.config import autosave_settings, load_config
from flowline.core.ids import validate_id
from flowline.storage.project import FLOWLINE_DIR, FlowlineRootError, find_root
from flowline.storage.store import InitiativeStore

# ---------------------------------------------------------------------------
# Root & config
# ---------------------------------------------------------------------------


def require_root(is_json: bool = False) -> Path:
    """Find .flowline/ directory or exit with error."""
    try:
        root = find_root()
    except FlowlineRootError as e:
        output_error(str(e), "NOT_INITIALIZED", is_json)
    if root is None:
        output_error(
            "Not a Flowline project (no .flowline/ found). Run 'flowline init' first.",
            "NOT_INITIALIZED",
            is_json,
        )
    return root / FLOWLINE_DIR


def load_project_config(flowline_dir: Path) -> dict:
    """Load and return config.json from the flowline directory."""
    config_path = flowline_dir / "config.json"
    if not config_path.exists():
        return {}
    return load_config(config_path.read_text())


def open_store(is_json: bool) -> tuple[InitiativeStore, dict]:
    flowline_dir = require_root(is_json)
    return InitiativeStore(flowline_dir), load_project_config(flowline_dir)


def require_initiative(store: InitiativeStore, initiative_id: str, is_json: bool) -> dict:
    """Return the stored snapshot, or exit on a malformed or unknown id."""
    if not validate_id(initiative_id, "init"):
        output_error(
            f"Invalid initiative ID '{initiative_id}' (expected init_<ULID>).",
            "INVALID_ID",
            is_json,
        )
    if not store.exists(initiative_id):
        output_error(f"Initiative '{initiative_id}' not found.", "NOT_FOUND", is_json)
    return store.get(initiative_id)


def controller_timings(config: dict) -> dict:
    quiet_period, saved_reset = autosave_settings(config)
    return {"quiet_period": quiet_period, "saved_reset": saved_reset}


# ---------------------------------------------------------------------------
# Option decorators
# ---------------------------------------------------------------------------


def output_options(f):  # noqa: ANN001, ANN201
    """Decorator adding the output-format options shared by every command."""
    f = click.option("--quiet", is_flag=True, help="Print only the primary ID.")(f)
    f = click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")(f)
    return f


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    """Build an error object for the JSON envelope."""
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(*, data: object, human_message: str, is_json: bool) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    else:
        click.echo(human_message)


def parse_assignments(pairs: tuple[str, ...], is_json: bool) -> dict:
    """Parse ``field=value`` pairs.  Values that parse as JSON are decoded."""
    fields: dict = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            output_error(f"Expected field=value, got '{pair}'.", "INVALID_ARGUMENT", is_json)
        try:
            fields[key] = json.loads(raw)
        except ValueError:
            fields[key] = raw
    return fields
