"""Default config generation and validation."""

from __future__ import annotations

import json
from typing import TypedDict

from flowline.core.pipelines import INITIATIVE_TYPES

DEFAULT_QUIET_PERIOD = 1.0
DEFAULT_SAVED_RESET = 2.0


class AutosaveConfig(TypedDict, total=False):
    quiet_period_seconds: float
    saved_reset_seconds: float


class FlowlineConfig(TypedDict, total=False):
    schema_version: int
    default_type: str
    autosave: AutosaveConfig


def default_config() -> FlowlineConfig:
    """Return the default Flowline configuration.

    The returned dict, when serialized with
    ``json.dumps(data, sort_keys=True, indent=2) + "\\n"``,
    produces the canonical default config.json.
    """
    return {
        "schema_version": 1,
        "default_type": "Feature",
        "autosave": {
            "quiet_period_seconds": DEFAULT_QUIET_PERIOD,
            "saved_reset_seconds": DEFAULT_SAVED_RESET,
        },
    }


def serialize_config(config: FlowlineConfig | dict[str, object]) -> str:
    """Serialize a config dict to the canonical JSON format."""
    return json.dumps(config, sort_keys=True, indent=2) + "\n"


def load_config(raw: str) -> dict:
    """Parse a JSON config string and return the config dict.

    This is a pure function (no I/O).  The CLI layer reads the file
    and passes the raw string here.
    """
    return json.loads(raw)


def _positive_seconds(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value) if value > 0 else default


def autosave_settings(config: dict | None) -> tuple[float, float]:
    """Return ``(quiet_period, saved_reset)`` in seconds with defaults filled in."""
    autosave = (config or {}).get("autosave") or {}
    return (
        _positive_seconds(autosave.get("quiet_period_seconds"), DEFAULT_QUIET_PERIOD),
        _positive_seconds(autosave.get("saved_reset_seconds"), DEFAULT_SAVED_RESET),
    )


def validate_initiative_type(initiative_type: str) -> bool:
    """Return ``True`` if *initiative_type* has a compiled-in pipeline."""
    return initiative_type in INITIATIVE_TYPES
