"""Campaign strategy documents: loading and pure editing operations.

Every editing function returns a new strategy dict and leaves its input
untouched, so the result can be serialized straight into an update.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping

from flowline.core.cadence import (
    DEFAULT_FREQUENCY_UNIT,
    DURATION_UNITS,
    ChannelCadence,
    Phase,
    PhaseOverride,
    canonical_frequency_unit,
)
from flowline.core.ids import generate_phase_id
from flowline.core.payload import empty_campaign_strategy
from flowline.core.plan import extract_number, parse_frequency

# Optimal weekly posting rate used when a channel is added by hand.
CHANNEL_DEFAULT_FREQUENCY: dict[str, tuple[int, str]] = {
    "Instagram": (5, "PerWeek"),
    "TikTok": (7, "PerWeek"),
    "YouTube Video": (1, "PerWeek"),
    "YouTube Shorts": (7, "PerWeek"),
    "X": (7, "PerWeek"),
    "LinkedIn": (3, "PerWeek"),
    "Facebook": (3, "PerWeek"),
}
FALLBACK_CHANNEL_FREQUENCY: tuple[int, str] = (3, "PerWeek")

PHASE_FIELDS = frozenset({"name", "durationValue", "durationUnit", "focus"})


def default_channel_frequency(channel_id: str) -> tuple[int, str]:
    return CHANNEL_DEFAULT_FREQUENCY.get(channel_id, FALLBACK_CHANNEL_FREQUENCY)


def _positive_or_none(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if value > 0 else None


def _load_phase(raw: Mapping) -> Phase:
    duration = _positive_or_none(raw.get("durationValue"))
    if duration is None:
        duration = extract_number(raw.get("duration")) or 1
        duration = int(duration) if float(duration).is_integer() else duration
    unit = raw.get("durationUnit")
    phase_id = raw.get("id")
    return {
        "id": phase_id if isinstance(phase_id, str) and phase_id else generate_phase_id(),
        "name": raw.get("name") if isinstance(raw.get("name"), str) else "",
        "durationValue": duration,
        "durationUnit": unit if isinstance(unit, str) and unit in DURATION_UNITS else "Days",
        "focus": raw.get("focus") if isinstance(raw.get("focus"), str) else "",
    }


def _load_override(raw: Mapping) -> PhaseOverride:
    value = raw.get("frequencyValue", raw.get("value"))
    unit = raw.get("frequencyUnit", raw.get("unit"))
    fmt = raw.get("format")
    return {
        "phaseId": raw.get("phaseId"),
        "frequencyValue": _positive_or_none(value) or 1,
        "frequencyUnit": canonical_frequency_unit(unit) or DEFAULT_FREQUENCY_UNIT,
        "format": fmt if isinstance(fmt, str) else None,
    }


def _load_channel(raw: Mapping) -> ChannelCadence | None:
    channel_id = raw.get("channelId") or raw.get("id")
    if not isinstance(channel_id, str) or not channel_id:
        return None
    value = _positive_or_none(raw.get("frequencyValue"))
    unit = canonical_frequency_unit(raw.get("frequencyUnit"))
    if value is None and isinstance(raw.get("frequency"), str):
        value, parsed_unit = parse_frequency(raw["frequency"])
        unit = unit or parsed_unit
    overrides = raw.get("phaseOverrides", raw.get("phaseFrequencies"))
    return {
        "channelId": channel_id,
        "role": raw.get("role") if isinstance(raw.get("role"), str) else "",
        "frequencyValue": value,
        "frequencyUnit": unit or DEFAULT_FREQUENCY_UNIT,
        "phaseOverrides": [
            _load_override(o) for o in overrides if isinstance(o, Mapping) and o.get("phaseId")
        ]
        if isinstance(overrides, list)
        else [],
    }


def load_campaign_strategy(document: Mapping | None) -> dict:
    """Coerce a stored strategy document into canonical phases and channels.

    Older documents keep channels under ``platforms`` with free-text
    ``frequency`` values; both spellings are accepted.
    """
    strategy = empty_campaign_strategy()
    if not isinstance(document, Mapping):
        return strategy
    for key, value in document.items():
        if key not in ("phases", "channels", "platforms"):
            strategy[key] = copy.deepcopy(value)

    phases = document.get("phases")
    if isinstance(phases, list):
        strategy["phases"] = [_load_phase(p) for p in phases if isinstance(p, Mapping)]

    channels = document.get("channels")
    if not channels and isinstance(document.get("platforms"), list):
        channels = document["platforms"]
    if isinstance(channels, list):
        loaded = (_load_channel(c) for c in channels if isinstance(c, Mapping))
        strategy["channels"] = [c for c in loaded if c is not None]
    return strategy


def add_phase(strategy: Mapping, name: str = "") -> dict:
    """Append a one-week phase with a fresh id."""
    result = copy.deepcopy(dict(strategy))
    phases = list(result.get("phases") or [])
    phases.append(
        {
            "id": generate_phase_id(),
            "name": name,
            "durationValue": 1,
            "durationUnit": "Weeks",
            "focus": "",
        }
    )
    result["phases"] = phases
    return result


def update_phase(strategy: Mapping, index: int, field: str, value: object) -> dict:
    """Set one field of the phase at *index*.

    Raises:
        IndexError: If *index* is out of range.
        ValueError: If *field* is not an editable phase field.
    """
    if field not in PHASE_FIELDS:
        raise ValueError(f"Not an editable phase field: '{field}'")
    result = copy.deepcopy(dict(strategy))
    phases = list(result.get("phases") or [])
    if not 0 <= index < len(phases):
        raise IndexError(f"Phase index out of range: {index}")
    phases[index] = {**phases[index], field: value}
    result["phases"] = phases
    return result


def remove_phase(strategy: Mapping, index: int) -> dict:
    """Remove the phase at *index* and any overrides that referenced it."""
    result = copy.deepcopy(dict(strategy))
    phases = list(result.get("phases") or [])
    if not 0 <= index < len(phases):
        raise IndexError(f"Phase index out of range: {index}")
    removed = phases.pop(index)
    result["phases"] = phases
    for channel in result.get("channels") or []:
        channel["phaseOverrides"] = [
            o for o in channel.get("phaseOverrides") or [] if o.get("phaseId") != removed.get("id")
        ]
    return result


def toggle_channel(strategy: Mapping, channel_id: str) -> dict:
    """Remove *channel_id* if present, otherwise add it.

    A new channel copies the suggested tactic for that channel when one
    exists, and otherwise starts at the channel's default frequency.
    """
    result = copy.deepcopy(dict(strategy))
    channels = list(result.get("channels") or [])
    remaining = [c for c in channels if c.get("channelId") != channel_id]
    if len(remaining) != len(channels):
        result["channels"] = remaining
        return result

    tactic = next(
        (
            t
            for t in result.get("suggestedTactics") or []
            if isinstance(t, Mapping) and t.get("channelId") == channel_id
        ),
        None,
    )
    if tactic is not None:
        channel = {
            "channelId": channel_id,
            "role": tactic.get("role") or "",
            "frequencyValue": tactic.get("frequencyValue"),
            "frequencyUnit": tactic.get("frequencyUnit") or DEFAULT_FREQUENCY_UNIT,
            "phaseOverrides": copy.deepcopy(tactic.get("phaseOverrides") or []),
        }
    else:
        value, unit = default_channel_frequency(channel_id)
        channel = {
            "channelId": channel_id,
            "role": "",
            "frequencyValue": value,
            "frequencyUnit": unit,
            "phaseOverrides": [],
        }
    channels.append(channel)
    result["channels"] = channels
    return result


def _channel_index(channels: list, channel_id: str) -> int:
    for index, channel in enumerate(channels):
        if channel.get("channelId") == channel_id:
            return index
    raise KeyError(channel_id)


def set_phase_override(
    strategy: Mapping,
    channel_id: str,
    phase_id: str,
    value: float | None = None,
    unit: str | None = None,
    format: str | None = None,
) -> dict:
    """Replace or append the override of *channel_id* for *phase_id*.

    A missing value or unit is seeded from the channel's top-level
    frequency.

    Raises:
        KeyError: If the strategy has no channel *channel_id*.
    """
    result = copy.deepcopy(dict(strategy))
    channels = list(result.get("channels") or [])
    channel = channels[_channel_index(channels, channel_id)]
    override = {
        "phaseId": phase_id,
        "frequencyValue": value if value is not None else channel.get("frequencyValue") or 1,
        "frequencyUnit": canonical_frequency_unit(unit)
        or canonical_frequency_unit(channel.get("frequencyUnit"))
        or DEFAULT_FREQUENCY_UNIT,
        "format": format,
    }
    overrides = [o for o in channel.get("phaseOverrides") or []]
    for index, existing in enumerate(overrides):
        if existing.get("phaseId") == phase_id:
            overrides[index] = override
            break
    else:
        overrides.append(override)
    channel["phaseOverrides"] = overrides
    result["channels"] = channels
    return result


def clear_phase_override(strategy: Mapping, channel_id: str, phase_id: str) -> dict:
    """Drop the override of *channel_id* for *phase_id*, if any."""
    result = copy.deepcopy(dict(strategy))
    channels = list(result.get("channels") or [])
    channel = channels[_channel_index(channels, channel_id)]
    channel["phaseOverrides"] = [
        o for o in channel.get("phaseOverrides") or [] if o.get("phaseId") != phase_id
    ]
    result["channels"] = channels
    return result
