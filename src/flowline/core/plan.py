"""Coerce generated campaign plans into canonical phases and cadences.

The suggestion service answers in loosely structured JSON: durations such
as ``"2 weeks"`` and frequencies such as ``"3-4 posts per week"``.  The
rules here favour producing *something* usable over rejecting input:

* the first decimal number in the text is the value (fallback 1);
* the unit is the first of day / week / month found in the text
  (fallback Days for durations, PerWeek for frequencies);
* frequencies are rounded half-up to whole posts, never below 1;
* per-phase overrides are matched to phases by exact name, unmatched
  ones are dropped.

:func:`normalize_plan` never raises.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from typing import TypedDict

from flowline.core.cadence import (
    DURATION_UNITS,
    ChannelCadence,
    Phase,
    PhaseOverride,
    canonical_frequency_unit,
)
from flowline.core.ids import generate_phase_id

_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")

DEFAULT_VALUE = 1

_DURATION_UNIT_WORDS: tuple[tuple[str, str], ...] = (
    ("day", "Days"),
    ("week", "Weeks"),
    ("month", "Months"),
)
_FREQUENCY_UNIT_WORDS: tuple[tuple[str, str], ...] = (
    ("day", "PerDay"),
    ("daily", "PerDay"),
    ("week", "PerWeek"),
    ("month", "PerMonth"),
)


class CampaignPlan(TypedDict):
    phases: list[Phase]
    channels: list[ChannelCadence]
    audienceSegments: list[str]
    kpis: list[dict]
    campaignType: str
    subGoal: str
    pillar: str


def empty_plan() -> CampaignPlan:
    return {
        "phases": [],
        "channels": [],
        "audienceSegments": [],
        "kpis": [],
        "campaignType": "",
        "subGoal": "",
        "pillar": "",
    }


def _as_text(value: object) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return repr(value) if math.isfinite(value) else ""
    return value if isinstance(value, str) else ""


def _whole(number: float) -> int | float:
    return int(number) if number.is_integer() else number


def extract_number(text: object) -> float | None:
    """Return the first decimal number found in *text*, or ``None``."""
    match = _NUMBER_RE.search(_as_text(text))
    if match is None:
        return None
    number = float(match.group(1))
    return number if math.isfinite(number) else None


def infer_unit(text: object, words: tuple[tuple[str, str], ...], default: str) -> str:
    lowered = _as_text(text).lower()
    for word, unit in words:
        if word in lowered:
            return unit
    return default


def parse_duration(text: object) -> tuple[int | float, str]:
    """Parse free-text duration such as ``"about a month-ish"`` -> ``(1, "Months")``."""
    number = extract_number(text)
    value = _whole(number) if number else DEFAULT_VALUE
    return value, infer_unit(text, _DURATION_UNIT_WORDS, "Days")


def parse_frequency(text: object) -> tuple[int, str]:
    """Parse free-text frequency such as ``"2.6 posts a week"`` -> ``(3, "PerWeek")``."""
    number = extract_number(text)
    value = max(DEFAULT_VALUE, math.floor(number + 0.5)) if number is not None else DEFAULT_VALUE
    return value, infer_unit(text, _FREQUENCY_UNIT_WORDS, "PerWeek")


def _normalize_phase(raw: object) -> Phase | None:
    if not isinstance(raw, Mapping):
        return None
    value, unit = parse_duration(raw.get("duration"))
    if raw.get("duration") is None:
        number = extract_number(raw.get("durationValue"))
        value = _whole(number) if number else DEFAULT_VALUE
        duration_unit = raw.get("durationUnit")
        if isinstance(duration_unit, str) and duration_unit in DURATION_UNITS:
            unit = duration_unit
    phase_id = raw.get("id")
    return {
        "id": phase_id if isinstance(phase_id, str) and phase_id else generate_phase_id(),
        "name": _as_text(raw.get("name")),
        "durationValue": value,
        "durationUnit": unit,
        "focus": _as_text(raw.get("focus")),
    }


def _frequency_of(raw: Mapping, text_key: str = "frequency") -> tuple[int, str]:
    text = raw.get(text_key)
    if text is None and raw.get("frequencyValue") is not None:
        value, _ = parse_frequency(raw.get("frequencyValue"))
        unit = canonical_frequency_unit(raw.get("frequencyUnit")) or "PerWeek"
        return value, unit
    return parse_frequency(text)


def _normalize_override(raw: object, phases_by_name: dict[str, Phase]) -> PhaseOverride | None:
    if not isinstance(raw, Mapping):
        return None
    name = raw.get("phaseName")
    phase = phases_by_name.get(name) if isinstance(name, str) else None
    if phase is None:
        return None
    value, unit = _frequency_of(raw)
    fmt = raw.get("format")
    return {
        "phaseId": phase["id"],
        "frequencyValue": value,
        "frequencyUnit": unit,
        "format": fmt if isinstance(fmt, str) else None,
    }


def _normalize_channel(raw: object, phases_by_name: dict[str, Phase]) -> ChannelCadence | None:
    if not isinstance(raw, Mapping):
        return None
    channel_id = raw.get("channelId") or raw.get("id") or raw.get("platform")
    if not isinstance(channel_id, str) or not channel_id:
        return None
    value, unit = _frequency_of(raw)
    raw_overrides = raw.get("phaseFrequencies") or raw.get("phaseOverrides")
    overrides = []
    if isinstance(raw_overrides, list):
        for item in raw_overrides:
            override = _normalize_override(item, phases_by_name)
            if override is not None:
                overrides.append(override)
    return {
        "channelId": channel_id,
        "role": _as_text(raw.get("role")),
        "frequencyValue": value,
        "frequencyUnit": unit,
        "phaseOverrides": overrides,
    }


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def normalize_plan(raw: object) -> CampaignPlan:
    """Return a canonical :class:`CampaignPlan` for any suggestion response.

    *raw* may be a mapping or its JSON text.  Anything unusable yields the
    corresponding empty field.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (ValueError, TypeError):
            return empty_plan()
    if not isinstance(raw, Mapping):
        return empty_plan()

    plan = empty_plan()

    raw_phases = raw.get("phases")
    if isinstance(raw_phases, list):
        for item in raw_phases:
            phase = _normalize_phase(item)
            if phase is not None:
                plan["phases"].append(phase)

    # First phase wins when a name repeats.
    phases_by_name: dict[str, Phase] = {}
    for phase in plan["phases"]:
        phases_by_name.setdefault(phase["name"], phase)

    raw_channels = raw.get("channels")
    if raw_channels is None:
        raw_channels = raw.get("platforms")
    if isinstance(raw_channels, list):
        for item in raw_channels:
            channel = _normalize_channel(item, phases_by_name)
            if channel is not None:
                plan["channels"].append(channel)

    plan["audienceSegments"] = _string_list(raw.get("audienceSegments"))
    kpis = raw.get("kpis")
    plan["kpis"] = [dict(k) for k in kpis if isinstance(k, Mapping)] if isinstance(kpis, list) else []
    for key in ("campaignType", "subGoal", "pillar"):
        plan[key] = _as_text(raw.get(key))
    return plan
