"""Posting-cadence aggregation across a campaign timeline.

A timeline is an ordered list of phases, each lasting some number of days,
weeks or months.  Each channel posts at a frequency that may be overridden
per phase.  :func:`summarize_cadence` turns the two into total scheduled
output.

Arithmetic is exact (``fractions.Fraction``) so that rates like ``3/7``
multiplied back by whole weeks land on integers before the ceiling is
taken.  Bad input never raises: negative, zero or non-numeric values take
their default of 1.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from fractions import Fraction
from typing import TypedDict

DURATION_UNITS: dict[str, int] = {"Days": 1, "Weeks": 7, "Months": 30}
FREQUENCY_UNITS: dict[str, int] = {"PerDay": 1, "PerWeek": 7, "PerMonth": 30}

DEFAULT_DURATION_UNIT = "Days"
DEFAULT_FREQUENCY_UNIT = "PerWeek"

# Unit spellings written by older clients.
FREQUENCY_UNIT_ALIASES: dict[str, str] = {
    "Posts/Day": "PerDay",
    "Posts/Week": "PerWeek",
    "Posts/Month": "PerMonth",
}


class Phase(TypedDict, total=False):
    id: str
    name: str
    durationValue: float
    durationUnit: str
    focus: str


class PhaseOverride(TypedDict, total=False):
    phaseId: str
    frequencyValue: float | None
    frequencyUnit: str
    format: str | None


class ChannelCadence(TypedDict, total=False):
    channelId: str
    role: str
    frequencyValue: float | None
    frequencyUnit: str
    phaseOverrides: list[PhaseOverride]


class CadenceSummary(TypedDict):
    total: int
    by_channel: dict[str, int]
    total_days: int
    average_per_week: dict[str, float]


def _positive(value: object) -> Fraction | None:
    """Return *value* as an exact positive Fraction, or ``None`` if unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    try:
        number = Fraction(str(value)) if isinstance(value, (float, str)) else Fraction(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return number if number > 0 else None


def canonical_frequency_unit(unit: object) -> str | None:
    """Map a stored frequency unit onto PerDay/PerWeek/PerMonth, or ``None``."""
    if not isinstance(unit, str):
        return None
    unit = FREQUENCY_UNIT_ALIASES.get(unit, unit)
    return unit if unit in FREQUENCY_UNITS else None


def phase_days(phase: Mapping) -> Fraction:
    """Convert a phase's duration to a day count (Days x1, Weeks x7, Months x30)."""
    value = _positive(phase.get("durationValue")) or Fraction(1)
    unit = phase.get("durationUnit")
    return value * DURATION_UNITS.get(unit if isinstance(unit, str) else "", 1)


def _find_override(channel: Mapping, phase_id: object) -> Mapping | None:
    overrides = channel.get("phaseOverrides")
    if not isinstance(overrides, list) or phase_id is None:
        return None
    for override in overrides:
        if isinstance(override, Mapping) and override.get("phaseId") == phase_id:
            return override
    return None


def effective_frequency(channel: Mapping, phase: Mapping) -> tuple[Fraction, str]:
    """Return the ``(value, unit)`` a channel posts at during *phase*.

    A matching phase override wins over the channel's top-level frequency.
    Missing or invalid values default to 1 and PerWeek.
    """
    source = _find_override(channel, phase.get("id")) or channel
    value = _positive(source.get("frequencyValue")) or Fraction(1)
    unit = canonical_frequency_unit(source.get("frequencyUnit")) or DEFAULT_FREQUENCY_UNIT
    return value, unit


def daily_rate(value: Fraction, unit: str) -> Fraction:
    """Convert a frequency into posts per day."""
    return value / FREQUENCY_UNITS.get(unit, FREQUENCY_UNITS[DEFAULT_FREQUENCY_UNIT])


def _channel_exact_total(channel: Mapping, phases: list[Mapping]) -> Fraction:
    total = Fraction(0)
    for phase in phases:
        value, unit = effective_frequency(channel, phase)
        total += daily_rate(value, unit) * phase_days(phase)
    return total


def channel_total(channel: Mapping, phases: Iterable[Mapping]) -> int:
    """Total posts for one channel, rounded up once over the whole timeline."""
    valid_phases = [p for p in phases if isinstance(p, Mapping)]
    return math.ceil(_channel_exact_total(channel, valid_phases))


def total_output(phases: Iterable[Mapping], channels: Iterable[Mapping]) -> int:
    """Grand total of scheduled posts across every channel."""
    return summarize_cadence(phases, channels)["total"]


def summarize_cadence(phases: Iterable[Mapping], channels: Iterable[Mapping]) -> CadenceSummary:
    """Compute totals, per-channel subtotals and weekly averages.

    Channels are keyed by ``channelId`` in input order; a repeated id
    accumulates into the same subtotal.
    """
    phase_list = [p for p in phases or [] if isinstance(p, Mapping)]
    total_days = sum((phase_days(p) for p in phase_list), Fraction(0))

    by_channel: dict[str, int] = {}
    average_per_week: dict[str, float] = {}
    for index, channel in enumerate(channels or []):
        if not isinstance(channel, Mapping):
            continue
        channel_id = str(channel.get("channelId") or f"channel-{index + 1}")
        exact = _channel_exact_total(channel, phase_list)
        by_channel[channel_id] = by_channel.get(channel_id, 0) + math.ceil(exact)
        weekly = float(exact * 7 / total_days) if total_days else 0.0
        average_per_week[channel_id] = round(average_per_week.get(channel_id, 0.0) + weekly, 1)

    return {
        "total": sum(by_channel.values()),
        "by_channel": by_channel,
        "total_days": math.ceil(total_days),
        "average_per_week": average_per_week,
    }
