"""Stage identifier normalization.

Persisted initiatives may carry stage names from older review workflows.
Every stage read from storage goes through :func:`normalize_stage` before
it is used as a lookup key or shown as the current position.
"""

from __future__ import annotations

# Legacy review-state names that collapse onto the campaign "Submit" stage.
STAGE_ALIASES: dict[str, str] = {
    "ChangeRequested": "Submit",
    "PendingReview": "Submit",
    "Review": "Submit",
}

# Stages every initiative may be moved to regardless of its pipeline.
META_STAGES: tuple[str, ...] = ("Implemented", "Archived")


def normalize_stage(raw_stage: str | None) -> str:
    """Return the canonical form of *raw_stage*.

    Unknown values pass through unchanged.  ``None`` becomes ``""`` so the
    caller can fall back to a pipeline's first stage.
    """
    if not raw_stage:
        return ""
    return STAGE_ALIASES.get(raw_stage, raw_stage)


def is_alias(stage: str) -> bool:
    """Return ``True`` if *stage* is a legacy alias rather than a canonical id."""
    return stage in STAGE_ALIASES
