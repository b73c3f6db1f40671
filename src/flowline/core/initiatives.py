"""Initiative records and field-level merging."""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TypedDict

from flowline.core.ids import generate_initiative_id
from flowline.core.pipelines import first_stage_id
from flowline.core.stages import normalize_stage

# Fields a partial update may never change or blank out.
IDENTITY_FIELDS: frozenset[str] = frozenset({"id", "type"})


class Initiative(TypedDict, total=False):
    id: str
    type: str
    subType: str | None
    marketingType: str | None
    stage: str
    title: str
    payload: str
    linkedStatus: str | None
    lastRejectionReason: str | None
    convertedCampaignId: str | None
    created_at: str
    updated_at: str


class IdentityFieldError(ValueError):
    """Raised when a partial update would corrupt ``id`` or ``type``."""


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def new_initiative(
    initiative_type: str,
    title: str,
    *,
    sub_type: str | None = None,
    stage: str | None = None,
    payload: str = "",
    initiative_id: str | None = None,
    now: str | None = None,
) -> Initiative:
    """Build a fresh initiative snapshot.

    *stage* is normalized; when omitted the pipeline's first stage is used.
    """
    ts = now or utc_now()
    return {
        "id": initiative_id or generate_initiative_id(),
        "type": initiative_type,
        "subType": sub_type,
        "stage": normalize_stage(stage) or first_stage_id(initiative_type, sub_type),
        "title": title,
        "payload": payload,
        "created_at": ts,
        "updated_at": ts,
    }


def check_identity(snapshot: Mapping | None, partial: Mapping) -> None:
    """Reject *partial* if it would corrupt an identity field.

    ``id`` and ``type`` must stay non-empty strings, and ``id`` may not
    change.  Moving an initiative to another type (Marketing -> PaidAds)
    is a legitimate update.

    Raises:
        IdentityFieldError: On any corrupting update.
    """
    if not isinstance(partial, Mapping):
        raise IdentityFieldError("Update must be a mapping of field names to values")
    for field in IDENTITY_FIELDS:
        if field not in partial:
            continue
        value = partial[field]
        if not isinstance(value, str) or not value:
            raise IdentityFieldError(f"Field '{field}' must be a non-empty string")
    current_id = snapshot.get("id") if snapshot else None
    if "id" in partial and current_id is not None and partial["id"] != current_id:
        raise IdentityFieldError(f"Field 'id' cannot change ({current_id!r} -> {partial['id']!r})")


def merge_update(snapshot: Mapping, partial: Mapping) -> dict:
    """Return a copy of *snapshot* with *partial* merged in, last write wins per field.

    Content other than identity fields is passed through unchecked.
    """
    check_identity(snapshot, partial)
    merged = copy.deepcopy(dict(snapshot))
    merged.update(copy.deepcopy(dict(partial)))
    return merged


def serialize_initiative(initiative: Mapping) -> str:
    """Pretty-print an initiative as sorted JSON with trailing newline."""
    return json.dumps(initiative, sort_keys=True, indent=2) + "\n"
