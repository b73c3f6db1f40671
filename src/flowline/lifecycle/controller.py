"""Lifecycle controller: the single mutation surface for an open initiative.

The controller mirrors one initiative from the store, tracks which stage
the user is looking at, and routes every edit through
:meth:`LifecycleController.apply_update`: the local mirror is updated
optimistically, navigation follows stage changes, and the fields are
handed to autosave.  A failed save does not roll the mirror back.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from flowline.core import transitions
from flowline.core.cadence import CadenceSummary, summarize_cadence
from flowline.core.config import DEFAULT_QUIET_PERIOD, DEFAULT_SAVED_RESET
from flowline.core.dispatch import (
    MARKETING_TYPES,
    ViewRegistry,
    dispatch_view,
    requires_marketing_type,
    requires_sub_type,
    select_marketing_type,
    select_sub_type,
)
from flowline.core.initiatives import check_identity, merge_update
from flowline.core.payload import initiative_document, merge_payload
from flowline.core.pipelines import (
    Stage,
    first_stage_id,
    navigable_stages,
    resolve_pipeline,
    stage_options,
)
from flowline.core.stages import normalize_stage
from flowline.core.strategy import load_campaign_strategy
from flowline.lifecycle.autosave import AutosavePersistence

logger = logging.getLogger(__name__)


class RealtimeStore(Protocol):
    def subscribe(self, initiative_id: str, callback): ...

    async def update(self, initiative_id: str, partial: Mapping) -> None: ...


class NotLoadedError(RuntimeError):
    """Raised when an edit arrives before the first snapshot."""


class InvalidStageError(ValueError):
    """Raised when an update sets ``stage`` to something other than a stage id."""


def check_stage(value: object) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidStageError(f"Field 'stage' must be a non-empty string, got {value!r}")


class LifecycleController:
    """Mirror one initiative and route edits to autosave."""

    def __init__(
        self,
        store: RealtimeStore,
        initiative_id: str,
        *,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        saved_reset: float = DEFAULT_SAVED_RESET,
        views: ViewRegistry | None = None,
    ) -> None:
        self.store = store
        self.initiative_id = initiative_id
        self.views = views
        self.linked_status: str | None = None
        self._snapshot: dict | None = None
        self._active_stage = ""
        self._unsubscribe = None
        self.autosave = AutosavePersistence(
            self._write,
            quiet_period=quiet_period,
            saved_reset=saved_reset,
        )

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    def open(self) -> LifecycleController:
        """Subscribe to the store; the current snapshot arrives immediately if it exists."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.initiative_id, self.on_snapshot)
        return self

    def close(self) -> None:
        """Unsubscribe and cancel any pending save timer."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.autosave.close()

    def __enter__(self) -> LifecycleController:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def _write(self, fields: dict) -> None:
        await self.store.update(self.initiative_id, fields)

    # ------------------------------------------------------------------
    # Inbound snapshots and outbound edits
    # ------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> dict | None:
        return dict(self._snapshot) if self._snapshot is not None else None

    @property
    def active_stage(self) -> str:
        return self._active_stage

    @property
    def save_status(self) -> str:
        return self.autosave.status

    def on_snapshot(self, entity: Mapping) -> None:
        """Replace the mirror with a pushed snapshot.

        Fields still waiting in the autosave accumulator keep their local
        value.  Only the first snapshot sets the active stage.
        """
        incoming = dict(entity)
        pending = self.autosave.pending
        if self._snapshot is not None and pending:
            incoming.update(pending)
            logger.debug("Snapshot kept unsaved fields: %s", sorted(pending))

        first = self._snapshot is None
        self._snapshot = incoming
        if first:
            self._active_stage = normalize_stage(incoming.get("stage")) or first_stage_id(
                incoming.get("type"), incoming.get("subType")
            )
            logger.debug("Loaded %s at stage %s", self.initiative_id, self._active_stage)

    def apply_update(self, partial: Mapping) -> None:
        """Apply an edit optimistically and queue it for saving.

        A refused edit leaves the mirror, the active stage and the pending
        fields as they were.

        Raises:
            NotLoadedError: If no snapshot has arrived yet.
            IdentityFieldError: If *partial* would corrupt ``id`` or ``type``.
            InvalidStageError: If *partial* carries an empty or non-string stage.
            AutosaveClosedError: If the controller was already closed.
        """
        if self._snapshot is None:
            raise NotLoadedError(f"Initiative {self.initiative_id} has not loaded yet")
        try:
            check_identity(self._snapshot, partial)
            fields = self._with_gate_choice(dict(partial))
            if "stage" in fields:
                check_stage(fields["stage"])
        except ValueError:
            logger.debug("Rejected update for %s: %s", self.initiative_id, sorted(partial))
            raise

        # Autosave refuses before anything local changes.
        self.autosave.apply_update(fields)
        self._snapshot = merge_update(self._snapshot, fields)
        if "stage" in fields:
            self._active_stage = normalize_stage(fields["stage"])

    def _with_gate_choice(self, fields: dict) -> dict:
        """Complete an update that answers a gating choice.

        Picking a Social sub-type or a Marketing type also moves the stage
        (and for paid ads the type) unless the update sets them itself.
        """
        snap = self._snapshot
        initiative_type = fields.get("type", snap.get("type"))
        if (
            requires_sub_type(initiative_type, snap.get("subType"))
            and fields.get("subType")
            and "stage" not in fields
        ):
            fields["stage"] = first_stage_id(initiative_type, fields["subType"])
        elif (
            requires_marketing_type(initiative_type, snap.get("marketingType"))
            and fields.get("marketingType") in MARKETING_TYPES
        ):
            for key, value in select_marketing_type(fields["marketingType"]).items():
                fields.setdefault(key, value)
        return fields

    def navigate(self, stage: str) -> None:
        """Switch the visible stage without persisting anything."""
        self._active_stage = normalize_stage(stage)

    def choose_sub_type(self, sub_type: str) -> None:
        """Record the post/campaign choice for a Social initiative."""
        self.apply_update(select_sub_type(sub_type))

    def choose_marketing_type(self, marketing_type: str) -> None:
        """Record the paid-ads/email choice for a Marketing initiative."""
        self.apply_update(select_marketing_type(marketing_type))

    def submit_for_review(self) -> None:
        self.apply_update(transitions.submit_for_review())

    def reject(self, reason: str | None = None) -> None:
        """Send the initiative back to Refining with *reason*."""
        self.apply_update(transitions.reject_to_refining(reason))

    def reject_entirely(self) -> None:
        self.apply_update(transitions.reject_entirely())

    def reject_campaign(self) -> None:
        """Return a submitted campaign to Submit and unlink its campaign record."""
        self.apply_update(transitions.reject_campaign())

    async def flush(self) -> None:
        """Write pending edits now and wait for in-flight writes."""
        await self.autosave.flush_now()

    # ------------------------------------------------------------------
    # Derived views of the mirror
    # ------------------------------------------------------------------

    def _require_snapshot(self) -> dict:
        if self._snapshot is None:
            raise NotLoadedError(f"Initiative {self.initiative_id} has not loaded yet")
        return self._snapshot

    def pipeline(self) -> tuple[Stage, ...]:
        snap = self._require_snapshot()
        return resolve_pipeline(snap.get("type"), snap.get("subType"))

    def _linked_status(self) -> str | None:
        snap = self._require_snapshot()
        return self.linked_status or snap.get("linkedStatus")

    def navigable_stages(self) -> list[Stage]:
        snap = self._require_snapshot()
        return navigable_stages(
            snap.get("type"), snap.get("subType"), snap.get("stage"), self._linked_status()
        )

    def stage_options(self) -> list[str]:
        snap = self._require_snapshot()
        return stage_options(
            snap.get("type"), snap.get("subType"), snap.get("stage"), self._linked_status()
        )

    def view_key(self) -> str:
        snap = self._require_snapshot()
        return dispatch_view(
            snap.get("type"),
            snap.get("subType"),
            self._active_stage,
            self.views,
            marketing_type=snap.get("marketingType"),
        )

    def document(self) -> dict:
        """Parse the payload document for the active stage."""
        return initiative_document(self._require_snapshot(), self._active_stage)

    def update_document(self, updates: Mapping) -> None:
        """Merge *updates* into the payload document and save the whole document."""
        snap = self._require_snapshot()
        payload = merge_payload(
            snap.get("payload"),
            updates,
            snap.get("type"),
            snap.get("subType"),
            self._active_stage,
        )
        self.apply_update({"payload": payload})

    def cadence(self) -> CadenceSummary:
        """Recompute posting totals from the current strategy document."""
        strategy = load_campaign_strategy(self.document())
        return summarize_cadence(strategy["phases"], strategy["channels"])
