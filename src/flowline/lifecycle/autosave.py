"""Debounced, coalescing persistence of field-level updates.

Edits accumulate in one pending dict (last write wins per field) and a
single quiet-period timer is restarted on every edit.  When the timer
fires the accumulator is swapped for a fresh one and the captured fields
are written in one call.  Edits made while that write is in flight start a
new cycle; two cycles' writes may overlap and their ordering at the store
is not guaranteed.

Everything runs on one asyncio event loop: :meth:`AutosavePersistence.apply_update`
is synchronous and must be called from a coroutine or callback running on
that loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping

from flowline.core.config import DEFAULT_QUIET_PERIOD, DEFAULT_SAVED_RESET

logger = logging.getLogger(__name__)

IDLE = "idle"
SAVING = "saving"
SAVED = "saved"
ERROR = "error"

Writer = Callable[[dict], Awaitable[None]]


class AutosaveClosedError(RuntimeError):
    """Raised when an update arrives after the owner tore autosave down."""


class AutosavePersistence:
    """Coalesce rapid updates into at most one write per quiet period."""

    def __init__(
        self,
        writer: Writer,
        *,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        saved_reset: float = DEFAULT_SAVED_RESET,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self._writer = writer
        self.quiet_period = quiet_period
        self.saved_reset = saved_reset
        self._on_status = on_status
        self._pending: dict = {}
        self._timer: asyncio.TimerHandle | None = None
        self._reset_timer: asyncio.TimerHandle | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._status = IDLE
        self._closed = False

    @property
    def status(self) -> str:
        return self._status

    @property
    def pending(self) -> dict:
        """A copy of the fields waiting for the next flush."""
        return dict(self._pending)

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def apply_update(self, partial: Mapping) -> None:
        """Merge *partial* into the accumulator and restart the quiet period.

        Nothing changes if the update is refused.

        Raises:
            AutosaveClosedError: If :meth:`close` was already called.
            RuntimeError: If no event loop is running in this thread.
        """
        if self._closed:
            raise AutosaveClosedError("Autosave was closed; update not accepted")
        loop = asyncio.get_running_loop()

        self._pending.update(partial)
        self._cancel_reset()
        self._set_status(SAVING)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.quiet_period, self._on_quiet)

    async def flush_now(self) -> None:
        """Write pending fields immediately and wait for every in-flight write."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        captured = self._take_pending()
        if captured:
            await self._flush(captured)
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def close(self) -> None:
        """Cancel the pending timer and discard unsaved fields.

        Writes already in flight are left to finish.
        """
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._cancel_reset()
        if self._pending:
            logger.debug("Discarding unsaved fields on close: %s", sorted(self._pending))
        self._pending = {}

    def _take_pending(self) -> dict:
        captured, self._pending = self._pending, {}
        return captured

    def _on_quiet(self) -> None:
        self._timer = None
        captured = self._take_pending()
        if not captured:
            return
        task = asyncio.get_running_loop().create_task(self._flush(captured))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _flush(self, fields: dict) -> None:
        logger.debug("Flushing fields: %s", sorted(fields))
        try:
            await self._writer(fields)
        except Exception as exc:
            logger.warning("Autosave failed for fields %s: %s", sorted(fields), exc)
            self._set_status(ERROR)
            return

        # A newer cycle is still waiting for its own flush.
        if self._timer is not None or self._pending:
            return
        self._set_status(SAVED)
        if not self._closed:
            self._cancel_reset()
            self._reset_timer = asyncio.get_running_loop().call_later(
                self.saved_reset, self._reset_to_idle
            )

    def _reset_to_idle(self) -> None:
        self._reset_timer = None
        if self._status == SAVED:
            self._set_status(IDLE)

    def _cancel_reset(self) -> None:
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None

    def _set_status(self, status: str) -> None:
        if status == self._status:
            return
        self._status = status
        if self._on_status is not None:
            self._on_status(status)
