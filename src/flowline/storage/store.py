"""File-backed realtime store for initiatives.

Each initiative lives in ``.flowline/initiatives/<id>.json``.  Writes to
one initiative are serialized by ``.flowline/locks/<id>.lock`` and land
with a single rename; every successful write pushes the new snapshot to
subscribers through the in-process bus.

There is no version check on update: concurrent writers to the same
initiative overwrite each other field by field, last write wins.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path

from filelock import FileLock, Timeout

from flowline.core.initiatives import (
    check_identity,
    merge_update,
    new_initiative,
    serialize_initiative,
    utc_now,
)
from flowline.core.stages import normalize_stage
from flowline.storage import bus
from flowline.storage.project import replace_file


class InitiativeNotFoundError(KeyError):
    """Raised when an initiative id has no stored snapshot."""

    def __str__(self) -> str:
        return f"Initiative not found: {self.args[0]}"


class LockTimeout(Exception):
    """Another writer held an initiative's lock for longer than the timeout."""


class StoreWriteError(Exception):
    """Raised when an update could not be persisted."""


class InitiativeStore:
    """Load, persist and publish initiative snapshots."""

    def __init__(self, flowline_dir: Path, lock_timeout: float = 10) -> None:
        self.flowline_dir = flowline_dir
        self.initiatives_dir = flowline_dir / "initiatives"
        self.locks_dir = flowline_dir / "locks"
        self.lock_timeout = lock_timeout
        self.initiatives_dir.mkdir(parents=True, exist_ok=True)
        self.locks_dir.mkdir(parents=True, exist_ok=True)

    def create(
        self,
        initiative_type: str,
        title: str,
        *,
        sub_type: str | None = None,
        stage: str | None = None,
        payload: str = "",
    ) -> dict:
        """Create, persist and publish a new initiative."""
        snapshot = dict(
            new_initiative(
                initiative_type,
                title,
                sub_type=sub_type,
                stage=stage,
                payload=payload,
            )
        )
        with self._lock(snapshot["id"]):
            self.write_snapshot(snapshot)
        bus.publish(snapshot["id"], snapshot)
        return snapshot

    def exists(self, initiative_id: str) -> bool:
        return self._path(initiative_id).exists()

    def get(self, initiative_id: str) -> dict:
        """Return the stored snapshot.

        Raises:
            InitiativeNotFoundError: If no snapshot exists.
        """
        path = self._path(initiative_id)
        if not path.exists():
            raise InitiativeNotFoundError(initiative_id)
        return json.loads(path.read_text())

    def list_ids(self) -> list[str]:
        return sorted(p.stem for p in self.initiatives_dir.glob("*.json"))

    def subscribe(
        self,
        initiative_id: str,
        callback: Callable[[dict], None],
    ) -> Callable[[], None]:
        """Push the current snapshot to *callback*, then every later one.

        Returns the unsubscribe handle; callers must invoke it on teardown.
        """
        unsubscribe = bus.subscribe(initiative_id, callback)
        if self.exists(initiative_id):
            callback(self.get(initiative_id))
        return unsubscribe

    def write_snapshot(self, snapshot: Mapping) -> None:
        """Replace the stored file of ``snapshot["id"]`` with *snapshot*.

        The caller holds the initiative's lock.  Nothing is published.
        """
        replace_file(self._path(snapshot["id"]), serialize_initiative(snapshot))

    async def update(self, initiative_id: str, partial: Mapping) -> None:
        """Merge *partial* into the stored snapshot at field level.

        A ``stage`` value is stored in canonical form.  Waiting for the lock
        and writing the file happen in a worker thread, so the event loop
        keeps serving edits and timers meanwhile; subscribers are notified
        back on the loop.

        Raises:
            InitiativeNotFoundError: If the initiative does not exist.
            IdentityFieldError: If *partial* would corrupt ``id`` or ``type``.
            StoreWriteError: If the write or lock failed.
        """
        check_identity(None, partial)
        fields = dict(partial)
        if "stage" in fields and isinstance(fields["stage"], str):
            fields["stage"] = normalize_stage(fields["stage"])
        snapshot = await asyncio.to_thread(self._merge_and_write, initiative_id, fields)
        bus.publish(initiative_id, snapshot)

    def _merge_and_write(self, initiative_id: str, fields: dict) -> dict:
        try:
            with self._lock(initiative_id):
                snapshot = merge_update(self.get(initiative_id), fields)
                snapshot["updated_at"] = utc_now()
                self.write_snapshot(snapshot)
        except (OSError, LockTimeout) as exc:
            raise StoreWriteError(f"Could not update {initiative_id}: {exc}") from exc
        return snapshot

    @contextlib.contextmanager
    def _lock(self, initiative_id: str) -> Iterator[None]:
        lock = FileLock(self.locks_dir / f"{initiative_id}.lock")
        try:
            lock.acquire(timeout=self.lock_timeout)
        except Timeout:
            raise LockTimeout(
                f"{initiative_id} is locked by another writer (waited {self.lock_timeout}s)"
            ) from None
        try:
            yield
        finally:
            lock.release()

    def _path(self, initiative_id: str) -> Path:
        return self.initiatives_dir / f"{initiative_id}.json"
