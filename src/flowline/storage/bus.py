"""In-process push channel for initiative snapshots.

Subscribers are keyed by initiative id.  Delivery is fire-and-forget:
listener failures are reported on stderr and never interrupt the write
that triggered them.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable

SnapshotListener = Callable[[dict], None]

_lock = threading.Lock()
_listeners: dict[str, list[SnapshotListener]] = {}


def subscribe(entity_id: str, fn: SnapshotListener) -> Callable[[], None]:
    """Register *fn* for snapshots of *entity_id*.

    Returns an unsubscribe handle; calling it more than once is harmless.
    """
    with _lock:
        _listeners.setdefault(entity_id, []).append(fn)

    def _unsubscribe() -> None:
        with _lock:
            fns = _listeners.get(entity_id)
            if not fns:
                return
            try:
                fns.remove(fn)
            except ValueError:
                pass
            if not fns:
                del _listeners[entity_id]

    return _unsubscribe


def listener_count(entity_id: str) -> int:
    with _lock:
        return len(_listeners.get(entity_id, []))


def publish(entity_id: str, snapshot: dict) -> None:
    """Deliver *snapshot* to every subscriber of *entity_id*.  Never raises."""
    with _lock:
        snapshot_listeners = list(_listeners.get(entity_id, []))
    for fn in snapshot_listeners:
        try:
            fn(dict(snapshot))
        except Exception as exc:
            print(f"flowline: bus listener error: {exc}", file=sys.stderr)
