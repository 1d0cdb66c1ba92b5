from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import AsyncIterator, Callable, Optional, Set


logger = logging.getLogger("moi.sync")


@dataclass(frozen=True)
class SyncStatus:
    online: bool = True
    last_sync: Optional[datetime] = None
    pending_changes: int = 0
    syncing: bool = False


StatusListener = Callable[[SyncStatus], None]


class SyncStatusStore:
    """Publishes immutable ``SyncStatus`` snapshots.

    ``pending_changes`` is always recomputed from ``pending_count`` and
    ``syncing`` is forced off while offline.
    """

    def __init__(self, pending_count: Callable[[], int], *, online: bool = True) -> None:
        self._pending_count = pending_count
        self._status = SyncStatus(online=online, pending_changes=pending_count())
        self._listeners: Set[StatusListener] = set()

    @property
    def current(self) -> SyncStatus:
        return self._status

    def subscribe(self, callback: StatusListener) -> Callable[[], None]:
        self._listeners.add(callback)
        return lambda: self._listeners.discard(callback)

    def publish(
        self,
        *,
        online: Optional[bool] = None,
        syncing: Optional[bool] = None,
        last_sync: Optional[datetime] = None,
    ) -> SyncStatus:
        status = self._status
        next_online = status.online if online is None else online
        next_syncing = status.syncing if syncing is None else syncing
        status = replace(
            status,
            online=next_online,
            syncing=bool(next_syncing and next_online),
            last_sync=last_sync or status.last_sync,
            pending_changes=self._pending_count(),
        )
        if status == self._status:
            return status
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed")
        return status

    def refresh(self) -> SyncStatus:
        return self.publish()

    async def stream(self) -> AsyncIterator[SyncStatus]:
        """Yield the current snapshot, then every change."""

        queue: asyncio.Queue[SyncStatus] = asyncio.Queue()
        queue.put_nowait(self._status)
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()


__all__ = ["StatusListener", "SyncStatus", "SyncStatusStore"]
