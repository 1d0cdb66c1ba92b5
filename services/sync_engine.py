from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set, Tuple

from core.settings import SYNC, SYNC_LOG_PATH, SyncSettings
from datetime_utils import utc_now
from services.connectivity import ConnectivitySource
from services.local_id import new_local_id
from services.network_monitor import NetworkMonitor
from services.pending_writes_queue import PendingWrite, PendingWriteQueue
from services.remote_store import RemoteRejected, RemoteStore, RemoteUnavailable
from services.sync_status import StatusListener, SyncStatus, SyncStatusStore


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("moi.sync")
    if not logger.handlers:
        Path(SYNC_LOG_PATH).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(SYNC_LOG_PATH, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


class NotOnline(Exception):
    """A manual sync was requested while the client is offline."""


@dataclass
class FlushResult:
    reason: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    applied: List[Tuple[PendingWrite, str]] = field(default_factory=list)
    retried: List[PendingWrite] = field(default_factory=list)
    rejected: List[Tuple[PendingWrite, str]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.retried


class SyncEngine:
    """Offline-first write reconciliation.

    Writes made while offline wait in a FIFO queue and are flushed to the
    remote store on reconnect, on a periodic timer and on demand. At most one
    flush runs at a time; the guard is checked and set before the first
    ``await`` of a flush, which is enough on a single event loop.
    """

    def __init__(
        self,
        remote: RemoteStore,
        source: ConnectivitySource,
        *,
        queue: Optional[PendingWriteQueue] = None,
        settings: SyncSettings = SYNC,
        monitor: Optional[NetworkMonitor] = None,
    ) -> None:
        self.remote = remote
        self.source = source
        self.settings = settings
        self.queue = queue if queue is not None else PendingWriteQueue()
        self.monitor = monitor or NetworkMonitor(source, debounce_ms=settings.debounce_ms)
        self.logger = _ensure_logger()

        self._reachable = True
        self._manual_offline = False
        self._syncing = False
        self._in_flight = 0
        self._periodic_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: Dict[str, Set[Callable[..., Any]]] = {
            "acknowledged": set(),
            "rejected": set(),
        }
        self._status = SyncStatusStore(self._pending_count)
        self.flush_count = 0
        self.last_result: Optional[FlushResult] = None

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> None:
        await self.source.start()
        self._reachable = self.monitor.start()
        self.monitor.subscribe(self._on_network_change)
        self._status.publish(online=self.is_online)
        if self._periodic_task is None or self._periodic_task.done():
            self._periodic_task = asyncio.create_task(self._periodic_loop())
        self.logger.info(
            "Sync engine started (online=%s, pending=%d)", self.is_online, self._pending_count()
        )

    async def close(self) -> None:
        """Stop the triggers, then let any running flush finish."""

        if self._periodic_task:
            self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
        self._periodic_task = None
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self.monitor.unsubscribe(self._on_network_change)
        self.monitor.stop()
        await self.source.stop()
        if not self.queue.durable and len(self.queue):
            self.logger.warning("Discarding %d unsynced writes at shutdown", len(self.queue))
            self.queue.discard()
        self._status.refresh()

    def reset(self) -> None:
        """Drop everything queued, e.g. on logout."""

        dropped = len(self.queue)
        self.queue.discard()
        self._status.refresh()
        if dropped:
            self.logger.info("Reset dropped %d pending writes", dropped)

    # ------------------------------------------------------------------
    # Status
    @property
    def is_online(self) -> bool:
        return self._reachable and not self._manual_offline

    @property
    def manual_offline(self) -> bool:
        return self._manual_offline

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def current_status(self) -> SyncStatus:
        return self._status.current

    def watch_status(self, callback: StatusListener) -> Callable[[], None]:
        return self._status.subscribe(callback)

    def status_stream(self) -> AsyncIterator[SyncStatus]:
        return self._status.stream()

    def _pending_count(self) -> int:
        return self.queue.length() + self._in_flight

    # ------------------------------------------------------------------
    # Write outcome listeners
    def subscribe(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unsupported event: {event}")
        self._listeners[event].add(callback)

    def unsubscribe(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in self._listeners:
            return
        self._listeners[event].discard(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception:
                self.logger.exception("%s listener failed", event)

    # ------------------------------------------------------------------
    # Public API
    def enqueue_if_offline(
        self,
        collection: str,
        payload: Dict[str, Any],
        op: str = "create",
    ) -> str:
        data = dict(payload)
        local_id = data.get("localId") or new_local_id()
        data["localId"] = local_id
        self.queue.enqueue(PendingWrite(collection=collection, payload=data, op=op))
        self._status.refresh()
        self.logger.info("Queued %s %s (%s), %d pending", op, collection, local_id, len(self.queue))
        return local_id

    async def manual_sync(self) -> Optional[FlushResult]:
        if not self.is_online:
            self.logger.info("Manual sync refused: offline")
            raise NotOnline("Not online, cannot sync")
        return await self._flush("manual")

    async def tick(self) -> Optional[FlushResult]:
        """One firing of the periodic trigger."""

        if not self.is_online or not len(self.queue):
            return None
        return await self._flush("periodic")

    async def toggle_manual_offline(self) -> bool:
        """Flip the manual offline override. Returns the new override state."""

        if not self._manual_offline:
            self._manual_offline = True
            self._status.publish(online=False)
            self.logger.info("Manual offline mode enabled")
            return True

        self._manual_offline = False
        self._reachable = self.monitor.refresh()
        self._status.publish(online=self.is_online, syncing=self._syncing)
        self.logger.info("Manual offline mode disabled (online=%s)", self.is_online)
        if self.is_online:
            await self._flush("toggle")
        return False

    # ------------------------------------------------------------------
    # Triggers
    def _on_network_change(self, reachable: bool) -> None:
        was_online = self.is_online
        self._reachable = reachable
        self._status.publish(online=self.is_online, syncing=self._syncing)
        if self.is_online and not was_online and len(self.queue):
            self._spawn(self._flush("reconnect"))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _periodic_loop(self) -> None:
        # Each tick runs as its own task; close() awaits it rather than cancelling it.
        interval = self.settings.periodic_interval_sec
        while True:
            self._spawn(self._periodic_tick())
            await asyncio.sleep(interval)

    async def _periodic_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            self.logger.exception("Periodic sync failed")

    # ------------------------------------------------------------------
    # Flush
    async def _flush(self, reason: str) -> Optional[FlushResult]:
        if self._syncing:
            self.logger.debug("Flush (%s) skipped: another flush in progress", reason)
            return None
        if not self.is_online or not len(self.queue):
            return None

        self._syncing = True
        batch = self.queue.drain()
        self._in_flight = len(batch)
        result = FlushResult(reason=reason, started_at=utc_now())
        self.flush_count += 1
        self._status.publish(syncing=True)
        self.logger.info("Flush (%s) started with %d writes", reason, len(batch))

        done = 0
        try:
            for write in batch:
                try:
                    record_id = await asyncio.wait_for(
                        self._submit(write), timeout=self.settings.remote_timeout_sec
                    )
                except RemoteRejected as exc:
                    self.logger.warning(
                        "%s %s (%s) rejected: %s", write.op, write.collection, write.local_id, exc
                    )
                    self.queue.acknowledge(write)
                    self._in_flight -= 1
                    result.rejected.append((write, str(exc)))
                    self._emit("rejected", write, str(exc))
                except (RemoteUnavailable, asyncio.TimeoutError) as exc:
                    error = str(exc) or type(exc).__name__
                    self.logger.warning(
                        "%s %s (%s) failed, will retry: %s",
                        write.op, write.collection, write.local_id, error,
                    )
                    result.retried.append(write.with_failure(error))
                except Exception as exc:
                    self.logger.exception(
                        "%s %s (%s) crashed", write.op, write.collection, write.local_id
                    )
                    result.retried.append(write.with_failure(repr(exc)))
                else:
                    self.queue.acknowledge(write)
                    self._in_flight -= 1
                    result.applied.append((write, record_id))
                    self._emit("acknowledged", write, record_id)
                done += 1
                self._status.refresh()
        finally:
            # Unprocessed entries (cancellation) go back untouched, ahead of newer writes.
            self.queue.restore(result.retried + batch[done:])
            self._in_flight = 0
            self._syncing = False
            result.finished_at = utc_now()
            self.last_result = result
            self._status.publish(
                syncing=False,
                last_sync=result.finished_at if result.complete and done == len(batch) else None,
            )
            self.logger.info(
                "Flush (%s) finished: %d applied, %d retried, %d rejected",
                reason, len(result.applied), len(result.retried), len(result.rejected),
            )
        return result

    async def _submit(self, write: PendingWrite) -> str:
        if write.op == "create":
            return await self.remote.create(write.collection, write.payload)
        record_id = write.record_id
        if not record_id:
            raise RemoteRejected(f"{write.op} without a record id")
        if write.op == "update":
            await self.remote.update(write.collection, record_id, write.payload)
        elif write.op == "delete":
            await self.remote.delete(write.collection, record_id)
        else:
            raise RemoteRejected(f"Unsupported op: {write.op}")
        return record_id


__all__ = ["FlushResult", "NotOnline", "SyncEngine"]
