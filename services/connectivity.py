"""Sources of raw reachability edges."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol, Set

from core.settings import SYNC, SyncSettings


logger = logging.getLogger("moi.sync")

EdgeCallback = Callable[[bool], None]


class ConnectivitySource(Protocol):
    def is_reachable(self) -> bool: ...

    def subscribe(self, callback: EdgeCallback) -> None: ...

    def unsubscribe(self, callback: EdgeCallback) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class ProbeConnectivitySource:
    """Polls a TCP endpoint and reports reachable/unreachable edges."""

    def __init__(self, settings: SyncSettings = SYNC) -> None:
        self.settings = settings
        self._listeners: Set[EdgeCallback] = set()
        self._last: Optional[bool] = None
        self._task: Optional[asyncio.Task] = None

    def subscribe(self, callback: EdgeCallback) -> None:
        self._listeners.add(callback)

    def unsubscribe(self, callback: EdgeCallback) -> None:
        self._listeners.discard(callback)

    def is_reachable(self) -> bool:
        """Last probed value; unknown counts as reachable."""

        return True if self._last is None else self._last

    async def _probe(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.settings.probe_host, self.settings.probe_port),
                timeout=self.settings.probe_timeout_sec,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    def _emit(self, reachable: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(reachable)
            except Exception:
                logger.exception("Connectivity listener failed")

    async def _loop(self) -> None:
        while True:
            reachable = await self._probe()
            if reachable != self._last:
                self._last = reachable
                self._emit(reachable)
            await asyncio.sleep(self.settings.probe_interval_sec)

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._last = await self._probe()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None


__all__ = ["ConnectivitySource", "EdgeCallback", "ProbeConnectivitySource"]
