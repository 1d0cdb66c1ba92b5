from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from core.settings import SYNC
from services.connectivity import ConnectivitySource


logger = logging.getLogger("moi.sync")


class NetworkMonitor:
    """Debounced view over a connectivity source.

    Raw edges re-arm a single timer; only the value that is still current
    when the timer fires is considered settled. Listeners hear about settled
    values that differ from the previous one. Without any signal the monitor
    reports online.
    """

    def __init__(
        self,
        source: ConnectivitySource,
        *,
        debounce_ms: int = SYNC.debounce_ms,
    ) -> None:
        self.source = source
        self.debounce = max(debounce_ms, 0) / 1000.0
        self._current = True
        self._pending: Optional[bool] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._listeners: Set[Callable[[bool], None]] = set()

    @property
    def current(self) -> bool:
        return self._current

    def subscribe(self, callback: Callable[[bool], None]) -> None:
        self._listeners.add(callback)

    def unsubscribe(self, callback: Callable[[bool], None]) -> None:
        self._listeners.discard(callback)

    def start(self) -> bool:
        """Take the initial snapshot and begin listening. Needs a running loop."""

        self._loop = asyncio.get_running_loop()
        self._current = self.read_now()
        self.source.subscribe(self.signal)
        logger.info("Network monitor started (online=%s)", self._current)
        return self._current

    def refresh(self) -> bool:
        """Re-read reachability and adopt it as the settled value, silently."""

        self._current = self.read_now()
        return self._current

    def read_now(self) -> bool:
        try:
            return bool(self.source.is_reachable())
        except Exception:
            logger.exception("Reachability read failed; assuming online")
            return True

    def stop(self) -> None:
        self.source.unsubscribe(self.signal)
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None

    def signal(self, reachable: bool) -> None:
        """Feed one raw reachable/unreachable edge."""

        self._pending = bool(reachable)
        if self._handle is not None:
            self._handle.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.debounce, self._settle)

    def _settle(self) -> None:
        self._handle = None
        value, self._pending = self._pending, None
        if value is None or value == self._current:
            return
        self._current = value
        logger.info("Network %s", "online" if value else "offline")
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Network listener failed")


__all__ = ["NetworkMonitor"]
