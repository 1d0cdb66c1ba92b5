"""Remote store contract consumed by the sync engine."""
from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Optional, Protocol


class RemoteError(Exception):
    """Base class for failures reported by a remote store."""


class RemoteUnavailable(RemoteError):
    """Transient failure: network down, timeout, throttling, server error."""


class RemoteRejected(RemoteError):
    """Permanent failure: the store refused the payload."""


class RemoteStore(Protocol):
    async def create(self, collection: str, payload: Dict[str, Any]) -> str: ...

    async def update(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None: ...

    async def delete(self, collection: str, record_id: str) -> None: ...


class InMemoryRemoteStore:
    """Dict-backed store used in demo mode.

    Creates are keyed by ``localId`` so replaying a create that already
    landed returns the original id instead of adding a duplicate.
    """

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._by_local_id: Dict[str, str] = {}

    async def create(self, collection: str, payload: Dict[str, Any]) -> str:
        local_id = payload.get("localId")
        if local_id and local_id in self._by_local_id:
            return self._by_local_id[local_id]
        record_id = uuid.uuid4().hex
        docs = self.collections.setdefault(collection, {})
        docs[record_id] = copy.deepcopy(dict(payload))
        if local_id:
            self._by_local_id[local_id] = record_id
        return record_id

    async def update(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None:
        docs = self.collections.get(collection, {})
        if record_id not in docs:
            raise RemoteRejected(f"{collection}/{record_id} does not exist")
        docs[record_id].update(copy.deepcopy(dict(payload)))

    async def delete(self, collection: str, record_id: str) -> None:
        self.collections.get(collection, {}).pop(record_id, None)

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        return self.collections.get(collection, {}).get(record_id)

    def count(self, collection: str) -> int:
        return len(self.collections.get(collection, {}))


__all__ = [
    "InMemoryRemoteStore",
    "RemoteError",
    "RemoteRejected",
    "RemoteStore",
    "RemoteUnavailable",
]
