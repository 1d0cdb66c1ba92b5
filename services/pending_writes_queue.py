from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Deque, Dict, Iterable, List, Optional, Protocol

from datetime_utils import utc_now


VALID_OPS = {"create", "update", "delete"}


@dataclass(frozen=True)
class PendingWrite:
    collection: str
    payload: Dict[str, Any]
    op: str = "create"
    created_at: datetime = field(default_factory=utc_now)
    retry_count: int = 0
    last_error: Optional[str] = None
    seq: Optional[int] = None

    @property
    def local_id(self) -> str:
        return str(self.payload.get("localId") or "")

    @property
    def record_id(self) -> Optional[str]:
        """Remote id targeted by ``update``/``delete`` writes."""

        value = self.payload.get("id")
        return str(value) if value else None

    def with_failure(self, error: str) -> "PendingWrite":
        return replace(self, retry_count=self.retry_count + 1, last_error=error[:1000])


class QueueStore(Protocol):
    def load(self) -> List[PendingWrite]: ...

    def save(self, write: PendingWrite) -> int: ...

    def update_retry(self, write: PendingWrite) -> None: ...

    def remove(self, seq: int) -> None: ...

    def clear(self) -> None: ...


class PendingWriteQueue:
    """FIFO buffer of writes the remote store has not acknowledged yet.

    ``drain`` hands the whole content to the caller and empties the buffer.
    Entries that must be retried come back through ``restore`` and are placed
    ahead of anything enqueued in the meantime, so overall order is kept.
    An optional ``store`` mirrors the buffer to durable storage.
    """

    def __init__(self, store: Optional[QueueStore] = None) -> None:
        self._items: Deque[PendingWrite] = deque()
        self._store = store
        if store is not None:
            self._items.extend(store.load())

    def enqueue(self, write: PendingWrite) -> None:
        if write.op not in VALID_OPS:
            raise ValueError(f"Unsupported op: {write.op}")
        if not write.local_id:
            raise ValueError("Pending write payload needs a localId")
        if self._store is not None:
            write = replace(write, seq=self._store.save(write))
        self._items.append(write)

    def drain(self) -> List[PendingWrite]:
        batch = list(self._items)
        self._items.clear()
        return batch

    def restore(self, writes: Iterable[PendingWrite]) -> None:
        batch = list(writes)
        self._items.extendleft(reversed(batch))
        if self._store is not None:
            for write in batch:
                self._store.update_retry(write)

    def acknowledge(self, write: PendingWrite) -> None:
        """Forget a drained write for good (applied or permanently rejected)."""

        if self._store is not None and write.seq is not None:
            self._store.remove(write.seq)

    def discard(self) -> None:
        self._items.clear()
        if self._store is not None:
            self._store.clear()

    def peek(self) -> List[PendingWrite]:
        return list(self._items)

    def length(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def durable(self) -> bool:
        return self._store is not None


__all__ = ["PendingWrite", "PendingWriteQueue", "QueueStore", "VALID_OPS"]
