"""Locally held domain records and their synchronization state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Union

from datetime_utils import utc_now


@dataclass(frozen=True)
class Acknowledged:
    """The remote store has the record under ``id``."""

    id: str


@dataclass(frozen=True)
class PendingLocal:
    """Only known locally; a queued write carries it to the remote store."""

    local_id: str


@dataclass(frozen=True)
class Rejected:
    """The remote store refused the write permanently."""

    local_id: str
    reason: str


RecordState = Union[Acknowledged, PendingLocal, Rejected]


@dataclass
class LocalRecord:
    collection: str
    local_id: str
    data: Dict[str, Any]
    state: RecordState
    created_at: datetime = field(default_factory=utc_now)

    @property
    def id(self) -> str:
        if isinstance(self.state, Acknowledged):
            return self.state.id
        return self.local_id

    @property
    def remote_id(self) -> Optional[str]:
        if isinstance(self.state, Acknowledged):
            return self.state.id
        return None

    @property
    def pending_sync(self) -> bool:
        return isinstance(self.state, PendingLocal)

    @property
    def rejected(self) -> bool:
        return isinstance(self.state, Rejected)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


__all__ = ["Acknowledged", "LocalRecord", "PendingLocal", "RecordState", "Rejected"]
