"""SQLite mirror of the pending-write queue."""
from __future__ import annotations

import json
from typing import Callable, List

from sqlmodel import Session, select

from datetime_utils import ensure_utc, json_default
from models.pending_write import PendingWriteRow
from services.pending_writes_queue import PendingWrite
from storage.db import get_session


def _serialise_payload(payload) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, default=json_default)


def _deserialise_payload(raw: str) -> dict:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


class SqlQueueStore:
    """Keeps one ``pendingwrite`` row per queued write, keyed by ``seq`` in enqueue order."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def load(self) -> List[PendingWrite]:
        with self._session_factory() as session:
            rows = list(session.exec(select(PendingWriteRow).order_by(PendingWriteRow.seq.asc())))

        result: List[PendingWrite] = []
        for row in rows:
            payload = _deserialise_payload(row.payload)
            if not payload.get("localId"):
                payload["localId"] = row.local_id
            result.append(
                PendingWrite(
                    collection=row.collection,
                    payload=payload,
                    op=row.op,
                    created_at=ensure_utc(row.created_at),
                    retry_count=row.retry_count,
                    last_error=row.last_error,
                    seq=row.seq,
                )
            )
        return result

    def save(self, write: PendingWrite) -> int:
        with self._session_factory() as session:
            row = PendingWriteRow(
                local_id=write.local_id,
                collection=write.collection,
                op=write.op,
                payload=_serialise_payload(write.payload),
                retry_count=write.retry_count,
                last_error=write.last_error,
                created_at=write.created_at,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return row.seq

    def update_retry(self, write: PendingWrite) -> None:
        with self._session_factory() as session:
            row = session.get(PendingWriteRow, write.seq) if write.seq is not None else None
            if row is None:
                return
            row.retry_count = write.retry_count
            row.last_error = write.last_error
            session.add(row)
            session.commit()

    def remove(self, seq: int) -> None:
        with self._session_factory() as session:
            row = session.get(PendingWriteRow, seq)
            if row:
                session.delete(row)
                session.commit()

    def clear(self) -> None:
        with self._session_factory() as session:
            for row in session.exec(select(PendingWriteRow)).all():
                session.delete(row)
            session.commit()


__all__ = ["SqlQueueStore"]
