# moi/services/records.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from datetime_utils import utc_now
from models.records import Acknowledged, LocalRecord, PendingLocal, Rejected
from services.local_id import local_id_millis, new_local_id
from services.pending_writes_queue import PendingWrite
from services.remote_store import RemoteRejected, RemoteUnavailable
from services.sync_engine import SyncEngine


EVENTS = "events"
PARTICIPANTS = "participants"
CONTRIBUTIONS = "contributions"

PAYMENT_METHODS = {"cash", "digital", "bank"}

logger = logging.getLogger("moi.sync")


class RecordService:
    """Local state for events, participants and contributions.

    Every record gets a LocalId. Online creates are confirmed by the remote
    store within the same call; offline creates stay ``PendingLocal`` until
    the engine reports the queued write as acknowledged or rejected.
    """

    def __init__(self, engine: SyncEngine, user_id: Optional[str] = None) -> None:
        self.engine = engine
        self.user_id = user_id or "anonymous"
        self._records: Dict[str, List[LocalRecord]] = {}
        self._by_local_id: Dict[str, LocalRecord] = {}
        engine.subscribe("acknowledged", self._on_acknowledged)
        engine.subscribe("rejected", self._on_rejected)

    # ------------------------------------------------------------------
    # generic records
    async def create(self, collection: str, data: Dict[str, Any]) -> LocalRecord:
        local_id = new_local_id()
        payload = dict(data)
        payload.setdefault("userId", self.user_id)
        payload.setdefault("createdAt", utc_now())
        payload["localId"] = local_id

        record = LocalRecord(
            collection=collection,
            local_id=local_id,
            data=payload,
            state=PendingLocal(local_id),
        )
        self._remember(record)

        if self.engine.is_online:
            try:
                record_id = await asyncio.wait_for(
                    self.engine.remote.create(collection, payload),
                    timeout=self.engine.settings.remote_timeout_sec,
                )
            except RemoteRejected as exc:
                record.state = Rejected(local_id, str(exc))
                logger.warning("Create %s rejected: %s", collection, exc)
                return record
            except (RemoteUnavailable, asyncio.TimeoutError) as exc:
                logger.info("Create %s deferred, remote unavailable: %s", collection, exc)
            else:
                record.state = Acknowledged(record_id)
                return record

        self.engine.enqueue_if_offline(collection, payload)
        return record

    async def update(self, record: LocalRecord, changes: Dict[str, Any]) -> LocalRecord:
        if not isinstance(record.state, Acknowledged):
            raise ValueError("Only records known to the remote store can be updated")
        payload = dict(changes)
        payload["id"] = record.state.id
        await self._write(record, "update", payload)
        record.data.update(changes)
        return record

    async def delete(self, record: LocalRecord) -> None:
        if not isinstance(record.state, Acknowledged):
            raise ValueError("Only records known to the remote store can be deleted")
        await self._write(record, "delete", {"id": record.state.id})
        self._forget(record)

    async def _write(self, record: LocalRecord, op: str, payload: Dict[str, Any]) -> None:
        """Apply an update/delete now, or queue it. ``RemoteRejected`` propagates."""

        if self.engine.is_online:
            remote = self.engine.remote
            if op == "update":
                call = remote.update(record.collection, payload["id"], payload)
            else:
                call = remote.delete(record.collection, payload["id"])
            try:
                await asyncio.wait_for(call, timeout=self.engine.settings.remote_timeout_sec)
                return
            except (RemoteUnavailable, asyncio.TimeoutError) as exc:
                logger.info("%s %s deferred: %s", op, record.collection, exc)
        payload["localId"] = new_local_id()
        self.engine.enqueue_if_offline(record.collection, payload, op=op)

    def list(self, collection: str, **filters: Any) -> List[LocalRecord]:
        items = self._records.get(collection, [])
        if filters:
            items = [r for r in items if all(r.get(k) == v for k, v in filters.items())]
        return sorted(items, key=lambda r: local_id_millis(r.local_id) or 0)

    def by_local_id(self, local_id: str) -> Optional[LocalRecord]:
        return self._by_local_id.get(local_id)

    def pending(self) -> List[LocalRecord]:
        return [r for r in self._by_local_id.values() if r.pending_sync]

    def reset(self) -> None:
        self._records.clear()
        self._by_local_id.clear()
        self.engine.reset()

    def _remember(self, record: LocalRecord) -> None:
        self._records.setdefault(record.collection, []).append(record)
        self._by_local_id[record.local_id] = record

    def _forget(self, record: LocalRecord) -> None:
        items = self._records.get(record.collection, [])
        if record in items:
            items.remove(record)
        self._by_local_id.pop(record.local_id, None)

    def _on_acknowledged(self, write: PendingWrite, record_id: str) -> None:
        if write.op != "create":
            return
        record = self._by_local_id.get(write.local_id)
        if record is not None:
            record.state = Acknowledged(record_id)

    def _on_rejected(self, write: PendingWrite, reason: str) -> None:
        if write.op != "create":
            return
        record = self._by_local_id.get(write.local_id)
        if record is not None:
            record.state = Rejected(write.local_id, reason)

    # ------------------------------------------------------------------
    # fundraising
    async def create_event(
        self,
        name: str,
        date: str,
        *,
        type: str = "",
        location: str = "",
        target_amount: float = 0,
    ) -> LocalRecord:
        if not (name or "").strip() or not (date or "").strip():
            raise ValueError("Event name and date are required")
        return await self.create(
            EVENTS,
            {
                "name": name.strip(),
                "type": type,
                "date": date,
                "location": location,
                "targetAmount": float(target_amount or 0),
            },
        )

    async def add_participant(
        self,
        event: LocalRecord,
        name: str,
        phone: str,
        *,
        email: str = "",
        place: str = "",
    ) -> LocalRecord:
        if not (name or "").strip() or not (phone or "").strip():
            raise ValueError("Participant name and phone are required")
        return await self.create(
            PARTICIPANTS,
            {
                "eventId": event.id,
                "name": name.strip(),
                "phone": phone.strip(),
                "email": email,
                "place": place,
            },
        )

    async def add_contribution(
        self,
        event: LocalRecord,
        participant: LocalRecord,
        amount: float,
        *,
        payment_method: str = "cash",
        notes: str = "",
        date: Optional[datetime] = None,
    ) -> LocalRecord:
        if participant is None or not amount or float(amount) <= 0:
            raise ValueError("A participant and a positive amount are required")
        if payment_method not in PAYMENT_METHODS:
            raise ValueError(f"Unsupported payment method: {payment_method}")
        return await self.create(
            CONTRIBUTIONS,
            {
                "eventId": event.id,
                "participantId": participant.id,
                "participantName": participant.get("name"),
                "participantPhone": participant.get("phone"),
                "participantPlace": participant.get("place"),
                "amount": float(amount),
                "paymentMethod": payment_method,
                "notes": notes,
                "date": date or utc_now(),
            },
        )

    def _event_keys(self, event: LocalRecord) -> set:
        return {event.id, event.local_id}

    def contributions_for(self, event: LocalRecord) -> List[LocalRecord]:
        keys = self._event_keys(event)
        return [
            r for r in self.list(CONTRIBUTIONS)
            if r.get("eventId") in keys and not r.rejected
        ]

    def total_collected(self, event: LocalRecord) -> float:
        return sum(float(r.get("amount") or 0) for r in self.contributions_for(event))

    def progress_percentage(self, event: LocalRecord) -> float:
        target = float(event.get("targetAmount") or 0)
        if not target:
            return 0.0
        return self.total_collected(event) / target * 100

    def remaining_amount(self, event: LocalRecord) -> float:
        target = float(event.get("targetAmount") or 0)
        if not target:
            return 0.0
        return target - self.total_collected(event)


__all__ = [
    "CONTRIBUTIONS",
    "EVENTS",
    "PARTICIPANTS",
    "PAYMENT_METHODS",
    "RecordService",
]
