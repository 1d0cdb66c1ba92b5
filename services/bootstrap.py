"""Composition of the sync stack for one client session."""
from __future__ import annotations

import logging
from typing import Optional

from core.settings import FIRESTORE, SYNC, FirestoreSettings, SyncSettings
from services.connectivity import ConnectivitySource, ProbeConnectivitySource
from services.pending_writes_queue import PendingWriteQueue
from services.remote_store import InMemoryRemoteStore, RemoteStore
from services.sync_engine import SyncEngine


logger = logging.getLogger("moi.sync")


def build_remote_store(settings: FirestoreSettings = FIRESTORE) -> RemoteStore:
    """Firestore when a project and credentials are configured, else a local demo store."""

    if settings.project_id and settings.credentials_path.exists():
        from services.firestore_store import FirestoreRemoteStore

        return FirestoreRemoteStore(settings=settings)
    logger.warning("Firestore is not configured; using the in-memory demo store")
    return InMemoryRemoteStore()


def build_queue(settings: SyncSettings = SYNC, session_factory=None) -> PendingWriteQueue:
    if not settings.persist_queue:
        return PendingWriteQueue()

    from storage.db import get_session, init_db
    from storage.queue_store import SqlQueueStore

    if session_factory is None:
        init_db()
        session_factory = get_session
    return PendingWriteQueue(store=SqlQueueStore(session_factory))


def build_engine(
    *,
    remote: Optional[RemoteStore] = None,
    source: Optional[ConnectivitySource] = None,
    settings: SyncSettings = SYNC,
    session_factory=None,
) -> SyncEngine:
    return SyncEngine(
        remote or build_remote_store(),
        source or ProbeConnectivitySource(settings),
        queue=build_queue(settings, session_factory),
        settings=settings,
    )


__all__ = ["build_engine", "build_queue", "build_remote_store"]
