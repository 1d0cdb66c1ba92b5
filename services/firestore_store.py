"""Cloud Firestore (REST v1) implementation of the remote store."""
from __future__ import annotations

import asyncio
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.settings import FIRESTORE, FirestoreSettings
from datetime_utils import to_rfc3339_utc
from services.remote_store import RemoteRejected, RemoteUnavailable

try:  # pragma: no cover - optional at import time in tests
    from google.oauth2 import service_account
except Exception:  # pragma: no cover
    service_account = None


RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


def load_credentials(path: Path | str, scopes=FIRESTORE.scopes):
    if service_account is None:
        raise RuntimeError("google-auth is not installed")
    return service_account.Credentials.from_service_account_file(str(path), scopes=list(scopes))


def encode_value(value: Any) -> Dict[str, Any]:
    """Convert a Python value into a Firestore typed ``Value``."""

    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": to_rfc3339_utc(value)}
    if isinstance(value, date):
        return {"stringValue": value.isoformat()}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    return {"stringValue": str(value)}


def encode_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {str(key): encode_value(val) for key, val in payload.items()}


def _status_of(exc: HttpError) -> int:
    status = getattr(getattr(exc, "resp", None), "status", None)
    try:
        return int(status or 0)
    except (TypeError, ValueError):
        return 0


def _translate(exc: HttpError, what: str) -> Exception:
    code = _status_of(exc)
    if code in RETRYABLE_STATUS:
        return RemoteUnavailable(f"{what} failed with {code}")
    return RemoteRejected(f"{what} rejected with {code}: {exc}")


class FirestoreRemoteStore:
    def __init__(
        self,
        credentials=None,
        settings: FirestoreSettings = FIRESTORE,
        *,
        service=None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self.service = service

    @property
    def documents_root(self) -> str:
        return f"projects/{self.settings.project_id}/databases/{self.settings.database}/documents"

    def connect(self):
        if self.service is None:
            if not self.settings.project_id:
                raise RemoteRejected("Firestore project id is not configured")
            creds = self.credentials
            if creds is None:
                creds = load_credentials(self.settings.credentials_path, self.settings.scopes)
                self.credentials = creds
            self.service = build("firestore", "v1", credentials=creds, cache_discovery=False)
        return self.service

    def _documents(self):
        return self.connect().projects().databases().documents()

    # ------------------------------------------------------------------
    # blocking calls, executed off the event loop
    def _create_sync(self, collection: str, payload: Dict[str, Any]) -> str:
        document_id: Optional[str] = payload.get("localId") or None
        request = self._documents().createDocument(
            parent=self.documents_root,
            collectionId=collection,
            documentId=document_id,
            body={"fields": encode_fields(payload)},
        )
        try:
            response = request.execute()
        except HttpError as exc:
            # The LocalId is the document id: a conflict means an earlier attempt landed.
            if _status_of(exc) == 409 and document_id:
                return document_id
            raise _translate(exc, f"create {collection}") from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise RemoteUnavailable(f"create {collection}: {exc}") from exc
        name = response.get("name") or ""
        return name.rsplit("/", 1)[-1] or (document_id or "")

    def _update_sync(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None:
        body = {k: v for k, v in payload.items() if k != "id"}
        request = self._documents().patch(
            name=f"{self.documents_root}/{collection}/{record_id}",
            body={"fields": encode_fields(body)},
            updateMask_fieldPaths=sorted(body.keys()),
        )
        try:
            request.execute()
        except HttpError as exc:
            raise _translate(exc, f"update {collection}/{record_id}") from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise RemoteUnavailable(f"update {collection}/{record_id}: {exc}") from exc

    def _delete_sync(self, collection: str, record_id: str) -> None:
        request = self._documents().delete(name=f"{self.documents_root}/{collection}/{record_id}")
        try:
            request.execute()
        except HttpError as exc:
            if _status_of(exc) == 404:
                return
            raise _translate(exc, f"delete {collection}/{record_id}") from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise RemoteUnavailable(f"delete {collection}/{record_id}: {exc}") from exc

    # ------------------------------------------------------------------
    async def create(self, collection: str, payload: Dict[str, Any]) -> str:
        return await asyncio.to_thread(self._create_sync, collection, payload)

    async def update(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._update_sync, collection, record_id, payload)

    async def delete(self, collection: str, record_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, collection, record_id)


__all__ = [
    "FirestoreRemoteStore",
    "RETRYABLE_STATUS",
    "encode_fields",
    "encode_value",
    "load_credentials",
]
