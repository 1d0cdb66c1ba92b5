import asyncio
from datetime import datetime, timezone

import httplib2
import pytest
from googleapiclient.errors import HttpError

from core.settings import FirestoreSettings
from services.firestore_store import FirestoreRemoteStore, encode_fields, encode_value
from services.remote_store import RemoteRejected, RemoteUnavailable


def _http_error(status):
    return HttpError(httplib2.Response({"status": status}), b"")


class FakeRequest:
    def __init__(self, response=None, error=None):
        self.response = response or {}
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.response


class FakeDocuments:
    def __init__(self):
        self.calls = []
        self.error = None

    def _request(self, name, kwargs, response):
        self.calls.append((name, kwargs))
        return FakeRequest(response, self.error)

    def createDocument(self, **kwargs):
        doc_id = kwargs.get("documentId") or "auto-id"
        response = {"name": f"{kwargs['parent']}/{kwargs['collectionId']}/{doc_id}"}
        return self._request("create", kwargs, response)

    def patch(self, **kwargs):
        return self._request("patch", kwargs, {})

    def delete(self, **kwargs):
        return self._request("delete", kwargs, {})


class FakeService:
    def __init__(self):
        self.docs = FakeDocuments()

    def projects(self):
        return self

    def databases(self):
        return self

    def documents(self):
        return self.docs


@pytest.fixture()
def service():
    return FakeService()


@pytest.fixture()
def store(service):
    settings = FirestoreSettings(project_id="moi-test")
    return FirestoreRemoteStore(settings=settings, service=service)


def test_encode_value_types():
    stamp = datetime(2024, 12, 25, 10, 30, tzinfo=timezone.utc)
    assert encode_value(None) == {"nullValue": None}
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(5000) == {"integerValue": "5000"}
    assert encode_value(12.5) == {"doubleValue": 12.5}
    assert encode_value("Raj") == {"stringValue": "Raj"}
    assert encode_value(stamp) == {"timestampValue": "2024-12-25T10:30:00Z"}
    assert encode_value(["a", 1]) == {
        "arrayValue": {"values": [{"stringValue": "a"}, {"integerValue": "1"}]}
    }
    assert encode_fields({"meta": {"n": 1}}) == {
        "meta": {"mapValue": {"fields": {"n": {"integerValue": "1"}}}}
    }


def test_create_uses_local_id_as_document_id(store, service):
    record_id = asyncio.run(store.create("events", {"name": "X", "localId": "local_1_abc"}))

    name, kwargs = service.docs.calls[0]
    assert record_id == "local_1_abc"
    assert name == "create"
    assert kwargs["parent"] == "projects/moi-test/databases/(default)/documents"
    assert kwargs["collectionId"] == "events"
    assert kwargs["body"]["fields"]["name"] == {"stringValue": "X"}


def test_create_conflict_means_already_applied(store, service):
    service.docs.error = _http_error(409)
    assert asyncio.run(store.create("events", {"localId": "local_1_abc"})) == "local_1_abc"


@pytest.mark.parametrize("status", [429, 500, 503])
def test_retryable_status_is_unavailable(store, service, status):
    service.docs.error = _http_error(status)
    with pytest.raises(RemoteUnavailable):
        asyncio.run(store.create("events", {"localId": "local_1_abc"}))


def test_client_error_is_rejected(store, service):
    service.docs.error = _http_error(400)
    with pytest.raises(RemoteRejected):
        asyncio.run(store.update("events", "ev-1", {"name": "Y"}))


def test_transport_error_is_unavailable(store, service):
    service.docs.error = OSError("connection reset")
    with pytest.raises(RemoteUnavailable):
        asyncio.run(store.delete("events", "ev-1"))


def test_update_masks_only_given_fields(store, service):
    asyncio.run(store.update("events", "ev-1", {"id": "ev-1", "name": "Y", "location": "Madurai"}))

    name, kwargs = service.docs.calls[0]
    assert kwargs["name"].endswith("/documents/events/ev-1")
    assert kwargs["updateMask_fieldPaths"] == ["location", "name"]
    assert "id" not in kwargs["body"]["fields"]


def test_delete_missing_document_is_done(store, service):
    service.docs.error = _http_error(404)
    asyncio.run(store.delete("events", "ev-1"))
    assert service.docs.calls[0][0] == "delete"


def test_missing_project_is_rejected():
    store = FirestoreRemoteStore(settings=FirestoreSettings(project_id=None))
    with pytest.raises(RemoteRejected):
        store.connect()
