import asyncio
from datetime import datetime, timezone

from services.sync_status import SyncStatus, SyncStatusStore


def test_pending_changes_is_derived_from_counter():
    items = []
    store = SyncStatusStore(lambda: len(items))
    items.extend(["a", "b"])

    status = store.refresh()

    assert status.pending_changes == 2
    assert store.current == status


def test_syncing_is_never_published_while_offline():
    store = SyncStatusStore(lambda: 0)
    store.publish(syncing=True)
    assert store.current.syncing is True

    status = store.publish(online=False)

    assert status.online is False
    assert status.syncing is False


def test_last_sync_is_kept_when_not_given():
    store = SyncStatusStore(lambda: 0)
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    store.publish(last_sync=stamp)
    store.publish(online=False)
    assert store.current.last_sync == stamp


def test_listeners_only_hear_changes():
    store = SyncStatusStore(lambda: 0)
    seen = []
    store.subscribe(seen.append)

    store.publish(online=True)
    store.publish(online=False)

    assert seen == [SyncStatus(online=False)]


def test_failing_listener_does_not_break_publish():
    store = SyncStatusStore(lambda: 0)

    def broken(status):
        raise RuntimeError("render failed")

    store.subscribe(broken)
    assert store.publish(online=False).online is False


def test_stream_yields_current_then_changes():
    async def scenario():
        store = SyncStatusStore(lambda: 0)
        stream = store.stream()
        first = await stream.__anext__()
        store.publish(online=False)
        second = await stream.__anext__()
        await stream.aclose()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.online is True
    assert second.online is False
