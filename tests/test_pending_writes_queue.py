import pytest

from services.pending_writes_queue import PendingWrite, PendingWriteQueue
from storage.queue_store import SqlQueueStore


def _write(name, local_id=None, collection="events", op="create"):
    return PendingWrite(
        collection=collection,
        payload={"name": name, "localId": local_id or f"local_1_{name}"},
        op=op,
    )


def test_enqueue_keeps_fifo_order_and_drain_empties():
    queue = PendingWriteQueue()
    for name in ("A", "B", "C"):
        queue.enqueue(_write(name))
    assert queue.length() == 3

    batch = queue.drain()
    assert [w.payload["name"] for w in batch] == ["A", "B", "C"]
    assert queue.length() == 0


def test_writes_to_same_record_are_not_coalesced():
    queue = PendingWriteQueue()
    queue.enqueue(_write("A", local_id="local_1_x"))
    queue.enqueue(_write("A", local_id="local_2_x"))
    assert len(queue) == 2


def test_restore_puts_retries_ahead_of_newer_writes():
    queue = PendingWriteQueue()
    queue.enqueue(_write("A"))
    queue.enqueue(_write("B"))
    batch = queue.drain()
    queue.enqueue(_write("C"))

    queue.restore(batch)

    assert [w.payload["name"] for w in queue.peek()] == ["A", "B", "C"]


def test_enqueue_validates_op_and_local_id():
    queue = PendingWriteQueue()
    with pytest.raises(ValueError):
        queue.enqueue(_write("A", op="upsert"))
    with pytest.raises(ValueError):
        queue.enqueue(PendingWrite(collection="events", payload={"name": "A"}))


def test_with_failure_only_touches_retry_fields():
    write = _write("A")
    failed = write.with_failure("timeout")

    assert failed.retry_count == 1
    assert failed.last_error == "timeout"
    assert failed.payload == write.payload
    assert failed.created_at == write.created_at
    assert write.retry_count == 0


def test_durable_queue_survives_restart(session_factory):
    store = SqlQueueStore(session_factory)
    queue = PendingWriteQueue(store=store)
    queue.enqueue(_write("A"))
    queue.enqueue(_write("B"))
    queue.enqueue(_write("C"))

    batch = queue.drain()
    queue.acknowledge(batch[0])
    queue.restore([batch[1].with_failure("503"), batch[2]])

    reloaded = PendingWriteQueue(store=SqlQueueStore(session_factory))
    names = [w.payload["name"] for w in reloaded.peek()]
    assert names == ["B", "C"]
    assert reloaded.peek()[0].retry_count == 1
    assert reloaded.peek()[0].last_error == "503"
    assert reloaded.peek()[0].created_at.tzinfo is not None


def test_discard_clears_durable_rows(session_factory):
    queue = PendingWriteQueue(store=SqlQueueStore(session_factory))
    queue.enqueue(_write("A"))
    queue.discard()

    assert len(queue) == 0
    assert SqlQueueStore(session_factory).load() == []


def test_durable_writes_to_same_local_id_are_kept_apart(session_factory):
    queue = PendingWriteQueue(store=SqlQueueStore(session_factory))
    queue.enqueue(_write("first", local_id="local_1_same"))
    queue.enqueue(_write("second", local_id="local_1_same"))
    assert len(queue) == 2

    batch = queue.drain()
    queue.acknowledge(batch[0])
    queue.restore([batch[1].with_failure("503")])

    reloaded = SqlQueueStore(session_factory).load()
    assert [w.payload["name"] for w in reloaded] == ["second"]
    assert reloaded[0].seq == batch[1].seq
    assert reloaded[0].retry_count == 1
