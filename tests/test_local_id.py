import re

from services.local_id import is_local_id, local_id_millis, new_local_id


def test_new_local_id_format():
    value = new_local_id()
    assert re.fullmatch(r"local_\d+_[a-z0-9]{9}", value)


def test_new_local_id_embeds_timestamp():
    value = new_local_id(now_ms=1700000000123)
    assert value.startswith("local_1700000000123_")
    assert local_id_millis(value) == 1700000000123


def test_local_ids_are_unique_within_session():
    ids = {new_local_id() for _ in range(2000)}
    assert len(ids) == 2000


def test_local_ids_order_by_creation_time():
    earlier = new_local_id(now_ms=1000)
    later = new_local_id(now_ms=2000)
    assert sorted([later, earlier], key=local_id_millis) == [earlier, later]


def test_is_local_id():
    assert is_local_id("local_1_abc")
    assert not is_local_id("3f2a9c")
    assert not is_local_id(None)
    assert local_id_millis("3f2a9c") is None
