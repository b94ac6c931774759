import os
import time
from unittest.mock import Mock

import pytest

from rental_console.intent_store import (
    SLOT_NAME,
    FileIntentStore,
    IntentStore,
    MemoryIntentStore,
    RedisIntentStore,
    RentalIntent,
    build_intent_store,
)


@pytest.fixture
def intent() -> RentalIntent:
    return RentalIntent.model_validate(
        {"deviceNo": "01007008", "cartNo": "C-17", "cartIndex": 2, "siteNo": "s1", "amountHalalas": 300}
    )


@pytest.fixture(params=["file", "memory"])
def store(request, tmp_path):
    if request.param == "file":
        return FileIntentStore(tmp_path / "intents", ttl_sec=3600)
    return MemoryIntentStore(ttl_sec=3600)


def test_put_get_clear(store, intent):
    slot = store.for_session("session-a")
    assert slot.get() is None

    slot.put(intent)
    assert slot.get() == intent
    # reads are non-destructive
    assert slot.get() == intent

    slot.clear()
    assert slot.get() is None


def test_put_overwrites_slot(store, intent):
    slot = store.for_session("session-a")
    slot.put(intent)
    slot.put(intent.model_copy(update={"cart_index": 5}))

    assert slot.get().cart_index == 5


def test_sessions_are_isolated(store, intent):
    store.for_session("session-a").put(intent)

    assert store.for_session("session-b").get() is None
    store.for_session("session-b").clear()
    assert store.for_session("session-a").get() == intent


def test_clear_missing_slot_is_noop(store):
    store.for_session("never-written").clear()


def test_corrupted_slot_reads_as_empty(store):
    store.write("session-a", '{"deviceNo": "01007008", "cartIndex": "two"')

    assert store.for_session("session-a").get() is None


def test_invalid_selection_reads_as_empty(store):
    store.write("session-a", '{"deviceNo": "", "cartIndex": 2, "amountHalalas": 300}')

    assert store.for_session("session-a").get() is None


def test_file_store_survives_new_instance(tmp_path, intent):
    FileIntentStore(tmp_path).for_session("session-a").put(intent)

    assert FileIntentStore(tmp_path).for_session("session-a").get() == intent


def test_file_store_names_file_by_slot(tmp_path, intent):
    FileIntentStore(tmp_path).for_session("session-a").put(intent)

    files = [p.name for p in tmp_path.iterdir()]
    assert len(files) == 1
    assert files[0].endswith(f".{SLOT_NAME}.json")
    assert "session-a" not in files[0]


def test_file_store_expires_abandoned_intent(tmp_path, intent):
    store = FileIntentStore(tmp_path, ttl_sec=60)
    slot = store.for_session("session-a")
    slot.put(intent)

    path = next(tmp_path.iterdir())
    stale = time.time() - 120
    os.utime(path, (stale, stale))

    assert slot.get() is None


def test_redis_store_uses_ttl_keys(intent):
    client = Mock()
    client.get.return_value = intent.to_json()
    store = RedisIntentStore(client, ttl_sec=900)

    slot = store.for_session("session-a")
    slot.put(intent)
    assert slot.get() == intent
    slot.clear()

    key = f"intent:{SLOT_NAME}:session-a"
    client.setex.assert_called_once_with(key, 900, intent.to_json())
    client.get.assert_called_once_with(key)
    client.delete.assert_called_once_with(key)


def test_confirm_payload(intent):
    assert intent.confirm_payload("pay_123") == {
        "paymentId": "pay_123",
        "deviceNo": "01007008",
        "cartNo": "C-17",
        "cartIndex": 2,
        "siteNo": "s1",
        "amountHalalas": 300,
    }


def test_build_intent_store(tmp_path):
    assert isinstance(build_intent_store("memory", tmp_path, 60), MemoryIntentStore)
    assert isinstance(build_intent_store("file", tmp_path, 60), FileIntentStore)
    with pytest.raises(ValueError):
        build_intent_store("sqlite", tmp_path, 60)


def test_intent_store_base_is_abstract():
    with pytest.raises(TypeError):
        IntentStore()
