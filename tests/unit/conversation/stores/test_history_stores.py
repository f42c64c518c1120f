"""Tests for HistoryStore implementations."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import redis

from flowchat.config.models.chat import ChatConfig
from flowchat.config.models.storage import StorageConfig
from flowchat.conversation.models import Message
from flowchat.conversation.store import storage_key
from flowchat.conversation.stores import (
    FileHistoryStore,
    InMemoryHistoryStore,
    RedisHistoryStore,
    create_history_store,
)
from flowchat.conversation.stores.redis import HistoryStoreConnectionError

HOUR_MS = 60 * 60 * 1000


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestStorageKey:
    """Tests for the per-deployment key."""

    def test_embedded_widget(self) -> None:
        assert storage_key() == "chatHistory"

    def test_full_page_with_namespace(self) -> None:
        assert storage_key(full_page=True, namespace="bot-7") == "chatHistoryInlinebot-7"

    def test_deployments_do_not_collide(self) -> None:
        assert storage_key(False, "a") != storage_key(True, "a")
        assert storage_key(False, "a") != storage_key(False, "b")


class TestInMemoryHistoryStore:
    """Tests for InMemoryHistoryStore."""

    @pytest.fixture
    def store(self, clock: FakeClock) -> InMemoryHistoryStore:
        return InMemoryHistoryStore("chatHistory", retention_ms=12 * HOUR_MS, clock=clock)

    def test_empty_store_loads_nothing(self, store: InMemoryHistoryStore) -> None:
        assert store.load() is None

    def test_save_and_load(self, store: InMemoryHistoryStore, welcome: Message) -> None:
        store.save("abc", [welcome, Message.user("hello")])
        record = store.load()
        assert record is not None
        assert record.session_id == "abc"
        assert [m.text for m in record.messages] == [welcome.text, "hello"]

    def test_empty_session_id_saved_as_none(self, store: InMemoryHistoryStore) -> None:
        record = store.save("", [])
        assert record.session_id is None

    def test_fresh_at_window_edge(
        self, store: InMemoryHistoryStore, clock: FakeClock, welcome: Message
    ) -> None:
        store.save("abc", [welcome])
        clock.now += 12 * HOUR_MS
        assert store.load() is not None

    def test_stale_record_deleted(
        self, store: InMemoryHistoryStore, clock: FakeClock, welcome: Message
    ) -> None:
        store.save("abc", [welcome])
        clock.now += 12 * HOUR_MS + 1
        assert store.load() is None
        clock.now -= 12 * HOUR_MS
        assert store.load() is None

    def test_unlimited_retention(self, clock: FakeClock, welcome: Message) -> None:
        store = InMemoryHistoryStore("k", retention_ms=None, clock=clock)
        store.save("abc", [welcome])
        clock.now += 1000 * HOUR_MS
        assert store.load() is not None

    def test_malformed_record_deleted(self, clock: FakeClock) -> None:
        backing = {"chatHistory": "{not json"}
        store = InMemoryHistoryStore("chatHistory", clock=clock, backing=backing)
        assert store.load() is None
        assert "chatHistory" not in backing

    def test_shared_backing_separate_keys(self, clock: FakeClock, welcome: Message) -> None:
        backing: dict[str, str] = {}
        embedded = InMemoryHistoryStore("chatHistory", clock=clock, backing=backing)
        inline = InMemoryHistoryStore("chatHistoryInline", clock=clock, backing=backing)
        embedded.save("a", [welcome])
        assert inline.load() is None
        assert set(backing) == {"chatHistory"}

    def test_clear(self, store: InMemoryHistoryStore, welcome: Message) -> None:
        store.save("abc", [welcome])
        store.clear()
        assert store.load() is None


class TestFileHistoryStore:
    """Tests for FileHistoryStore."""

    def test_round_trip_on_disk(self, tmp_path: Path, clock: FakeClock, welcome: Message) -> None:
        store = FileHistoryStore("chatHistory", tmp_path / "history", clock=clock)
        store.save("abc", [welcome])

        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data["sessionId"] == "abc"
        assert data["timestamp"] == clock.now
        assert data["messages"][0]["kind"] == "apiMessage"

        reopened = FileHistoryStore("chatHistory", tmp_path / "history", clock=clock)
        record = reopened.load()
        assert record is not None
        assert record.messages == [welcome]

    def test_missing_file(self, tmp_path: Path) -> None:
        assert FileHistoryStore("chatHistory", tmp_path).load() is None

    def test_unsafe_key_characters(self, tmp_path: Path) -> None:
        store = FileHistoryStore("chatHistory/../x", tmp_path)
        assert store.path.parent == tmp_path

    def test_clear_removes_file(self, tmp_path: Path, welcome: Message) -> None:
        store = FileHistoryStore("chatHistory", tmp_path)
        store.save(None, [welcome])
        store.clear()
        assert not store.path.exists()
        store.clear()


class TestRedisHistoryStore:
    """Tests for RedisHistoryStore against a mocked client."""

    @pytest.fixture
    def client(self) -> MagicMock:
        return MagicMock(spec=redis.Redis)

    def test_write_sets_ttl(self, client: MagicMock, clock: FakeClock, welcome: Message) -> None:
        store = RedisHistoryStore("chatHistory", client, prefix="fc", retention_ms=HOUR_MS, clock=clock)
        store.save("abc", [welcome])
        args, kwargs = client.set.call_args
        assert args[0] == "fc:chatHistory"
        assert kwargs["px"] == HOUR_MS

    def test_read_decodes_bytes(self, client: MagicMock, clock: FakeClock, welcome: Message) -> None:
        store = RedisHistoryStore("chatHistory", client, clock=clock)
        record = store.save("abc", [welcome])
        client.get.return_value = record.model_dump_json(by_alias=True).encode("utf-8")
        loaded = store.load()
        assert loaded is not None
        assert loaded.session_id == "abc"

    def test_connection_error_wrapped(self, client: MagicMock) -> None:
        client.get.side_effect = redis.ConnectionError("down")
        store = RedisHistoryStore("chatHistory", client)
        with pytest.raises(HistoryStoreConnectionError):
            store.load()

    def test_clear_deletes_key(self, client: MagicMock) -> None:
        RedisHistoryStore("chatHistory", client).clear()
        client.delete.assert_called_once_with("flowchat:chatHistory")


class TestCreateHistoryStore:
    """Tests for the backend factory."""

    def test_inmemory(self) -> None:
        chat = ChatConfig(api_host="https://h", chatflow_id="f", full_page=True)
        store = create_history_store(StorageConfig(backend="inmemory"), chat)
        assert isinstance(store, InMemoryHistoryStore)
        assert store.key == "chatHistoryInline"
        assert store.retention_ms == 12 * HOUR_MS

    def test_file(self, tmp_path: Path) -> None:
        chat = ChatConfig(api_host="https://h", chatflow_id="f", infinite_memory=True)
        store = create_history_store(StorageConfig(backend="file", path=str(tmp_path)), chat)
        assert isinstance(store, FileHistoryStore)
        assert store.retention_ms is None
