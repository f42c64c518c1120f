"""History stores for conversation persistence."""

from flowchat.config.models.chat import ChatConfig
from flowchat.config.models.storage import StorageConfig
from flowchat.conversation.store import HistoryStore, storage_key
from flowchat.conversation.stores.file import FileHistoryStore
from flowchat.conversation.stores.inmemory import InMemoryHistoryStore
from flowchat.conversation.stores.redis import RedisHistoryStore


def create_history_store(storage: StorageConfig, chat: ChatConfig) -> HistoryStore:
    """Build the configured history store for a chat deployment."""
    key = storage_key(chat.full_page, chat.namespace)
    retention_ms = chat.retention_ms

    if storage.backend == "file":
        return FileHistoryStore(key, storage.path, retention_ms=retention_ms)
    if storage.backend == "redis":
        return RedisHistoryStore.from_url(
            key,
            storage.connection_url or "redis://localhost:6379/0",
            prefix=storage.key_prefix,
            retention_ms=retention_ms,
        )
    return InMemoryHistoryStore(key, retention_ms=retention_ms)


__all__ = [
    "HistoryStore",
    "InMemoryHistoryStore",
    "FileHistoryStore",
    "RedisHistoryStore",
    "create_history_store",
    "storage_key",
]
