"""Redis implementation of HistoryStore.

Message log mutations are synchronous, so this store uses the blocking
redis client. The freshness window is also set as the key TTL, letting
redis drop abandoned sessions on its own.
"""

from collections.abc import Callable

import redis

from flowchat.conversation.store import HistoryStore, now_ms
from flowchat.exceptions import FlowChatError
from flowchat.observability.logging import get_logger

logger = get_logger(__name__)


class HistoryStoreConnectionError(FlowChatError):
    """Raised when the redis backend cannot be reached."""


class RedisHistoryStore(HistoryStore):
    """Redis implementation of HistoryStore.

    Key structure:
    - {prefix}:{storage_key} - serialized SessionRecord
    """

    backend_name = "redis"

    def __init__(
        self,
        key: str,
        client: redis.Redis,
        prefix: str = "flowchat",
        retention_ms: int | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(key, retention_ms=retention_ms, clock=clock)
        self._client = client
        self._redis_key = f"{prefix}:{key}"

    @classmethod
    def from_url(
        cls,
        key: str,
        url: str,
        prefix: str = "flowchat",
        retention_ms: int | None = None,
    ) -> "RedisHistoryStore":
        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(key, client, prefix=prefix, retention_ms=retention_ms)

    def _read(self) -> str | None:
        try:
            value = self._client.get(self._redis_key)
        except redis.RedisError as e:
            logger.error("redis_history_get_error", key=self._redis_key, error=str(e))
            raise HistoryStoreConnectionError(f"Failed to read history: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    def _write(self, value: str) -> None:
        try:
            self._client.set(self._redis_key, value, px=self.retention_ms)
        except redis.RedisError as e:
            logger.error("redis_history_set_error", key=self._redis_key, error=str(e))
            raise HistoryStoreConnectionError(f"Failed to write history: {e}") from e

    def _delete(self) -> None:
        try:
            self._client.delete(self._redis_key)
        except redis.RedisError as e:
            logger.error("redis_history_delete_error", key=self._redis_key, error=str(e))
            raise HistoryStoreConnectionError(f"Failed to delete history: {e}") from e
