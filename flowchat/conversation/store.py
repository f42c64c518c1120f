"""HistoryStore abstract interface."""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from pydantic import ValidationError

from flowchat.conversation.models import Message, SessionRecord
from flowchat.observability.logging import get_logger
from flowchat.observability.metrics import HISTORY_DISCARDS, HISTORY_WRITES

logger = get_logger(__name__)

HISTORY_KEY_BASE = "chatHistory"


def storage_key(full_page: bool = False, namespace: str = "") -> str:
    """Per-deployment storage key.

    Full-page and embedded widgets of the same flow keep separate histories,
    as do different caller namespaces.
    """
    return HISTORY_KEY_BASE + ("Inline" if full_page else "") + (namespace or "")


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class HistoryStore(ABC):
    """Persisted message history for one storage key.

    Subclasses provide raw string storage; this class owns serialization
    and the freshness rule. A record older than the retention window, or
    one that cannot be parsed, is removed and reported as absent.
    """

    backend_name = "abstract"

    def __init__(
        self,
        key: str,
        retention_ms: int | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the store.

        Args:
            key: Storage key, see ``storage_key``
            retention_ms: Freshness window; None keeps history forever
            clock: Returns epoch milliseconds
        """
        self.key = key
        self.retention_ms = retention_ms
        self._clock = clock

    @abstractmethod
    def _read(self) -> str | None:
        """Return the raw stored value, or None."""
        pass

    @abstractmethod
    def _write(self, value: str) -> None:
        """Store the raw value."""
        pass

    @abstractmethod
    def _delete(self) -> None:
        """Remove the stored value if present."""
        pass

    def save(self, session_id: str | None, messages: Sequence[Message]) -> SessionRecord:
        record = SessionRecord(
            session_id=session_id or None,
            timestamp=self._clock(),
            messages=list(messages),
        )
        self._write(record.model_dump_json(by_alias=True))
        HISTORY_WRITES.labels(backend=self.backend_name).inc()
        return record

    def load(self) -> SessionRecord | None:
        raw = self._read()
        if raw is None:
            return None

        try:
            record = SessionRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "history_record_malformed",
                key=self.key,
                error=str(e),
            )
            HISTORY_DISCARDS.labels(backend=self.backend_name, reason="malformed").inc()
            self._delete()
            return None

        if not record.is_fresh(self._clock(), self.retention_ms):
            logger.info(
                "history_record_expired",
                key=self.key,
                age_ms=self._clock() - record.timestamp,
            )
            HISTORY_DISCARDS.labels(backend=self.backend_name, reason="expired").inc()
            self._delete()
            return None

        return record

    def clear(self) -> None:
        self._delete()
