"""In-memory implementation of HistoryStore."""

from collections.abc import Callable

from flowchat.conversation.store import HistoryStore, now_ms


class InMemoryHistoryStore(HistoryStore):
    """In-memory implementation of HistoryStore for testing and development.

    Several stores may share one ``backing`` dict to model widgets on the
    same page sharing one storage area.
    """

    backend_name = "inmemory"

    def __init__(
        self,
        key: str,
        retention_ms: int | None = None,
        clock: Callable[[], int] = now_ms,
        backing: dict[str, str] | None = None,
    ) -> None:
        super().__init__(key, retention_ms=retention_ms, clock=clock)
        self._data: dict[str, str] = backing if backing is not None else {}

    def _read(self) -> str | None:
        return self._data.get(self.key)

    def _write(self, value: str) -> None:
        self._data[self.key] = value

    def _delete(self) -> None:
        self._data.pop(self.key, None)
