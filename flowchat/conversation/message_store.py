"""Ordered, append-only conversation log."""

from collections.abc import Callable, Sequence

from flowchat.conversation.models import Message
from flowchat.observability.logging import get_logger

logger = get_logger(__name__)

PersistHook = Callable[[list[Message]], None]


class MessageStore:
    """Single source of truth for the rendered conversation.

    The log is never reordered: it is appended to, its last entry is
    replaced, or it is replaced wholesale. Every effective mutation calls
    the persistence hook (unless persistence is disabled) and then every
    change listener with the new log.
    """

    def __init__(
        self,
        messages: Sequence[Message] = (),
        persist: PersistHook | None = None,
    ) -> None:
        self._messages: list[Message] = list(messages)
        self._persist = persist
        self._listeners: list[Callable[[Sequence[Message]], None]] = []

    def current(self) -> tuple[Message, ...]:
        """Read-only snapshot of the log."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def set_persist_hook(self, persist: PersistHook | None) -> None:
        self._persist = persist

    def subscribe(self, listener: Callable[[Sequence[Message]], None]) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[Sequence[Message]], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def append(self, message: Message) -> tuple[Message, ...]:
        self._messages.append(message)
        return self._changed()

    def map_last(self, fn: Callable[[Message], Message]) -> tuple[Message, ...]:
        """Replace the final entry with ``fn(last)``; no-op on an empty log."""
        if not self._messages:
            return self.current()
        self._messages[-1] = fn(self._messages[-1])
        return self._changed()

    def map_at(self, offset: int, fn: Callable[[Message], Message]) -> tuple[Message, ...]:
        """Replace the entry ``offset`` positions from the end.

        ``offset=1`` is the last entry, ``offset=2`` the one before it.
        No-op when the log is too short.
        """
        if offset < 1 or len(self._messages) < offset:
            return self.current()
        index = len(self._messages) - offset
        self._messages[index] = fn(self._messages[index])
        return self._changed()

    def replace_all(
        self, messages: Sequence[Message], *, persist: bool = True
    ) -> tuple[Message, ...]:
        self._messages = list(messages)
        return self._changed(persist=persist)

    def _changed(self, persist: bool = True) -> tuple[Message, ...]:
        snapshot = self.current()
        if persist and self._persist is not None:
            self._persist(list(snapshot))
        for listener in list(self._listeners):
            listener(snapshot)
        logger.debug("message_log_changed", size=len(snapshot))
        return snapshot
