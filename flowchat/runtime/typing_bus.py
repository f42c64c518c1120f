"""Publish/subscribe flag for "the assistant is producing output"."""

from collections.abc import Callable

from flowchat.observability.logging import get_logger

logger = get_logger(__name__)

TypingListener = Callable[[bool], None]


class TypingSignalBus:
    """Boolean signal shared by every widget of one page.

    One instance is created by the host and injected into each component
    that raises or observes the signal. Listeners are called synchronously,
    in subscription order, only when the value actually changes.
    """

    def __init__(self, initial: bool = False) -> None:
        self._value = initial
        self._listeners: list[TypingListener] = []

    def get(self) -> bool:
        return self._value

    def set(self, value: bool) -> None:
        value = bool(value)
        if value == self._value:
            return
        self._value = value
        logger.debug("typing_signal_changed", typing=value, listeners=len(self._listeners))
        for listener in list(self._listeners):
            listener(value)

    def subscribe(self, listener: TypingListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: TypingListener) -> None:
        """Remove a listener; unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
