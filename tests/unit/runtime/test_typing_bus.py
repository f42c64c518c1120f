"""Tests for TypingSignalBus."""

from unittest.mock import MagicMock, call

from flowchat.runtime.typing_bus import TypingSignalBus


class TestTypingSignalBus:
    """Tests for TypingSignalBus."""

    def test_initial_value(self) -> None:
        assert TypingSignalBus().get() is False
        assert TypingSignalBus(initial=True).get() is True

    def test_notifies_in_subscription_order(self) -> None:
        bus = TypingSignalBus()
        calls: list[str] = []
        bus.subscribe(lambda v: calls.append(f"a:{v}"))
        bus.subscribe(lambda v: calls.append(f"b:{v}"))
        bus.set(True)
        assert calls == ["a:True", "b:True"]

    def test_unchanged_value_not_broadcast(self) -> None:
        bus = TypingSignalBus()
        listener = MagicMock()
        bus.subscribe(listener)
        bus.set(False)
        bus.set(True)
        bus.set(True)
        bus.set(False)
        assert listener.call_args_list == [call(True), call(False)]

    def test_unsubscribe(self) -> None:
        bus = TypingSignalBus()
        listener = MagicMock()
        bus.subscribe(listener)
        bus.unsubscribe(listener)
        bus.unsubscribe(listener)
        bus.set(True)
        listener.assert_not_called()
        assert bus.subscriber_count == 0

    def test_shared_between_widgets(self) -> None:
        bus = TypingSignalBus()
        seen_by_other_widget: list[bool] = []
        bus.subscribe(seen_by_other_widget.append)
        bus.set(True)
        assert bus.get() is True
        assert seen_by_other_widget == [True]
