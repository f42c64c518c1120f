"""Fixtures for ConversationEngine tests."""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from flowchat.client import FeedbackResult, FlowClient
from flowchat.config.models.chat import ChatConfig
from flowchat.conversation.models import ChatbotConfig, parse_submit_result
from flowchat.conversation.store import storage_key
from flowchat.conversation.stores import InMemoryHistoryStore
from flowchat.engine import ConversationEngine, EngineObservers
from flowchat.runtime.previews import PreviewManager
from flowchat.runtime.typing_bus import TypingSignalBus
from flowchat.transport.push import EventHandler


class FakePushChannel:
    """Stands in for PushChannel; tests drive events through ``emit``."""

    def __init__(self, handler: EventHandler) -> None:
        self.handler = handler
        self.channel_id: str | None = None
        self.connected = False
        self.closed = 0

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed += 1

    def emit(self, event: Any) -> None:
        if event.type == "connect":
            self.channel_id = event.id
        self.handler(event)


@pytest.fixture
def client() -> MagicMock:
    """Mocked FlowClient answering every call successfully."""
    mock = MagicMock(spec=FlowClient)
    mock.check_streaming_available = AsyncMock(return_value=False)
    mock.get_config = AsyncMock(return_value=ChatbotConfig())
    mock.submit = AsyncMock(return_value=parse_submit_result({"text": "hi!"}))
    mock.send_feedback = AsyncMock(return_value=FeedbackResult(id="fb-1"))
    mock.update_feedback = AsyncMock(return_value=FeedbackResult(id="fb-1", content="thanks"))
    mock.add_lead = AsyncMock(return_value={"id": "lead-1"})
    mock.download_file = AsyncMock(return_value=b"file")
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def backing() -> dict[str, str]:
    """Storage area shared by every engine built in one test."""
    return {}


@pytest.fixture
def channels() -> list[FakePushChannel]:
    return []


@pytest.fixture
def release() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_engine(
    client: MagicMock,
    backing: dict[str, str],
    channels: list[FakePushChannel],
    typing_bus: TypingSignalBus,
    release: MagicMock,
) -> Callable[..., ConversationEngine]:
    """Factory building engines wired to the mocked client."""

    def _push_channel(_client: Any, handler: EventHandler) -> FakePushChannel:
        channel = FakePushChannel(handler)
        channels.append(channel)
        return channel

    def _make(
        config: ChatConfig,
        observers: EngineObservers | None = None,
        store_type: type[InMemoryHistoryStore] = InMemoryHistoryStore,
    ) -> ConversationEngine:
        def _history(config: ChatConfig) -> InMemoryHistoryStore:
            return store_type(
                storage_key(config.full_page, config.namespace),
                retention_ms=config.retention_ms,
                backing=backing,
            )

        return ConversationEngine(
            config,
            typing=typing_bus,
            previews=PreviewManager(release=release),
            client_factory=lambda _config: client,
            history_store_factory=_history,
            push_channel_factory=_push_channel,
            observers=observers,
        )

    return _make

