"""Applies push-channel events to the message log.

One streamed turn moves the receiver from ``IDLE`` to ``PRODUCING`` on
``start`` and back on ``end``. Tokens and citations always target the last
entry of the log, which is the pending assistant turn while producing.
"""

from enum import Enum

from flowchat.conversation.message_store import MessageStore
from flowchat.conversation.models import Message, MessageKind, SourceDocument
from flowchat.observability.logging import get_logger
from flowchat.observability.metrics import STREAM_TOKENS, STREAM_TURNS
from flowchat.runtime.typing_bus import TypingSignalBus
from flowchat.transport.push import PushEvent

logger = get_logger(__name__)

_ASSISTANT_KINDS = (MessageKind.ASSISTANT_REPLY, MessageKind.ASSISTANT_PENDING)


class ReceiverState(str, Enum):
    IDLE = "idle"
    PRODUCING = "producing"


class StreamingReceiver:
    """State machine for streamed assistant turns."""

    def __init__(
        self,
        store: MessageStore,
        typing: TypingSignalBus,
        chatflow_id: str = "",
    ) -> None:
        self._store = store
        self._typing = typing
        self._chatflow_id = chatflow_id
        self._state = ReceiverState.IDLE
        self._late_stream_expected = False

    @property
    def state(self) -> ReceiverState:
        return self._state

    def handle(self, event: PushEvent) -> None:
        """Route one push event; ``connect`` is not a turn event and is ignored."""
        if event.type == "start":
            self.start()
        elif event.type == "token":
            self.token(
                event.content,
                message_id=event.message_id,
                source_documents=event.source_documents,
                file_annotations=event.file_annotations,
            )
        elif event.type == "sourceDocuments":
            self.source_documents(event.source_documents or [])
        elif event.type == "end":
            self.end()

    def expect_late_stream(self, expected: bool = True) -> None:
        """Mark the last reply as delivered ahead of its own stream.

        The request/response reply of a push submission can land before the
        stream opens. The next ``start`` then takes over that reply instead
        of opening a second turn for the same answer.
        """
        self._late_stream_expected = expected

    def start(self) -> None:
        if self._state == ReceiverState.PRODUCING:
            logger.warning("stream_start_while_producing")
            return
        self._state = ReceiverState.PRODUCING
        last = self._store.last()
        adopt = (
            self._late_stream_expected
            and last is not None
            and last.kind == MessageKind.ASSISTANT_REPLY
        )
        if adopt:
            self._store.map_last(
                lambda message: message.model_copy(
                    update={"text": "", "kind": MessageKind.ASSISTANT_PENDING}
                )
            )
            logger.debug("stream_turn_adopted_reply")
        else:
            self._store.append(Message(kind=MessageKind.ASSISTANT_PENDING))
        self._late_stream_expected = False
        self._typing.set(True)
        STREAM_TURNS.labels(chatflow_id=self._chatflow_id).inc()
        logger.debug("stream_turn_started")

    def token(
        self,
        text: str,
        message_id: str | None = None,
        source_documents: list[SourceDocument] | None = None,
        file_annotations: list | None = None,
    ) -> None:
        """Append ``text`` to the last assistant turn."""
        if not self._last_is_assistant():
            logger.warning("stream_token_without_turn")
            return

        def _apply(message: Message) -> Message:
            update: dict = {
                "text": message.text + text,
                "kind": MessageKind.ASSISTANT_REPLY,
            }
            if message_id is not None:
                update["id"] = message_id
            if source_documents is not None:
                update["source_documents"] = source_documents
            if file_annotations is not None:
                update["file_annotations"] = file_annotations
            return message.model_copy(update=update)

        self._store.map_last(_apply)
        STREAM_TOKENS.labels(chatflow_id=self._chatflow_id).inc()

    def source_documents(self, documents: list[SourceDocument]) -> None:
        """Set citations on the last assistant turn, whenever they arrive."""
        if not self._last_is_assistant():
            logger.warning("stream_sources_without_turn", count=len(documents))
            return
        self._store.map_last(
            lambda message: message.model_copy(update={"source_documents": documents})
        )

    def end(self) -> None:
        """Close the turn; repeated terminal events are ignored."""
        if self._state == ReceiverState.IDLE:
            return
        self._state = ReceiverState.IDLE
        self._typing.set(False)
        logger.debug("stream_turn_ended")

    def reset(self) -> None:
        """Forget a half-received turn without touching the log."""
        self._state = ReceiverState.IDLE
        self._late_stream_expected = False
        self._typing.set(False)

    def _last_is_assistant(self) -> bool:
        """Whether the last entry is the turn being produced."""
        last = self._store.last()
        if last is None or last.kind not in _ASSISTANT_KINDS:
            return False
        return self._state == ReceiverState.PRODUCING or last.is_pending
