"""Conversation engine: session lifecycle and the submission protocol.

The engine owns the message log of one chat widget. ``start()`` restores
persisted history, picks the session identity strategy, loads the flow's
chatbot config and opens the push channel when the backend streams.
``submit()`` sends one user turn and applies the reply, either streamed
through the push channel or returned whole by the request/response call.

Every entry point runs to completion on the event loop before the next one
is processed. The only suspension points are the backend calls and file
reads, so replies may land after the session was reset; a generation
counter drops those.
"""

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from flowchat.client import FeedbackResult, FlowClient, FlowClientError
from flowchat.config import Settings, get_settings
from flowchat.config.models.chat import DEFAULT_ERROR_MESSAGE, ChatConfig
from flowchat.config.models.storage import StorageConfig
from flowchat.conversation.identity import IdentityStrategy, SessionIdentity
from flowchat.conversation.message_store import MessageStore
from flowchat.conversation.models import (
    ChatbotConfig,
    FeedbackRating,
    HistoryTurn,
    LeadsConfig,
    Message,
    MessageKind,
    Preview,
    SessionRecord,
    SourceDocument,
    SubmitPayload,
    SubmitResult,
    UploadsConfig,
)
from flowchat.conversation.sources import dedupe_source_documents
from flowchat.conversation.store import HistoryStore
from flowchat.conversation.stores import create_history_store
from flowchat.exceptions import EngineNotStartedError, FlowChatError
from flowchat.observability.logging import get_logger, setup_logging
from flowchat.observability.metrics import HISTORY_ERRORS, SUBMISSION_LATENCY, SUBMISSIONS
from flowchat.runtime.previews import (
    PreviewManager,
    audio_preview,
    read_file_previews,
)
from flowchat.runtime.typing_bus import TypingSignalBus
from flowchat.transport.push import EventHandler, PushChannel, PushEvent
from flowchat.transport.receiver import StreamingReceiver
from flowchat.transport.selector import Transport, TransportSelector

logger = get_logger(__name__)

ClientFactory = Callable[[ChatConfig], FlowClient]
HistoryStoreFactory = Callable[[ChatConfig], HistoryStore]
PushChannelFactory = Callable[[FlowClient, EventHandler], PushChannel]

# Storage failures degrade to an unpersisted session.
HISTORY_FAILURES_CAUGHT = (FlowChatError, OSError)


def browser_timezone(now: datetime | None = None) -> str:
    """Local UTC offset as ``GMT+HH`` or ``GMT+HH:MM``."""
    now = now or datetime.now().astimezone()
    offset = now.utcoffset()
    total_minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    suffix = f":{minutes:02d}" if minutes else ""
    return f"GMT{sign}{hours:02d}{suffix}"


def failure_text(error: object, configured: str | None = None) -> str:
    """Text of the error turn shown for a failed submission.

    A configured error message always wins. Otherwise a plain string is
    shown verbatim, an exception with a message is shown once prefixed with
    ``Error:``, and anything else gets the default text.
    """
    if configured:
        return configured
    if isinstance(error, str) and error:
        return error
    message = getattr(error, "message", None) or (str(error) if error is not None else "")
    if isinstance(error, BaseException) and message:
        stripped = message.strip()
        if stripped.startswith("Error:"):
            stripped = stripped[len("Error:"):].strip()
        if stripped:
            return f"Error: {stripped}"
    return DEFAULT_ERROR_MESSAGE


def _default_client(config: ChatConfig) -> FlowClient:
    return FlowClient(base_url=config.api_host, timeout=config.request_timeout)


def _default_history_store(config: ChatConfig) -> HistoryStore:
    return create_history_store(StorageConfig(backend="inmemory"), config)


def _default_push_channel(client: FlowClient, handler: EventHandler) -> PushChannel:
    return PushChannel(client.http, handler)


@dataclass
class EngineObservers:
    """Host callbacks invoked whenever the observed value changes."""

    observe_user_input: Callable[[str], None] | None = None
    observe_loading: Callable[[bool], None] | None = None
    observe_messages: Callable[[Sequence[Message]], None] | None = None


class ConversationEngine:
    """Orchestrates one chat session for a host widget.

    Collaborators that depend on the deployment (HTTP client, history store,
    push channel) are built by factories at ``start()`` so that a
    configuration change is a plain ``stop()``/``start(config)`` cycle.
    """

    def __init__(
        self,
        config: ChatConfig,
        *,
        typing: TypingSignalBus | None = None,
        previews: PreviewManager | None = None,
        client_factory: ClientFactory = _default_client,
        history_store_factory: HistoryStoreFactory = _default_history_store,
        push_channel_factory: PushChannelFactory = _default_push_channel,
        observers: EngineObservers | None = None,
    ) -> None:
        self._config = config
        self._typing = typing if typing is not None else TypingSignalBus()
        self._previews = previews if previews is not None else PreviewManager()
        self._client_factory = client_factory
        self._history_store_factory = history_store_factory
        self._push_channel_factory = push_channel_factory
        self._observers = observers if observers is not None else EngineObservers()

        self._store = MessageStore([self._welcome()])
        self._receiver = StreamingReceiver(self._store, self._typing, config.chatflow_id)
        self._selector = TransportSelector(config)
        self._client: FlowClient | None = None
        self._history: HistoryStore | None = None
        self._identity: SessionIdentity | None = None
        self._channel: PushChannel | None = None

        self._generation = 0
        self._started = False
        self._loading = False
        self._user_input = ""
        self._streaming_available = False
        self._time_zone: str | None = None
        self._chatbot_config = ChatbotConfig()
        self._lead_email: str | None = None
        self._lead_saved = False
        self._feedback: dict[str, FeedbackResult] = {}
        self._chat_id = self._new_chat_id()

        if self._observers.observe_messages is not None:
            self._store.subscribe(self._observers.observe_messages)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> "ConversationEngine":
        """Build an engine wired to the configured storage backend and logging.

        Without explicit settings the process-wide ``get_settings()`` is used.
        """
        if settings is None:
            settings = get_settings()
        logging_config = settings.observability.logging
        setup_logging(
            level=logging_config.level,
            format=logging_config.format,
            redact_pii=logging_config.redact_pii,
        )
        return cls(
            settings.chat,
            history_store_factory=lambda chat: create_history_store(settings.storage, chat),
            **kwargs,
        )

    # Read-only state

    @property
    def config(self) -> ChatConfig:
        return self._config

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._store.current()

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def user_input(self) -> str:
        return self._user_input

    @property
    def typing(self) -> TypingSignalBus:
        return self._typing

    @property
    def previews(self) -> PreviewManager:
        return self._previews

    @property
    def receiver(self) -> StreamingReceiver:
        return self._receiver

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def session_id(self) -> str | None:
        return self._identity.resolve() if self._identity else None

    @property
    def chat_id(self) -> str:
        """Id used to file feedback and leads for this widget."""
        return self._chat_id

    @property
    def streaming_available(self) -> bool:
        return self._streaming_available

    @property
    def transport(self) -> Transport:
        return self._selector.select(self._streaming_available)

    @property
    def starter_prompts(self) -> list[str]:
        return self._chatbot_config.prompts

    @property
    def feedback_enabled(self) -> bool:
        return self._chatbot_config.feedback_enabled

    @property
    def uploads_config(self) -> UploadsConfig | None:
        return self._chatbot_config.uploads

    @property
    def leads_config(self) -> LeadsConfig | None:
        return self._chatbot_config.leads

    @property
    def lead_saved(self) -> bool:
        return self._lead_saved

    @property
    def input_enabled(self) -> bool:
        """False while loading or while a required lead is missing."""
        if self._loading:
            return False
        leads = self._chatbot_config.leads
        return not (leads is not None and leads.status and not self._lead_saved)

    # Lifecycle

    async def start(self, config: ChatConfig | None = None) -> None:
        """Initialize the session, restarting it if already started."""
        if self._started:
            await self.stop()
        if config is not None:
            self._config = config
            self._selector = TransportSelector(config)
            self._receiver = StreamingReceiver(self._store, self._typing, config.chatflow_id)
            self._chat_id = self._new_chat_id()
            self._store.replace_all([self._welcome()], persist=False)

        self._generation += 1
        generation = self._generation
        self._started = True
        config = self._config
        self._streaming_available = False
        self._time_zone = None
        log = logger.bind(chatflow_id=config.chatflow_id)

        self._client = self._client_factory(config)
        self._history = None if config.clear_on_refresh else self._history_store_factory(config)
        self._store.set_persist_hook(self._persist if self._history is not None else None)

        record = self._load_history()
        persisted_id = record.session_id if record else None
        if record and record.messages:
            self._store.replace_all(record.messages, persist=False)
            log.info("history_restored", messages=len(record.messages))

        request_response = self._selector.should_use_request_response()
        if request_response:
            self._identity = SessionIdentity(
                IdentityStrategy.LOCAL, persisted_id, config.session_id_length
            )
            self._time_zone = browser_timezone() if config.use_timezone else None
        else:
            self._identity = SessionIdentity(
                IdentityStrategy.PUSH_CHANNEL, persisted_id, config.session_id_length
            )
            self._streaming_available = await self._check_streaming(config)
            if generation != self._generation:
                return

        chatbot_config = await self._load_chatbot_config(config)
        if generation != self._generation:
            return
        self._chatbot_config = chatbot_config
        leads = chatbot_config.leads
        if leads is not None and leads.status and not self._lead_saved:
            if not any(m.kind == MessageKind.LEAD_CAPTURE_PROMPT for m in self._store.current()):
                self._store.append(Message(kind=MessageKind.LEAD_CAPTURE_PROMPT))

        if not request_response and self._streaming_available:
            self._channel = self._push_channel_factory(self._client, self._on_push_event)
            await self._channel.connect()

        log.info(
            "engine_started",
            transport=self.transport.value,
            resumed=persisted_id is not None,
        )

    async def stop(self) -> None:
        """Tear the session down; safe to call repeatedly.

        Closes the push channel and resets input, loading and the log to the
        welcome message. The persisted history is left untouched so that the
        next ``start()`` can restore it.
        """
        self._generation += 1
        channel, self._channel = self._channel, None
        if channel is not None:
            await channel.close()
        if self._identity is not None:
            self._identity.assign_channel_id(None)

        self._receiver.reset()
        self._set_user_input("")
        self._set_loading(False)
        self._store.replace_all([self._welcome()], persist=False)

        client, self._client = self._client, None
        if client is not None:
            await client.close()
        if self._started:
            logger.info("engine_stopped", chatflow_id=self._config.chatflow_id)
        self._started = False

    # Submission

    async def submit(self, text: str) -> bool:
        """Send one user turn.

        Returns False when nothing was sent: empty text without a staged
        audio clip is ignored.
        """
        if not self._started or self._client is None or self._identity is None:
            raise EngineNotStartedError("start() must be awaited before submitting")

        self._set_user_input(text)
        if text.strip() == "" and not self._previews.has_audio:
            return False

        generation = self._generation
        config = self._config
        self._set_loading(True)
        self._receiver.expect_late_stream(False)

        attachments = [preview.to_attachment() for preview in self._previews.take()]
        welcome = config.welcome_message
        history = [
            HistoryTurn.from_message(message)
            for message in self._store.current()
            if message.text != welcome
            and message.kind != MessageKind.LEAD_CAPTURE_PROMPT
            and not message.is_pending
        ]
        self._store.append(Message.user(text, attachments or None))

        payload = SubmitPayload(
            question=text,
            history=history,
            uploads=attachments or None,
            override_config=config.override_config,
            lead_email=self._lead_email,
        )

        transport = self._selector.select(self._streaming_available)
        if transport == Transport.PUSH:
            payload.socket_channel_id = self._channel.channel_id if self._channel else None
            payload.session_id = self._identity.persisted_id
        else:
            self._store.append(Message.assistant())
            payload.local_session_id = self._identity.local_id or self._identity.resolve()
            payload.time_zone = self._time_zone
            self._typing.set(True)

        log = logger.bind(chatflow_id=config.chatflow_id, transport=transport.value)
        log.info("submission_sent", attachments=len(attachments), history=len(history))
        started_at = time.perf_counter()

        failure: object | None = None
        result: SubmitResult | None = None
        try:
            result = await self._client.submit(config.chatflow_id, payload)
        except FlowClientError as e:
            failure = e.details if isinstance(e.details, str) and e.details else e
        except Exception as e:  # noqa: BLE001
            log.exception("submission_unexpected_error")
            failure = e

        if generation != self._generation:
            log.info("submission_reply_discarded")
            return True

        SUBMISSION_LATENCY.labels(
            chatflow_id=config.chatflow_id, transport=transport.value
        ).observe(time.perf_counter() - started_at)

        if result is None:
            SUBMISSIONS.labels(
                chatflow_id=config.chatflow_id, transport=transport.value, outcome="error"
            ).inc()
            log.warning("submission_failed", error=str(failure))
            self._receiver.reset()
            self._handle_error(failure)
            return True

        self._apply_result(result, text, bool(attachments), transport)
        SUBMISSIONS.labels(
            chatflow_id=config.chatflow_id, transport=transport.value, outcome="success"
        ).inc()
        return True

    async def prompt_click(self, prompt: str) -> bool:
        """Submit a starter prompt."""
        return await self.submit(prompt)

    def _apply_result(
        self,
        result: SubmitResult,
        text: str,
        had_attachments: bool,
        transport: Transport,
    ) -> None:
        if transport == Transport.REQUEST_RESPONSE:
            self._typing.set(False)

        user_offset = self._user_turn_offset()
        if text == "" and result.question and user_offset:
            self._store.map_at(
                user_offset,
                lambda message: message.model_copy(update={"text": result.question}),
            )
        if had_attachments and user_offset:
            self._store.map_at(user_offset, _strip_attachment_data)

        last = self._store.last()
        if transport == Transport.PUSH:
            if last is None or last.kind == MessageKind.USER_REPLY:
                # no stream ever started for this turn
                self._store.append(_with_reply(Message.assistant(), result, result.text))
                self._receiver.expect_late_stream()
            else:
                self._store.map_last(lambda message: _with_reply(message, result, ""))
        else:
            self._store.map_last(lambda message: _with_reply(message, result, result.text))

        self._set_loading(False)
        self._set_user_input("")

    def _user_turn_offset(self) -> int:
        """Offset from the end of the user turn just submitted, or 0."""
        for offset in (1, 2):
            messages = self._store.current()
            if len(messages) >= offset and messages[-offset].kind == MessageKind.USER_REPLY:
                return offset
        return 0

    def _handle_error(self, error: object) -> None:
        self._store.append(Message.assistant(failure_text(error, self._config.error_message)))
        self._set_loading(False)
        self._set_user_input("")

    # Previews

    async def add_previews(self, *previews: Preview) -> bool:
        """Stage attachments; a lone recording is sent right away.

        Returns True when staging triggered a submission.
        """
        self._previews.add(*previews)
        if self._previews.audio_ready:
            return await self.submit("")
        return False

    async def add_files(self, paths: list[str | Path]) -> None:
        """Read, validate and stage files.

        Raises:
            AttachmentRejectedError: when any file violates the upload policy;
                nothing is staged in that case
        """
        previews = await read_file_previews(paths, self._chatbot_config.uploads)
        await self.add_previews(*previews)

    async def add_recording(self, content: bytes, mime: str) -> bool:
        """Stage a finished voice recording, which submits it."""
        return await self.add_previews(audio_preview(content, mime))

    def remove_preview(self, preview: Preview) -> bool:
        return self._previews.remove(preview)

    # Session management

    def clear_chat(self) -> bool:
        """Start over with a fresh session.

        Refused while the assistant is producing output.
        """
        if self._typing.get() or self._loading:
            logger.info("clear_chat_refused")
            return False
        self._clear_history()
        self._store.replace_all(self._initial_messages(), persist=False)
        if self._identity is not None:
            self._identity.renew()
        logger.info("chat_cleared", chatflow_id=self._config.chatflow_id)
        return True

    # Feedback, leads and files

    async def send_feedback(
        self,
        message_id: str,
        rating: FeedbackRating,
        content: str = "",
    ) -> FeedbackResult | None:
        """Rate an assistant turn once; later ratings are ignored."""
        client = self._require_client()
        if message_id in self._feedback:
            return None
        try:
            result = await client.send_feedback(
                self._config.chatflow_id, self._chat_id, message_id, rating, content
            )
        except FlowClientError as e:
            logger.warning("feedback_failed", message_id=message_id, error=e.message)
            return None
        self._feedback[message_id] = result.model_copy(
            update={"rating": rating, "message_id": message_id}
        )
        return self._feedback[message_id]

    async def update_feedback(self, message_id: str, content: str) -> FeedbackResult | None:
        """Add a comment to a rating given earlier."""
        client = self._require_client()
        existing = self._feedback.get(message_id)
        if existing is None or not existing.id:
            return None
        try:
            result = await client.update_feedback(existing.id, content)
        except FlowClientError as e:
            logger.warning("feedback_update_failed", message_id=message_id, error=e.message)
            return None
        self._feedback[message_id] = existing.model_copy(update={"content": content})
        return result

    def feedback_for(self, message_id: str) -> FeedbackResult | None:
        return self._feedback.get(message_id)

    @staticmethod
    def citations(message: Message) -> list[SourceDocument]:
        """Citations of a turn as they should be listed: best first, one per URL."""
        return dedupe_source_documents(list(message.source_documents or []))

    async def save_lead(
        self,
        *,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> bool:
        """Record the visitor's contact details, unlocking the input."""
        client = self._require_client()
        try:
            await client.add_lead(
                self._config.chatflow_id, self._chat_id, name=name, email=email, phone=phone
            )
        except FlowClientError as e:
            logger.warning("lead_save_failed", error=e.message)
            return False
        self._lead_saved = True
        self._lead_email = email or None
        logger.info("lead_saved", chatflow_id=self._config.chatflow_id, email=email)
        return True

    async def download_file(self, file_name: str) -> bytes:
        return await self._require_client().download_file(file_name)

    # Internals

    def _welcome(self) -> Message:
        return Message.assistant(self._config.welcome_message)

    def _initial_messages(self) -> list[Message]:
        messages = [self._welcome()]
        leads = self._chatbot_config.leads
        if leads is not None and leads.status and not self._lead_saved:
            messages.append(Message(kind=MessageKind.LEAD_CAPTURE_PROMPT))
        return messages

    def _new_chat_id(self) -> str:
        customer_id = self._config.customer_id
        if customer_id:
            return f"{customer_id}+{uuid.uuid4()}"
        return str(uuid.uuid4())

    def _require_client(self) -> FlowClient:
        if self._client is None:
            raise EngineNotStartedError("start() must be awaited first")
        return self._client

    def _persist(self, messages: list[Message]) -> None:
        if self._history is None:
            return
        session_id = self._identity.resolve() if self._identity else None
        try:
            self._history.save(session_id, messages)
        except HISTORY_FAILURES_CAUGHT as e:
            self._history_failed("save", e)

    def _load_history(self) -> SessionRecord | None:
        if self._history is None:
            return None
        try:
            return self._history.load()
        except HISTORY_FAILURES_CAUGHT as e:
            self._history_failed("load", e)
            return None

    def _clear_history(self) -> None:
        if self._history is None:
            return
        try:
            self._history.clear()
        except HISTORY_FAILURES_CAUGHT as e:
            self._history_failed("clear", e)

    def _history_failed(self, operation: str, error: Exception) -> None:
        backend = self._history.backend_name if self._history is not None else "none"
        HISTORY_ERRORS.labels(backend=backend, operation=operation).inc()
        logger.warning(
            "history_store_failed",
            chatflow_id=self._config.chatflow_id,
            backend=backend,
            operation=operation,
            error=str(error),
        )

    def _on_push_event(self, event: PushEvent) -> None:
        if event.type == "connect":
            if self._identity is not None:
                self._identity.assign_channel_id(event.id)
            return
        self._receiver.handle(event)

    async def _check_streaming(self, config: ChatConfig) -> bool:
        client = self._require_client()
        try:
            return await client.check_streaming_available(config.chatflow_id)
        except FlowClientError as e:
            logger.warning("streaming_check_failed", error=e.message)
            return False

    async def _load_chatbot_config(self, config: ChatConfig) -> ChatbotConfig:
        client = self._require_client()
        try:
            return await client.get_config(config.chatflow_id)
        except FlowClientError as e:
            logger.warning("chatbot_config_failed", error=e.message)
            return ChatbotConfig()

    def _set_loading(self, value: bool) -> None:
        if value == self._loading:
            return
        self._loading = value
        if self._observers.observe_loading is not None:
            self._observers.observe_loading(value)

    def _set_user_input(self, value: str) -> None:
        if value == self._user_input:
            return
        self._user_input = value
        if self._observers.observe_user_input is not None:
            self._observers.observe_user_input(value)


def _strip_attachment_data(message: Message) -> Message:
    if not message.attachments:
        return message
    return message.model_copy(
        update={"attachments": [attachment.without_data() for attachment in message.attachments]}
    )


def _with_reply(message: Message, result: SubmitResult, text: str) -> Message:
    update: dict[str, Any] = {
        "text": message.text + text,
        "kind": MessageKind.ASSISTANT_REPLY,
    }
    if result.chat_message_id is not None:
        update["id"] = result.chat_message_id
    if result.source_documents is not None:
        update["source_documents"] = result.source_documents
    if result.file_annotations is not None:
        update["file_annotations"] = result.file_annotations
    return message.model_copy(update=update)
