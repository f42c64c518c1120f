"""Push channel over a server-sent event stream.

The backend announces a channel id with a ``connect`` event and then emits
``start``, ``token``, ``sourceDocuments`` and ``end`` events for each
streamed turn. Each event is one ``data:`` line carrying a JSON object with
a ``type`` field.

The stream is not reopened once it ends; the channel id is dropped and the
owner opens a new channel on its next start.
"""

import asyncio
import contextlib
import json
from collections.abc import Callable
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flowchat.conversation.models import FileAnnotation, SourceDocument
from flowchat.observability.logging import get_logger

logger = get_logger(__name__)

EventType = Literal["connect", "start", "token", "sourceDocuments", "end"]


class PushEvent(BaseModel):
    """One event received on the push channel."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: EventType
    id: str | None = Field(default=None, description="Channel id (connect)")
    content: str = Field(default="", description="Token text (token)")
    message_id: str | None = Field(default=None, alias="messageId")
    source_documents: list[SourceDocument] | None = Field(
        default=None, alias="sourceDocuments"
    )
    file_annotations: list[FileAnnotation] | None = Field(
        default=None, alias="fileAnnotations"
    )


EventHandler = Callable[[PushEvent], None]


def parse_event_line(line: str) -> PushEvent | None:
    """Parse one stream line; returns None for comments, blanks and junk."""
    if not line.startswith("data: "):
        return None
    try:
        payload: Any = json.loads(line[6:])
    except json.JSONDecodeError:
        logger.warning("push_event_undecodable", line=line[:200])
        return None
    if not isinstance(payload, dict):
        return None
    if payload.get("type") == "sourceDocuments" and "data" in payload:
        payload = {"type": "sourceDocuments", "sourceDocuments": payload["data"]}
    try:
        return PushEvent.model_validate(payload)
    except ValidationError:
        logger.debug("push_event_ignored", event_type=payload.get("type"))
        return None


class PushChannel:
    """Long-lived event stream dispatching parsed events to one handler.

    ``close()`` is idempotent and may be called before ``connect()``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        handler: EventHandler,
        path: str = "/api/v1/push",
    ) -> None:
        self._client = client
        self._handler = handler
        self._path = path
        self._task: asyncio.Task[None] | None = None
        self._channel_id: str | None = None
        self._connected = asyncio.Event()

    @property
    def channel_id(self) -> str | None:
        return self._channel_id

    @property
    def is_open(self) -> bool:
        return self._task is not None and not self._task.done()

    async def connect(self) -> None:
        """Start reading the stream in the background."""
        if self.is_open:
            return
        self._connected.clear()
        self._task = asyncio.create_task(self._run(), name="flowchat-push-channel")

    async def wait_connected(self, timeout: float | None = None) -> str | None:
        """Wait for the channel id; returns None on timeout."""
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except TimeoutError:
            return None
        return self._channel_id

    async def close(self) -> None:
        task, self._task = self._task, None
        self._channel_id = None
        self._connected.clear()
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("push_channel_closed")

    async def _run(self) -> None:
        try:
            async with self._client.stream(
                "GET",
                self._path,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    logger.error(
                        "push_channel_refused",
                        status_code=response.status_code,
                    )
                    return
                async for line in response.aiter_lines():
                    event = parse_event_line(line)
                    if event is not None:
                        self._dispatch(event)
        except httpx.HTTPError as e:
            logger.error("push_channel_error", error=str(e))
        finally:
            self._channel_id = None
            logger.info("push_channel_ended")

    def _dispatch(self, event: PushEvent) -> None:
        if event.type == "connect":
            self._channel_id = event.id
            self._connected.set()
            logger.info("push_channel_connected")
        self._handler(event)
