"""Request and reply shapes exchanged with the chatflow backend."""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from flowchat.conversation.models.enums import MessageKind
from flowchat.conversation.models.message import (
    Attachment,
    FileAnnotation,
    Message,
    SourceDocument,
)


class HistoryTurn(BaseModel):
    """A prior turn as sent to the backend: text and kind only."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., alias="message")
    kind: MessageKind = Field(..., alias="type")

    @classmethod
    def from_message(cls, message: Message) -> "HistoryTurn":
        return cls(text=message.text, kind=message.kind)


class SubmitPayload(BaseModel):
    """Outbound prediction request.

    Exactly one of the two session groups is populated, depending on the
    transport: ``socket_channel_id`` (+ ``session_id`` when resuming) for the
    push path, ``local_session_id`` (+ ``time_zone``) for request/response.
    """

    model_config = ConfigDict(populate_by_name=True)

    question: str
    history: list[HistoryTurn] = Field(default_factory=list)
    uploads: list[Attachment] | None = None
    override_config: dict[str, Any] | None = Field(default=None, alias="overrideConfig")
    lead_email: str | None = Field(default=None, alias="leadEmail")
    socket_channel_id: str | None = Field(default=None, alias="socketIOClientId")
    session_id: str | None = Field(default=None, alias="chatId")
    local_session_id: str | None = Field(default=None, alias="webRequestChatId")
    time_zone: str | None = Field(default=None, alias="timezone")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TextReply(BaseModel):
    kind: Literal["text"] = "text"
    value: str


class JsonReply(BaseModel):
    kind: Literal["json"] = "json"
    value: Any


class RawReply(BaseModel):
    kind: Literal["raw"] = "raw"
    value: Any


ReplyBody = Annotated[TextReply | JsonReply | RawReply, Field(discriminator="kind")]


class SubmitResult(BaseModel):
    """Parsed prediction reply."""

    body: ReplyBody
    chat_message_id: str | None = None
    source_documents: list[SourceDocument] | None = None
    file_annotations: list[FileAnnotation] | None = None
    question: str | None = None

    @property
    def text(self) -> str:
        """Display text of the reply body.

        Prefers the ``text`` field, else pretty-prints ``json``, else
        renders the whole payload.
        """
        body = self.body
        if isinstance(body, TextReply):
            return body.value
        if isinstance(body, JsonReply):
            return json.dumps(body.value, indent=2)
        if isinstance(body.value, str):
            return body.value
        return json.dumps(body.value, indent=2, default=str)


def parse_submit_result(data: Any) -> SubmitResult:
    """Convert a raw prediction reply into a SubmitResult.

    Unknown shapes never raise: anything that is not a mapping with a
    ``text`` or ``json`` field becomes a RawReply of the whole payload.
    """
    if not isinstance(data, dict):
        return SubmitResult(body=RawReply(value=data))

    body: TextReply | JsonReply | RawReply
    if data.get("text"):
        body = TextReply(value=str(data["text"]))
    elif data.get("json") is not None:
        body = JsonReply(value=data["json"])
    else:
        body = RawReply(value=data)

    return SubmitResult(
        body=body,
        chat_message_id=_optional_str(data.get("chatMessageId")),
        source_documents=_parse_list(SourceDocument, data.get("sourceDocuments")),
        file_annotations=_parse_list(FileAnnotation, data.get("fileAnnotations")),
        question=_optional_str(data.get("question")),
    )


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_list(model: type[BaseModel], items: Any) -> list | None:
    if not isinstance(items, list):
        return None
    parsed = []
    for item in items:
        if isinstance(item, dict):
            try:
                parsed.append(model.model_validate(item))
            except ValueError:
                continue
    return parsed
