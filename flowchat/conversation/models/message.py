"""Message models for conversation domain."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from flowchat.conversation.models.enums import AttachmentKind, MessageKind


class SourceDocument(BaseModel):
    """A citation attached to an assistant turn."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    page_content: str = Field(default="", alias="pageContent", description="Text excerpt")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="May carry 'score' and 'sourceUrl'",
    )

    @property
    def score(self) -> float | None:
        value = self.metadata.get("score")
        return float(value) if isinstance(value, int | float) else None

    @property
    def source_url(self) -> str | None:
        value = self.metadata.get("sourceUrl")
        return value if isinstance(value, str) else None


class FileAnnotation(BaseModel):
    """A downloadable file produced by the assistant."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    file_name: str = Field(..., alias="fileName", description="Name to download")


class Attachment(BaseModel):
    """A user-submitted upload.

    ``data`` is dropped once the backend has accepted the submission so that
    persisted history only keeps descriptive metadata.
    """

    model_config = ConfigDict(populate_by_name=True)

    data: str | None = Field(default=None, description="Data URI or URL")
    mime: str = Field(default="", description="MIME type")
    name: str = Field(default="", description="Display name")
    kind: AttachmentKind = Field(..., alias="type", description="Attachment kind")

    def without_data(self) -> "Attachment":
        return self.model_copy(update={"data": None})


class Preview(BaseModel):
    """An attachment staged in the input area but not yet submitted.

    ``handle`` is a transient resource (an object URL in a browser host)
    which must be released when the preview is discarded or submitted.
    """

    data: str = Field(..., description="Data URI or URL")
    mime: str = Field(default="", description="MIME type")
    name: str = Field(default="", description="Display name")
    kind: AttachmentKind = Field(..., description="Attachment kind")
    handle: str | None = Field(default=None, description="Transient preview resource")

    def to_attachment(self) -> Attachment:
        return Attachment(data=self.data, mime=self.mime, name=self.name, kind=self.kind)


class Message(BaseModel):
    """One turn of the conversation log.

    Messages are immutable; the log replaces its last entry with an updated
    copy instead of mutating it in place.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(default=None, description="Backend message id once known")
    kind: MessageKind = Field(..., description="Turn kind")
    text: str = Field(default="", description="Turn text, grows while streaming")
    source_documents: list[SourceDocument] | None = Field(
        default=None, description="Citations"
    )
    file_annotations: list[FileAnnotation] | None = Field(
        default=None, description="Downloadable files"
    )
    attachments: list[Attachment] | None = Field(
        default=None, description="User uploads"
    )

    @property
    def is_pending(self) -> bool:
        """True for an assistant turn still waiting for its content."""
        if self.kind == MessageKind.ASSISTANT_PENDING:
            return True
        return self.kind == MessageKind.ASSISTANT_REPLY and self.text == ""

    @classmethod
    def assistant(cls, text: str = "") -> "Message":
        return cls(kind=MessageKind.ASSISTANT_REPLY, text=text)

    @classmethod
    def user(cls, text: str, attachments: list[Attachment] | None = None) -> "Message":
        return cls(kind=MessageKind.USER_REPLY, text=text, attachments=attachments)
