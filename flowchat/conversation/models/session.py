"""Persisted session record."""

from pydantic import BaseModel, ConfigDict, Field

from flowchat.conversation.models.message import Message


class SessionRecord(BaseModel):
    """What is written under a deployment's storage key.

    ``timestamp`` is epoch milliseconds of the last save.
    """

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    timestamp: int = Field(..., description="Epoch milliseconds of last save")
    messages: list[Message] = Field(default_factory=list)

    def is_fresh(self, now_ms: int, retention_ms: int | None) -> bool:
        """Whether the record is inside the freshness window.

        A ``retention_ms`` of None means unlimited retention.
        """
        if retention_ms is None:
            return True
        return now_ms - self.timestamp <= retention_ms
