"""Conversation domain models.

Contains all Pydantic models for conversation state:
- Messages, citations, annotations and attachments
- Staged previews
- The persisted session record
- Request and reply shapes for the chatflow backend
"""

from flowchat.conversation.models.chatbot import (
    ChatbotConfig,
    LeadsConfig,
    UploadRule,
    UploadsConfig,
)
from flowchat.conversation.models.enums import AttachmentKind, FeedbackRating, MessageKind
from flowchat.conversation.models.message import (
    Attachment,
    FileAnnotation,
    Message,
    Preview,
    SourceDocument,
)
from flowchat.conversation.models.session import SessionRecord
from flowchat.conversation.models.wire import (
    HistoryTurn,
    JsonReply,
    RawReply,
    ReplyBody,
    SubmitPayload,
    SubmitResult,
    TextReply,
    parse_submit_result,
)

__all__ = [
    # Enums
    "AttachmentKind",
    "FeedbackRating",
    "MessageKind",
    # Messages
    "Attachment",
    "FileAnnotation",
    "Message",
    "Preview",
    "SourceDocument",
    # Session
    "SessionRecord",
    # Wire
    "HistoryTurn",
    "JsonReply",
    "RawReply",
    "ReplyBody",
    "SubmitPayload",
    "SubmitResult",
    "TextReply",
    "parse_submit_result",
    # Chatbot config
    "ChatbotConfig",
    "LeadsConfig",
    "UploadRule",
    "UploadsConfig",
]
