"""Enums for the conversation domain."""

from enum import Enum


class MessageKind(str, Enum):
    """Kind of a conversation turn.

    Values are the wire names understood by the chatflow backend.
    """

    ASSISTANT_REPLY = "apiMessage"
    USER_REPLY = "userMessage"
    ASSISTANT_PENDING = "usermessagewaiting"
    LEAD_CAPTURE_PROMPT = "leadCaptureMessage"


class AttachmentKind(str, Enum):
    """Kind of a staged or submitted attachment."""

    IMAGE = "image"
    AUDIO = "audio"
    FILE = "file"
    URL = "url"


class FeedbackRating(str, Enum):
    """Rating given to an assistant turn."""

    THUMBS_UP = "THUMBS_UP"
    THUMBS_DOWN = "THUMBS_DOWN"
