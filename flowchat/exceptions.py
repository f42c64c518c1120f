"""Exception hierarchy for FlowChat.

Remote failures never escape the conversation engine; they are converted
into a visible error turn. These exceptions cross the boundary between the
engine and its host only for invalid host input.
"""


class FlowChatError(Exception):
    """Base exception for all FlowChat errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AttachmentRejectedError(FlowChatError):
    """Raised when an attachment violates the upload policy.

    ``message`` is the user-facing explanation.
    """

    def __init__(self, message: str, mime: str = "", size: int | None = None) -> None:
        super().__init__(message)
        self.mime = mime
        self.size = size


class EngineNotStartedError(FlowChatError):
    """Raised when an operation needs a started engine."""
