"""Chat widget configuration models."""

from typing import Any

from pydantic import BaseModel, Field

DEFAULT_WELCOME_MESSAGE = "Hi there! How can I help?"
DEFAULT_ERROR_MESSAGE = "Oops! There seems to be an error. Please try again."


class ChatConfig(BaseModel):
    """Configuration for one embedded chat deployment.

    A change to any of these values requires the engine to be restarted,
    which tears down the push channel and resets the conversation.
    """

    api_host: str = Field(
        default="http://localhost:3000",
        description="Base URL of the conversation backend",
    )
    chatflow_id: str = Field(default="", description="Conversation flow identifier")
    welcome_message: str = Field(
        default=DEFAULT_WELCOME_MESSAGE,
        description="First assistant turn shown in a fresh session",
    )
    error_message: str | None = Field(
        default=None,
        description="Replaces every submission error text when set",
    )
    override_config: dict[str, Any] | None = Field(
        default=None,
        description="Forwarded verbatim to the backend as overrideConfig",
    )
    full_page: bool = Field(default=False, description="Full-page instead of embedded mode")
    clear_on_refresh: bool = Field(
        default=False,
        description="Disable history persistence for this deployment",
    )
    infinite_memory: bool = Field(
        default=False,
        description="Keep persisted history regardless of its age",
    )
    retention_hours: float = Field(
        default=12,
        gt=0,
        description="Freshness window for persisted history",
    )
    request_response_host_suffixes: list[str] = Field(
        default_factory=lambda: ["lambda-url.eu-central-1.on.aws"],
        description="API host suffixes of backends without push streaming",
    )
    use_timezone: bool = Field(
        default=False,
        description="Send the caller time zone on the request/response path",
    )
    session_id_length: int = Field(
        default=10,
        gt=0,
        description="Length of locally generated session tokens",
    )
    request_timeout: float = Field(default=60.0, gt=0, description="HTTP timeout in seconds")

    @property
    def retention_ms(self) -> int | None:
        """Freshness window in milliseconds, or None for unlimited retention."""
        if self.infinite_memory:
            return None
        return int(self.retention_hours * 3600 * 1000)

    @property
    def namespace(self) -> str:
        """Caller-supplied storage namespace taken from the override config."""
        if not self.override_config:
            return ""
        value = self.override_config.get("botId") or self.override_config.get(
            "pineconeNamespace"
        )
        return str(value) if value else ""

    @property
    def customer_id(self) -> str | None:
        if not self.override_config:
            return None
        variables = self.override_config.get("vars") or {}
        customer_id = variables.get("customerId") if isinstance(variables, dict) else None
        return str(customer_id) if customer_id else None
