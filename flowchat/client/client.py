"""Async client for the chatflow backend API."""

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from flowchat.conversation.models import (
    ChatbotConfig,
    FeedbackRating,
    SubmitPayload,
    SubmitResult,
    parse_submit_result,
)
from flowchat.exceptions import FlowChatError
from flowchat.observability.logging import get_logger

logger = get_logger(__name__)


class FlowClientError(FlowChatError):
    """Raised when a backend call fails.

    ``details`` holds the decoded error body when there is one; a backend
    that answers with a bare JSON string leaves that string here.
    """

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class FeedbackResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = ""
    rating: FeedbackRating | None = None
    content: str = ""
    message_id: str | None = Field(default=None, alias="messageId")


class FlowClient:
    """Async client for the chatflow backend.

    Attributes:
        base_url: Base URL of the backend
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the backend
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @property
    def http(self) -> httpx.AsyncClient:
        """Underlying HTTP client, shared with the push channel."""
        return self._client

    async def __aenter__(self) -> "FlowClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        """Make an API request and decode the JSON body."""
        try:
            response = await self._client.request(
                method=method,
                url=path,
                headers=self._headers(),
                json=json,
                params=params,
            )
        except httpx.HTTPError as e:
            logger.warning("backend_request_failed", path=path, error=str(e))
            raise FlowClientError(str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            raise self._error_from(response)

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError:
            return response.text

    def _error_from(self, response: httpx.Response) -> FlowClientError:
        details: Any = None
        try:
            details = response.json()
        except ValueError:
            details = response.text or None

        if isinstance(details, str):
            message = details
        elif isinstance(details, dict):
            error = details.get("error")
            if isinstance(error, dict):
                message = str(error.get("message") or response.text)
            else:
                message = str(details.get("message") or error or response.text)
        else:
            message = response.text or f"HTTP {response.status_code}"

        logger.warning(
            "backend_error_response",
            path=str(response.request.url.path),
            status_code=response.status_code,
        )
        return FlowClientError(message=message, status_code=response.status_code, details=details)

    # Flow capabilities
    async def check_streaming_available(self, flow_id: str) -> bool:
        """Whether the flow can stream tokens over the push channel."""
        data = await self._request("GET", f"/api/v1/chatflows-streaming/{flow_id}")
        return bool(isinstance(data, dict) and data.get("isStreaming"))

    async def get_config(self, flow_id: str) -> ChatbotConfig:
        """Starter prompts, feedback, uploads and leads settings of a flow."""
        data = await self._request("GET", f"/api/v1/public-chatbotConfig/{flow_id}")
        if not isinstance(data, dict):
            return ChatbotConfig()
        return ChatbotConfig.model_validate(data)

    # Prediction
    async def submit(self, flow_id: str, payload: SubmitPayload) -> SubmitResult:
        """Send a user turn and return the parsed reply."""
        data = await self._request(
            "POST",
            f"/api/v1/prediction/{flow_id}",
            json=payload.to_wire(),
        )
        return parse_submit_result(data)

    # Feedback
    async def send_feedback(
        self,
        flow_id: str,
        chat_id: str,
        message_id: str,
        rating: FeedbackRating,
        content: str = "",
    ) -> FeedbackResult:
        """Rate an assistant turn."""
        body = {
            "chatflowid": flow_id,
            "chatId": chat_id,
            "messageId": message_id,
            "rating": rating.value,
            "content": content,
        }
        data = await self._request("POST", f"/api/v1/feedback/{flow_id}", json=body)
        return FeedbackResult.model_validate(data if isinstance(data, dict) else {})

    async def update_feedback(self, feedback_id: str, content: str) -> FeedbackResult:
        """Attach a free-text comment to an existing rating."""
        data = await self._request(
            "PUT",
            f"/api/v1/feedback/{feedback_id}",
            json={"content": content},
        )
        return FeedbackResult.model_validate(data if isinstance(data, dict) else {})

    # Leads
    async def add_lead(
        self,
        flow_id: str,
        chat_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> dict[str, Any]:
        body = {
            "chatflowid": flow_id,
            "chatId": chat_id,
            "name": name,
            "email": email,
            "phone": phone,
        }
        data = await self._request(
            "POST",
            "/api/v1/leads/",
            json={k: v for k, v in body.items() if v is not None},
        )
        return data if isinstance(data, dict) else {}

    # Files
    async def download_file(self, file_name: str) -> bytes:
        """Fetch a file produced by the assistant."""
        try:
            response = await self._client.post(
                "/api/v1/openai-assistants-file",
                headers=self._headers(),
                json={"question": "", "fileName": file_name},
            )
        except httpx.HTTPError as e:
            raise FlowClientError(str(e) or type(e).__name__) from e
        if response.status_code >= 400:
            raise self._error_from(response)
        return response.content
