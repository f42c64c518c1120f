"""Choice between push streaming and request/response."""

from enum import Enum
from urllib.parse import urlparse

from flowchat.config.models.chat import ChatConfig


class Transport(str, Enum):
    PUSH = "push"
    REQUEST_RESPONSE = "request_response"


class TransportSelector:
    """Decides the transport from the configured API host.

    Hosts ending in one of ``request_response_host_suffixes`` cannot hold a
    push channel open, so every submission to them is a single stateless
    call. The decision depends only on configuration, so it stays the same
    for the lifetime of a session.
    """

    def __init__(self, config: ChatConfig) -> None:
        self._api_host = config.api_host
        self._suffixes = tuple(s.lower() for s in config.request_response_host_suffixes)

    def should_use_request_response(self) -> bool:
        host = urlparse(self._api_host).hostname or self._api_host
        host = host.lower().rstrip("/")
        return any(host.endswith(suffix) for suffix in self._suffixes)

    def select(self, streaming_available: bool) -> Transport:
        """Transport for one submission.

        Push is used only when the host supports it and the backend reported
        streaming as available for this flow.
        """
        if self.should_use_request_response() or not streaming_available:
            return Transport.REQUEST_RESPONSE
        return Transport.PUSH
