"""Transports: push streaming and request/response, plus the selector."""

from flowchat.transport.push import PushChannel, PushEvent
from flowchat.transport.receiver import ReceiverState, StreamingReceiver
from flowchat.transport.selector import Transport, TransportSelector

__all__ = [
    "PushChannel",
    "PushEvent",
    "ReceiverState",
    "StreamingReceiver",
    "Transport",
    "TransportSelector",
]
