"""Chatflow backend client.

Usage:
    from flowchat.client import FlowClient

    async with FlowClient(base_url="https://chat.example.com") as client:
        if await client.check_streaming_available("flow-id"):
            ...
        result = await client.submit("flow-id", payload)
        print(result.text)
"""

from flowchat.client.client import FeedbackResult, FlowClient, FlowClientError

__all__ = ["FeedbackResult", "FlowClient", "FlowClientError"]
