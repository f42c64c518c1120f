"""FlowChat: conversation session engine for an embeddable chatflow client."""

from flowchat.engine import ConversationEngine

__version__ = "0.1.0"

__all__ = ["ConversationEngine", "__version__"]
