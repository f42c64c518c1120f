"""Configuration model exports.

    from flowchat.config.models import ChatConfig, StorageConfig
"""

from flowchat.config.models.chat import ChatConfig
from flowchat.config.models.observability import (
    LoggingConfig,
    ObservabilityConfig,
)
from flowchat.config.models.storage import StorageConfig

__all__ = [
    "ChatConfig",
    "LoggingConfig",
    "ObservabilityConfig",
    "StorageConfig",
]
