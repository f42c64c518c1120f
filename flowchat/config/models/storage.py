"""History storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "file", "redis"]


class StorageConfig(BaseModel):
    """Configuration for the persisted message history."""

    backend: BackendType = Field(default="file", description="Backend type")
    path: str = Field(
        default=".flowchat",
        description="Directory holding one JSON file per storage key (file backend)",
    )
    connection_url: str | None = Field(
        default=None,
        description="Connection URL (redis backend)",
    )
    key_prefix: str = Field(default="flowchat", description="Prefix for redis keys")
