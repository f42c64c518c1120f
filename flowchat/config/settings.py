"""Root settings model for FlowChat configuration."""

from contextvars import ContextVar
from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from flowchat.config.models.chat import ChatConfig
from flowchat.config.models.observability import ObservabilityConfig
from flowchat.config.models.storage import StorageConfig

# Merged TOML tables for the Settings() call in progress.
_toml_layer: ContextVar[dict[str, Any]] = ContextVar("flowchat_toml_layer", default={})


class TomlLayerSource(PydanticBaseSettingsSource):
    """Settings source backed by the merged TOML tables."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_layer.get().get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in _toml_layer.get().items()
            if name in self.settings_cls.model_fields
        }


class Settings(BaseSettings):
    """Everything a chat widget host needs: the flow, its storage and logging.

    Sources by priority, highest first: constructor arguments, ``FLOWCHAT_*``
    environment variables, TOML tables passed to ``from_tables``, then the
    model defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOWCHAT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    chat: ChatConfig = Field(
        default_factory=ChatConfig,
        description="Chat widget and backend configuration",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="History persistence configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    @classmethod
    def from_tables(cls, tables: dict[str, Any], **overrides: Any) -> "Settings":
        """Build settings over already merged TOML tables."""
        token = _toml_layer.set(tables)
        try:
            return cls(**overrides)
        finally:
            _toml_layer.reset(token)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlLayerSource(settings_cls),
        )
