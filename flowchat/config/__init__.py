"""Configuration for a FlowChat widget host.

Usage:
    from flowchat.config import get_settings

    settings = get_settings()
    engine = ConversationEngine.from_settings(settings)
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

from flowchat.config.loader import load_config
from flowchat.config.settings import Settings


def load_settings(
    environment: str | None = None,
    config_dir: Path | None = None,
    deployment: str | None = None,
    **overrides: Any,
) -> Settings:
    """Read the TOML layers and build a fresh ``Settings``.

    Unspecified layer choices come from ``FLOWCHAT_ENV``,
    ``FLOWCHAT_CONFIG_DIR`` and ``FLOWCHAT_DEPLOYMENT``.
    """
    tables = load_config(environment, config_dir, deployment)
    return Settings.from_tables(tables, **overrides)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded once from the environment's layers."""
    return load_settings()


def reload_settings() -> Settings:
    """Drop the cached settings and load them again."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "load_settings", "reload_settings"]
