"""Resolves and merges the TOML layers behind a chat deployment.

A widget host reads up to three tables, later ones winning key by key:

- ``default.toml``: shared defaults, always required.
- ``{environment}.toml``: per-environment overrides, skipped when absent.
- ``deployments/{name}.toml``: one embedded widget (its flow, host and
  welcome text). Only read when a deployment is named, and required then.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "FLOWCHAT_CONFIG_DIR"
ENVIRONMENT_ENV = "FLOWCHAT_ENV"
DEPLOYMENT_ENV = "FLOWCHAT_DEPLOYMENT"
DEFAULT_ENVIRONMENT = "development"

# Parent directories searched for config/default.toml.
SEARCH_DEPTH = 5


@dataclass(frozen=True)
class ConfigLayers:
    """The TOML files one settings load is built from."""

    directory: Path
    environment: str
    deployment: str | None = None

    @property
    def default_file(self) -> Path:
        return self.directory / "default.toml"

    @property
    def environment_file(self) -> Path:
        return self.directory / f"{self.environment}.toml"

    @property
    def deployment_file(self) -> Path | None:
        if not self.deployment:
            return None
        return self.directory / "deployments" / f"{self.deployment}.toml"

    def files(self) -> list[Path]:
        """Existing layer files, lowest priority first.

        Raises:
            FileNotFoundError: default.toml or a named deployment is missing
        """
        if not self.default_file.is_file():
            raise FileNotFoundError(
                f"Default configuration file not found: {self.default_file}. "
                f"Create it or point {CONFIG_DIR_ENV} at a config directory."
            )
        files = [self.default_file]
        if self.environment_file.is_file():
            files.append(self.environment_file)
        deployment_file = self.deployment_file
        if deployment_file is not None:
            if not deployment_file.is_file():
                raise FileNotFoundError(f"Deployment configuration not found: {deployment_file}")
            files.append(deployment_file)
        return files


def find_config_dir(start: Path | None = None) -> Path:
    """Locate the config directory.

    ``FLOWCHAT_CONFIG_DIR`` wins and must exist. Otherwise the nearest
    ``config/`` holding a ``default.toml`` above ``start`` (the cwd by
    default) is used, falling back to a relative ``config``.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {override}")
        return path

    current = (start or Path.cwd()).resolve()
    for candidate in [current, *current.parents][: SEARCH_DEPTH + 1]:
        if (candidate / "config" / "default.toml").is_file():
            return candidate / "config"
    return Path("config")


def resolve_layers(
    environment: str | None = None,
    directory: Path | None = None,
    deployment: str | None = None,
) -> ConfigLayers:
    """Fill unspecified layer choices from the environment."""
    return ConfigLayers(
        directory=directory if directory is not None else find_config_dir(),
        environment=environment or os.environ.get(ENVIRONMENT_ENV) or DEFAULT_ENVIRONMENT,
        deployment=deployment or os.environ.get(DEPLOYMENT_ENV) or None,
    )


def load_toml(path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {path}") from None


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` over ``base`` table by table; neither is modified."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    environment: str | None = None,
    directory: Path | None = None,
    deployment: str | None = None,
) -> dict[str, Any]:
    """Read and merge every layer into one table."""
    tables: dict[str, Any] = {}
    for path in resolve_layers(environment, directory, deployment).files():
        tables = deep_merge(tables, load_toml(path))
    return tables
