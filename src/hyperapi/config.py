"""
HyperAPI settings.

Parses the ``[hyperapi]`` table of ``hyperapi.toml`` plus the per-resource
``[resources.<TypeName>]`` tables, then applies ``HYPERAPI_*`` environment
overrides:

    [hyperapi]
    scan_packages = ["myapp.models"]
    log_level = "DEBUG"

    [hyperapi.tokens.s3cret]
    name = "alice"
    roles = ["admin"]

    [resources.Customer]
    path = "/api/clients"
    pageable = { limit = 10, max_limit = 50 }
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hyperapi.errors import ConfigurationError
from hyperapi.runtime.security import DEFAULT_REALM, Principal
from hyperapi.specs.resource import ResourceConfig

CONFIG_FILE_NAME = "hyperapi.toml"
ENV_PREFIX = "HYPERAPI_"


class TokenConfig(BaseModel):
    """A static bearer token and the principal it authenticates."""

    name: str
    roles: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def to_principal(self) -> Principal:
        return Principal(name=self.name, roles=frozenset(self.roles))


class HyperApiSettings(BaseModel):
    """Process-wide settings."""

    scan_packages: list[str] = Field(default_factory=list)
    log_dir: str = ".hyperapi/logs"
    log_level: str = "INFO"
    realm: str = DEFAULT_REALM
    tokens: dict[str, TokenConfig] = Field(default_factory=dict)
    output_dir: str = "generated"
    resources: dict[str, ResourceConfig] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_validator("scan_packages", mode="before")
    @classmethod
    def split_packages(cls, v: Any) -> Any:
        """Accept a comma-separated string."""
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()

    def principals(self) -> dict[str, Principal]:
        return {token: cfg.to_principal() for token, cfg in self.tokens.items()}

    def get_output_path(self, project_root: Path) -> Path:
        """Get absolute output directory path."""
        output_dir = Path(self.output_dir)
        if output_dir.is_absolute():
            return output_dir
        return project_root / output_dir


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in ("scan_packages", "log_dir", "log_level", "realm", "output_dir"):
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value:
            overrides[name] = value
    tokens = environ.get(f"{ENV_PREFIX}TOKENS")
    if tokens:
        try:
            overrides["tokens"] = json.loads(tokens)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{ENV_PREFIX}TOKENS is not valid JSON: {e}") from e
    return overrides


def load_settings(
    toml_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> HyperApiSettings:
    """
    Load settings from ``hyperapi.toml`` and the environment.

    Args:
        toml_path: Config file; defaults to ``./hyperapi.toml`` (optional)
        environ: Environment to read overrides from; defaults to ``os.environ``

    Raises:
        ConfigurationError: The file or a value is invalid
    """
    path = Path(toml_path) if toml_path is not None else Path(CONFIG_FILE_NAME)
    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid {path}: {e}") from e
    elif toml_path is not None:
        raise ConfigurationError(f"Config file not found: {path}")

    settings_data: dict[str, Any] = dict(data.get("hyperapi", {}))
    settings_data["resources"] = data.get("resources", {})
    settings_data.update(_env_overrides(os.environ if environ is None else environ))

    try:
        return HyperApiSettings.model_validate(settings_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
