"""YAML config loader with environment variable interpolation and overrides."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from healthgate.config.models import GatewayConfig
from healthgate.errors import RegistryConfigError

CONFIG_FILENAME = ".healthgate.yaml"
CONFIG_PATH_ENV = "HEALTHGATE_CONFIG"
SERVICES_ENV = "HEALTHGATE_SERVICES"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} and ${VAR:-default} patterns with environment values."""

    def _replace(match: re.Match[str]) -> str:
        expr = match.group(1)
        if ":-" in expr:
            var_name, default = expr.split(":-", 1)
            return os.environ.get(var_name.strip(), default)
        return os.environ.get(expr.strip(), match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(data: Any) -> Any:
    """Walk a nested data structure and interpolate env vars in strings."""
    if isinstance(data, str):
        return _interpolate_env(data)
    if isinstance(data, dict):
        return {k: _interpolate_recursive(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_interpolate_recursive(item) for item in data]
    return data


def services_from_env(value: str) -> list[dict[str, str]]:
    """Parse ``name=url,name2=url2`` into service entries, keeping order.

    Raises RegistryConfigError naming the first entry that is not ``name=url``.
    """
    entries: list[dict[str, str]] = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, sep, url = chunk.partition("=")
        if not sep or not name.strip() or not url.strip():
            raise RegistryConfigError(
                f"Invalid {SERVICES_ENV} entry {chunk!r}: expected name=url"
            )
        entries.append({"name": name.strip(), "url": url.strip()})
    return entries


def find_config_file(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default cwd) looking for .healthgate.yaml."""
    current = (start or Path.cwd()).resolve()
    for ancestor in [current, *current.parents]:
        candidate = ancestor / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def load_config(path: Path | None = None) -> GatewayConfig:
    """Load and validate the gateway configuration.

    Sources, in order: *path*, ``$HEALTHGATE_CONFIG``, the nearest
    .healthgate.yaml. ``$HEALTHGATE_SERVICES`` replaces the file's services and
    is enough on its own when no file exists.
    """
    config_path = path
    if config_path is None and os.environ.get(CONFIG_PATH_ENV):
        config_path = Path(os.environ[CONFIG_PATH_ENV])
    # A path named by the caller or HEALTHGATE_CONFIG must exist.
    explicit = config_path is not None
    if config_path is None:
        config_path = find_config_file()

    env_services = os.environ.get(SERVICES_ENV, "").strip()

    raw: dict[str, Any] = {}
    if config_path is not None and config_path.exists():
        with config_path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        if not isinstance(raw, dict):
            raise RegistryConfigError(f"Invalid configuration in {config_path}: expected a mapping")
    elif explicit:
        raise FileNotFoundError(f"Config file not found: {config_path}")
    elif not env_services:
        raise FileNotFoundError(
            f"Could not find {CONFIG_FILENAME}. Create one, set {SERVICES_ENV}, or specify a path."
        )

    data = _interpolate_recursive(raw)
    if env_services:
        data["services"] = services_from_env(env_services)

    source = config_path if raw else SERVICES_ENV
    try:
        return GatewayConfig(**data)
    except ValidationError as exc:
        raise RegistryConfigError(f"Invalid configuration in {source}: {exc}") from exc
