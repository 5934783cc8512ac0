"""
Layered configuration for adosync.

Precedence, lowest first: ``SyncConfig`` defaults, the user
``$XDG_CONFIG_HOME/adosync/config.json``, the project ``.adosync.json``,
then the AZURE_DEVOPS_* and ADOSYNC_* environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from .models import SyncConfig

logger = logging.getLogger(__name__)

APP_DIR = "adosync"
PROJECT_CONFIG_NAME = ".adosync.json"

_cache: dict[Path, SyncConfig] = {}


def user_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/adosync``, or ``~/.config/adosync`` when unset."""
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / APP_DIR


def config_file_paths(project_dir: Path) -> list[Path]:
    """JSON config files, lowest precedence first."""
    return [user_config_dir() / "config.json", project_dir / PROJECT_CONFIG_NAME]


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise ValueError("must be >= 1")
    return value


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError("must be >= 0")
    return value


def _positive_float(raw: str) -> float:
    value = float(raw)
    if value <= 0:
        raise ValueError("must be > 0")
    return value


def _flag(raw: str) -> bool:
    return raw.strip().lower() not in ("false", "0", "no", "off")


# Environment variable -> (dotted SyncConfig key, parser)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "AZURE_DEVOPS_ORG": ("organization", str),
    "AZURE_DEVOPS_PROJECT": ("project", str),
    "AZURE_DEVOPS_PAT": ("pat", str),
    "ADOSYNC_MAX_WORKERS": ("max_workers", _positive_int),
    "ADOSYNC_MAX_BATCH_SIZE": ("max_batch_size", _positive_int),
    "ADOSYNC_TIMEOUT": ("item_timeout", _positive_float),
    "ADOSYNC_BOUNDED": ("bounded_concurrency", _flag),
    "ADOSYNC_MAX_RETRIES": ("retry.max_retries", _non_negative_int),
}


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Build the environment layer from ``ENV_OVERRIDES``.

    Empty variables are skipped. Values that fail to parse are logged and
    skipped so one bad variable does not block the rest of the config.

    Example:
        >>> env_overrides({"ADOSYNC_MAX_RETRIES": "3", "AZURE_DEVOPS_ORG": "contoso"})
        {'organization': 'contoso', 'retry': {'max_retries': 3}}
    """
    if environ is None:
        environ = os.environ

    layer: dict[str, Any] = {}
    for name, (key, parse) in ENV_OVERRIDES.items():
        raw = environ.get(name)
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError as e:
            logger.warning(f"Ignoring {name}={raw!r}: {e}")
            continue

        *parents, leaf = key.split(".")
        target = layer
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = value
    return layer


def merge_layers(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Merge config layers left to right; nested sections merge key by key."""
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
                merged[key] = merge_layers(merged[key], value)
            else:
                merged[key] = value
    return merged


def _read_layer(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring config file {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a JSON object")
        return {}
    return data


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> SyncConfig:
    """
    Load the merged configuration for a project directory.

    Args:
        project_dir: Directory holding ``.adosync.json`` (defaults to cwd)
        use_cache: Reuse the config loaded earlier for the same directory

    Raises:
        ValidationError: If the merged values fail SyncConfig validation
    """
    project_dir = (project_dir or Path.cwd()).resolve()
    if use_cache and project_dir in _cache:
        return _cache[project_dir]

    file_layers = [_read_layer(path) for path in config_file_paths(project_dir)]
    config = SyncConfig.model_validate(merge_layers(*file_layers, env_overrides()))
    _cache[project_dir] = config
    return config


def clear_cache() -> None:
    _cache.clear()
