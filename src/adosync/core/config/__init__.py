"""
Configuration models and loading.

This module provides Pydantic models for adosync configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .env import env_file_paths, load_layered_env
from .loader import (
    ENV_OVERRIDES,
    clear_cache,
    config_file_paths,
    env_overrides,
    load_config,
    merge_layers,
    user_config_dir,
)
from .models import PROVIDER_MAX_BATCH_SIZE, RetrySettings, SyncConfig

__all__ = [
    # Models
    "PROVIDER_MAX_BATCH_SIZE",
    "RetrySettings",
    "SyncConfig",
    # Loading
    "ENV_OVERRIDES",
    "clear_cache",
    "config_file_paths",
    "env_file_paths",
    "env_overrides",
    "load_config",
    "load_layered_env",
    "merge_layers",
    "user_config_dir",
]
