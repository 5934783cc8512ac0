"""
.env files for credentials and adosync settings.

Files are read lowest precedence first: the user ``.env`` under
``$XDG_CONFIG_HOME/adosync``, then the project's ``.env`` and ``.env.local``.
Only AZURE_DEVOPS_* and ADOSYNC_* keys are exported, and never over a
variable the process already has.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

from dotenv import dotenv_values

from .loader import user_config_dir

ENV_PREFIXES = ("AZURE_DEVOPS_", "ADOSYNC_")


def env_file_paths(project_dir: Path) -> list[Path]:
    return [user_config_dir() / ".env", project_dir / ".env", project_dir / ".env.local"]


def load_layered_env(
    project_dir: Path | None = None, *, paths: Sequence[Path] | None = None
) -> list[str]:
    """
    Export adosync variables from layered .env files.

    Args:
        project_dir: Directory holding ``.env`` and ``.env.local`` (defaults to cwd)
        paths: Explicit files, lowest precedence first

    Returns:
        Sorted names of the variables that were set.
    """
    if paths is None:
        paths = env_file_paths(project_dir or Path.cwd())

    layered: dict[str, str] = {}
    for path in paths:
        if path.is_file():
            layered.update((k, v) for k, v in dotenv_values(path).items() if v is not None)

    applied = sorted(k for k in layered if k.startswith(ENV_PREFIXES) and k not in os.environ)
    for key in applied:
        os.environ[key] = layered[key]
    return applied
