"""Config file discovery and loading.

Walk-up finder locates reqflow.toml, the way git finds .git/.
Supports the REQFLOW_CONFIG env var and the --config CLI flag.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from reqflow.config.models import ReqflowConfig

CONFIG_FILENAME = "reqflow.toml"
CONFIG_ENV_VAR = "REQFLOW_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for reqflow.toml.

    REQFLOW_CONFIG, when set, wins outright (None if it points nowhere).
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def load_config(path: Path | None = None, cwd: Path | None = None) -> ReqflowConfig:
    """Load and validate config; defaults when no file is found."""
    if path is None:
        path = find_config(cwd)
    if path is None:
        return ReqflowConfig()

    data: dict[str, Any] = tomllib.loads(path.read_text(encoding="utf-8"))
    return ReqflowConfig.model_validate(data)
