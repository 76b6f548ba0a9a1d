"""Utilities for locating and loading the engine configuration file."""

import json
import os
from pathlib import Path
from typing import Optional, Tuple

from ledger_aggregation.config.models import AppConfig

CONFIG_FILENAME = "ledger-aggregation.json"
CONFIG_ENV_VAR = "LEDGER_AGG_CONFIG"


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """
    Resolve the path to the configuration file.

    An explicit path wins; otherwise the ``LEDGER_AGG_CONFIG`` environment
    variable; otherwise ``ledger-aggregation.json`` in the working directory.
    """
    if path is not None:
        return Path(path).resolve()
    env_value = os.getenv(CONFIG_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate
    return (Path.cwd() / CONFIG_FILENAME).resolve()


def load_app_config(path: Optional[Path] = None) -> Tuple[AppConfig, Path]:
    """
    Load the application configuration.

    Returns:
        (config, resolved_path); defaults when the file does not exist.

    Raises:
        ValueError: if the JSON is invalid or fails validation.
    """
    resolved = resolve_config_path(path)
    if not resolved.exists():
        return AppConfig(), resolved
    try:
        data = json.loads(resolved.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid config JSON at {resolved}: {exc}") from exc
    return AppConfig.from_dict(data), resolved
