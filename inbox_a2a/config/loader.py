"""Configuration loading with fail-fast behavior.

Lookup order when no explicit path is given:
1. ``$INBOX_A2A_CONFIG``
2. ``./.inbox_a2a/config.json``
3. Pydantic defaults

An explicit or env-named file must exist. The local file is optional. Any file
that is found must hold a JSON object that validates against :class:`Config`.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from inbox_a2a.config.schema import Config
from inbox_a2a.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "INBOX_A2A_CONFIG"
LOCAL_CONFIG = Path(".inbox_a2a") / "config.json"


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a config file into a dict. An empty file reads as ``{}``.

    Raises:
        ConfigError: If the file is missing, unreadable, not JSON, or not an object.
    """
    try:
        # utf-8-sig tolerates the BOM some Windows editors add
        text = path.resolve().read_text(encoding="utf-8-sig").strip()
    except FileNotFoundError as e:
        raise ConfigError(f"config: File not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"config: Failed to read file {path}: {e}") from e

    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"config: Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config: Expected object in {path}, got {type(data).__name__}")
    return data


def load_config(path: Path | None = None, cwd: Path | None = None) -> Config:
    """Load configuration from file.

    Args:
        path: Explicit config file path. Must exist when given.
        cwd: Working directory for the local lookup. Defaults to Path.cwd().

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file is missing (explicit or env path only), contains
            invalid JSON, or fails validation.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            path = Path(env_path)

    if path is None:
        path = (cwd or Path.cwd()) / LOCAL_CONFIG
        if not path.resolve().is_file():
            logger.debug("No config file found, using Pydantic defaults")
            return Config()

    data = read_config_file(path)
    logger.info("Config loaded from: %s", path)
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed for {path}: {e}") from e
