"""
Configuration loader — reads frida-manager.yml into ManagerConfig.

Resolution order for the config file:
    explicit path  >  FRIDA_MANAGER_CONFIG env var  >  search upward from cwd

A missing file is not an error: every setting has a default.
A file that exists but is unreadable or invalid raises ConfigError.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from frida_manager.core.errors import ConfigError
from frida_manager.core.models.config import ManagerConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "frida-manager.yml"
CONFIG_ENV_VAR = "FRIDA_MANAGER_CONFIG"

__all__ = ["CONFIG_FILE", "ConfigError", "find_config_file", "load_config"]


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for frida-manager.yml starting from ``start_dir``, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to the config file, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Path | None = None) -> ManagerConfig:
    """Load and validate the manager configuration.

    Args:
        path: Explicit path to a config file. If None, the env var
            and then an upward search are tried.

    Returns:
        Validated ManagerConfig (all defaults when no file is found).

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else find_config_file()

    if path is None:
        logger.debug("No %s found — using defaults", CONFIG_FILE)
        return ManagerConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading manager config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may nest everything under a "frida" key or be flat
    section = data.get("frida", data)
    if not isinstance(section, dict):
        raise ConfigError(f"Expected 'frida' to be a mapping in {path}")

    # Relative directories are relative to the config file, not the cwd
    base = path.parent.resolve()
    for key in ("data_dir", "install_dir", "download_dir", "preferences_file"):
        value = section.get(key)
        if isinstance(value, str) and not value.startswith(("~", "/")):
            section[key] = str(base / value)

    try:
        config = ManagerConfig.model_validate(section)
    except Exception as e:
        raise ConfigError(f"Invalid manager configuration: {e}") from e

    logger.info("Loaded config from %s (install_dir=%s)", path, config.install_path)
    return config
