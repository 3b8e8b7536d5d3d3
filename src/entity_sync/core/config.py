"""Configuration management for entity sync."""

import json
import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from ..models.config import SyncConfig


def setup_logging(level: str = "INFO") -> None:
    """Set up logging configuration.
    
    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def load_environment(env_file: Optional[str] = None) -> None:
    """Load environment variables from .env file.
    
    Args:
        env_file: Path to .env file. If None, looks for .env in current directory.
    """
    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path('.env')
    
    if env_path.exists():
        load_dotenv(env_path)
        logging.info(f"Loaded environment from {env_path}")
    else:
        logging.warning(f"No .env file found at {env_path}")


def get_required_env(key: str) -> str:
    """Get a required environment variable.
    
    Args:
        key: Environment variable name
        
    Returns:
        Environment variable value
        
    Raises:
        ValueError: If the environment variable is not set
    """
    value = os.getenv(key)
    if not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value


def get_optional_env(key: str, default: str = "") -> str:
    """Get an optional environment variable."""
    return os.getenv(key, default)


def parse_sync_configs(data: Dict[str, Any]) -> Dict[str, SyncConfig]:
    """Build sync configs from a ``{sync_id: config}`` mapping.

    The sync id may be given either as the mapping key or inside the
    config body; the key wins when both are present.

    Raises:
        ConfigurationError: If any entry fails validation
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Sync configuration must be an object keyed by sync id")

    configs = {}
    for sync_id, raw in data.items():
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Sync configuration for {sync_id} must be an object")
        try:
            configs[sync_id] = SyncConfig.model_validate({**raw, "syncId": sync_id})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid sync configuration for {sync_id}: {e}") from e
    return configs


def load_sync_configs(path: Optional[str] = None) -> Dict[str, SyncConfig]:
    """Load sync configurations from a JSON file.

    Args:
        path: Path to the JSON file. Defaults to ``ENTITY_SYNC_CONFIG_FILE``.

    Returns:
        Mapping of sync id to validated configuration. Empty if no file is configured.
    """
    config_path = path or get_optional_env("ENTITY_SYNC_CONFIG_FILE")
    if not config_path:
        logging.warning("No sync configuration file configured; no syncs will be registered")
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read sync configuration {config_path}: {e}") from e

    # Accept either the bare mapping or the nested datadog.sync layout
    if isinstance(data, dict) and "datadog" in data:
        data = data["datadog"].get("sync", {})
    configs = parse_sync_configs(data)

    app_base_url = get_optional_env("BACKSTAGE_APP_BASE_URL")
    if app_base_url:
        configs = {
            sync_id: config if config.app_base_url else config.model_copy(update={"app_base_url": app_base_url})
            for sync_id, config in configs.items()
        }
    return configs
