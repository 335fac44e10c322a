"""Design-time connection configuration.

The generator connects to a live SQL Server once per run. Settings are an ODBC
connection string plus an optional server address that overrides the
connection string's SERVER, so one YAML file can target several instances.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = '.schemagen'

# read from <CATALOG>_<KEY> environment variables
ENV_PARAMS = ('CONNECTION_STRING', 'SERVER')

EMPTY_CONFIG = {'connection_string': '', 'server': None}


class ConnectionConfigError(ValueError):
    """Raised when connection configuration loading fails."""


def default_config_path(catalog: str) -> Path:
    """~/.schemagen/<catalog>.yaml"""
    return Path.home() / CONFIG_DIR / f'{catalog.lower()}.yaml'


def load_connection_config(
    conn_file: Optional[str] = None,
    catalog: str = 'sqlserver'
) -> Dict[str, Any]:
    """Load the design-time connection configuration.

    Sources, first match wins:
    1. Explicit --conn-file path
    2. ~/.schemagen/{catalog}.yaml
    3. {CATALOG}_CONNECTION_STRING / {CATALOG}_SERVER environment variables
    4. Empty defaults, which validate_connection_config rejects

    Returns:
        Dictionary with lower-cased keys, at least 'connection_string'

    Raises:
        ConnectionConfigError: If a configuration file is missing or invalid
    """
    if conn_file:
        return _load_yaml_config(Path(conn_file))

    default_path = default_config_path(catalog)
    if default_path.exists():
        return _load_yaml_config(default_path)

    env_config = _load_from_env(catalog)
    if env_config:
        logger.info("Loaded connection config from %s_* environment variables", catalog.upper())
        return env_config

    logger.warning("No connection config found for %s", catalog)
    return dict(EMPTY_CONFIG)


def _load_yaml_config(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ConnectionConfigError(f"Configuration file not found: {path}")

    try:
        config = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ConnectionConfigError(f"Invalid YAML configuration: {path}\n{e}") from e
    except OSError as e:
        raise ConnectionConfigError(f"Cannot read configuration file: {path}\n{e}") from e

    if not isinstance(config, dict):
        raise ConnectionConfigError(
            f"Configuration file must contain a YAML dictionary of connection settings: {path}"
        )

    logger.info("Loaded connection config from: %s", path)
    return {str(key).lower(): value for key, value in config.items()}


def _load_from_env(catalog: str) -> Optional[Dict[str, Any]]:
    prefix = catalog.upper()
    config = {
        param.lower(): os.environ[f"{prefix}_{param}"]
        for param in ENV_PARAMS
        if os.environ.get(f"{prefix}_{param}")
    }
    return config or None


def validate_connection_config(catalog: str, config: Dict[str, Any]) -> bool:
    """Check that a connection string is present.

    Raises:
        ConnectionConfigError: If it is missing or empty
    """
    if not config.get('connection_string'):
        raise ConnectionConfigError(
            f"Missing required connection parameter for {catalog}: connection_string. "
            f"Provide via --conn-file, {default_config_path(catalog)} "
            f"or {catalog.upper()}_CONNECTION_STRING"
        )
    return True
