"""Design-time connection settings."""
from schemagen.config.connection import (
    CONFIG_DIR,
    ConnectionConfigError,
    default_config_path,
    load_connection_config,
    validate_connection_config,
)

__all__ = [
    'CONFIG_DIR',
    'ConnectionConfigError',
    'default_config_path',
    'load_connection_config',
    'validate_connection_config',
]
