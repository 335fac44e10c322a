"""Tests for connection configuration."""
import os
from unittest.mock import patch

import pytest
import yaml

from schemagen.config.connection import (
    ConnectionConfigError,
    default_config_path,
    load_connection_config,
    validate_connection_config,
)

CONNECTION_STRING = 'DRIVER={ODBC Driver 18 for SQL Server};DATABASE=app;Trusted_Connection=yes'


def test_load_from_explicit_file(tmp_path):
    """Test loading config from explicit file."""
    config_file = tmp_path / "dev.yaml"
    config_file.write_text(yaml.dump({'connection_string': CONNECTION_STRING, 'server': 'db01'}))

    config = load_connection_config(conn_file=str(config_file))

    assert config['connection_string'] == CONNECTION_STRING
    assert config['server'] == 'db01'


def test_load_from_default_path(tmp_path):
    """Test loading config from default ~/.schemagen path."""
    config_dir = tmp_path / '.schemagen'
    config_dir.mkdir()
    (config_dir / 'sqlserver.yaml').write_text(yaml.dump({'connection_string': 'DRIVER=default'}))

    with patch('pathlib.Path.home', return_value=tmp_path):
        config = load_connection_config(catalog='sqlserver')

    assert config['connection_string'] == 'DRIVER=default'


def test_load_from_environment_variables(tmp_path):
    """Test loading config from environment variables."""
    with patch.dict(os.environ, {
        'SQLSERVER_CONNECTION_STRING': 'DRIVER=env',
        'SQLSERVER_SERVER': 'env-server'
    }):
        with patch('pathlib.Path.home', return_value=tmp_path):
            config = load_connection_config(catalog='sqlserver')

    assert config == {'connection_string': 'DRIVER=env', 'server': 'env-server'}


def test_load_explicit_overrides_default(tmp_path):
    """Test that explicit file overrides default path."""
    explicit_file = tmp_path / "explicit.yaml"
    explicit_file.write_text(yaml.dump({'connection_string': 'DRIVER=explicit'}))

    default_path = tmp_path / '.schemagen' / 'sqlserver.yaml'
    default_path.parent.mkdir(parents=True)
    default_path.write_text(yaml.dump({'connection_string': 'DRIVER=default'}))

    with patch('pathlib.Path.home', return_value=tmp_path):
        config = load_connection_config(conn_file=str(explicit_file))

    assert config['connection_string'] == 'DRIVER=explicit'


def test_load_defaults_when_nothing_found(tmp_path):
    """Test the empty fallback when no source provides a config."""
    with patch.dict(os.environ, {}, clear=True):
        with patch('pathlib.Path.home', return_value=tmp_path):
            config = load_connection_config()

    assert config == {'connection_string': '', 'server': None}


def test_load_nonexistent_file():
    """Test error when config file doesn't exist."""
    with pytest.raises(ConnectionConfigError, match="not found"):
        load_connection_config(conn_file='/nonexistent/path.yaml')


def test_load_invalid_yaml(tmp_path):
    """Test error with invalid YAML file."""
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("{ invalid yaml [")

    with pytest.raises(ConnectionConfigError, match="Invalid YAML"):
        load_connection_config(conn_file=str(config_file))


def test_load_yaml_not_dict(tmp_path):
    """Test error when YAML is not a dictionary."""
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- item1\n- item2")

    with pytest.raises(ConnectionConfigError, match="dictionary"):
        load_connection_config(conn_file=str(config_file))


def test_validate_config():
    """Test validation of a config with a connection string."""
    assert validate_connection_config('sqlserver', {'connection_string': CONNECTION_STRING}) is True


@pytest.mark.parametrize("config", [
    {},
    {'connection_string': ''},
    {'server': 'db01'},
])
def test_validate_missing_connection_string(config):
    """Test validation fails without a connection string."""
    with pytest.raises(ConnectionConfigError, match="Missing required"):
        validate_connection_config('sqlserver', config)


def test_load_lowercases_keys(tmp_path):
    """Test that YAML keys are matched case-insensitively."""
    config_file = tmp_path / "upper.yaml"
    config_file.write_text(yaml.dump({'Connection_String': 'DRIVER=x', 'SERVER': 'db01'}))

    config = load_connection_config(conn_file=str(config_file))

    assert config == {'connection_string': 'DRIVER=x', 'server': 'db01'}


def test_default_config_path(tmp_path):
    """Test the per-catalog default config location."""
    with patch('pathlib.Path.home', return_value=tmp_path):
        assert default_config_path('SqlServer') == tmp_path / '.schemagen' / 'sqlserver.yaml'
