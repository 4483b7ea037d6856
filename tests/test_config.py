"""Tests for settings loading and validation."""

import pytest

from config import is_production
from config.lib.load_settings_conf import (
    load_settings_conf,
    parse_origins,
    SettingsError,
    DEFAULTS
)

def test_defaults_without_settings_file(tmp_path):
    """Test every setting has a typed default when settings.conf is absent."""
    settings = load_settings_conf(str(tmp_path), environ={})

    assert settings['db_url'] == DEFAULTS['db_url']
    assert settings['api_port'] == 3101
    assert settings['pool_max_size'] == 20
    assert settings['acquire_timeout'] == 10.0
    assert settings['cors_origins'] == ['*']
    assert settings['environment'] == 'development'
    assert settings['auto_create_database'] is False

def test_settings_file_values(tmp_path):
    """Test values from settings.conf replace defaults."""
    (tmp_path / 'settings.conf').write_text(
        "[DEFAULT]\n"
        "db_url = postgresql://mapit:pw@db:5432/mapit\n"
        "cors_origins = http://localhost:5173, https://mapit.example.com\n"
        "api_port = 8080\n"
        "auto_create_database = yes\n"
    )

    settings = load_settings_conf(str(tmp_path), environ={})

    assert settings['db_url'] == 'postgresql://mapit:pw@db:5432/mapit'
    assert settings['cors_origins'] == ['http://localhost:5173', 'https://mapit.example.com']
    assert settings['api_port'] == 8080
    assert settings['auto_create_database'] is True

def test_environment_overrides_file(tmp_path):
    """Test DATABASE_URL, API_PORT and MAPIT_ENV win over settings.conf."""
    (tmp_path / 'settings.conf').write_text("[DEFAULT]\napi_port = 8080\n")

    settings = load_settings_conf(str(tmp_path), environ={
        'DATABASE_URL': 'postgresql://u:p@neon.example/db?sslmode=require',
        'API_PORT': '9000',
        'MAPIT_ENV': 'Production'
    })

    assert settings['db_url'].endswith('sslmode=require')
    assert settings['api_port'] == 9000
    assert settings['environment'] == 'production'
    assert is_production(settings)

@pytest.mark.parametrize("key,value", [
    ('api_port', 'abc'),
    ('api_port', '70000'),
    ('pool_max_size', '0'),
    ('acquire_timeout', '-1'),
    ('bcrypt_rounds', '3'),
    ('environment', 'staging'),
])
def test_invalid_values_raise(tmp_path, key, value):
    """Test invalid settings produce a readable SettingsError."""
    (tmp_path / 'settings.conf').write_text(f"[DEFAULT]\n{key} = {value}\n")

    with pytest.raises(SettingsError) as exc_info:
        load_settings_conf(str(tmp_path), environ={})

    assert "Settings Configuration Validation Failed" in str(exc_info.value)
    assert key in str(exc_info.value)

def test_parse_origins_drops_blanks():
    """Test origin lists tolerate spaces and trailing commas."""
    assert parse_origins(" http://a.test , ,http://b.test,") == ['http://a.test', 'http://b.test']
    assert parse_origins("") == []
