"""
Tests for configuration loading and validation.

Ensures that config.yaml is properly validated and that defaults apply
where optional settings are omitted.
"""

import pytest
import tempfile
import yaml
from pathlib import Path
from unittest.mock import patch
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jobpulse.config import Config
from jobpulse.constants import APP_DIR, DEFAULT_STORE_PATH


def _write_config(data):
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(data, f)
        return Path(f.name)


def test_config_requires_api_section():
    """Test that config validation requires the api section."""
    config_path = _write_config({"email": {"default_provider": "gmail"}})

    try:
        with pytest.raises(ValueError, match="Missing required config section: api"):
            Config(config_path=config_path)
    finally:
        config_path.unlink()


def test_config_requires_base_url():
    """Test that config validation requires api.base_url."""
    config_path = _write_config({"api": {"timeout": 10}})

    try:
        with pytest.raises(ValueError, match="Missing required api field: base_url"):
            Config(config_path=config_path)
    finally:
        config_path.unlink()


def test_config_rejects_unknown_provider():
    """Test that only gmail and outlook are accepted as default provider."""
    with pytest.raises(ValueError, match="Unknown email provider 'yahoo'"):
        Config.from_dict(
            {"api": {"base_url": "http://localhost:8000"}, "email": {"default_provider": "yahoo"}}
        )


@pytest.mark.parametrize(
    "section,field,value",
    [
        ("api", "timeout", 0),
        ("email", "max_results", -5),
        ("email", "calls_per_minute", "fast"),
        ("oauth", "poll_interval_seconds", 0),
    ],
)
def test_config_rejects_non_positive_numbers(section, field, value):
    """Test that numeric settings must be positive numbers."""
    data = {"api": {"base_url": "http://localhost:8000"}}
    data.setdefault(section, {})[field] = value

    with pytest.raises(ValueError, match=f"{section}.{field} must be a positive number"):
        Config.from_dict(data)


def test_config_loads_valid_config():
    """Test that valid config loads successfully."""
    valid_config = {
        "api": {"base_url": "http://localhost:8000/", "timeout": 10},
        "storage": {"path": "/tmp/jobpulse-test.db"},
        "email": {
            "default_provider": "outlook",
            "max_results": 50,
            "account_cache_minutes": 5,
            "calls_per_minute": 12,
        },
        "oauth": {
            "popup": {"width": 600, "height": 700},
            "poll_interval_seconds": 0.5,
            "success_message_seconds": 3,
            "callback": {"host": "0.0.0.0", "port": 6000},
        },
    }
    config_path = _write_config(valid_config)

    try:
        config = Config(config_path=config_path)

        with patch.dict(os.environ):
            os.environ.pop("JOBPULSE_API_URL", None)
            assert config.api_base_url == "http://localhost:8000"
        assert config.api_timeout == 10
        assert config.store_path == "/tmp/jobpulse-test.db"
        assert config.default_provider == "outlook"
        assert config.max_results == 50
        assert config.account_cache_seconds == 300
        assert config.calls_per_minute == 12
        assert config.popup_size == (600, 700)
        assert config.poll_interval == 0.5
        assert config.success_message_seconds == 3
        assert config.callback_host == "0.0.0.0"
        assert config.callback_port == 6000
    finally:
        config_path.unlink()


def test_config_default_values():
    """Test that config provides sensible defaults for optional fields."""
    config = Config.from_dict({"api": {"base_url": "http://localhost:8000"}})

    assert config.api_timeout == 30
    assert config.store_path == str(DEFAULT_STORE_PATH)
    assert config.default_provider == "gmail"
    assert config.max_results == 20
    assert config.account_cache_seconds == 600
    assert config.popup_size == (500, 600)
    assert config.poll_interval == 1.0
    assert config.success_message_seconds == 5.0
    assert config.callback_host == "127.0.0.1"
    assert config.callback_port == 5055


def test_relative_store_path_is_under_app_dir():
    """Test that a relative storage path resolves against the project directory."""
    config = Config.from_dict(
        {"api": {"base_url": "http://localhost:8000"}, "storage": {"path": "data/kv.db"}}
    )

    assert config.store_path == str(APP_DIR / "data/kv.db")


def test_api_url_environment_override():
    """Test that JOBPULSE_API_URL overrides the configured base URL."""
    config = Config.from_dict({"api": {"base_url": "http://localhost:8000"}})

    with patch.dict(os.environ, {"JOBPULSE_API_URL": "https://api.example.com/"}):
        assert config.api_base_url == "https://api.example.com"


def test_dot_notation_get():
    """Test nested lookups with a default."""
    config = Config.from_dict({"api": {"base_url": "http://localhost:8000", "timeout": 7}})

    assert config.get("api.timeout") == 7
    assert config.get("api.missing", "fallback") == "fallback"
    assert config.get("email.max_results") is None


def test_config_file_not_found():
    """Test that missing config file raises appropriate error."""
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        Config(config_path=Path("/nonexistent/config.yaml"))
