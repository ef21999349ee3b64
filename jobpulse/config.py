"""
Configuration Loader for JobPulse
Loads and validates user configuration from config.yaml
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from jobpulse import constants


class Config:
    """Configuration manager for JobPulse."""

    def __init__(self, config_path: Optional[Path] = None, data: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration from a YAML file or an already parsed dict.

        Args:
            config_path: Path to config.yaml (defaults to ./config.yaml)
            data: Parsed configuration; skips the file when given
        """
        self.config_path = Path(config_path) if config_path else constants.DEFAULT_CONFIG_PATH
        if data is not None:
            self._validate_config(data)
            self._config = data
        else:
            self._config = self._load_config()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Build a configuration without touching the filesystem."""
        return cls(data=data)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {self.config_path}\n"
                f"Copy config.example.yaml to config.yaml and fill in your information."
            )

        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f) or {}

        self._validate_config(config)

        return config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate that required configuration fields are present and sane."""
        if not isinstance(config, dict):
            raise ValueError("Config must be a mapping")

        if 'api' not in config:
            raise ValueError("Missing required config section: api")

        if not (config['api'] or {}).get('base_url'):
            raise ValueError("Missing required api field: base_url")

        provider = (config.get('email') or {}).get('default_provider', constants.DEFAULT_PROVIDER)
        if provider not in constants.PROVIDERS:
            raise ValueError(
                f"Unknown email provider '{provider}'. Expected one of: "
                f"{', '.join(constants.PROVIDERS)}"
            )

        positive_fields = [
            ('api', 'timeout'),
            ('email', 'max_results'),
            ('email', 'account_cache_minutes'),
            ('email', 'calls_per_minute'),
            ('oauth', 'poll_interval_seconds'),
            ('oauth', 'success_message_seconds'),
        ]
        for section, field in positive_fields:
            value = (config.get(section) or {}).get(field)
            if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                raise ValueError(f"Config field {section}.{field} must be a positive number")

    def _section(self, name: str) -> Dict[str, Any]:
        return self._config.get(name) or {}

    # ===== API =====

    @property
    def api_base_url(self) -> str:
        """Base URL of the provider service (JOBPULSE_API_URL overrides)."""
        url = os.environ.get('JOBPULSE_API_URL') or self._section('api')['base_url']
        return url.rstrip('/')

    @property
    def api_timeout(self) -> float:
        """Request timeout in seconds."""
        return self._section('api').get('timeout', 30)

    # ===== STORAGE =====

    @property
    def store_path(self) -> str:
        """Path of the SQLite key/value store (':memory:' for a throwaway store)."""
        path = self._section('storage').get('path')
        if not path:
            return str(constants.DEFAULT_STORE_PATH)
        if path == ':memory:' or Path(path).is_absolute():
            return path
        return str(constants.APP_DIR / path)

    # ===== EMAIL =====

    @property
    def default_provider(self) -> str:
        """Provider used when a command does not name one."""
        return self._section('email').get('default_provider', constants.DEFAULT_PROVIDER)

    @property
    def max_results(self) -> int:
        """Page size for email fetches."""
        return self._section('email').get('max_results', constants.DEFAULT_MAX_RESULTS)

    @property
    def account_cache_seconds(self) -> float:
        """Freshness window of the email-account cache."""
        minutes = self._section('email').get('account_cache_minutes')
        if minutes is None:
            return constants.ACCOUNT_CACHE_TTL_SECONDS
        return minutes * 60

    @property
    def calls_per_minute(self) -> int:
        """Rate limit for the provider's message listing."""
        return self._section('email').get('calls_per_minute', 30)

    # ===== OAUTH POPUP =====

    @property
    def popup_size(self) -> tuple:
        """(width, height) of the authorization popup."""
        popup = self._section('oauth').get('popup') or {}
        return (
            popup.get('width', constants.POPUP_WIDTH),
            popup.get('height', constants.POPUP_HEIGHT),
        )

    @property
    def poll_interval(self) -> float:
        """Seconds between popup-closed checks."""
        return self._section('oauth').get(
            'poll_interval_seconds', constants.POPUP_POLL_INTERVAL_SECONDS
        )

    @property
    def success_message_seconds(self) -> float:
        """How long the 'connected' message stays visible."""
        return self._section('oauth').get(
            'success_message_seconds', constants.SUCCESS_MESSAGE_SECONDS
        )

    @property
    def callback_host(self) -> str:
        return (self._section('oauth').get('callback') or {}).get('host', '127.0.0.1')

    @property
    def callback_port(self) -> int:
        return (self._section('oauth').get('callback') or {}).get('port', 5055)

    # ===== ENVIRONMENT =====

    @property
    def environment(self) -> str:
        return os.environ.get('JOBPULSE_ENV', 'development')

    # ===== UTILITY METHODS =====

    def reload(self) -> None:
        """Reload configuration from file."""
        self._config = self._load_config()

    def to_dict(self) -> Dict[str, Any]:
        """Return a copy of the raw configuration dictionary."""
        return dict(self._config)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key.

        Example: config.get('api.base_url')
        """
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value


def load_config(config_path: Optional[Path] = None, env_file: Optional[Path] = None) -> Config:
    """
    Load .env overrides, then the YAML configuration.

    Args:
        config_path: Path to config.yaml
        env_file: Optional .env file (defaults to the one next to the project)
    """
    load_dotenv(env_file or constants.APP_DIR / '.env')
    return Config(config_path)
