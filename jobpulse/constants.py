"""
Constants - Shared configuration and constants

This module contains shared constants used across JobPulse.
"""

from pathlib import Path

# Application directories
APP_DIR = Path(__file__).parent.parent
DEFAULT_STORE_PATH = APP_DIR / "jobpulse.db"
DEFAULT_CONFIG_PATH = APP_DIR / "config.yaml"
LOGS_DIR = APP_DIR / "logs"

# Email providers that can be linked through the OAuth popup flow
PROVIDERS = ("gmail", "outlook")
DEFAULT_PROVIDER = "gmail"

# Persisted keys (client-resident state that survives a restart)
AUTH_TOKEN_KEY = "authToken"
ACCOUNTS_CACHE_KEY = "email_accounts_cache"
ACCOUNTS_CACHE_TIMESTAMP_KEY = "email_accounts_cache_timestamp"
OAUTH_IN_PROGRESS_KEY = "email_oauth_in_progress"
CONNECTED_AT_KEY = "email_connected_at"

# Timing
ACCOUNT_CACHE_TTL_SECONDS = 10 * 60
POPUP_POLL_INTERVAL_SECONDS = 1.0
SUCCESS_MESSAGE_SECONDS = 5.0

# OAuth popup window
POPUP_NAME = "oauthPopup"
POPUP_WIDTH = 500
POPUP_HEIGHT = 600

# Email fetching
DEFAULT_MAX_RESULTS = 20

# Application record statuses accepted by the application store
APPLICATION_STATUSES = ("applied", "viewed", "interview", "offer", "rejected", "ghosted", "other")
