"""
Startup validation for JobPulse.

Checks the configuration, local storage and the persisted session before the
CLI or callback server starts. Each check yields ValidationResult items;
errors always fail the run, warnings only in strict mode.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlsplit

from jobpulse.config import Config
from jobpulse.constants import AUTH_TOKEN_KEY, LOGS_DIR, OAUTH_IN_PROGRESS_KEY
from jobpulse.logging_config import get_logger
from jobpulse.storage import IN_MEMORY, KeyValueStore

logger = get_logger(__name__)

_LOG_LEVEL = {"error": logging.ERROR, "warning": logging.WARNING, "info": logging.INFO}


@dataclass
class ValidationResult:
    """Outcome of one startup check."""

    name: str
    passed: bool
    message: str
    severity: str = "error"  # error, warning, info
    fix_hint: Optional[str] = None

    @classmethod
    def ok(cls, name: str, message: str) -> "ValidationResult":
        return cls(name, True, message, "info")

    @classmethod
    def problem(
        cls, name: str, message: str, severity: str = "error", fix_hint: Optional[str] = None
    ) -> "ValidationResult":
        return cls(name, False, message, severity, fix_hint)

    def __str__(self) -> str:
        status = "PASS" if self.passed else self.severity.upper()
        return f"[{status}] {self.name}: {self.message}"


def validate_configuration(config: Config) -> List[ValidationResult]:
    """Summarize the provider settings; plain HTTP is flagged in production."""
    results = [
        ValidationResult.ok(
            "Provider API", f"Using {config.api_base_url} (timeout {config.api_timeout}s)"
        ),
        ValidationResult.ok("Environment", f"Running in {config.environment} mode"),
    ]
    if config.environment == "production" and urlsplit(config.api_base_url).scheme != "https":
        results.append(
            ValidationResult.problem(
                "Provider API",
                "Bearer token would be sent over plain HTTP",
                severity="warning",
                fix_hint="Point api.base_url at the https endpoint",
            )
        )
    return results


def _check_store_directory(store_path: str) -> ValidationResult:
    if store_path == IN_MEMORY:
        return ValidationResult.ok("Store", "Using an in-memory store (nothing survives a restart)")

    store_dir = Path(store_path).parent
    if not store_dir.exists():
        return ValidationResult.problem(
            "Store Directory",
            f"Store directory does not exist: {store_dir}",
            fix_hint="Create the directory or change storage.path in config.yaml",
        )
    if not os.access(store_dir, os.W_OK):
        return ValidationResult.problem(
            "Store Directory",
            f"Store directory is not writable: {store_dir}",
            fix_hint="Check directory permissions",
        )
    return ValidationResult.ok("Store Directory", f"Store directory OK: {store_dir}")


def validate_file_system(config: Config) -> List[ValidationResult]:
    """Validate that the store and log locations are usable."""
    results = [_check_store_directory(config.store_path)]

    if LOGS_DIR.exists() or os.access(LOGS_DIR.parent, os.W_OK):
        results.append(ValidationResult.ok("Logs Directory", f"Logs directory OK: {LOGS_DIR}"))
    else:
        results.append(
            ValidationResult.problem(
                "Logs Directory",
                f"Cannot create logs directory: {LOGS_DIR}",
                severity="warning",
                fix_hint="File logging will be unavailable",
            )
        )
    return results


def validate_session(store: KeyValueStore) -> List[ValidationResult]:
    """Check the persisted token and connection flag."""
    if store.get(AUTH_TOKEN_KEY):
        results = [ValidationResult.ok("Bearer Token", "Signed in")]
    else:
        results = [
            ValidationResult.problem(
                "Bearer Token",
                "Not signed in",
                severity="warning",
                fix_hint="Run: python run.py login --token <token>",
            )
        ]

    if store.get(OAUTH_IN_PROGRESS_KEY) == "true":
        results.append(
            ValidationResult.problem(
                "OAuth Attempt",
                "A previous email connection attempt did not finish; it will be cancelled",
                severity="info",
            )
        )
    return results


def _log_results(results: List[ValidationResult]) -> None:
    logger.info("Startup checks:")
    for result in results:
        level = logging.INFO if result.passed else _LOG_LEVEL.get(result.severity, logging.INFO)
        logger.log(level, f"  {result}")
        if result.fix_hint and not result.passed:
            logger.log(level, f"    Hint: {result.fix_hint}")


def run_startup_validation(
    config: Config, store: KeyValueStore, strict: bool = False, log_results: bool = True
) -> Tuple[bool, List[ValidationResult]]:
    """
    Run every startup check.

    Args:
        config: Loaded configuration
        store: The key/value store the service will use
        strict: If True, treat warnings as errors
        log_results: If True, log each result

    Returns:
        Tuple of (passed, results)
    """
    checks: List[Tuple[str, Callable[[], List[ValidationResult]]]] = [
        ("Configuration", lambda: validate_configuration(config)),
        ("File System", lambda: validate_file_system(config)),
        ("Session", lambda: validate_session(store)),
    ]

    results: List[ValidationResult] = []
    for category, check in checks:
        try:
            results.extend(check())
        except (OSError, ValueError) as e:
            results.append(ValidationResult.problem(f"{category} Check", f"Check raised: {e}"))

    if log_results:
        _log_results(results)

    failed = [r for r in results if not r.passed and r.severity == "error"]
    if strict:
        failed += [r for r in results if not r.passed and r.severity == "warning"]

    if failed:
        mode = " (strict mode)" if strict else ""
        logger.error(f"Startup validation failed with {len(failed)} problem(s){mode}")
        return False, results

    logger.debug("Startup validation passed")
    return True, results
