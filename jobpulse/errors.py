"""
Error types for JobPulse.

Lower layers (HTTP client, storage, payload validation) raise these; the
orchestrator, fetch engine, account directory and tracker turn them into
user-facing strings. Every error carries a message that is safe to show.
"""

from typing import Optional


class JobPulseError(Exception):
    """Base class for all JobPulse errors."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or self.default_message)
        self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)


class AuthRequired(JobPulseError):
    """No bearer token is available. Never retried automatically."""

    default_message = "Please sign in to connect your email accounts."


class AuthExpired(AuthRequired):
    """The provider answered 401; the local token has been dropped."""

    default_message = "Authentication expired. Please sign in again."


class ProviderError(JobPulseError):
    """Network failure or error response from the provider service."""

    default_message = (
        "The email service could not be reached. Please check your connection and try again."
    )


class InvalidPayload(ProviderError):
    """The provider returned a payload that does not match the expected shape."""

    default_message = "The email service returned an unexpected response."


class PopupBlocked(JobPulseError):
    default_message = "Popup was blocked. Please allow popups for this site and try again."


class UserCancelled(JobPulseError):
    """The user closed the authorization popup. Not an error per se."""

    default_message = "Email connection was cancelled."


class NoAccountConnected(JobPulseError):
    default_message = "No Gmail account connected"

    def __init__(self, provider: Optional[str] = None):
        message = None
        if provider and provider != "gmail":
            message = f"No {provider.title()} account connected"
        super().__init__(message)
        self.provider = provider
