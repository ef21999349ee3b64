"""
Provider Client - HTTP access to the email-account service

This module wraps the provider endpoints JobPulse consumes:

- GET    /api/email-accounts/                         list connected accounts
- GET    /api/email-accounts/oauth-init/?provider=    get an authorization URL
- DELETE /api/email-accounts/{id}/                    disconnect an account
- GET    /api/email-accounts/{id}/gmail-emails/       list messages

Every request carries the bearer token from the credential gate. A 401 drops
the token locally before raising, so the next operation asks for sign-in.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from jobpulse.auth import CredentialGate
from jobpulse.constants import DEFAULT_MAX_RESULTS, PROVIDERS
from jobpulse.errors import AuthExpired, InvalidPayload, ProviderError
from jobpulse.models import EmailAccount, Message
from jobpulse.resilience import RateLimiter

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Bearer-authenticated JSON client.

    Handles:
    - Attaching the Authorization header (fails fast without a token)
    - Converting network failures and error responses into ProviderError
    - Invalidating the token on 401
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialGate,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        """
        Initialize client.

        Args:
            base_url: Provider service root, e.g. http://localhost:8000
            credentials: Source of the bearer token
            session: Optional requests session (shared connection pool)
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Send a request and return the successful response.

        Raises:
            AuthRequired: If no token is stored
            AuthExpired: If the provider answered 401
            ProviderError: On network failure or any other non-2xx answer
        """
        headers = self.credentials.headers()
        url = f"{self.base_url}{path}"

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ProviderError() from e

        if response.status_code == 401:
            self.credentials.invalidate()
            raise AuthExpired(status_code=401)

        if not response.ok:
            message = _error_message(response)
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            raise ProviderError(message, status_code=response.status_code)

        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise InvalidPayload() from e


def _error_message(response: requests.Response) -> Optional[str]:
    """Pull the server's own error text out of an error response, if any."""
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            if isinstance(data.get(key), str) and data[key]:
                return data[key]
    return None


class ProviderClient(ApiClient):
    """Client for the email-account endpoints."""

    ACCOUNTS_PATH = "/api/email-accounts/"

    def __init__(self, *args, rate_limiter: Optional[RateLimiter] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.rate_limiter = rate_limiter

    def list_accounts(self) -> List[EmailAccount]:
        """
        List connected email accounts.

        Malformed entries are skipped with a warning.
        """
        data = self._json(self._request("GET", self.ACCOUNTS_PATH))
        if not isinstance(data, list):
            raise InvalidPayload("Expected a list of email accounts")

        accounts = []
        for entry in data:
            try:
                accounts.append(EmailAccount.from_payload(entry))
            except InvalidPayload as e:
                logger.warning(f"Skipping email account: {e}")
        logger.debug(f"Provider lists {len(accounts)} email account(s)")
        return accounts

    def oauth_init(self, provider: str) -> str:
        """
        Request an authorization URL for ``provider``.

        Returns:
            The URL to open in the popup

        Raises:
            ProviderError: With the server's error text verbatim when it sent
                one, or a generic message when the URL is missing or malformed
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")

        data = self._json(
            self._request("GET", f"{self.ACCOUNTS_PATH}oauth-init/", params={"provider": provider})
        )
        if not isinstance(data, dict):
            raise InvalidPayload("Failed to generate OAuth URL. Please try again.")

        if data.get("error"):
            raise ProviderError(str(data["error"]))

        oauth_url = data.get("oauth_url")
        if not oauth_url or not isinstance(oauth_url, str):
            raise InvalidPayload("Failed to generate OAuth URL. Please try again.")

        return oauth_url

    def delete_account(self, account_id) -> None:
        """Disconnect an email account (200/204 on success)."""
        self._request("DELETE", f"{self.ACCOUNTS_PATH}{account_id}/")
        logger.info(f"Email account {account_id} disconnected")

    def list_messages(
        self, account_id, query: str = "", max_results: int = DEFAULT_MAX_RESULTS
    ) -> List[Message]:
        """
        List messages for an account.

        Args:
            account_id: Connected account id
            query: Provider search query (empty for the most recent messages)
            max_results: Page size

        Returns:
            Validated messages; entries without an id are skipped
        """
        params: Dict[str, Any] = {"max_results": max_results}
        if query:
            params["query"] = query

        if self.rate_limiter:
            self.rate_limiter.acquire()

        data = self._json(
            self._request("GET", f"{self.ACCOUNTS_PATH}{account_id}/gmail-emails/", params=params)
        )
        if not isinstance(data, dict):
            raise InvalidPayload("Expected an object with an 'emails' list")

        messages = []
        for entry in data.get("emails") or []:
            try:
                messages.append(Message.from_payload(entry))
            except InvalidPayload as e:
                logger.warning(f"Skipping email: {e}")
        logger.debug(f"Fetched {len(messages)} email(s) for account {account_id} (query={query!r})")
        return messages
