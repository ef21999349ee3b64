"""
Credential gate - supplies the bearer token for every provider call.

Token issuance and refresh belong to the authentication subsystem; this
module only reads the stored token, fails fast when it is missing, and drops
it when the provider reports it expired so the next call asks for sign-in
instead of retrying with a known-bad token.
"""

import logging
from typing import Dict

from jobpulse.constants import AUTH_TOKEN_KEY
from jobpulse.errors import AuthRequired
from jobpulse.storage import KeyValueStore

logger = logging.getLogger(__name__)


class CredentialGate:
    """Reads and invalidates the persisted bearer token."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @property
    def is_signed_in(self) -> bool:
        return bool(self.store.get(AUTH_TOKEN_KEY))

    def token(self) -> str:
        """
        Return the bearer token.

        Raises:
            AuthRequired: If no token is stored
        """
        token = self.store.get(AUTH_TOKEN_KEY)
        if not token:
            raise AuthRequired()
        return token

    def headers(self) -> Dict[str, str]:
        """Authorization headers for a provider request."""
        return {"Authorization": f"Bearer {self.token()}"}

    def sign_in(self, token: str):
        """Store a token handed over by the authentication subsystem."""
        token = (token or "").strip()
        if not token:
            raise ValueError("Token must not be empty")
        self.store.set(AUTH_TOKEN_KEY, token)
        logger.info("Bearer token stored")

    def invalidate(self):
        """Drop the stored token (called after a 401)."""
        if self.store.get(AUTH_TOKEN_KEY):
            logger.warning("Bearer token rejected by the provider; clearing it")
        self.store.delete(AUTH_TOKEN_KEY)
