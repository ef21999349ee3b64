"""
Email Package - connected accounts and message ingestion for JobPulse

This package talks to the provider service that owns the mailbox OAuth
tokens, caches the connected accounts, and fetches and classifies messages.

Usage:
    from jobpulse.email import ProviderClient, AccountDirectory, EmailFetcher
    from jobpulse.email import classify_email

    fetcher = EmailFetcher(client, accounts)
    messages = fetcher.fetch("interview", max_results=20)
    category = classify_email(messages[0].subject, messages[0].snippet)
"""

from .client import ApiClient, ProviderClient

from .cache import AccountCache

from .accounts import AccountDirectory

from .classifier import (
    KEYWORD_GROUPS,
    classify_email,
    classify_message,
    html_to_text,
)

from .fetcher import (
    EmailFetcher,
    build_search_query,
    merge_messages,
)

__all__ = [
    # Client
    "ApiClient",
    "ProviderClient",
    # Accounts
    "AccountCache",
    "AccountDirectory",
    # Classifier
    "KEYWORD_GROUPS",
    "classify_email",
    "classify_message",
    "html_to_text",
    # Fetcher
    "EmailFetcher",
    "build_search_query",
    "merge_messages",
]
