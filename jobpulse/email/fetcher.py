"""
Email Fetcher - fetch, merge and search provider messages

Pulls one page of messages for the active account and unions it into an
in-memory collection keyed by message id (newer data wins), kept sorted by
date descending. Re-fetching the same query is therefore idempotent, and a
re-fetch repairs stale read state.

A failed fetch leaves the collection untouched: stale-but-available messages
are preferable to an empty list.
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Union

from jobpulse.constants import DEFAULT_MAX_RESULTS
from jobpulse.email.accounts import AccountDirectory
from jobpulse.email.client import ProviderClient
from jobpulse.errors import JobPulseError, NoAccountConnected
from jobpulse.models import Message

logger = logging.getLogger(__name__)

DateLike = Union[date, str, None]

# Preset provider queries
JOB_RELATED_QUERY = (
    "subject:(job OR application OR interview OR recruiter OR hiring OR position "
    "OR career OR opportunity)"
)
RECRUITER_QUERY = (
    "from:(recruiter OR recruiting OR talent OR hiring OR hr) "
    "OR subject:(recruiter OR recruiting OR opportunity)"
)
INTERVIEW_QUERY = (
    'subject:(interview OR "phone screen" OR "video call" OR "meet" OR "schedule") '
    "AND (job OR position OR role)"
)
REJECTION_QUERY = (
    'subject:("not selected" OR "unfortunately" OR "decided to" OR "other candidates" '
    'OR "position has been filled") OR ("we regret" OR "thank you for your interest")'
)
OFFER_QUERY = (
    'subject:("offer" OR "congratulations" OR "pleased to offer" OR "job offer" '
    'OR "welcome to") AND NOT (interview OR application)'
)
UNREAD_JOB_QUERY = (
    "is:unread AND (subject:(job OR application OR interview OR recruiter) "
    "OR from:(recruiter OR recruiting))"
)


def _format_date(value: DateLike) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return str(value)


def build_search_query(
    query: Optional[str] = None,
    from_date: DateLike = None,
    to_date: DateLike = None,
    has_attachment: bool = False,
    is_unread: bool = False,
) -> str:
    """
    Build a provider search query.

    Parts appear only when requested, in this order, joined by single spaces:
    free text, ``after:<from_date>``, ``before:<to_date>``, ``has:attachment``,
    ``is:unread``.

    Example:
        >>> build_search_query("offer", from_date="2024-01-01", is_unread=True)
        'offer after:2024-01-01 is:unread'
    """
    parts = []

    if query:
        parts.append(query)

    after = _format_date(from_date)
    if after:
        parts.append(f"after:{after}")

    before = _format_date(to_date)
    if before:
        parts.append(f"before:{before}")

    if has_attachment:
        parts.append("has:attachment")

    if is_unread:
        parts.append("is:unread")

    return " ".join(parts)


def merge_messages(existing: Iterable[Message], incoming: Iterable[Message]) -> List[Message]:
    """
    Union two message collections by id, incoming winning, newest first.

    Messages with the same date are ordered by id (descending) so the result
    does not depend on arrival order.
    """
    by_id: Dict[str, Message] = {}
    for message in existing:
        by_id[message.id] = message
    for message in incoming:
        by_id[message.id] = message

    return sorted(by_id.values(), key=lambda m: (m.date, m.id), reverse=True)


class EmailFetcher:
    """
    In-memory message collection for the active account.

    Attributes:
        messages: Merged collection, newest first
        last_fetched: The raw page returned by the most recent fetch
        last_query: The most recent non-empty provider query
        error: User-facing message from the most recent failure, if any
    """

    def __init__(
        self,
        client: ProviderClient,
        accounts: AccountDirectory,
        provider: Optional[str] = None,
        default_max_results: int = DEFAULT_MAX_RESULTS,
    ):
        self.client = client
        self.accounts = accounts
        self.provider = provider
        self.default_max_results = default_max_results

        self.messages: List[Message] = []
        self.last_fetched: List[Message] = []
        self.last_query = ""
        self.error: Optional[str] = None
        self.is_loading = False

    def fetch(
        self,
        query: Optional[str] = None,
        max_results: Optional[int] = None,
        from_date: DateLike = None,
        to_date: DateLike = None,
        has_attachment: bool = False,
        is_unread: bool = False,
    ) -> List[Message]:
        """
        Fetch a page of messages and merge it into the collection.

        Returns:
            The merged collection, newest first

        Raises:
            NoAccountConnected: No active account; nothing is changed
            JobPulseError: Network, auth or payload failure; the collection
                is kept and ``error`` is set
        """
        account = self.accounts.active_account(self.provider)
        if account is None:
            error = NoAccountConnected(self.provider)
            self.error = str(error)
            raise error

        search = build_search_query(query, from_date, to_date, has_attachment, is_unread)
        page_size = max_results or self.default_max_results

        self.is_loading = True
        self.error = None
        try:
            fetched = self.client.list_messages(account.id, search, page_size)
        except JobPulseError as e:
            logger.error(f"Error fetching emails for account {account.id}: {e}")
            self.error = str(e)
            raise
        finally:
            self.is_loading = False

        if search:
            self.last_query = search
        self.last_fetched = fetched
        self.messages = merge_messages(self.messages, fetched)
        logger.info(
            f"Fetched {len(fetched)} email(s) from {account.email_address or account.id}; "
            f"{len(self.messages)} in collection"
        )
        return list(self.messages)

    def search(self, query: str, max_results: Optional[int] = None) -> List[Message]:
        """Fetch with a required free-text query."""
        if not query or not query.strip():
            raise ValueError("Search query is required")
        return self.fetch(query.strip(), max_results)

    def fetch_job_related(self, max_results: int = 50) -> List[Message]:
        return self.fetch(JOB_RELATED_QUERY, max_results)

    def fetch_recruiter_emails(
        self, days: int = 30, max_results: int = 20, today: Optional[date] = None
    ) -> List[Message]:
        since = (today or date.today()) - timedelta(days=days)
        return self.fetch(RECRUITER_QUERY, max_results, from_date=since)

    def fetch_interview_emails(self, max_results: int = 20) -> List[Message]:
        return self.fetch(INTERVIEW_QUERY, max_results)

    def fetch_rejection_emails(self, max_results: int = 20) -> List[Message]:
        return self.fetch(REJECTION_QUERY, max_results)

    def fetch_offer_emails(self, max_results: int = 10) -> List[Message]:
        return self.fetch(OFFER_QUERY, max_results)

    def fetch_unread_job_emails(self, max_results: int = 20) -> List[Message]:
        return self.fetch(UNREAD_JOB_QUERY, max_results)

    def fetch_by_company(self, company: str, max_results: int = 20) -> List[Message]:
        company = (company or "").strip()
        if not company:
            raise ValueError("Company name is required")
        return self.fetch(f"from:{company} OR subject:{company}", max_results)

    def get_message(self, message_id: str) -> Optional[Message]:
        return next((m for m in self.messages if m.id == message_id), None)

    def filter_local(self, text: str) -> List[Message]:
        """Search the already-fetched collection without a network call."""
        if not text or not text.strip():
            return list(self.messages)
        return [m for m in self.messages if m.matches_text(text.strip())]

    def clear_error(self):
        self.error = None
