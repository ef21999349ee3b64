"""
Models - Record types shared across JobPulse

Provider payloads are validated and normalized here, at ingestion, so the
rest of the code only ever sees well-formed records:

- EmailAccount: a connected Gmail/Outlook account
- Message: one email from the provider's listing endpoint
- ApplicationRecord: a job application owned by the external store
- CategoryEvent / ScoredApplication: read-only overlays produced by the tracker
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from jobpulse.constants import APPLICATION_STATUSES, PROVIDERS
from jobpulse.errors import InvalidPayload

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Category(str, Enum):
    """Job-search lifecycle stage assigned to a message."""

    APPLICATION = "application"
    INTERVIEW = "interview"
    OFFER = "offer"
    REJECTION = "rejection"
    FOLLOW_UP = "follow_up"
    OTHER = "other"


def parse_message_date(value: Union[str, datetime, None]) -> datetime:
    """
    Parse a provider date into an aware UTC datetime.

    Accepts ISO-8601 ("2024-03-01T10:00:00Z") and RFC 2822
    ("Fri, 01 Mar 2024 10:00:00 +0000"). Naive values are taken as UTC.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                parsed = None
            if parsed is None:
                raise ValueError(f"Unrecognized date: {value!r}")
    else:
        raise ValueError(f"Unrecognized date: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require_mapping(data: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidPayload(f"Expected {kind} object, got {type(data).__name__}")
    return data


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class EmailAccount:
    id: Union[int, str]
    provider: str
    email_address: str
    connected_at: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Any) -> "EmailAccount":
        """
        Build an account from the account-listing endpoint.

        Raises:
            InvalidPayload: If the id is missing or the provider is unknown
        """
        data = _require_mapping(data, "email account")
        account_id = data.get("id")
        if account_id is None or account_id == "":
            raise InvalidPayload("Email account is missing an id")

        provider = _text(data.get("provider")).strip().lower()
        if provider not in PROVIDERS:
            raise InvalidPayload(f"Unsupported email provider: {data.get('provider')!r}")

        return cls(
            id=account_id,
            provider=provider,
            email_address=_text(data.get("email_address") or data.get("email")),
            connected_at=data.get("connected_at") or data.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "email_address": self.email_address,
            "connected_at": self.connected_at,
        }


@dataclass(frozen=True)
class Message:
    id: str
    sender: str
    subject: str
    date: datetime
    snippet: str = ""
    body: Optional[str] = None
    is_read: bool = False
    labels: Tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, data: Any) -> "Message":
        """
        Build a message from the provider's email listing.

        A missing id is rejected. An unparseable date is normalized to the
        Unix epoch so the message sorts last instead of breaking the listing.

        Raises:
            InvalidPayload: If the payload is not an object or has no id
        """
        data = _require_mapping(data, "email")
        message_id = data.get("id")
        if message_id is None or message_id == "":
            raise InvalidPayload("Email is missing an id")

        try:
            date = parse_message_date(data.get("date"))
        except ValueError:
            logger.warning(f"Email {message_id}: unparseable date {data.get('date')!r}")
            date = EPOCH

        is_read = data.get("isRead", data.get("is_read", False))
        body = data.get("body")

        return cls(
            id=str(message_id),
            sender=_text(data.get("sender") or data.get("from")),
            subject=_text(data.get("subject")),
            date=date,
            snippet=_text(data.get("snippet")),
            body=None if body is None else str(body),
            is_read=bool(is_read),
            labels=tuple(str(label) for label in data.get("labels") or ()),
        )

    def matches_text(self, needle: str) -> bool:
        """Case-insensitive substring search over subject, sender, snippet and body."""
        needle = needle.lower()
        haystacks = (self.subject, self.sender, self.snippet, self.body or "")
        return any(needle in value.lower() for value in haystacks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "subject": self.subject,
            "date": self.date.isoformat(),
            "snippet": self.snippet,
            "body": self.body,
            "is_read": self.is_read,
            "labels": list(self.labels),
        }


@dataclass(frozen=True)
class ApplicationRecord:
    id: Union[int, str]
    company: str
    job_title: str
    job_board: str = ""
    recruiter_email: Optional[str] = None
    date_applied: Optional[str] = None
    status: str = "applied"
    notes: str = ""
    last_activity: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Any) -> "ApplicationRecord":
        """
        Build an application record from the application store.

        Raises:
            InvalidPayload: If the id is missing
        """
        data = _require_mapping(data, "job application")
        if data.get("id") is None:
            raise InvalidPayload("Job application is missing an id")

        status = _text(data.get("status") or "applied").lower()
        if status not in APPLICATION_STATUSES:
            logger.warning(f"Application {data['id']}: unknown status {status!r}, using 'other'")
            status = "other"

        return cls(
            id=data["id"],
            company=_text(data.get("company")),
            job_title=_text(data.get("job_title")),
            job_board=_text(data.get("job_board")),
            recruiter_email=data.get("recruiter_email") or None,
            date_applied=data.get("date_applied"),
            status=status,
            notes=_text(data.get("notes")),
            last_activity=data.get("last_activity"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class CategoryEvent:
    """One classified message on an application's timeline."""

    category: Category
    date: datetime
    subject: str
    sender: str


@dataclass(frozen=True)
class ScoredApplication:
    """
    Read-only overlay of an application record.

    ``status`` is the display status derived from email activity; the
    wrapped record keeps the status stored by the backend.
    """

    record: ApplicationRecord
    status: str
    progress_score: int
    next_action: Optional[str] = None
    email_categories: List[CategoryEvent] = field(default_factory=list)

    @property
    def id(self):
        return self.record.id

    @property
    def company(self) -> str:
        return self.record.company

    @property
    def job_title(self) -> str:
        return self.record.job_title

    @property
    def email_count(self) -> int:
        return len(self.email_categories)

    @property
    def last_email_date(self) -> Optional[datetime]:
        return self.email_categories[0].date if self.email_categories else None

    def to_dict(self) -> Dict[str, Any]:
        last_email = self.last_email_date
        return {
            "id": self.record.id,
            "company": self.record.company,
            "job_title": self.record.job_title,
            "job_board": self.record.job_board or "Manual Entry",
            "date_applied": self.record.date_applied,
            "stored_status": self.record.status,
            "status": self.status,
            "progress_score": self.progress_score,
            "next_action": self.next_action,
            "email_count": self.email_count,
            "last_email_date": last_email.isoformat() if last_email else None,
            "email_categories": [
                {
                    "category": event.category.value,
                    "date": event.date.isoformat(),
                    "subject": event.subject,
                    "from": event.sender,
                }
                for event in self.email_categories
            ],
        }
