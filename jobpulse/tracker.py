"""
Application Tracker - correlate email with tracked job applications

For each application record the tracker:
1. Finds the fetched messages that mention it (company, job title or
   recruiter address)
2. Classifies each one and builds a newest-first timeline
3. Derives a display status and next action from the newest category
4. Scores progress from the categories seen (see scoring.py)

The result is a read-only ScoredApplication overlay; the backend record is
never modified by correlation. Status changes go through update_status(),
which PATCHes the application store.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from jobpulse.applications import ApplicationStore
from jobpulse.email.classifier import classify_message
from jobpulse.email.fetcher import EmailFetcher
from jobpulse.errors import AuthExpired, AuthRequired, JobPulseError
from jobpulse.models import (
    EPOCH,
    ApplicationRecord,
    Category,
    CategoryEvent,
    Message,
    ScoredApplication,
    parse_message_date,
)
from jobpulse.scoring import calculate_progress_score

logger = logging.getLogger(__name__)

# Newest category -> (display status or None to keep the stored one, next action)
STATUS_OVERRIDES: Dict[Category, Tuple[Optional[str], Optional[str]]] = {
    Category.INTERVIEW: ("interview", "Prepare for interview"),
    Category.OFFER: ("offer", "Review offer details"),
    Category.REJECTION: ("rejected", "Learn from feedback"),
    Category.APPLICATION: ("viewed", "Follow up in 1-2 weeks"),
    Category.FOLLOW_UP: (None, "Continue dialogue"),
    Category.OTHER: (None, None),
}

SORT_KEYS = ("date", "company", "status")


def message_matches_application(message: Message, record: ApplicationRecord) -> bool:
    """
    Check whether a message belongs to an application.

    A message matches when its sender or subject contains the company name,
    its subject contains the job title, or its sender contains the recruiter
    address. Comparisons are case-insensitive; blank fields never match.
    """
    sender = message.sender.lower()
    subject = message.subject.lower()

    company = record.company.strip().lower()
    if company and (company in sender or company in subject):
        return True

    title = record.job_title.strip().lower()
    if title and title in subject:
        return True

    recruiter = (record.recruiter_email or "").strip().lower()
    if recruiter and recruiter in sender:
        return True

    return False


def build_timeline(messages: Iterable[Message]) -> List[CategoryEvent]:
    """Classify messages into a timeline, newest first."""
    events = [
        CategoryEvent(
            category=classify_message(message),
            date=message.date,
            subject=message.subject,
            sender=message.sender,
        )
        for message in messages
    ]
    return sorted(events, key=lambda e: e.date, reverse=True)


def score_application(
    record: ApplicationRecord, messages: Iterable[Message]
) -> ScoredApplication:
    """Build the scored overlay for one application."""
    matched = [m for m in messages if message_matches_application(m, record)]
    timeline = build_timeline(matched)

    status = record.status
    next_action = None
    if timeline:
        override, next_action = STATUS_OVERRIDES[timeline[0].category]
        status = override or record.status

    return ScoredApplication(
        record=record,
        status=status,
        progress_score=calculate_progress_score(e.category for e in timeline),
        next_action=next_action or record.notes or None,
        email_categories=timeline,
    )


def correlate(
    records: Iterable[ApplicationRecord], messages: Iterable[Message]
) -> List[ScoredApplication]:
    """Score every application against the same message collection."""
    messages = list(messages)
    return [score_application(record, messages) for record in records]


def filter_applications(
    applications: Iterable[ScoredApplication], status: str = "all", search: str = ""
) -> List[ScoredApplication]:
    """
    Filter by display status and free text.

    ``search`` matches company, job title or job board, case-insensitively.
    """
    needle = (search or "").strip().lower()
    results = []
    for app in applications:
        if status and status != "all" and app.status != status:
            continue
        if needle:
            fields = (app.record.company, app.record.job_title, app.record.job_board)
            if not any(needle in (value or "").lower() for value in fields):
                continue
        results.append(app)
    return results


def _applied_date(app: ScoredApplication):
    try:
        return parse_message_date(app.record.date_applied)
    except ValueError:
        return EPOCH


def sort_applications(
    applications: Iterable[ScoredApplication], sort_by: str = "date"
) -> List[ScoredApplication]:
    """
    Sort applications.

    Args:
        sort_by: "date" (date applied, newest first), "company" or "status"
            (alphabetical)
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_by}")

    if sort_by == "date":
        return sorted(applications, key=_applied_date, reverse=True)
    if sort_by == "company":
        return sorted(applications, key=lambda a: a.record.company.lower())
    return sorted(applications, key=lambda a: a.status)


class ApplicationTracker:
    """Holds the scored applications for the current message collection."""

    def __init__(self, store: ApplicationStore, fetcher: EmailFetcher):
        self.store = store
        self.fetcher = fetcher
        self.applications: List[ScoredApplication] = []
        self.error: Optional[str] = None

    def refresh(self) -> List[ScoredApplication]:
        """
        Reload application records and correlate them with fetched email.

        On failure ``error`` is set and the previous overlay is kept.
        """
        self.error = None
        try:
            records = self.store.list_applications()
        except AuthExpired as e:
            self.error = str(e)
            return self.applications
        except AuthRequired:
            self.error = "Authentication required"
            return self.applications
        except JobPulseError as e:
            logger.error(f"Error fetching applications: {e}")
            self.error = e.message if e.status_code else "Failed to fetch applications"
            return self.applications

        self.applications = correlate(records, self.fetcher.messages)
        logger.info(
            f"Correlated {len(records)} application(s) with "
            f"{len(self.fetcher.messages)} email(s)"
        )
        return self.applications

    def get(self, application_id) -> Optional[ScoredApplication]:
        return next((a for a in self.applications if a.id == application_id), None)

    def update_status(self, application_id, status: str) -> bool:
        """
        Change an application's status on the backend and in the overlay.

        Returns:
            True on success; on failure ``error`` is set
        """
        try:
            self.store.update_status(application_id, status)
        except JobPulseError as e:
            logger.error(f"Error updating application {application_id}: {e}")
            self.error = "Failed to update application status"
            return False
        except ValueError as e:
            logger.warning(f"Rejected status for application {application_id}: {e}")
            self.error = str(e)
            return False

        self.applications = [
            replace(app, record=replace(app.record, status=status), status=status)
            if app.id == application_id
            else app
            for app in self.applications
        ]
        return True
