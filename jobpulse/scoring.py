"""
Scoring Module - Application progress scoring

This module centralizes the progress-scoring logic for tracked applications.

Each classified email moves an application forward by a fixed weight:

    application 20, follow_up 40, interview 70, offer 95, rejection 0, other 10

The progress score is the maximum weight over an application's matched
emails. An application with no matching email scores 15 ("just applied").

Note that the maximum is kept even after a rejection: an application with an
interview invitation followed by a rejection still scores 70.
"""

import logging
from typing import Dict, Iterable

from jobpulse.constants import APPLICATION_STATUSES
from jobpulse.models import Category

logger = logging.getLogger(__name__)

PROGRESS_WEIGHTS: Dict[Category, int] = {
    Category.APPLICATION: 20,
    Category.FOLLOW_UP: 40,
    Category.INTERVIEW: 70,
    Category.OFFER: 95,
    Category.REJECTION: 0,
    Category.OTHER: 10,
}

JUST_APPLIED_SCORE = 15

# Score above which an application counts as "advancing"
ADVANCING_THRESHOLD = 50


def calculate_progress_score(categories: Iterable[Category]) -> int:
    """
    Calculate the progress score for an application.

    Args:
        categories: Categories of the application's matched emails

    Returns:
        Progress score (0-100)

    Example:
        - No emails: 15
        - [application, interview]: 70
        - [interview, rejection]: 70
    """
    weights = [PROGRESS_WEIGHTS.get(Category(c), 0) for c in categories]
    if not weights:
        return JUST_APPLIED_SCORE
    return max(weights)


def get_progress_color(score: int) -> str:
    """
    Get a color name for a progress bar.

    Args:
        score: Progress score (0-100)

    Returns:
        Color name: green, yellow, blue or gray
    """
    if score >= 80:
        return "green"
    elif score >= 60:
        return "yellow"
    elif score >= 30:
        return "blue"
    else:
        return "gray"


def calculate_status_counts(applications: list) -> Dict[str, int]:
    """
    Count applications per display status.

    Args:
        applications: List of ScoredApplication

    Returns:
        Dictionary with total, one key per status, and ``advancing`` (score
        above 50)
    """
    counts = {"total": len(applications)}
    for status in APPLICATION_STATUSES:
        counts[status] = 0

    for app in applications:
        counts[app.status] = counts.get(app.status, 0) + 1

    counts["advancing"] = sum(1 for a in applications if a.progress_score > ADVANCING_THRESHOLD)
    return counts
