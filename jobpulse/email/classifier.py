"""
Email Classifier - map a message to a job-search lifecycle category

Deterministic keyword matching over subject + body (or snippet). Keyword
groups are checked in a fixed order and the first group with a hit wins:

    interview > offer > rejection > follow_up > application > other

Interview and offer run before rejection so a rejection letter that mentions
"the interview process" is not reported as a rejection, and vice versa for
an invitation that happens to say "unfortunately".
"""

import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup

from jobpulse.models import Category, Message

KEYWORD_GROUPS: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    (Category.INTERVIEW, ("interview", "schedule", "meeting", "call")),
    (Category.OFFER, ("offer", "congratulations", "pleased to", "excited to offer")),
    (
        Category.REJECTION,
        ("reject", "unfortunately", "not selected", "moving forward with other"),
    ),
    (Category.FOLLOW_UP, ("follow", "update", "checking in")),
    (
        Category.APPLICATION,
        ("application", "received", "reviewing", "thank you for applying"),
    ),
)

_TAG_PATTERN = re.compile(r"<\s*/?\s*[a-zA-Z][^>]*>")


def html_to_text(content: Optional[str]) -> str:
    """
    Reduce an HTML email body to plain text; plain text passes through.

    Style and script blocks are dropped so CSS class names and tracking code
    cannot trigger keywords.
    """
    if not content:
        return ""
    if not _TAG_PATTERN.search(content):
        return content

    soup = BeautifulSoup(content, "html.parser")
    for tag in soup(["style", "script"]):
        tag.decompose()
    if soup.head:
        soup.head.decompose()
    text = soup.get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def classify_email(subject: Optional[str], body_or_snippet: Optional[str]) -> Category:
    """
    Classify an email from its subject and body (or snippet).

    Returns:
        The first matching Category in precedence order, Category.OTHER if
        nothing matches
    """
    text = f"{subject or ''} {body_or_snippet or ''}".lower()

    for category, keywords in KEYWORD_GROUPS:
        if any(keyword in text for keyword in keywords):
            return category

    return Category.OTHER


def classify_message(message: Message) -> Category:
    """Classify a fetched message, preferring the full body over the snippet."""
    content = html_to_text(message.body)
    if not content.strip():
        content = message.snippet
    return classify_email(message.subject, content)
