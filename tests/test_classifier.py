"""
Tests for email classification.

Keyword groups are checked in precedence order (interview, offer,
rejection, follow_up, application) and the first group with a hit wins.
"""

import os
import sys

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import make_message
from jobpulse.email.classifier import classify_email, classify_message, html_to_text
from jobpulse.models import Category


@pytest.mark.parametrize(
    "subject,body,expected",
    [
        ("Interview invitation", "", Category.INTERVIEW),
        ("Let's schedule some time", "", Category.INTERVIEW),
        ("Quick call next week?", "", Category.INTERVIEW),
        ("Job offer", "", Category.OFFER),
        ("Congratulations!", "", Category.OFFER),
        ("Update", "We are pleased to share good news", Category.OFFER),
        ("Your candidacy", "Unfortunately we went another way", Category.REJECTION),
        ("Decision", "You were not selected for this role", Category.REJECTION),
        ("Checking in", "", Category.FOLLOW_UP),
        ("Status update", "", Category.FOLLOW_UP),
        ("Application received", "", Category.APPLICATION),
        ("Thanks", "Thank you for applying to Globex", Category.APPLICATION),
        ("Weekly newsletter", "Top stories this week", Category.OTHER),
        ("", "", Category.OTHER),
    ],
)
def test_classify_email_categories(subject, body, expected):
    """Test each keyword group maps to its category."""
    assert classify_email(subject, body) == expected


def test_interview_beats_rejection():
    """Test precedence: an interview keyword wins over a rejection keyword."""
    subject = "Interview invitation - unfortunately rescheduled"
    assert classify_email(subject, "") == Category.INTERVIEW


def test_offer_beats_rejection():
    """Test precedence: offer is checked before rejection."""
    assert classify_email("Offer letter", "Unfortunately the start date moved") == Category.OFFER


def test_rejection_beats_application():
    """Test precedence: rejection is checked before application."""
    body = "Thank you for your application. Unfortunately we will not proceed."
    assert classify_email("Your application", body) == Category.REJECTION


def test_classification_is_case_insensitive():
    """Test that upper-case keywords are still matched."""
    assert classify_email("INTERVIEW REQUEST", None) == Category.INTERVIEW


def test_classification_is_deterministic():
    """Test that the same input always yields the same category."""
    results = {classify_email("Following up on your application", "") for _ in range(5)}
    assert results == {Category.FOLLOW_UP}


def test_classify_message_prefers_body_over_snippet():
    """Test that the body is used when present and the snippet is ignored."""
    message = make_message(
        "x1", "Hello", snippet="We would like to schedule an interview", body="Congratulations!"
    )
    assert classify_message(message) == Category.OFFER


def test_classify_message_falls_back_to_snippet():
    """Test that the snippet is used when the body is missing."""
    message = make_message("x2", "Hello", snippet="Unfortunately we went another way")
    assert classify_message(message) == Category.REJECTION


def test_html_to_text_strips_markup():
    """Test HTML bodies are reduced to visible text."""
    html = """
    <html>
        <head><style>.interview-banner { color: red; }</style></head>
        <body><p>Thank you for applying!</p><script>trackCall()</script></body>
    </html>
    """
    text = html_to_text(html)

    assert text == "Thank you for applying!"


def test_html_body_styles_do_not_trigger_keywords():
    """Test CSS class names in an HTML body are not classified."""
    html = "<style>.meeting-room{}</style><div>Thank you for applying</div>"
    message = make_message("x3", "Globex", body=html)

    assert classify_message(message) == Category.APPLICATION


def test_empty_html_body_falls_back_to_snippet():
    """Test a body with no visible text uses the snippet instead."""
    message = make_message(
        "x4", "Hello", snippet="Unfortunately we went another way", body="<style>p{}</style>"
    )

    assert classify_message(message) == Category.REJECTION


def test_html_to_text_passes_plain_text_through():
    """Test plain text is returned unchanged."""
    assert html_to_text("Base salary > 100k, see you then") == "Base salary > 100k, see you then"
    assert html_to_text(None) == ""
