"""
Routes Package - Flask Blueprints for the JobPulse callback server

Blueprint structure:
- oauth_bp: Popup -> opener messages (/oauth/*)
- main_bp: Health and connection status (/api/*)

Route handlers never change connection state themselves: they queue channel
messages or flag the popup as closed, and the thread driving the
orchestrator picks that up on its next poll.
"""

import logging

from flask import current_app

logger = logging.getLogger(__name__)


def get_service():
    """The EmailSyncService attached to the running app."""
    from jobpulse import SERVICE_KEY

    return current_app.config[SERVICE_KEY]


def register_all_blueprints(app):
    """
    Register all Flask blueprints with the application.

    Args:
        app: Flask application instance
    """
    from .main import main_bp
    from .oauth import oauth_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(oauth_bp)
    logger.debug("Registered main and oauth blueprints")


__all__ = [
    "get_service",
    "register_all_blueprints",
]
