"""
JobPulse - Application Factory

Links Gmail/Outlook accounts through an OAuth popup, fetches recent email and
tracks job-application progress from it. The Flask app built here is the
local callback server the OAuth popup reports back to.
"""

import logging

from flask import Flask
from flask_cors import CORS

logger = logging.getLogger(__name__)

SERVICE_KEY = "JOBPULSE_SERVICE"


def create_app(service):
    """
    Application factory for the callback server.

    Args:
        service: EmailSyncService whose message channel and popup the
            routes report into

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    # The popup is served from the provider's origin
    CORS(app)

    # Store service in app
    app.config[SERVICE_KEY] = service

    register_blueprints(app)

    return app


def register_blueprints(app):
    """Register all Flask blueprints."""
    from jobpulse.routes import register_all_blueprints

    register_all_blueprints(app)
