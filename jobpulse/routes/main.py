"""
Main Routes Blueprint - Health and connection status

Read-only views of the service for whatever is hosting the connect flow.
"""

import logging

from flask import Blueprint, jsonify

from . import get_service

logger = logging.getLogger(__name__)

main_bp = Blueprint("main", __name__)


@main_bp.route("/api/health")
def health():
    return jsonify({"status": "ok"})


@main_bp.route("/api/connection")
def connection_status():
    """
    Current connection session, account list and status message.
    """
    return jsonify(get_service().status())
