"""
OAuth Routes Blueprint - where the popup reports back

- POST /oauth/message   JSON channel message, e.g. {"type": "gmail_oauth_success"}
- GET  /oauth/complete  landing page for the provider redirect; posts the
                        message on the popup's behalf and closes the window
- POST /oauth/closed    beacon sent when the popup unloads
"""

import logging

from flask import Blueprint, jsonify, render_template_string, request

from . import get_service

logger = logging.getLogger(__name__)

oauth_bp = Blueprint("oauth", __name__, url_prefix="/oauth")

COMPLETE_PAGE = """<!doctype html>
<html>
<head><title>JobPulse</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 4em;">
  {% if accepted and success %}
    <h2>Account connected</h2>
    <p>You can close this window.</p>
  {% elif accepted %}
    <h2>Connection failed</h2>
    <p>{{ error }}</p>
  {% else %}
    <h2>Nothing to do here</h2>
    <p>This window is not part of an active email connection.</p>
  {% endif %}
  <script>
    window.addEventListener("pagehide", function () {
      navigator.sendBeacon("{{ closed_url }}", JSON.stringify({name: window.name}));
    });
    {% if accepted %}setTimeout(function () { window.close(); }, 1500);{% endif %}
  </script>
</body>
</html>
"""


@oauth_bp.route("/message", methods=["POST"])
def post_message():
    """
    Queue a popup message for the connection driver.

    Unrecognized messages are ignored, not rejected.
    """
    data = request.get_json(silent=True)
    accepted = get_service().channel.post(data)
    return jsonify({"accepted": accepted})


@oauth_bp.route("/complete")
def complete():
    """Popup landing page after the provider redirect."""
    message_type = request.args.get("type", "")
    error = request.args.get("error")

    data = {"type": message_type}
    if error:
        data["error"] = error
    if request.args.get("email"):
        data["email"] = request.args["email"]

    accepted = get_service().channel.post(data)
    if not accepted:
        logger.info(f"OAuth landing page hit with unrecognized type {message_type!r}")

    return render_template_string(
        COMPLETE_PAGE,
        accepted=accepted,
        success=message_type.endswith("oauth_success"),
        error=error or "Unknown error",
        closed_url="/oauth/closed",
    )


@oauth_bp.route("/closed", methods=["POST"])
def popup_closed():
    """Record that the popup window went away."""
    # sendBeacon posts text/plain, so parse regardless of content type
    data = request.get_json(force=True, silent=True) or {}
    name = data.get("name") if isinstance(data, dict) else None
    marked = get_service().orchestrator.popup_closed(name or None)
    return jsonify({"closed": marked})
