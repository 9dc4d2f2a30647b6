import logging
import hmac
from flask import request, current_app, g
from backoffice.blueprints.admin import admin_bp

logger = logging.getLogger(__name__)


@admin_bp.before_request
def require_admin():
    """Gate every admin route.

    Security:
    - X-Admin-Token header must match ADMIN_API_TOKEN
    - When ADMIN_IDS is set, X-Admin-Id must be in the allowlist
    The admin id is kept on ``g.actor`` for audit fields.
    """
    expected_token = current_app.config["ADMIN_API_TOKEN"]
    token = request.headers.get("X-Admin-Token", "")
    if not expected_token or not hmac.compare_digest(token, expected_token):
        return {"error": "forbidden"}, 403

    actor = request.headers.get("X-Admin-Id", "").strip() or None
    allowed = current_app.config["ADMIN_IDS"]
    if allowed and actor not in allowed:
        logger.info("Rejected non-admin caller: %s", actor)
        return {"error": "forbidden"}, 403

    g.actor = actor
    return None
