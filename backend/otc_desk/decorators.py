# Overview: Request decorators for admin API routes.

import hmac
from functools import wraps

from flask import current_app, jsonify, request


ADMIN_SECRET_HEADER = "X-Admin-Secret"


def require_admin(f):
    """
    Require the shared admin secret.

    SECURITY: Returns
    - 500 if the server has no ADMIN_SECRET configured (admin API disabled)
    - 403 if the X-Admin-Secret header is missing or does not match
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("ADMIN_SECRET")
        if not expected:
            current_app.logger.error("ADMIN_SECRET is not configured; admin API disabled")
            return jsonify({"error": "Server misconfiguration"}), 500

        provided = request.headers.get(ADMIN_SECRET_HEADER) or ""
        if not hmac.compare_digest(provided.encode(), expected.encode()):
            current_app.logger.warning(
                "admin access denied path=%s ip=%s", request.path, request.remote_addr
            )
            return jsonify({"error": "Forbidden"}), 403

        return f(*args, **kwargs)

    return decorated_function
