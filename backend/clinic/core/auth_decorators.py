"""
Authentication helpers for the clinic API.

Every request carries a JWT Bearer token issued for an identity-provider
subject. The token's `sub` claim becomes `CallerContext.principal_id` and
its `roles` claim becomes `CallerContext.roles`.

DECORATOR GUIDE:
- @jwt_required: the route needs an authenticated caller (401 otherwise)
- @roles_required(ROLE_ADMIN, ROLE_DOCTOR): the caller must hold at least
  one of the listed roles (403 otherwise). Implies @jwt_required.

Examples:
    @visits_bp.route("/<int:visit_id>", methods=["DELETE"])
    @roles_required(ROLE_ADMIN, ROLE_DOCTOR)
    def delete_visit(visit_id):
        caller = get_current_caller()
        ...
"""

import logging
from functools import wraps
from typing import Optional

from flask import g, jsonify, request

from clinic.core.security import CallerContext, caller_from_token

logger = logging.getLogger(__name__)


def get_current_caller() -> Optional[CallerContext]:
    """Return the caller resolved for the current request, if any."""
    return getattr(g, "caller", None)


def _resolve_caller():
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None, "Missing or invalid Authorization header"

    token = auth_header.split(" ", 1)[1].strip()
    caller = caller_from_token(token)
    if caller is None:
        return None, "Invalid or expired token"
    return caller, None


def jwt_required(f):
    """Decorator to require JWT authentication for API endpoints.

    Extracts the JWT from the Authorization header and stores the caller on
    `flask.g`. If no valid JWT is present, returns 401.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        caller, error = _resolve_caller()
        if caller is None:
            logger.warning(
                "Rejected unauthenticated request",
                extra={"context": {"path": request.path, "reason": error}},
            )
            return jsonify({"success": False, "message": error}), 401

        g.caller = caller
        return f(*args, **kwargs)

    return decorated_function


def roles_required(*roles: str):
    """Decorator factory requiring an authenticated caller holding any of `roles`."""

    def decorator(f):
        @wraps(f)
        @jwt_required
        def decorated_function(*args, **kwargs):
            caller = get_current_caller()
            if not any(caller.has_role(role) for role in roles):
                logger.warning(
                    "Rejected request for insufficient role",
                    extra={
                        "context": {
                            "path": request.path,
                            "principal_id": caller.principal_id,
                            "required_roles": list(roles),
                        }
                    },
                )
                return (
                    jsonify({"success": False, "message": "Insufficient role"}),
                    403,
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
