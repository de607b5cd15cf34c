# utils/jwt_auth.py
from collections import namedtuple
from datetime import timedelta
from functools import wraps

from flask import current_app
from flask_jwt_extended import create_access_token, verify_jwt_in_request, get_jwt, get_jwt_identity

from errors import AuthorizationError

# Per-request view of the caller, built from the bearer token.
Session = namedtuple("Session", "user_id role email")


def issue_token(user):
    days = int(current_app.config.get("JWT_EXPIRES_DAYS", 3))
    return create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role, "email": user.email},
        expires_delta=timedelta(days=days),
    )


def current_session():
    claims = get_jwt() or {}
    return Session(int(get_jwt_identity()), claims.get("role"), claims.get("email"))


def role_required_api(*allowed_roles):
    """
    Use: @role_required_api('super-admin')  OR  @role_required_api('municipality-worker', 'municipality')
    Passes the caller's Session as the ``session`` keyword.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            session = current_session()
            if allowed_roles and session.role not in allowed_roles:
                raise AuthorizationError("forbidden: role not allowed", code="NOT_AUTHORIZED")
            return fn(*args, session=session, **kwargs)
        return wrapper
    return decorator


def ensure_actor(session, claimed_id, name):
    """A body-supplied user id must be the caller's own id."""
    if claimed_id is not None and int(claimed_id) != session.user_id:
        raise AuthorizationError("%s does not match the authenticated user" % name, code="ACTOR_MISMATCH")
