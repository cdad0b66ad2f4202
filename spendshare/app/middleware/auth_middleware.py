"""
middleware/auth_middleware.py — JWT authentication decorator.

@require_auth reads "Authorization: Bearer <token>", verifies the HS256
signature and expiry, and stores the integer user id on flask.g.user_id.

Authentication only. Ownership and group membership checks (403) happen in
the services, which receive user_id as a plain int and never see the token.

Error codes (all 401):
  TOKEN_MISSING  — no Authorization header
  TOKEN_INVALID  — malformed header, bad signature, or unusable 'sub' claim
  TOKEN_EXPIRED  — signature fine, exp claim in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from spendshare.app.errors import AppError, ErrorCode


def _unauthenticated(code: str, message: str) -> AppError:
    return AppError(code, message, 401)


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Usage:
        @balances_bp.route("/balances")
        @require_auth
        def get_balances():
            user_id = g.user_id  # always an int when this runs
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        g.user_id = _user_id_from_request()
        return f(*args, **kwargs)

    return decorated


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise _unauthenticated(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )

    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token.strip():
        raise _unauthenticated(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )
    return token.strip()


def _user_id_from_request() -> int:
    """
    Decodes the bearer token and returns its subject as an int.

    Kept apart from the decorator so tests can call it inside a
    test_request_context without a view function.
    """
    try:
        payload = jwt.decode(
            _bearer_token(),
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise _unauthenticated(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Log in again to obtain a new one.",
        )
    except jwt.InvalidTokenError:
        raise _unauthenticated(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
        )

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise _unauthenticated(
            ErrorCode.TOKEN_INVALID,
            "The access token does not carry a valid user id in its 'sub' claim.",
        )
