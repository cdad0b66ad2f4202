"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - User registration and credential validation
  - JWT access token creation (HS256)
  - Password hashing (bcrypt) and verification
  - User lookups exposed to the client (current user, by username)

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes
  - current_app.config is used ONLY to read the JWT settings and bcrypt cost.
    JWT secrets must come from Flask config so production validation in
    config.validate_production_config() covers them.

Token design:
  - Access token only: JWT, HS256, TTL from JWT_ACCESS_TOKEN_EXPIRES,
    sub = user_id (str). There is no refresh token; clients log in again.

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS, default 12)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app

from spendshare.app.errors import AppError, ErrorCode, NotFound
from spendshare.app.repository.base import ExpenseRepository, UserRecord

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _create_access_token(user_id: int) -> str:
    """
    Creates a signed JWT access token.
    Payload: sub (user_id as str), iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    expiry = now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expiry,
        # Each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _build_user_dict(user: UserRecord) -> dict:
    """Serialises a UserRecord to a plain dict. Never includes the hash."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "name": user.name,
        "created_at": user.created_at.isoformat(),
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        username: str,
        email: str,
        name: str,
        password: str,
        repository: ExpenseRepository,
) -> dict:
    """
    Creates a new user account and issues an access token.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)    — email already registered
      AppError(DUPLICATE_USERNAME, 409) — username already taken

    Returns: {"user": {...}, "access_token": "..."}
    """
    if repository.get_user_by_email(email) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    if repository.get_user_by_username(username) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_USERNAME,
            f"The username '{username}' is already taken.",
            409,
            field="username",
        )

    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    password_hash = bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")

    user = repository.create_user(
        username=username,
        email=email,
        name=name,
        password_hash=password_hash,
    )
    logger.info("Registered user %s (%s)", user.id, user.username)

    return {
        "user": _build_user_dict(user),
        "access_token": _create_access_token(user.id),
    }


def login_user(username: str, password: str, repository: ExpenseRepository) -> dict:
    """
    Validates credentials and issues a new access token.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — username not found or password wrong.
      Uses the same error for both to avoid username enumeration.
    """
    user = repository.get_user_by_username(username)

    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
            401,
        )

    return {
        "user": _build_user_dict(user),
        "access_token": _create_access_token(user.id),
    }


def get_current_user(user_id: int, repository: ExpenseRepository) -> dict:
    """
    Returns the profile of the currently authenticated user.

    Raises:
      NotFound(USER_NOT_FOUND) — user_id from the JWT no longer exists.
    """
    user = repository.get_user(user_id)
    if user is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.")
    return _build_user_dict(user)


def get_user_by_username(username: str, repository: ExpenseRepository) -> dict:
    """Looks up another user, e.g. before adding them to a group."""
    user = repository.get_user_by_username(username)
    if user is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, f"User '{username}' not found.")
    return _build_user_dict(user)
