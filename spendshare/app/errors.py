"""
errors.py — AppError base class, ledger error taxonomy and error code registry.

Every error returned by the SpendShare API must use a code defined here.
Do not raise strings or generic exceptions from service, repository or
route code.

Rules:
  - New error codes require: add constant here + add a test that triggers it.
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized).

Taxonomy (one subclass per failure family, each with a default status):
  InvalidAllocation      422  bad split allocator inputs
  ValidationError        400  malformed expense/group input
  NotFound               404  referenced expense/group/user/split absent
  Forbidden              403  actor lacks rights over the target entity
  AlreadyMember          409  duplicate group membership
  RepositoryUnavailable  503  I/O or timeout at the storage boundary

Note: ValidationError here is the ledger's own error. marshmallow's
ValidationError is a different class and is handled separately in the app
factory.
"""

from __future__ import annotations


class AppError(Exception):

    default_status: int = 500

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int | None = None,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status if http_status is not None else self.default_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_PERIOD             = "INVALID_PERIOD"
    DUPLICATE_SPLIT_USER       = "DUPLICATE_SPLIT_USER"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME         = "DUPLICATE_USERNAME"
    ALREADY_MEMBER             = "ALREADY_MEMBER"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"
    SPLIT_NOT_FOUND            = "SPLIT_NOT_FOUND"
    CATEGORY_NOT_FOUND         = "CATEGORY_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    INVALID_ALLOCATION         = "INVALID_ALLOCATION"
    SPLIT_SUM_MISMATCH         = "SPLIT_SUM_MISMATCH"
    SPLIT_USER_NOT_MEMBER      = "SPLIT_USER_NOT_MEMBER"
    SPLITS_WITHOUT_GROUP       = "SPLITS_WITHOUT_GROUP"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (5xx) ────────────────────────────────────────────────
    REPOSITORY_UNAVAILABLE     = "REPOSITORY_UNAVAILABLE"  # 503
    INTERNAL_ERROR             = "INTERNAL_ERROR"          # 500


# ── Taxonomy ───────────────────────────────────────────────────────────────

class InvalidAllocation(AppError):
    """Split allocator received no participants, a non-positive total, etc."""

    default_status = 422

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(ErrorCode.INVALID_ALLOCATION, message, field=field)


class ValidationError(AppError):
    """Malformed expense or group input that got past (or bypassed) the schema."""

    default_status = 400

    def __init__(
            self,
            message: str,
            code: str = ErrorCode.INVALID_FIELD,
            http_status: int | None = None,
            field: str | None = None,
    ) -> None:
        super().__init__(code, message, http_status, field)


class NotFound(AppError):

    default_status = 404

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, field=field)


class Forbidden(AppError):

    default_status = 403

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.FORBIDDEN, message)


class AlreadyMember(AppError):

    default_status = 409

    def __init__(self, group_id: int, user_id: int) -> None:
        super().__init__(
            ErrorCode.ALREADY_MEMBER,
            f"User {user_id} is already a member of group {group_id}.",
            field="user_id",
        )
        self.group_id = group_id
        self.user_id  = user_id


class RepositoryUnavailable(AppError):
    """The storage boundary failed (connection lost, timeout, cancelled)."""

    default_status = 503

    def __init__(self, message: str = "The expense store is temporarily unavailable.") -> None:
        super().__init__(ErrorCode.REPOSITORY_UNAVAILABLE, message)
