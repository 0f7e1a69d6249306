"""
errors.py — AppError base class and error code registry.

Every error returned by the GroupSpace API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized).
  - Every code belongs to exactly one kind in ERROR_KINDS.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    @property
    def kind(self) -> str:
        return ERROR_KINDS.get(self.code, ErrorKind.INTERNAL)

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "kind":    self.kind,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
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

    # ── Input Errors (400) ─────────────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_REQUEST            = "INVALID_REQUEST"

    # ── Conflict Errors ────────────────────────────────────────────────────
    ALREADY_MEMBER             = "ALREADY_MEMBER"             # 400
    CANNOT_REMOVE_LAST_ADMIN   = "CANNOT_REMOVE_LAST_ADMIN"   # 403

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    NOT_A_MEMBER               = "NOT_A_MEMBER"
    DISCUSSION_NOT_FOUND       = "DISCUSSION_NOT_FOUND"
    COMMENT_NOT_FOUND          = "COMMENT_NOT_FOUND"
    RESOURCE_NOT_FOUND         = "RESOURCE_NOT_FOUND"
    FILE_NOT_FOUND             = "FILE_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    TOKEN_MISSING              = "TOKEN_MISSING"              # 401
    TOKEN_INVALID              = "TOKEN_INVALID"              # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"              # 401
    FORBIDDEN                  = "FORBIDDEN"                  # 403
    INVALID_PASSWORD           = "INVALID_PASSWORD"           # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


class ErrorKind:
    NOT_FOUND       = "not_found"
    FORBIDDEN       = "forbidden"
    CONFLICT        = "conflict"
    INVALID_REQUEST = "invalid_request"
    UNAUTHENTICATED = "unauthenticated"
    INTERNAL        = "internal"


ERROR_KINDS: dict[str, str] = {
    ErrorCode.MISSING_FIELD:            ErrorKind.INVALID_REQUEST,
    ErrorCode.INVALID_REQUEST:          ErrorKind.INVALID_REQUEST,
    ErrorCode.ALREADY_MEMBER:           ErrorKind.CONFLICT,
    ErrorCode.CANNOT_REMOVE_LAST_ADMIN: ErrorKind.CONFLICT,
    ErrorCode.USER_NOT_FOUND:           ErrorKind.NOT_FOUND,
    ErrorCode.GROUP_NOT_FOUND:          ErrorKind.NOT_FOUND,
    ErrorCode.NOT_A_MEMBER:             ErrorKind.NOT_FOUND,
    ErrorCode.DISCUSSION_NOT_FOUND:     ErrorKind.NOT_FOUND,
    ErrorCode.COMMENT_NOT_FOUND:        ErrorKind.NOT_FOUND,
    ErrorCode.RESOURCE_NOT_FOUND:       ErrorKind.NOT_FOUND,
    ErrorCode.FILE_NOT_FOUND:           ErrorKind.NOT_FOUND,
    ErrorCode.TOKEN_MISSING:            ErrorKind.UNAUTHENTICATED,
    ErrorCode.TOKEN_INVALID:            ErrorKind.UNAUTHENTICATED,
    ErrorCode.TOKEN_EXPIRED:            ErrorKind.UNAUTHENTICATED,
    ErrorCode.FORBIDDEN:                ErrorKind.FORBIDDEN,
    ErrorCode.INVALID_PASSWORD:         ErrorKind.FORBIDDEN,
    ErrorCode.INTERNAL_ERROR:           ErrorKind.INTERNAL,
}
