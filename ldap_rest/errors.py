"""Classified failures raised by the directory access layer.

The transport layer maps each class to its own status signaling (see
`ldap_rest.main`); the core only decides *which kind* of failure happened.
"""

from __future__ import annotations

from typing import Any


# ldap3 result codes we classify explicitly (RFC 4511 + AD usage).
RESULT_SUCCESS = 0
RESULT_NO_SUCH_ATTRIBUTE = 16
RESULT_CONSTRAINT_VIOLATION = 19
RESULT_ATTRIBUTE_OR_VALUE_EXISTS = 20
RESULT_NO_SUCH_OBJECT = 32
RESULT_INVALID_CREDENTIALS = 49
RESULT_INSUFFICIENT_ACCESS_RIGHTS = 50
RESULT_BUSY = 51
RESULT_UNAVAILABLE = 52
RESULT_UNWILLING_TO_PERFORM = 53
RESULT_ENTRY_ALREADY_EXISTS = 68

_NOT_FOUND_CODES = {RESULT_NO_SUCH_ATTRIBUTE, RESULT_NO_SUCH_OBJECT}
_CONFLICT_CODES = {
    RESULT_CONSTRAINT_VIOLATION,
    RESULT_ATTRIBUTE_OR_VALUE_EXISTS,
    RESULT_INSUFFICIENT_ACCESS_RIGHTS,
    RESULT_UNWILLING_TO_PERFORM,
    RESULT_ENTRY_ALREADY_EXISTS,
}
_UNREACHABLE_CODES = {RESULT_BUSY, RESULT_UNAVAILABLE}


class DirectoryError(Exception):
    """Base class for every failure surfaced by the directory access layer."""

    def __init__(self, message: str, *, code: int | None = None, detail: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        # Raw directory diagnostics: for logs only, never returned to callers.
        self.detail = detail

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (code={self.code})"


class ValidationError(DirectoryError):
    """Malformed identifier/path, disallowed attribute key or unsupported value."""


class NotFoundError(DirectoryError):
    """No entry matches the identifier or path."""


class BindError(DirectoryError):
    """Credentials rejected, or the directory could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        detail: str = "",
        unreachable: bool = False,
    ) -> None:
        super().__init__(message, code=code, detail=detail)
        self.unreachable = unreachable


class ConflictError(DirectoryError):
    """Mutation rejected as already satisfied or disallowed by directory policy."""

    @property
    def insufficient_rights(self) -> bool:
        return self.code == RESULT_INSUFFICIENT_ACCESS_RIGHTS


class ProtocolError(DirectoryError):
    """Any other directory-protocol-level failure."""


def classify_result(result: dict[str, Any] | None, action: str) -> DirectoryError:
    """Turn an ldap3 ``conn.result`` dict into a classified failure.

    ``action`` is a short human description ("search", "modify", ...) used in
    the message.
    """
    res = dict(result or {})
    try:
        code = int(res.get("result"))
    except (TypeError, ValueError):
        code = None
    description = str(res.get("description") or "unknown error")
    detail = str(res.get("message") or "")
    message = f"Directory {action} failed: {description}"

    if code == RESULT_INVALID_CREDENTIALS:
        return BindError("Invalid credentials", code=code, detail=detail)
    if code in _NOT_FOUND_CODES:
        return NotFoundError(message, code=code, detail=detail)
    if code in _CONFLICT_CODES:
        return ConflictError(message, code=code, detail=detail)
    if code in _UNREACHABLE_CODES:
        return BindError("Directory server is unavailable", code=code, detail=detail, unreachable=True)
    return ProtocolError(message, code=code, detail=detail)
