"""Typed service errors.

Every error is an ``HTTPException`` so the app-level handler can render it,
and carries a stable ``code`` so callers can tell the kinds apart without
parsing messages.
"""

from __future__ import annotations

from fastapi import HTTPException


class MarketError(HTTPException):
    status_code = 400
    code = "ERROR"

    def __init__(self, detail: str, *, code: str | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail)
        if code is not None:
            self.code = code


class NotFound(MarketError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidState(MarketError):
    status_code = 409
    code = "INVALID_STATE"


class TaskNotActive(InvalidState):
    code = "TASK_NOT_ACTIVE"


class TargetReached(InvalidState):
    code = "TARGET_REACHED"


class AlreadyVerified(InvalidState):
    code = "ALREADY_VERIFIED"


class AlreadyProcessed(InvalidState):
    code = "ALREADY_PROCESSED"


class NotPending(InvalidState):
    code = "NOT_PENDING"


class WrongType(InvalidState):
    code = "WRONG_TYPE"


class InsufficientBalance(MarketError):
    status_code = 402
    code = "INSUFFICIENT_BALANCE"


class Conflict(MarketError):
    status_code = 409
    code = "CONFLICT"


class DuplicateWork(Conflict):
    code = "DUPLICATE_WORK"


class DuplicateEmail(Conflict):
    code = "DUPLICATE_EMAIL"


class Forbidden(MarketError):
    status_code = 403
    code = "FORBIDDEN"


class SelfWork(Forbidden):
    code = "SELF_WORK"


class InvalidInput(MarketError):
    status_code = 400
    code = "INVALID_INPUT"


class Unauthorized(MarketError):
    status_code = 401
    code = "UNAUTHORIZED"
