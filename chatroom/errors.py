"""
Error taxonomy for the chat engine.

Operations raise ChatError subclasses. Boundaries never inspect exception
types directly: they call classify() and work with the tagged Err it
returns.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Union

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("chatroom.errors")


class ChatError(Exception):
    kind = "internal"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ChatError):
    kind = "validation"


class Conflict(ChatError):
    kind = "conflict"


class NotFound(ChatError):
    kind = "not_found"


class Unauthorized(ChatError):
    kind = "unauthorized"


class StoreUnavailable(ChatError):
    kind = "store_unavailable"


@contextmanager
def store_errors(action: str):
    """Re-raise database driver failures as StoreUnavailable."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreUnavailable(f"{action}: {exc}") from exc


HTTP_STATUS = {
    ValidationError.kind: 422,
    Conflict.kind: 409,
    NotFound.kind: 404,
    Unauthorized.kind: 401,
    StoreUnavailable.kind: 500,
}

GENERIC_DETAIL = "internal error"


@dataclass(frozen=True)
class Ok:
    value: Any = None


@dataclass(frozen=True)
class Err:
    kind: str
    detail: str = ""

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.kind, 500)

    @property
    def public_detail(self) -> str:
        # store failures never leak to callers
        if self.kind == StoreUnavailable.kind:
            return GENERIC_DETAIL
        return self.detail


Result = Union[Ok, Err]


def classify(exc: BaseException) -> Err:
    """Map any exception raised by an engine operation to a tagged Err."""
    if isinstance(exc, ChatError):
        return Err(exc.kind, exc.detail)
    return Err(StoreUnavailable.kind, f"{type(exc).__name__}: {exc}")


async def attempt(awaitable: Awaitable) -> Result:
    """Await an operation and return Ok(value) or the classified Err."""
    try:
        return Ok(await awaitable)
    except Exception as exc:
        err = classify(exc)
        if err.kind == StoreUnavailable.kind:
            logger.exception("Store failure: %s", err.detail)
        return err
