"""
Error taxonomy for the grouping engine.

Every failure that leaves the engine is a GroupingError carrying a structured
envelope (domain, code, message, optional cause) so the routing layer can turn
it into a failure response without inspecting host- or store-specific errors.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

ErrorDomain = Literal["validation", "settings", "tabs", "storage", "runtime", "unknown"]

STATUS_CODE_MAP: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    408: "timeout",
    409: "conflict",
    429: "rate_limited",
    500: "internal_error",
    503: "service_unavailable",
}

DEFAULT_DOMAIN_CODE: dict[str, str] = {
    "validation": "validation_error",
    "settings": "settings_error",
    "tabs": "tab_error",
    "storage": "storage_error",
    "runtime": "runtime_error",
    "unknown": "unknown_error",
}


class ErrorEnvelope(BaseModel):
    """Serializable description of a grouping failure."""

    code: str
    domain: str
    message: str
    cause: Optional[str] = None
    status: Optional[int] = None
    details: dict[str, Any] = Field(default_factory=dict)


def error_message(error: BaseException, fallback: str = "Unknown error") -> str:
    """Best human-readable message for an exception."""
    if isinstance(error, GroupingError):
        return error.message or fallback
    message = str(error).strip()
    return message or fallback


class GroupingError(Exception):
    """Base class for all errors raised by the grouping engine."""

    domain: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        domain: Optional[str] = None,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
        status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if domain:
            self.domain = domain
        self.status = status
        self.code = code or self._resolve_code()
        self.cause = cause
        self.details = details or {}
        if cause is not None:
            self.__cause__ = cause

    def _resolve_code(self) -> str:
        if self.status is not None and self.status in STATUS_CODE_MAP:
            return STATUS_CODE_MAP[self.status]
        return DEFAULT_DOMAIN_CODE.get(self.domain, "unknown_error")

    def to_envelope(self) -> ErrorEnvelope:
        return ErrorEnvelope(
            code=self.code,
            domain=self.domain,
            message=self.message,
            cause=error_message(self.cause) if self.cause is not None else None,
            status=self.status,
            details=self.details,
        )


class PreconditionError(GroupingError):
    """A request is missing data the engine cannot work without (tab ID, window ID)."""

    domain = "validation"


class ConfigurationError(GroupingError):
    """Settings make the request impossible (e.g. no enabled colors)."""

    domain = "settings"


class HostOperationError(GroupingError):
    """The host tab/group API rejected a call."""

    domain = "tabs"


class PersistenceError(GroupingError):
    """The persistent store failed to read or write."""

    domain = "storage"


def to_grouping_error(
    error: BaseException,
    message: Optional[str] = None,
    domain: str = "unknown",
) -> GroupingError:
    """
    Normalize any exception into a GroupingError.

    GroupingErrors are returned unchanged; anything else is wrapped with the
    original exception kept as the cause.

    Args:
        error: The exception to normalize
        message: Message for the wrapper (defaults to the original message)
        domain: Domain for the wrapper

    Returns:
        A GroupingError describing the failure
    """
    if isinstance(error, GroupingError):
        return error
    return GroupingError(
        message or error_message(error),
        domain=domain,
        cause=error,
    )
