"""
Success/failure envelope and the error taxonomy used across the ingestion services.

Fallible operations return a ``Result`` instead of letting exceptions cross a
service boundary. Inside a service, code raises ``AppError`` with an explicit
``ErrorKind`` at the point of failure; ``attempt``/``attempt_async`` turn that
into a failed envelope without re-deriving the kind.
"""

import enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    SYSTEM_FAILURE = "system_failure"
    DATA_INTEGRITY = "data_integrity"


class ErrorDetail(BaseModel):
    """Structured error carried by a failed envelope."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: ErrorKind = Field(..., description="Taxonomy tag, independent of HTTP codes.")
    message: str = Field(..., description="Human-readable description.")
    details: dict[str, Any] = Field(default_factory=dict)
    inner_error: Optional[BaseException] = Field(default=None, exclude=True, repr=False)


class AppError(Exception):
    """
    Exception carrying an explicit error kind.

    Raised at the failure site (storage backends, stores, the status machine)
    so the classification travels with the error instead of being guessed
    later from its message.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[dict[str, Any]] = None,
        inner_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}
        self.inner_error = inner_error

    def to_error(self, extra_details: Optional[dict[str, Any]] = None) -> ErrorDetail:
        return ErrorDetail(
            kind=self.kind,
            message=self.message,
            details={**self.details, **(extra_details or {})},
            inner_error=self.inner_error or self,
        )

    def __repr__(self) -> str:
        return f"<AppError(kind='{self.kind.value}', message='{self.message}')>"


class Result(BaseModel, Generic[T]):
    """Envelope: ``success`` is True exactly when ``error`` is None."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None

    @model_validator(mode="after")
    def _check_envelope(self) -> "Result[T]":
        if self.success and self.error is not None:
            raise ValueError("A successful result cannot carry an error.")
        if not self.success:
            if self.error is None:
                raise ValueError("A failed result must carry an error.")
            if self.data is not None:
                raise ValueError("A failed result cannot carry data.")
        return self

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None


def success(data: T) -> Result[T]:
    return Result(success=True, data=data)


def failure(
    kind: ErrorKind,
    message: str,
    details: Optional[dict[str, Any]] = None,
    inner_error: Optional[BaseException] = None,
) -> Result[Any]:
    return Result(
        success=False,
        error=ErrorDetail(
            kind=kind, message=message, details=details or {}, inner_error=inner_error
        ),
    )


def from_error(error: ErrorDetail) -> Result[Any]:
    return Result(success=False, error=error)


def map_result(result: Result[T], fn: Callable[[T], U]) -> Result[U]:
    """Transforms ``data`` on success; failures pass through untouched."""
    if not result.success:
        return result  # type: ignore[return-value]
    return success(fn(result.data))  # type: ignore[arg-type]


def chain(result: Result[T], fn: Callable[[T], Result[U]]) -> Result[U]:
    """Sequences a dependent fallible step, short-circuiting on failure."""
    if not result.success:
        return result  # type: ignore[return-value]
    return fn(result.data)  # type: ignore[arg-type]


async def chain_async(
    result: Result[T], fn: Callable[[T], Awaitable[Result[U]]]
) -> Result[U]:
    if not result.success:
        return result  # type: ignore[return-value]
    return await fn(result.data)  # type: ignore[arg-type]


def _failure_from_exception(
    exc: Exception, operation: str, details: Optional[dict[str, Any]]
) -> Result[Any]:
    context = {**(details or {}), "operation": operation}
    if isinstance(exc, AppError):
        # keep the classification made at the raise site
        return from_error(exc.to_error(context))
    return failure(
        ErrorKind.SYSTEM_FAILURE,
        str(exc) or exc.__class__.__name__,
        context,
        exc,
    )


def attempt(
    operation: Callable[[], T],
    *,
    operation_name: str = "unknown",
    details: Optional[dict[str, Any]] = None,
) -> Result[T]:
    """Runs ``operation`` and wraps its return value or raised error."""
    try:
        return success(operation())
    except Exception as exc:
        return _failure_from_exception(exc, operation_name, details)


async def attempt_async(
    operation: Callable[[], Awaitable[T]],
    *,
    operation_name: str = "unknown",
    details: Optional[dict[str, Any]] = None,
) -> Result[T]:
    """Async counterpart of ``attempt``. Cancellation is not swallowed."""
    try:
        return success(await operation())
    except Exception as exc:
        return _failure_from_exception(exc, operation_name, details)


def unwrap(result: Result[T]) -> T:
    if not result.success:
        error = result.error
        raise AppError(error.kind, error.message, error.details, error.inner_error)
    return result.data  # type: ignore[return-value]


def unwrap_or(result: Result[T], fallback: T) -> T:
    return result.data if result.success else fallback  # type: ignore[return-value]
