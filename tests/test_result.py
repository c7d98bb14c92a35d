import asyncio

import pytest
from pydantic import ValidationError

from app.utils.result import (
    AppError,
    ErrorDetail,
    ErrorKind,
    Result,
    attempt,
    attempt_async,
    chain,
    chain_async,
    failure,
    map_result,
    success,
    unwrap,
    unwrap_or,
)


def test_success_carries_data_and_no_error():
    result = success(42)

    assert result.success
    assert result.data == 42
    assert result.error is None
    assert result.kind is None


def test_failure_carries_error_and_no_data():
    result = failure(ErrorKind.NOT_FOUND, "missing", {"resource_id": "file_abc123"})

    assert not result.success
    assert result.data is None
    assert result.kind is ErrorKind.NOT_FOUND
    assert result.error.details == {"resource_id": "file_abc123"}


def test_envelope_rejects_inconsistent_states():
    error = ErrorDetail(kind=ErrorKind.VALIDATION, message="bad")

    with pytest.raises(ValidationError):
        Result(success=True, data=1, error=error)
    with pytest.raises(ValidationError):
        Result(success=False)
    with pytest.raises(ValidationError):
        Result(success=False, data=1, error=error)


def test_inner_error_is_not_serialised():
    cause = RuntimeError("boom")
    result = failure(ErrorKind.SYSTEM_FAILURE, "failed", inner_error=cause)

    assert result.error.inner_error is cause
    assert "inner_error" not in result.error.model_dump()


def test_map_result_transforms_success_only():
    assert map_result(success(2), lambda value: value * 10).data == 20

    failed = failure(ErrorKind.TIMEOUT, "slow")
    assert map_result(failed, lambda value: value * 10) is failed


def test_chain_short_circuits_on_failure():
    calls = []

    def step(value):
        calls.append(value)
        return success(value + 1)

    assert chain(success(1), step).data == 2
    failed = failure(ErrorKind.UNAVAILABLE, "down")
    assert chain(failed, step).kind is ErrorKind.UNAVAILABLE
    assert calls == [1]


@pytest.mark.asyncio
async def test_chain_async():
    async def step(value):
        return success(value * 3)

    assert (await chain_async(success(3), step)).data == 9
    failed = failure(ErrorKind.NOT_FOUND, "missing")
    assert (await chain_async(failed, step)).kind is ErrorKind.NOT_FOUND


def test_attempt_keeps_the_kind_raised_at_the_failure_site():
    def operation():
        raise AppError(ErrorKind.RATE_LIMITED, "slow down", {"backend": "supabase"})

    result = attempt(operation, operation_name="upload", details={"file": "a.png"})

    assert result.kind is ErrorKind.RATE_LIMITED
    assert result.error.message == "slow down"
    assert result.error.details == {
        "backend": "supabase",
        "file": "a.png",
        "operation": "upload",
    }


def test_attempt_wraps_unexpected_exceptions_as_system_failure():
    def operation():
        raise KeyError("permission denied")

    result = attempt(operation, operation_name="lookup")

    # the message mentions permissions but the kind is not guessed from it
    assert result.kind is ErrorKind.SYSTEM_FAILURE
    assert isinstance(result.error.inner_error, KeyError)


@pytest.mark.asyncio
async def test_attempt_async_success_and_failure():
    async def ok():
        return "done"

    async def broken():
        raise AppError(ErrorKind.TIMEOUT, "too slow")

    assert (await attempt_async(ok)).data == "done"
    assert (await attempt_async(broken)).kind is ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_attempt_async_does_not_swallow_cancellation():
    async def cancelled():
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await attempt_async(cancelled)


def test_unwrap_helpers():
    assert unwrap(success("value")) == "value"
    assert unwrap_or(failure(ErrorKind.NOT_FOUND, "missing"), "fallback") == "fallback"

    with pytest.raises(AppError) as exc_info:
        unwrap(failure(ErrorKind.PERMISSION_DENIED, "denied"))
    assert exc_info.value.kind is ErrorKind.PERMISSION_DENIED
