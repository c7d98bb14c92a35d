"""Dependencies for API endpoints."""

from typing import TypeVar

from fastapi import HTTPException, Request, status

from app.services.ingestion import UploadOrchestrator
from app.utils.identifiers import is_valid_file_id, is_valid_report_id
from app.utils.result import ErrorKind, Result

T = TypeVar("T")

HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.SYSTEM_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.DATA_INTEGRITY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(kind: ErrorKind) -> int:
    return HTTP_STATUS_BY_KIND.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


def unwrap_or_raise(result: Result[T]) -> T:
    """Returns the data of a successful envelope or raises the matching HTTPException."""
    if result.success:
        return result.data  # type: ignore[return-value]
    error = result.error
    raise HTTPException(
        status_code=http_status_for(error.kind),
        detail=error.model_dump(mode="json"),
    )


def get_orchestrator(request: Request) -> UploadOrchestrator:
    """
    Dependency returning the orchestrator built during application startup.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="File services are not ready.",
        )
    return orchestrator


def valid_file_id(file_id: str) -> str:
    if not is_valid_file_id(file_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file ID format. Must match pattern: file_XXXXXX",
        )
    return file_id


def valid_report_id(report_id: str) -> str:
    if not is_valid_report_id(report_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid report ID format. Must match pattern: rep_XXXXXX",
        )
    return report_id
