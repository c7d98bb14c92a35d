"""API endpoints for report attachments."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status

from app.api.deps import (
    get_orchestrator,
    http_status_for,
    unwrap_or_raise,
    valid_file_id,
    valid_report_id,
)
from app.schemas.file import (
    MAX_FILE_SIZE,
    Base64UploadRequest,
    BatchResult,
    BatchUploadResponse,
    FileListResponse,
    FileResponse,
    FileStatusUpdate,
    IncomingFile,
)
from app.services.ingestion import UploadOrchestrator
from app.utils.file_validator import MAX_FILES_PER_REPORT
from app.utils.logging_config import logger
from app.utils.result import AppError, ErrorKind

router = APIRouter()


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _batch_response(batch: BatchResult) -> BatchUploadResponse:
    """Turns a batch into a response, or raises when nothing was stored."""
    if batch.all_failed:
        kinds = {failed.kind for failed in batch.failed}
        status_code = (
            status.HTTP_400_BAD_REQUEST
            if kinds == {ErrorKind.VALIDATION}
            else max(http_status_for(kind) for kind in kinds)
        )
        raise HTTPException(
            status_code=status_code,
            detail={
                "message": "Failed to upload any files",
                "failed": [failed.model_dump(mode="json") for failed in batch.failed],
                "total_requested": batch.total_requested,
            },
        )
    return BatchUploadResponse(
        message=f"Successfully uploaded {batch.total_uploaded} of {batch.total_requested} files",
        files=[FileResponse.model_validate(record) for record in batch.uploaded],
        failed=batch.failed,
        total_uploaded=batch.total_uploaded,
        total_requested=batch.total_requested,
    )


@router.post(
    "/upload",
    status_code=status.HTTP_201_CREATED,
    response_model=BatchUploadResponse,
    summary="Upload attachments for a report",
    description="Accepts up to 10 files for one report. Files failing validation or storage are listed in `failed`.",
)
async def upload_files(
    request: Request,
    report_id: str = Form(...),
    files: list[UploadFile] = File(...),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> BatchUploadResponse:
    valid_report_id(report_id)
    if len(files) > MAX_FILES_PER_REPORT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum {MAX_FILES_PER_REPORT} files per upload.",
        )

    incoming = []
    for upload in files:
        # one byte past the limit is enough for the size check to reject it
        data = await upload.read(MAX_FILE_SIZE + 1)
        incoming.append(
            IncomingFile(
                data=data,
                name=upload.filename or "",
                mime_type=upload.content_type or "application/octet-stream",
            )
        )

    result = await orchestrator.upload_batch(incoming, report_id, _client_ip(request))
    batch = unwrap_or_raise(result)
    return _batch_response(batch)


@router.post(
    "/upload/base64",
    status_code=status.HTTP_201_CREATED,
    response_model=BatchUploadResponse,
    summary="Upload base64-encoded attachments for a report",
)
async def upload_base64_files(
    request: Request,
    payload: Base64UploadRequest,
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> BatchUploadResponse:
    try:
        incoming = [
            IncomingFile.from_base64(item.data, item.name, item.mime_type)
            for item in payload.files
        ]
    except AppError as e:
        raise HTTPException(
            status_code=http_status_for(e.kind),
            detail=e.to_error().model_dump(mode="json"),
        ) from e

    result = await orchestrator.upload_batch(
        incoming, payload.report_id, _client_ip(request)
    )
    return _batch_response(unwrap_or_raise(result))


@router.get(
    "",
    response_model=FileListResponse,
    summary="List every stored attachment",
)
async def list_files(
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> FileListResponse:
    records = unwrap_or_raise(await orchestrator.list_files())
    return FileListResponse(
        files=[FileResponse.model_validate(record) for record in records],
        total=len(records),
    )


@router.get(
    "/report/{report_id}",
    response_model=list[FileResponse],
    summary="List the attachments of a report",
)
async def list_report_files(
    report_id: str = Depends(valid_report_id),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> list[FileResponse]:
    records = unwrap_or_raise(await orchestrator.list_files_for_report(report_id))
    return [FileResponse.model_validate(record) for record in records]


@router.get("/{file_id}", response_model=FileResponse, summary="Get one attachment")
async def get_file(
    file_id: str = Depends(valid_file_id),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> FileResponse:
    record = unwrap_or_raise(await orchestrator.get_file(file_id))
    return FileResponse.model_validate(record)


@router.patch(
    "/{file_id}/status",
    response_model=FileResponse,
    summary="Update the processing status of an attachment",
)
async def update_file_status(
    update: FileStatusUpdate,
    file_id: str = Depends(valid_file_id),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> FileResponse:
    record = unwrap_or_raise(await orchestrator.set_file_status(file_id, update.status))
    return FileResponse.model_validate(record)


@router.delete("/{file_id}", summary="Delete an attachment and its stored object")
async def delete_file(
    file_id: str = Depends(valid_file_id),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> dict[str, bool]:
    deleted = unwrap_or_raise(await orchestrator.delete_file(file_id))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    logger.info(f"File {file_id} deleted via API")
    return {"deleted": True}
