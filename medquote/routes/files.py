from typing import get_args

from fastapi import APIRouter, Depends, Query
import structlog

from medquote.errors import bad_request
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.user import FileDownloadResponse, FileUploadRequest, FileUploadResponse
from medquote.services import storage

logger = structlog.get_logger()
router = APIRouter()

FOLDERS = get_args(FileUploadRequest.model_fields["folder"].annotation)


@router.post("/upload-url", response_model=FileUploadResponse)
async def create_upload_url(
    body: FileUploadRequest,
    current_user: User = Depends(get_current_user),
):
    """Presigned PUT URL for product photos, delivery proofs and catalog pages."""
    return FileUploadResponse(
        **storage.generate_upload_url(body.folder, current_user.id, body.content_type)
    )


@router.get("/download-url", response_model=FileDownloadResponse)
async def get_download_url(
    key: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
):
    if key.split("/", 1)[0] not in FOLDERS:
        raise bad_request("Unknown file location")
    return FileDownloadResponse(download_url=storage.get_download_url(key))
