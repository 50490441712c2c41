"""
File upload endpoint for data-URL encoded files.
"""
import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from backend.api.deps import CurrentUser
from backend.services.storage import get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["Upload"])


class UploadRequest(BaseModel):
    file_data_url: str = Field(..., description="data:<mime>;base64,<payload>")
    path: str = Field(..., min_length=1, description="Storage path, e.g. 'proofs/<uid>/file.pdf'")


class UploadResponse(BaseModel):
    success: bool = True
    url: str


@router.post("", response_model=UploadResponse, summary="Upload a file")
async def upload_file(request: UploadRequest, current_user: CurrentUser) -> UploadResponse:
    url = await get_storage().upload_data_url(request.file_data_url, request.path)
    logger.info(f"File uploaded by {current_user.id}: {request.path}")
    return UploadResponse(url=url)
