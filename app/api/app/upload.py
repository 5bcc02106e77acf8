"""Upload Router. Presigned image upload URLs plus the local-mode PUT target.

In local mode (no AWS keys) the client PUTs the file to ``/local/{key}``
instead of S3; the key was issued by ``POST /image`` to a MANAGER+ caller.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.api.deps import require_manager
from app.models.user import User
from app.schemas.admin import UploadRequest, UploadResponse
from app.schemas.common import success_response
from app.services.storage_service import storage_service

router: APIRouter = APIRouter()


@router.post("/image")
async def create_image_upload(
    data: UploadRequest,
    current_user: Annotated[User, Depends(require_manager)],
) -> dict:
    """Presigned PUT URL for a venue or service image (jpg, png, webp, gif)."""
    result: dict[str, str] = storage_service.generate_presigned_upload_url(data.file_name, data.folder)
    return success_response(UploadResponse(**result), "Upload URL generated")


@router.put("/local/{key:path}")
async def upload_local(key: str, request: Request) -> dict:
    body: bytes = await request.body()
    storage_service.save_local(key, body)
    return success_response({"key": key, "fileUrl": storage_service.public_url(key)}, "File stored")
