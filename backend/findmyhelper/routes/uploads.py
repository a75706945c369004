"""
FindMyHelper Backend — Upload Routes
======================================

What:  Image uploads (multipart field `image`) and serving of locally
       stored files.
How:   ImageUploadService validates and stores the bytes and returns a
       URL; the route then records it on the user or provider profile.

    POST /api/upload/profile-picture   sets user.profile_picture
    POST /api/upload/id-verification   sets provider.id_verification_image
                                       when the caller already has a
                                       profile; otherwise the URL is only
                                       returned, for POST /api/providers
    GET  /api/files/{path}             local backend only
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse

from findmyhelper.dependencies import (
    get_current_user,
    get_identity_service,
    get_provider_directory,
    get_upload_service,
)
from findmyhelper.exceptions import NotFoundError
from findmyhelper.models import User
from findmyhelper.schemas.common import ErrorResponse, UploadResponse
from findmyhelper.services.identity import IdentityService
from findmyhelper.services.object_storage import ImageUploadService, LocalObjectStorage
from findmyhelper.services.providers import ProviderDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Uploads"])

_upload_errors = {
    400: {"description": "Not an image, unsupported type, or too large", "model": ErrorResponse},
    401: {"description": "Not logged in", "model": ErrorResponse},
    500: {"description": "Storage failure", "model": ErrorResponse},
}


async def _read_and_save(uploads: ImageUploadService, folder: str, image: UploadFile) -> str:
    try:
        content = await image.read()
        return await uploads.save(
            folder=folder,
            filename=image.filename or "upload",
            content=content,
            content_type=image.content_type,
        )
    finally:
        await image.close()


@router.post(
    "/upload/profile-picture",
    response_model=UploadResponse,
    responses=_upload_errors,
    summary="Upload a profile picture",
)
async def upload_profile_picture(
    image: UploadFile = File(..., description="PNG, JPG, GIF or WEBP image, max 10MB"),
    user: User = Depends(get_current_user),
    uploads: ImageUploadService = Depends(get_upload_service),
    identity: IdentityService = Depends(get_identity_service),
) -> UploadResponse:
    url = await _read_and_save(uploads, "profile", image)
    await identity.set_profile_picture(user, url)
    return UploadResponse(url=url)


@router.post(
    "/upload/id-verification",
    response_model=UploadResponse,
    responses=_upload_errors,
    summary="Upload an identity verification image",
)
async def upload_id_verification(
    image: UploadFile = File(..., description="PNG, JPG, GIF or WEBP image, max 10MB"),
    user: User = Depends(get_current_user),
    uploads: ImageUploadService = Depends(get_upload_service),
    directory: ProviderDirectory = Depends(get_provider_directory),
) -> UploadResponse:
    url = await _read_and_save(uploads, "id", image)
    await directory.attach_verification_image(user, url)
    return UploadResponse(url=url)


@router.get(
    "/files/{file_path:path}",
    responses={
        200: {"description": "Image file"},
        400: {"description": "Invalid path", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Serve a locally stored upload",
)
async def serve_file(
    file_path: str,
    uploads: ImageUploadService = Depends(get_upload_service),
) -> FileResponse:
    if not isinstance(uploads.backend, LocalObjectStorage):
        raise NotFoundError(resource="file", resource_id=file_path)

    path = uploads.backend.resolve(file_path)
    return FileResponse(
        path=str(path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
