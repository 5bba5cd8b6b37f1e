from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from supabase import AsyncClient

from fitprofile.schemas.progress import ProgressPhotoDelete, ProgressPhotoUpdate
from fitprofile.schemas.user import AuthUser
from fitprofile.services import progress_service
from fitprofile.services.auth_middleware import get_current_user, get_user_client
from fitprofile.utils.response import create_response, handle_exception, raise_for_result
from fitprofile.utils.uploads import staged_upload

router = APIRouter(prefix="/progress-photos", tags=["Progress Photos"])


@router.get("")
async def list_progress_photos(
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        result = await progress_service.get_progress_photos(client, current_user.id)
        raise_for_result(result, "Progress photos unavailable")
        return create_response(
            message="Progress photos fetched",
            data=result.data,
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("")
async def create_progress_photo(
    file: UploadFile = File(...),
    taken_at: str | None = Form(None),
    comment: str = Form(""),
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        parsed_taken_at = None
        if taken_at:
            try:
                parsed_taken_at = datetime.fromisoformat(taken_at.replace("Z", "+00:00"))
            except ValueError as exc:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid timestamp format",
                ) from exc

        async with staged_upload(file) as path:
            result = await progress_service.upload_progress_photo(
                client, current_user.id, path, parsed_taken_at, comment
            )
        raise_for_result(result, "Progress photo upload failed")
        return create_response(
            message="Progress photo uploaded",
            data=result.data,
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.patch("/{photo_id}")
async def update_progress_photo(
    photo_id: str,
    body: ProgressPhotoUpdate,
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        if not body.model_fields_set:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
        result = await progress_service.update_progress_photo(client, photo_id, body, current_user.id)
        raise_for_result(result, "Progress photo update failed")
        return create_response(
            message="Progress photo updated",
            data=result.data,
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/delete")
async def delete_progress_photos(
    body: ProgressPhotoDelete,
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        result = await progress_service.delete_progress_photos(client, body.photo_ids, current_user.id)
        raise_for_result(result, "Progress photo delete failed")
        return create_response(
            message="Progress photos deleted",
            data={"deleted": body.photo_ids},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
