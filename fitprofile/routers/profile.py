import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from supabase import AsyncClient

from fitprofile.controllers.profile_controller import ProfileController
from fitprofile.schemas.profile import MetricsUpdate
from fitprofile.schemas.user import AuthUser
from fitprofile.services import user_service
from fitprofile.services.auth_middleware import get_current_user, get_user_client
from fitprofile.utils.response import create_response, handle_exception, raise_for_result
from fitprofile.utils.uploads import staged_upload

router = APIRouter(prefix="/profile", tags=["Profile"])
logger = logging.getLogger(__name__)


async def get_profile_controller(
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
) -> ProfileController:
    controller = ProfileController(client)
    await controller.set_user(current_user)
    return controller


@router.get("/me")
async def get_profile(controller: ProfileController = Depends(get_profile_controller)):
    try:
        return create_response(
            message="Profile fetched successfully",
            data=controller.view(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/metrics")
async def update_metrics(
    body: MetricsUpdate,
    controller: ProfileController = Depends(get_profile_controller),
):
    try:
        await controller.update_metrics(body.weight, body.height, body.body_fat_percentage)
        return create_response(
            message="Metrics updated successfully",
            data=controller.view(),
            status_code=status.HTTP_200_OK,
        )
    except ValueError as exc:
        return handle_exception(HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)))
    except Exception as exc:
        return handle_exception(exc)


@router.post("/photo")
async def upload_profile_photo(
    file: UploadFile = File(...),
    controller: ProfileController = Depends(get_profile_controller),
):
    try:
        async with staged_upload(file) as path:
            url = await controller.update_profile_photo(path)
        if not url:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Profile photo upload failed")
        return create_response(
            message="Profile photo updated",
            data={"url": url, "profile": controller.view()},
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/weight-history")
async def weight_history(
    limit: int = Query(30, ge=1, le=365),
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        result = await user_service.get_weight_history(client, current_user.id, limit)
        raise_for_result(result, "Weight history unavailable")
        return create_response(
            message="Weight history fetched",
            data={"entries": result.data},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
