import logging

from fastapi import APIRouter, Depends, status
from supabase import AsyncClient

from fitprofile.schemas.user import SignInRequest, SignUpRequest
from fitprofile.services import auth_service, user_service
from fitprofile.services.auth_middleware import get_user_client
from fitprofile.supabase_client import get_anonymous_client
from fitprofile.utils.response import create_response, handle_exception

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


def _session_payload(response) -> dict:
    session = getattr(response, "session", None)
    user = getattr(response, "user", None)
    return {
        "user": auth_service.to_auth_user(user) if user else None,
        "access_token": session.access_token if session else None,
        "refresh_token": session.refresh_token if session else None,
    }


async def _sync_profile(client: AsyncClient, user) -> None:
    if not user:
        return
    result = await user_service.create_or_update_profile(client, user)
    if not result.ok:
        logger.warning("Profile sync failed for user %s", user.id)


@router.post("/sign-in")
async def sign_in(body: SignInRequest, client: AsyncClient = Depends(get_anonymous_client)):
    try:
        response = await auth_service.sign_in_with_email(client, body.email, body.password)
        await _sync_profile(client, response.user)
        return create_response(
            message="Signed in successfully",
            data=_session_payload(response),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc, "Invalid login credentials", status.HTTP_401_UNAUTHORIZED)


@router.post("/sign-up")
async def sign_up(body: SignUpRequest, client: AsyncClient = Depends(get_anonymous_client)):
    try:
        response = await auth_service.sign_up_with_email(client, body.email, body.password, body.full_name)
        await _sync_profile(client, response.user)
        return create_response(
            message="Account created",
            data=_session_payload(response),
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc, "Sign-up failed", status.HTTP_400_BAD_REQUEST)


@router.post("/sign-out")
async def sign_out(client: AsyncClient = Depends(get_user_client)):
    await auth_service.sign_out(client)
    return create_response(message="Signed out", data=None, status_code=status.HTTP_200_OK)


@router.get("/session")
async def current_session(client: AsyncClient = Depends(get_user_client)):
    try:
        session = await auth_service.get_session(client)
        if not session:
            return create_response(message="No active session", data=None, status_code=status.HTTP_404_NOT_FOUND)
        return create_response(
            message="Session fetched",
            data={
                "user": auth_service.to_auth_user(session.user),
                "expires_at": session.expires_at,
            },
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc, "Session lookup failed", status.HTTP_401_UNAUTHORIZED)
