import logging
from typing import AsyncIterator

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from supabase import AsyncClient

from fitprofile import supabase_client
from fitprofile.config import settings
from fitprofile.schemas.user import AuthUser
from fitprofile.services import auth_service

logger = logging.getLogger(__name__)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(settings.bearer_scheme),
    client: AsyncClient = Depends(supabase_client.get_supabase),
) -> AuthUser:
    token = credentials.credentials
    try:
        user = await auth_service.get_user(client, token)
    except Exception:
        logger.info("Rejected bearer token", exc_info=True)
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


async def get_user_client(
    credentials: HTTPAuthorizationCredentials = Depends(settings.bearer_scheme),
    current_user: AuthUser = Depends(get_current_user),
) -> AsyncIterator[AsyncClient]:
    """Per-request client acting as the bearer token's user, closed after the request."""
    client = await supabase_client.create_supabase_client(credentials.credentials)
    try:
        try:
            await auth_service.restore_session(client, credentials.credentials)
        except Exception:
            logger.info("Could not restore session for user %s", current_user.id, exc_info=True)
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        yield client
    finally:
        await supabase_client.close_supabase_client(client)
