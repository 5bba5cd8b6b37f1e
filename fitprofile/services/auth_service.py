import logging
from typing import Any, Callable, Optional

from supabase import AsyncClient

from fitprofile.schemas.user import AuthUser

logger = logging.getLogger(__name__)


async def sign_in_with_email(client: AsyncClient, email: str, password: str):
    return await client.auth.sign_in_with_password({"email": email, "password": password})


async def sign_up_with_email(client: AsyncClient, email: str, password: str, full_name: str):
    return await client.auth.sign_up(
        {
            "email": email,
            "password": password,
            "options": {"data": {"full_name": full_name}},
        }
    )


async def sign_out(client: AsyncClient) -> None:
    try:
        await client.auth.sign_out()
    except Exception:
        logger.warning("Sign-out failed; ignoring", exc_info=True)


async def get_session(client: AsyncClient):
    return await client.auth.get_session()


def on_auth_state_change(client: AsyncClient, callback: Callable[[str, Any], None]):
    """Register ``callback(event, session)``; returns a subscription with ``unsubscribe()``."""
    return client.auth.on_auth_state_change(callback)


async def get_user(client: AsyncClient, access_token: str) -> Optional[AuthUser]:
    response = await client.auth.get_user(access_token)
    if not response or not response.user:
        return None
    return to_auth_user(response.user)


async def restore_session(client: AsyncClient, access_token: str):
    """Attach an existing access token to ``client`` so user-scoped auth calls act on its owner."""
    response = await client.auth.set_session(access_token, "")
    return response.session


def to_auth_user(user: Any) -> AuthUser:
    if isinstance(user, AuthUser):
        return user
    if isinstance(user, dict):
        return AuthUser.model_validate(user)
    return AuthUser(
        id=str(user.id),
        email=getattr(user, "email", None),
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
    )
