import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from supabase import AsyncClient, AsyncClientOptions, acreate_client

from fitprofile.config import settings

logger = logging.getLogger(__name__)


def _client_options(access_token: Optional[str] = None) -> AsyncClientOptions:
    # Sessions live on the client instance only; nothing is written to disk or refreshed
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    return AsyncClientOptions(headers=headers, persist_session=False, auto_refresh_token=False)


async def create_supabase_client(access_token: Optional[str] = None) -> AsyncClient:
    """Build a Supabase handle.

    Without ``access_token`` the client carries only the anon key. With it,
    PostgREST and storage calls run as the token's user.
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be configured")
    client = await acreate_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_KEY,
        options=_client_options(access_token),
    )
    logger.debug("Supabase client created (authenticated=%s)", bool(access_token))
    return client


async def close_supabase_client(client: AsyncClient) -> None:
    await client.postgrest.aclose()


def get_supabase(request: Request) -> AsyncClient:
    """Shared anon client. Never signed in, used only to verify bearer tokens."""
    return request.app.state.supabase


async def get_anonymous_client() -> AsyncIterator[AsyncClient]:
    """Throwaway client for flows that create a session (sign-in, sign-up)."""
    client = await create_supabase_client()
    try:
        yield client
    finally:
        await close_supabase_client(client)
