import asyncio
import logging
import time
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx
from supabase import AsyncClient

from fitprofile.config import settings

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"


def _join_path(*segments: str) -> str:
    cleaned = [segment.strip("/") for segment in segments if segment and segment.strip("/")]
    return "/".join(cleaned)


def resolve_extension(photo_uri: str) -> str:
    suffix = Path(urlparse(photo_uri).path).suffix.lower().lstrip(".")
    return suffix or DEFAULT_EXTENSION


def build_object_path(user_id: str, photo_uri: str) -> str:
    """User-scoped, millisecond-timestamped object key: ``<user_id>/<epoch_ms>.<ext>``."""
    timestamp_ms = time.time_ns() // 1_000_000
    return _join_path(str(user_id), f"{timestamp_ms}.{resolve_extension(photo_uri)}")


def object_path_from_url(url: str, bucket: str) -> Optional[str]:
    """Recover the object key from a public or signed storage URL of ``bucket``."""
    _, separator, tail = url.partition(f"/{bucket}/")
    if not separator:
        return None
    path = unquote(tail.split("?", 1)[0])
    return path or None


async def read_image_bytes(photo_uri: str) -> bytes:
    parsed = urlparse(photo_uri)
    if parsed.scheme in {"http", "https"}:
        async with httpx.AsyncClient(timeout=settings.PHOTO_FETCH_TIMEOUT_SECONDS) as http:
            response = await http.get(photo_uri)
            response.raise_for_status()
            data = response.content
    else:
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(photo_uri)
        data = await asyncio.to_thread(path.read_bytes)

    if not data:
        raise ValueError(f"Empty image at {photo_uri}")
    return data


async def upload_image(client: AsyncClient, bucket: str, path: str, data: bytes) -> str:
    extension = path.rsplit(".", 1)[-1]
    await client.storage.from_(bucket).upload(
        path,
        data,
        file_options={"content-type": f"image/{extension}", "upsert": "true"},
    )
    logger.info("Uploaded %s bytes to %s/%s", len(data), bucket, path)
    return path


async def get_public_url(client: AsyncClient, bucket: str, path: str) -> str:
    return await client.storage.from_(bucket).get_public_url(path)


async def create_signed_url(
    client: AsyncClient,
    bucket: str,
    path: str,
    expires_in: Optional[int] = None,
) -> Optional[str]:
    signed = await client.storage.from_(bucket).create_signed_url(
        path, expires_in or settings.SIGNED_URL_TTL_SECONDS
    )
    if not signed:
        return None
    return signed.get("signedUrl") or signed.get("signedURL")


async def remove_objects(client: AsyncClient, bucket: str, paths: list[str]) -> None:
    await client.storage.from_(bucket).remove(paths)
    logger.info("Removed %s objects from %s", len(paths), bucket)
