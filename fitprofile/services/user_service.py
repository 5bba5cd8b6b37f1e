import logging
from datetime import datetime, timezone
from typing import Any

from postgrest.exceptions import APIError
from supabase import AsyncClient

from fitprofile.config import settings
from fitprofile.schemas.metrics import MetricsInput, UserMetrics, WeightHistoryEntry
from fitprofile.schemas.result import ServiceResponse
from fitprofile.schemas.user import UserProfileRow
from fitprofile.services.auth_service import to_auth_user
from fitprofile.services.measurement_utils import calculate_bmi, cm_to_m, m_to_cm
from fitprofile.services.storage_service import (
    build_object_path,
    get_public_url,
    read_image_bytes,
    upload_image,
)

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
WEIGHT_HISTORY_TABLE = "weight_history"
METRICS_COLUMNS = "weight, height, body_fat_percentage, bmi, updated_at"

# PostgREST code for ``.single()`` matching zero rows
NO_ROWS_CODE = "PGRST116"


def _first_row(data: Any, table: str) -> dict:
    rows = data if isinstance(data, list) else [data] if data else []
    if not rows:
        raise LookupError(f"No {table} row returned")
    return rows[0]


def _metrics_from_row(row: dict) -> UserMetrics:
    height = row.get("height")
    return UserMetrics(
        weight=row.get("weight"),
        height=m_to_cm(height) if height else height,
        body_fat_percentage=row.get("body_fat_percentage"),
        bmi=row.get("bmi"),
        updated_at=row.get("updated_at"),
    )


async def create_or_update_profile(client: AsyncClient, user: Any) -> ServiceResponse[UserProfileRow]:
    try:
        auth_user = to_auth_user(user)
        response = await (
            client.table(USERS_TABLE)
            .upsert(
                {
                    "id": auth_user.id,
                    "email": auth_user.email,
                    "full_name": auth_user.full_name,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .execute()
        )
        row = _first_row(response.data, USERS_TABLE)
        return ServiceResponse.success(UserProfileRow.model_validate(row))
    except Exception as exc:
        logger.exception("Error creating/updating profile")
        return ServiceResponse.failure(exc)


async def save_user_metrics(
    client: AsyncClient,
    user_id: str,
    metrics: MetricsInput,
) -> ServiceResponse[UserMetrics]:
    try:
        bmi = metrics.bmi if metrics.bmi is not None else calculate_bmi(metrics.weight, metrics.height)
        response = await (
            client.table(USERS_TABLE)
            .update(
                {
                    "weight": metrics.weight,
                    "height": cm_to_m(metrics.height),
                    "body_fat_percentage": metrics.body_fat_percentage,
                    "bmi": round(bmi, 1) if bmi is not None else None,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("id", user_id)
            .execute()
        )
        row = _first_row(response.data, USERS_TABLE)

        if metrics.weight:
            await _append_weight_history(client, user_id, metrics.weight)

        return ServiceResponse.success(_metrics_from_row(row))
    except Exception as exc:
        logger.exception("Error saving user metrics for user_id=%s", user_id)
        return ServiceResponse.failure(exc)


async def _append_weight_history(client: AsyncClient, user_id: str, weight: float) -> None:
    # Best-effort: the metrics row is already saved when this runs.
    try:
        await client.table(WEIGHT_HISTORY_TABLE).insert({"user_id": user_id, "weight": weight}).execute()
        logger.info("User %s weight history appended weight=%skg", user_id, weight)
    except Exception:
        logger.warning("Failed to append weight history for user_id=%s", user_id, exc_info=True)


async def get_user_metrics(client: AsyncClient, user_id: str) -> ServiceResponse[UserMetrics]:
    try:
        response = await (
            client.table(USERS_TABLE)
            .select(METRICS_COLUMNS)
            .eq("id", user_id)
            .single()
            .execute()
        )
    except APIError as exc:
        if exc.code == NO_ROWS_CODE:
            logger.debug("No metrics row for user_id=%s", user_id)
            return ServiceResponse.success(None)
        logger.exception("Error fetching user metrics for user_id=%s", user_id)
        return ServiceResponse.failure(exc)
    except Exception as exc:
        logger.exception("Error fetching user metrics for user_id=%s", user_id)
        return ServiceResponse.failure(exc)

    if not response.data:
        return ServiceResponse.success(None)
    return ServiceResponse.success(_metrics_from_row(response.data))


async def get_weight_history(
    client: AsyncClient,
    user_id: str,
    limit: int = 30,
) -> ServiceResponse[list[WeightHistoryEntry]]:
    try:
        response = await (
            client.table(WEIGHT_HISTORY_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        entries = [WeightHistoryEntry.model_validate(row) for row in response.data or []]
        return ServiceResponse.success(entries)
    except Exception as exc:
        logger.exception("Error fetching weight history for user_id=%s", user_id)
        return ServiceResponse.failure(exc)


async def upload_profile_photo(client: AsyncClient, user_id: str, photo_uri: str) -> ServiceResponse[str]:
    bucket = settings.PROFILE_PHOTO_BUCKET
    try:
        data = await read_image_bytes(photo_uri)
        path = await upload_image(client, bucket, build_object_path(user_id, photo_uri), data)
        public_url = await get_public_url(client, bucket, path)

        await client.auth.update_user({"data": {"custom_avatar_url": public_url}})
        await client.table(USERS_TABLE).update({"photo_url": public_url}).eq("id", user_id).execute()

        logger.info("User %s profile photo updated at %s", user_id, path)
        return ServiceResponse.success(public_url)
    except Exception as exc:
        logger.exception("Error uploading profile photo for user_id=%s", user_id)
        return ServiceResponse.failure(exc)
