import asyncio
import calendar
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from supabase import AsyncClient

from fitprofile.config import settings
from fitprofile.schemas.progress import (
    ExerciseSet,
    ProgressPhoto,
    ProgressPhotoUpdate,
    WorkoutSession,
)
from fitprofile.schemas.result import ServiceResponse
from fitprofile.services.storage_service import (
    build_object_path,
    create_signed_url,
    get_public_url,
    object_path_from_url,
    read_image_bytes,
    remove_objects,
    upload_image,
)

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "workout_sessions"
PHOTOS_TABLE = "progress_photos"
SETS_TABLE = "sets"

END_OF_DAY = time(23, 59, 59, 999000)

DAILY_SESSION_SELECT = """
    *,
    weekly_routine:weekly_routines!inner(user_id),
    scheduled_exercises (
        *,
        exercise:exercises (*),
        sets (*)
    )
"""

PERIOD_SESSION_SELECT = """
    id,
    started_at,
    finished_at,
    day_date,
    weekly_routine:weekly_routines!inner(user_id)
"""

EXERCISE_HISTORY_SELECT = """
    *,
    scheduled_exercise:scheduled_exercises!inner (
        id,
        exercise_id,
        workout_session:workout_sessions!inner (
            finished_at,
            weekly_routine:weekly_routines!inner (
                user_id
            )
        )
    )
"""


def _local(value: datetime) -> datetime:
    return value.astimezone()


def day_window(day: date) -> tuple[datetime, datetime]:
    """Local start and last millisecond of ``day``."""
    if isinstance(day, datetime):
        day = day.date()
    return (
        _local(datetime.combine(day, time.min)),
        _local(datetime.combine(day, END_OF_DAY)),
    )


def week_start(now: Optional[datetime] = None) -> datetime:
    """Local midnight of the most recent Sunday."""
    today = (now or datetime.now()).date()
    sunday = today - timedelta(days=(today.weekday() + 1) % 7)
    return _local(datetime.combine(sunday, time.min))


def month_window(
    year: Optional[int] = None,
    month: Optional[int] = None,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """First instant through last millisecond of ``month`` (1-12), defaulting to ``now``'s."""
    now = now or datetime.now()
    target_year = year if year is not None else now.year
    target_month = month if month is not None else now.month
    if not 1 <= target_month <= 12:
        raise ValueError("month must be between 1 and 12")
    last_day = calendar.monthrange(target_year, target_month)[1]
    return (
        _local(datetime.combine(date(target_year, target_month, 1), time.min)),
        _local(datetime.combine(date(target_year, target_month, last_day), END_OF_DAY)),
    )


def _sessions(rows: Optional[list]) -> list[WorkoutSession]:
    return [WorkoutSession.model_validate(row) for row in rows or []]


async def get_daily_progress(
    client: AsyncClient,
    user_id: str,
    day: date,
) -> ServiceResponse[list[WorkoutSession]]:
    try:
        start, end = day_window(day)
        response = await (
            client.table(SESSIONS_TABLE)
            .select(DAILY_SESSION_SELECT)
            .eq("weekly_routine.user_id", user_id)
            .gte("finished_at", start.isoformat())
            .lte("finished_at", end.isoformat())
            .order("finished_at", desc=True)
            .execute()
        )
        return ServiceResponse.success(_sessions(response.data))
    except Exception as exc:
        logger.exception("Error fetching daily progress for user_id=%s", user_id)
        return ServiceResponse.failure(exc)


async def get_weekly_progress(
    client: AsyncClient,
    user_id: str,
    now: Optional[datetime] = None,
) -> ServiceResponse[list[WorkoutSession]]:
    try:
        start = week_start(now)
        response = await (
            client.table(SESSIONS_TABLE)
            .select(PERIOD_SESSION_SELECT)
            .eq("weekly_routine.user_id", user_id)
            .gte("finished_at", start.isoformat())
            .not_.is_("finished_at", "null")
            .execute()
        )
        return ServiceResponse.success(_sessions(response.data))
    except Exception as exc:
        logger.exception("Error fetching weekly progress for user_id=%s", user_id)
        return ServiceResponse.failure(exc)


async def get_monthly_progress(
    client: AsyncClient,
    user_id: str,
    year: Optional[int] = None,
    month: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ServiceResponse[list[WorkoutSession]]:
    try:
        start, end = month_window(year, month, now)
        logger.debug("Monthly window %s -> %s", start, end)
        response = await (
            client.table(SESSIONS_TABLE)
            .select(PERIOD_SESSION_SELECT)
            .eq("weekly_routine.user_id", user_id)
            .gte("finished_at", start.isoformat())
            .lte("finished_at", end.isoformat())
            .not_.is_("finished_at", "null")
            .execute()
        )
        return ServiceResponse.success(_sessions(response.data))
    except Exception as exc:
        logger.exception("Error fetching monthly progress for user_id=%s", user_id)
        return ServiceResponse.failure(exc)


async def _try_signed_url(client: AsyncClient, path: str) -> Optional[str]:
    try:
        return await create_signed_url(client, settings.PROGRESS_PHOTO_BUCKET, path)
    except Exception:
        logger.warning("Could not sign progress photo %s", path, exc_info=True)
        return None


async def _with_signed_url(client: AsyncClient, photo: dict) -> dict:
    path = object_path_from_url(photo.get("photo_url") or "", settings.PROGRESS_PHOTO_BUCKET)
    if not path:
        return photo
    signed_url = await _try_signed_url(client, path)
    if not signed_url:
        return photo
    return {**photo, "photo_url": signed_url}


async def get_progress_photos(client: AsyncClient, user_id: str) -> ServiceResponse[list[ProgressPhoto]]:
    try:
        response = await (
            client.table(PHOTOS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        rows = await asyncio.gather(*(_with_signed_url(client, row) for row in response.data or []))
        return ServiceResponse.success([ProgressPhoto.model_validate(row) for row in rows])
    except Exception as exc:
        logger.exception("Error fetching progress photos for user_id=%s", user_id)
        return ServiceResponse.failure(exc)


async def upload_progress_photo(
    client: AsyncClient,
    user_id: str,
    photo_uri: str,
    taken_at: Optional[datetime] = None,
    comment: str = "",
) -> ServiceResponse[ProgressPhoto]:
    """Store the photo and return it with a short-lived signed URL.

    The persisted row references the public URL; only the returned model
    carries the signed one.
    """
    bucket = settings.PROGRESS_PHOTO_BUCKET
    try:
        data = await read_image_bytes(photo_uri)
        path = await upload_image(client, bucket, build_object_path(user_id, photo_uri), data)
        public_url = await get_public_url(client, bucket, path)

        response = await (
            client.table(PHOTOS_TABLE)
            .insert(
                {
                    "user_id": user_id,
                    "photo_url": public_url,
                    "comment": comment or "",
                    "created_at": (taken_at or datetime.now(timezone.utc)).isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise LookupError(f"No {PHOTOS_TABLE} row returned")
        photo = ProgressPhoto.model_validate(response.data[0])

        signed_url = await _try_signed_url(client, path)
        if signed_url:
            photo.photo_url = signed_url

        logger.info("User %s uploaded progress photo id=%s", user_id, photo.id)
        return ServiceResponse.success(photo)
    except Exception as exc:
        logger.exception("Error uploading progress photo for user_id=%s", user_id)
        return ServiceResponse.failure(exc)


async def update_progress_photo(
    client: AsyncClient,
    photo_id: str,
    updates: ProgressPhotoUpdate,
    user_id: Optional[str] = None,
) -> ServiceResponse[ProgressPhoto]:
    """Apply a partial update. With ``user_id``, rows owned by someone else count as missing."""
    try:
        payload = updates.model_dump(mode="json", exclude_unset=True)
        if not payload:
            raise ValueError("No fields to update")
        query = client.table(PHOTOS_TABLE).update(payload).eq("id", photo_id)
        if user_id is not None:
            query = query.eq("user_id", user_id)
        response = await query.execute()
        if not response.data:
            raise LookupError(f"Progress photo {photo_id} not found")
        return ServiceResponse.success(ProgressPhoto.model_validate(response.data[0]))
    except Exception as exc:
        logger.exception("Error updating progress photo id=%s", photo_id)
        return ServiceResponse.failure(exc)


async def delete_progress_photos(
    client: AsyncClient,
    photo_ids: list,
    user_id: Optional[str] = None,
) -> ServiceResponse[bool]:
    """Delete photo rows and their stored objects.

    With ``user_id``, nothing is deleted unless every id belongs to that user.
    Storage removal runs first and its failure is only logged. Objects removed
    before a failed row delete are not restored.
    """
    bucket = settings.PROGRESS_PHOTO_BUCKET
    try:
        query = client.table(PHOTOS_TABLE).select("id, photo_url").in_("id", photo_ids)
        if user_id is not None:
            query = query.eq("user_id", user_id)
        response = await query.execute()
        rows = response.data or []

        if user_id is not None:
            found = {str(row["id"]) for row in rows}
            missing = [photo_id for photo_id in photo_ids if str(photo_id) not in found]
            if missing:
                raise LookupError(f"Progress photos not found: {', '.join(map(str, missing))}")

        paths = [
            path
            for path in (object_path_from_url(row.get("photo_url") or "", bucket) for row in rows)
            if path
        ]

        if paths:
            try:
                await remove_objects(client, bucket, paths)
            except Exception:
                logger.warning("Error deleting progress photos from storage: %s", paths, exc_info=True)

        delete_query = client.table(PHOTOS_TABLE).delete().in_("id", photo_ids)
        if user_id is not None:
            delete_query = delete_query.eq("user_id", user_id)
        await delete_query.execute()
        logger.info("Deleted %s progress photos", len(photo_ids))
        return ServiceResponse.success(True)
    except Exception as exc:
        logger.exception("Error deleting progress photos %s", photo_ids)
        return ServiceResponse.failure(exc)


async def get_exercise_history(
    client: AsyncClient,
    user_id: str,
    exercise_id: str,
) -> ServiceResponse[list[ExerciseSet]]:
    try:
        response = await (
            client.table(SETS_TABLE)
            .select(EXERCISE_HISTORY_SELECT)
            .eq("scheduled_exercise.exercise_id", exercise_id)
            .eq("scheduled_exercise.workout_session.weekly_routine.user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return ServiceResponse.success([ExerciseSet.model_validate(row) for row in response.data or []])
    except Exception as exc:
        logger.exception("Error fetching exercise history for user_id=%s exercise_id=%s", user_id, exercise_id)
        return ServiceResponse.failure(exc)
