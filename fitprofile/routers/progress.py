from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from supabase import AsyncClient

from fitprofile.schemas.user import AuthUser
from fitprofile.services import progress_service
from fitprofile.services.auth_middleware import get_current_user, get_user_client
from fitprofile.services.progress_summary import summarize_daily_workout, summarize_monthly_progress
from fitprofile.utils.response import create_response, handle_exception, raise_for_result

router = APIRouter(prefix="/progress", tags=["Progress"])


@router.get("/daily")
async def daily_progress(
    day: date | None = Query(None),
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        result = await progress_service.get_daily_progress(client, current_user.id, day or date.today())
        raise_for_result(result, "Daily progress unavailable")
        return create_response(
            message="Daily progress fetched",
            data={"sessions": result.data, "stats": summarize_daily_workout(result.data)},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/weekly")
async def weekly_progress(
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        result = await progress_service.get_weekly_progress(client, current_user.id)
        raise_for_result(result, "Weekly progress unavailable")
        return create_response(
            message="Weekly progress fetched",
            data={"sessions": result.data, "count": len(result.data)},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/monthly")
async def monthly_progress(
    year: int | None = Query(None, ge=1970),
    month: int | None = Query(None, ge=1, le=12),
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        now = datetime.now()
        target_year = year or now.year
        target_month = month or now.month
        result = await progress_service.get_monthly_progress(client, current_user.id, target_year, target_month)
        raise_for_result(result, "Monthly progress unavailable")
        return create_response(
            message="Monthly progress fetched",
            data={
                "sessions": result.data,
                "summary": summarize_monthly_progress(result.data, target_year, target_month),
            },
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/exercises/{exercise_id}/history")
async def exercise_history(
    exercise_id: str,
    client: AsyncClient = Depends(get_user_client),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        result = await progress_service.get_exercise_history(client, current_user.id, exercise_id)
        raise_for_result(result, "Exercise history unavailable")
        return create_response(
            message="Exercise history fetched",
            data={"sets": result.data, "count": len(result.data)},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
