from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from fitprofile.schemas.progress import (
    DailyWorkoutStats,
    MonthlyProgressSummary,
    WeekBucket,
    WorkoutSession,
)

WEEKS_PER_MONTH = 4
_END_OF_DAY = time(23, 59, 59, 999000)


def _aware(value: datetime) -> datetime:
    return value.astimezone()


def session_duration_minutes(session: WorkoutSession) -> int:
    if not session.started_at or not session.finished_at:
        return 0
    elapsed = _aware(session.finished_at) - _aware(session.started_at)
    return round(elapsed.total_seconds() / 60)


def summarize_daily_workout(sessions: Iterable[WorkoutSession]) -> Optional[DailyWorkoutStats]:
    """Stats for the latest session of the day, or None when nothing was logged."""
    sessions = list(sessions)
    if not sessions:
        return None

    workout = sessions[0]
    sets = [item for scheduled in workout.scheduled_exercises for item in scheduled.sets]
    exercise_ids = {scheduled.exercise_id for scheduled in workout.scheduled_exercises}
    total_weight = sum((item.weight_used or 0) * (item.reps or 0) for item in sets)

    return DailyWorkoutStats(
        exercises=len(exercise_ids),
        sets=len(sets),
        total_weight=round(total_weight),
        duration_minutes=session_duration_minutes(workout),
        workout=workout,
    )


def _week_buckets(year: int, month: int) -> List[tuple[datetime, datetime]]:
    last_day = calendar.monthrange(year, month)[1]
    buckets = []
    for index in range(WEEKS_PER_MONTH):
        start_day = date(year, month, 1 + index * 7)
        if index == WEEKS_PER_MONTH - 1:
            end_day = date(year, month, last_day)
        else:
            end_day = start_day + timedelta(days=6)
        buckets.append(
            (
                _aware(datetime.combine(start_day, time.min)),
                _aware(datetime.combine(end_day, _END_OF_DAY)),
            )
        )
    return buckets


def summarize_monthly_progress(
    sessions: Iterable[WorkoutSession],
    year: int,
    month: int,
) -> MonthlyProgressSummary:
    finished = [session for session in sessions if session.finished_at]
    total_minutes = sum(session_duration_minutes(session) for session in finished)

    weeks = []
    for index, (start, end) in enumerate(_week_buckets(year, month)):
        in_week = [session for session in finished if start <= _aware(session.finished_at) <= end]
        weeks.append(
            WeekBucket(
                week_number=index + 1,
                label=f"Week {index + 1}",
                duration_minutes=sum(session_duration_minutes(session) for session in in_week),
                start=start,
                end=end,
                workout_count=len(in_week),
            )
        )

    return MonthlyProgressSummary(
        year=year,
        month=month,
        total_duration_minutes=total_minutes,
        total_hours=total_minutes // 60,
        total_minutes=total_minutes % 60,
        total_workouts=len(finished),
        weeks=weeks,
    )
