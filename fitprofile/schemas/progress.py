from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class ProgressPhoto(BaseModel):
    id: str | int
    user_id: str
    photo_url: str | None = None
    comment: str | None = None
    created_at: datetime


class ProgressPhotoUpdate(BaseModel):
    comment: str | None = None
    created_at: datetime | None = None


class ProgressPhotoDelete(BaseModel):
    photo_ids: list[str | int] = Field(min_length=1)


class ExerciseSet(BaseModel):
    id: str | int
    set_number: int | None = None
    reps: int | None = None
    weight_used: float | None = None
    rpe: float | None = None
    created_at: datetime | None = None
    scheduled_exercise: dict[str, Any] | None = None

    model_config = {"extra": "allow"}


class ScheduledExercise(BaseModel):
    id: str | int
    exercise_id: str | int | None = None
    exercise: dict[str, Any] | None = None
    sets: list[ExerciseSet] = Field(default_factory=list)

    model_config = {"extra": "allow"}


class WorkoutSession(BaseModel):
    id: str | int
    started_at: datetime | None = None
    finished_at: datetime | None = None
    day_date: date | None = None
    scheduled_exercises: list[ScheduledExercise] = Field(default_factory=list)

    model_config = {"extra": "allow"}


class DailyWorkoutStats(BaseModel):
    exercises: int
    sets: int
    total_weight: int
    duration_minutes: int
    workout: WorkoutSession


class WeekBucket(BaseModel):
    week_number: int
    label: str
    duration_minutes: int
    start: datetime
    end: datetime
    workout_count: int


class MonthlyProgressSummary(BaseModel):
    year: int
    month: int
    total_duration_minutes: int
    total_hours: int
    total_minutes: int
    total_workouts: int
    weeks: list[WeekBucket]
