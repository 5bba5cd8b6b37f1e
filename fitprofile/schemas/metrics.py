from datetime import datetime

from pydantic import BaseModel, field_validator


class MetricsInput(BaseModel):
    weight: float
    height: float  # centimeters
    body_fat_percentage: float | None = None
    bmi: float | None = None

    @field_validator("weight", "height")
    @classmethod
    def validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class UserMetrics(BaseModel):
    weight: float | None = None
    height: float | None = None  # centimeters
    body_fat_percentage: float | None = None
    bmi: float | None = None
    updated_at: datetime | None = None


class WeightHistoryEntry(BaseModel):
    id: str | int
    user_id: str
    weight: float
    created_at: datetime | None = None
