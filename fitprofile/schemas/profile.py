from pydantic import BaseModel, Field

from fitprofile.schemas.metrics import UserMetrics
from fitprofile.schemas.progress import ProgressPhoto
from fitprofile.schemas.user import AuthUser


class MetricsUpdate(BaseModel):
    weight: float
    height: float  # centimeters
    body_fat_percentage: float | None = None


class ProfileView(BaseModel):
    profile: AuthUser | None = None
    metrics: UserMetrics | None = None
    progress_photos: list[ProgressPhoto] = Field(default_factory=list)
    loading: bool = False
    loading_photos: bool = False
    uploading_photo: bool = False
    body_fat_percentage: float | None = None
    bmi_category: str | None = None
    avatar_url: str | None = None
