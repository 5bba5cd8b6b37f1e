import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from supabase import AsyncClient

from fitprofile.schemas.metrics import MetricsInput, UserMetrics
from fitprofile.schemas.profile import ProfileView
from fitprofile.schemas.progress import ProgressPhoto
from fitprofile.schemas.user import AuthUser
from fitprofile.services import progress_service, user_service
from fitprofile.services.auth_service import to_auth_user
from fitprofile.services.measurement_utils import (
    calculate_bmi,
    estimate_body_fat,
    raw_bmi,
    resolve_bmi_category,
)

logger = logging.getLogger(__name__)


class MetricsUpdateError(Exception):
    """Raised by ``update_metrics`` when the store reports a non-exception error."""


class ProfileController:
    """View-model behind the profile screen.

    Holds the signed-in user's profile, metrics and progress photos plus three
    busy flags. Fetches are tagged with a generation number so a slow, superseded
    response never overwrites newer state.
    """

    def __init__(self, client: AsyncClient, user: Any = None):
        self.client = client
        self.user: Optional[AuthUser] = to_auth_user(user) if user else None
        self.profile: Optional[AuthUser] = None
        self.metrics: Optional[UserMetrics] = None
        self.progress_photos: list[ProgressPhoto] = []
        self.loading = False
        self.loading_photos = False
        self.uploading_photo = False
        self._generations = {"metrics": 0, "photos": 0}

    async def set_user(self, user: Any) -> None:
        self.user = to_auth_user(user) if user else None
        if self.user is None:
            return
        await self.refresh()

    async def refresh(self) -> None:
        await asyncio.gather(self.fetch_profile_data(), self.fetch_photos())

    def _next_generation(self, key: str) -> int:
        self._generations[key] += 1
        return self._generations[key]

    def _is_current(self, key: str, generation: int) -> bool:
        return self._generations[key] == generation

    @contextmanager
    def _busy(self, flag: str) -> Iterator[None]:
        setattr(self, flag, True)
        try:
            yield
        finally:
            setattr(self, flag, False)

    async def fetch_profile_data(self) -> None:
        if not self.user:
            return
        user = self.user
        generation = self._next_generation("metrics")
        self.loading = True
        try:
            result = await user_service.get_user_metrics(self.client, user.id)
            if not self._is_current("metrics", generation):
                logger.debug("Discarding stale metrics response generation=%s", generation)
                return
            if not result.ok:
                logger.error("Error fetching profile data for user %s: %s", user.id, result.error)
                return
            self.metrics = result.data
            self.profile = user
        except Exception:
            logger.exception("Error fetching profile data for user %s", user.id)
        finally:
            if self._is_current("metrics", generation):
                self.loading = False

    async def fetch_photos(self) -> None:
        if not self.user:
            return
        user = self.user
        generation = self._next_generation("photos")
        self.loading_photos = True
        try:
            result = await progress_service.get_progress_photos(self.client, user.id)
            if not self._is_current("photos", generation):
                logger.debug("Discarding stale photos response generation=%s", generation)
                return
            if not result.ok:
                logger.error("Error fetching photos for user %s: %s", user.id, result.error)
                return
            self.progress_photos = result.data or []
        except Exception:
            logger.exception("Error fetching photos for user %s", user.id)
        finally:
            if self._is_current("photos", generation):
                self.loading_photos = False

    async def update_metrics(
        self,
        weight: float,
        height: float,
        body_fat_percentage: Optional[float] = None,
    ) -> Optional[UserMetrics]:
        """Save new metrics. Store failures are raised so the caller can show them."""
        if not self.user:
            return None

        bmi = calculate_bmi(weight, height)
        if body_fat_percentage is None and bmi is not None:
            body_fat_percentage = estimate_body_fat(bmi)

        metrics = MetricsInput(
            weight=weight,
            height=height,
            body_fat_percentage=body_fat_percentage,
            bmi=bmi,
        )
        result = await user_service.save_user_metrics(self.client, self.user.id, metrics)
        if not result.ok:
            if isinstance(result.error, Exception):
                raise result.error
            raise MetricsUpdateError(str(result.error))

        # Any metrics fetch still in flight is now older than this write.
        self._next_generation("metrics")
        self.loading = False
        self.metrics = result.data
        return result.data

    async def update_profile_photo(self, uri: str) -> Optional[str]:
        if not self.user:
            return None
        with self._busy("uploading_photo"):
            result = await user_service.upload_profile_photo(self.client, self.user.id, uri)
        if not result.ok:
            logger.error("Error updating profile photo for user %s: %s", self.user.id, result.error)
            return None
        self.user.user_metadata["custom_avatar_url"] = result.data
        return result.data

    async def add_progress_photo(self, uri: str) -> Optional[ProgressPhoto]:
        if not self.user:
            return None
        with self._busy("uploading_photo"):
            result = await progress_service.upload_progress_photo(
                self.client,
                self.user.id,
                uri,
                datetime.now(timezone.utc),
                "",
            )
            if not result.ok:
                logger.error("Error adding progress photo for user %s: %s", self.user.id, result.error)
                return None
            await self.fetch_photos()
        return result.data

    @property
    def body_fat_percentage(self) -> Optional[float]:
        if not self.metrics or not self.metrics.weight or not self.metrics.height:
            return None
        if self.metrics.body_fat_percentage:
            return self.metrics.body_fat_percentage
        bmi = raw_bmi(self.metrics.weight, self.metrics.height)
        return estimate_body_fat(bmi) if bmi is not None else None

    @property
    def bmi_category(self) -> Optional[str]:
        if not self.metrics:
            return None
        bmi = self.metrics.bmi
        if bmi is None:
            bmi = calculate_bmi(self.metrics.weight, self.metrics.height)
        return resolve_bmi_category(bmi)

    @property
    def avatar_url(self) -> Optional[str]:
        if not self.user:
            return None
        metadata = self.user.user_metadata
        return metadata.get("custom_avatar_url") or metadata.get("avatar_url")

    def view(self) -> ProfileView:
        return ProfileView(
            profile=self.profile,
            metrics=self.metrics,
            progress_photos=self.progress_photos,
            loading=self.loading,
            loading_photos=self.loading_photos,
            uploading_photo=self.uploading_photo,
            body_fat_percentage=self.body_fat_percentage,
            bmi_category=self.bmi_category,
            avatar_url=self.avatar_url,
        )
