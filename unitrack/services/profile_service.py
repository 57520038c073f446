from typing import Optional

from unitrack.schemas.profile_schemas import ProfileData, UpdateProfileRequest
from unitrack.services.base_service import BaseStoreService, parse_response, validate_input
from unitrack.services.response_classifiers import has_success_flag
from unitrack.utils.logging import get_logger

logger = get_logger()


class ProfileService(BaseStoreService):
    """Signed-in teacher's profile: display name and password changes."""

    def __init__(self, client, store=None, guard=None):
        super().__init__(client, store, guard)
        self.profile: Optional[ProfileData] = None
        self.update_success = False

    async def get_profile(self) -> ProfileData:
        async with self._tracked("Failed to load profile"):
            response = await self.client.call(
                "/auth/profile",
                success=lambda r: bool(r.get("data")),
                failure_message="Failed to load profile",
            )
            self.profile = parse_response(ProfileData, response["data"])
            return self.profile

    async def update_profile(
        self,
        name: Optional[str] = None,
        current_password: Optional[str] = None,
        new_password: Optional[str] = None,
        confirm_password: Optional[str] = None,
    ) -> Optional[ProfileData]:
        request = validate_input(
            UpdateProfileRequest,
            name=name.strip() if name else None,
            current_password=current_password,
            new_password=new_password,
            confirm_password=confirm_password,
        )
        self.update_success = False
        async with self.guard("update-profile"), self._tracked("Failed to update profile"):
            response = await self.client.call(
                "/auth/profile",
                "PUT",
                body=request.model_dump(by_alias=True, exclude_none=True),
                success=lambda r: has_success_flag(r) or bool(r.get("data")),
                failure_message="Failed to update profile",
            )
            if response.get("data"):
                self.profile = parse_response(ProfileData, response["data"])
            self.update_success = True
        logger.info("Profile updated")
        return self.profile

    def clear_success(self) -> None:
        self.update_success = False
