from datetime import datetime
from typing import Optional

from pydantic import model_validator

from unitrack.schemas.camel_base_model import ApiModel, CamelCaseBaseModel


class ProfileData(ApiModel):
    id: str
    name: str
    email: str
    role: str = "teacher"
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    email_verified: bool = False


class UpdateProfileRequest(CamelCaseBaseModel):
    name: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None

    @model_validator(mode="after")
    def check_passwords(self):
        if self.new_password is not None:
            if not self.current_password:
                raise ValueError("Current password is required to set a new password")
            if self.confirm_password is not None and self.confirm_password != self.new_password:
                raise ValueError("New passwords do not match")
        return self
