from typing import Optional

from pydantic import Field, field_validator

from unitrack.schemas.camel_base_model import ApiModel, CamelCaseBaseModel


class User(CamelCaseBaseModel):
    id: str
    name: str
    email: str
    role: str = "teacher"
    is_verified: bool = False


class AuthBlob(ApiModel):
    """What is persisted under the `auth-storage` key"""

    user: Optional[User] = None
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user and self.token)


class RegisterTeacherRequest(ApiModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    role: str = "teacher"

    @field_validator("name", mode="before")
    def strip_name(cls, v: str) -> str:
        return str(v).strip()

    @field_validator("email", mode="before")
    def normalize_email(cls, v: str) -> str:
        return str(v).strip().lower()
