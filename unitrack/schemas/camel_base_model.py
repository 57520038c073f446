import uuid
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """
    Base model for backend payloads.

    The backend mostly speaks snake_case and identifies documents with `_id`.
    Unknown keys are kept (`extra="allow"`) because response shapes drift
    between endpoints, and `model_dump()` hands them back untouched.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
    )

    @field_serializer("*")
    def serialize_any(self, value):
        """Global serializer so dumps are always JSON-ready"""

        if isinstance(value, uuid.UUID):
            return str(value)

        if isinstance(value, Enum):
            return value.value

        # Handle datetime objects (must come before date check)
        if isinstance(value, datetime):
            return value.isoformat()

        if isinstance(value, date):
            return value.isoformat()

        if isinstance(value, (list, tuple)):
            return [self.serialize_any(item) for item in value]

        if isinstance(value, dict):
            return {key: self.serialize_any(val) for key, val in value.items()}

        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True)

        return value


class CamelCaseBaseModel(ApiModel):
    """
    Base model with camelCase field aliases.

    A handful of endpoints (auth tokens, attendance marking, profile update)
    expect camelCase keys:

    - Input: camelCase keys from the backend are converted to snake_case for validation.
    - Internal: snake_case fields are used throughout the Python codebase.
    - Output: call `model_dump(by_alias=True)` to serialize fields back to camelCase
    for request bodies.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )
