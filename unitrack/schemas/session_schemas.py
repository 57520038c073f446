from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator

from unitrack.schemas.camel_base_model import ApiModel, CamelCaseBaseModel


class AttendanceStatus(str, Enum):
    """Statuses a lecturer may set by hand"""

    PRESENT = "present"
    ABSENT = "absent"


class SessionStatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    EXPIRED = "expired"
    ENDED = "ended"


class SessionCourseRef(ApiModel):
    id: str = Field(..., alias="_id")
    course_code: Optional[str] = None
    title: Optional[str] = None
    level: Optional[int] = None


class SessionStats(ApiModel):
    total_attendance: int = 0
    unique_students: int = 0
    is_currently_active: bool = False
    duration_minutes: int = 0
    time_remaining: int = 0


class Session(ApiModel):
    """A geofenced attendance window. Geofence checks happen on the server."""

    id: str = Field(..., alias="_id")
    course_id: Optional[Union[SessionCourseRef, str]] = None
    teacher_id: Optional[str] = None
    session_code: Optional[str] = None
    start_ts: Optional[datetime] = None
    expiry_ts: Optional[datetime] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_m: Optional[float] = None
    is_active: Optional[bool] = None
    status: Optional[str] = None
    stats: Optional[SessionStats] = None


class StartSessionRequest(ApiModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    radius_m: float = Field(..., gt=0)
    duration_minutes: int = Field(..., gt=0)


class SessionPagination(ApiModel):
    current_page: int = 1
    total_pages: int = 0
    total_items: int = 0
    items_per_page: int = 0


class SessionSummary(ApiModel):
    total_sessions: int = 0
    active_sessions: int = 0
    expired_sessions: int = 0


class AttendanceMark(CamelCaseBaseModel):
    """One manual attendance decision, sent as {studentId, status, reason}"""

    student_id: str
    status: AttendanceStatus
    reason: str

    @field_validator("reason")
    def reason_long_enough(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 5:
            raise ValueError("Reason must be at least 5 characters long")
        return v


class BulkMarkReport(ApiModel):
    """
    Per-student outcome of a bulk attendance mark.

    Partial failures are kept as the server reported them: `summary` holds the
    counts and `results` the successful/failed rows with their reasons.
    """

    message: str = ""
    summary: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, Any] = Field(default_factory=dict)

    @property
    def successful(self) -> int:
        return int(self.summary.get("successful", 0))

    @property
    def failed(self) -> int:
        return int(self.summary.get("failed", 0))

    @property
    def failures(self) -> List[Dict[str, Any]]:
        return list(self.results.get("failed") or [])
