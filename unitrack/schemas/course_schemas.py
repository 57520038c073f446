from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator

from unitrack.schemas.camel_base_model import ApiModel


class TeacherRef(ApiModel):
    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    email: Optional[str] = None


class ActiveSessionRef(ApiModel):
    id: str = Field(..., alias="_id")
    session_code: Optional[str] = None
    start_ts: Optional[datetime] = None
    expiry_ts: Optional[datetime] = None


class Course(ApiModel):
    id: str = Field(..., alias="_id")
    teacher_id: Optional[Union[TeacherRef, str]] = None
    course_code: str
    title: str
    level: int
    student_count: int = 0
    active_sessions_count: int = 0
    has_active_session: bool = False
    active_sessions: List[ActiveSessionRef] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @field_validator("student_count", "active_sessions_count", mode="before")
    def none_counts_as_zero(cls, v):
        return v or 0


class CourseCreate(ApiModel):
    course_code: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    level: int = Field(..., gt=0)

    @field_validator("course_code", mode="before")
    def format_course_code(cls, v: str) -> str:
        # "csc 301" -> "CSC 301"
        return " ".join(str(v).split()).upper()

    @field_validator("title", mode="before")
    def strip_title(cls, v: str) -> str:
        return str(v).strip()


class CourseUpdate(ApiModel):
    title: Optional[str] = None
    level: Optional[int] = Field(default=None, gt=0)


class CourseActivity(ApiModel):
    sessions_this_week: int = 0
    sessions_this_month: int = 0


class AttendanceCounts(ApiModel):
    present: int = 0
    absent: int = 0
    rejected: int = 0
    total_submissions: int = 0


class CourseStats(ApiModel):
    total_sessions: int = 0
    active_sessions: int = 0
    total_students: int = 0
    total_attendance_records: int = 0
    present_count: int = 0
    absent_count: int = 0
    rejected_count: int = 0
    average_attendance_rate: float = 0
    last_session: str = ""
    course_activity: CourseActivity = Field(default_factory=CourseActivity)
    attendance_counts: AttendanceCounts = Field(default_factory=AttendanceCounts)

    @classmethod
    def from_statistics(cls, statistics: Dict[str, Any]) -> "CourseStats":
        """Fill the defaults the course detail endpoint leaves out"""
        data = {key: value for key, value in statistics.items() if value is not None}
        stats = cls.model_validate(data)
        stats.attendance_counts = AttendanceCounts(
            present=stats.present_count,
            absent=stats.absent_count,
            rejected=stats.rejected_count,
            total_submissions=stats.total_attendance_records,
        )
        return stats


LEVEL_NAMES = {
    100: "1st Year",
    200: "2nd Year",
    300: "3rd Year",
    400: "4th Year",
    500: "5th Year",
    600: "6th Year",
}


def format_level(level: int) -> str:
    return LEVEL_NAMES.get(level, f"Level {level}")
