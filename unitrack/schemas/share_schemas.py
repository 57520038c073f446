from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import Field

from unitrack.schemas.camel_base_model import ApiModel


class ShareRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ShareAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class Teacher(ApiModel):
    id: str = Field(..., alias="_id")
    name: str = ""
    email: str = ""


class SharedCourse(ApiModel):
    id: str = Field(..., alias="_id")
    course_code: str = ""
    title: str = ""
    level: Optional[int] = None
    created_at: Optional[datetime] = None
    student_count: int = 0
    teacher: Optional[Teacher] = None


class SharedStudent(ApiModel):
    id: str = Field(..., alias="_id")
    matric_no: str
    name: str
    email: str
    added_by: Optional[Teacher] = None
    added_at: Optional[datetime] = None


class ShareRequest(ApiModel):
    id: str = Field(..., alias="_id")
    requester_id: Optional[Union[Teacher, str]] = None
    target_teacher_id: Optional[Union[Teacher, str]] = None
    course_id: Optional[Union[SharedCourse, str]] = None
    target_course_id: Optional[Union[SharedCourse, str]] = None
    student_ids: List[Union[SharedStudent, str]] = Field(default_factory=list)
    message: str = ""
    status: ShareRequestStatus = ShareRequestStatus.PENDING
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    response_message: Optional[str] = None


class ShareRequestCreate(ApiModel):
    target_teacher_id: str
    target_course_id: str
    my_course_id: str
    student_ids: List[str] = Field(..., min_length=1)
    message: str = ""


class RequestsPagination(ApiModel):
    current_page: int = 1
    total_pages: int = 0
    total_requests: int = 0
    per_page: int = 0


class ShareSummary(ApiModel):
    pending_incoming: int = 0
    pending_outgoing: int = 0
    total_incoming: int = 0
    total_outgoing: int = 0
