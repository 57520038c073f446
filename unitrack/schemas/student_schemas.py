from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from unitrack.schemas.camel_base_model import ApiModel


class Delimiter(str, Enum):
    """Field separators accepted in student import files"""

    COMMA = ","
    SEMICOLON = ";"
    TAB = "\t"
    PIPE = "|"


class StudentRecord(BaseModel):
    """One enrollee candidate, already normalised"""

    model_config = ConfigDict(frozen=True)

    matric_no: str = Field(..., min_length=1, description="Upper-cased matric number")
    name: str = Field(..., min_length=1, description="Trimmed full name")
    email: str = Field(..., min_length=1, description="Lower-cased email address")

    def to_payload(self, level: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = self.model_dump()
        if level is not None:
            payload["level"] = level
        return payload


class RejectedRow(BaseModel):
    """A data line that could not be turned into a StudentRecord"""

    model_config = ConfigDict(frozen=True)

    raw_line: str
    reason: str
    line_number: Optional[int] = None


class ImportOutcome(BaseModel):
    """Result of parsing one import file, before the upload is confirmed"""

    total_rows_parsed: int = Field(..., ge=0)
    valid_records: List[StudentRecord] = Field(default_factory=list)
    rejected_rows: List[RejectedRow] = Field(default_factory=list)
    delimiter: Delimiter = Delimiter.COMMA
    headers: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_row_accounting(self):
        if len(self.valid_records) + len(self.rejected_rows) != self.total_rows_parsed:
            raise ValueError(
                "valid_records and rejected_rows must add up to total_rows_parsed"
            )
        return self

    @property
    def valid_count(self) -> int:
        return len(self.valid_records)

    def confirmation_prompt(self) -> str:
        count = self.valid_count
        return (
            f"Found {count} valid student{'' if count == 1 else 's'}. "
            "Do you want to proceed?"
        )


class SubmitReport(BaseModel):
    """What the enrolment endpoint answered for a confirmed bulk upload"""

    submitted: int
    response: Dict[str, Any] = Field(default_factory=dict)

    @property
    def summary(self) -> Dict[str, Any]:
        return self.response.get("summary") or {}

    @property
    def successful(self) -> int:
        return int(self.summary.get("successful", self.submitted))

    @property
    def skipped(self) -> int:
        return int(self.summary.get("skipped", 0))

    @property
    def failed(self) -> int:
        return int(self.summary.get("failed", 0))

    @property
    def results(self) -> Dict[str, Any]:
        return self.response.get("results") or {}


class Student(ApiModel):
    """An enrolled student as returned by the course endpoints"""

    id: str = Field(..., alias="_id")
    matric_no: str
    name: str
    email: str
    phone: Optional[str] = None
    level: Optional[int] = None
    course_id: Optional[str] = None


class SkippedStudent(ApiModel):
    matric_no: Optional[str] = None
    name: Optional[str] = None
    reason: Optional[str] = None


class CopySummary(ApiModel):
    total_processed: int = 0
    added: int = 0
    skipped: int = 0


class CopyStudentsResult(ApiModel):
    """Summary of copying every enrollee of one course into another"""

    message: str = ""
    added_students: List[Dict[str, Any]] = Field(
        default_factory=list, alias="addedStudents"
    )
    skipped_students: List[SkippedStudent] = Field(
        default_factory=list, alias="skippedStudents"
    )
    summary: CopySummary = Field(default_factory=CopySummary)

    @classmethod
    def empty(cls) -> "CopyStudentsResult":
        return cls(message="No students to copy from this course")


class CourseRef(ApiModel):
    id: Optional[str] = None
    title: Optional[str] = None
    course_code: Optional[str] = None


class BulkRemoveSummary(ApiModel):
    total_processed: int = 0
    successful: int = 0
    not_found: int = 0
    failed: int = 0
    course: Optional[CourseRef] = None


class BulkRemoveResults(ApiModel):
    successful: List[Dict[str, Any]] = Field(default_factory=list)
    not_found: List[Dict[str, Any]] = Field(default_factory=list)
    failed: List[Dict[str, Any]] = Field(default_factory=list)

    def successful_ids(self) -> List[str]:
        return [str(item.get("student_id")) for item in self.successful if item.get("student_id")]


class BulkRemoveResult(ApiModel):
    """Per-student outcome of removing several students at once"""

    message: str = ""
    summary: BulkRemoveSummary = Field(default_factory=BulkRemoveSummary)
    results: BulkRemoveResults = Field(default_factory=BulkRemoveResults)


class RemoveAllSummary(ApiModel):
    total_students_removed: int = 0
    course: Optional[CourseRef] = None
    deleted_students: List[Dict[str, Any]] = Field(default_factory=list)
    attendance_records_cleaned: bool = False


class RemoveAllResult(ApiModel):
    message: str = ""
    summary: RemoveAllSummary = Field(default_factory=RemoveAllSummary)
