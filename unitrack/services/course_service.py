from typing import Any, Dict, List, Optional, Sequence, Union

from unitrack.importers.pipeline import BulkImportPipeline
from unitrack.schemas.course_schemas import Course, CourseCreate, CourseStats, CourseUpdate
from unitrack.schemas.course_schemas import format_level as _format_level
from unitrack.schemas.response_schemas import ServerPagination
from unitrack.schemas.session_schemas import Session, StartSessionRequest
from unitrack.schemas.student_schemas import (
    BulkRemoveResult,
    CopyStudentsResult,
    ImportOutcome,
    RemoveAllResult,
    Student,
    StudentRecord,
    SubmitReport,
)
from unitrack.services.auth_service import validate_email
from unitrack.services.base_service import (
    BaseStoreService,
    parse_many,
    parse_response,
    validate_input,
)
from unitrack.services.pagination import PaginatedCollectionCache
from unitrack.services.remote_client import error_for_status
from unitrack.services.response_classifiers import (
    is_bulk_operation_success,
    is_course_success,
    is_remove_all_success,
)
from unitrack.storage.persisted_state import COURSE_STORAGE_KEY
from unitrack.utils.errors import ValidationError
from unitrack.utils.logging import get_logger

logger = get_logger()

NO_STUDENTS_TO_COPY = "No students found to copy"


def _listed(value: Any, key: str) -> List[Any]:
    """The detail endpoint returns either a bare list or `{<key>: [...], ...counts}`."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return value.get(key) or []
    return []


def _require_confirmation(confirmed: bool, action: str) -> None:
    if not confirmed:
        raise ValidationError(
            f"Please confirm before you {action}", "IMPORT_NOT_CONFIRMED"
        )


class CourseService(BaseStoreService):
    """
    Courses, their enrolled students, sessions and statistics.

    The course list is fetched whole and paged locally through a
    PaginatedCollectionCache. Its two aggregates are the total enrolment and
    the number of active sessions across every course.
    """

    storage_key = COURSE_STORAGE_KEY

    def __init__(
        self,
        client,
        store=None,
        guard=None,
        courses_per_page: int = 8,
        fetch_limit: int = 1000,
        students_page_size: int = 20,
        sessions_page_size: int = 20,
        pipeline: Optional[BulkImportPipeline] = None,
    ):
        super().__init__(client, store, guard)
        self.fetch_limit = fetch_limit
        self.students_page_size = students_page_size
        self.sessions_page_size = sessions_page_size
        self.pipeline = pipeline or BulkImportPipeline()
        self.cache: PaginatedCollectionCache[Course] = PaginatedCollectionCache(
            page_size=courses_per_page,
            aggregate_fields=("student_count", "active_sessions_count"),
        )
        self.current_course: Optional[Course] = None
        self.students: List[Student] = []
        self.sessions: List[Session] = []
        self.current_session: Optional[Session] = None
        self.stats: Optional[CourseStats] = None
        self.pagination: Optional[ServerPagination] = None
        self._requested_course_id: Optional[str] = None

    # Cached course list

    @property
    def all_courses(self) -> List[Course]:
        return self.cache.items

    @property
    def current_page(self) -> int:
        return self.cache.current_page

    @property
    def total_students(self) -> int:
        return self.cache.aggregates().sum_a

    @property
    def total_active_sessions(self) -> int:
        return self.cache.aggregates().sum_b

    def set_current_page(self, page: int) -> List[Course]:
        self.cache.set_page(page)
        return self.cache.visible()

    def displayed_courses(self) -> List[Course]:
        return self.cache.visible()

    def total_pages(self) -> int:
        return self.cache.total_pages

    def persisted_fields(self) -> Dict[str, Any]:
        return {
            "all_courses": [c.model_dump(by_alias=True) for c in self.cache.items],
            "current_course": (
                self.current_course.model_dump(by_alias=True) if self.current_course else None
            ),
            "current_page": self.cache.current_page,
            "courses_per_page": self.cache.page_size,
            "total_students": self.total_students,
            "total_active_sessions": self.total_active_sessions,
        }

    async def hydrate(self) -> None:
        """Restore the last course list so it can render before the refetch."""
        state = await self.load_persisted()
        if not state:
            return
        courses = [Course.model_validate(c) for c in state.get("all_courses") or []]
        self.cache.replace(courses)
        self.cache.set_page(int(state.get("current_page") or 1))
        current = state.get("current_course")
        self.current_course = Course.model_validate(current) if current else None

    # Courses

    async def get_all_courses(self, preserve_page: bool = False) -> List[Course]:
        """
        Refetch every course and rebuild the local pages.

        A user-driven reload starts back at page 1. Background refreshes after a
        mutation pass `preserve_page=True`; the page is clamped if it vanished.
        """
        async with self._tracked("Failed to fetch courses"):
            response = await self.client.call(
                "/courses",
                params={"limit": self.fetch_limit},
                success=is_course_success,
                failure_message="Failed to fetch courses",
            )
            courses = parse_many(Course, response.get("courses"))
            self.cache.replace(courses, preserve_page=preserve_page)
            self.pagination = ServerPagination(
                current_page=self.cache.current_page,
                total_pages=self.cache.total_pages,
                total_courses=self.cache.total_items,
                has_next=self.cache.has_next,
                has_prev=self.cache.has_prev,
            )
            await self.persist()
            return self.cache.visible()

    async def create_course(self, course_code: str, title: str, level: int) -> Optional[Course]:
        request = validate_input(CourseCreate, course_code=course_code, title=title, level=level)
        async with self.guard("create-course"), self._tracked("Failed to create course"):
            response = await self.client.call(
                "/courses",
                "POST",
                body=request.model_dump(),
                success=is_course_success,
                failure_message="Failed to create course",
            )
        logger.info(f"Created course {request.course_code}")
        await self.get_all_courses(preserve_page=True)
        course = response.get("course")
        return parse_response(Course, course) if isinstance(course, dict) else None

    async def get_course(self, course_id: str) -> Optional[Course]:
        """
        Load one course with its students, recent sessions and statistics.

        When another course was requested while this one was in flight the
        response is dropped and the newer request wins.
        """
        self._requested_course_id = course_id
        async with self._tracked("Failed to fetch course"):
            response = await self.client.call(
                f"/courses/{course_id}",
                success=is_course_success,
                failure_message="Failed to fetch course",
            )
            if self._requested_course_id != course_id:
                logger.debug(f"Discarding stale details for course {course_id}")
                return self.current_course

            course = response.get("course")
            statistics = response.get("statistics")
            self.current_course = parse_response(Course, course) if course else None
            self.students = parse_many(Student, _listed(response.get("students"), "list"))
            self.sessions = parse_many(Session, _listed(response.get("sessions"), "recent"))
            self.stats = CourseStats.from_statistics(statistics) if statistics else None
            await self.persist()
            return self.current_course

    def set_current_course(self, course: Optional[Course]) -> None:
        self.current_course = course
        self._requested_course_id = course.id if course else None

    async def update_course(
        self, course_id: str, title: Optional[str] = None, level: Optional[int] = None
    ) -> None:
        request = validate_input(CourseUpdate, title=title, level=level)
        async with self.guard(f"update-course:{course_id}"), self._tracked(
            "Failed to update course"
        ):
            await self.client.call(
                f"/courses/{course_id}",
                "PATCH",
                body=request.model_dump(exclude_none=True),
                success=is_course_success,
                failure_message="Failed to update course",
            )
        await self.get_all_courses(preserve_page=True)

    async def delete_course(self, course_id: str, confirmed: bool = False) -> None:
        _require_confirmation(confirmed, "delete this course")
        async with self.guard(f"delete-course:{course_id}"), self._tracked(
            "Failed to delete course"
        ):
            await self.client.call(
                f"/courses/{course_id}",
                "DELETE",
                success=is_course_success,
                failure_message="Failed to delete course",
            )
        logger.info(f"Deleted course {course_id}")
        if self.current_course and self.current_course.id == course_id:
            self.set_current_course(None)
        await self.get_all_courses(preserve_page=True)

    def search_courses(self, query: str, exclude_id: Optional[str] = None) -> List[Course]:
        """Filter the cached courses by code, title or level, as the copy-source picker does."""
        needle = (query or "").strip().lower()
        matches = []
        for course in self.cache.items:
            if course.id == exclude_id:
                continue
            haystack = (course.course_code.lower(), course.title.lower(), str(course.level))
            if not needle or any(needle in field for field in haystack):
                matches.append(course)
        return matches

    @staticmethod
    def format_level(level: int) -> str:
        return _format_level(level)

    # Students

    async def get_course_students(
        self, course_id: str, page: int = 1, limit: Optional[int] = None
    ) -> List[Student]:
        async with self._tracked("Failed to fetch students"):
            response = await self.client.call(
                f"/courses/{course_id}/students",
                params={"page": page, "limit": limit or self.students_page_size},
                success=is_course_success,
                failure_message="Failed to fetch students",
            )
            self.students = parse_many(Student, _listed(response.get("students"), "list"))
            pagination = response.get("pagination")
            self.pagination = ServerPagination.model_validate(pagination) if pagination else None
            return self.students

    def _course_level(self, course_id: str) -> int:
        if self.current_course is None or self.current_course.id != course_id:
            raise ValidationError(
                "Course not found. Please reload the page.", "NO_CURRENT_COURSE"
            )
        return self.current_course.level

    async def add_single_student(
        self, course_id: str, matric_no: str, name: str, email: str
    ) -> Dict[str, Any]:
        level = self._course_level(course_id)
        matric_no = (matric_no or "").strip().upper()
        name = (name or "").strip()
        if not matric_no or not name or not (email or "").strip():
            raise ValidationError("Please fill in all fields", "REQUIRED_FIELD")
        record = StudentRecord(matric_no=matric_no, name=name, email=validate_email(email))

        async with self.guard(f"add-student:{course_id}"), self._tracked("Failed to add student"):
            response = await self.client.call(
                f"/courses/{course_id}/students",
                "POST",
                body=record.to_payload(level),
                success=is_course_success,
                failure_message="Failed to add student",
            )
        await self.get_course(course_id)
        return response

    def import_students_csv(self, course_id: str, raw_text: str) -> ImportOutcome:
        """Parse an import file for `course_id`. Nothing is uploaded yet."""
        outcome = self.pipeline.run(raw_text)
        logger.info(
            f"Parsed import for course {course_id}: {outcome.valid_count} valid, "
            f"{len(outcome.rejected_rows)} rejected"
        )
        return outcome

    async def add_bulk_students(
        self,
        course_id: str,
        students: Union[ImportOutcome, Sequence[StudentRecord]],
        confirmed: bool = False,
    ) -> SubmitReport:
        """
        Upload an accepted import. Every record gets the course level.

        The server's per-student summary (added, skipped, failed) is returned
        as-is; a partial failure is still a completed upload.
        """
        _require_confirmation(confirmed, "upload these students")
        level = self._course_level(course_id)
        records = students.valid_records if isinstance(students, ImportOutcome) else students

        async def submit(payload: List[Dict[str, Any]]) -> Dict[str, Any]:
            return await self.client.call(
                f"/courses/{course_id}/students/bulk",
                "POST",
                body={"students": payload},
                success=is_bulk_operation_success,
                failure_message="Failed to upload students",
            )

        async with self.guard(f"bulk-enroll:{course_id}"), self._tracked(
            "Failed to upload students"
        ):
            report = await self.pipeline.submit(records, submit, level=level)
        logger.info(
            f"Uploaded {report.submitted} student(s) to course {course_id}: "
            f"{report.successful} added, {report.skipped} skipped, {report.failed} failed"
        )
        await self.get_course(course_id)
        return report

    async def copy_students_from_course(
        self, source_course_id: str, target_course_id: str
    ) -> CopyStudentsResult:
        async with self.guard(f"copy-students:{target_course_id}"), self._tracked(
            "Failed to copy students"
        ):
            status, payload = await self.client.raw_call(
                f"/courses/{target_course_id}/copy-students/{source_course_id}", "POST"
            )
            if status == 400 and payload.get("error") == NO_STUDENTS_TO_COPY:
                logger.info(f"Course {source_course_id} has no students to copy")
                return CopyStudentsResult.empty()
            if not 200 <= status < 300:
                raise error_for_status(status, payload)
            result = parse_response(CopyStudentsResult, payload, status)

        await self.get_course(target_course_id)
        return result

    async def remove_student_from_course(self, course_id: str, student_id: str) -> None:
        """Drop the student locally first and put them back if the server refuses."""
        async with self.guard(f"remove-student:{course_id}:{student_id}"):
            previous = list(self.students)
            self.students = [s for s in previous if s.id != student_id]
            self.error = None
            try:
                await self.client.call(
                    f"/courses/{course_id}/students/{student_id}",
                    "DELETE",
                    success=is_course_success,
                    failure_message="Failed to remove student",
                )
            except Exception as e:
                self.students = previous
                self.error = getattr(e, "message", None) or str(e) or "Failed to remove student"
                raise

    async def bulk_remove_students_from_course(
        self, course_id: str, student_ids: Sequence[str]
    ) -> BulkRemoveResult:
        if not student_ids:
            raise ValidationError("Select at least one student", "REQUIRED_FIELD")
        async with self.guard(f"bulk-remove:{course_id}"), self._tracked(
            "Failed to bulk remove students"
        ):
            response = await self.client.call(
                f"/courses/{course_id}/students/bulk",
                "DELETE",
                body={"student_ids": list(student_ids)},
                success=is_bulk_operation_success,
                failure_message="Failed to bulk remove students",
            )
            result = parse_response(BulkRemoveResult, response)
            removed = set(result.results.successful_ids())
            self.students = [s for s in self.students if s.id not in removed]
            return result

    async def remove_all_students_from_course(
        self, course_id: str, confirmed: bool = False
    ) -> RemoveAllResult:
        _require_confirmation(confirmed, "remove every student")
        async with self.guard(f"remove-all:{course_id}"), self._tracked(
            "Failed to remove all students"
        ):
            response = await self.client.call(
                f"/courses/{course_id}/students/all",
                "DELETE",
                success=is_remove_all_success,
                failure_message="Failed to remove all students",
            )
            self.students = []
            return parse_response(RemoveAllResult, response)

    # Sessions and statistics

    async def start_attendance_session(
        self,
        course_id: str,
        lat: float,
        lng: float,
        radius_m: float,
        duration_minutes: int,
    ) -> Optional[Session]:
        request = validate_input(
            StartSessionRequest,
            lat=lat,
            lng=lng,
            radius_m=radius_m,
            duration_minutes=duration_minutes,
        )
        async with self.guard(f"start-session:{course_id}"), self._tracked(
            "Failed to start session"
        ):
            response = await self.client.call(
                f"/courses/{course_id}/sessions",
                "POST",
                body=request.model_dump(),
                success=is_course_success,
                failure_message="Failed to start session",
            )
            session = response.get("session")
            self.current_session = parse_response(Session, session) if session else None
            return self.current_session

    async def get_course_sessions(
        self,
        course_id: str,
        status: str = "active",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> List[Session]:
        async with self._tracked("Failed to fetch sessions"):
            response = await self.client.call(
                f"/courses/{course_id}/sessions",
                params={
                    "status": status,
                    "page": page,
                    "limit": limit or self.sessions_page_size,
                },
                success=is_course_success,
                failure_message="Failed to fetch sessions",
            )
            self.sessions = parse_many(Session, _listed(response.get("sessions"), "recent"))
            pagination = response.get("pagination")
            self.pagination = ServerPagination.model_validate(pagination) if pagination else None
            return self.sessions

    async def end_session_early(self, session_id: str) -> None:
        async with self.guard(f"end-session:{session_id}"), self._tracked(
            "Failed to end session"
        ):
            await self.client.call(
                f"/sessions/{session_id}/end",
                "PATCH",
                success=is_course_success,
                failure_message="Failed to end session",
            )

    async def get_course_stats(self, course_id: str) -> Optional[CourseStats]:
        async with self._tracked("Failed to fetch course stats"):
            response = await self.client.call(
                f"/attendance/course/{course_id}/stats",
                success=is_course_success,
                failure_message="Failed to fetch course stats",
            )
            stats = response.get("statistics") or response.get("stats")
            self.stats = CourseStats.from_statistics(stats) if stats else None
            return self.stats
