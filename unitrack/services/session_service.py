from typing import Any, Dict, List, Optional, Sequence, Union

from unitrack.schemas.session_schemas import (
    AttendanceMark,
    AttendanceStatus,
    BulkMarkReport,
    Session,
    SessionPagination,
    SessionStatusFilter,
    SessionSummary,
    StartSessionRequest,
)
from unitrack.services.base_service import (
    BaseStoreService,
    parse_many,
    parse_response,
    validate_input,
)
from unitrack.services.response_classifiers import (
    is_session_mutation_success,
    is_session_success,
)
from unitrack.storage.persisted_state import SESSION_STORAGE_KEY
from unitrack.utils.errors import ValidationError
from unitrack.utils.logging import get_logger

logger = get_logger()

MarkInput = Union[AttendanceMark, Dict[str, Any]]


class SessionService(BaseStoreService):
    """Lecturer-wide session list, session details and manual attendance marking."""

    storage_key = SESSION_STORAGE_KEY

    def __init__(self, client, store=None, guard=None, page_size: int = 20):
        super().__init__(client, store, guard)
        self.page_size = page_size
        self.sessions: List[Session] = []
        self.current_session: Optional[Session] = None
        self.pagination: Optional[SessionPagination] = None
        self.summary: Optional[SessionSummary] = None

    def persisted_fields(self) -> Dict[str, Any]:
        return {
            "sessions": [s.model_dump(by_alias=True) for s in self.sessions],
            "current_session": (
                self.current_session.model_dump(by_alias=True) if self.current_session else None
            ),
            "pagination": self.pagination.model_dump() if self.pagination else None,
            "summary": self.summary.model_dump() if self.summary else None,
        }

    async def hydrate(self) -> None:
        state = await self.load_persisted()
        if not state:
            return
        self.sessions = [Session.model_validate(s) for s in state.get("sessions") or []]
        current = state.get("current_session")
        self.current_session = Session.model_validate(current) if current else None
        if state.get("pagination"):
            self.pagination = SessionPagination.model_validate(state["pagination"])
        if state.get("summary"):
            self.summary = SessionSummary.model_validate(state["summary"])

    def set_current_session(self, session: Optional[Session]) -> None:
        self.current_session = session

    async def get_all_sessions(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        status: Union[SessionStatusFilter, str, None] = None,
        course_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Session]:
        status = SessionStatusFilter(status).value if status else None
        params = {
            "page": page,
            "limit": limit or self.page_size,
            # "all" is the absence of a filter
            "status": status if status != SessionStatusFilter.ALL.value else None,
            "course_id": course_id or None,
            "search": search or None,
        }
        async with self._tracked("Failed to fetch sessions"):
            response = await self.client.call(
                "/sessions/lecturer/all",
                params=params,
                success=is_session_success,
                failure_message="Failed to fetch sessions",
            )
            data = response["data"]
            self.sessions = parse_many(Session, data.get("sessions"))
            pagination = data.get("pagination")
            summary = data.get("summary")
            self.pagination = SessionPagination.model_validate(pagination) if pagination else None
            self.summary = SessionSummary.model_validate(summary) if summary else None
            await self.persist()
            return self.sessions

    async def get_session_details(self, session_id: str) -> Session:
        async with self._tracked("Failed to fetch session details"):
            response = await self.client.call(
                f"/sessions/lecturer/{session_id}/details",
                success=is_session_success,
                failure_message="Failed to fetch session details",
            )
            self.current_session = parse_response(Session, response["data"])
            await self.persist()
            return self.current_session

    async def start_attendance_session(
        self,
        course_id: str,
        lat: float,
        lng: float,
        radius_m: float,
        duration_minutes: int,
    ) -> Dict[str, Any]:
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
                success=is_session_mutation_success,
                failure_message="Failed to start attendance session",
            )
        logger.info(
            f"Started session for course {course_id} "
            f"({request.radius_m:g} m, {request.duration_minutes} min)"
        )
        return response

    async def mark_student_attendance(
        self,
        course_id: str,
        session_id: str,
        student_id: str,
        status: Union[AttendanceStatus, str],
        reason: str,
    ) -> BulkMarkReport:
        """Mark one student. Sent through the bulk endpoint as a single entry."""
        mark = validate_input(AttendanceMark, student_id=student_id, status=status, reason=reason)
        return await self.bulk_mark_attendance(course_id, session_id, [mark])

    async def bulk_mark_attendance(
        self, course_id: str, session_id: str, marks: Sequence[MarkInput]
    ) -> BulkMarkReport:
        """
        Mark several students at once.

        The report keeps the server's per-student results. Some rows may have
        failed while the call as a whole succeeded; that is not an error here.
        """
        if not marks:
            raise ValidationError("Select at least one student", "REQUIRED_FIELD")
        parsed = [
            mark if isinstance(mark, AttendanceMark) else validate_input(AttendanceMark, **mark)
            for mark in marks
        ]
        async with self.guard(f"mark-attendance:{session_id}"), self._tracked(
            "Failed to mark attendance"
        ):
            response = await self.client.call(
                f"/courses/{course_id}/students/bulk-mark",
                "PATCH",
                body={
                    "sessionId": session_id,
                    "students": [mark.model_dump(by_alias=True) for mark in parsed],
                },
                success=is_session_mutation_success,
                failure_message="Failed to mark attendance",
            )
            report = parse_response(BulkMarkReport, response)
        if report.failed:
            logger.warning(
                f"Attendance marking for session {session_id}: "
                f"{report.successful} succeeded, {report.failed} failed"
            )
        return report

    async def end_session_early(self, session_id: str) -> None:
        async with self.guard(f"end-session:{session_id}"), self._tracked(
            "Failed to end session"
        ):
            await self.client.call(
                f"/sessions/{session_id}/end",
                "PATCH",
                success=is_session_mutation_success,
                failure_message="Failed to end session",
            )
        if self.current_session and self.current_session.id == session_id:
            self.current_session = self.current_session.model_copy(update={"is_active": False})
