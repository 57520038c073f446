from typing import Any, Dict, List, Optional, Sequence, Union

from unitrack.schemas.share_schemas import (
    RequestsPagination,
    ShareAction,
    ShareRequest,
    ShareRequestCreate,
    ShareRequestStatus,
    ShareSummary,
    SharedCourse,
    SharedStudent,
    Teacher,
)
from unitrack.services.base_service import (
    BaseStoreService,
    parse_many,
    parse_response,
    validate_input,
)
from unitrack.services.course_service import CourseService
from unitrack.storage.persisted_state import SHARE_STORAGE_KEY
from unitrack.utils.logging import get_logger

logger = get_logger()


class StudentShareService(BaseStoreService):
    """
    Borrowing students from another teacher's course.

    A request names students in the other teacher's course; once approved the
    backend enrols them into the requester's course. Only the summary counters
    survive a restart.
    """

    storage_key = SHARE_STORAGE_KEY

    def __init__(
        self,
        client,
        store=None,
        guard=None,
        course_service: Optional[CourseService] = None,
        page_size: int = 10,
    ):
        super().__init__(client, store, guard)
        self.course_service = course_service
        self.page_size = page_size
        self.teachers: List[Teacher] = []
        self.my_courses: List[SharedCourse] = []
        self.teacher_courses: List[SharedCourse] = []
        self.selected_teacher: Optional[Teacher] = None
        self.selected_course: Optional[SharedCourse] = None
        self.students: List[SharedStudent] = []
        self.incoming_requests: List[ShareRequest] = []
        self.outgoing_requests: List[ShareRequest] = []
        self.incoming_pagination: Optional[RequestsPagination] = None
        self.outgoing_pagination: Optional[RequestsPagination] = None
        self.summary = ShareSummary()
        self.is_loading_teachers = False
        self.is_loading_courses = False
        self.is_loading_students = False
        self.is_loading_requests = False

    def persisted_fields(self) -> Dict[str, Any]:
        return {"summary": self.summary.model_dump()}

    async def hydrate(self) -> None:
        state = await self.load_persisted()
        if state.get("summary"):
            self.summary = ShareSummary.model_validate(state["summary"])

    async def get_teachers(self) -> List[Teacher]:
        async with self._tracked("Failed to fetch teachers", "is_loading_teachers"):
            response = await self.client.call("/student-sharing/teachers")
            self.teachers = parse_many(Teacher, response.get("teachers"))
            return self.teachers

    async def get_my_courses(self) -> List[SharedCourse]:
        """The signed-in teacher's own courses, loaded through the course service."""
        async with self._tracked("Failed to fetch courses", "is_loading_courses"):
            await self.course_service.get_all_courses(preserve_page=True)
            courses = []
            for course in self.course_service.all_courses:
                owner = course.teacher_id if not isinstance(course.teacher_id, str) else None
                courses.append(
                    SharedCourse(
                        _id=course.id,
                        course_code=course.course_code,
                        title=course.title,
                        level=course.level,
                        created_at=course.created_at,
                        student_count=course.student_count,
                        teacher=(
                            Teacher(_id=owner.id, name=owner.name or "", email=owner.email or "")
                            if owner
                            else None
                        ),
                    )
                )
            self.my_courses = courses
            return self.my_courses

    async def get_teacher_courses(self, teacher_id: str) -> List[SharedCourse]:
        async with self._tracked("Failed to fetch teacher courses", "is_loading_courses"):
            response = await self.client.call(
                "/student-sharing/my-courses", params={"teacher_id": teacher_id}
            )
            self.teacher_courses = parse_many(SharedCourse, response.get("courses"))
            teacher = response.get("teacher")
            self.selected_teacher = parse_response(Teacher, teacher) if teacher else None
            return self.teacher_courses

    async def get_teacher_students(self, teacher_id: str, course_id: str) -> List[SharedStudent]:
        async with self._tracked("Failed to fetch students", "is_loading_students"):
            response = await self.client.call(
                f"/student-sharing/teachers/{teacher_id}/courses/{course_id}/students"
            )
            self.students = parse_many(SharedStudent, response.get("students"))
            course = response.get("course")
            self.selected_course = parse_response(SharedCourse, course) if course else None
            return self.students

    async def request_students(
        self,
        target_teacher_id: str,
        target_course_id: str,
        my_course_id: str,
        student_ids: Sequence[str],
        message: str = "",
    ) -> Optional[ShareRequest]:
        request = validate_input(
            ShareRequestCreate,
            target_teacher_id=target_teacher_id,
            target_course_id=target_course_id,
            my_course_id=my_course_id,
            student_ids=list(student_ids),
            message=message,
        )
        async with self.guard("share-request"), self._tracked("Failed to send request"):
            response = await self.client.call(
                "/student-sharing/request", "POST", body=request.model_dump()
            )
        logger.info(
            f"Requested {len(request.student_ids)} student(s) from teacher {target_teacher_id}"
        )
        await self.get_outgoing_requests()
        created = response.get("request")
        return parse_response(ShareRequest, created) if created else None

    async def get_incoming_requests(
        self,
        status: Union[ShareRequestStatus, str] = ShareRequestStatus.PENDING,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> List[ShareRequest]:
        status = ShareRequestStatus(status).value
        async with self._tracked("Failed to fetch incoming requests", "is_loading_requests"):
            response = await self.client.call(
                "/student-sharing/incoming",
                params={"status": status, "page": page, "limit": limit or self.page_size},
            )
            self.incoming_requests = parse_many(ShareRequest, response.get("requests"))
            pagination = response.get("pagination")
            self.incoming_pagination = (
                RequestsPagination.model_validate(pagination) if pagination else None
            )
            total = self.incoming_pagination.total_requests if self.incoming_pagination else 0
            updates = {"total_incoming": total}
            if status == ShareRequestStatus.PENDING.value:
                updates["pending_incoming"] = total
            self.summary = self.summary.model_copy(update=updates)
            await self.persist()
            return self.incoming_requests

    async def get_outgoing_requests(
        self,
        status: str = "all",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> List[ShareRequest]:
        async with self._tracked("Failed to fetch outgoing requests", "is_loading_requests"):
            response = await self.client.call(
                "/student-sharing/outgoing",
                params={"status": status, "page": page, "limit": limit or self.page_size},
            )
            self.outgoing_requests = parse_many(ShareRequest, response.get("requests"))
            pagination = response.get("pagination")
            self.outgoing_pagination = (
                RequestsPagination.model_validate(pagination) if pagination else None
            )
            pending = sum(
                1 for r in self.outgoing_requests if r.status == ShareRequestStatus.PENDING
            )
            self.summary = self.summary.model_copy(
                update={
                    "pending_outgoing": pending,
                    "total_outgoing": (
                        self.outgoing_pagination.total_requests if self.outgoing_pagination else 0
                    ),
                }
            )
            await self.persist()
            return self.outgoing_requests

    async def respond_to_request(
        self, request_id: str, action: Union[ShareAction, str], message: str = ""
    ) -> None:
        action = ShareAction(action)
        async with self.guard(f"respond:{request_id}"), self._tracked(
            f"Failed to {action.value} request"
        ):
            await self.client.call(
                f"/student-sharing/{request_id}/respond",
                "PATCH",
                body={"action": action.value, "response_message": message},
            )
        logger.info(f"Share request {request_id}: {action.value}")
        await self.get_incoming_requests()

    async def cancel_request(self, request_id: str) -> None:
        async with self.guard(f"cancel:{request_id}"), self._tracked("Failed to cancel request"):
            await self.client.call(f"/student-sharing/{request_id}/cancel", "PATCH")
        await self.get_outgoing_requests()

    def clear_teacher_data(self) -> None:
        self.teacher_courses = []
        self.selected_teacher = None
        self.selected_course = None
        self.students = []
