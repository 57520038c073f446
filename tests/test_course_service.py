import asyncio

import httpx
import pytest

from conftest import make_course, make_student
from unitrack.container import build_container
from unitrack.schemas.course_schemas import Course
from unitrack.schemas.student_schemas import Student
from unitrack.storage.persisted_state import COURSE_STORAGE_KEY
from unitrack.utils.errors import ActionInProgressError, HttpError, ValidationError

COURSE_ID = "c1"


def course_detail(students=None, **statistics):
    return {
        "course": make_course(COURSE_ID, students=len(students or [])),
        "students": {"total": len(students or []), "list": students or []},
        "sessions": {"total": 0, "recent": []},
        "statistics": statistics or None,
    }


async def load_course(container, backend, students=None):
    backend.add("GET", f"/courses/{COURSE_ID}", course_detail(students))
    await container.course_service.get_course(COURSE_ID)


class TestCourseList:
    """Test the locally paged course list."""

    @pytest.mark.asyncio
    async def test_get_all_courses_feeds_cache(self, container, backend):
        backend.add(
            "GET",
            "/courses",
            {"courses": [make_course(str(i), students=i, active=i % 2) for i in range(1, 11)]},
        )
        service = container.course_service

        visible = await service.get_all_courses()

        assert dict(backend.requests[0].url.params) == {"limit": "1000"}
        assert [c.id for c in visible] == [str(i) for i in range(1, 9)]
        assert service.total_pages() == 2
        assert service.total_students == 55
        assert service.total_active_sessions == 5
        assert [c.id for c in service.set_current_page(9)] == ["9", "10"]
        assert service.current_page == 2

    @pytest.mark.asyncio
    async def test_new_lecturer_has_no_courses(self, container, backend):
        backend.add(
            "GET",
            "/courses",
            {"courses": [], "pagination": {"current_page": 1, "total_pages": 0, "total_courses": 0}},
        )
        service = container.course_service

        assert await service.get_all_courses() == []
        assert service.total_pages() == 0
        assert service.total_students == 0
        assert not service.pagination.has_next and not service.pagination.has_prev
        assert service.error is None

    @pytest.mark.asyncio
    async def test_course_list_is_persisted_and_hydrated(self, container, backend, signed_in_store):
        backend.add("GET", "/courses", {"courses": [make_course("a", students=3)]})
        await container.course_service.get_all_courses()

        assert await signed_in_store.get_item(COURSE_STORAGE_KEY)

        fresh = build_container(
            settings=container.settings,
            store=signed_in_store,
            transport=httpx.MockTransport(backend),
        )
        await fresh.course_service.hydrate()
        assert [c.id for c in fresh.course_service.displayed_courses()] == ["a"]
        assert fresh.course_service.total_students == 3
        await fresh.aclose()

    @pytest.mark.asyncio
    async def test_create_course_formats_code_and_refreshes(self, container, backend):
        backend.add("POST", "/courses", {"message": "Course created successfully"})
        backend.add("GET", "/courses", {"courses": [make_course("n")]})

        await container.course_service.create_course("  csc   301 ", " Algorithms ", 300)

        body = backend.body_of(backend.calls_to("POST", "/courses")[0])
        assert body == {"course_code": "CSC 301", "title": "Algorithms", "level": 300}
        assert len(backend.calls_to("GET", "/courses")) == 1

    @pytest.mark.asyncio
    async def test_delete_requires_confirmation(self, container, backend):
        with pytest.raises(ValidationError):
            await container.course_service.delete_course(COURSE_ID)
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_search_courses(self, container):
        service = container.course_service
        service.cache.replace(
            [
                Course.model_validate(make_course("1", title="Data Structures")),
                Course.model_validate(make_course("2", title="Operating Systems")),
            ]
        )
        assert [c.id for c in service.search_courses("data")] == ["1"]
        assert [c.id for c in service.search_courses("", exclude_id="1")] == ["2"]
        assert service.format_level(300) == "3rd Year"
        assert service.format_level(700) == "Level 700"


class TestCourseDetail:
    """Test loading one course."""

    @pytest.mark.asyncio
    async def test_list_shapes_and_stats_defaults(self, container, backend):
        backend.add(
            "GET",
            f"/courses/{COURSE_ID}",
            {
                "course": make_course(COURSE_ID),
                "students": [make_student("s1")],
                "sessions": [],
                "statistics": {"total_sessions": 4, "present_count": 10, "absent_count": None},
            },
        )
        service = container.course_service
        await service.get_course(COURSE_ID)

        assert [s.id for s in service.students] == ["s1"]
        assert service.stats.total_sessions == 4
        assert service.stats.attendance_counts.present == 10
        assert service.stats.absent_count == 0
        assert service.stats.course_activity.sessions_this_week == 0

    @pytest.mark.asyncio
    async def test_stale_response_is_discarded(self, container, backend):
        service = container.course_service

        def first_course(request):
            # The user moved on to another course while this was loading
            service.set_current_course(None)
            service._requested_course_id = "c2"
            return httpx.Response(200, json=course_detail([make_student("old")]))

        backend.add("GET", f"/courses/{COURSE_ID}", handler=first_course)
        await service.get_course(COURSE_ID)

        assert service.current_course is None
        assert service.students == []


class TestEnrolment:
    """Test adding students to a course."""

    @pytest.mark.asyncio
    async def test_add_single_student_requires_loaded_course(self, container, backend):
        with pytest.raises(ValidationError) as exc_info:
            await container.course_service.add_single_student(
                COURSE_ID, "bu1", "Ann", "ann@x.com"
            )
        assert exc_info.value.error_code == "NO_CURRENT_COURSE"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_add_single_student_validates_email(self, container, backend):
        await load_course(container, backend)
        with pytest.raises(ValidationError) as exc_info:
            await container.course_service.add_single_student(COURSE_ID, "bu1", "Ann", "ann@x")
        assert exc_info.value.error_code == "INVALID_EMAIL"

    @pytest.mark.asyncio
    async def test_add_single_student_normalises(self, container, backend):
        await load_course(container, backend)
        backend.add("POST", f"/courses/{COURSE_ID}/students", {"message": "Student added successfully"})

        await container.course_service.add_single_student(
            COURSE_ID, " bu1 ", " Ann Lee ", " Ann@X.com "
        )

        body = backend.body_of(backend.calls_to("POST", f"/courses/{COURSE_ID}/students")[0])
        assert body == {"matric_no": "BU1", "name": "Ann Lee", "email": "ann@x.com", "level": 300}

    @pytest.mark.asyncio
    async def test_csv_import_then_confirmed_upload(self, container, backend):
        await load_course(container, backend)
        backend.add(
            "POST",
            f"/courses/{COURSE_ID}/students/bulk",
            {
                "message": "Bulk upload completed",
                "summary": {"total_processed": 2, "successful": 1, "skipped": 1, "failed": 0},
                "results": {"skipped": [{"matric_no": "BU2", "reason": "Already enrolled"}]},
            },
        )
        service = container.course_service

        outcome = service.import_students_csv(
            COURSE_ID, "matric_no;name;email\nbu1;Ann;ann@x.com\nbu2;Ben;ben@x.com"
        )
        with pytest.raises(ValidationError):
            await service.add_bulk_students(COURSE_ID, outcome)
        assert backend.calls_to("POST", f"/courses/{COURSE_ID}/students/bulk") == []

        report = await service.add_bulk_students(COURSE_ID, outcome, confirmed=True)

        body = backend.body_of(backend.calls_to("POST", f"/courses/{COURSE_ID}/students/bulk")[0])
        assert [s["level"] for s in body["students"]] == [300, 300]
        assert report.successful == 1
        assert report.skipped == 1
        assert report.results["skipped"][0]["reason"] == "Already enrolled"

    @pytest.mark.asyncio
    async def test_course_without_students(self, container, backend):
        backend.add(
            "GET",
            f"/courses/{COURSE_ID}/students",
            {"students": [], "pagination": {"current_page": 1, "total_pages": 0, "total_students": 0}},
        )
        service = container.course_service

        assert await service.get_course_students(COURSE_ID) == []
        assert service.pagination.total_students == 0

    @pytest.mark.asyncio
    async def test_double_submit_is_rejected(self, container, backend):
        await load_course(container, backend)
        service = container.course_service
        outcome = service.import_students_csv(COURSE_ID, "matric_no,name,email\nbu1,Ann,a@x.co")

        async with container.guard(f"bulk-enroll:{COURSE_ID}"):
            with pytest.raises(ActionInProgressError):
                await service.add_bulk_students(COURSE_ID, outcome, confirmed=True)

    @pytest.mark.asyncio
    async def test_copy_with_no_students_is_benign(self, container, backend):
        backend.add(
            "POST",
            "/courses/target/copy-students/source",
            {"error": "No students found to copy"},
            status=400,
        )
        result = await container.course_service.copy_students_from_course("source", "target")

        assert result.summary.added == 0
        assert result.summary.skipped == 0
        assert result.summary.total_processed == 0
        assert container.course_service.error is None

    @pytest.mark.asyncio
    async def test_copy_other_400_raises(self, container, backend):
        backend.add(
            "POST",
            "/courses/target/copy-students/source",
            {"error": "Cannot copy into the same course"},
            status=400,
        )
        with pytest.raises(HttpError):
            await container.course_service.copy_students_from_course("source", "target")
        assert container.course_service.error == "Cannot copy into the same course"

    @pytest.mark.asyncio
    async def test_copy_relays_summary(self, container, backend):
        backend.add(
            "POST",
            f"/courses/{COURSE_ID}/copy-students/source",
            {
                "message": "Students copied",
                "addedStudents": [{"_id": "e1"}],
                "skippedStudents": [{"matric_no": "BU2", "name": "Ben", "reason": "Already enrolled"}],
                "summary": {"total_processed": 2, "added": 1, "skipped": 1},
            },
        )
        backend.add("GET", f"/courses/{COURSE_ID}", course_detail())

        result = await container.course_service.copy_students_from_course("source", COURSE_ID)

        assert result.summary.added == 1
        assert result.skipped_students[0].reason == "Already enrolled"


class TestRemoval:
    """Test removing students."""

    @pytest.mark.asyncio
    async def test_failed_remove_rolls_back(self, container, backend):
        await load_course(container, backend, [make_student("s1"), make_student("s2")])
        backend.add(
            "DELETE", f"/courses/{COURSE_ID}/students/s1", {"error": "Server error"}, status=500
        )
        service = container.course_service

        with pytest.raises(HttpError):
            await service.remove_student_from_course(COURSE_ID, "s1")

        assert [s.id for s in service.students] == ["s1", "s2"]
        assert service.error == "Server error"

    @pytest.mark.asyncio
    async def test_remove_is_applied_before_response(self, container, backend):
        await load_course(container, backend, [make_student("s1"), make_student("s2")])
        service = container.course_service
        during = []

        def delete(request):
            during.append([s.id for s in service.students])
            return httpx.Response(200, json={"message": "Student removed successfully"})

        backend.add("DELETE", f"/courses/{COURSE_ID}/students/s1", handler=delete)
        await service.remove_student_from_course(COURSE_ID, "s1")

        assert during == [["s2"]]
        assert [s.id for s in service.students] == ["s2"]

    @pytest.mark.asyncio
    async def test_double_tap_remove_is_rejected(self, container, backend):
        await load_course(container, backend, [make_student("s1"), make_student("s2")])
        service = container.course_service

        async def slow_delete(request):
            await asyncio.sleep(0.05)
            return httpx.Response(200, json={"message": "Student removed successfully"})

        backend.add("DELETE", f"/courses/{COURSE_ID}/students/s1", handler=slow_delete)
        first, second = await asyncio.gather(
            service.remove_student_from_course(COURSE_ID, "s1"),
            service.remove_student_from_course(COURSE_ID, "s1"),
            return_exceptions=True,
        )

        assert first is None
        assert isinstance(second, ActionInProgressError)
        assert len(backend.calls_to("DELETE", f"/courses/{COURSE_ID}/students/s1")) == 1
        assert [s.id for s in service.students] == ["s2"]

    @pytest.mark.asyncio
    async def test_bulk_remove_drops_only_successful_ids(self, container, backend):
        await load_course(
            container, backend, [make_student("s1"), make_student("s2"), make_student("s3")]
        )
        backend.add(
            "DELETE",
            f"/courses/{COURSE_ID}/students/bulk",
            {
                "message": "Bulk delete completed",
                "summary": {"total_processed": 2, "successful": 1, "not_found": 0, "failed": 1},
                "results": {
                    "successful": [{"student_id": "s1"}],
                    "failed": [{"student_id": "s2", "error": "Locked"}],
                },
            },
        )
        service = container.course_service

        result = await service.bulk_remove_students_from_course(COURSE_ID, ["s1", "s2"])

        body = backend.body_of(backend.calls_to("DELETE", f"/courses/{COURSE_ID}/students/bulk")[0])
        assert body == {"student_ids": ["s1", "s2"]}
        assert result.summary.failed == 1
        assert [s.id for s in service.students] == ["s2", "s3"]

    @pytest.mark.asyncio
    async def test_remove_all_requires_confirmation(self, container, backend):
        service = container.course_service
        service.students = [Student.model_validate(make_student("s1"))]

        with pytest.raises(ValidationError):
            await service.remove_all_students_from_course(COURSE_ID)

        backend.add(
            "DELETE",
            f"/courses/{COURSE_ID}/students/all",
            {"message": "Removed", "summary": {"total_students_removed": 1}},
        )
        result = await service.remove_all_students_from_course(COURSE_ID, confirmed=True)
        assert result.summary.total_students_removed == 1
        assert service.students == []


class TestCourseSessions:
    """Test session operations under a course."""

    @pytest.mark.asyncio
    async def test_course_without_sessions(self, container, backend):
        backend.add(
            "GET",
            f"/courses/{COURSE_ID}/sessions",
            {"sessions": [], "pagination": {"current_page": 1, "total_pages": 0, "total_sessions": 0}},
        )
        sessions = await container.course_service.get_course_sessions(COURSE_ID, status="all")
        assert sessions == []
        assert container.course_service.sessions == []

    @pytest.mark.asyncio
    async def test_start_session_validates_coordinates(self, container, backend):
        with pytest.raises(ValidationError):
            await container.course_service.start_attendance_session(COURSE_ID, 91, 3.4, 50, 30)
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_start_session(self, container, backend):
        backend.add(
            "POST",
            f"/courses/{COURSE_ID}/sessions",
            {"message": "Session started", "session": {"_id": "x1", "session_code": "AB12"}},
        )
        session = await container.course_service.start_attendance_session(
            COURSE_ID, 6.5, 3.4, 50, 30
        )
        assert session.session_code == "AB12"
        body = backend.body_of(backend.requests[0])
        assert body == {"lat": 6.5, "lng": 3.4, "radius_m": 50, "duration_minutes": 30}

    @pytest.mark.asyncio
    async def test_course_stats(self, container, backend):
        backend.add(
            "GET",
            f"/attendance/course/{COURSE_ID}/stats",
            {"stats": {"total_sessions": 2, "total_attendance_records": 9}},
        )
        stats = await container.course_service.get_course_stats(COURSE_ID)
        assert stats.attendance_counts.total_submissions == 9
