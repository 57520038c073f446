import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio

from unitrack.config.settings import Settings
from unitrack.container import build_container
from unitrack.services.remote_client import RemoteResourceClient
from unitrack.storage.key_value_store import InMemoryKeyValueStore
from unitrack.storage.persisted_state import AUTH_STORAGE_KEY, AuthTokenProvider

API_BASE_URL = "http://unitrack.test/api"
TEST_TOKEN = "test-token"

Handler = Callable[[httpx.Request], Any]
Route = Union[Tuple[int, Any], Handler]


class FakeBackend:
    """Scripted backend served through httpx.MockTransport."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status: int = 200,
        handler: Optional[Handler] = None,
    ) -> "FakeBackend":
        self.routes[(method.upper(), path)] = handler or (status, json_body)
        return self

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"error": f"No route for {request.method} {path}"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def calls_to(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method.upper() and r.url.path.removeprefix("/api") == path
        ]

    @staticmethod
    def body_of(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


def auth_blob(token: str = TEST_TOKEN) -> str:
    return json.dumps(
        {
            "state": {
                "user": {
                    "id": "t-1",
                    "name": "Ada Teacher",
                    "email": "ada@uni.edu",
                    "role": "teacher",
                    "isVerified": True,
                },
                "token": token,
            }
        }
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings pointing at the fake backend."""
    return Settings(
        API_BASE_URL=API_BASE_URL,
        COURSES_PER_PAGE=8,
        COALESCE_WAIT_SECONDS=1.0,
        REQUEST_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    """Empty in-memory key-value store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def signed_in_store() -> InMemoryKeyValueStore:
    """Store holding a persisted auth blob with a bearer token."""
    return InMemoryKeyValueStore({AUTH_STORAGE_KEY: auth_blob()})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(backend: FakeBackend, signed_in_store):
    """RemoteResourceClient wired to the fake backend."""
    remote = RemoteResourceClient(
        API_BASE_URL,
        token_provider=AuthTokenProvider(signed_in_store),
        transport=httpx.MockTransport(backend),
    )
    yield remote
    await remote.aclose()


@pytest_asyncio.fixture
async def container(test_settings, signed_in_store, backend):
    """Full application container against the fake backend."""
    app = build_container(
        settings=test_settings,
        store=signed_in_store,
        transport=httpx.MockTransport(backend),
    )
    yield app
    await app.aclose()


def make_course(course_id: str, students: int = 0, active: int = 0, **extra) -> Dict[str, Any]:
    course = {
        "_id": course_id,
        "course_code": f"CSC {course_id}",
        "title": f"Course {course_id}",
        "level": 300,
        "student_count": students,
        "active_sessions_count": active,
    }
    course.update(extra)
    return course


def make_student(student_id: str, matric_no: str = None) -> Dict[str, Any]:
    return {
        "_id": student_id,
        "matric_no": matric_no or f"BU22CSC{student_id}",
        "name": f"Student {student_id}",
        "email": f"s{student_id}@uni.edu",
    }
