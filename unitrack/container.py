from dataclasses import dataclass
from typing import Optional

import httpx

from unitrack.config.settings import Settings
from unitrack.config.settings import settings as default_settings
from unitrack.importers.pipeline import BulkImportPipeline
from unitrack.services.auth_service import AuthService
from unitrack.services.course_service import CourseService
from unitrack.services.help_service import HelpService
from unitrack.services.profile_service import ProfileService
from unitrack.services.remote_client import RemoteResourceClient
from unitrack.services.session_service import SessionService
from unitrack.services.share_service import StudentShareService
from unitrack.storage.key_value_store import JsonFileKeyValueStore, KeyValueStore
from unitrack.storage.persisted_state import AuthTokenProvider, OnboardingFlag
from unitrack.utils.concurrency import InFlightGuard, RequestCoalescer
from unitrack.utils.logging import configure_logging, get_logger


@dataclass(frozen=True)
class Container:
    settings: Settings
    store: KeyValueStore
    client: RemoteResourceClient
    guard: InFlightGuard

    auth_service: AuthService
    course_service: CourseService
    session_service: SessionService
    share_service: StudentShareService
    help_service: HelpService
    profile_service: ProfileService
    onboarding: OnboardingFlag

    async def hydrate(self) -> None:
        """Reload every persisted snapshot, as the app does on launch."""
        await self.auth_service.hydrate()
        await self.course_service.hydrate()
        await self.session_service.hydrate()
        await self.share_service.hydrate()
        await self.help_service.hydrate()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


def build_container(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    setup_logging: bool = False,
) -> Container:
    settings = settings or default_settings
    if setup_logging:
        configure_logging(settings)

    store = store if store is not None else JsonFileKeyValueStore(settings.STORAGE_PATH)
    client = RemoteResourceClient(
        settings.API_BASE_URL,
        token_provider=AuthTokenProvider(store),
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
        transport=transport,
        coalescer=RequestCoalescer(timeout=settings.COALESCE_WAIT_SECONDS),
    )
    # One guard for the whole app so an action key is busy everywhere at once
    guard = InFlightGuard()

    course_service = CourseService(
        client,
        store,
        guard,
        courses_per_page=settings.COURSES_PER_PAGE,
        fetch_limit=settings.COURSES_FETCH_LIMIT,
        students_page_size=settings.STUDENTS_PAGE_SIZE,
        sessions_page_size=settings.SESSIONS_PAGE_SIZE,
        pipeline=BulkImportPipeline(),
    )

    get_logger().debug(f"Built client container for {settings.API_BASE_URL}")

    return Container(
        settings=settings,
        store=store,
        client=client,
        guard=guard,
        auth_service=AuthService(client, store, guard),
        course_service=course_service,
        session_service=SessionService(
            client, store, guard, page_size=settings.SESSIONS_PAGE_SIZE
        ),
        share_service=StudentShareService(
            client,
            store,
            guard,
            course_service=course_service,
            page_size=settings.SHARE_REQUESTS_PAGE_SIZE,
        ),
        help_service=HelpService(client, store, guard, page_size=settings.FAQ_PAGE_SIZE),
        profile_service=ProfileService(client, store, guard),
        onboarding=OnboardingFlag(store),
    )
