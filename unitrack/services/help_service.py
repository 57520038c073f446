from typing import Any, Dict, List, Optional, Union

from unitrack.schemas.help_schemas import (
    DEFAULT_CATEGORIES,
    DEFAULT_FAQS,
    DEFAULT_SUPPORT_INFO,
    FAQ,
    ContactPriority,
    ContactRequest,
    ContactUserType,
    FAQCategory,
    SupportInfo,
)
from unitrack.services.auth_service import validate_email
from unitrack.services.base_service import (
    BaseStoreService,
    parse_many,
    parse_response,
    validate_input,
)
from unitrack.services.response_classifiers import is_help_success
from unitrack.storage.persisted_state import HELP_STORAGE_KEY
from unitrack.utils.errors import UniTrackError
from unitrack.utils.logging import get_logger

logger = get_logger()


class HelpService(BaseStoreService):
    """
    FAQ lookup and support contact.

    Starts from a built-in set of FAQs and support guidelines so the help
    screen has content offline. A failed refresh keeps whatever is showing.
    """

    storage_key = HELP_STORAGE_KEY

    def __init__(self, client, store=None, guard=None, page_size: int = 100):
        super().__init__(client, store, guard)
        self.page_size = page_size
        self.faqs: List[FAQ] = [FAQ.model_validate(f) for f in DEFAULT_FAQS]
        self.categories: List[FAQCategory] = [
            FAQCategory.model_validate(c) for c in DEFAULT_CATEGORIES
        ]
        self.support_info = SupportInfo.model_validate(DEFAULT_SUPPORT_INFO)
        self.current_faq: Optional[FAQ] = None
        self.is_submitting = False

    def persisted_fields(self) -> Dict[str, Any]:
        return {
            "faqs": [f.model_dump(by_alias=True) for f in self.faqs],
            "categories": [c.model_dump() for c in self.categories],
            "support_info": self.support_info.model_dump(),
        }

    async def hydrate(self) -> None:
        state = await self.load_persisted()
        if state.get("faqs"):
            self.faqs = [FAQ.model_validate(f) for f in state["faqs"]]
        if state.get("categories"):
            self.categories = [FAQCategory.model_validate(c) for c in state["categories"]]
        if state.get("support_info"):
            self.support_info = SupportInfo.model_validate(state["support_info"])

    async def get_all_faqs(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[FAQ]:
        try:
            async with self._tracked("Failed to fetch FAQs"):
                response = await self.client.call(
                    "/faq",
                    params={
                        "page": page,
                        "limit": limit or self.page_size,
                        "category": category or None,
                        "search": search or None,
                    },
                    success=is_help_success,
                    failure_message="Failed to fetch FAQs",
                )
        except UniTrackError as e:
            logger.warning(f"Keeping cached FAQs: {e.message}")
            return self.faqs

        data = response.get("data") or {}
        faqs = data.get("faqs") if isinstance(data, dict) else None
        faqs = faqs or response.get("faqs")
        if faqs:
            self.faqs = parse_many(FAQ, faqs)
            await self.persist()
        return self.faqs

    async def get_faq_categories(self) -> List[FAQCategory]:
        try:
            async with self._tracked("Failed to fetch categories"):
                response = await self.client.call(
                    "/faq/categories",
                    success=is_help_success,
                    failure_message="Failed to fetch categories",
                )
        except UniTrackError as e:
            logger.warning(f"Keeping cached FAQ categories: {e.message}")
            return self.categories

        categories = (response.get("data") or {}).get("categories")
        if categories:
            self.categories = parse_many(FAQCategory, categories)
            await self.persist()
        return self.categories

    async def get_faq(self, faq_id: str) -> FAQ:
        async with self._tracked("Failed to fetch FAQ"):
            response = await self.client.call(
                f"/faq/{faq_id}",
                success=is_help_success,
                failure_message="Failed to fetch FAQ",
            )
            self.current_faq = parse_response(FAQ, (response.get("data") or {}).get("faq"))
            return self.current_faq

    async def get_support_info(self) -> SupportInfo:
        try:
            async with self._tracked("Failed to fetch support info"):
                response = await self.client.call(
                    "/support/info",
                    success=is_help_success,
                    failure_message="Failed to fetch support info",
                )
        except UniTrackError as e:
            logger.warning(f"Keeping default support info: {e.message}")
            return self.support_info

        if response.get("data"):
            self.support_info = parse_response(SupportInfo, response["data"])
            await self.persist()
        return self.support_info

    async def submit_contact_request(
        self,
        name: str,
        email: str,
        subject: str,
        message: str,
        category: str = "general",
        priority: Union[ContactPriority, str] = ContactPriority.MEDIUM,
        user_type: Union[ContactUserType, str] = ContactUserType.TEACHER,
        phone: Optional[str] = None,
    ) -> Dict[str, Any]:
        request = validate_input(
            ContactRequest,
            name=(name or "").strip(),
            email=validate_email(email),
            subject=(subject or "").strip(),
            message=(message or "").strip(),
            category=category,
            priority=priority,
            user_type=user_type,
            phone=phone or None,
        )
        async with self.guard("contact-support"), self._tracked(
            "Failed to submit contact request", "is_submitting"
        ):
            response = await self.client.call(
                "/support/contact",
                "POST",
                body=request.model_dump(exclude_none=True),
                success=is_help_success,
                failure_message="Failed to submit contact request",
            )
        logger.info(f"Submitted {request.priority.value} support request: {request.subject}")
        return response
