from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel

from unitrack.services.remote_client import RemoteResourceClient
from unitrack.storage.key_value_store import KeyValueStore
from unitrack.storage.persisted_state import PersistedState
from unitrack.utils.concurrency import InFlightGuard
from unitrack.utils.errors import HttpError, UniTrackError, ValidationError
from unitrack.utils.logging import get_logger

logger = get_logger()

M = TypeVar("M", bound=BaseModel)


def validate_input(model: Type[M], **data: Any) -> M:
    """Build a request model, turning pydantic errors into a local ValidationError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid input").removeprefix("Value error, ")
        raise ValidationError(f"{field}: {message}" if field else message) from e


def parse_response(model: Type[M], data: Any, status: int = 200) -> M:
    """Validate a server object, reporting a malformed body as an HttpError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        logger.warning(f"Unexpected {model.__name__} payload: {e}")
        raise HttpError(
            status, "Unexpected response format", error_code="INVALID_RESPONSE"
        ) from e


def parse_many(model: Type[M], items: Optional[Iterable[Any]], status: int = 200) -> List[M]:
    return [parse_response(model, item, status) for item in items or []]


class BaseStoreService:
    """
    Shared bookkeeping for the resource services.

    Every service exposes `is_loading` and `error` the way the screens expect
    them. `_tracked` flips the loading flag, records the failure message and
    re-raises, so callers still see the typed exception.
    """

    storage_key: Optional[str] = None

    def __init__(
        self,
        client: RemoteResourceClient,
        store: Optional[KeyValueStore] = None,
        guard: Optional[InFlightGuard] = None,
    ):
        self.client = client
        self.guard = guard or InFlightGuard()
        self.persisted = (
            PersistedState(store, self.storage_key)
            if store is not None and self.storage_key
            else None
        )
        self.is_loading = False
        self.error: Optional[str] = None

    @asynccontextmanager
    async def _tracked(self, failure_message: str, flag: str = "is_loading"):
        setattr(self, flag, True)
        self.error = None
        try:
            yield
        except UniTrackError as e:
            self.error = e.message or failure_message
            raise
        except Exception as e:
            self.error = str(e) or failure_message
            raise
        finally:
            setattr(self, flag, False)

    def clear_error(self) -> None:
        self.error = None

    def persisted_fields(self) -> Dict[str, Any]:
        """The subset of state written to storage. Overridden per service."""
        return {}

    async def persist(self) -> None:
        if self.persisted is None:
            return
        await self.persisted.save(self.persisted_fields())

    async def load_persisted(self) -> Dict[str, Any]:
        if self.persisted is None:
            return {}
        return await self.persisted.load()
