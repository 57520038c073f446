import json
from typing import Any, Dict, Optional

from unitrack.storage.key_value_store import KeyValueStore
from unitrack.utils.logging import get_logger

logger = get_logger()

AUTH_STORAGE_KEY = "auth-storage"
COURSE_STORAGE_KEY = "course-storage"
SESSION_STORAGE_KEY = "session-storage"
HELP_STORAGE_KEY = "help-storage"
SHARE_STORAGE_KEY = "student-share-storage"
ONBOARDING_KEY = "has-seen-onboarding"


class PersistedState:
    """
    Partial snapshot of a service's state stored under one key.

    The stored value is `{"state": {...}}` so the layout matches what the
    mobile app already keeps on devices.
    """

    def __init__(self, store: KeyValueStore, key: str):
        self.store = store
        self.key = key

    async def load(self) -> Dict[str, Any]:
        raw = await self.store.get_item(self.key)
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable cache entry {self.key}")
            return {}
        if not isinstance(parsed, dict):
            return {}
        return parsed.get("state") or {}

    async def save(self, state: Dict[str, Any]) -> None:
        await self.store.set_item(self.key, json.dumps({"state": state}))

    async def clear(self) -> None:
        await self.store.remove_item(self.key)


class AuthTokenProvider:
    """Reads the bearer token out of the persisted auth blob."""

    def __init__(self, store: KeyValueStore):
        self._state = PersistedState(store, AUTH_STORAGE_KEY)

    async def get_token(self) -> Optional[str]:
        try:
            state = await self._state.load()
        except Exception as e:
            logger.error(f"Error getting auth token: {e}")
            return None
        return state.get("token") or None


class OnboardingFlag:
    """One-shot "has seen onboarding" marker."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def has_seen_onboarding(self) -> bool:
        return (await self.store.get_item(ONBOARDING_KEY)) == "true"

    async def mark_onboarding_seen(self) -> None:
        await self.store.set_item(ONBOARDING_KEY, "true")
