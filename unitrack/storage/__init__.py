from .key_value_store import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from .persisted_state import AuthTokenProvider, OnboardingFlag, PersistedState

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "PersistedState",
    "AuthTokenProvider",
    "OnboardingFlag",
]
