import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Set

from unitrack.utils.errors import ActionInProgressError
from unitrack.utils.logging import get_logger

logger = get_logger()


class InFlightGuard:
    """Per-action busy flag that rejects a second trigger while the first runs."""

    def __init__(self):
        self._active: Set[str] = set()

    def is_active(self, action: str) -> bool:
        return action in self._active

    @asynccontextmanager
    async def __call__(self, action: str):
        if action in self._active:
            logger.warning(f"Ignoring duplicate trigger of {action}")
            raise ActionInProgressError(action)
        self._active.add(action)
        try:
            yield
        finally:
            self._active.discard(action)


class RequestCoalescer:
    """
    Shares one in-flight result between concurrent callers asking for the same key.

    The first caller runs the factory. Later callers await the same future for at
    most `timeout` seconds; on timeout they get `fallback()` when one is given,
    otherwise `asyncio.TimeoutError` propagates.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._pending: Dict[Hashable, asyncio.Future] = {}

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    async def run(
        self,
        key: Hashable,
        factory: Callable[[], Awaitable[Any]],
        fallback: Optional[Callable[[], Any]] = None,
    ) -> Any:
        existing = self._pending.get(key)
        if existing is not None:
            try:
                return await asyncio.wait_for(asyncio.shield(existing), self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out waiting for pending request {key!r}")
                if fallback is None:
                    raise
                return fallback()

        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            result = await factory()
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unobserved failure is not reported by the loop
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if not future.done():
                future.cancel()
            self._pending.pop(key, None)
