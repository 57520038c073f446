import asyncio
import copy
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import httpx

from unitrack.services.response_classifiers import SuccessPredicate, accept_any
from unitrack.storage.persisted_state import AuthTokenProvider
from unitrack.utils.concurrency import RequestCoalescer
from unitrack.utils.context import reset_request_id, set_request_id
from unitrack.utils.errors import (
    AuthError,
    HttpError,
    NetworkError,
    UnsuccessfulResponseError,
)
from unitrack.utils.logging import get_logger

Payload = Dict[str, Any]


def server_message_of(payload: Payload) -> Optional[str]:
    """The backend reports failures under `error` or `message`."""
    for key in ("error", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def error_for_status(status: int, payload: Payload) -> HttpError:
    message = server_message_of(payload)
    if status == 401:
        return AuthError(status, message, payload)
    return HttpError(status, message, payload)


class RemoteResourceClient:
    """Thin async request helper for the UniTrack backend."""

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[AuthTokenProvider] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        coalescer: Optional[RequestCoalescer] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.coalescer = coalescer
        self._client = httpx.AsyncClient(
            base_url=self.base_url + "/",
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _resolve_token(self, token: Optional[str], authenticate: bool) -> Optional[str]:
        if token or not authenticate:
            return token
        if self.token_provider is None:
            return None
        return await self.token_provider.get_token()

    async def _send(
        self,
        method: str,
        path: str,
        body: Any,
        params: Optional[Dict[str, Any]],
        token: Optional[str],
    ) -> Tuple[int, Optional[Payload]]:
        request_id = str(uuid.uuid4())
        context_token = set_request_id(request_id)
        logger = get_logger()
        try:
            headers = {"X-Request-ID": request_id}
            if token:
                headers["Authorization"] = f"Bearer {token}"

            started = time.perf_counter()
            try:
                response = await self._client.request(
                    method,
                    path.lstrip("/"),
                    json=body,
                    params=params,
                    headers=headers,
                )
            except httpx.TimeoutException as e:
                logger.warning(f"{method} {path} timed out: {e}")
                raise NetworkError("The request timed out", "NETWORK_TIMEOUT") from e
            except httpx.TransportError as e:
                logger.warning(f"{method} {path} failed: {e}")
                raise NetworkError(str(e) or "Network request failed") from e

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(f"{method} {path} -> {response.status_code} ({elapsed_ms:.0f} ms)")

            try:
                payload = response.json() if response.content else {}
            except ValueError:
                payload = None

            if isinstance(payload, list):
                payload = {"data": payload}
            elif payload is not None and not isinstance(payload, dict):
                payload = {"data": payload}

            return response.status_code, payload
        finally:
            reset_request_id(context_token)

    async def _send_coalesced(
        self,
        method: str,
        path: str,
        body: Any,
        params: Optional[Dict[str, Any]],
        token: Optional[str],
    ) -> Tuple[int, Optional[Payload]]:
        if method != "GET" or self.coalescer is None:
            return await self._send(method, path, body, params, token)

        key = (path, tuple(sorted((params or {}).items())), token)
        try:
            result = await self.coalescer.run(
                key, lambda: self._send(method, path, body, params, token)
            )
        except asyncio.TimeoutError:
            return await self._send(method, path, body, params, token)
        return copy.deepcopy(result)

    async def raw_call(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        authenticate: bool = True,
    ) -> Tuple[int, Payload]:
        """Send a request and return `(status, payload)` without judging the status."""
        params = {k: v for k, v in (params or {}).items() if v is not None} or None
        token = await self._resolve_token(token, authenticate)
        status, payload = await self._send_coalesced(method.upper(), path, body, params, token)
        return status, payload or {}

    async def call(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        authenticate: bool = True,
        success: SuccessPredicate = accept_any,
        failure_message: str = "Request failed",
    ) -> Payload:
        """
        Send a request and return the parsed JSON body.

        Raises:
            NetworkError: transport failure or timeout.
            AuthError: the backend answered 401.
            HttpError: any other non-2xx status, or a 2xx body that is not JSON.
            UnsuccessfulResponseError: a 2xx body rejected by `success`.
        """
        method = method.upper()
        params = {k: v for k, v in (params or {}).items() if v is not None} or None
        token = await self._resolve_token(token, authenticate)
        status, payload = await self._send_coalesced(method, path, body, params, token)

        if not 200 <= status < 300:
            payload = payload or {}
            get_logger().warning(
                f"{method} {path} returned {status}: {server_message_of(payload)}"
            )
            raise error_for_status(status, payload)

        if payload is None:
            raise HttpError(
                status,
                "Invalid JSON response from server",
                error_code="INVALID_RESPONSE",
            )

        if not success(payload):
            raise UnsuccessfulResponseError(
                status, payload.get("message") or failure_message, payload
            )

        return payload
