from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import ConfigurationError, RPCError, RPCResponseError, SlotSkipped


JSON_RPC_SERVER_ERROR_SLOT_SKIPPED = -32007
JSON_RPC_SERVER_ERROR_LONG_TERM_STORAGE_SLOT_SKIPPED = -32009
SLOT_SKIPPED_CODES = {
    JSON_RPC_SERVER_ERROR_SLOT_SKIPPED,
    JSON_RPC_SERVER_ERROR_LONG_TERM_STORAGE_SLOT_SKIPPED,
}
RETRY_BACKOFF_SECONDS = 1.0
MAX_RETRY_BACKOFF_SECONDS = 12.0
RETRY_BACKOFF_JITTER = 0.25
RATE_LIMIT_STATUS_CODES = {429}
ENDPOINT_ROTATION_STATUS_CODES = {429, 503}


def summarize_payload(payload: Any, limit: int = 400) -> str:
    try:
        serialized = json.dumps(payload, default=str)
    except TypeError:
        serialized = str(payload)
    if len(serialized) > limit:
        return serialized[: limit - 3] + "..."
    return serialized


class SolanaRPCClient:
    """Sequential JSON-RPC client.

    By default every failure is raised on the first attempt. With
    ``max_retries`` above one, HTTP and connection failures are retried on
    the next endpoint; JSON-RPC error objects are always raised straight away.
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        timeout: float = 35.0,
        max_retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        normalized: List[str] = []
        for endpoint in endpoints:
            value = str(endpoint).strip()
            if value and value not in normalized:
                normalized.append(value)
        if not normalized:
            raise ConfigurationError("At least one RPC endpoint must be provided")

        self.endpoints = normalized
        self._current_index = 0
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0
        self._unhealthy: Dict[str, float] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    async def __aenter__(self) -> "SolanaRPCClient":
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def endpoint(self) -> str:
        return self.endpoints[self._current_index]

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if self._client is None:
            raise RuntimeError("RPC client not initialized; use async context manager")

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": params or [],
        }

        attempt = 0
        while True:
            attempt += 1
            endpoint = self.endpoint
            status_code: Optional[int] = None
            try:
                self.logger.debug(
                    "RPC Request -> method=%s attempt=%d endpoint=%s payload=%s",
                    method,
                    attempt,
                    endpoint,
                    summarize_payload(payload),
                )
                response = await self._client.post(endpoint, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code in RATE_LIMIT_STATUS_CODES:
                    self.logger.info("Rate limit on %s attempt=%d via %s", method, attempt, endpoint)
                else:
                    self.logger.warning("HTTP error on %s attempt %d via %s: %s", method, attempt, endpoint, exc)
                if status_code in ENDPOINT_ROTATION_STATUS_CODES:
                    self._mark_endpoint_unhealthy(endpoint, 5.0)
                else:
                    self._mark_endpoint_unhealthy(endpoint, 15.0)
                if attempt >= self._max_retries:
                    raise RPCError(f"HTTP error on method {method}: {exc}") from exc
            except httpx.RequestError as exc:
                self.logger.warning("Request error on %s attempt %d via %s: %s", method, attempt, endpoint, exc)
                self._mark_endpoint_unhealthy(endpoint, 30.0)
                if attempt >= self._max_retries:
                    raise RPCError(f"Request error on method {method}: {exc}") from exc
            except ValueError as exc:
                raise RPCError(f"Malformed JSON from {endpoint} on method {method}: {exc}") from exc
            else:
                self.logger.debug(
                    "RPC Response <- method=%s status=%s endpoint=%s body=%s",
                    method,
                    response.status_code,
                    endpoint,
                    summarize_payload(data),
                )
                self._unhealthy.pop(endpoint, None)
                error = data.get("error") if isinstance(data, dict) else None
                if error:
                    raise self._response_error(method, error)
                return data.get("result") if isinstance(data, dict) else None

            rotated = self._rotate_endpoint()
            if rotated and rotated != endpoint:
                self.logger.warning("Switching RPC endpoint to %s", rotated)
            await asyncio.sleep(self._compute_retry_delay(attempt, status_code))

    @staticmethod
    def _response_error(method: str, error: Any) -> RPCResponseError:
        if not isinstance(error, dict):
            return RPCResponseError(method, None, str(error))
        code = error.get("code")
        message = str(error.get("message", "Unknown RPC error"))
        if code in SLOT_SKIPPED_CODES:
            return SlotSkipped(method, code, message, error.get("data"))
        return RPCResponseError(method, code, message, error.get("data"))

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _rotate_endpoint(self) -> Optional[str]:
        if len(self.endpoints) == 1:
            return self.endpoints[0]
        self._cleanup_unhealthy()
        for _ in range(len(self.endpoints)):
            self._current_index = (self._current_index + 1) % len(self.endpoints)
            candidate = self.endpoints[self._current_index]
            if candidate not in self._unhealthy:
                return candidate
        return self.endpoint

    def _mark_endpoint_unhealthy(self, endpoint: str, duration: float) -> None:
        self._unhealthy[endpoint] = time.monotonic() + max(duration, 1.0)

    def _cleanup_unhealthy(self) -> None:
        now = time.monotonic()
        expired = [endpoint for endpoint, expiry in self._unhealthy.items() if expiry <= now]
        for endpoint in expired:
            self._unhealthy.pop(endpoint, None)

    def _compute_retry_delay(self, attempt: int, status_code: Optional[int]) -> float:
        if status_code in RATE_LIMIT_STATUS_CODES:
            backoff = RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
        else:
            backoff = RETRY_BACKOFF_SECONDS * attempt
        delay = min(backoff, MAX_RETRY_BACKOFF_SECONDS)
        return delay + random.uniform(0.0, RETRY_BACKOFF_JITTER)
