"""Outbound HTTP with timeout and exponential-backoff retry.

All outbound calls made over plain HTTP go through :func:`fetch_with_retry`:

  - each attempt is bounded by ``timeout`` seconds; a timeout ends the call
    immediately with status 408 (it is not retried),
  - connection-level failures are retried up to ``retries`` more times,
    sleeping ``2 ** attempt * 100 ms`` between attempts,
  - a non-2xx response is returned as-is (not retried).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from pageturner.core.config import settings

logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 0.1


@dataclass
class ApiResponse:
    data: Any
    error: Optional[Exception]
    status_code: int

    @property
    def ok(self) -> bool:
        return self.error is None


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (0-based)."""
    return (2**attempt) * BACKOFF_BASE_SECONDS


async def fetch_with_retry(
    method: str,
    url: str,
    *,
    json: Any = None,
    headers: Optional[dict[str, str]] = None,
    retries: Optional[int] = None,
    timeout: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ApiResponse:
    """Perform one HTTP request with the retry policy described above."""
    retries = settings.http_retry_attempts if retries is None else retries
    timeout = settings.llm_timeout_seconds if timeout is None else timeout
    request_headers = {"Content-Type": "application/json", **(headers or {})}

    owns_client = client is None
    http = client or httpx.AsyncClient()
    last_error: Optional[Exception] = None
    try:
        for attempt in range(retries + 1):
            try:
                resp = await http.request(
                    method, url, json=json, headers=request_headers, timeout=timeout
                )
            except httpx.TimeoutException:
                logger.warning("%s %s timed out after %.1fs", method, url, timeout)
                return ApiResponse(data=None, error=TimeoutError("Request timeout"), status_code=408)
            except httpx.TransportError as exc:
                last_error = exc
                if attempt < retries:
                    delay = backoff_delay(attempt)
                    logger.info(
                        "%s %s failed (%s); retry %d/%d in %.1fs",
                        method, url, exc, attempt + 1, retries, delay,
                    )
                    await asyncio.sleep(delay)
                continue

            if resp.is_error:
                try:
                    body = resp.json()
                except ValueError:
                    body = None
                message = body.get("message") if isinstance(body, dict) else None
                message = message or f"HTTP error {resp.status_code}: {resp.reason_phrase}"
                return ApiResponse(
                    data=None,
                    error=httpx.HTTPStatusError(message, request=resp.request, response=resp),
                    status_code=resp.status_code,
                )
            data = resp.json() if resp.status_code != 204 else None
            return ApiResponse(data=data, error=None, status_code=resp.status_code)
    finally:
        if owns_client:
            await http.aclose()

    logger.error("%s %s failed after %d attempts: %s", method, url, retries + 1, last_error)
    return ApiResponse(data=None, error=last_error, status_code=0)
