"""
Shared aiohttp client for the catalog, attachment downloads and webhooks.

One session, a semaphore bounding in-flight requests, and an opt-in retry
policy for idempotent calls (callers pass ``retry=True``). Failures surface as
one of:

- NotFoundError (404)
- ForbiddenError (401/403)
- RetryableError (408/429/5xx or transport errors, after the last attempt)
- PermanentError (any other non-2xx status, or an undecodable JSON body)
"""

import asyncio
import json
import random
from dataclasses import dataclass
from typing import Any

import aiohttp

from utils.logging import get_logger

logger = get_logger(__name__)

# Longest Retry-After we are willing to honour
MAX_RETRY_AFTER_SECONDS = 60.0


class HTTPError(Exception):
    """Base class for HTTP failures raised by HTTPClient."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NotFoundError(HTTPError):
    """The resource is gone (404)."""


class ForbiddenError(HTTPError):
    """Credentials were rejected (401/403)."""


class RetryableError(HTTPError):
    """A transient failure that outlasted every attempt."""


class PermanentError(HTTPError):
    """A failure retrying will not fix."""


@dataclass(frozen=True)
class HTTPRetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.25
    retryable_statuses: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})
    idempotent_methods: frozenset[str] = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS"})

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``: doubling, capped, jittered."""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        if self.jitter:
            delay += random.uniform(-delay * self.jitter, delay * self.jitter)
        return max(0.1, delay)

    def allows(self, method: str, status: int | None = None) -> bool:
        if method.upper() not in self.idempotent_methods:
            return False
        return status is None or status in self.retryable_statuses


DEFAULT_RETRY_POLICY = HTTPRetryPolicy()
NO_RETRY_POLICY = HTTPRetryPolicy(max_attempts=1)


@dataclass
class HTTPResponse:
    """Body and status of a completed request."""

    status: int
    body: bytes
    content_type: str = ""

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def error_for_status(status: int, url: str, policy: HTTPRetryPolicy = DEFAULT_RETRY_POLICY) -> HTTPError:
    """Map a non-2xx status to the matching HTTPError subclass."""
    if status == 404:
        return NotFoundError(f"Resource not found: {url}", status)
    if status in (401, 403):
        return ForbiddenError(f"Access forbidden: {url}", status)
    if status in policy.retryable_statuses:
        return RetryableError(f"HTTP {status} for {url}", status)
    return PermanentError(f"HTTP {status} for {url}", status)


def retry_after_seconds(value: str | None) -> float | None:
    """Parse a numeric Retry-After header, capped at MAX_RETRY_AFTER_SECONDS."""
    if not value:
        return None
    try:
        return min(max(float(value), 0.0), MAX_RETRY_AFTER_SECONDS)
    except ValueError:
        return None


class _TransientStatus(Exception):
    def __init__(self, error: HTTPError, retry_after: float | None) -> None:
        super().__init__(str(error))
        self.error = error
        self.retry_after = retry_after


class HTTPClient:
    """aiohttp session wrapper used by every outbound call the bot makes."""

    def __init__(
        self,
        timeout: int = 15,
        concurrency: int = 4,
        user_agent: str | None = None,
        retry_policy: HTTPRetryPolicy | None = None,
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._sem = asyncio.Semaphore(concurrency)
        self._session: aiohttp.ClientSession | None = None
        self._user_agent = user_agent or "CaveSpotsBot/1.0"
        self._retry_policy = retry_policy or DEFAULT_RETRY_POLICY

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout, raise_for_status=False)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("HTTP session closed")

    async def _send_once(
        self,
        method: str,
        url: str,
        policy: HTTPRetryPolicy,
        **kwargs: Any,
    ) -> HTTPResponse:
        async with self._sem:
            session = await self._get_session()
            async with session.request(method, url, **kwargs) as resp:
                if 200 <= resp.status < 300:
                    body = await resp.read()
                    logger.debug(f"HTTP {method} {url} -> {resp.status} ({len(body)} bytes)")
                    return HTTPResponse(
                        status=resp.status,
                        body=body,
                        content_type=resp.headers.get("Content-Type", ""),
                    )

                error = error_for_status(resp.status, url, policy)
                if isinstance(error, RetryableError):
                    raise _TransientStatus(error, retry_after_seconds(resp.headers.get("Retry-After")))
                logger.warning(f"HTTP {method} {url} -> {resp.status}")
                raise error

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        retry: bool = False,
    ) -> HTTPResponse:
        """
        Perform a request and return the response of the first 2xx attempt.

        Transient statuses and transport errors are retried with backoff when
        ``retry`` is set and the method is idempotent. A 429 waits for its
        Retry-After instead of the computed backoff.

        Raises:
            NotFoundError, ForbiddenError, PermanentError: Immediately.
            RetryableError: After the last attempt.
        """
        method = method.upper()
        policy = self._retry_policy if retry else NO_RETRY_POLICY
        kwargs = {
            "params": params,
            "headers": {"User-Agent": self._user_agent, **(headers or {})},
            "json": json_body,
        }
        last_error: Exception | None = None

        for attempt in range(policy.max_attempts):
            can_retry = attempt < policy.max_attempts - 1
            try:
                return await self._send_once(method, url, policy, **kwargs)
            except _TransientStatus as e:
                if not (can_retry and policy.allows(method, e.error.status)):
                    logger.warning(f"HTTP {method} {url} -> {e.error.status}")
                    raise e.error from None
                delay = e.retry_after if e.retry_after is not None else policy.backoff(attempt)
                reason = f"status {e.error.status}"
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_error = e
                if not (can_retry and policy.allows(method)):
                    logger.warning(f"HTTP {method} {url} failed: {e!r}")
                    break
                delay = policy.backoff(attempt)
                reason = repr(e)

            logger.info(
                f"HTTP {method} {url} {reason}; retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{policy.max_attempts})"
            )
            await asyncio.sleep(delay)

        raise RetryableError(f"Request to {url} failed: {last_error!r}") from last_error

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        retry: bool = False,
    ) -> Any:
        """GET and decode JSON; an undecodable body is a PermanentError."""
        response = await self.request("GET", url, params=params, headers=headers, retry=retry)
        try:
            return response.json()
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PermanentError(f"Invalid JSON from {url}: {e}", response.status) from e

    async def get_bytes(
        self, url: str, *, headers: dict[str, str] | None = None, retry: bool = False
    ) -> bytes:
        response = await self.request("GET", url, headers=headers, retry=retry)
        return response.body

    async def post_json(
        self,
        url: str,
        payload: Any,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> HTTPResponse:
        """POST a JSON payload once; POST is never retried."""
        return await self.request(
            "POST", url, params=params, headers=headers, json_body=payload, retry=False
        )
