"""
HTTP client retry policy and error taxonomy tests.
"""

import aiohttp
import pytest

import helpers.http_helper as http_helper
from helpers.http_helper import (
    ForbiddenError,
    HTTPClient,
    HTTPResponse,
    HTTPRetryPolicy,
    NotFoundError,
    PermanentError,
    RetryableError,
    _TransientStatus,
    error_for_status,
    retry_after_seconds,
)

URL = "https://catalog.example.com/api/spots"


@pytest.fixture
def sleeps(monkeypatch):
    recorded: list[float] = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr(http_helper.asyncio, "sleep", fake_sleep)
    return recorded


def scripted_client(outcomes, policy=None):
    """HTTPClient whose single-attempt sender replays ``outcomes`` in order."""
    client = HTTPClient(retry_policy=policy or HTTPRetryPolicy(jitter=0))
    attempts = []

    async def send_once(method, url, policy, **kwargs):
        attempts.append(method)
        outcome = outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    client._send_once = send_once
    return client, attempts


def transient(status, retry_after=None):
    return _TransientStatus(error_for_status(status, URL), retry_after)


class TestErrorForStatus:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (404, NotFoundError),
            (401, ForbiddenError),
            (403, ForbiddenError),
            (429, RetryableError),
            (503, RetryableError),
            (400, PermanentError),
            (422, PermanentError),
        ],
    )
    def test_mapping(self, status, expected):
        error = error_for_status(status, URL)
        assert type(error) is expected
        assert error.status == status


class TestRetryPolicy:
    def test_backoff_doubles_and_caps(self):
        policy = HTTPRetryPolicy(base_delay=1.0, max_delay=5.0, jitter=0)
        assert [policy.backoff(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_only_idempotent_methods_retry(self):
        policy = HTTPRetryPolicy()
        assert policy.allows("get", 503)
        assert not policy.allows("POST", 503)
        assert not policy.allows("GET", 400)

    def test_retry_after_parsing(self):
        assert retry_after_seconds("2.5") == 2.5
        assert retry_after_seconds("600") == 60.0
        assert retry_after_seconds("soon") is None
        assert retry_after_seconds(None) is None


class TestRequest:
    @pytest.mark.asyncio
    async def test_retries_transient_status_then_succeeds(self, sleeps):
        ok = HTTPResponse(status=200, body=b"[]")
        client, attempts = scripted_client([transient(503), transient(429, retry_after=7.0), ok])

        response = await client.request("GET", URL, retry=True)

        assert response is ok
        assert len(attempts) == 3
        assert sleeps == [1.0, 7.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_last_attempt(self, sleeps):
        client, attempts = scripted_client([transient(502), transient(502), transient(502)])

        with pytest.raises(RetryableError) as exc_info:
            await client.request("GET", URL, retry=True)

        assert exc_info.value.status == 502
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_post_is_sent_once(self, sleeps):
        client, attempts = scripted_client([transient(503)])

        with pytest.raises(RetryableError):
            await client.post_json(URL, {"content": "hi"})

        assert attempts == ["POST"]
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_permanent_errors_are_not_retried(self, sleeps):
        client, attempts = scripted_client([NotFoundError("gone", 404)])

        with pytest.raises(NotFoundError):
            await client.request("GET", URL, retry=True)

        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_single_attempt_unless_retry_requested(self, sleeps):
        client, attempts = scripted_client([transient(503), HTTPResponse(status=200, body=b"[]")])

        with pytest.raises(RetryableError):
            await client.get_json(URL)

        assert len(attempts) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_transport_errors_become_retryable(self, sleeps):
        client, attempts = scripted_client(
            [aiohttp.ClientConnectionError("reset")] * 3
        )

        with pytest.raises(RetryableError):
            await client.request("GET", URL, retry=True)

        assert len(attempts) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_get_json_rejects_invalid_body(self, sleeps):
        client, _ = scripted_client([HTTPResponse(status=200, body=b"<html>")])

        with pytest.raises(PermanentError):
            await client.get_json(URL)
