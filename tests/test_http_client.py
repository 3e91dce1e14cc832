"""Tests for the fetch client retry loop and the rate limiter."""

import asyncio
import json

import httpx
import pytest

from hookah_harvester.config import ConfigurationError
from hookah_harvester.ingest.http_client import (
    FetchClient,
    HttpError,
    NetworkError,
    RetriesExhaustedError,
    RetryPolicy,
    build_url,
    is_not_found,
)
from hookah_harvester.ingest.rate_limiter import RateLimiter


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [0, 1, 3])
async def test_constant_503_makes_k_plus_one_attempts(make_client, max_retries):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="busy")

    client = make_client(handler, max_retries=max_retries)

    with pytest.raises(RetriesExhaustedError) as exc_info:
        await client.fetch("/tobaccos/brands")

    assert len(calls) == max_retries + 1
    assert exc_info.value.attempts == max_retries + 1
    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_404_is_not_retried(make_client):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    client = make_client(handler, max_retries=3)

    with pytest.raises(HttpError) as exc_info:
        await client.fetch("/tobaccos/missing")

    assert len(calls) == 1
    assert exc_info.value.status == 404
    assert is_not_found(exc_info.value)


@pytest.mark.asyncio
async def test_429_is_retried_then_succeeds(make_client):
    responses = iter([httpx.Response(429), httpx.Response(500), httpx.Response(200, text="<html>ok</html>")])

    client = make_client(lambda request: next(responses), max_retries=3)
    response = await client.fetch("/tobaccos/sarma")

    assert response.status == 200
    assert response.body == "<html>ok</html>"
    assert response.url == "https://htreviews.org/tobaccos/sarma"


@pytest.mark.asyncio
async def test_exponential_backoff_delays(make_client, fake_sleep):
    client = make_client(lambda request: httpx.Response(502), max_retries=3, backoff=1.0)

    with pytest.raises(RetriesExhaustedError):
        await client.fetch("/")

    assert fake_sleep.calls == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_fixed_backoff_delays(make_client, fake_sleep):
    client = make_client(lambda request: httpx.Response(502), max_retries=2, backoff=0.5, exponential=False)

    with pytest.raises(RetriesExhaustedError):
        await client.fetch("/")

    assert fake_sleep.calls == [0.5, 0.5]


@pytest.mark.asyncio
async def test_transport_errors_become_network_errors(make_client):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    client = make_client(handler, max_retries=1)

    with pytest.raises(RetriesExhaustedError) as exc_info:
        await client.fetch("/tobaccos/sarma")

    assert len(calls) == 2
    assert isinstance(exc_info.value.last_error, NetworkError)
    assert isinstance(exc_info.value.last_error.cause, httpx.ConnectTimeout)
    assert exc_info.value.status is None


@pytest.mark.asyncio
async def test_query_params_are_sent(make_client):
    seen = []

    def handler(request):
        seen.append(dict(request.url.params))
        return httpx.Response(200, text="")

    client = make_client(handler)
    await client.fetch("/tobaccos/sarma", params={"offset": 20, "limit": 20})

    assert seen == [{"offset": "20", "limit": "20"}]


@pytest.mark.asyncio
async def test_post_json_sends_payload(make_client):
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json=[{"url": "/tobaccos/sarma/klassicheskaya/zima"}])

    client = make_client(handler)
    response = await client.post_json("/postData", {"action": "objectByBrand", "data": {"id": "42"}})

    assert seen == [("POST", "/postData", {"action": "objectByBrand", "data": {"id": "42"}})]
    assert response.json() == [{"url": "/tobaccos/sarma/klassicheskaya/zima"}]


def test_rejects_non_http_base_url():
    with pytest.raises(ConfigurationError):
        FetchClient(base_url="ftp://htreviews.org")


def test_rejects_negative_retries():
    with pytest.raises(ConfigurationError):
        FetchClient(base_url="https://htreviews.org", retry_policy=RetryPolicy(max_retries=-1))


def test_build_url():
    assert build_url("https://htreviews.org/", "/tobaccos//sarma") == "https://htreviews.org/tobaccos/sarma"
    assert build_url("https://htreviews.org", "") == "https://htreviews.org"
    assert build_url("https://htreviews.org", "https://cdn.example/x") == "https://cdn.example/x"


@pytest.mark.parametrize("status,retryable", [(429, True), (500, True), (501, True), (503, True), (404, False), (400, False)])
def test_http_error_retryable(status, retryable):
    assert HttpError(status, f"HTTP {status}").retryable is retryable


class TestRateLimiter:
    """Spacing checks against a fake clock."""

    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self, fake_clock, fake_sleep):
        limiter = RateLimiter(1.0, clock=fake_clock, sleep=fake_sleep)

        async with limiter.slot() as waited:
            assert waited == 0.0
        assert fake_sleep.calls == []

    @pytest.mark.asyncio
    async def test_back_to_back_requests_are_spaced(self, fake_clock, fake_sleep):
        limiter = RateLimiter(1.0, clock=fake_clock, sleep=fake_sleep)

        async with limiter.slot():
            pass
        fake_clock.advance(0.25)
        async with limiter.slot() as waited:
            pass

        assert waited == pytest.approx(0.75)
        assert fake_sleep.calls == [pytest.approx(0.75)]

    @pytest.mark.asyncio
    async def test_spacing_counts_from_request_end(self, fake_clock, fake_sleep):
        limiter = RateLimiter(1.0, clock=fake_clock, sleep=fake_sleep)

        async with limiter.slot():
            fake_clock.advance(3.0)  # slow response
        async with limiter.slot() as waited:
            pass

        assert waited == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_failed_request_still_counts(self, fake_clock, fake_sleep):
        limiter = RateLimiter(1.0, clock=fake_clock, sleep=fake_sleep)

        with pytest.raises(RuntimeError):
            async with limiter.slot():
                raise RuntimeError("boom")
        async with limiter.slot() as waited:
            pass

        assert waited == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_no_wait_after_idle_period(self, fake_clock, fake_sleep):
        limiter = RateLimiter(1.0, clock=fake_clock, sleep=fake_sleep)

        async with limiter.slot():
            pass
        fake_clock.advance(5.0)

        async with limiter.slot() as waited:
            assert waited == 0.0

    @pytest.mark.asyncio
    async def test_reset_clears_clock(self, fake_clock, fake_sleep):
        limiter = RateLimiter(1.0, clock=fake_clock, sleep=fake_sleep)

        async with limiter.slot():
            pass
        limiter.reset()

        assert limiter.last_request_at is None
        async with limiter.slot() as waited:
            assert waited == 0.0

    @pytest.mark.asyncio
    async def test_client_requests_go_through_limiter(self, make_client, fake_sleep):
        client = make_client(lambda request: httpx.Response(200, text=""), min_delay=2.0)

        await client.fetch("/a")
        await client.fetch("/b")
        await client.fetch("/c")

        assert fake_sleep.calls == [pytest.approx(2.0), pytest.approx(2.0)]

        client.reset_rate_limiter()
        await client.fetch("/d")
        assert len(fake_sleep.calls) == 2

    @pytest.mark.asyncio
    async def test_concurrent_fetches_are_spaced_end_to_start(self, make_client, fake_clock):
        spans = []

        async def handler(request):
            started = fake_clock()
            await asyncio.sleep(0)
            fake_clock.advance(0.3)
            spans.append((started, fake_clock()))
            return httpx.Response(200, text="ok")

        client = make_client(handler, min_delay=0.2)

        await asyncio.gather(*(client.fetch(f"/p{i}") for i in range(3)))

        assert len(spans) == 3
        gaps = [nxt[0] - prev[1] for prev, nxt in zip(spans, spans[1:])]
        assert gaps == [pytest.approx(0.2), pytest.approx(0.2)]
