import httpx
import pytest
import respx

from couponsync.errors import ClientRejected, ParseFailure, RateLimited, ServerFailure, TransportFailure
from couponsync.utils.http import HttpClient, redact
from couponsync.utils.rate_limit import fallback_delay, parse_retry_after, rate_limit_delay
from couponsync.utils.retry import RetryPolicy

BASE = "https://api.example.com/v1/"


def make_policy(sleeper):
    session = httpx.AsyncClient()
    client = HttpClient(BASE, timeout=30, session=session)
    return RetryPolicy(client, provider="example", sleep=sleeper), session


@pytest.mark.asyncio
async def test_retry_after_header_is_honored(sleeper):
    async with respx.mock(assert_all_called=True) as router:
        route = router.get(f"{BASE}items")
        route.side_effect = [
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={"ok": True}),
        ]
        policy, session = make_policy(sleeper)
        async with session:
            result = await policy.request("items")
    assert result == {"ok": True}
    assert route.call_count == 2
    assert sleeper.delays == [7.0]


@pytest.mark.asyncio
async def test_rate_limit_without_header_uses_capped_backoff_and_exhausts(sleeper):
    async with respx.mock() as router:
        route = router.get(f"{BASE}items").mock(return_value=httpx.Response(429))
        policy, session = make_policy(sleeper)
        async with session:
            with pytest.raises(RateLimited) as excinfo:
                await policy.request("items")
    assert route.call_count == 3
    assert sleeper.delays == [60.0, 120.0]
    assert excinfo.value.attempts == 3


@pytest.mark.asyncio
async def test_client_error_is_not_retried(sleeper):
    async with respx.mock() as router:
        route = router.get(f"{BASE}items").mock(return_value=httpx.Response(404))
        policy, session = make_policy(sleeper)
        async with session:
            with pytest.raises(ClientRejected) as excinfo:
                await policy.request("items")
    assert route.call_count == 1
    assert sleeper.delays == []
    assert excinfo.value.status == 404


@pytest.mark.asyncio
async def test_server_errors_use_exponential_backoff(sleeper):
    async with respx.mock() as router:
        route = router.post(f"{BASE}items").mock(return_value=httpx.Response(503))
        policy, session = make_policy(sleeper)
        async with session:
            with pytest.raises(ServerFailure) as excinfo:
                await policy.request("items", "POST", json={"a": 1})
    assert route.call_count == 3
    assert sleeper.delays == [2.0, 4.0]
    assert excinfo.value.provider == "example"


@pytest.mark.asyncio
async def test_server_error_then_success(sleeper):
    async with respx.mock() as router:
        router.get(f"{BASE}items").side_effect = [
            httpx.Response(500),
            httpx.Response(200, json=[1, 2]),
        ]
        policy, session = make_policy(sleeper)
        async with session:
            assert await policy.request("items") == [1, 2]
    assert sleeper.delays == [2.0]


@pytest.mark.asyncio
async def test_malformed_body_fails_immediately(sleeper):
    async with respx.mock() as router:
        route = router.get(f"{BASE}items").mock(return_value=httpx.Response(200, text="<html>"))
        policy, session = make_policy(sleeper)
        async with session:
            with pytest.raises(ParseFailure):
                await policy.request("items")
    assert route.call_count == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_raised(sleeper):
    async with respx.mock() as router:
        route = router.get(f"{BASE}items").mock(side_effect=httpx.ConnectError("refused"))
        policy, session = make_policy(sleeper)
        async with session:
            with pytest.raises(TransportFailure):
                await policy.request("items")
    assert route.call_count == 3
    assert sleeper.delays == [2.0, 4.0]


def test_retry_after_parsing():
    assert parse_retry_after("12") == 12.0
    assert parse_retry_after("0") is None
    assert parse_retry_after("-3") is None
    assert parse_retry_after("soon") is None
    assert parse_retry_after("inf") is None
    assert parse_retry_after(None) is None


def test_rate_limit_delay_falls_back_when_header_unusable():
    assert rate_limit_delay(None, 1) == 60.0
    assert rate_limit_delay("abc", 3) == 120.0
    assert rate_limit_delay("5", 3) == 5.0
    assert fallback_delay(5) == 120.0


def test_redact_drops_query_string():
    assert redact("https://api.example.com/v1/items?token=secret") == "https://api.example.com/v1/items"
