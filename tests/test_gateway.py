import json

import httpx
import pytest

from company_research.common.cache import MemoryResponseCache
from company_research.config import ProcessingConfig
from company_research.errors import ApiError, NetworkError, ParseError, RequestTimeout
from company_research.gateway import HttpGateway

URL = "https://api.example.com/search"
CONFIG = ProcessingConfig(rate_limit_delay=1.0, max_attempts=3, retry_delay_base=1.0)


def make_gateway(handler, clock, cache=None, config=CONFIG):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpGateway(client=client, clock=clock, config=config, cache=cache)


def test_post_returns_decoded_json(clock):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"results": [{"title": "x"}]})

    gateway = make_gateway(handler, clock)
    data = gateway.post(URL, json={"query": "acme"}, headers={"X-Test": "1"})

    assert data == {"results": [{"title": "x"}]}
    assert seen[0].method == "POST"
    assert json.loads(seen[0].content) == {"query": "acme"}
    assert seen[0].headers["X-Test"] == "1"
    assert gateway.stats().request_count == 1


def test_retries_server_errors_then_succeeds(clock):
    responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"ok": True})])
    gateway = make_gateway(lambda request: next(responses), clock)

    assert gateway.get(URL) == {"ok": True}
    assert gateway.stats().request_count == 3
    # backoff 1s then 2s; the limiter never has to wait on top of it
    assert clock.sleeps == [1.0, 2.0]


def test_client_errors_raise_immediately(clock):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, text="invalid api key")

    gateway = make_gateway(handler, clock)
    with pytest.raises(ApiError) as excinfo:
        gateway.post(URL, json={})
    assert excinfo.value.status_code == 401
    assert len(calls) == 1


def test_rate_limited_after_retries(clock):
    gateway = make_gateway(lambda request: httpx.Response(429, text="slow down"), clock)
    with pytest.raises(ApiError) as excinfo:
        gateway.get(URL)
    assert excinfo.value.status_code == 429
    assert gateway.stats().request_count == 3


def test_timeout_maps_to_request_timeout(clock):
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    gateway = make_gateway(handler, clock)
    with pytest.raises(RequestTimeout, match="request timeout after 30s"):
        gateway.get(URL, timeout=30)


def test_connect_error_maps_to_network_error(clock):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    gateway = make_gateway(handler, clock, config=ProcessingConfig(max_attempts=1))
    with pytest.raises(NetworkError):
        gateway.get(URL)


def test_non_json_body_is_a_parse_error(clock):
    gateway = make_gateway(lambda request: httpx.Response(200, text="<html>"), clock)
    with pytest.raises(ParseError):
        gateway.get(URL)
    assert gateway.stats().request_count == 1


def test_requests_are_paced(clock):
    gateway = make_gateway(lambda request: httpx.Response(200, json={}), clock)
    gateway.get(URL)
    clock.advance(0.4)
    gateway.get(URL)
    assert clock.sleeps == [pytest.approx(0.6)]


def test_cache_hit_skips_the_network(clock):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"n": len(calls)})

    gateway = make_gateway(handler, clock, cache=MemoryResponseCache(clock=clock))
    first = gateway.post(URL, json={"query": "acme"}, cache_ttl=60)
    second = gateway.post(URL, json={"query": "acme"}, cache_ttl=60)
    third = gateway.post(URL, json={"query": "other"}, cache_ttl=60)

    assert first == second == {"n": 1}
    assert third == {"n": 2}
    assert gateway.stats().cache_hits == 1


def test_cache_failures_are_misses(clock):
    class BrokenCache:
        def get(self, key):
            raise OSError("disk gone")

        def set(self, key, value, ttl_seconds):
            raise OSError("disk gone")

        def clear(self):
            raise OSError("disk gone")

    gateway = make_gateway(lambda request: httpx.Response(200, json={"ok": 1}), clock, cache=BrokenCache())
    assert gateway.get(URL, cache_ttl=60) == {"ok": 1}
    gateway.clear_cache()


def test_cache_disabled_by_config(clock):
    gateway = make_gateway(
        lambda request: httpx.Response(200, json={}), clock,
        cache=MemoryResponseCache(clock=clock),
        config=ProcessingConfig(enable_cache=False),
    )
    assert gateway.cache is None
