import json

import httpx
import pytest

from company_research.config import ProcessingConfig
from company_research.errors import ApiError, ConfigurationError, NoResponse
from company_research.extraction.openai_client import OpenAIExtractionProvider
from company_research.gateway import HttpGateway
from company_research.search.tavily import RAW_CONTENT_MARKER, TavilySearchProvider


def gateway_for(handler, clock):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpGateway(client=client, clock=clock, config=ProcessingConfig(max_attempts=1))


# ─────────────────────────────────────────────────────────────────────────────
# TAVILY
# ─────────────────────────────────────────────────────────────────────────────

def test_tavily_requires_key(clock):
    with pytest.raises(ConfigurationError, match="API key"):
        TavilySearchProvider(gateway_for(lambda r: httpx.Response(200), clock), "")


def test_tavily_search_payload_and_hits(clock):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"results": [
            {"title": "Acme", "url": "https://acme.co.jp", "content": "snippet",
             "raw_content": "full page text", "score": 0.93},
            {"title": "Other", "url": "https://other.example", "content": "x", "score": 1.7},
        ]})

    provider = TavilySearchProvider(gateway_for(handler, clock), "tvly-key")
    hits = provider.search("Acme 会社概要", max_results=7, search_depth="basic",
                           include_raw_content=True, topic="news", days=30)

    assert requests[0].url == "https://api.tavily.com/search"
    body = json.loads(requests[0].content)
    assert body["api_key"] == "tvly-key"
    assert body["query"] == "Acme 会社概要"
    assert body["max_results"] == 7
    assert body["search_depth"] == "basic"
    assert body["topic"] == "news"
    assert body["days"] == 30
    assert body["include_raw_content"] is True

    assert len(hits) == 2
    assert hits[0].content == f"snippet\n\n{RAW_CONTENT_MARKER}\nfull page text"
    assert hits[0].is_official is False
    assert hits[1].score == 1.0


def test_tavily_empty_results(clock):
    provider = TavilySearchProvider(gateway_for(lambda r: httpx.Response(200, json={}), clock), "k")
    assert provider.search("nothing") == []


def test_tavily_errors_propagate(clock):
    provider = TavilySearchProvider(gateway_for(lambda r: httpx.Response(401, text="bad key"), clock), "k")
    with pytest.raises(ApiError):
        provider.test_connection()


# ─────────────────────────────────────────────────────────────────────────────
# OPENAI
# ─────────────────────────────────────────────────────────────────────────────

def completion(content, usage=None):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if usage:
        body["usage"] = usage
    return httpx.Response(200, json=body)


def test_openai_requires_key(clock):
    with pytest.raises(ConfigurationError):
        OpenAIExtractionProvider(gateway_for(lambda r: httpx.Response(200), clock), "")


def test_openai_complete_request_shape(clock):
    requests = []

    def handler(request):
        requests.append(request)
        return completion('{"companyName": "Acme"}', usage={"prompt_tokens": 10, "completion_tokens": 5})

    provider = OpenAIExtractionProvider(gateway_for(handler, clock), "sk-test")
    reply = provider.complete("system", "user", max_tokens=100, temperature=0.1)

    assert reply == '{"companyName": "Acme"}'
    assert requests[0].url == "https://api.openai.com/v1/chat/completions"
    assert requests[0].headers["Authorization"] == "Bearer sk-test"
    body = json.loads(requests[0].content)
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "user"},
    ]
    assert body["max_tokens"] == 100
    assert body["response_format"] == {"type": "json_object"}
    assert provider.last_usage == {"prompt_tokens": 10, "completion_tokens": 5}
    assert provider.context_window == 128000


def test_openai_json_mode_off(clock):
    requests = []

    def handler(request):
        requests.append(request)
        return completion("ok")

    provider = OpenAIExtractionProvider(gateway_for(handler, clock), "sk-test")
    assert provider.test_connection() is True
    assert "response_format" not in json.loads(requests[0].content)


def test_openai_no_choices(clock):
    provider = OpenAIExtractionProvider(gateway_for(lambda r: httpx.Response(200, json={"choices": []}), clock), "k")
    with pytest.raises(NoResponse):
        provider.complete("s", "u", max_tokens=10, temperature=0.0)


def test_openai_empty_content(clock):
    provider = OpenAIExtractionProvider(gateway_for(lambda r: completion("   "), clock), "k")
    with pytest.raises(NoResponse, match="empty message content"):
        provider.complete("s", "u", max_tokens=10, temperature=0.0)
