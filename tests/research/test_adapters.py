"""Tests for HTTP provider adapters using httpx.MockTransport."""

import json

import httpx
import pytest
from tenacity import wait_none

from discovery.research import adapters
from discovery.research.adapters import (
    Context7DocsProvider,
    PerplexitySearchProvider,
    ProviderHTTPError,
    RetryableProviderError,
    TavilySearchProvider,
)
from discovery.research.providers import ProviderAdapter
from discovery.schemas.research import QueryType

pytestmark = pytest.mark.unit


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def fast_retries(monkeypatch):
    """Retry immediately instead of backing off."""
    monkeypatch.setattr(adapters, "_request_json", adapters._request_json.retry_with(wait=wait_none()))


@pytest.mark.parametrize(
    "adapter",
    [TavilySearchProvider(), Context7DocsProvider(), PerplexitySearchProvider()],
)
def test_adapters_satisfy_protocol(adapter):
    assert isinstance(adapter, ProviderAdapter)


@pytest.mark.asyncio
async def test_availability_follows_configuration():
    assert await TavilySearchProvider(api_key="").is_available({}) is False
    assert await TavilySearchProvider(api_key="tvly-key").is_available({}) is True
    assert await PerplexitySearchProvider(api_key="").is_available({}) is False
    assert await Context7DocsProvider(enabled=False).is_available({}) is False
    assert await Context7DocsProvider(enabled=True).is_available({}) is True


@pytest.mark.asyncio
async def test_tavily_search_request_and_result():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "answer": "The task app market is growing.",
                "results": [{"title": "Report", "url": "https://example.com/report"}, {"title": "No url"}],
            },
        )

    async with _client(handler) as client:
        provider = TavilySearchProvider(api_key="tvly-key", client=client)
        result = await provider.execute(
            QueryType.MARKET, "task app market size", {"targetMarket": "small teams", "competitors": ["Asana"]}
        )

    assert captured["url"] == "https://api.tavily.com/search"
    assert captured["body"]["api_key"] == "tvly-key"
    assert captured["body"]["search_depth"] == "advanced"
    assert captured["body"]["query"] == "task app market size small teams Asana"
    assert result.summary == "The task app market is growing."
    assert result.sources == ["https://example.com/report"]


@pytest.mark.asyncio
async def test_context7_searches_technologies():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["query"] = request.url.params["query"]
        captured["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200, json={"results": [{"id": "/facebook/react", "title": "React", "description": "UI library"}]}
        )

    async with _client(handler) as client:
        provider = Context7DocsProvider(client=client)
        result = await provider.execute(QueryType.TECHNICAL, "frontend choice", {"technologies": ["React", "Vite"]})

    assert captured["query"] == "React Vite"
    assert captured["auth"] is None
    assert result.summary == "React: UI library"
    assert result.sources == ["https://context7.com/facebook/react"]


@pytest.mark.asyncio
async def test_perplexity_chat_completion():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer pplx-key"
        assert json.loads(request.content)["model"] == "sonar"
        return httpx.Response(
            200,
            json={"choices": [{"message": {"content": "Otters hold hands."}}], "citations": ["https://a.example"]},
        )

    async with _client(handler) as client:
        provider = PerplexitySearchProvider(api_key="pplx-key", client=client)
        result = await provider.execute(QueryType.GENERAL, "otters", {})

    assert result.summary == "Otters hold hands."
    assert result.sources == ["https://a.example"]


@pytest.mark.asyncio
async def test_server_error_is_retried_then_succeeds(fast_retries):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"answer": "ok", "results": []})

    async with _client(handler) as client:
        result = await TavilySearchProvider(api_key="k", client=client).execute(QueryType.GENERAL, "otters", {})

    assert calls["n"] == 3
    assert result.summary == "ok"


@pytest.mark.asyncio
async def test_persistent_rate_limit_reraises_after_three_attempts(fast_retries):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(429, text="slow down")

    async with _client(handler) as client:
        with pytest.raises(RetryableProviderError) as exc_info:
            await TavilySearchProvider(api_key="k", client=client).execute(QueryType.GENERAL, "otters", {})

    assert calls["n"] == 3
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_client_error_is_not_retried(fast_retries):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(401, text="bad key")

    async with _client(handler) as client:
        with pytest.raises(ProviderHTTPError, match="tavily API error: 401"):
            await TavilySearchProvider(api_key="k", client=client).execute(QueryType.GENERAL, "otters", {})

    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_transport_error_is_retried(fast_retries):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("connection refused")
        return httpx.Response(200, json={"choices": [{"message": {"content": "fine"}}]})

    async with _client(handler) as client:
        result = await PerplexitySearchProvider(api_key="k", client=client).execute(QueryType.GENERAL, "q", {})

    assert calls["n"] == 2
    assert result.summary == "fine"
