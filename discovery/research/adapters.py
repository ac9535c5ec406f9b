"""HTTP provider adapters: Tavily search, Context7 docs lookup, Perplexity LLM search.

Each adapter is available only when configured (API key / feature flag);
availability never touches the network. Transient failures (transport
errors, 429, 5xx) are retried with exponential backoff before surfacing to
the router, which then treats the provider as failed and falls back.
"""

from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from discovery.schemas.research import ProviderResult, QueryType

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class ProviderHTTPError(Exception):
    """Non-2xx response from a provider API."""

    def __init__(self, provider: str, status_code: int, body: str = ""):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} API error: {status_code} {body[:200]}".rstrip())


class RetryableProviderError(ProviderHTTPError):
    """Provider returned a status worth retrying (rate limit or server error)."""


def _raise_for_status(provider: str, response: httpx.Response) -> None:
    if response.is_success:
        return
    if response.status_code in RETRYABLE_STATUS_CODES:
        raise RetryableProviderError(provider, response.status_code, response.text)
    raise ProviderHTTPError(provider, response.status_code, response.text)


@retry(
    retry=retry_if_exception_type((httpx.TransportError, RetryableProviderError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
    before_sleep=lambda rs: logger.warning(
        "provider_request_retrying",
        attempt=rs.attempt_number,
        sleep_seconds=rs.next_action.sleep,
        error=str(rs.outcome.exception()),
    ),
)
async def _request_json(
    client: httpx.AsyncClient,
    provider: str,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """Send one request and return the decoded JSON body, retrying transient failures."""
    response = await client.request(method, url, **kwargs)
    _raise_for_status(provider, response)
    return response.json()


class _HTTPAdapter:
    name = "http"

    def __init__(self, api_key: str = "", base_url: str = "", client: httpx.AsyncClient | None = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=5.0))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def is_available(self, context: dict[str, Any]) -> bool:
        return bool(self.api_key)


class TavilySearchProvider(_HTTPAdapter):
    """Web/market search via POST {base}/search."""

    name = "tavily"

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.tavily.com",
        client: httpx.AsyncClient | None = None,
        max_results: int = 10,
    ):
        super().__init__(api_key, base_url, client)
        self.max_results = max_results

    def _build_query(self, query_type: QueryType, query: str, context: dict[str, Any]) -> str:
        if query_type in (QueryType.MARKET, QueryType.COMPETITIVE):
            extras = [context.get("targetMarket"), context.get("projectType")]
            competitors = context.get("competitors") or []
            if competitors:
                extras.append(" ".join(competitors[:3]))
            suffix = " ".join(str(e) for e in extras if e)
            if suffix and suffix.lower() not in query.lower():
                return f"{query} {suffix}"
        return query

    async def execute(self, query_type: QueryType, query: str, context: dict[str, Any]) -> ProviderResult:
        payload = {
            "api_key": self.api_key,
            "query": self._build_query(query_type, query, context),
            "search_depth": "advanced",
            "max_results": self.max_results,
            "include_answer": True,
        }
        data = await _request_json(self.client, self.name, "POST", f"{self.base_url}/search", json=payload)
        results = data.get("results") or []
        summary = data.get("answer") or "; ".join(r.get("title", "") for r in results[:3])
        return ProviderResult(
            summary=summary,
            raw=data,
            sources=[r["url"] for r in results if r.get("url")],
        )


class Context7DocsProvider(_HTTPAdapter):
    """Library/documentation lookup via GET {base}/search?query=."""

    name = "context7"

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://context7.com/api/v1",
        client: httpx.AsyncClient | None = None,
        enabled: bool = True,
    ):
        super().__init__(api_key, base_url, client)
        self.enabled = enabled

    async def is_available(self, context: dict[str, Any]) -> bool:
        return self.enabled

    async def execute(self, query_type: QueryType, query: str, context: dict[str, Any]) -> ProviderResult:
        technologies = context.get("technologies") or []
        search_term = " ".join(technologies) if technologies else query
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        data = await _request_json(
            self.client,
            self.name,
            "GET",
            f"{self.base_url}/search",
            params={"query": search_term},
            headers=headers,
        )
        libraries = data.get("results") or []
        if libraries:
            summary = "; ".join(
                f"{lib.get('title', lib.get('id', 'unknown'))}: {lib.get('description', '')}".strip(": ")
                for lib in libraries[:3]
            )
        else:
            summary = f"No documented libraries found for '{search_term}'"
        return ProviderResult(
            summary=summary,
            raw=data,
            sources=[f"https://context7.com{lib['id']}" for lib in libraries if lib.get("id")],
        )


class PerplexitySearchProvider(_HTTPAdapter):
    """General-purpose LLM search via POST {base}/chat/completions."""

    name = "perplexity"

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.perplexity.ai",
        client: httpx.AsyncClient | None = None,
        model: str = "sonar",
    ):
        super().__init__(api_key, base_url, client)
        self.model = model

    async def execute(self, query_type: QueryType, query: str, context: dict[str, Any]) -> ProviderResult:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": f"Research and provide comprehensive information about: {query}"}
            ],
            "max_tokens": 2000,
            "temperature": 0.1,
        }
        data = await _request_json(
            self.client,
            self.name,
            "POST",
            f"{self.base_url}/chat/completions",
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        choices = data.get("choices") or []
        summary = choices[0]["message"]["content"] if choices else ""
        return ProviderResult(summary=summary, raw=data, sources=list(data.get("citations") or []))
