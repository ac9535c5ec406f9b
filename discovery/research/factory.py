"""Build a ResearchRouter wired with the concrete HTTP providers."""

import httpx

from discovery.core.config import Settings, get_settings
from discovery.research.adapters import (
    Context7DocsProvider,
    PerplexitySearchProvider,
    TavilySearchProvider,
)
from discovery.research.config_source import JsonFileConfigSource
from discovery.research.router import ResearchRouter


def build_research_router(
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> ResearchRouter:
    """Create a router backed by the routing config file and the three providers.

    Args:
        settings: Defaults to get_settings()
        client: Shared httpx client; each adapter creates its own when None
    """
    settings = settings or get_settings()
    config_source = JsonFileConfigSource(settings.router_config_path, settings.router_config_poll_seconds)
    router = ResearchRouter(config_source=config_source, provider_timeout=settings.provider_timeout_seconds)

    router.register_provider(
        "tavily",
        TavilySearchProvider(api_key=settings.tavily_api_key, base_url=settings.tavily_base_url, client=client),
    )
    router.register_provider(
        "context7",
        Context7DocsProvider(
            api_key=settings.context7_api_key,
            base_url=settings.context7_base_url,
            client=client,
            enabled=settings.context7_enabled,
        ),
    )
    router.register_provider(
        "perplexity",
        PerplexitySearchProvider(
            api_key=settings.perplexity_api_key,
            base_url=settings.perplexity_base_url,
            client=client,
            model=settings.perplexity_model,
        ),
    )
    return router
