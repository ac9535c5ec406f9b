"""ProviderAdapter Protocol: the uniform seam over external research services.

Every adapter provides two methods:
- is_available: cheap readiness check (credentials, feature flag, health)
- execute: run one query and return {summary, raw, sources}

The router only knows this contract; adding a provider means registering a
new adapter, never touching routing control flow.
"""

from typing import Any, Protocol, runtime_checkable

from discovery.schemas.research import ProviderResult, QueryType


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol for research providers consumed by ResearchRouter."""

    async def is_available(self, context: dict[str, Any]) -> bool:
        """Return True if the provider can take a query right now.

        Args:
            context: Routing context bag (stage, focus, technologies, ...)
        """
        ...

    async def execute(self, query_type: QueryType, query: str, context: dict[str, Any]) -> ProviderResult:
        """Run a query against the provider.

        Args:
            query_type: Classification computed by the router
            query: Free-text research query
            context: Routing context bag

        Returns:
            ProviderResult with summary, raw payload and source URLs

        Raises:
            Exception: Any failure; the router treats it as unavailability
        """
        ...
