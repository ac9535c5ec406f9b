"""ResearchRouter: classify, select, execute with fallback, and batch dispatch."""

import asyncio
from collections import defaultdict
from typing import Any

import structlog

from discovery.core.exceptions import DiscoveryError, ErrorCode, ResearchFailedError, ValidationFailedError
from discovery.research.config_source import ConfigSource, StaticConfigSource
from discovery.research.providers import ProviderAdapter
from discovery.research.routing import (
    candidate_sequence,
    classify_query,
    explain_routing_decision,
    select_provider,
)
from discovery.schemas.research import (
    BatchItemResult,
    ProviderAttempt,
    ProviderResult,
    QueryType,
    ResearchResult,
    RoutingConfig,
    RoutingDecision,
)

logger = structlog.get_logger(__name__)


class ResearchRouter:
    """Routes research queries to registered ProviderAdapters.

    The active RoutingConfig is an immutable snapshot replaced wholesale when
    the ConfigSource reports a change; each call reads the reference once and
    uses that snapshot throughout.
    """

    def __init__(self, config_source: ConfigSource | None = None, provider_timeout: float = 30.0):
        self.config_source = config_source or StaticConfigSource()
        self.provider_timeout = provider_timeout
        self._providers: dict[str, ProviderAdapter] = {}
        self._config: RoutingConfig = self.config_source.load()
        self._watch_task: asyncio.Task | None = None
        self.config_source.on_change(self._apply_config)

    @property
    def config(self) -> RoutingConfig:
        return self._config

    def _apply_config(self, config: RoutingConfig) -> None:
        self._config = config
        logger.info(
            "router_config_applied",
            fallback_order=list(config.fallback_order),
            query_types=[qt.value for qt in config.routing_rules],
        )

    def start_config_watch(self, stop_event: asyncio.Event | None = None) -> asyncio.Task | None:
        """Run the config source's watch loop as a background task.

        Call from a running event loop. Returns None when the source has no
        watch loop; a second call returns the task already running.
        """
        watch = getattr(self.config_source, "watch", None)
        if watch is None:
            return None
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.create_task(watch(stop_event))
            logger.info("router_config_watch_started", source=type(self.config_source).__name__)
        return self._watch_task

    def register_provider(self, name: str, adapter: ProviderAdapter) -> None:
        """Register (or replace) an adapter under a provider name.

        Raises:
            ValueError: If the adapter does not satisfy ProviderAdapter
        """
        if not isinstance(adapter, ProviderAdapter):
            raise ValueError(f"Provider '{name}' does not implement is_available/execute")
        self._providers[name] = adapter
        logger.debug("research_provider_registered", provider=name)

    def classify_query(self, query: str, context: dict[str, Any] | None = None) -> QueryType:
        return classify_query(query, context, self._config)

    def select_provider(self, query_type: QueryType, context: dict[str, Any] | None = None) -> str:
        return select_provider(query_type, context, self._config)

    def explain_routing_decision(self, query_type: QueryType, provider: str) -> str:
        return explain_routing_decision(query_type, provider)

    def resolve(self, query: str, context: dict[str, Any] | None = None) -> RoutingDecision:
        """Classify and select without executing."""
        config = self._config
        query_type = classify_query(query, context, config)
        provider = select_provider(query_type, context, config)
        return RoutingDecision(
            query_type=query_type,
            provider=provider,
            explanation=explain_routing_decision(query_type, provider),
        )

    async def _try_provider(
        self,
        name: str,
        query_type: QueryType,
        query: str,
        context: dict[str, Any],
    ) -> tuple[ProviderAttempt, ProviderResult | None, BaseException | None]:
        """Check availability then execute. Returns (attempt, result or None, error or None)."""
        adapter = self._providers.get(name)
        if adapter is None:
            return ProviderAttempt(provider=name, outcome="unregistered"), None, None

        try:
            available = await asyncio.wait_for(adapter.is_available(context), timeout=self.provider_timeout)
        except asyncio.TimeoutError as exc:
            return ProviderAttempt(provider=name, outcome="timeout", error="availability check timed out"), None, exc
        except Exception as exc:
            return ProviderAttempt(provider=name, outcome="error", error=str(exc)), None, exc
        if not available:
            return ProviderAttempt(provider=name, outcome="unavailable"), None, None

        try:
            raw = await asyncio.wait_for(adapter.execute(query_type, query, context), timeout=self.provider_timeout)
            # A result that does not fit ProviderResult counts as a failed attempt
            result = ProviderResult.model_validate(raw)
        except asyncio.TimeoutError as exc:
            return (
                ProviderAttempt(
                    provider=name, outcome="timeout", error=f"execute exceeded {self.provider_timeout:g}s"
                ),
                None,
                exc,
            )
        except Exception as exc:
            logger.warning("research_provider_failed", provider=name, query=query, error=str(exc))
            return (
                ProviderAttempt(provider=name, outcome="error", error=f"{type(exc).__name__}: {exc}"),
                None,
                exc,
            )

        return ProviderAttempt(provider=name, outcome="success"), result, None

    async def route_query(self, query: str, context: dict[str, Any] | None = None) -> ResearchResult:
        """Route one query: selected provider first, then the fallback chain.

        Unavailable, failing and timed-out providers are skipped alike; execute
        is never called on a provider that reported unavailable.

        Raises:
            ValidationFailedError: If query is empty or context is not an object
            ResearchFailedError: If every candidate provider was exhausted
        """
        return await self._route(query, context or {}, self._config)

    async def _route(self, query: str, context: dict[str, Any], config: RoutingConfig) -> ResearchResult:
        if not isinstance(query, str) or not query.strip():
            raise ValidationFailedError("Research query must be a non-empty string")
        if not isinstance(context, dict):
            raise ValidationFailedError("Research context must be an object")

        query_type = classify_query(query, context, config)
        selected = select_provider(query_type, context, config)

        attempts: list[ProviderAttempt] = []
        last_error: BaseException | None = None
        for name in candidate_sequence(query_type, selected, config):
            attempt, result, error = await self._try_provider(name, query_type, query, context)
            attempts.append(attempt)
            if result is None:
                last_error = error or last_error
                logger.info(
                    "research_provider_skipped",
                    provider=name,
                    outcome=attempt.outcome,
                    query_type=query_type.value,
                )
                continue

            used_fallback = name != selected
            logger.info(
                "research_query_routed",
                provider=name,
                query_type=query_type.value,
                used_fallback=used_fallback,
                attempts=len(attempts),
            )
            return ResearchResult(
                query=query,
                query_type=query_type,
                provider=name,
                selected_provider=selected,
                used_fallback=used_fallback,
                explanation=explain_routing_decision(query_type, name, fallback=used_fallback),
                result=result,
                attempts=attempts,
            )

        logger.error("research_providers_exhausted", query=query, query_type=query_type.value)
        raise ResearchFailedError(
            query,
            [{"provider": a.provider, "reason": a.error or a.outcome} for a in attempts],
            last_error=last_error,
        )

    async def route_batch(self, items: list[dict[str, Any]]) -> list[BatchItemResult]:
        """Route many {query, context} items concurrently, grouped by provider.

        Each item is resolved independently, grouped under its selected
        provider, and all groups run concurrently. Failures are reported per
        item, malformed items included; results come back in input order.
        """
        config = self._config
        groups: dict[str, list[int]] = defaultdict(list)
        outcomes: list[BatchItemResult | None] = [None] * len(items)

        def failed(index: int, query: Any, code: str, message: str) -> BatchItemResult:
            return BatchItemResult(
                index=index,
                query=query if isinstance(query, str) else "",
                success=False,
                error={"code": code, "message": message},
            )

        for index, item in enumerate(items):
            if not isinstance(item, dict):
                outcomes[index] = failed(
                    index, "", ErrorCode.VALIDATION_FAILED.value, "Batch item must be an object with a query"
                )
                continue
            query = item.get("query") or ""
            context = item.get("context") or {}
            if not isinstance(query, str) or not isinstance(context, dict):
                outcomes[index] = failed(
                    index,
                    query,
                    ErrorCode.VALIDATION_FAILED.value,
                    "Batch item query must be a string and context an object",
                )
                continue
            query_type = classify_query(query, context, config)
            groups[select_provider(query_type, context, config)].append(index)

        async def run_one(index: int) -> None:
            query = items[index].get("query") or ""
            try:
                result = await self._route(query, items[index].get("context") or {}, config)
                outcomes[index] = BatchItemResult(
                    index=index, query=query, success=True, provider=result.provider, result=result
                )
            except DiscoveryError as exc:
                outcomes[index] = failed(index, query, exc.code.value, exc.message)
            except Exception as exc:
                logger.exception("research_batch_item_failed", index=index, query=query)
                outcomes[index] = failed(index, query, ErrorCode.RESEARCH_FAILED.value, f"{type(exc).__name__}: {exc}")

        async def run_group(provider: str, indexes: list[int]) -> None:
            logger.debug("research_batch_group_dispatched", provider=provider, size=len(indexes))
            await asyncio.gather(*(run_one(i) for i in indexes))

        await asyncio.gather(*(run_group(p, idx) for p, idx in groups.items()))

        succeeded = sum(1 for o in outcomes if o and o.success)
        logger.info("research_batch_completed", total=len(items), succeeded=succeeded, groups=len(groups))
        return [o for o in outcomes if o is not None]

    def get_routing_stats(self) -> dict[str, Any]:
        document = self._config.to_document()
        return {
            "registeredProviders": sorted(self._providers),
            "routingRules": document["routingRules"],
            "fallbackOrder": document["fallbackOrder"],
        }
