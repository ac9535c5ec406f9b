"""Deterministic query classification and provider selection.

Pure functions of (query, context, config) -- no I/O, no router state.
"""

from typing import Any

from discovery.domain.stages import DiscoveryStage
from discovery.schemas.research import QueryType, RoutingCondition, RoutingConfig

COMPETITIVE_FOCUS_VALUES = frozenset({"competitive", "competitors"})

# Context keys never scanned for classification keywords.
_UNSCANNED_CONTEXT_KEYS = frozenset({"stage", "focus", "apiKey", "api_key"})


def _context_text(context: dict[str, Any]) -> str:
    """Flatten string values of the context bag into one lowercase string.

    Only values are scanned; key names such as "targetMarket" would
    otherwise bias every query toward the market class.
    """
    parts: list[str] = []

    def collect(value: Any) -> None:
        if isinstance(value, str):
            parts.append(value)
        elif isinstance(value, dict):
            for nested in value.values():
                collect(nested)
        elif isinstance(value, (list, tuple, set)):
            for nested in value:
                collect(nested)

    for key, value in context.items():
        if key not in _UNSCANNED_CONTEXT_KEYS:
            collect(value)
    return " ".join(parts).lower()


def count_keyword_matches(text: str, keywords: tuple[str, ...]) -> int:
    """Number of distinct keywords occurring as case-insensitive substrings."""
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def classify_query(query: str, context: dict[str, Any] | None, config: RoutingConfig) -> QueryType:
    """Classify a query into technical | market | competitive | hybrid | general.

    Precedence (first match wins):
        1. stage == technical-feasibility -> technical
        2. stage == market-research -> market
        3. focus in {competitive, competitors} -> competitive
        4. keyword counts over query + context values:
           technical > market -> technical, market > technical -> market,
           equal and positive -> hybrid, both zero -> general
    """
    context = context or {}
    stage = context.get("stage")

    if stage == DiscoveryStage.TECHNICAL_FEASIBILITY.value:
        return QueryType.TECHNICAL
    if stage == DiscoveryStage.MARKET_RESEARCH.value:
        return QueryType.MARKET
    if context.get("focus") in COMPETITIVE_FOCUS_VALUES:
        return QueryType.COMPETITIVE

    text = f"{query} {_context_text(context)}"
    technical = count_keyword_matches(text, config.technical_keywords)
    market = count_keyword_matches(text, config.market_keywords)

    if technical > market:
        return QueryType.TECHNICAL
    if market > technical:
        return QueryType.MARKET
    if technical > 0:
        return QueryType.HYBRID
    return QueryType.GENERAL


def evaluate_condition(condition: RoutingCondition, context: dict[str, Any]) -> bool:
    """Whether a rule condition holds. Fallback rules never match directly."""
    if condition == RoutingCondition.ALWAYS:
        return True
    if condition == RoutingCondition.MARKET_FOCUS:
        return context.get("focus") == "market" or context.get("stage") == DiscoveryStage.MARKET_RESEARCH.value
    if condition == RoutingCondition.TECHNICAL_FOCUS:
        return (
            context.get("focus") == "technical"
            or context.get("stage") == DiscoveryStage.TECHNICAL_FEASIBILITY.value
        )
    return False


def select_provider(query_type: QueryType, context: dict[str, Any] | None, config: RoutingConfig) -> str:
    """Resolve a query class to a provider name.

    First non-fallback rule whose condition holds wins. When none holds the
    first non-fallback rule is used, which for the default hybrid table means
    the market provider (tavily) unless focus says technical. A class with no
    usable rules resolves to the head of the fallback order.
    """
    context = context or {}
    rules = [r for r in config.routing_rules.get(query_type, ()) if r.condition != RoutingCondition.FALLBACK]

    for rule in rules:
        if evaluate_condition(rule.condition, context):
            return rule.provider

    if rules:
        return rules[0].provider
    if config.fallback_order:
        return config.fallback_order[0]
    fallback_rules = config.routing_rules.get(query_type, ())
    if fallback_rules:
        return fallback_rules[0].provider
    raise ValueError(f"No provider configured for query type '{query_type.value}'")


def candidate_sequence(query_type: QueryType, primary: str, config: RoutingConfig) -> list[str]:
    """Ordered, de-duplicated providers to try: primary, global fallback order,
    then any fallback-rule providers of the class not already listed."""
    sequence = [primary]
    for name in config.fallback_order:
        if name not in sequence:
            sequence.append(name)
    for rule in config.routing_rules.get(query_type, ()):
        if rule.condition == RoutingCondition.FALLBACK and rule.provider not in sequence:
            sequence.append(rule.provider)
    return sequence


_EXPLANATIONS = {
    QueryType.TECHNICAL: "Technical query routed to {provider} for documentation and feasibility analysis",
    QueryType.MARKET: "Market query routed to {provider} for competitive or market research",
    QueryType.COMPETITIVE: "Competitive query routed to {provider}",
    QueryType.HYBRID: "Hybrid query routed to {provider} based on context",
    QueryType.GENERAL: "General query routed to {provider}",
}


def explain_routing_decision(query_type: QueryType, provider: str, fallback: bool = False) -> str:
    """Human-readable audit string for a routing decision."""
    if fallback:
        return f"Fallback to {provider} ({query_type.value} query)"
    template = _EXPLANATIONS.get(query_type, "Query routed to {provider}")
    return template.format(provider=provider)
