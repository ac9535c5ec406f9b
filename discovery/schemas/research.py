"""Schemas for research routing: query classes, rules, config and results."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TECHNICAL_KEYWORDS: tuple[str, ...] = (
    "framework",
    "library",
    "api",
    "database",
    "architecture",
    "implementation",
    "code",
    "development",
    "programming",
    "technology",
    "stack",
    "platform",
    "infrastructure",
    "performance",
    "optimization",
    "security",
    "testing",
)

DEFAULT_MARKET_KEYWORDS: tuple[str, ...] = (
    "market",
    "competitor",
    "business",
    "revenue",
    "customer",
    "user",
    "pricing",
    "monetization",
    "industry",
    "trend",
    "analysis",
    "opportunity",
    "demand",
    "segment",
)


class QueryType(StrEnum):
    TECHNICAL = "technical"
    MARKET = "market"
    COMPETITIVE = "competitive"
    HYBRID = "hybrid"
    GENERAL = "general"


class RoutingCondition(StrEnum):
    ALWAYS = "always"
    MARKET_FOCUS = "market_focus"
    TECHNICAL_FOCUS = "technical_focus"
    FALLBACK = "fallback"


class RoutingRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    condition: RoutingCondition = RoutingCondition.ALWAYS


def _default_rules() -> dict[QueryType, tuple[RoutingRule, ...]]:
    def rule(provider: str, condition: str) -> RoutingRule:
        return RoutingRule(provider=provider, condition=RoutingCondition(condition))

    return {
        QueryType.TECHNICAL: (rule("context7", "always"), rule("perplexity", "fallback")),
        QueryType.MARKET: (rule("tavily", "always"), rule("perplexity", "fallback")),
        QueryType.COMPETITIVE: (rule("tavily", "always"), rule("perplexity", "fallback")),
        QueryType.HYBRID: (
            rule("tavily", "market_focus"),
            rule("context7", "technical_focus"),
            rule("perplexity", "fallback"),
        ),
        QueryType.GENERAL: (rule("perplexity", "always"), rule("tavily", "fallback")),
    }


class RoutingConfig(BaseModel):
    """Immutable routing table snapshot.

    Swapped as a whole on reload, so a request holding a reference always
    sees one consistent table.
    """

    model_config = ConfigDict(frozen=True)

    fallback_order: tuple[str, ...] = ("tavily", "context7", "perplexity")
    routing_rules: dict[QueryType, tuple[RoutingRule, ...]] = Field(default_factory=_default_rules)
    technical_keywords: tuple[str, ...] = DEFAULT_TECHNICAL_KEYWORDS
    market_keywords: tuple[str, ...] = DEFAULT_MARKET_KEYWORDS

    @field_validator("technical_keywords", "market_keywords")
    @classmethod
    def _lowercase_keywords(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(k.lower() for k in value if k and k.strip())

    @classmethod
    def from_document(cls, document: dict[str, Any] | None) -> "RoutingConfig":
        """Build a config from the routing file shape, merged over defaults.

        Document shape:
            {"fallbackOrder": [...],
             "routingRules": {queryType: [{"provider", "condition"}, ...]},
             "classificationKeywords": {"technical": [...], "market": [...]}}

        Missing keys keep their built-in defaults; rules are replaced per query type.
        """
        if not document:
            return cls()

        values: dict[str, Any] = {}
        if document.get("fallbackOrder"):
            values["fallback_order"] = tuple(document["fallbackOrder"])

        if document.get("routingRules"):
            rules = _default_rules()
            for query_type, entries in document["routingRules"].items():
                rules[QueryType(query_type)] = tuple(RoutingRule.model_validate(e) for e in entries)
            values["routing_rules"] = rules

        keywords = document.get("classificationKeywords") or {}
        if keywords.get("technical"):
            values["technical_keywords"] = tuple(keywords["technical"])
        if keywords.get("market"):
            values["market_keywords"] = tuple(keywords["market"])

        return cls(**values)

    def to_document(self) -> dict[str, Any]:
        return {
            "fallbackOrder": list(self.fallback_order),
            "routingRules": {
                qt.value: [{"provider": r.provider, "condition": r.condition.value} for r in rules]
                for qt, rules in self.routing_rules.items()
            },
            "classificationKeywords": {
                "technical": list(self.technical_keywords),
                "market": list(self.market_keywords),
            },
        }


class ProviderResult(BaseModel):
    """Uniform provider response: {summary, raw, sources}."""

    summary: str = ""
    raw: Any = None
    sources: list[str] = Field(default_factory=list)


class RoutingDecision(BaseModel):
    query_type: QueryType
    provider: str
    explanation: str


class ProviderAttempt(BaseModel):
    provider: str
    outcome: str  # success | unavailable | error | timeout | unregistered
    error: str | None = None


class ResearchResult(BaseModel):
    """Outcome of one routed query."""

    query: str
    query_type: QueryType
    provider: str
    selected_provider: str
    used_fallback: bool = False
    explanation: str
    result: ProviderResult
    attempts: list[ProviderAttempt] = Field(default_factory=list)


class BatchItemResult(BaseModel):
    """Per-query outcome in a batch; failures never abort siblings."""

    index: int
    query: str
    success: bool
    provider: str | None = None
    result: ResearchResult | None = None
    error: dict[str, str] | None = None
