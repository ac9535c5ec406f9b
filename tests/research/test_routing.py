"""Tests for deterministic query classification and provider selection."""
import pytest

from discovery.research.routing import (
    candidate_sequence,
    classify_query,
    count_keyword_matches,
    explain_routing_decision,
    select_provider,
)
from discovery.schemas.research import QueryType, RoutingCondition, RoutingConfig, RoutingRule

pytestmark = pytest.mark.unit

CONFIG = RoutingConfig()


class TestClassifyQuery:
    def test_technical_stage_wins_over_keywords(self):
        """Stage context takes precedence over a market-heavy query."""
        query = "market competitor pricing revenue"
        assert classify_query(query, {"stage": "technical-feasibility"}, CONFIG) == QueryType.TECHNICAL

    def test_market_stage(self):
        assert classify_query("react framework", {"stage": "market-research"}, CONFIG) == QueryType.MARKET

    @pytest.mark.parametrize("focus", ["competitive", "competitors"])
    def test_competitive_focus(self, focus):
        assert classify_query("who else does this", {"focus": focus}, CONFIG) == QueryType.COMPETITIVE

    def test_technical_keywords(self):
        assert classify_query("Which database and framework for the API", {}, CONFIG) == QueryType.TECHNICAL

    def test_market_keywords(self):
        assert classify_query("customer demand and pricing trends", {}, CONFIG) == QueryType.MARKET

    def test_equal_positive_counts_are_hybrid(self):
        # "framework" (technical) vs "market" (market): 1 == 1
        assert classify_query("framework market", {}, CONFIG) == QueryType.HYBRID

    def test_no_keywords_is_general(self):
        assert classify_query("tell me about otters", {}, CONFIG) == QueryType.GENERAL

    def test_context_values_count_but_keys_do_not(self):
        """A targetMarket key alone does not bias classification."""
        assert classify_query("tell me about otters", {"targetMarket": ""}, CONFIG) == QueryType.GENERAL
        assert (
            classify_query("tell me about otters", {"notes": ["database", "framework"]}, CONFIG)
            == QueryType.TECHNICAL
        )

    def test_is_deterministic(self):
        context = {"features": ["api", "pricing"]}
        results = {classify_query("platform for customer analysis", context, CONFIG) for _ in range(20)}
        assert len(results) == 1

    def test_custom_keywords_from_config(self):
        config = RoutingConfig(technical_keywords=("otters",), market_keywords=("beavers",))
        assert classify_query("tell me about otters", {}, config) == QueryType.TECHNICAL


def test_count_keyword_matches_counts_distinct_substrings():
    assert count_keyword_matches("API api APIs database", ("api", "database", "stack")) == 2


class TestSelectProvider:
    def test_technical_goes_to_context7(self):
        assert select_provider(QueryType.TECHNICAL, {}, CONFIG) == "context7"

    def test_market_and_competitive_go_to_tavily(self):
        assert select_provider(QueryType.MARKET, {}, CONFIG) == "tavily"
        assert select_provider(QueryType.COMPETITIVE, {}, CONFIG) == "tavily"

    def test_general_goes_to_perplexity(self):
        assert select_provider(QueryType.GENERAL, {}, CONFIG) == "perplexity"

    def test_hybrid_with_technical_focus(self):
        assert select_provider(QueryType.HYBRID, {"focus": "technical"}, CONFIG) == "context7"

    def test_hybrid_with_market_focus(self):
        assert select_provider(QueryType.HYBRID, {"focus": "market"}, CONFIG) == "tavily"

    def test_hybrid_without_focus_uses_first_rule(self):
        assert select_provider(QueryType.HYBRID, {}, CONFIG) == "tavily"

    def test_class_without_rules_uses_fallback_head(self):
        config = RoutingConfig(routing_rules={}, fallback_order=("perplexity", "tavily"))
        assert select_provider(QueryType.MARKET, {}, config) == "perplexity"

    def test_fallback_rules_never_match_directly(self):
        config = RoutingConfig(
            routing_rules={
                QueryType.GENERAL: (
                    RoutingRule(provider="perplexity", condition=RoutingCondition.FALLBACK),
                    RoutingRule(provider="tavily", condition=RoutingCondition.ALWAYS),
                )
            }
        )
        assert select_provider(QueryType.GENERAL, {}, config) == "tavily"


class TestCandidateSequence:
    def test_primary_first_then_fallback_order_without_duplicates(self):
        assert candidate_sequence(QueryType.TECHNICAL, "context7", CONFIG) == ["context7", "tavily", "perplexity"]

    def test_class_fallback_providers_appended(self):
        config = RoutingConfig(
            fallback_order=("tavily",),
            routing_rules={
                QueryType.TECHNICAL: (
                    RoutingRule(provider="context7"),
                    RoutingRule(provider="perplexity", condition=RoutingCondition.FALLBACK),
                )
            },
        )
        assert candidate_sequence(QueryType.TECHNICAL, "context7", config) == ["context7", "tavily", "perplexity"]


class TestExplainRoutingDecision:
    def test_technical_explanation(self):
        assert (
            explain_routing_decision(QueryType.TECHNICAL, "context7")
            == "Technical query routed to context7 for documentation and feasibility analysis"
        )

    def test_fallback_explanation(self):
        assert explain_routing_decision(QueryType.MARKET, "perplexity", fallback=True) == (
            "Fallback to perplexity (market query)"
        )

    @pytest.mark.parametrize("query_type", list(QueryType))
    def test_every_class_names_the_provider(self, query_type):
        assert "tavily" in explain_routing_decision(query_type, "tavily")
