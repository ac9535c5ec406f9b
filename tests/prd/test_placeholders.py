"""Tests for placeholder derivation and substitution."""
import pytest

from discovery.domain.stages import DiscoveryStage
from discovery.prd.catalog import PRD_TEMPLATES
from discovery.prd.placeholders import (
    PLACEHOLDER_PATTERN,
    assess_project_complexity,
    format_requirements,
    format_text,
    generate_template_placeholders,
    infer_project_type,
    normalize_non_functional_requirements,
    substitute_placeholders,
)
from discovery.schemas.prd import ProjectComplexity

pytestmark = pytest.mark.unit


class TestFormatting:
    def test_format_text_list_becomes_bullets(self):
        assert format_text(["Fast", "Cheap"], "none") == "- Fast\n- Cheap"

    def test_format_text_empty_uses_default(self):
        assert format_text([], "Pain points to be defined") == "Pain points to be defined"
        assert format_text("  ", "x") == "x"

    def test_format_requirements(self):
        text = format_requirements(
            [
                {
                    "title": "Login",
                    "description": "Users must log in",
                    "priority": "high",
                    "userStory": "As a user, I want to log in, so that my data is private",
                    "acceptanceCriteria": ["valid password accepted", "lockout after 5 tries"],
                }
            ]
        )
        assert text == (
            "1. **Login** (HIGH priority)\n"
            "   Users must log in\n"
            "   User Story: As a user, I want to log in, so that my data is private\n"
            "   Acceptance Criteria: valid password accepted, lockout after 5 tries"
        )

    def test_format_requirements_empty(self):
        assert format_requirements([]) == "Requirements to be defined based on discovery findings"


class TestNormalizeNfr:
    def test_categories_are_capitalised_and_defaulted(self):
        items = normalize_non_functional_requirements(
            [{"category": "security", "description": "TLS"}, {"category": "vibes", "description": "nice"}, "Fast"]
        )
        assert [i.category for i in items] == ["Security", "Performance", "Performance"]
        assert [i.id for i in items] == ["NFR-001", "NFR-002", "NFR-003"]
        assert items[2].requirement == "Fast"
        assert items[0].priority == "medium"


class TestProjectCharacteristics:
    def test_explicit_complexity_wins(self, ready_session):
        ready_session.progress[DiscoveryStage.TECHNICAL_FEASIBILITY.value].data["complexity"] = "Enterprise"
        assert assess_project_complexity(ready_session) == ProjectComplexity.ENTERPRISE

    def test_heuristic_four_functional_requirements_is_medium(self, ready_session):
        del ready_session.progress[DiscoveryStage.TECHNICAL_FEASIBILITY.value].data["complexity"]
        assert assess_project_complexity(ready_session) == ProjectComplexity.MEDIUM

    def test_heuristic_small_project_is_low(self, make_ready_session):
        session = make_ready_session(functional=[{"title": "a"}, {"title": "b"}, {"title": "c"}])
        del session.progress[DiscoveryStage.TECHNICAL_FEASIBILITY.value].data["complexity"]
        assert assess_project_complexity(session) == ProjectComplexity.LOW

    def test_heuristic_large_project(self, make_ready_session):
        session = make_ready_session(
            functional=[{"title": str(i)} for i in range(16)], non_functional=[{"category": "security"}] * 9
        )
        del session.progress[DiscoveryStage.TECHNICAL_FEASIBILITY.value].data["complexity"]
        assert assess_project_complexity(session) == ProjectComplexity.HIGH

    @pytest.mark.parametrize(
        "name,stack,expected",
        [
            ("TaskFlow", [], "web application"),
            ("Billing API", [], "api service"),
            ("Pocket", ["Flutter"], "mobile app"),
            ("Shipper", ["Docker", "Go"], "microservice"),
            ("Lint Tool", [], "tool"),
        ],
    )
    def test_infer_project_type(self, make_ready_session, name, stack, expected):
        session = make_ready_session(project_name=name)
        session.metadata.tech_stack_preferences = stack
        assert infer_project_type(session) == expected


class TestPlaceholders:
    def test_every_template_token_has_a_value(self, ready_session):
        placeholders = generate_template_placeholders(ready_session)
        for template in PRD_TEMPLATES.values():
            for section in template.sections:
                for token in PLACEHOLDER_PATTERN.findall(section.template):
                    assert placeholders.get(token), token

    def test_values_come_from_stage_data(self, ready_session):
        placeholders = generate_template_placeholders(ready_session)
        assert placeholders["problemStatement"] == "Small teams lose track of shared tasks across chat and email"
        assert placeholders["technologyStack"] == "React, FastAPI, PostgreSQL"
        assert placeholders["targetUsers"] == "Small team leads, Freelancers"
        assert placeholders["businessObjectives"] == "- Grow paid teams\n- Reduce churn"
        assert placeholders["functionalRequirements"].startswith("1. **User registration** (HIGH priority)")
        assert "Task lists load within 200ms" in placeholders["performanceRequirements"]

    def test_missing_data_gets_deterministic_defaults(self, ready_session):
        ready_session.progress[DiscoveryStage.MARKET_RESEARCH.value].data = {}
        placeholders = generate_template_placeholders(ready_session)
        assert placeholders["competitiveAnalysis"] == "Competitive analysis to be defined"
        assert placeholders["painPoints"] == "Pain points to be defined"
        assert generate_template_placeholders(ready_session) == placeholders


class TestSubstitution:
    def test_known_tokens_replaced(self):
        assert substitute_placeholders("Hello {name}!", {"name": "Ada"}) == "Hello Ada!"

    def test_unknown_token_gets_marker(self):
        assert substitute_placeholders("{mystery}", {}) == "[mystery to be defined]"

    def test_values_are_not_rescanned(self):
        """Substituted text containing braces is left alone."""
        assert substitute_placeholders("{a}", {"a": "{b}", "b": "nope"}) == "{b}"
