"""Tests for input validation rules."""
import pytest

from discovery.domain.stages import DiscoveryStage
from discovery.domain.validation import (
    validate_problem_statement,
    validate_project_name,
    validate_requirement_text,
    validate_research_query,
    validate_stage_data,
)

pytestmark = pytest.mark.unit


class TestProjectName:
    @pytest.mark.parametrize("name", ["TaskFlow", "my-app_2", "AB", "Task Flow Pro"])
    def test_valid_names(self, name):
        assert validate_project_name(name).valid is True

    def test_too_short(self):
        result = validate_project_name("A")
        assert result.valid is False
        assert "at least 2" in result.error

    def test_too_long(self):
        assert validate_project_name("a" * 101).valid is False

    @pytest.mark.parametrize("name", ["Task/Flow", "app!", "naïve"])
    def test_invalid_characters(self, name):
        result = validate_project_name(name)
        assert result.valid is False
        assert "invalid characters" in result.error

    @pytest.mark.parametrize("name", [None, "", 42])
    def test_missing(self, name):
        assert validate_project_name(name).error == "Project name is required"


class TestTextLengths:
    def test_problem_statement_bounds(self):
        assert validate_problem_statement("too short").valid is False
        assert validate_problem_statement("Teams lose track of work").valid is True
        assert validate_problem_statement("x" * 1001).valid is False

    def test_requirement_bounds(self):
        assert validate_requirement_text("abcd").valid is False
        assert validate_requirement_text("Login").valid is True

    def test_research_query_bounds(self):
        assert validate_research_query("ab").valid is False
        assert validate_research_query("task app market").valid is True
        assert validate_research_query("q" * 201).valid is False


class TestStageData:
    def test_problem_discovery_without_statement_is_invalid(self):
        result = validate_stage_data(DiscoveryStage.PROBLEM_DISCOVERY, {"targetAudience": "Small teams"})
        assert result.valid is False
        assert "Problem statement is required and must be descriptive" in result.errors
        assert "Success criteria should be defined" in result.warnings

    def test_market_research_only_warns(self):
        result = validate_stage_data(DiscoveryStage.MARKET_RESEARCH, {})
        assert result.valid is True
        assert len(result.warnings) == 2

    def test_requirements_synthesis_requires_functional(self):
        result = validate_stage_data(DiscoveryStage.REQUIREMENTS_SYNTHESIS, {"nonFunctionalRequirements": [{}]})
        assert result.valid is False
        assert result.errors == ["Functional requirements are required"]
