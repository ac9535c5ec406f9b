"""Tests for PRD template definitions and selection."""
import pytest

from discovery.prd.catalog import PRD_TEMPLATES, get_template, parse_template_type, select_prd_template
from discovery.schemas.prd import ProjectComplexity, TemplateType

pytestmark = pytest.mark.unit


class TestTemplates:
    def test_section_counts(self):
        assert len(get_template(TemplateType.COMPREHENSIVE).sections) == 10
        assert len(get_template(TemplateType.MINIMAL).sections) == 3
        assert len(get_template(TemplateType.TECHNICAL_FOCUSED).sections) == 3

    @pytest.mark.parametrize("template_type", list(TemplateType))
    def test_sections_are_ordered_and_headed(self, template_type):
        sections = PRD_TEMPLATES[template_type].sections
        assert [s.order for s in sections] == sorted(s.order for s in sections)
        assert all(s.template.startswith("## ") for s in sections)

    def test_comprehensive_names(self):
        template = get_template(TemplateType.COMPREHENSIVE)
        assert template.name == "Comprehensive PRD"
        assert template.sections[0].title == "Executive Summary"


class TestParseTemplateType:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("COMPREHENSIVE", TemplateType.COMPREHENSIVE),
            ("minimal", TemplateType.MINIMAL),
            ("technical-focused", TemplateType.TECHNICAL_FOCUSED),
            ("Technical Focused", TemplateType.TECHNICAL_FOCUSED),
            (TemplateType.MINIMAL, TemplateType.MINIMAL),
        ],
    )
    def test_accepts_loose_spellings(self, value, expected):
        assert parse_template_type(value) == expected

    @pytest.mark.parametrize("value", [None, "glossy", ""])
    def test_unknown_is_none(self, value):
        assert parse_template_type(value) is None


class TestSelectPrdTemplate:
    def test_user_preference_wins(self):
        selected = select_prd_template(
            complexity=ProjectComplexity.LOW, project_type="tool", requirements_count=1, user_preference="technical-focused"
        )
        assert selected == TemplateType.TECHNICAL_FOCUSED

    def test_unrecognised_preference_is_ignored(self):
        assert select_prd_template(requirements_count=8, user_preference="glossy") == TemplateType.COMPREHENSIVE

    @pytest.mark.parametrize(
        "project_type,expected",
        [
            ("web application", TemplateType.COMPREHENSIVE),
            ("API Service", TemplateType.TECHNICAL_FOCUSED),
            ("library", TemplateType.TECHNICAL_FOCUSED),
            ("tool", TemplateType.MINIMAL),
            ("space station", TemplateType.COMPREHENSIVE),
        ],
    )
    def test_project_type_lookup(self, project_type, expected):
        assert select_prd_template(project_type=project_type, requirements_count=8) == expected

    def test_low_complexity_selects_minimal(self):
        assert select_prd_template(complexity="low", project_type="api service", requirements_count=8) == (
            TemplateType.MINIMAL
        )

    def test_minimal_band_below_five_requirements(self):
        assert select_prd_template(requirements_count=4) == TemplateType.MINIMAL
        assert select_prd_template(requirements_count=5) == TemplateType.COMPREHENSIVE

    def test_six_requirements_on_web_app_is_comprehensive(self):
        assert select_prd_template(ProjectComplexity.MEDIUM, "web application", 6) == TemplateType.COMPREHENSIVE
