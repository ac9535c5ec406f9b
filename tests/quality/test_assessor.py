"""Tests for QualityAssessor: levels, gaps, readiness and full-document scoring."""
from itertools import cycle, islice

import pytest

from discovery.core.exceptions import QualityAssessmentError
from discovery.prd.generator import PRDGenerator
from discovery.quality.assessor import GAP_STATEMENTS, RECOMMENDATIONS, QualityAssessor
from discovery.quality.scoring import ScoringConfig
from discovery.schemas.quality import ConfidenceLevel, EstimatedEffort, QualityCriterion, QualityLevel

pytestmark = pytest.mark.unit

FILLER = "teams plan weekly work together and review progress in short daily check ins across time zones"


def filler(words: int) -> str:
    return " ".join(islice(cycle(FILLER.split()), words))


def build_detailed_prd() -> str:
    """A long PRD with clear structure, normative language and broad topic coverage."""
    functional = [f"{n}. The system must support shared list capability {n} for every team member." for n in range(1, 13)]
    stories = [
        "As a team lead, I want shared lists so that work stays visible.",
        "As a freelancer, I want reminders so that deadlines are not missed.",
        "As a member, I want comments so that context stays with the task.",
        "As an admin, I want roles so that access stays controlled.",
        "As a user, I want search so that old tasks are easy to find.",
    ]
    non_functional = [
        "- Performance: pages should render within 200ms under normal load.",
        "- Scalability: the platform should handle 10x capacity growth.",
        "- Security: all data shall be encrypted at rest and in transit.",
        "- Availability: the service will keep 99.9% uptime.",
        "- Usability: onboarding should take under five minutes.",
    ]
    criteria = [f"Acceptance criteria: requirement {n} is verified by an automated test." for n in range(1, 9)]
    lines = [
        "# TaskFlow Product Requirements Document",
        "",
        "## Overview",
        "TaskFlow is a shared task list for small teams. " + filler(260),
        "",
        "## Problem Statement",
        "Small teams lose track of work across chat and email. " + filler(260),
        "",
        "## Solution",
        "A lightweight shared list with reminders and comments. " + filler(260),
        "",
        "## Market Analysis",
        "The target market is the small team segment. The audience includes customers who already pay "
        "for chat tools, and each user manages a handful of lists. Every competitor focuses on enterprise, "
        "which leaves an opportunity. Business value comes from lower cost, clear benefit, recurring "
        "revenue and fast ROI. " + filler(240),
        "",
        "## Technical Architecture",
        "The architecture is a single-page app on a modern technology stack: a React framework, a REST api, "
        "a PostgreSQL database and managed cloud infrastructure on a single platform. Performance, "
        "scalability, load, capacity and response time targets are tracked per release. " + filler(240),
        "",
        "## Functional Requirements",
        *functional,
        *stories,
        "",
        "## Non-Functional Requirements",
        *non_functional,
        *criteria,
        "",
        "## Success Metrics",
        "Success is 1000 weekly active teams. " + filler(260),
    ]
    return "\n".join(lines)


class TestQualityLevel:
    @pytest.mark.parametrize(
        "overall,expected",
        [
            (100, QualityLevel.EXCELLENT),
            (90, QualityLevel.EXCELLENT),
            (89.99, QualityLevel.GOOD),
            (75, QualityLevel.GOOD),
            (74.9, QualityLevel.ACCEPTABLE),
            (60, QualityLevel.ACCEPTABLE),
            (40, QualityLevel.NEEDS_IMPROVEMENT),
            (39.99, QualityLevel.POOR),
            (0, QualityLevel.POOR),
        ],
    )
    def test_boundaries(self, overall, expected):
        assert QualityAssessor().quality_level(overall) == expected


class TestDerivedMetrics:
    def scores(self, *values: int) -> dict[QualityCriterion, int]:
        return dict(zip(QualityCriterion, values, strict=True))

    def test_overall_is_exact_weighted_sum(self):
        overall = QualityAssessor().overall_score(self.scores(80, 70, 60, 50, 40))
        assert overall == pytest.approx(80 * 0.25 + 70 * 0.20 + 60 * 0.20 + 50 * 0.15 + 40 * 0.20)

    def test_gaps_and_recommendations_below_seventy(self):
        assessor = QualityAssessor()
        scores = self.scores(69, 70, 100, 10, 85)

        assert assessor.identify_gaps(scores) == [
            GAP_STATEMENTS[QualityCriterion.COMPLETENESS],
            GAP_STATEMENTS[QualityCriterion.MARKET_VALIDATION],
        ]
        assert assessor.recommendations(scores) == [
            *RECOMMENDATIONS[QualityCriterion.COMPLETENESS],
            *RECOMMENDATIONS[QualityCriterion.MARKET_VALIDATION],
        ]

    def test_priority_areas_lowest_first(self):
        areas = QualityAssessor().priority_areas(self.scores(65, 30, 90, 30, 50))
        assert areas == [
            QualityCriterion.CLARITY,
            QualityCriterion.MARKET_VALIDATION,
            QualityCriterion.REQUIREMENTS_COVERAGE,
            QualityCriterion.COMPLETENESS,
        ]

    @pytest.mark.parametrize(
        "values,expected",
        [
            ((90, 90, 90, 90, 90), EstimatedEffort.MINIMAL),
            ((59, 90, 90, 90, 90), EstimatedEffort.LOW),
            ((59, 59, 90, 90, 90), EstimatedEffort.MEDIUM),
            ((59, 59, 59, 90, 90), EstimatedEffort.HIGH),
        ],
    )
    def test_estimated_effort(self, values, expected):
        assert QualityAssessor().estimated_effort(self.scores(*values)) == expected

    @pytest.mark.parametrize(
        "values,expected",
        [
            ((85, 85, 85, 85, 85), ConfidenceLevel.HIGH),
            ((95, 95, 95, 70, 70), ConfidenceLevel.MEDIUM),
            ((70, 70, 70, 50, 50), ConfidenceLevel.MEDIUM),
            ((100, 100, 100, 20, 20), ConfidenceLevel.LOW),
            ((50, 50, 50, 50, 50), ConfidenceLevel.LOW),
        ],
    )
    def test_confidence(self, values, expected):
        assert QualityAssessor().confidence_level(self.scores(*values)) == expected

    def test_readiness_thresholds(self):
        assessor = QualityAssessor()
        scores = self.scores(60, 60, 60, 60, 60)

        assert assessor.readiness(scores, 57).model_dump(include={
            "development_ready", "stakeholder_review_ready", "task_generation_ready"
        }) == {"development_ready": False, "stakeholder_review_ready": False, "task_generation_ready": True}
        assert assessor.readiness(scores, 60).stakeholder_review_ready is True
        assert assessor.readiness(scores, 75).development_ready is True

    def test_task_generation_threshold_is_configurable(self):
        assessor = QualityAssessor(ScoringConfig(task_generation_min_score=58))
        scores = self.scores(60, 60, 60, 60, 60)
        assert assessor.readiness(scores, 57).task_generation_ready is False


class TestAssess:
    @pytest.mark.parametrize("text", ["", "   \n  "])
    def test_empty_text_rejected(self, text):
        with pytest.raises(QualityAssessmentError) as exc_info:
            QualityAssessor().assess(text)
        assert exc_info.value.code == "QUALITY_ASSESSMENT_FAILED"

    def test_minimal_text(self):
        assessment = QualityAssessor().assess("Hello world")

        assert assessment.scores == {
            QualityCriterion.COMPLETENESS: 10,
            QualityCriterion.CLARITY: 30,
            QualityCriterion.TECHNICAL_FEASIBILITY: 0,
            QualityCriterion.MARKET_VALIDATION: 0,
            QualityCriterion.REQUIREMENTS_COVERAGE: 0,
        }
        assert assessment.overall_score == pytest.approx(8.5)
        assert assessment.quality_level == QualityLevel.POOR
        assert len(assessment.gaps) == 5
        assert len(assessment.recommendations) == 10
        assert assessment.word_count == 2
        readiness = assessment.readiness_metrics
        assert readiness.estimated_effort == EstimatedEffort.HIGH
        assert readiness.confidence_level == ConfidenceLevel.LOW
        assert readiness.priority_areas == [
            QualityCriterion.TECHNICAL_FEASIBILITY,
            QualityCriterion.MARKET_VALIDATION,
            QualityCriterion.REQUIREMENTS_COVERAGE,
            QualityCriterion.COMPLETENESS,
            QualityCriterion.CLARITY,
        ]

    def test_detailed_prd_scores_good_or_better(self, make_ready_session):
        functional = [{"id": f"FR-{n:03d}", "description": f"Capability {n}"} for n in range(1, 13)]
        non_functional = [{"category": c, "description": c} for c in ("Performance", "Scalability", "Security",
                                                                      "Availability", "Usability")]
        session = make_ready_session(functional=functional, non_functional=non_functional)
        text = build_detailed_prd()
        assert len(text.split()) >= 2000

        assessment = QualityAssessor().assess(text, session=session)

        assert assessment.overall_score >= 75
        assert assessment.quality_level in (QualityLevel.GOOD, QualityLevel.EXCELLENT)
        assert assessment.readiness_metrics.development_ready is True
        assert assessment.readiness_metrics.task_generation_ready is True
        assert assessment.gaps == []

    def test_session_evidence_raises_scores(self, ready_session):
        text = build_detailed_prd()
        bare = QualityAssessor().assess(text)
        informed = QualityAssessor().assess(text, session=ready_session)

        assert informed.scores[QualityCriterion.TECHNICAL_FEASIBILITY] > bare.scores[
            QualityCriterion.TECHNICAL_FEASIBILITY
        ]
        assert informed.scores[QualityCriterion.MARKET_VALIDATION] > bare.scores[QualityCriterion.MARKET_VALIDATION]
        assert informed.overall_score > bare.overall_score

    def test_generated_prd_uses_document_evidence(self, ready_session):
        result = PRDGenerator().generate(ready_session)
        assessor = QualityAssessor()

        assessment = assessor.assess(result.content, document=result.document)

        assert 0 <= assessment.overall_score <= 100
        assert assessment.overall_score == pytest.approx(assessor.overall_score(assessment.scores))
        assert assessment.word_count == len(result.content.split())
