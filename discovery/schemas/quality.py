"""Quality assessment value objects."""

from enum import StrEnum

from pydantic import BaseModel, Field


class QualityCriterion(StrEnum):
    COMPLETENESS = "completeness"
    CLARITY = "clarity"
    TECHNICAL_FEASIBILITY = "technicalFeasibility"
    MARKET_VALIDATION = "marketValidation"
    REQUIREMENTS_COVERAGE = "requirementsCoverage"


class QualityLevel(StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    NEEDS_IMPROVEMENT = "needs-improvement"
    POOR = "poor"


class ConfidenceLevel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EstimatedEffort(StrEnum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReadinessMetrics(BaseModel):
    development_ready: bool
    stakeholder_review_ready: bool
    task_generation_ready: bool
    confidence_level: ConfidenceLevel
    estimated_effort: EstimatedEffort
    priority_areas: list[QualityCriterion] = Field(default_factory=list)


class QualityAssessment(BaseModel):
    """Read-only scoring result for one rendered document."""

    scores: dict[QualityCriterion, int]
    overall_score: float
    quality_level: QualityLevel
    gaps: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    readiness_metrics: ReadinessMetrics
    word_count: int = 0
