"""QualityAssessor: score a rendered PRD and derive gaps, recommendations and readiness."""

from statistics import fmean, pvariance

import structlog

from discovery.core.exceptions import QualityAssessmentError
from discovery.quality.scoring import (
    CRITERION_SCORERS,
    DEFAULT_SCORING_CONFIG,
    ScoringConfig,
    SessionEvidence,
    count_words,
)
from discovery.schemas.prd import PRDDocument
from discovery.schemas.quality import (
    ConfidenceLevel,
    EstimatedEffort,
    QualityAssessment,
    QualityCriterion,
    QualityLevel,
    ReadinessMetrics,
)
from discovery.schemas.session import DiscoverySession

logger = structlog.get_logger(__name__)

GAP_STATEMENTS = {
    QualityCriterion.COMPLETENESS: "Insufficient content detail and coverage",
    QualityCriterion.CLARITY: "Unclear structure and ambiguous language",
    QualityCriterion.TECHNICAL_FEASIBILITY: "Missing technical specifications and architecture details",
    QualityCriterion.MARKET_VALIDATION: "Insufficient market research and competitive analysis",
    QualityCriterion.REQUIREMENTS_COVERAGE: "Incomplete requirements definition and user stories",
}

RECOMMENDATIONS = {
    QualityCriterion.COMPLETENESS: (
        "Add more detailed sections and expand on key concepts",
        "Include implementation details and technical specifications",
    ),
    QualityCriterion.CLARITY: (
        "Improve document structure with clear headings and sections",
        "Use more specific and actionable language",
    ),
    QualityCriterion.TECHNICAL_FEASIBILITY: (
        "Conduct additional technical feasibility validation",
        "Define architecture and technology stack in detail",
    ),
    QualityCriterion.MARKET_VALIDATION: (
        "Perform additional market research and competitive analysis",
        "Validate business value and market opportunity",
    ),
    QualityCriterion.REQUIREMENTS_COVERAGE: (
        "Add more functional and non-functional requirements",
        "Convert requirements to user story format with acceptance criteria",
    ),
}


class QualityAssessor:
    """Scores PRD text against five weighted criteria."""

    def __init__(self, config: ScoringConfig | None = None):
        self.config = config or DEFAULT_SCORING_CONFIG

    def score_criteria(self, text: str, evidence: SessionEvidence) -> dict[QualityCriterion, int]:
        return {criterion: scorer(text, evidence, self.config) for criterion, scorer in CRITERION_SCORERS.items()}

    def overall_score(self, scores: dict[QualityCriterion, int]) -> float:
        """Weighted sum, unrounded, so it equals sum(score * weight) exactly."""
        return sum(scores[criterion] * weight for criterion, weight in self.config.weights.items())

    def quality_level(self, overall: float) -> QualityLevel:
        if overall >= self.config.excellent_threshold:
            return QualityLevel.EXCELLENT
        if overall >= self.config.good_threshold:
            return QualityLevel.GOOD
        if overall >= self.config.acceptable_threshold:
            return QualityLevel.ACCEPTABLE
        if overall >= self.config.needs_improvement_threshold:
            return QualityLevel.NEEDS_IMPROVEMENT
        return QualityLevel.POOR

    def identify_gaps(self, scores: dict[QualityCriterion, int]) -> list[str]:
        return [GAP_STATEMENTS[c] for c, score in scores.items() if score < self.config.gap_threshold]

    def recommendations(self, scores: dict[QualityCriterion, int]) -> list[str]:
        items: list[str] = []
        for criterion, score in scores.items():
            if score < self.config.gap_threshold:
                items.extend(RECOMMENDATIONS[criterion])
        return items

    def confidence_level(self, scores: dict[QualityCriterion, int]) -> ConfidenceLevel:
        values = list(scores.values())
        mean = fmean(values)
        variance = pvariance(values, mu=mean)
        if mean >= self.config.high_confidence_mean and variance < self.config.high_confidence_max_variance:
            return ConfidenceLevel.HIGH
        if mean >= self.config.medium_confidence_mean and variance < self.config.medium_confidence_max_variance:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW

    def estimated_effort(self, scores: dict[QualityCriterion, int]) -> EstimatedEffort:
        low = sum(1 for score in scores.values() if score < self.config.low_score_threshold)
        if low >= 3:
            return EstimatedEffort.HIGH
        if low >= 2:
            return EstimatedEffort.MEDIUM
        if low >= 1:
            return EstimatedEffort.LOW
        return EstimatedEffort.MINIMAL

    def priority_areas(self, scores: dict[QualityCriterion, int]) -> list[QualityCriterion]:
        """Criteria below the gap threshold, lowest score first (stable on ties)."""
        below = [(c, s) for c, s in scores.items() if s < self.config.gap_threshold]
        return [c for c, _ in sorted(below, key=lambda pair: pair[1])]

    def readiness(self, scores: dict[QualityCriterion, int], overall: float) -> ReadinessMetrics:
        return ReadinessMetrics(
            development_ready=overall >= self.config.good_threshold,
            stakeholder_review_ready=overall >= self.config.acceptable_threshold,
            task_generation_ready=overall >= self.config.task_generation_min_score,
            confidence_level=self.confidence_level(scores),
            estimated_effort=self.estimated_effort(scores),
            priority_areas=self.priority_areas(scores),
        )

    def assess(
        self,
        text: str,
        session: DiscoverySession | None = None,
        document: PRDDocument | None = None,
    ) -> QualityAssessment:
        """Score a rendered document.

        Args:
            text: Full markdown text of the PRD
            session: Session the PRD came from (technical/market/requirements evidence)
            document: Structured PRD, used where session data is missing

        Raises:
            QualityAssessmentError: If text is empty or not a string
        """
        if not isinstance(text, str) or not text.strip():
            raise QualityAssessmentError("PRD content is empty; nothing to assess")

        evidence = SessionEvidence.collect(session, document)
        scores = self.score_criteria(text, evidence)
        overall = self.overall_score(scores)

        assessment = QualityAssessment(
            scores=scores,
            overall_score=overall,
            quality_level=self.quality_level(overall),
            gaps=self.identify_gaps(scores),
            recommendations=self.recommendations(scores),
            readiness_metrics=self.readiness(scores, overall),
            word_count=count_words(text),
        )
        logger.info(
            "prd_quality_assessed",
            session_id=session.session_id if session else None,
            overall_score=round(overall, 2),
            quality_level=assessment.quality_level.value,
            gaps=len(assessment.gaps),
        )
        return assessment
