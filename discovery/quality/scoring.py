"""PRD quality scoring rules as data plus pure criterion scorers.

Every scorer is a pure function (document_text, evidence, config) -> int in
0..100. Band tables are step functions validated to be monotonic, so more of
a counted signal never lowers a score.
"""

import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from discovery.domain.progress import is_field_present, round_half_up
from discovery.domain.stages import DiscoveryStage
from discovery.schemas.prd import PRDDocument
from discovery.schemas.quality import QualityCriterion
from discovery.schemas.session import DiscoverySession

Bands = tuple[tuple[int, int], ...]  # ((min_count, points), ...) highest threshold first


class ScoringConfig(BaseModel):
    """Weights, thresholds, band tables and keyword lists for quality scoring."""

    model_config = ConfigDict(frozen=True)

    weights: dict[QualityCriterion, float] = {
        QualityCriterion.COMPLETENESS: 0.25,
        QualityCriterion.CLARITY: 0.20,
        QualityCriterion.TECHNICAL_FEASIBILITY: 0.20,
        QualityCriterion.MARKET_VALIDATION: 0.15,
        QualityCriterion.REQUIREMENTS_COVERAGE: 0.20,
    }

    # Quality levels (overall score lower bounds)
    excellent_threshold: float = 90
    good_threshold: float = 75
    acceptable_threshold: float = 60
    needs_improvement_threshold: float = 40

    gap_threshold: int = 70
    low_score_threshold: int = 60
    task_generation_min_score: float = 55

    # Confidence from mean / population variance of criterion scores
    high_confidence_mean: float = 80
    high_confidence_max_variance: float = 100
    medium_confidence_mean: float = 60
    medium_confidence_max_variance: float = 200

    # Completeness
    word_count_bands: Bands = ((2000, 30), (1500, 25), (1000, 20), (500, 15))
    word_count_floor: int = 10
    essential_topics: tuple[str, ...] = (
        "overview",
        "problem",
        "solution",
        "requirements",
        "technical",
        "market",
        "success",
    )
    essential_topic_points: int = 40
    requirement_item_bands: Bands = ((10, 30), (7, 25), (5, 20), (3, 15), (1, 10))
    requirement_item_floor: int = 0

    # Clarity
    section_count_bands: Bands = ((8, 40), (6, 35), (4, 30), (2, 20))
    section_count_floor: int = 10
    heading_count_bands: Bands = ((10, 30), (7, 25), (5, 20), (3, 15))
    heading_count_floor: int = 10
    action_words: tuple[str, ...] = ("must", "should", "will", "shall", "required", "mandatory")
    action_word_bands: Bands = ((20, 30), (15, 25), (10, 20), (5, 15))
    action_word_floor: int = 10

    # Technical feasibility
    technical_keywords: tuple[str, ...] = (
        "architecture",
        "technology",
        "stack",
        "database",
        "api",
        "framework",
        "platform",
        "infrastructure",
    )
    technical_keyword_points: int = 40
    technologies_points: int = 15
    architecture_points: int = 10
    feasibility_assessment_points: int = 10
    performance_keywords: tuple[str, ...] = ("performance", "scalability", "load", "capacity", "response time")
    performance_keyword_points: int = 25

    # Market validation
    market_keywords: tuple[str, ...] = (
        "market",
        "competitor",
        "customer",
        "user",
        "target",
        "audience",
        "segment",
        "opportunity",
    )
    market_keyword_points: int = 40
    market_data_points: int = 35
    business_keywords: tuple[str, ...] = ("value", "benefit", "roi", "revenue", "cost", "business")
    business_keyword_points: int = 25

    # Requirements coverage
    functional_bands: Bands = ((10, 40), (7, 35), (5, 30), (3, 25), (1, 15))
    functional_floor: int = 0
    non_functional_bands: Bands = ((5, 30), (3, 25), (2, 20), (1, 15))
    non_functional_floor: int = 0
    user_story_points_each: int = 3
    user_story_points_cap: int = 15
    acceptance_points_each: int = 2
    acceptance_points_cap: int = 15

    @field_validator(
        "word_count_bands",
        "requirement_item_bands",
        "section_count_bands",
        "heading_count_bands",
        "action_word_bands",
        "functional_bands",
        "non_functional_bands",
    )
    @classmethod
    def _bands_monotonic(cls, bands: Bands) -> Bands:
        for (upper_min, upper_points), (lower_min, lower_points) in zip(bands, bands[1:]):
            if upper_min <= lower_min or upper_points < lower_points:
                raise ValueError(f"Band table must descend by threshold with non-increasing points: {bands}")
        return bands

    @field_validator("weights")
    @classmethod
    def _weights_complete(cls, weights: dict[QualityCriterion, float]) -> dict[QualityCriterion, float]:
        if set(weights) != set(QualityCriterion):
            raise ValueError("weights must cover every quality criterion")
        if abs(sum(weights.values()) - 1.0) > 1e-9:
            raise ValueError(f"weights must sum to 1.0 (got {sum(weights.values())})")
        return weights

    @model_validator(mode="after")
    def _floors_below_bands(self) -> "ScoringConfig":
        pairs = (
            (self.word_count_bands, self.word_count_floor),
            (self.requirement_item_bands, self.requirement_item_floor),
            (self.section_count_bands, self.section_count_floor),
            (self.heading_count_bands, self.heading_count_floor),
            (self.action_word_bands, self.action_word_floor),
            (self.functional_bands, self.functional_floor),
            (self.non_functional_bands, self.non_functional_floor),
        )
        for bands, floor in pairs:
            if bands and floor > bands[-1][1]:
                raise ValueError(f"floor {floor} exceeds lowest band points in {bands}")
        return self


DEFAULT_SCORING_CONFIG = ScoringConfig()


@dataclass
class SessionEvidence:
    """Structured facts about the session the document was generated from."""

    functional_count: int = 0
    non_functional_count: int = 0
    has_technologies: bool = False
    has_architecture: bool = False
    has_feasibility_assessment: bool = False
    has_market_data: bool = False

    @classmethod
    def collect(
        cls, session: DiscoverySession | None = None, document: PRDDocument | None = None
    ) -> "SessionEvidence":
        """Session data wins; the structured document fills what the session lacks."""
        evidence = cls()

        if document is not None:
            specs = document.technical_specs
            evidence.functional_count = len(document.requirements.functional)
            evidence.non_functional_count = len(document.requirements.non_functional)
            evidence.has_technologies = is_field_present(specs.get("techStack"))
            evidence.has_feasibility_assessment = is_field_present(specs.get("feasibilityAssessment"))
            architecture = specs.get("architecture")
            evidence.has_architecture = is_field_present(architecture) and architecture != "Architecture to be defined"

        if session is not None:
            requirements = session.stage_data(DiscoveryStage.REQUIREMENTS_SYNTHESIS)
            technical = session.stage_data(DiscoveryStage.TECHNICAL_FEASIBILITY)
            market = session.stage_data(DiscoveryStage.MARKET_RESEARCH)

            if "functionalRequirements" in requirements:
                evidence.functional_count = len(requirements.get("functionalRequirements") or [])
            if "nonFunctionalRequirements" in requirements:
                evidence.non_functional_count = len(requirements.get("nonFunctionalRequirements") or [])
            evidence.has_technologies = evidence.has_technologies or is_field_present(
                technical.get("technologies") or technical.get("techStack")
            )
            evidence.has_architecture = evidence.has_architecture or is_field_present(technical.get("architecture"))
            evidence.has_feasibility_assessment = evidence.has_feasibility_assessment or is_field_present(
                technical.get("feasibilityAssessment")
            )
            evidence.has_market_data = bool(market) or bool(session.research_data.get("marketAnalysis"))

        return evidence


# ---------------------------------------------------------------------------
# Text measurements
# ---------------------------------------------------------------------------

SECTION_PATTERN = re.compile(r"^#{1,2}\s+\S.*$", re.MULTILINE)
HEADING_PATTERN = re.compile(r"^#{1,3}\s+.+$", re.MULTILINE)
ANY_HEADING_PATTERN = re.compile(r"^\s*#{1,6}\s+(.*)$")
LIST_ITEM_PATTERN = re.compile(r"^\s*(\d+\.|[-*])\s+")
USER_STORY_PATTERN = re.compile(r"as a.*i want.*so that", re.IGNORECASE)
ACCEPTANCE_PATTERN = re.compile(r"acceptance criteria|given.*when.*then", re.IGNORECASE)


def band_score(value: int, bands: Bands, floor: int) -> int:
    """Points of the first band whose threshold `value` reaches; floor otherwise."""
    for minimum, points in bands:
        if value >= minimum:
            return points
    return floor


def coverage_points(text_lower: str, keywords: tuple[str, ...], points: int) -> int:
    """Share of keywords present (substring match) scaled to `points`."""
    if not keywords:
        return 0
    found = sum(1 for keyword in keywords if keyword in text_lower)
    return round_half_up(found / len(keywords) * points)


def count_words(text: str) -> int:
    return len(text.split())


def count_sections(text: str) -> int:
    return len(SECTION_PATTERN.findall(text))


def count_headings(text: str) -> int:
    return len(HEADING_PATTERN.findall(text))


def count_requirement_items(text: str) -> int:
    """Numbered or bulleted lines under any heading that mentions requirements."""
    count = 0
    in_requirements = False
    for line in text.splitlines():
        heading = ANY_HEADING_PATTERN.match(line)
        if heading:
            in_requirements = "requirement" in heading.group(1).lower()
            continue
        if in_requirements and LIST_ITEM_PATTERN.match(line):
            count += 1
    return count


def count_action_words(text: str, words: tuple[str, ...]) -> int:
    return sum(len(re.findall(rf"\b{re.escape(word)}\b", text, re.IGNORECASE)) for word in words)


# ---------------------------------------------------------------------------
# Criterion scorers
# ---------------------------------------------------------------------------


def score_completeness(text: str, evidence: SessionEvidence, config: ScoringConfig) -> int:
    """Word-count band (30) + essential topics present (40) + requirement-item band (30)."""
    score = band_score(count_words(text), config.word_count_bands, config.word_count_floor)
    score += coverage_points(text.lower(), config.essential_topics, config.essential_topic_points)
    score += band_score(count_requirement_items(text), config.requirement_item_bands, config.requirement_item_floor)
    return min(score, 100)


def score_clarity(text: str, evidence: SessionEvidence, config: ScoringConfig) -> int:
    """Section band (40) + heading band (30) + normative-language band (30)."""
    score = band_score(count_sections(text), config.section_count_bands, config.section_count_floor)
    score += band_score(count_headings(text), config.heading_count_bands, config.heading_count_floor)
    score += band_score(
        count_action_words(text, config.action_words), config.action_word_bands, config.action_word_floor
    )
    return min(score, 100)


def score_technical_feasibility(text: str, evidence: SessionEvidence, config: ScoringConfig) -> int:
    """Technical keyword coverage (40) + validation data (35) + performance coverage (25)."""
    lowered = text.lower()
    score = coverage_points(lowered, config.technical_keywords, config.technical_keyword_points)
    if evidence.has_technologies:
        score += config.technologies_points
    if evidence.has_architecture:
        score += config.architecture_points
    if evidence.has_feasibility_assessment:
        score += config.feasibility_assessment_points
    score += coverage_points(lowered, config.performance_keywords, config.performance_keyword_points)
    return min(score, 100)


def score_market_validation(text: str, evidence: SessionEvidence, config: ScoringConfig) -> int:
    """Market keyword coverage (40) + market research present (35) + business-value coverage (25)."""
    lowered = text.lower()
    score = coverage_points(lowered, config.market_keywords, config.market_keyword_points)
    if evidence.has_market_data:
        score += config.market_data_points
    score += coverage_points(lowered, config.business_keywords, config.business_keyword_points)
    return min(score, 100)


def score_requirements_coverage(text: str, evidence: SessionEvidence, config: ScoringConfig) -> int:
    """Functional band (40) + non-functional band (30) + capped user stories / acceptance criteria (30)."""
    score = band_score(evidence.functional_count, config.functional_bands, config.functional_floor)
    score += band_score(evidence.non_functional_count, config.non_functional_bands, config.non_functional_floor)
    score += min(
        config.user_story_points_cap, len(USER_STORY_PATTERN.findall(text)) * config.user_story_points_each
    )
    score += min(
        config.acceptance_points_cap, len(ACCEPTANCE_PATTERN.findall(text)) * config.acceptance_points_each
    )
    return min(score, 100)


CRITERION_SCORERS = {
    QualityCriterion.COMPLETENESS: score_completeness,
    QualityCriterion.CLARITY: score_clarity,
    QualityCriterion.TECHNICAL_FEASIBILITY: score_technical_feasibility,
    QualityCriterion.MARKET_VALIDATION: score_market_validation,
    QualityCriterion.REQUIREMENTS_COVERAGE: score_requirements_coverage,
}
