"""Static per-stage completion requirements.

Each stage lists the data fields that must be present (and non-empty) and
the minimum completion score needed before the stage counts as completed.
Used both to validate stage progress and to gate PRD generation.
"""

from dataclasses import dataclass

from discovery.domain.stages import DiscoveryStage


@dataclass(frozen=True)
class StageRequirement:
    required_fields: tuple[str, ...]
    min_completion_score: int


STAGE_REQUIREMENTS: dict[DiscoveryStage, StageRequirement] = {
    DiscoveryStage.PROBLEM_DISCOVERY: StageRequirement(
        required_fields=("problemStatement", "targetAudience", "successCriteria"),
        min_completion_score=70,
    ),
    DiscoveryStage.MARKET_RESEARCH: StageRequirement(
        required_fields=("competitorAnalysis", "marketSize", "opportunities"),
        min_completion_score=60,
    ),
    DiscoveryStage.TECHNICAL_FEASIBILITY: StageRequirement(
        required_fields=("techStack", "architecture", "complexity"),
        min_completion_score=65,
    ),
    DiscoveryStage.REQUIREMENTS_SYNTHESIS: StageRequirement(
        required_fields=("functionalRequirements", "nonFunctionalRequirements"),
        min_completion_score=75,
    ),
    DiscoveryStage.PRD_GENERATION: StageRequirement(
        required_fields=("prdContent", "qualityScore"),
        min_completion_score=80,
    ),
}


def get_stage_requirement(stage: DiscoveryStage) -> StageRequirement:
    """Return the requirement for a stage.

    Raises:
        KeyError: If stage has no requirement entry (cannot happen for DiscoveryStage members)
    """
    return STAGE_REQUIREMENTS[stage]
