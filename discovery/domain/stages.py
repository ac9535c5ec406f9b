"""Stage enums and ordered-stage lookups.

Pure domain logic with no external dependencies.
"""
from enum import StrEnum


class DiscoveryStage(StrEnum):
    """Five-stage discovery workflow. Order is fixed by STAGE_ORDER."""

    PROBLEM_DISCOVERY = "problem-discovery"
    MARKET_RESEARCH = "market-research"
    TECHNICAL_FEASIBILITY = "technical-feasibility"
    REQUIREMENTS_SYNTHESIS = "requirements-synthesis"
    PRD_GENERATION = "prd-generation"


class SessionStatus(StrEnum):
    """Session lifecycle status, orthogonal to stage."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StageStatus(StrEnum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


STAGE_ORDER: tuple[DiscoveryStage, ...] = (
    DiscoveryStage.PROBLEM_DISCOVERY,
    DiscoveryStage.MARKET_RESEARCH,
    DiscoveryStage.TECHNICAL_FEASIBILITY,
    DiscoveryStage.REQUIREMENTS_SYNTHESIS,
    DiscoveryStage.PRD_GENERATION,
)

STAGE_NAMES: dict[DiscoveryStage, str] = {
    DiscoveryStage.PROBLEM_DISCOVERY: "Problem Discovery",
    DiscoveryStage.MARKET_RESEARCH: "Market Research",
    DiscoveryStage.TECHNICAL_FEASIBILITY: "Technical Feasibility",
    DiscoveryStage.REQUIREMENTS_SYNTHESIS: "Requirements Synthesis",
    DiscoveryStage.PRD_GENERATION: "PRD Generation",
}


def parse_stage(value: str | DiscoveryStage) -> DiscoveryStage | None:
    """Return the DiscoveryStage for a stage key, or None if unknown."""
    try:
        return DiscoveryStage(value)
    except ValueError:
        return None


def get_next_stage(current: str | DiscoveryStage) -> DiscoveryStage | None:
    """Return the stage after `current`, or None at the end / for unknown keys."""
    stage = parse_stage(current)
    if stage is None:
        return None
    index = STAGE_ORDER.index(stage)
    if index == len(STAGE_ORDER) - 1:
        return None
    return STAGE_ORDER[index + 1]


def get_previous_stage(current: str | DiscoveryStage) -> DiscoveryStage | None:
    """Return the stage before `current`, or None at the start / for unknown keys."""
    stage = parse_stage(current)
    if stage is None:
        return None
    index = STAGE_ORDER.index(stage)
    if index == 0:
        return None
    return STAGE_ORDER[index - 1]
