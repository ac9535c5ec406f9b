"""Input validation rules for discovery data.

Pure functions returning result objects; callers decide whether to raise.
"""

import re
from dataclasses import dataclass, field

from discovery.domain.stages import DiscoveryStage

PROJECT_NAME_MIN_LENGTH = 2
PROJECT_NAME_MAX_LENGTH = 100
PROJECT_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-_]+$")

PROBLEM_STATEMENT_MIN_LENGTH = 10
PROBLEM_STATEMENT_MAX_LENGTH = 1000

REQUIREMENT_MIN_LENGTH = 5
REQUIREMENT_MAX_LENGTH = 500

RESEARCH_QUERY_MIN_LENGTH = 3
RESEARCH_QUERY_MAX_LENGTH = 200


@dataclass
class FieldValidation:
    valid: bool
    error: str = ""


@dataclass
class StageDataValidation:
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _validate_length(value: object, label: str, min_length: int, max_length: int) -> FieldValidation:
    if not value or not isinstance(value, str):
        return FieldValidation(False, f"{label} is required")
    if len(value) < min_length:
        return FieldValidation(False, f"{label} must be at least {min_length} characters (got {len(value)})")
    if len(value) > max_length:
        return FieldValidation(False, f"{label} must be no more than {max_length} characters (got {len(value)})")
    return FieldValidation(True)


def validate_project_name(project_name: object) -> FieldValidation:
    """Project names are 2-100 chars of letters, digits, spaces, hyphens and underscores."""
    result = _validate_length(project_name, "Project name", PROJECT_NAME_MIN_LENGTH, PROJECT_NAME_MAX_LENGTH)
    if not result.valid:
        return result
    if not PROJECT_NAME_PATTERN.match(project_name):  # type: ignore[arg-type]
        return FieldValidation(False, f"Project name '{project_name}' contains invalid characters")
    return FieldValidation(True)


def validate_problem_statement(statement: object) -> FieldValidation:
    return _validate_length(statement, "Problem statement", PROBLEM_STATEMENT_MIN_LENGTH, PROBLEM_STATEMENT_MAX_LENGTH)


def validate_requirement_text(text: object) -> FieldValidation:
    return _validate_length(text, "Requirement", REQUIREMENT_MIN_LENGTH, REQUIREMENT_MAX_LENGTH)


def validate_research_query(query: object) -> FieldValidation:
    return _validate_length(query, "Research query", RESEARCH_QUERY_MIN_LENGTH, RESEARCH_QUERY_MAX_LENGTH)


def validate_stage_data(stage: DiscoveryStage, data: dict) -> StageDataValidation:
    """Check stage data for blocking errors and advisory warnings.

    Errors mark the data as invalid; warnings point at fields that would
    strengthen the stage but are not mandatory.
    """
    result = StageDataValidation()

    if stage == DiscoveryStage.PROBLEM_DISCOVERY:
        statement = data.get("problemStatement") or ""
        if len(str(statement).strip()) < PROBLEM_STATEMENT_MIN_LENGTH:
            result.errors.append("Problem statement is required and must be descriptive")
        if len(str(data.get("targetAudience") or "").strip()) < 5:
            result.warnings.append("Target audience should be specified")
        if not data.get("successCriteria"):
            result.warnings.append("Success criteria should be defined")

    elif stage == DiscoveryStage.MARKET_RESEARCH:
        if not data.get("competitorAnalysis"):
            result.warnings.append("Competitor analysis would strengthen the research")
        if not data.get("marketSize"):
            result.warnings.append("Market size estimation would be valuable")

    elif stage == DiscoveryStage.TECHNICAL_FEASIBILITY:
        if not (data.get("techStack") or data.get("technologies")):
            result.warnings.append("Technology stack recommendations are helpful")
        if not data.get("complexity"):
            result.warnings.append("Complexity assessment helps with planning")

    elif stage == DiscoveryStage.REQUIREMENTS_SYNTHESIS:
        if not data.get("functionalRequirements"):
            result.errors.append("Functional requirements are required")
        if not data.get("nonFunctionalRequirements"):
            result.warnings.append("Non-functional requirements should be considered")

    elif stage == DiscoveryStage.PRD_GENERATION:
        if len(str(data.get("prdContent") or "").strip()) < 100:
            result.errors.append("PRD content is required and must be comprehensive")
        if not data.get("qualityScore"):
            result.warnings.append("Quality assessment is recommended")

    result.valid = not result.errors
    return result
