"""Derive template placeholder text and project characteristics from a session.

Missing data never fails generation: every key falls back to a deterministic
"... to be defined" string.
"""

import re
from typing import Any

from discovery.domain.stages import DiscoveryStage
from discovery.schemas.prd import NonFunctionalRequirement, ProjectComplexity
from discovery.schemas.session import DiscoverySession

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")

NFR_CATEGORIES = {
    "performance": "Performance",
    "security": "Security",
    "usability": "Usability",
    "reliability": "Reliability",
    "scalability": "Scalability",
    "maintainability": "Maintainability",
}


def _first(*values: Any) -> Any:
    """First value that is present and non-empty."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        if isinstance(value, (list, tuple, dict)) and not value:
            continue
        return value
    return None


def _item_text(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("name", "title", "description", "summary", "value"):
            if item.get(key):
                rest = item.get("description") if key in ("name", "title") else None
                return f"{item[key]}: {rest}" if rest else str(item[key])
        return ", ".join(f"{k}: {v}" for k, v in item.items())
    return str(item)


def format_text(value: Any, default: str) -> str:
    """Render a scalar, list or mapping as markdown text; default when empty."""
    value = _first(value)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return "\n".join(f"- **{key}**: {_item_text(val)}" for key, val in value.items())
    if isinstance(value, (list, tuple)):
        return "\n".join(f"- {_item_text(item)}" for item in value)
    return str(value)


def format_inline(value: Any, default: str) -> str:
    value = _first(value)
    if value is None:
        return default
    if isinstance(value, (list, tuple)):
        return ", ".join(_item_text(item) for item in value)
    return format_text(value, default)


def format_requirements(requirements: list[dict[str, Any]]) -> str:
    """Numbered requirement list with priority, user story and acceptance criteria."""
    if not requirements:
        return "Requirements to be defined based on discovery findings"

    lines = []
    for index, req in enumerate(requirements, start=1):
        if isinstance(req, str):
            lines.append(f"{index}. {req}")
            continue
        title = req.get("title") or req.get("id") or f"Requirement {index}"
        priority = f" ({str(req['priority']).upper()} priority)" if req.get("priority") else ""
        block = f"{index}. **{title}**{priority}"
        description = req.get("description") or req.get("requirement")
        if description:
            block += f"\n   {description}"
        if req.get("userStory"):
            block += f"\n   User Story: {req['userStory']}"
        criteria = req.get("acceptanceCriteria") or req.get("criteria")
        if criteria:
            if isinstance(criteria, (list, tuple)):
                criteria = ", ".join(str(c) for c in criteria)
            block += f"\n   Acceptance Criteria: {criteria}"
        lines.append(block)
    return "\n\n".join(lines)


def normalize_nfr_category(value: str | None) -> str:
    """Capitalised NFR category; unknown categories default to Performance."""
    if not value:
        return "Performance"
    return NFR_CATEGORIES.get(value.strip().lower(), "Performance")


def normalize_non_functional_requirements(items: list[Any]) -> list[NonFunctionalRequirement]:
    normalized = []
    for index, item in enumerate(items, start=1):
        if isinstance(item, str):
            item = {"description": item}
        criteria = item.get("acceptanceCriteria") or item.get("criteria")
        if isinstance(criteria, (list, tuple)):
            criteria = "; ".join(str(c) for c in criteria)
        normalized.append(
            NonFunctionalRequirement(
                id=item.get("id") or f"NFR-{index:03d}",
                category=normalize_nfr_category(item.get("category") or item.get("type")),
                requirement=item.get("description") or item.get("requirement") or "",
                priority=item.get("priority") or "medium",
                acceptance_criteria=criteria,
            )
        )
    return normalized


def _filter_nfrs(items: list[Any], categories: set[str]) -> list[Any]:
    return [
        item
        for item in items
        if isinstance(item, dict) and normalize_nfr_category(item.get("category") or item.get("type")) in categories
    ]


def assess_project_complexity(session: DiscoverySession) -> ProjectComplexity:
    """Explicit complexity from technical feasibility wins; otherwise score size.

    Scoring: functional >15 -> 3, >8 -> 2, >3 -> 1; non-functional >8 -> 2,
    >4 -> 1; tech stack >8 -> 2, >4 -> 1. Totals map to enterprise (>=6),
    high (>=4), medium (>=1), low (0).
    """
    technical = session.stage_data(DiscoveryStage.TECHNICAL_FEASIBILITY)
    explicit = technical.get("complexity")
    if isinstance(explicit, str):
        try:
            return ProjectComplexity(explicit.strip().lower())
        except ValueError:
            pass

    requirements = session.stage_data(DiscoveryStage.REQUIREMENTS_SYNTHESIS)
    functional = len(requirements.get("functionalRequirements") or [])
    non_functional = len(requirements.get("nonFunctionalRequirements") or [])
    stack = technical.get("technologies") or technical.get("techStack") or []
    stack_size = len(stack) if isinstance(stack, (list, tuple)) else 1

    score = 0
    if functional > 15:
        score += 3
    elif functional > 8:
        score += 2
    elif functional > 3:
        score += 1

    if non_functional > 8:
        score += 2
    elif non_functional > 4:
        score += 1

    if stack_size > 8:
        score += 2
    elif stack_size > 4:
        score += 1

    if score >= 6:
        return ProjectComplexity.ENTERPRISE
    if score >= 4:
        return ProjectComplexity.HIGH
    if score >= 1:
        return ProjectComplexity.MEDIUM
    return ProjectComplexity.LOW


def infer_project_type(session: DiscoverySession) -> str:
    """Guess the project type from its name and preferred tech stack."""
    name = session.project_name.lower()
    stack = session.metadata.tech_stack_preferences or session.metadata.user_preferences.get("techStack") or []
    stack_text = " ".join(str(s) for s in stack).lower()

    if "api" in name or "api" in stack_text:
        return "api service"
    if "mobile" in name or "react native" in stack_text or "flutter" in stack_text:
        return "mobile app"
    if "microservice" in stack_text or "docker" in stack_text:
        return "microservice"
    if "library" in stack_text or "package" in stack_text:
        return "library"
    if "tool" in name or "utility" in name:
        return "tool"
    if "prototype" in name or "poc" in name:
        return "prototype"
    return "web application"


def generate_template_placeholders(session: DiscoverySession) -> dict[str, str]:
    """Flat key -> text map covering every token in the bundled templates."""
    problem = session.stage_data(DiscoveryStage.PROBLEM_DISCOVERY)
    market = session.stage_data(DiscoveryStage.MARKET_RESEARCH)
    technical = session.stage_data(DiscoveryStage.TECHNICAL_FEASIBILITY)
    requirements = session.stage_data(DiscoveryStage.REQUIREMENTS_SYNTHESIS)
    prefs = session.metadata.user_preferences

    functional = requirements.get("functionalRequirements") or []
    non_functional = requirements.get("nonFunctionalRequirements") or []
    tech_stack = _first(
        technical.get("technologies"),
        technical.get("techStack"),
        session.metadata.tech_stack_preferences,
        prefs.get("techStack"),
    )
    constraints = _first(session.metadata.constraints, prefs.get("constraints"))
    success_criteria = _first(requirements.get("successCriteria"), problem.get("successCriteria"))
    architecture = format_text(technical.get("architecture"), "Architecture design pending")
    problem_statement = format_text(problem.get("problemStatement"), "Problem statement to be defined")
    key_features = _first(problem.get("keyFeatures"), [f.get("title") for f in functional if isinstance(f, dict) and f.get("title")])

    overview_detail = _first(problem.get("problemStatement"))
    project_overview = f"{session.project_name} - {overview_detail or 'Project overview to be defined'}"

    performance = _filter_nfrs(non_functional, {"Performance", "Scalability"})
    security = _filter_nfrs(non_functional, {"Security"})

    technology_stack = format_inline(tech_stack, "Technology stack to be defined")

    return {
        "projectName": session.project_name,
        "projectOverview": project_overview,
        "businessObjectives": format_text(prefs.get("businessGoals"), "Business objectives to be defined"),
        "successMetrics": format_text(success_criteria, "Success metrics to be defined"),
        "timelineResources": format_text(
            _first(prefs.get("timeline"), technical.get("timeline")), "Timeline and resources to be defined"
        ),
        "currentState": format_text(problem.get("currentState"), "Current state analysis to be defined"),
        "problemDefinition": problem_statement,
        "problemStatement": problem_statement,
        "targetUsers": format_inline(
            _first(requirements.get("targetUsers"), problem.get("targetUsers"), problem.get("targetAudience")),
            "Target users to be defined",
        ),
        "painPoints": format_text(problem.get("painPoints"), "Pain points to be defined"),
        "proposedSolution": format_text(problem.get("proposedSolution"), "Solution approach to be defined"),
        "keyFeatures": format_text(key_features, "Key features to be defined"),
        "valueProposition": format_text(problem.get("valueProposition"), "Value proposition to be defined"),
        "differentiation": format_text(
            _first(problem.get("differentiation"), market.get("differentiation")), "Differentiation to be defined"
        ),
        "targetMarket": format_text(
            _first(market.get("targetMarket"), problem.get("targetAudience")), "Target market to be defined"
        ),
        "marketOpportunity": format_text(
            _first(market.get("marketOpportunity"), market.get("marketSize"), market.get("opportunities")),
            "Market opportunity to be defined",
        ),
        "competitiveAnalysis": format_text(
            _first(market.get("competitiveAnalysis"), market.get("competitorAnalysis")),
            "Competitive analysis to be defined",
        ),
        "marketPositioning": format_text(market.get("marketPositioning"), "Market positioning to be defined"),
        "functionalRequirements": format_requirements(functional),
        "nonFunctionalRequirements": format_requirements(non_functional),
        "architectureOverview": architecture,
        "architectureDesign": architecture,
        "technologyStack": technology_stack,
        "systemIntegrations": format_text(technical.get("integrations"), "System integrations to be defined"),
        "technicalConstraints": format_text(constraints, "No specific constraints identified"),
        "scalabilityConsiderations": format_text(
            technical.get("scalabilityConsiderations"), "Scalability considerations to be defined"
        ),
        "userJourney": format_text(requirements.get("userJourney"), "User journey to be defined"),
        "interfaceRequirements": format_text(
            requirements.get("interfaceRequirements"), "Interface requirements to be defined"
        ),
        "accessibilityRequirements": format_text(
            requirements.get("accessibilityRequirements"), "Accessibility requirements to be defined"
        ),
        "mobileConsiderations": format_text(
            requirements.get("mobileConsiderations"), "Mobile considerations to be defined"
        ),
        "developmentPhases": format_text(technical.get("developmentPhases"), "Development phases to be defined"),
        "milestonesDeliverables": format_text(
            technical.get("milestones"), "Milestones and deliverables to be defined"
        ),
        "resourceRequirements": format_text(
            technical.get("resourceRequirements"), "Resource requirements to be defined"
        ),
        "riskAssessment": format_text(
            _first(technical.get("risks"), market.get("riskFactors")), "Risk assessment to be defined"
        ),
        "keyPerformanceIndicators": format_text(success_criteria, "Key performance indicators to be defined"),
        "acceptanceCriteria": format_text(
            requirements.get("acceptanceCriteria"), "Acceptance criteria to be defined"
        ),
        "testingStrategy": format_text(
            _first(requirements.get("testingStrategy"), technical.get("testingStrategy")),
            "Testing strategy to be defined",
        ),
        "launchCriteria": format_text(requirements.get("launchCriteria"), "Launch criteria to be defined"),
        "technicalSpecs": f"**Architecture**: {architecture}\n\n**Technology Stack**: {technology_stack}",
        "technicalOverview": format_text(
            _first(technical.get("feasibilityAssessment"), technical.get("summary")),
            "Technical overview to be defined",
        ),
        "performanceRequirements": format_requirements(performance)
        if performance
        else "Performance requirements to be defined",
        "securityRequirements": format_requirements(security) if security else "Security requirements to be defined",
        "implementationDetails": format_text(
            technical.get("implementationDetails"), "Implementation details to be defined"
        ),
        "integrationRequirements": format_text(
            technical.get("integrations"), "Integration requirements to be defined"
        ),
        "deploymentStrategy": format_text(technical.get("deploymentStrategy"), "Deployment strategy to be defined"),
    }


def substitute_placeholders(template: str, placeholders: dict[str, str]) -> str:
    """Replace every {token} in one pass; unknown tokens get "[token to be defined]"."""

    def replace(match: re.Match) -> str:
        key = match.group(1)
        value = placeholders.get(key)
        return value if value else f"[{key} to be defined]"

    return PLACEHOLDER_PATTERN.sub(replace, template)
