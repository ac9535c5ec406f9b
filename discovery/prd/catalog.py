"""PRD template definitions and template selection.

Three templates are defined here. Each section body carries `{placeholder}`
tokens that the generator substitutes from session data:
- COMPREHENSIVE: full ten-section document
- MINIMAL: overview, requirements, technical specs
- TECHNICAL_FOCUSED: architecture-heavy three-section document
"""

from discovery.schemas.prd import PRDTemplate, ProjectComplexity, TemplateSection, TemplateType

MINIMAL_REQUIREMENTS_BAND = 5  # fewer total requirements than this selects MINIMAL


def _section(title: str, template: str, order: int, required: bool = True) -> TemplateSection:
    return TemplateSection(title=title, template=template.strip("\n"), order=order, required=required)


PRD_TEMPLATES: dict[TemplateType, PRDTemplate] = {
    TemplateType.COMPREHENSIVE: PRDTemplate(
        name="Comprehensive PRD",
        description="Full-featured PRD with all sections",
        sections=[
            _section(
                "Executive Summary",
                """
## Executive Summary

### Project Overview
{projectOverview}

### Business Objectives
{businessObjectives}

### Success Metrics
{successMetrics}

### Timeline and Resources
{timelineResources}
""",
                1,
            ),
            _section(
                "Problem Statement",
                """
## Problem Statement

### Current State
{currentState}

### Problem Definition
{problemDefinition}

### Target Users
{targetUsers}

### Pain Points
{painPoints}
""",
                2,
            ),
            _section(
                "Solution Overview",
                """
## Solution Overview

### Proposed Solution
{proposedSolution}

### Key Features
{keyFeatures}

### Value Proposition
{valueProposition}

### Differentiation
{differentiation}
""",
                3,
            ),
            _section(
                "Market Analysis",
                """
## Market Analysis

### Target Market
{targetMarket}

### Market Size and Opportunity
{marketOpportunity}

### Competitive Landscape
{competitiveAnalysis}

### Market Positioning
{marketPositioning}
""",
                4,
            ),
            _section(
                "Functional Requirements",
                """
## Functional Requirements

{functionalRequirements}
""",
                5,
            ),
            _section(
                "Non-Functional Requirements",
                """
## Non-Functional Requirements

{nonFunctionalRequirements}
""",
                6,
            ),
            _section(
                "Technical Specifications",
                """
## Technical Specifications

### Architecture Overview
{architectureOverview}

### Technology Stack
{technologyStack}

### System Integrations
{systemIntegrations}

### Technical Constraints
{technicalConstraints}

### Scalability Considerations
{scalabilityConsiderations}
""",
                7,
            ),
            _section(
                "User Experience",
                """
## User Experience

### User Journey
{userJourney}

### Interface Requirements
{interfaceRequirements}

### Accessibility Requirements
{accessibilityRequirements}

### Mobile Considerations
{mobileConsiderations}
""",
                8,
                required=False,
            ),
            _section(
                "Implementation Plan",
                """
## Implementation Plan

### Development Phases
{developmentPhases}

### Milestones and Deliverables
{milestonesDeliverables}

### Resource Requirements
{resourceRequirements}

### Risk Assessment
{riskAssessment}
""",
                9,
                required=False,
            ),
            _section(
                "Success Criteria",
                """
## Success Criteria

### Key Performance Indicators
{keyPerformanceIndicators}

### Acceptance Criteria
{acceptanceCriteria}

### Testing Strategy
{testingStrategy}

### Launch Criteria
{launchCriteria}
""",
                10,
            ),
        ],
    ),
    TemplateType.MINIMAL: PRDTemplate(
        name="Minimal PRD",
        description="Essential sections only",
        sections=[
            _section(
                "Overview",
                """
## Project Overview

{projectOverview}

## Problem Statement

{problemStatement}

## Solution

{proposedSolution}
""",
                1,
            ),
            _section(
                "Requirements",
                """
## Requirements

### Functional Requirements
{functionalRequirements}

### Non-Functional Requirements
{nonFunctionalRequirements}
""",
                2,
            ),
            _section(
                "Technical Specifications",
                """
## Technical Specifications

{technicalSpecs}
""",
                3,
            ),
        ],
    ),
    TemplateType.TECHNICAL_FOCUSED: PRDTemplate(
        name="Technical-Focused PRD",
        description="Emphasis on technical specifications and architecture",
        sections=[
            _section(
                "Technical Overview",
                """
## Technical Overview

{technicalOverview}

## Architecture Design

{architectureDesign}

## Technology Stack

{technologyStack}
""",
                1,
            ),
            _section(
                "System Requirements",
                """
## System Requirements

### Functional Requirements
{functionalRequirements}

### Performance Requirements
{performanceRequirements}

### Security Requirements
{securityRequirements}
""",
                2,
            ),
            _section(
                "Implementation Details",
                """
## Implementation Details

{implementationDetails}

## Integration Requirements

{integrationRequirements}

## Deployment Strategy

{deploymentStrategy}
""",
                3,
            ),
        ],
    ),
}

PROJECT_TYPE_TEMPLATES: dict[str, TemplateType] = {
    "web application": TemplateType.COMPREHENSIVE,
    "mobile app": TemplateType.COMPREHENSIVE,
    "api service": TemplateType.TECHNICAL_FOCUSED,
    "microservice": TemplateType.TECHNICAL_FOCUSED,
    "library": TemplateType.TECHNICAL_FOCUSED,
    "tool": TemplateType.MINIMAL,
    "prototype": TemplateType.MINIMAL,
}


def parse_template_type(value: str | TemplateType | None) -> TemplateType | None:
    """Accept enum values or loose spellings ("technical-focused", "minimal")."""
    if value is None:
        return None
    if isinstance(value, TemplateType):
        return value
    normalized = value.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return TemplateType(normalized)
    except ValueError:
        return None


def select_prd_template(
    complexity: ProjectComplexity | str = ProjectComplexity.MEDIUM,
    project_type: str = "web application",
    requirements_count: int = 0,
    user_preference: str | TemplateType | None = None,
) -> TemplateType:
    """Pick a template from project characteristics.

    Precedence:
        1. A recognised user_preference always wins
        2. Project-type lookup (unknown types default to COMPREHENSIVE)
        3. Low complexity overrides to MINIMAL
        4. Fewer than 5 requirements overrides to MINIMAL

    Pure function -- no side effects.
    """
    preferred = parse_template_type(user_preference)
    if preferred is not None:
        return preferred

    selected = PROJECT_TYPE_TEMPLATES.get(project_type.lower(), TemplateType.COMPREHENSIVE)

    if ProjectComplexity(complexity) == ProjectComplexity.LOW:
        selected = TemplateType.MINIMAL

    if requirements_count < MINIMAL_REQUIREMENTS_BAND:
        selected = TemplateType.MINIMAL

    return selected


def get_template(template_type: TemplateType) -> PRDTemplate:
    return PRD_TEMPLATES[template_type]
