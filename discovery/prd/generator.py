"""PRD generation from a discovery session.

Flow: validate preconditions -> select template -> build placeholders ->
substitute per section -> append custom sections and research appendix ->
sort by order -> render envelope (jinja2) -> optionally write the file.

Preconditions are checked before anything touches the filesystem.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from jinja2 import Environment, FileSystemLoader
from pydantic import ValidationError

from discovery.core.exceptions import PRDGenerationError, ValidationFailedError
from discovery.domain.stages import DiscoveryStage, StageStatus
from discovery.prd.placeholders import (
    assess_project_complexity,
    generate_template_placeholders,
    infer_project_type,
    normalize_non_functional_requirements,
    substitute_placeholders,
)
from discovery.prd.catalog import get_template, parse_template_type, select_prd_template
from discovery.schemas.prd import (
    CustomSection,
    FunctionalRequirement,
    PRDDocument,
    PRDGenerationResult,
    RequirementsBlock,
    Section,
    TemplateType,
)
from discovery.schemas.quality import QualityAssessment, QualityLevel
from discovery.schemas.session import DiscoverySession

logger = structlog.get_logger(__name__)

PRD_TEMPLATE_DIR = Path(__file__).parent / "templates"
PRD_VERSION = "1.0"
RESEARCH_APPENDIX_ORDER = 999
GOOD_QUALITY_SCORE = 75

RESEARCH_APPENDIX_HEADINGS = {
    "marketAnalysis": "Market Research",
    "technicalValidation": "Technical Validation",
    "competitiveAnalysis": "Competitive Analysis",
    "generalResearch": "General Research",
}


def prd_filename(project_name: str, generated_at: datetime) -> str:
    """`<slug>-prd-<YYYY-MM-DD>.md` where slug is the lowercased, hyphenated name."""
    slug = "-".join(project_name.lower().split())
    return f"{slug}-prd-{generated_at.date().isoformat()}.md"


def _functional_requirements(items: list[Any]) -> list[FunctionalRequirement]:
    requirements = []
    for index, item in enumerate(items, start=1):
        if isinstance(item, str):
            item = {"description": item}
        criteria = item.get("acceptanceCriteria") or []
        if isinstance(criteria, str):
            criteria = [criteria]
        requirements.append(
            FunctionalRequirement(
                id=item.get("id") or f"FR-{index:03d}",
                title=item.get("title") or item.get("description", "")[:60] or f"Requirement {index}",
                description=item.get("description") or item.get("title") or "",
                priority=item.get("priority") or "medium",
                user_story=item.get("userStory"),
                acceptance_criteria=[str(c) for c in criteria],
            )
        )
    return requirements


def _custom_sections(items: list[CustomSection | dict] | None) -> list[CustomSection]:
    parsed = []
    for index, item in enumerate(items or [], start=1):
        try:
            parsed.append(CustomSection.model_validate(item))
        except ValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in error["loc"]) or "section" for error in exc.errors())
            raise ValidationFailedError(f"Custom section {index} is invalid: {fields}") from exc
    return parsed


class PRDGenerator:
    """Assemble PRD documents from discovery sessions."""

    def __init__(self, min_requirements: int = 3, clock: Callable[[], datetime] | None = None):
        self.min_requirements = min_requirements
        self.clock = clock or (lambda: datetime.now(UTC))
        self.env = Environment(
            loader=FileSystemLoader(str(PRD_TEMPLATE_DIR)),
            autoescape=False,  # Markdown should NOT be escaped
            keep_trailing_newline=True,
        )

    def validate_session(self, session: DiscoverySession) -> None:
        """Raise PRDGenerationError unless requirements synthesis is complete.

        Raises:
            PRDGenerationError: Stage not completed, or too few functional requirements
        """
        progress = session.progress.get(DiscoveryStage.REQUIREMENTS_SYNTHESIS.value)
        if progress is None or progress.status != StageStatus.COMPLETED:
            status = progress.status.value if progress else "missing"
            raise PRDGenerationError(
                f"Requirements synthesis must be completed before PRD generation "
                f"(session '{session.session_id}', stage status: {status})"
            )

        functional = progress.data.get("functionalRequirements") or []
        if len(functional) < self.min_requirements:
            raise PRDGenerationError(
                f"Minimum {self.min_requirements} functional requirements required "
                f"(session '{session.session_id}' has {len(functional)})"
            )

    def select_template(self, session: DiscoverySession, template_type: str | TemplateType | None = None) -> TemplateType:
        if template_type is not None:
            explicit = parse_template_type(template_type)
            if explicit is None:
                raise ValidationFailedError(
                    f"Unknown template type '{template_type}'. Valid types: "
                    f"{', '.join(t.value for t in TemplateType)}"
                )
            return explicit

        requirements = session.stage_data(DiscoveryStage.REQUIREMENTS_SYNTHESIS)
        count = len(requirements.get("functionalRequirements") or []) + len(
            requirements.get("nonFunctionalRequirements") or []
        )
        return select_prd_template(
            complexity=assess_project_complexity(session),
            project_type=infer_project_type(session),
            requirements_count=count,
            user_preference=session.metadata.template_preference,
        )

    def build_research_appendix(self, session: DiscoverySession) -> Section | None:
        """Appendix summarising recorded research, or None when nothing was recorded."""
        blocks = []
        for category, heading in RESEARCH_APPENDIX_HEADINGS.items():
            records = [r for r in session.research_data.get(category, []) if r.success]
            if not records:
                continue
            lines = [
                f"- {r.query} ({r.provider}): {r.results.get('summary') or 'Analysis completed'}" for r in records
            ]
            blocks.append(f"### {heading}\n" + "\n".join(lines))

        if not blocks:
            return None
        return Section(
            title="Research Appendix",
            content="## Research Appendix\n\n" + "\n\n".join(blocks),
            required=False,
            order=RESEARCH_APPENDIX_ORDER,
        )

    def render(self, sections: list[Section], session: DiscoverySession, generated_at: datetime) -> str:
        template = self.env.get_template("prd.md.j2")
        return template.render(
            project_name=session.project_name,
            generated_date=generated_at.date().isoformat(),
            version=PRD_VERSION,
            session_id=session.session_id,
            sections=sections,
        )

    def save(self, content: str, project_name: str, output_path: str | Path, generated_at: datetime) -> Path:
        """Write the document under output_path.

        Raises:
            PRDGenerationError: If the directory or file cannot be written
        """
        directory = Path(output_path)
        file_path = directory / prd_filename(project_name, generated_at)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise PRDGenerationError(f"Failed to save PRD to {file_path}: {exc}") from exc
        return file_path

    def build_document(
        self,
        session: DiscoverySession,
        sections: list[Section],
        template_type: TemplateType,
        generated_at: datetime,
    ) -> PRDDocument:
        requirements = session.stage_data(DiscoveryStage.REQUIREMENTS_SYNTHESIS)
        technical = session.stage_data(DiscoveryStage.TECHNICAL_FEASIBILITY)
        market = session.stage_data(DiscoveryStage.MARKET_RESEARCH)
        prefs = session.metadata.user_preferences

        return PRDDocument(
            title=f"{session.project_name} - Product Requirements Document",
            sections=sections,
            requirements=RequirementsBlock(
                functional=_functional_requirements(requirements.get("functionalRequirements") or []),
                non_functional=normalize_non_functional_requirements(
                    requirements.get("nonFunctionalRequirements") or []
                ),
            ),
            technical_specs={
                "architecture": technical.get("architecture") or "Architecture to be defined",
                "techStack": technical.get("technologies")
                or technical.get("techStack")
                or session.metadata.tech_stack_preferences,
                "integrations": technical.get("integrations") or [],
                "constraints": session.metadata.constraints or prefs.get("constraints") or [],
                "scalabilityConsiderations": technical.get("scalabilityConsiderations"),
                "feasibilityAssessment": technical.get("feasibilityAssessment"),
            },
            market_context={
                "targetMarket": market.get("targetMarket") or "Target market analysis pending",
                "competitiveAnalysis": market.get("competitiveAnalysis")
                or market.get("competitorAnalysis")
                or "Competitive analysis needed",
                "marketOpportunity": market.get("marketOpportunity")
                or market.get("opportunities")
                or "Market opportunity assessment required",
                "riskFactors": market.get("riskFactors") or [],
            },
            metadata={
                "version": PRD_VERSION,
                "createdAt": generated_at.isoformat(),
                "projectType": infer_project_type(session),
                "estimatedComplexity": assess_project_complexity(session).value,
                "template": template_type.value,
                "targetAudience": requirements.get("targetUsers") or [],
                "businessGoals": prefs.get("businessGoals") or [],
                "discoverySessionId": session.session_id,
            },
        )

    def generate(
        self,
        session: DiscoverySession,
        template_type: str | TemplateType | None = None,
        output_path: str | Path | None = None,
        include_research_data: bool = True,
        custom_sections: list[CustomSection | dict] | None = None,
    ) -> PRDGenerationResult:
        """Generate a PRD for the session.

        Args:
            session: Session whose requirements synthesis stage is completed
            template_type: Explicit template; otherwise selected from project characteristics
            output_path: Directory to write `<slug>-prd-<date>.md` into
            include_research_data: Append a research appendix when research exists
            custom_sections: Extra sections, placed by their `order`

        Returns:
            PRDGenerationResult with text, structured document, counts and file path

        Raises:
            PRDGenerationError: Preconditions not met or the file cannot be written
            ValidationFailedError: Unknown explicit template type or a malformed custom section
        """
        self.validate_session(session)
        extra_sections = _custom_sections(custom_sections)

        generated_at = self.clock()
        selected = self.select_template(session, template_type)
        template = get_template(selected)
        placeholders = generate_template_placeholders(session)

        sections = [
            Section(
                title=s.title,
                content=substitute_placeholders(s.template, placeholders).strip(),
                required=s.required,
                order=s.order,
            )
            for s in template.sections
        ]
        for custom in extra_sections:
            content = custom.content.strip()
            if not content.startswith("#"):
                content = f"## {custom.title}\n\n{content}"
            sections.append(Section(title=custom.title, content=content, required=custom.required, order=custom.order))

        if include_research_data:
            appendix = self.build_research_appendix(session)
            if appendix is not None:
                sections.append(appendix)

        sections.sort(key=lambda s: s.order)
        content = self.render(sections, session, generated_at)
        document = self.build_document(session, sections, selected, generated_at)

        file_path = None
        if output_path is not None:
            file_path = str(self.save(content, session.project_name, output_path, generated_at))

        result = PRDGenerationResult(
            content=content,
            document=document,
            template_type=selected,
            template_name=template.name,
            word_count=len(content.split()),
            section_count=len(sections),
            file_path=file_path,
            generated_at=generated_at,
            recommendations=self.session_recommendations(session),
        )
        logger.info(
            "prd_generated",
            session_id=session.session_id,
            template=selected.value,
            word_count=result.word_count,
            section_count=result.section_count,
            file_path=file_path,
        )
        return result

    def session_recommendations(
        self, session: DiscoverySession, assessment: QualityAssessment | None = None
    ) -> list[str]:
        """Recommendations from the session's requirement counts and, if given, the assessment."""
        recommendations = list(assessment.recommendations) if assessment else []
        requirements = session.stage_data(DiscoveryStage.REQUIREMENTS_SYNTHESIS)

        if len(requirements.get("functionalRequirements") or []) < 5:
            recommendations.append("Consider adding more detailed functional requirements")
        if len(requirements.get("nonFunctionalRequirements") or []) < 3:
            recommendations.append("Add non-functional requirements for performance, security, and usability")
        if assessment is not None and assessment.overall_score < GOOD_QUALITY_SCORE:
            recommendations.append(
                "PRD quality is below recommended threshold - consider additional discovery research"
            )
        if assessment is not None and assessment.quality_level == QualityLevel.POOR:
            recommendations.append("Revisit problem discovery before sharing this PRD with stakeholders")
        return recommendations
