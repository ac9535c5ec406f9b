"""Discovery workflow operations that drive a session from start to PRD.

Each public coroutine returns an OperationResult: DiscoveryErrors raised by
the session manager, router, generator or assessor are logged and converted
to {success: False, error: {code, message}} here and nowhere else.
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any

import structlog

from discovery.core.config import Settings, get_settings
from discovery.core.exceptions import (
    DiscoveryError,
    InvalidStageError,
    QualityAssessmentError,
    ValidationFailedError,
)
from discovery.core.logging import configure_structlog
from discovery.domain.requirements_quality import calculate_requirements_quality
from discovery.domain.stages import STAGE_NAMES, DiscoveryStage
from discovery.domain.validation import validate_research_query, validate_requirement_text
from discovery.prd.generator import PRDGenerator
from discovery.quality.assessor import QualityAssessor
from discovery.quality.scoring import ScoringConfig
from discovery.research.factory import build_research_router
from discovery.research.router import ResearchRouter
from discovery.schemas.prd import CustomSection
from discovery.schemas.results import OperationResult
from discovery.schemas.session import DiscoverySession
from discovery.services.session_manager import DiscoverySessionManager, calculate_session_progress
from discovery.storage.session_store import build_session_store

logger = structlog.get_logger(__name__)

RESEARCH_FOCUS_OPTIONS = ("market_size", "competitive_analysis", "user_needs", "pricing", "trends")
PROJECT_SCALES = {"small": "low", "medium": "medium", "large": "high", "enterprise": "enterprise"}
REQUIREMENTS_READY_SCORE = 70


def boundary(operation: str):
    """Convert DiscoveryErrors raised by an operation into a failed OperationResult."""

    def decorator(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[OperationResult]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> OperationResult:
            try:
                with structlog.contextvars.bound_contextvars(operation=operation):
                    return OperationResult.ok(await fn(*args, **kwargs))
            except DiscoveryError as exc:
                logger.warning(
                    "discovery_operation_failed",
                    operation=operation,
                    code=exc.code.value,
                    error=exc.message,
                )
                return OperationResult.fail(exc)

        return wrapper

    return decorator


def _require_stage_in(session: DiscoverySession, allowed: tuple[DiscoveryStage, ...], action: str) -> None:
    if session.stage not in allowed:
        names = " or ".join(STAGE_NAMES[s] for s in allowed)
        raise InvalidStageError(
            f"{action} can only be conducted during {names} stages. Current stage: {session.stage.value}"
        )


def _requirement_dicts(items: list[Any], label: str) -> list[dict[str, Any]]:
    """Accept requirement objects or bare description strings."""
    normalized = []
    for index, item in enumerate(items, start=1):
        if isinstance(item, str):
            normalized.append({"description": item})
        elif isinstance(item, Mapping):
            normalized.append(dict(item))
        else:
            raise ValidationFailedError(f"{label} {index} must be an object or a string")
    return normalized


def _number_items(items: list[dict[str, Any]], prefix: str) -> list[dict[str, Any]]:
    return [{**item, "id": item.get("id") or f"{prefix}-{index:03d}"} for index, item in enumerate(items, start=1)]


class DiscoveryWorkflowService:
    """Stage operations over a session manager, research router, PRD generator and assessor."""

    def __init__(
        self,
        sessions: DiscoverySessionManager,
        router: ResearchRouter,
        generator: PRDGenerator | None = None,
        assessor: QualityAssessor | None = None,
        output_dir: str | Path | None = None,
        max_research_queries: int = 5,
        max_technologies: int = 10,
        min_requirements: int = 3,
        max_requirements: int = 20,
    ):
        self.sessions = sessions
        self.router = router
        self.generator = generator or PRDGenerator(min_requirements=min_requirements)
        self.assessor = assessor or QualityAssessor()
        self.output_dir = output_dir
        self.max_research_queries = max_research_queries
        self.max_technologies = max_technologies
        self.min_requirements = min_requirements
        self.max_requirements = max_requirements

    def start_config_watch(self, stop_event: asyncio.Event | None = None) -> asyncio.Task | None:
        """Start hot reload of the research routing config; see ResearchRouter.start_config_watch."""
        return self.router.start_config_watch(stop_event)

    async def _active_session(self, session_id: str) -> DiscoverySession:
        session = await self.sessions.get_session(session_id)
        self.sessions.ensure_not_expired(session)
        return session

    @boundary("start_session")
    async def start_session(self, project_name: str, preferences: dict[str, Any] | None = None) -> dict[str, Any]:
        session = await self.sessions.create_session(project_name, preferences)
        return {
            "session": session.to_document(),
            "nextSteps": [
                "Begin with problem discovery by clearly defining the problem statement",
                "Identify target users and their pain points",
                "Define success criteria and key metrics",
                "Use research_market_opportunity for market validation",
            ],
        }

    @boundary("define_problem")
    async def define_problem(
        self,
        session_id: str,
        problem_statement: str,
        target_audience: list[str] | str,
        success_criteria: list[str],
        pain_points: list[str] | None = None,
    ) -> dict[str, Any]:
        """Record Problem Discovery findings."""
        await self._active_session(session_id)
        data: dict[str, Any] = {
            "problemStatement": problem_statement,
            "targetAudience": target_audience,
            "successCriteria": success_criteria,
        }
        if pain_points:
            data["painPoints"] = pain_points
        session = await self.sessions.update_stage_progress(
            session_id, DiscoveryStage.PROBLEM_DISCOVERY, {"data": data}
        )
        return {"stageProgress": session.progress[DiscoveryStage.PROBLEM_DISCOVERY.value].to_document()}

    @boundary("research_market_opportunity")
    async def research_market_opportunity(
        self,
        session_id: str,
        research_queries: list[str],
        target_market: str | None = None,
        competitors: list[str] | None = None,
        research_focus: str = "market_size",
        findings: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run market queries through the router and record them as marketAnalysis research.

        Args:
            research_queries: 1 to max_research_queries queries
            findings: Analysis to merge into the Market Research stage
                (competitorAnalysis, marketSize, opportunities, ...)

        Individual query failures are reported in the results, not raised.
        """
        if not 1 <= len(research_queries) <= self.max_research_queries:
            raise ValidationFailedError(
                f"Market research takes 1-{self.max_research_queries} queries, got {len(research_queries)}"
            )
        for query in research_queries:
            check = validate_research_query(query)
            if not check.valid:
                raise ValidationFailedError(check.error)
        if research_focus not in RESEARCH_FOCUS_OPTIONS:
            raise ValidationFailedError(
                f"Unknown research focus '{research_focus}'. Valid options: {', '.join(RESEARCH_FOCUS_OPTIONS)}"
            )

        session = await self._active_session(session_id)
        _require_stage_in(
            session, (DiscoveryStage.PROBLEM_DISCOVERY, DiscoveryStage.MARKET_RESEARCH), "Market research"
        )

        competitors = competitors or []
        context = {
            "stage": DiscoveryStage.MARKET_RESEARCH.value,
            "focus": "market",
            "projectType": session.project_name,
            "targetMarket": target_market or "",
            "competitors": competitors,
        }
        items = [{"query": query, "context": context} for query in research_queries]
        results = []
        for outcome in await self.router.route_batch(items):
            if outcome.success:
                research = outcome.result
                await self.sessions.add_research_data(
                    session_id,
                    "marketAnalysis",
                    {
                        "query": outcome.query,
                        "provider": research.provider,
                        "queryType": research.query_type.value,
                        "results": research.result.model_dump(),
                    },
                )
                results.append(
                    {
                        "query": outcome.query,
                        "provider": research.provider,
                        "queryType": research.query_type.value,
                        "explanation": research.explanation,
                        "summary": research.result.summary,
                        "sources": research.result.sources,
                    }
                )
            else:
                await self.sessions.add_research_data(
                    session_id,
                    "marketAnalysis",
                    {
                        "query": outcome.query,
                        "provider": "none",
                        "success": False,
                        "errorMessage": outcome.error["message"],
                    },
                )
                results.append({"query": outcome.query, "error": outcome.error})

        succeeded = [r for r in results if "error" not in r]
        data: dict[str, Any] = {
            "researchFocus": research_focus,
            "researchQueriesCompleted": len(succeeded),
            "totalQueries": len(research_queries),
        }
        if target_market:
            data["targetMarket"] = target_market
        if competitors:
            data["competitors"] = competitors
        data.update(findings or {})

        if session.stage == DiscoveryStage.PROBLEM_DISCOVERY:
            await self.sessions.advance_stage(session_id)
        session = await self.sessions.update_stage_progress(
            session_id, DiscoveryStage.MARKET_RESEARCH, {"data": data}
        )

        logger.info(
            "market_research_completed",
            session_id=session_id,
            total=len(research_queries),
            succeeded=len(succeeded),
        )
        return {
            "stage": DiscoveryStage.MARKET_RESEARCH.value,
            "researchResults": results,
            "summary": {
                "totalQueries": len(research_queries),
                "successfulQueries": len(succeeded),
                "failedQueries": len(results) - len(succeeded),
                "primaryProvider": succeeded[0]["provider"] if succeeded else None,
                "researchFocus": research_focus,
            },
            "stageProgress": session.progress[DiscoveryStage.MARKET_RESEARCH.value].to_document(),
        }

    @boundary("validate_technical_feasibility")
    async def validate_technical_feasibility(
        self,
        session_id: str,
        technologies: list[str],
        project_type: str,
        features: list[str] | None = None,
        scale: str = "medium",
        constraints: list[str] | None = None,
    ) -> dict[str, Any]:
        """Validate each technology plus an architecture query and record technicalValidation research.

        The Technical Feasibility stage receives the tech stack, the
        architecture summary, and a complexity derived from scale.
        """
        if not 1 <= len(technologies) <= self.max_technologies:
            raise ValidationFailedError(
                f"Technical validation takes 1-{self.max_technologies} technologies, got {len(technologies)}"
            )
        if scale not in PROJECT_SCALES:
            raise ValidationFailedError(f"Unknown scale '{scale}'. Valid scales: {', '.join(PROJECT_SCALES)}")

        session = await self._active_session(session_id)
        _require_stage_in(
            session,
            (DiscoveryStage.MARKET_RESEARCH, DiscoveryStage.TECHNICAL_FEASIBILITY),
            "Technical feasibility validation",
        )

        context = {
            "stage": DiscoveryStage.TECHNICAL_FEASIBILITY.value,
            "focus": "technical",
            "projectType": project_type,
            "technologies": technologies,
            "features": features or [],
            "constraints": constraints or [],
        }
        items = [
            {"query": f"{tech} documentation and best practices for {project_type}", "context": context}
            for tech in technologies
        ]
        items.append(
            {
                "query": f"Architecture recommendations for {project_type} using {', '.join(technologies)}",
                "context": context,
            }
        )
        outcomes = await self.router.route_batch(items)

        validations = []
        architecture = None
        for outcome in outcomes:
            is_architecture = outcome.index == len(technologies)
            label = "architecture" if is_architecture else technologies[outcome.index]
            record: dict[str, Any] = {"query": outcome.query, "provider": "none", "success": outcome.success}
            if outcome.success:
                research = outcome.result
                record.update(
                    provider=research.provider,
                    queryType=research.query_type.value,
                    results=research.result.model_dump(),
                )
                if is_architecture:
                    architecture = research.result.summary or None
            else:
                record["errorMessage"] = outcome.error["message"]
            await self.sessions.add_research_data(session_id, "technicalValidation", record)
            if not is_architecture:
                validations.append(
                    {
                        "technology": label,
                        "provider": record["provider"],
                        "summary": outcome.result.result.summary if outcome.success else None,
                        "error": None if outcome.success else outcome.error,
                    }
                )

        validated = sum(1 for v in validations if v["error"] is None)
        if validated >= len(technologies) * 0.8:
            feasibility = "HIGH"
        elif validated >= len(technologies) * 0.6:
            feasibility = "MEDIUM"
        else:
            feasibility = "LOW"

        data: dict[str, Any] = {
            "techStack": technologies,
            "complexity": PROJECT_SCALES[scale],
            "projectType": project_type,
            "technologiesValidated": validated,
            "totalTechnologies": len(technologies),
            "feasibilityAssessment": f"Overall feasibility: {feasibility}",
            "risks": [v["technology"] for v in validations if v["error"] is not None],
        }
        if architecture:
            data["architecture"] = architecture
        if constraints:
            data["constraints"] = constraints

        if session.stage == DiscoveryStage.MARKET_RESEARCH:
            await self.sessions.advance_stage(session_id)
        session = await self.sessions.update_stage_progress(
            session_id, DiscoveryStage.TECHNICAL_FEASIBILITY, {"data": data}
        )

        logger.info(
            "technical_feasibility_validated",
            session_id=session_id,
            technologies=len(technologies),
            validated=validated,
            feasibility=feasibility,
        )
        return {
            "stage": DiscoveryStage.TECHNICAL_FEASIBILITY.value,
            "validationResults": validations,
            "architectureRecommendations": architecture,
            "feasibilityAssessment": {
                "overallFeasibility": feasibility,
                "riskFactors": data["risks"],
            },
            "stageProgress": session.progress[DiscoveryStage.TECHNICAL_FEASIBILITY.value].to_document(),
        }

    @boundary("synthesize_requirements")
    async def synthesize_requirements(
        self,
        session_id: str,
        problem_statement: str,
        target_users: list[str],
        success_criteria: list[str],
        functional_requirements: list[dict[str, Any] | str],
        non_functional_requirements: list[dict[str, Any] | str] | None = None,
    ) -> dict[str, Any]:
        """Store numbered requirements in Requirements Synthesis and report their quality.

        The problem statement, users and criteria are also recorded in
        Problem Discovery so the PRD can draw on them.
        """
        count = len(functional_requirements)
        if count < self.min_requirements:
            raise ValidationFailedError(
                f"Minimum {self.min_requirements} functional requirements required. Provided: {count}"
            )
        if count > self.max_requirements:
            raise ValidationFailedError(
                f"Maximum {self.max_requirements} functional requirements allowed. Provided: {count}"
            )
        if not target_users:
            raise ValidationFailedError("At least one target user group is required")
        if not success_criteria:
            raise ValidationFailedError("At least one success criterion is required")
        functional_requirements = _requirement_dicts(functional_requirements, "Functional requirement")
        non_functional = _requirement_dicts(non_functional_requirements or [], "Non-functional requirement")
        for index, requirement in enumerate(functional_requirements, start=1):
            check = validate_requirement_text(requirement.get("description"))
            if not check.valid:
                label = requirement.get("id") or requirement.get("title") or f"Functional requirement {index}"
                raise ValidationFailedError(f"{label}: {check.error}")

        session = await self._active_session(session_id)
        _require_stage_in(
            session,
            (DiscoveryStage.TECHNICAL_FEASIBILITY, DiscoveryStage.REQUIREMENTS_SYNTHESIS),
            "Requirements synthesis",
        )

        functional = _number_items(functional_requirements, "FR")
        non_functional = _number_items(non_functional, "NFR")
        quality = calculate_requirements_quality(functional, non_functional, target_users, success_criteria)

        await self.sessions.update_stage_progress(
            session_id,
            DiscoveryStage.PROBLEM_DISCOVERY,
            {
                "data": {
                    "problemStatement": problem_statement,
                    "targetAudience": target_users,
                    "successCriteria": success_criteria,
                }
            },
        )
        data = {
            "problemStatement": problem_statement,
            "targetUsers": target_users,
            "successCriteria": success_criteria,
            "functionalRequirements": functional,
            "nonFunctionalRequirements": non_functional,
            "researchSummary": {category: len(records) for category, records in session.research_data.items()},
            "qualityMetrics": quality,
        }
        if session.stage == DiscoveryStage.TECHNICAL_FEASIBILITY:
            await self.sessions.advance_stage(session_id)
        session = await self.sessions.update_stage_progress(
            session_id, DiscoveryStage.REQUIREMENTS_SYNTHESIS, {"data": data}
        )

        ready = quality["overallScore"] >= REQUIREMENTS_READY_SCORE
        logger.info(
            "requirements_synthesized",
            session_id=session_id,
            functional=len(functional),
            non_functional=len(non_functional),
            quality_score=quality["overallScore"],
        )
        return {
            "stage": DiscoveryStage.REQUIREMENTS_SYNTHESIS.value,
            "qualityMetrics": quality,
            "summary": {
                "totalFunctionalRequirements": len(functional),
                "totalNonFunctionalRequirements": len(non_functional),
                "highPriorityRequirements": sum(
                    1 for r in functional if str(r.get("priority", "")).upper() == "HIGH"
                ),
                "targetUserGroups": len(target_users),
                "successCriteriaCount": len(success_criteria),
            },
            "readinessAssessment": {
                "readyForPRD": ready,
                "missingElements": quality["gaps"],
                "recommendations": quality["recommendations"],
            },
            "stageProgress": session.progress[DiscoveryStage.REQUIREMENTS_SYNTHESIS.value].to_document(),
        }

    @boundary("generate_prd")
    async def generate_prd(
        self,
        session_id: str,
        template_type: str | None = None,
        output_path: str | Path | None = None,
        include_research_data: bool = True,
        custom_sections: list[CustomSection | dict] | None = None,
    ) -> dict[str, Any]:
        """Generate and assess the PRD, record it in PRD Generation, and complete the session when acceptable."""
        session = await self._active_session(session_id)
        result = self.generator.generate(
            session,
            template_type=template_type,
            output_path=output_path or self.output_dir,
            include_research_data=include_research_data,
            custom_sections=custom_sections,
        )
        assessment = self.assessor.assess(result.content, session=session, document=result.document)

        while session.stage != DiscoveryStage.PRD_GENERATION:
            session = await self.sessions.advance_stage(session_id)
        session = await self.sessions.update_stage_progress(
            session_id,
            DiscoveryStage.PRD_GENERATION,
            {
                "data": {
                    "prdContent": result.content,
                    "qualityScore": assessment.overall_score,
                    "qualityLevel": assessment.quality_level.value,
                    "prdFilePath": result.file_path,
                    "templateUsed": result.template_type.value,
                    "generatedAt": result.generated_at.isoformat(),
                }
            },
        )
        if assessment.overall_score >= self.assessor.config.acceptable_threshold:
            session = await self.sessions.complete_session(session_id)

        return {
            "stage": DiscoveryStage.PRD_GENERATION.value,
            "sessionStatus": session.status.value,
            "prd": result.model_dump(mode="json", exclude={"content"}),
            "content": result.content,
            "qualityAssessment": assessment.model_dump(mode="json"),
            "recommendations": self.generator.session_recommendations(session, assessment),
        }

    @boundary("assess_prd_quality")
    async def assess_prd_quality(self, session_id: str, prd_content: str | None = None) -> dict[str, Any]:
        """Assess given PRD text, or the session's stored PRD, and record gaps in PRD Generation."""
        session = await self._active_session(session_id)
        content = prd_content or session.stage_data(DiscoveryStage.PRD_GENERATION).get("prdContent")
        if not content:
            raise QualityAssessmentError(f"Session '{session_id}' has no PRD content; generate a PRD first")

        assessment = self.assessor.assess(content, session=session)
        await self.sessions.update_stage_progress(
            session_id,
            DiscoveryStage.PRD_GENERATION,
            {
                "data": {
                    "qualityScore": assessment.overall_score,
                    "qualityLevel": assessment.quality_level.value,
                    "qualityGaps": assessment.gaps,
                    "priorityAreas": [c.value for c in assessment.readiness_metrics.priority_areas],
                }
            },
        )
        return assessment.model_dump(mode="json")

    @boundary("get_session_summary")
    async def get_session_summary(self, session_id: str) -> dict[str, Any]:
        return await self.sessions.get_session_summary(session_id)

    @boundary("calculate_session_progress")
    async def calculate_session_progress(self, session_id: str) -> dict[str, Any]:
        return calculate_session_progress(await self.sessions.get_session(session_id))


def build_workflow_service(settings: Settings | None = None) -> DiscoveryWorkflowService:
    """Wire the service from settings: configured store, HTTP-backed router, generator and assessor."""
    settings = settings or get_settings()
    configure_structlog(settings.log_level, settings.json_logs, app_name=settings.app_name)
    store = build_session_store(settings.session_store_backend, settings.session_store_path, settings.redis_url)
    sessions = DiscoverySessionManager(store, timeout_hours=settings.session_timeout_hours)
    return DiscoveryWorkflowService(
        sessions=sessions,
        router=build_research_router(settings),
        generator=PRDGenerator(min_requirements=settings.min_requirements_count),
        assessor=QualityAssessor(ScoringConfig(task_generation_min_score=settings.task_generation_min_score)),
        output_dir=settings.prd_output_dir,
        max_research_queries=settings.max_research_queries_per_stage,
        max_technologies=settings.max_technologies_per_validation,
        min_requirements=settings.min_requirements_count,
        max_requirements=settings.max_requirements_count,
    )
