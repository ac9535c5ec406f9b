"""Pydantic schemas for the persisted discovery session document.

Serialized form uses camelCase keys so stored sessions match the documented
JSON shape; Python code uses snake_case attributes.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from discovery.domain.stages import STAGE_ORDER, DiscoveryStage, SessionStatus, StageStatus

RESEARCH_CATEGORIES = ("marketAnalysis", "technicalValidation", "competitiveAnalysis", "generalResearch")


class CamelModel(BaseModel):
    """Base model with camelCase aliases, populated by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class StageProgress(CamelModel):
    status: StageStatus = StageStatus.NOT_STARTED
    completion_score: int = Field(0, ge=0, le=100)
    data: dict[str, Any] = Field(default_factory=dict)
    last_activity: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ResearchRecord(CamelModel):
    """One research call outcome recorded against a session."""

    query: str
    provider: str
    results: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    query_type: str | None = None
    success: bool = True
    error_message: str | None = None


class SessionMetadata(CamelModel):
    user_preferences: dict[str, Any] = Field(default_factory=dict)
    tech_stack_preferences: list[str] = Field(default_factory=list)
    inspiration_references: list[str] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    template_preference: str | None = None


def _initial_progress() -> dict[str, StageProgress]:
    return {stage.value: StageProgress() for stage in STAGE_ORDER}


def _initial_research() -> dict[str, list[ResearchRecord]]:
    return {category: [] for category in RESEARCH_CATEGORIES}


class DiscoverySession(CamelModel):
    """Root aggregate tracking one project through the five-stage workflow."""

    session_id: str
    project_name: str
    status: SessionStatus = SessionStatus.ACTIVE
    stage: DiscoveryStage = DiscoveryStage.PROBLEM_DISCOVERY
    progress: dict[str, StageProgress] = Field(default_factory=_initial_progress)
    research_data: dict[str, list[ResearchRecord]] = Field(default_factory=_initial_research)
    metadata: SessionMetadata = Field(default_factory=SessionMetadata)
    created: datetime
    last_updated: datetime

    def stage_progress(self, stage: DiscoveryStage | str) -> StageProgress:
        """Progress entry for a stage, created empty if the document lacks one."""
        key = DiscoveryStage(stage).value
        if key not in self.progress:
            self.progress[key] = StageProgress()
        return self.progress[key]

    def stage_data(self, stage: DiscoveryStage | str) -> dict[str, Any]:
        entry = self.progress.get(DiscoveryStage(stage).value)
        return entry.data if entry else {}

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "DiscoverySession":
        return cls.model_validate(document)
