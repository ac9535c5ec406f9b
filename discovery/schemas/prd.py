"""Schemas for generated PRD documents."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class TemplateType(StrEnum):
    COMPREHENSIVE = "COMPREHENSIVE"
    MINIMAL = "MINIMAL"
    TECHNICAL_FOCUSED = "TECHNICAL_FOCUSED"


class ProjectComplexity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ENTERPRISE = "enterprise"


class TemplateSection(BaseModel):
    """Static section definition with `{placeholder}` tokens."""

    title: str
    template: str
    required: bool = True
    order: int


class PRDTemplate(BaseModel):
    name: str
    description: str
    sections: list[TemplateSection]


class Section(BaseModel):
    title: str
    content: str
    required: bool = True
    order: int


class FunctionalRequirement(BaseModel):
    id: str
    title: str
    description: str
    priority: str = "medium"
    user_story: str | None = None
    acceptance_criteria: list[str] = Field(default_factory=list)


class NonFunctionalRequirement(BaseModel):
    id: str
    category: str
    requirement: str
    priority: str = "medium"
    acceptance_criteria: str | None = None


class RequirementsBlock(BaseModel):
    functional: list[FunctionalRequirement] = Field(default_factory=list)
    non_functional: list[NonFunctionalRequirement] = Field(default_factory=list)


class PRDDocument(BaseModel):
    """Structured PRD; not persisted with the session."""

    title: str
    sections: list[Section]
    requirements: RequirementsBlock = Field(default_factory=RequirementsBlock)
    technical_specs: dict[str, Any] = Field(default_factory=dict)
    market_context: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CustomSection(BaseModel):
    title: str
    content: str
    order: int = 100
    required: bool = False


class PRDGenerationResult(BaseModel):
    content: str
    document: PRDDocument
    template_type: TemplateType
    template_name: str
    word_count: int
    section_count: int
    file_path: str | None = None
    generated_at: datetime
    recommendations: list[str] = Field(default_factory=list)
