"""Shared test fixtures for all test groups."""

import logging
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from discovery.domain.stages import DiscoveryStage, StageStatus
from discovery.research.fake import FakeProvider
from discovery.research.router import ResearchRouter
from discovery.schemas.session import DiscoverySession, ResearchRecord, StageProgress
from discovery.services.session_manager import DiscoverySessionManager
from discovery.storage.session_store import InMemorySessionStore

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)


class FakeClock:
    """Settable clock for deterministic timestamps and expiry checks."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def manager(store, clock):
    return DiscoverySessionManager(store, timeout_hours=24, clock=clock)


@pytest.fixture
def router():
    """Router with happy_path fakes registered under the three default provider names."""
    router = ResearchRouter(provider_timeout=1.0)
    for name in ("tavily", "context7", "perplexity"):
        router.register_provider(name, FakeProvider(name))
    return router


FUNCTIONAL_REQUIREMENTS = [
    {
        "id": "FR-001",
        "title": "User registration",
        "description": "Users must be able to register with email and password",
        "priority": "HIGH",
        "userStory": "As a new user, I want to register, so that I can save my tasks",
    },
    {
        "id": "FR-002",
        "title": "Task creation",
        "description": "Users should create tasks with a title, due date and priority",
        "priority": "HIGH",
        "userStory": "As a user, I want to create tasks, so that I can track my work",
    },
    {
        "id": "FR-003",
        "title": "Task sharing",
        "description": "Users must be able to share a task list with teammates",
        "priority": "MEDIUM",
    },
    {
        "id": "FR-004",
        "title": "Reminders",
        "description": "The system should send reminders before a task is due",
        "priority": "LOW",
    },
]

NON_FUNCTIONAL_REQUIREMENTS = [
    {
        "id": "NFR-001",
        "category": "Performance",
        "description": "Task lists load within 200ms at the 95th percentile",
        "priority": "HIGH",
        "acceptanceCriteria": "p95 latency under 200ms with 10k tasks",
    },
    {
        "id": "NFR-002",
        "category": "Security",
        "description": "All traffic is encrypted with TLS 1.2 or newer",
        "priority": "HIGH",
    },
]


def build_ready_session(
    functional: list[dict] | None = None,
    non_functional: list[dict] | None = None,
    project_name: str = "TaskFlow",
    template_preference: str | None = None,
) -> DiscoverySession:
    """A session whose first four stages are completed with realistic data."""
    session = DiscoverySession(
        session_id="session-ready-001",
        project_name=project_name,
        created=FIXED_NOW,
        last_updated=FIXED_NOW,
        stage=DiscoveryStage.REQUIREMENTS_SYNTHESIS,
    )
    session.metadata.template_preference = template_preference
    session.metadata.user_preferences = {"businessGoals": ["Grow paid teams", "Reduce churn"]}
    stage_data = {
        DiscoveryStage.PROBLEM_DISCOVERY: {
            "problemStatement": "Small teams lose track of shared tasks across chat and email",
            "targetAudience": ["Small team leads", "Freelancers"],
            "successCriteria": ["1000 weekly active teams", "40% week-4 retention"],
        },
        DiscoveryStage.MARKET_RESEARCH: {
            "competitorAnalysis": "Todoist and Asana dominate individual and enterprise segments",
            "marketSize": "$4B task management market growing 13% yearly",
            "opportunities": ["Lightweight shared lists for teams under ten"],
            "targetMarket": "Small teams and freelancers",
        },
        DiscoveryStage.TECHNICAL_FEASIBILITY: {
            "techStack": ["React", "FastAPI", "PostgreSQL"],
            "architecture": "Single-page app backed by a REST API and a relational database",
            "complexity": "medium",
            "feasibilityAssessment": "Overall feasibility: HIGH",
        },
        DiscoveryStage.REQUIREMENTS_SYNTHESIS: {
            "functionalRequirements": FUNCTIONAL_REQUIREMENTS if functional is None else functional,
            "nonFunctionalRequirements": NON_FUNCTIONAL_REQUIREMENTS if non_functional is None else non_functional,
            "targetUsers": ["Small team leads", "Freelancers"],
            "successCriteria": ["1000 weekly active teams", "40% week-4 retention"],
        },
    }
    for stage, data in stage_data.items():
        session.progress[stage.value] = StageProgress(
            status=StageStatus.COMPLETED, completion_score=100, data=data, started_at=FIXED_NOW
        )
    session.research_data["marketAnalysis"].append(
        ResearchRecord(
            query="task management market size",
            provider="tavily",
            results={"summary": "Market growing 13% yearly"},
            timestamp=FIXED_NOW,
        )
    )
    return session


@pytest.fixture
def ready_session():
    return build_ready_session()


@pytest.fixture
def make_ready_session():
    """Factory fixture: build_ready_session with overrides."""
    return build_ready_session


@pytest.fixture
def functional_requirements():
    return [dict(r) for r in FUNCTIONAL_REQUIREMENTS]


@pytest.fixture
def non_functional_requirements():
    return [dict(r) for r in NON_FUNCTIONAL_REQUIREMENTS]


@pytest.fixture
def restore_logging():
    """Undo configure_structlog's global changes after a test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)
