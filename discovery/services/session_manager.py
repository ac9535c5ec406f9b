"""Discovery session lifecycle and the five-stage state machine.

Sessions live in an injected SessionRepository. Every read-modify-write for a
given session id runs under that id's asyncio.Lock, so concurrent updates in
one process never lose writes.
"""

import asyncio
import uuid
import weakref
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError

from discovery.core.exceptions import (
    InvalidStageError,
    SessionExpiredError,
    SessionNotFoundError,
    StageNotReadyError,
    ValidationFailedError,
)
from discovery.domain.progress import compute_session_progress, compute_stage_completion, is_session_expired
from discovery.domain.stage_requirements import get_stage_requirement
from discovery.domain.stages import (
    STAGE_NAMES,
    STAGE_ORDER,
    DiscoveryStage,
    SessionStatus,
    StageStatus,
    get_next_stage,
    parse_stage,
)
from discovery.domain.validation import validate_problem_statement, validate_project_name, validate_stage_data
from discovery.schemas.session import DiscoverySession, ResearchRecord, SessionMetadata
from discovery.storage.session_store import SessionRepository

logger = structlog.get_logger(__name__)

ALLOWED_PATCH_KEYS = frozenset({"data", "status"})


def _require_stage(stage: str | DiscoveryStage) -> DiscoveryStage:
    parsed = parse_stage(stage)
    if parsed is None:
        valid = ", ".join(s.value for s in STAGE_ORDER)
        raise InvalidStageError(f"Invalid stage '{stage}'. Valid stages: {valid}")
    return parsed


def calculate_session_progress(session: DiscoverySession) -> dict:
    """{overallProgress, completedStages, totalStages, stageProgress} for a session."""
    return compute_session_progress({key: entry.to_document() for key, entry in session.progress.items()})


def format_session_summary(session: DiscoverySession, now: datetime, timeout_hours: float = 24.0) -> dict[str, Any]:
    """Compact status view of a session for display."""
    progress = calculate_session_progress(session)
    next_stage = get_next_stage(session.stage)
    return {
        "sessionId": session.session_id,
        "projectName": session.project_name,
        "status": session.status.value,
        "currentStage": session.stage.value,
        "currentStageName": STAGE_NAMES[session.stage],
        "nextStage": next_stage.value if next_stage else None,
        "overallProgress": progress["overallProgress"],
        "completedStages": progress["completedStages"],
        "totalStages": progress["totalStages"],
        "stageProgress": progress["stageProgress"],
        "researchCounts": {category: len(records) for category, records in session.research_data.items()},
        "expired": is_session_expired(session.created, now, timeout_hours),
        "created": session.created.isoformat(),
        "lastUpdated": session.last_updated.isoformat(),
    }


class DiscoverySessionManager:
    """Owns session creation, stage progress and lifecycle transitions."""

    def __init__(
        self,
        repository: SessionRepository,
        timeout_hours: float = 24.0,
        clock: Callable[[], datetime] | None = None,
    ):
        self.repository = repository
        self.timeout_hours = timeout_hours
        self.clock = clock or (lambda: datetime.now(UTC))
        # Entries vanish once no coroutine holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    async def _save(self, session: DiscoverySession) -> DiscoverySession:
        await self.repository.put(session.session_id, session.to_document())
        return session

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    async def create_session(self, project_name: str, preferences: dict[str, Any] | None = None) -> DiscoverySession:
        """Create and persist a new session at the first stage.

        Raises:
            ValidationFailedError: Bad project name or malformed preferences
        """
        name_check = validate_project_name(project_name)
        if not name_check.valid:
            raise ValidationFailedError(name_check.error)

        if preferences is None:
            preferences = {}
        if not isinstance(preferences, dict):
            raise ValidationFailedError(f"Preferences must be an object, got {type(preferences).__name__}")

        try:
            metadata = SessionMetadata(
                user_preferences=preferences,
                tech_stack_preferences=preferences.get("techStack") or [],
                inspiration_references=preferences.get("references") or [],
                constraints=preferences.get("constraints") or [],
                template_preference=preferences.get("templatePreference"),
            )
        except ValidationError as exc:
            raise ValidationFailedError(f"Invalid preferences: {exc.errors()[0]['msg']}") from exc

        now = self.clock()
        session = DiscoverySession(
            session_id=str(uuid.uuid4()),
            project_name=project_name.strip(),
            metadata=metadata,
            created=now,
            last_updated=now,
        )
        await self._save(session)
        logger.info("discovery_session_created", session_id=session.session_id, project_name=session.project_name)
        return session

    async def get_session(self, session_id: str) -> DiscoverySession:
        """Load a session.

        Raises:
            SessionNotFoundError: Unknown id
            ValidationFailedError: Stored document does not match the session shape
        """
        document = await self.repository.get(session_id)
        if document is None:
            raise SessionNotFoundError(session_id)
        try:
            return DiscoverySession.from_document(document)
        except ValidationError as exc:
            raise ValidationFailedError(f"Stored session '{session_id}' is malformed: {exc.error_count()} errors") from exc

    async def list_sessions(self, status: SessionStatus | str | None = None) -> list[DiscoverySession]:
        """All sessions, oldest first. Malformed documents are skipped with a warning."""
        sessions = []
        for document in await self.repository.list():
            try:
                sessions.append(DiscoverySession.from_document(document))
            except ValidationError as exc:
                logger.warning(
                    "discovery_session_unreadable",
                    session_id=document.get("sessionId"),
                    errors=exc.error_count(),
                )
        if status is not None:
            sessions = [s for s in sessions if s.status == SessionStatus(status)]
        return sorted(sessions, key=lambda s: s.created)

    async def delete_session(self, session_id: str) -> None:
        async with self._lock(session_id):
            await self.get_session(session_id)
            await self.repository.delete(session_id)
        self._locks.pop(session_id, None)
        logger.info("discovery_session_deleted", session_id=session_id)

    def is_expired(self, session: DiscoverySession) -> bool:
        return is_session_expired(session.created, self.clock(), self.timeout_hours)

    def ensure_not_expired(self, session: DiscoverySession) -> None:
        """Raises SessionExpiredError when the session is past its timeout."""
        if self.is_expired(session):
            raise SessionExpiredError(session.session_id, self.timeout_hours)

    # ------------------------------------------------------------------
    # Stage progress
    # ------------------------------------------------------------------

    async def update_stage_progress(
        self, session_id: str, stage: str | DiscoveryStage, patch: dict[str, Any]
    ) -> DiscoverySession:
        """Merge a patch into a stage and recompute its score and status.

        Patch keys:
            data: dict shallow-merged into the stage's data
            status: only "skipped" may be set explicitly

        The score is the share of required fields present; the stage becomes
        completed when it reaches the stage minimum with no field missing,
        in-progress otherwise.

        Raises:
            SessionNotFoundError: Unknown id
            InvalidStageError: Unknown stage key
            ValidationFailedError: Malformed patch
        """
        target = _require_stage(stage)
        if not isinstance(patch, dict):
            raise ValidationFailedError(f"Stage patch must be an object, got {type(patch).__name__}")
        unknown = set(patch) - ALLOWED_PATCH_KEYS
        if unknown:
            raise ValidationFailedError(
                f"Unsupported stage patch keys for '{target.value}': {', '.join(sorted(unknown))}"
            )
        data_patch = patch.get("data") or {}
        if not isinstance(data_patch, dict):
            raise ValidationFailedError(f"Stage data for '{target.value}' must be an object")
        requested_status = patch.get("status")
        if requested_status is not None and requested_status != StageStatus.SKIPPED.value:
            raise ValidationFailedError(
                f"Stage status '{requested_status}' cannot be set directly; only 'skipped' is allowed"
            )
        if "problemStatement" in data_patch:
            statement_check = validate_problem_statement(data_patch["problemStatement"])
            if not statement_check.valid:
                raise ValidationFailedError(statement_check.error)

        async with self._lock(session_id):
            session = await self.get_session(session_id)
            now = self.clock()
            entry = session.stage_progress(target)
            entry.data = {**entry.data, **data_patch}

            completion = compute_stage_completion(entry.data, get_stage_requirement(target))
            entry.completion_score = completion.score

            if requested_status == StageStatus.SKIPPED.value:
                entry.status = StageStatus.SKIPPED
            elif completion.meets_requirement:
                if entry.status != StageStatus.COMPLETED:
                    entry.completed_at = now
                entry.status = StageStatus.COMPLETED
            else:
                entry.status = StageStatus.IN_PROGRESS
                entry.completed_at = None

            if entry.started_at is None:
                entry.started_at = now
            entry.last_activity = now
            session.last_updated = now
            await self._save(session)

        check = validate_stage_data(target, entry.data)
        logger.info(
            "stage_progress_updated",
            session_id=session_id,
            stage=target.value,
            status=entry.status.value,
            completion_score=entry.completion_score,
            missing_fields=completion.missing_fields,
            errors=check.errors,
            warnings=check.warnings,
        )
        if not check.valid:
            logger.warning("stage_data_invalid", session_id=session_id, stage=target.value, errors=check.errors)
        return session

    async def add_research_data(
        self, session_id: str, category: str, record: ResearchRecord | dict[str, Any]
    ) -> DiscoverySession:
        """Append a research record under a category; stage state is untouched.

        Raises:
            SessionNotFoundError: Unknown id
            ValidationFailedError: Empty category or malformed record
        """
        if not category or not isinstance(category, str):
            raise ValidationFailedError("Research category must be a non-empty string")
        if isinstance(record, dict):
            record = {"timestamp": self.clock(), **record}
            try:
                record = ResearchRecord.model_validate(record)
            except ValidationError as exc:
                raise ValidationFailedError(f"Invalid research record for '{category}': {exc.errors()[0]['msg']}") from exc

        async with self._lock(session_id):
            session = await self.get_session(session_id)
            session.research_data.setdefault(category, []).append(record)
            session.last_updated = self.clock()
            await self._save(session)

        logger.debug("research_record_added", session_id=session_id, category=category, provider=record.provider)
        return session

    async def get_stage_data(self, session_id: str, stage: str | DiscoveryStage) -> dict[str, Any]:
        """Data of a completed stage.

        Raises:
            StageNotReadyError: Stage is not completed (lists missing required fields)
        """
        target = _require_stage(stage)
        session = await self.get_session(session_id)
        entry = session.progress.get(target.value)
        data = entry.data if entry else {}
        if entry is None or entry.status != StageStatus.COMPLETED:
            missing = compute_stage_completion(data, get_stage_requirement(target)).missing_fields
            raise StageNotReadyError(target.value, missing)
        return dict(data)

    async def advance_stage(self, session_id: str, require_completed: bool = False) -> DiscoverySession:
        """Move to the next canonical stage; a no-op at the last stage.

        Raises:
            StageNotReadyError: require_completed and the current stage is not completed
        """
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            current = session.stage_progress(session.stage)
            if require_completed and current.status != StageStatus.COMPLETED:
                missing = compute_stage_completion(current.data, get_stage_requirement(session.stage)).missing_fields
                raise StageNotReadyError(session.stage.value, missing, detail="cannot advance")

            next_stage = get_next_stage(session.stage)
            if next_stage is None:
                return session

            now = self.clock()
            upcoming = session.stage_progress(next_stage)
            if upcoming.status == StageStatus.NOT_STARTED:
                upcoming.status = StageStatus.IN_PROGRESS
                upcoming.started_at = upcoming.started_at or now
            upcoming.last_activity = now
            previous = session.stage
            session.stage = next_stage
            session.last_updated = now
            await self._save(session)

        logger.info("discovery_stage_advanced", session_id=session_id, from_stage=previous.value, to_stage=next_stage.value)
        return session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _set_status(self, session_id: str, status: SessionStatus) -> DiscoverySession:
        async with self._lock(session_id):
            session = await self.get_session(session_id)
            session.status = status
            session.last_updated = self.clock()
            await self._save(session)
        logger.info("discovery_session_status_changed", session_id=session_id, status=status.value)
        return session

    async def resume_session(self, session_id: str) -> DiscoverySession:
        """Reactivate a session.

        Raises:
            SessionExpiredError: Session is past its timeout
            ValidationFailedError: Session was cancelled or completed
        """
        session = await self.get_session(session_id)
        self.ensure_not_expired(session)
        if session.status in (SessionStatus.CANCELLED, SessionStatus.COMPLETED):
            raise ValidationFailedError(f"Session '{session_id}' is {session.status.value} and cannot be resumed")
        return await self._set_status(session_id, SessionStatus.ACTIVE)

    async def pause_session(self, session_id: str) -> DiscoverySession:
        return await self._set_status(session_id, SessionStatus.PAUSED)

    async def cancel_session(self, session_id: str) -> DiscoverySession:
        return await self._set_status(session_id, SessionStatus.CANCELLED)

    async def complete_session(self, session_id: str) -> DiscoverySession:
        return await self._set_status(session_id, SessionStatus.COMPLETED)

    async def get_session_summary(self, session_id: str) -> dict[str, Any]:
        session = await self.get_session(session_id)
        return format_session_summary(session, self.clock(), self.timeout_hours)
