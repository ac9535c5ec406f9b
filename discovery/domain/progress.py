"""Deterministic progress computation functions.

Pure functions with no external dependencies.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from discovery.domain.stage_requirements import StageRequirement
from discovery.domain.stages import STAGE_NAMES, STAGE_ORDER, StageStatus


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def is_field_present(value: Any) -> bool:
    """A required field counts when present and non-empty.

    Strings must contain non-whitespace, collections must be non-empty.
    Numbers and booleans count whenever they are set.
    """
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


@dataclass
class StageCompletion:
    """Result of checking stage data against its requirement."""

    score: int
    completed_fields: int
    total_fields: int
    missing_fields: list[str] = field(default_factory=list)
    meets_requirement: bool = False


def compute_stage_completion(data: dict, requirement: StageRequirement) -> StageCompletion:
    """Compute completion score (0-100) from the required-field checklist.

    Each present, non-empty required field contributes an equal share of 100.
    The stage meets its requirement only if the score reaches the minimum
    and every required field is present.

    Pure function -- adding a missing field never lowers the score.
    """
    required = requirement.required_fields
    if not required:
        return StageCompletion(score=100, completed_fields=0, total_fields=0, meets_requirement=True)

    missing = [name for name in required if not is_field_present(data.get(name))]
    completed = len(required) - len(missing)
    score = round_half_up(completed / len(required) * 100)

    return StageCompletion(
        score=score,
        completed_fields=completed,
        total_fields=len(required),
        missing_fields=missing,
        meets_requirement=score >= requirement.min_completion_score and not missing,
    )


def compute_session_progress(progress: dict[str, dict]) -> dict:
    """Compute overall session progress from per-stage progress entries.

    Args:
        progress: {stage_key: {"status": str, "completionScore": int, ...}}

    Returns:
        {"overallProgress", "completedStages", "totalStages", "stageProgress"}

    Overall progress is the arithmetic mean of every canonical stage's
    completion score; stages without an entry contribute 0. Deliberately
    unweighted so skipping early stages cannot inflate the aggregate.
    """
    total_score = 0
    completed_stages = 0
    stage_progress: dict[str, dict] = {}

    for stage in STAGE_ORDER:
        entry = progress.get(stage.value)
        if not entry:
            continue
        score = entry.get("completionScore") or 0
        status = entry.get("status", StageStatus.NOT_STARTED.value)
        total_score += score
        is_completed = status == StageStatus.COMPLETED.value
        if is_completed:
            completed_stages += 1
        stage_progress[stage.value] = {
            "name": STAGE_NAMES[stage],
            "status": status,
            "score": score,
            "completed": is_completed,
        }

    return {
        "overallProgress": round_half_up(total_score / len(STAGE_ORDER)),
        "completedStages": completed_stages,
        "totalStages": len(STAGE_ORDER),
        "stageProgress": stage_progress,
    }


def is_session_expired(created: datetime | None, now: datetime, timeout_hours: float = 24.0) -> bool:
    """Read-time expiry predicate: True when now - created > timeout_hours.

    A session without a creation timestamp is treated as expired.
    """
    if created is None:
        return True
    return now - created > timedelta(hours=timeout_hours)
