"""Requirements quality metrics reported when requirements are synthesized.

Pure domain function -- no I/O, fully deterministic.
"""


def _has_text(item: dict, key: str) -> bool:
    value = item.get(key)
    return bool(value and str(value).strip())


def calculate_requirements_quality(
    functional_requirements: list[dict],
    non_functional_requirements: list[dict],
    target_users: list[str],
    success_criteria: list[str],
) -> dict:
    """Score a synthesized requirement set.

    Returns:
        {"completeness", "clarity", "testability", "overallScore", "gaps", "recommendations"}

    Weights:
        completeness 0.4 -- four 25-point checks (>=5 FR, >=3 NFR, >=2 user groups, >=3 criteria)
        clarity 0.3      -- share of FRs with user stories + share of NFRs with acceptance criteria
        testability 0.3  -- share of FRs phrased with "should"/"must" or backed by a user story
    """
    completeness = 0
    if len(functional_requirements) >= 5:
        completeness += 25
    if len(non_functional_requirements) >= 3:
        completeness += 25
    if len(target_users) >= 2:
        completeness += 25
    if len(success_criteria) >= 3:
        completeness += 25

    fr_count = max(1, len(functional_requirements))
    nfr_count = max(1, len(non_functional_requirements))

    with_stories = sum(1 for r in functional_requirements if _has_text(r, "userStory"))
    with_criteria = sum(1 for r in non_functional_requirements if _has_text(r, "acceptanceCriteria"))
    clarity = min(100.0, with_stories / fr_count * 50 + with_criteria / nfr_count * 50)

    testable = sum(
        1
        for r in functional_requirements
        if "should" in str(r.get("description", "")).lower()
        or "must" in str(r.get("description", "")).lower()
        or _has_text(r, "userStory")
    )
    testability = testable / fr_count * 100

    overall = round(completeness * 0.4 + clarity * 0.3 + testability * 0.3)

    gaps: list[str] = []
    recommendations: list[str] = []
    if len(functional_requirements) < 5:
        gaps.append(f"Insufficient functional requirements ({len(functional_requirements)} of 5 recommended)")
        recommendations.append("Add more detailed functional requirements")
    if len(non_functional_requirements) < 3:
        gaps.append(f"Missing non-functional requirements ({len(non_functional_requirements)} of 3 recommended)")
        recommendations.append("Define performance, security, and usability requirements")
    if with_stories < len(functional_requirements) * 0.5:
        gaps.append("Limited user story coverage")
        recommendations.append("Convert requirements to user story format for better clarity")

    return {
        "completeness": completeness,
        "clarity": round(clarity, 2),
        "testability": round(testability, 2),
        "overallScore": overall,
        "gaps": gaps,
        "recommendations": recommendations,
    }
