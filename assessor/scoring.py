"""Score aggregation and feedback generation.

Pure functions over criterion outcomes. Outcomes arrive in definition order
and feedback keeps that order so reports are reproducible.
"""

from collections.abc import Sequence

from assessor.models.domain import (
    AssessmentDefinition,
    CriterionOutcome,
    Feedback,
    FeedbackItem,
)


def total_score(outcomes: Sequence[CriterionOutcome]) -> int:
    """Sum of awarded points. Only outcomes with implemented=True contribute."""
    return sum(o.points for o in outcomes if o.implemented is True)


def is_passed(score: int, pass_threshold: float) -> bool:
    return score >= pass_threshold


def _achieved_detail(outcome: CriterionOutcome) -> str:
    message = outcome.details.get("message") if outcome.details else None
    if message:
        return str(message)
    return f"Implemented ({outcome.points} points)"


def _missed_detail(outcome: CriterionOutcome, remediation: str) -> str:
    parts = [f"Missed {outcome.max_points} points"]
    if remediation:
        parts.append(remediation)
    return ". ".join(parts)


def build_feedback(
    definition: AssessmentDefinition,
    outcomes: Sequence[CriterionOutcome],
    score: int,
    passed: bool,
) -> Feedback:
    """Partition outcomes into implemented and suggestion feedback items.

    Args:
        definition: Definition the outcomes belong to (for remediation hints)
        outcomes: Criterion outcomes in definition order
        score: Total awarded points
        passed: Whether the score met the pass threshold

    Returns:
        Feedback with a one-line summary
    """
    remediation = {c.criterion_id: c.remediation for c in definition.criteria}

    implemented: list[FeedbackItem] = []
    suggestions: list[FeedbackItem] = []
    for outcome in outcomes:
        if outcome.implemented:
            implemented.append(
                FeedbackItem(
                    criterion_id=outcome.criterion_id,
                    name=outcome.name,
                    points=outcome.points,
                    detail=_achieved_detail(outcome),
                )
            )
        else:
            suggestions.append(
                FeedbackItem(
                    criterion_id=outcome.criterion_id,
                    name=outcome.name,
                    points=outcome.max_points,
                    detail=_missed_detail(outcome, remediation.get(outcome.criterion_id, "")),
                    error=outcome.error,
                )
            )

    verdict = "passed" if passed else "not passed"
    summary = (
        f"{definition.name}: {score}/{definition.max_score} points, {verdict} "
        f"(threshold {definition.pass_threshold:g}). "
        f"{len(implemented)} of {len(outcomes)} criteria implemented."
    )
    return Feedback(summary=summary, implemented=tuple(implemented), suggestions=tuple(suggestions))
