from __future__ import annotations

from app.modules.scenario.normalizer import normalize_year
from app.modules.scenario.schemas import (
    BRANCH_MAX_CHARS,
    DETAILS_MAX_CHARS,
    MAX_TIMELINE_POINTS,
    NARRATIVE_CONTEXT_MAX_CHARS,
    TITLE_MAX_CHARS,
    ContextStep,
    ContextTimelinePoint,
)

MAX_CONTEXT_STEPS = 4


def _clip(value: object, max_len: int) -> str:
    return value[:max_len] if isinstance(value, str) else ""


def _context_point(point: object) -> ContextTimelinePoint:
    source = point if isinstance(point, dict) else {}
    return ContextTimelinePoint(
        year=normalize_year(source.get("year")),
        title=_clip(source.get("title"), TITLE_MAX_CHARS),
        details=_clip(source.get("details"), DETAILS_MAX_CHARS),
    )


def _context_step(item: object) -> ContextStep:
    source = item if isinstance(item, dict) else {}
    raw_timeline = source.get("timeline")
    timeline = raw_timeline[:MAX_TIMELINE_POINTS] if isinstance(raw_timeline, list) else []
    return ContextStep(
        branch=_clip(source.get("branch"), BRANCH_MAX_CHARS),
        narrative=_clip(source.get("narrative"), NARRATIVE_CONTEXT_MAX_CHARS),
        timeline=[_context_point(point) for point in timeline],
    )


def normalize_context(value: object) -> list[ContextStep]:
    """Keep the last four client-sent steps with every string clipped to its bound."""
    if not isinstance(value, list):
        return []
    return [_context_step(item) for item in value[-MAX_CONTEXT_STEPS:]]
