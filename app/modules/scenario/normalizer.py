"""Repair of model-produced scenario payloads into the strict ``Scenario`` shape.

Everything here is pure: the same input and ``current_year`` always give the
same output. The timeline and branch repair helpers are shared with the CLI
client, which re-normalizes what the server sends with its own defaults.
"""

from __future__ import annotations

import re

from app.modules.llm.runtime.parsers import parse_json_from_model_text
from app.modules.scenario.schemas import (
    DETAILS_MAX_CHARS,
    MAX_BRANCHES,
    MAX_IMAGES,
    MAX_TIMELINE_POINTS,
    MIN_BRANCHES,
    TITLE_MAX_CHARS,
    YEAR_MAX,
    YEAR_MIN,
    Scenario,
    TimelinePoint,
)

MAX_RAW_TIMELINE_POINTS = 6
DEFAULT_SNIPPET_CHARS = 180
IMAGE_PROMPT_SUMMARY_CHARS = 260

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d{1,9})(?!\d)")

DEFAULT_NARRATIVE_SNIPPET = "Последствия разворачиваются постепенно."

SERVER_DEFAULT_BRANCHES: tuple[str, ...] = (
    "Сделать ставку на технологический рывок и его последствия",
    "Усилить международные союзы и проверить, как меняется баланс сил",
    "Сфокусироваться на внутренних реформах и реакции общества",
)


def pick_string(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def normalize_year(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        value = int(value)
    match = _LEADING_INT_RE.match(str(value))
    if not match:
        return None
    year = int(match.group(1))
    if year < YEAR_MIN or year > YEAR_MAX:
        return None
    return year


def stage_title(index: int) -> str:
    return f"Этап {index + 1}"


def build_default_timeline(current_year: int, narrative: str = "") -> list[dict]:
    snippet = pick_string(narrative) or DEFAULT_NARRATIVE_SNIPPET
    return [
        {
            "year": current_year - 120,
            "title": "Ранний перелом",
            "details": snippet[:DEFAULT_SNIPPET_CHARS],
        },
        {
            "year": current_year - 80,
            "title": "Закрепление тренда",
            "details": "Новые политические и экономические правила начинают стабилизироваться.",
        },
        {
            "year": current_year - 35,
            "title": "Глобальный эффект",
            "details": "Изменения переходят на мировой уровень и влияют на союзы и технологии.",
        },
        {
            "year": current_year,
            "title": "Состояние сегодня",
            "details": "Мир приходит к альтернативной современной конфигурации.",
        },
    ]


def _recover_point(item: object, index: int, defaults: list[dict]) -> dict:
    fallback = defaults[min(index, len(defaults) - 1)]
    source = item if isinstance(item, dict) else {}
    year = normalize_year(source.get("year"))
    return {
        "year": fallback["year"] if year is None else year,
        "title": pick_string(source.get("title")) or stage_title(index),
        "details": pick_string(source.get("details")) or pick_string(source.get("text")) or fallback["details"],
    }


def _resolve_year_collisions(points: list[dict]) -> None:
    used: set[int] = set()
    for point in points:
        year = point["year"]
        while year in used:
            year += 1
        point["year"] = year
        used.add(year)


def _anchor_to_current_year(points: list[dict], current_year: int) -> None:
    # Points arrive sorted. The last point is "today"; every earlier point must
    # stay strictly before its successor so years remain unique and ascending.
    points[-1]["year"] = current_year
    for index in range(len(points) - 2, -1, -1):
        points[index]["year"] = min(points[index]["year"], points[index + 1]["year"] - 1)


def _clip_point(point: dict) -> dict:
    return {
        "year": int(point["year"]),
        "title": point["title"][:TITLE_MAX_CHARS],
        "details": point["details"][:DETAILS_MAX_CHARS],
    }


def repair_timeline(
    raw_timeline: object,
    defaults: list[dict],
    current_year: int,
    *,
    drop_empty_details: bool = True,
) -> list[dict]:
    """Coerce ``raw_timeline`` into exactly four year-ordered points ending at ``current_year``."""
    if not isinstance(raw_timeline, list):
        return [_clip_point(point) for point in defaults]

    points = [
        _recover_point(item, index, defaults)
        for index, item in enumerate(raw_timeline[:MAX_RAW_TIMELINE_POINTS])
    ]
    if drop_empty_details:
        points = [point for point in points if point["details"]]
    if not points:
        return [_clip_point(point) for point in defaults]

    _resolve_year_collisions(points)
    points.sort(key=lambda point: point["year"])
    while len(points) < MAX_TIMELINE_POINTS:
        points.append(dict(defaults[len(points)]))

    timeline = sorted(points[:MAX_TIMELINE_POINTS], key=lambda point: point["year"])
    _anchor_to_current_year(timeline, current_year)
    return [_clip_point(point) for point in timeline]


def repair_branches(raw_branches: object, defaults: tuple[str, ...] | list[str]) -> list[str]:
    if not isinstance(raw_branches, list):
        return list(defaults[:MAX_BRANCHES])

    unique: list[str] = []
    for entry in raw_branches:
        branch = pick_string(entry)
        if not branch or branch in unique:
            continue
        unique.append(branch)
        if len(unique) == MAX_BRANCHES:
            break

    for fallback in defaults:
        if len(unique) >= MIN_BRANCHES:
            break
        if fallback not in unique:
            unique.append(fallback)
    return unique


def normalize_image_prompts(raw_prompts: object, narrative: str) -> list[str]:
    prompts: list[str] = []
    if isinstance(raw_prompts, list):
        prompts = [prompt for prompt in (pick_string(item) for item in raw_prompts) if prompt][:MAX_IMAGES]
    if prompts:
        return prompts

    summary = pick_string(narrative)[:IMAGE_PROMPT_SUMMARY_CHARS]
    return [
        f"Альтернативная история, кинематографичная сцена, исторический антураж, высокая детализация: {summary}",
        "Панорама города в альтернативном мире, исторический реализм, широкоугольный кадр, реалистичный свет",
    ]


def parse_scenario_response(model_text: str, current_year: int) -> Scenario:
    parsed = parse_json_from_model_text(model_text) or {}
    narrative = pick_string(parsed.get("narrative")) or str(model_text or "").strip()
    timeline = repair_timeline(
        parsed.get("timeline"),
        build_default_timeline(current_year, narrative),
        current_year,
    )
    branches = repair_branches(parsed.get("branches"), SERVER_DEFAULT_BRANCHES)
    raw_prompts = parsed.get("image_prompts")
    if raw_prompts is None:
        raw_prompts = parsed.get("imagePrompts")
    image_prompts = normalize_image_prompts(raw_prompts, narrative)

    return Scenario(
        narrative=narrative,
        timeline=[TimelinePoint(**point) for point in timeline],
        branches=branches,
        image_prompts=image_prompts,
        images=[],
    )
