from __future__ import annotations

import re
from typing import Any

from app.modules.scenario.normalizer import pick_string, repair_branches, repair_timeline

MAX_IMAGES = 2
NARRATIVE_PLACEHOLDER = "Гипотеза построена, но текстовое описание оказалось неполным."
DEFAULT_IMAGE_PROMPT = "Иллюстрация альтернативной истории"
IMAGE_SRC_PREFIXES = ("http://", "https://", "data:image/")

CLIENT_DEFAULT_BRANCHES: tuple[str, ...] = (
    "Усилить международные союзы",
    "Сделать ставку на технологический рывок",
    "Сфокусироваться на внутренних реформах",
)

_WHITESPACE_RE = re.compile(r"\s+")


def client_default_timeline(current_year: int) -> list[dict[str, Any]]:
    return [
        {"year": current_year - 120, "title": "Ранний перелом", "details": "Начинаются первые изменения."},
        {"year": current_year - 80, "title": "Закрепление", "details": "Новые процессы становятся устойчивыми."},
        {"year": current_year - 35, "title": "Глобальный эффект", "details": "Изменения влияют на международный баланс."},
        {"year": current_year, "title": "Сегодня", "details": "Формируется альтернативная современность."},
    ]


def is_image_src(src: str) -> bool:
    return src.startswith(IMAGE_SRC_PREFIXES)


def normalize_images(raw_images: object) -> list[dict[str, str]]:
    if not isinstance(raw_images, list):
        return []

    images: list[dict[str, str]] = []
    for item in raw_images:
        if isinstance(item, str):
            image = {"src": item, "prompt": DEFAULT_IMAGE_PROMPT}
        elif isinstance(item, dict) and isinstance(item.get("src"), str):
            prompt = item.get("prompt")
            image = {"src": item["src"], "prompt": prompt if isinstance(prompt, str) and prompt else DEFAULT_IMAGE_PROMPT}
        else:
            continue
        if is_image_src(image["src"]):
            images.append(image)
    return images[:MAX_IMAGES]


def build_fallback_scenario(text: str, current_year: int) -> dict[str, Any]:
    return {
        "narrative": text.strip() or NARRATIVE_PLACEHOLDER,
        "timeline": repair_timeline([], client_default_timeline(current_year), current_year),
        "branches": repair_branches([], CLIENT_DEFAULT_BRANCHES),
        "images": [],
    }


def normalize_scenario(data: object, current_year: int) -> dict[str, Any] | None:
    """Re-normalize an ``/api/alt-history`` response body for display; ``None`` if unusable."""
    raw = data.get("scenario") if isinstance(data, dict) else None
    if not isinstance(raw, dict):
        reply = data.get("reply") if isinstance(data, dict) else None
        if isinstance(reply, str):
            return build_fallback_scenario(reply, current_year)
        return None

    return {
        "narrative": pick_string(raw.get("narrative")) or NARRATIVE_PLACEHOLDER,
        "timeline": repair_timeline(
            raw.get("timeline"),
            client_default_timeline(current_year),
            current_year,
            drop_empty_details=False,
        ),
        "branches": repair_branches(raw.get("branches"), CLIENT_DEFAULT_BRANCHES),
        "images": normalize_images(raw.get("images")),
    }


def shorten(value: object, max_len: int) -> str:
    text = _WHITESPACE_RE.sub(" ", str(value or "")).strip()
    if len(text) <= max_len:
        return text
    return f"{text[: max_len - 1]}…"
