from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

HISTORY_LIMIT = 20
HTTP_PREFIXES = ("http://", "https://")


class HistoryStore(Protocol):
    def load(self) -> list[dict[str, Any]]: ...

    def save(self, entries: list[dict[str, Any]]) -> None: ...

    def clear(self) -> None: ...


def is_valid_entry(item: object) -> bool:
    return (
        isinstance(item, dict)
        and isinstance(item.get("event"), str)
        and isinstance(item.get("createdAt"), str)
        and isinstance(item.get("scenario"), dict)
    )


class JsonFileHistoryStore:
    """History persisted as a single JSON array; malformed entries are skipped on read."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            return []
        if not isinstance(parsed, list):
            return []
        return [item for item in parsed if is_valid_entry(item)][:HISTORY_LIMIT]

    def save(self, entries: list[dict[str, Any]]) -> None:
        self.path.write_text(json.dumps(entries, ensure_ascii=False, indent=2), encoding="utf-8")

    def clear(self) -> None:
        self.save([])


class InMemoryHistoryStore:
    def __init__(self, entries: list[dict[str, Any]] | None = None) -> None:
        self.entries = list(entries or [])

    def load(self) -> list[dict[str, Any]]:
        return [item for item in self.entries if is_valid_entry(item)][:HISTORY_LIMIT]

    def save(self, entries: list[dict[str, Any]]) -> None:
        self.entries = list(entries)

    def clear(self) -> None:
        self.entries = []


def to_history_scenario(scenario: dict[str, Any]) -> dict[str, Any]:
    # data: URIs are too large to keep in persisted history.
    images = [image for image in scenario.get("images") or [] if str(image.get("src", "")).startswith(HTTP_PREFIXES)]
    return {
        "narrative": scenario["narrative"],
        "timeline": scenario["timeline"],
        "branches": scenario["branches"],
        "images": images[:2],
    }


def build_history_entry(
    payload: dict[str, Any],
    scenario: dict[str, Any],
    created_at: datetime | None = None,
) -> dict[str, Any]:
    branch = payload.get("branch") or ""
    event = payload["event"]
    timestamp = created_at or datetime.now(timezone.utc)
    return {
        "event": f"{event} -> {branch}" if branch else event,
        "rootEvent": event,
        "branch": branch,
        "scenario": to_history_scenario(scenario),
        "createdAt": timestamp.isoformat(),
    }


def push_history(store: HistoryStore, entry: dict[str, Any]) -> list[dict[str, Any]]:
    entries = [entry, *store.load()][:HISTORY_LIMIT]
    store.save(entries)
    return entries
