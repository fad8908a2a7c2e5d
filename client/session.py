from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any

START_BRANCH_LABEL = "Старт"
# Longer than the client request timeout, so a live request is never considered stale.
BUSY_STALE_AFTER_S = 300.0


@dataclass
class ScenarioStep:
    branch: str
    narrative: str
    timeline: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ActiveScenario:
    root_event: str
    steps: list[ScenarioStep] = field(default_factory=list)
    last_branches: list[str] = field(default_factory=list)


@dataclass
class ScenarioSession:
    """Client-side state for one exploration: the active scenario and a busy flag.

    Submissions made while a request is outstanding are dropped, not queued.
    The flag is persisted with the time it was raised so a separate CLI run
    sees it; a flag older than ``BUSY_STALE_AFTER_S`` is treated as left over
    from a crashed run and ignored.
    """

    active: ActiveScenario | None = None
    busy: bool = False
    busy_since: float | None = None

    def start(self, event_text: str) -> dict[str, Any] | None:
        event = str(event_text or "").strip()
        if not event or self.busy:
            return None
        self.active = ActiveScenario(root_event=event)
        return {"event": event, "branch": "", "context": []}

    def continue_with(self, branch_text: str) -> dict[str, Any] | None:
        branch = str(branch_text or "").strip()
        if self.active is None or self.busy or not branch:
            return None
        return {
            "event": self.active.root_event,
            "branch": branch,
            "context": self.build_context(),
        }

    def build_context(self) -> list[dict[str, Any]]:
        if self.active is None:
            return []
        return [
            {"branch": step.branch, "narrative": step.narrative, "timeline": list(step.timeline)}
            for step in self.active.steps
        ]

    def record_step(self, branch: str, scenario: dict[str, Any]) -> None:
        if self.active is None:
            return
        self.active.steps.append(
            ScenarioStep(
                branch=branch or START_BRANCH_LABEL,
                narrative=scenario["narrative"],
                timeline=list(scenario["timeline"]),
            )
        )
        self.active.last_branches = list(scenario.get("branches") or [])

    def begin_request(self, now: float | None = None) -> bool:
        if self.busy:
            return False
        self.busy = True
        self.busy_since = time.time() if now is None else now
        return True

    def end_request(self) -> None:
        self.busy = False
        self.busy_since = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": asdict(self.active) if self.active is not None else None,
            "busy": self.busy,
            "busy_since": self.busy_since,
        }

    @classmethod
    def from_dict(cls, data: object, now: float | None = None) -> "ScenarioSession":
        source = data if isinstance(data, dict) else {}
        busy, busy_since = _restore_busy(source, time.time() if now is None else now)
        raw = source.get("active")
        if not isinstance(raw, dict) or not isinstance(raw.get("root_event"), str):
            return cls(busy=busy, busy_since=busy_since)
        steps = [
            ScenarioStep(
                branch=str(step.get("branch") or ""),
                narrative=str(step.get("narrative") or ""),
                timeline=list(step.get("timeline") or []),
            )
            for step in raw.get("steps") or []
            if isinstance(step, dict)
        ]
        branches = [branch for branch in raw.get("last_branches") or [] if isinstance(branch, str)]
        return cls(
            active=ActiveScenario(root_event=raw["root_event"], steps=steps, last_branches=branches),
            busy=busy,
            busy_since=busy_since,
        )


def _restore_busy(data: dict, now: float) -> tuple[bool, float | None]:
    since = data.get("busy_since")
    if data.get("busy") is not True or isinstance(since, bool) or not isinstance(since, (int, float)):
        return False, None
    if now - since > BUSY_STALE_AFTER_S:
        return False, None
    return True, float(since)
