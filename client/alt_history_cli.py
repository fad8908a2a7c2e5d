from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import httpx
import typer

from history_store import HistoryStore, JsonFileHistoryStore, build_history_entry, push_history
from scenario_view import normalize_scenario, shorten
from session import ScenarioSession

app = typer.Typer(help="Alternate history CLI")
history_app = typer.Typer(help="Saved history commands")
app.add_typer(history_app, name="history")

DEFAULT_BACKEND_URL = "http://127.0.0.1:3000"
STATE_PATH = Path(__file__).resolve().parent / ".state.json"
HISTORY_PATH = Path(__file__).resolve().parent / ".history.json"
REQUEST_TIMEOUT_S = 180.0

NETWORK_ERROR_MESSAGE = "Ошибка сети. Проверьте, что сервер запущен."
PARSE_ERROR_MESSAGE = "Не удалось разобрать ответ ИИ."
UNKNOWN_ERROR_MESSAGE = "неизвестная ошибка."
BUSY_MESSAGE = "Предыдущий запрос ещё выполняется. Дождитесь ответа."


class ScenarioRequestError(RuntimeError):
    """Raised with a user-facing message when a scenario request cannot be completed."""


def load_state(path: Path = STATE_PATH) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}


def save_state(data: dict[str, Any], path: Path = STATE_PATH) -> None:
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def backend_url() -> str:
    return os.getenv("BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/")


def request(
    method: str,
    endpoint: str,
    *,
    json_body: dict[str, Any] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Response:
    url = f"{backend_url()}{endpoint}"
    with httpx.Client(timeout=REQUEST_TIMEOUT_S, transport=transport) as client:
        return client.request(method, url, json=json_body)


def open_history_store() -> HistoryStore:
    return JsonFileHistoryStore(HISTORY_PATH)


def request_scenario(
    payload: dict[str, Any],
    *,
    current_year: int | None = None,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, Any]:
    try:
        resp = request("POST", "/api/alt-history", json_body=payload, transport=transport)
        data = resp.json()
    except (httpx.RequestError, ValueError) as exc:
        raise ScenarioRequestError(NETWORK_ERROR_MESSAGE) from exc

    if resp.status_code >= 400:
        error = data.get("error") if isinstance(data, dict) else None
        raise ScenarioRequestError(f"Ошибка: {error or UNKNOWN_ERROR_MESSAGE}")

    scenario = normalize_scenario(data, current_year or datetime.now().year)
    if scenario is None:
        raise ScenarioRequestError(PARSE_ERROR_MESSAGE)
    return scenario


def run_scenario_request(
    session: ScenarioSession,
    payload: dict[str, Any] | None,
    store: HistoryStore,
    *,
    transport: httpx.BaseTransport | None = None,
    persist: Callable[[ScenarioSession], None] | None = None,
) -> dict[str, Any] | None:
    """Send one request; on success record the step and prepend a history entry.

    ``persist`` is called once the busy flag is raised and again after the
    request settles, so other CLI runs observe the outstanding request.
    """
    if payload is None or not session.begin_request():
        return None
    if persist is not None:
        persist(session)
    try:
        scenario = request_scenario(payload, transport=transport)
    except ScenarioRequestError as exc:
        typer.echo(str(exc))
        scenario = None
    finally:
        session.end_request()

    if scenario is not None:
        session.record_step(payload["branch"], scenario)
        push_history(store, build_history_entry(payload, scenario))
    if persist is not None:
        persist(session)
    return scenario


def resolve_branch(choice: str, offered: list[str]) -> str:
    text = str(choice or "").strip()
    if text.isdigit() and 1 <= int(text) <= len(offered):
        return offered[int(text) - 1]
    return text


def render_scenario(scenario: dict[str, Any], *, interactive: bool = True) -> None:
    typer.echo(scenario["narrative"])
    if scenario["timeline"]:
        typer.echo("\nТаймлайн по годам:")
        for point in scenario["timeline"]:
            typer.echo(f"  {point['year']}  {point['title']}")
            typer.echo(f"        {point['details']}")
    if scenario["images"]:
        typer.echo("\nИллюстрации альтернативного мира:")
        for image in scenario["images"]:
            typer.echo(f"  - {shorten(image['prompt'], 130)}")
            typer.echo(f"    {shorten(image['src'], 100)}")
    if interactive and scenario["branches"]:
        typer.echo("\nЧто делаем дальше?")
        for index, branch in enumerate(scenario["branches"], start=1):
            typer.echo(f"  {index}. {branch}")


def _load_session() -> ScenarioSession:
    return ScenarioSession.from_dict(load_state().get("session"))


def _save_session(session: ScenarioSession) -> None:
    state = load_state()
    state["session"] = session.to_dict()
    save_state(state)


def _reject_if_busy(session: ScenarioSession) -> None:
    if session.busy:
        typer.echo(BUSY_MESSAGE)
        raise typer.Exit(code=1)


def _start(event_text: str) -> None:
    session = _load_session()
    _reject_if_busy(session)
    payload = session.start(event_text)
    if payload is None:
        raise typer.BadParameter("Введите историческое событие.")
    typer.echo(f"> {payload['event']}")
    scenario = run_scenario_request(session, payload, open_history_store(), persist=_save_session)
    if scenario is None:
        raise typer.Exit(code=1)
    render_scenario(scenario)


@app.command()
def ping() -> None:
    try:
        resp = request("GET", "/")
    except httpx.RequestError as exc:
        typer.echo(NETWORK_ERROR_MESSAGE)
        raise typer.Exit(code=1) from exc
    typer.echo(f"ok: {resp.status_code}")


@app.command()
def start(event: str = typer.Argument(..., help="Historical event to rewrite")) -> None:
    _start(event)


@app.command("next")
def next_step(choice: str = typer.Argument(..., help="Branch text or its number from the last answer")) -> None:
    session = _load_session()
    if session.active is None:
        raise typer.BadParameter("No active scenario; run `start` first")
    _reject_if_busy(session)
    branch = resolve_branch(choice, session.active.last_branches)
    payload = session.continue_with(branch)
    if payload is None:
        raise typer.BadParameter("Provide a branch")
    typer.echo(f"> Что делаем дальше: {branch}")
    scenario = run_scenario_request(session, payload, open_history_store(), persist=_save_session)
    if scenario is None:
        raise typer.Exit(code=1)
    render_scenario(scenario)


def _history_entry(index: int) -> dict[str, Any]:
    entries = open_history_store().load()
    if not 1 <= index <= len(entries):
        raise typer.BadParameter(f"No history entry #{index}")
    return entries[index - 1]


@history_app.command("list")
def history_list() -> None:
    entries = open_history_store().load()
    if not entries:
        typer.echo("Пока пусто. Первый сценарий появится здесь.")
        return
    for index, item in enumerate(entries, start=1):
        typer.echo(f"{index}. {item['event']}  [{item['createdAt']}]")
        typer.echo(f"   {shorten(item['scenario'].get('narrative', ''), 180)}")


@history_app.command("show")
def history_show(index: int = typer.Argument(..., help="1-based history entry number")) -> None:
    item = _history_entry(index)
    typer.echo(f"> {item['event']}")
    scenario = normalize_scenario({"scenario": item["scenario"]}, datetime.now().year)
    if scenario is not None:
        render_scenario(scenario, interactive=False)


@history_app.command("rerun")
def history_rerun(index: int = typer.Argument(..., help="1-based history entry number")) -> None:
    item = _history_entry(index)
    _start(item.get("rootEvent") or item["event"])


@history_app.command("clear")
def history_clear() -> None:
    open_history_store().clear()
    typer.echo("history cleared")


if __name__ == "__main__":
    app()
