from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from app.config import Settings, get_settings
from app.main import app


class FakeAsyncClient:
    """Stand-in for ``httpx.AsyncClient``: pops canned outcomes per (path suffix) route."""

    routes: dict[str, list[object]] = {}
    requests: list[dict] = []

    def __init__(self, *, timeout=None, **_kwargs):
        self.timeout = timeout

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url: str, *, headers: dict, json: dict):
        FakeAsyncClient.requests.append({"url": url, "headers": headers, "json": json})
        for suffix, outcomes in FakeAsyncClient.routes.items():
            if url.endswith(suffix):
                if not outcomes:
                    raise RuntimeError(f"no fake outcome left for {suffix}")
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise RuntimeError(f"no fake route configured for {url}")


def fake_response(url: str, status_code: int = 200, *, payload: object = None, text: str | None = None) -> httpx.Response:
    request = httpx.Request("POST", url)
    if text is not None:
        return httpx.Response(status_code, request=request, text=text)
    return httpx.Response(status_code, request=request, json=payload)


def make_settings(tmp_path: Path | None = None, **overrides) -> Settings:
    values = {
        "gemini_api_key": "test-key",
        "gemini_base_url": "https://upstream.test/v1",
        "gemini_enable_images": True,
    }
    if tmp_path is not None:
        values["public_dir"] = tmp_path
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_upstream(monkeypatch: pytest.MonkeyPatch):
    FakeAsyncClient.routes = {}
    FakeAsyncClient.requests = []
    monkeypatch.setattr(httpx, "AsyncClient", FakeAsyncClient)
    yield FakeAsyncClient
    FakeAsyncClient.routes = {}
    FakeAsyncClient.requests = []


@pytest.fixture(autouse=True)
def _reset_dependency_overrides():
    get_settings.cache_clear()
    yield
    app.dependency_overrides.clear()
    get_settings.cache_clear()
