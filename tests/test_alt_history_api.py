from __future__ import annotations

import json
from datetime import datetime

from fastapi.testclient import TestClient

from app.config import get_settings
from app.main import app
from tests.conftest import fake_response, make_settings

CHAT_URL = "https://upstream.test/v1/chat/completions"
IMAGE_URL = "https://upstream.test/v1/images/generations"


def _client(**settings_overrides) -> TestClient:
    settings = make_settings(**settings_overrides)
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)


def _model_json(**overrides) -> str:
    payload = {
        "narrative": "Западная Римская империя пережила кризис V века.",
        "timeline": [
            {"year": 476, "title": "Перелом", "details": "Одоакр отступает."},
            {"year": 800, "title": "Союз", "details": "Франки становятся федератами."},
            {"year": 1453, "title": "Восток", "details": "Константинополь устоял."},
            {"year": 1900, "title": "Индустрия", "details": "Паровые легионы."},
        ],
        "branches": ["Укрепить границы", "Реформировать сенат"],
        "image_prompts": ["Рим в 2026 году, панорама форума"],
    }
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


def _completion(content: object) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_minimal_valid_response_yields_complete_scenario(fake_upstream) -> None:
    fake_upstream.routes = {
        "/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json()))],
        "/images/generations": [fake_response(IMAGE_URL, payload={"data": [{"url": "https://img.test/rome.png"}]})],
    }
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "Рим не пал в 476 году"})

    assert resp.status_code == 200
    scenario = resp.json()["scenario"]
    assert len(scenario["timeline"]) == 4
    assert scenario["timeline"][-1]["year"] == datetime.now().year
    assert scenario["branches"] == ["Укрепить границы", "Реформировать сенат"]
    assert scenario["imagePrompts"] == ["Рим в 2026 году, панорама форума"]
    assert scenario["images"] == [{"src": "https://img.test/rome.png", "prompt": "Рим в 2026 году, панорама форума"}]


def test_chat_request_carries_model_messages_and_credentials(fake_upstream) -> None:
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json()))]}
    client = _client(gemini_enable_images=False, gemini_model="text-model")

    client.post("/api/alt-history", json={"event": "  Рим не пал  ", "branch": " Укрепить границы "})

    assert len(fake_upstream.requests) == 1
    req = fake_upstream.requests[0]
    assert req["url"] == CHAT_URL
    assert req["headers"]["Authorization"] == "Bearer test-key"
    assert set(req["json"]) == {"model", "messages", "temperature"}
    assert req["json"]["model"] == "text-model"
    assert req["json"]["temperature"] == 0.85
    assert [m["role"] for m in req["json"]["messages"]] == ["system", "user"]
    user_prompt = req["json"]["messages"][1]["content"]
    assert "Исходное событие: Рим не пал" in user_prompt
    assert "Выбранная развилка: Укрепить границы" in user_prompt


def test_missing_credential_is_config_error_without_upstream_call(fake_upstream) -> None:
    client = _client(gemini_api_key="")

    resp = client.post("/api/alt-history", json={"event": "Рим не пал в 476 году"})

    assert resp.status_code == 500
    assert "GEMINI_API_KEY" in resp.json()["error"]
    assert fake_upstream.requests == []


def test_blank_event_is_rejected(fake_upstream) -> None:
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "   "})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Введите историческое событие."}
    assert fake_upstream.requests == []


def test_malformed_body_degrades_to_empty_object(fake_upstream) -> None:
    client = _client()

    resp = client.post("/api/alt-history", content=b"{not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Введите историческое событие."


def test_oversized_body_is_rejected_with_generic_error(fake_upstream) -> None:
    client = _client()

    resp = client.post("/api/alt-history", content=b"x" * 1_000_001)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Внутренняя ошибка сервера."}
    assert fake_upstream.requests == []


def test_both_image_failures_yield_two_placeholders(fake_upstream) -> None:
    prompts = ["Форум в 2026 году", "Легионы на Рейне"]
    fake_upstream.routes = {
        "/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json(image_prompts=prompts)))],
        "/images/generations": [RuntimeError("image backend exploded")],
    }
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "Рим не пал в 476 году"})

    assert resp.status_code == 200
    images = resp.json()["scenario"]["images"]
    assert len(images) == 2
    assert [image["prompt"] for image in images] == prompts
    assert all(image["src"].startswith("data:image/svg+xml") for image in images)


def test_single_image_failure_keeps_slot_order(fake_upstream) -> None:
    prompts = ["первый", "второй"]
    fake_upstream.routes = {
        "/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json(image_prompts=prompts)))],
        "/images/generations": [
            fake_response(IMAGE_URL, 500, payload={"error": {"message": "quota"}}),
            fake_response(IMAGE_URL, payload={"data": [{"b64_json": "QUJD"}]}),
        ],
    }
    client = _client()

    images = client.post("/api/alt-history", json={"event": "Рим"}).json()["scenario"]["images"]

    assert images[0]["prompt"] == "первый"
    assert images[0]["src"].startswith("data:image/svg+xml")
    assert images[1] == {"src": "data:image/png;base64,QUJD", "prompt": "второй"}


def test_unrecognized_image_shape_falls_back_to_placeholder(fake_upstream) -> None:
    fake_upstream.routes = {
        "/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json()))],
        "/images/generations": [fake_response(IMAGE_URL, payload={"unexpected": True})],
    }
    client = _client()

    images = client.post("/api/alt-history", json={"event": "Рим"}).json()["scenario"]["images"]

    assert len(images) == 1
    assert images[0]["src"].startswith("data:image/svg+xml")


def test_images_disabled_skips_image_calls(fake_upstream) -> None:
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json()))]}
    client = _client(gemini_enable_images=False)

    resp = client.post("/api/alt-history", json={"event": "Рим"})

    assert resp.status_code == 200
    assert resp.json()["scenario"]["images"] == []
    assert [req["url"] for req in fake_upstream.requests] == [CHAT_URL]


def test_upstream_error_status_and_message_pass_through(fake_upstream) -> None:
    fake_upstream.routes = {
        "/chat/completions": [fake_response(CHAT_URL, 429, payload={"error": {"message": "Resource exhausted"}})],
    }
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "Рим"})

    assert resp.status_code == 429
    assert resp.json() == {"error": "Resource exhausted"}


def test_upstream_error_wrapped_in_list_is_unwrapped(fake_upstream) -> None:
    fake_upstream.routes = {
        "/chat/completions": [fake_response(CHAT_URL, 400, payload=[{"error": {"message": "API key not valid"}}])],
    }
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "Рим"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "API key not valid"}


def test_upstream_error_without_message_uses_default(fake_upstream) -> None:
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, 503, text="<html>down</html>")]}
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "Рим"})

    assert resp.status_code == 503
    assert resp.json() == {"error": "Ошибка при обращении к Gemini API."}


def test_empty_upstream_text_is_bad_gateway(fake_upstream) -> None:
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, payload=_completion("   "))]}
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "Рим"})

    assert resp.status_code == 502
    assert resp.json() == {"error": "Gemini вернул пустой ответ."}


def test_transport_failure_is_generic_server_error(fake_upstream) -> None:
    import httpx

    fake_upstream.routes = {"/chat/completions": [httpx.ConnectError("connection refused")]}
    client = _client()

    resp = client.post("/api/alt-history", json={"event": "Рим"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Не удалось получить ответ от Gemini API."}


def test_prose_wrapped_model_output_is_repaired(fake_upstream) -> None:
    content = [{"type": "text", "text": "Конечно! Вот сценарий:"}, {"type": "text", "text": _model_json(branches="bad")}]
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, payload=_completion(content))]}
    client = _client(gemini_enable_images=False)

    scenario = client.post("/api/alt-history", json={"event": "Рим"}).json()["scenario"]

    assert scenario["narrative"] == "Западная Римская империя пережила кризис V века."
    assert len(scenario["branches"]) == 3


def test_continuation_context_is_rebounded_to_last_four_steps(fake_upstream) -> None:
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json()))]}
    client = _client(gemini_enable_images=False)
    context = [{"branch": f"ветка-{i}", "narrative": "н" * 2000, "timeline": []} for i in range(6)]

    client.post("/api/alt-history", json={"event": "Рим", "branch": "ветка-6", "context": context})

    user_prompt = fake_upstream.requests[0]["json"]["messages"][1]["content"]
    assert "ветка-1\"" not in user_prompt
    assert "ветка-2" in user_prompt
    assert "ветка-5" in user_prompt
    assert "н" * 1201 not in user_prompt


def test_body_with_oversized_integer_degrades_to_empty_object(fake_upstream) -> None:
    client = _client()

    body = '{"event": "Рим", "n": ' + "1" * 5000 + "}"
    resp = client.post("/api/alt-history", content=body.encode("utf-8"), headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Введите историческое событие."}
    assert fake_upstream.requests == []


def test_model_output_with_oversized_year_is_normalized(fake_upstream) -> None:
    content = '{"narrative": "Рим выстоял.", "timeline": [{"year": ' + "1" * 5000 + ', "details": "d"}]}'
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, payload=_completion(content))]}
    client = _client(gemini_enable_images=False)

    resp = client.post("/api/alt-history", json={"event": "Рим"})

    assert resp.status_code == 200
    timeline = resp.json()["scenario"]["timeline"]
    assert len(timeline) == 4
    assert timeline[-1]["year"] == datetime.now().year


def test_context_with_oversized_year_string_is_accepted(fake_upstream) -> None:
    fake_upstream.routes = {"/chat/completions": [fake_response(CHAT_URL, payload=_completion(_model_json()))]}
    client = _client(gemini_enable_images=False)
    context = [{"branch": "b", "narrative": "n", "timeline": [{"year": "7" * 5000, "title": "t", "details": "d"}]}]

    resp = client.post("/api/alt-history", json={"event": "Рим", "branch": "c", "context": context})

    assert resp.status_code == 200
    user_prompt = fake_upstream.requests[0]["json"]["messages"][1]["content"]
    assert '"year": null' in user_prompt
