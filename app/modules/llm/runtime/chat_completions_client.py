from __future__ import annotations

import json
from typing import Literal, TypedDict

import httpx

from app.modules.llm.runtime.errors import UpstreamStatusError, UpstreamTransportError
from app.modules.llm.runtime.parsers import sanitize_raw_snippet

CHAT_COMPLETIONS_PATH = "chat/completions"
IMAGE_GENERATIONS_PATH = "images/generations"
SCENARIO_TEMPERATURE = 0.85
IMAGE_SIZE = "1024x1024"
DEFAULT_UPSTREAM_ERROR_MESSAGE = "Ошибка при обращении к Gemini API."


class ChatCompletionMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletionPayload(TypedDict):
    model: str
    messages: list[ChatCompletionMessage]
    temperature: float


class ImageGenerationPayload(TypedDict):
    model: str
    prompt: str
    size: str
    n: int


def _endpoint_url(*, base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _auth_headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _build_chat_completion_payload(
    *,
    model: str,
    messages: list[ChatCompletionMessage],
    temperature: float = SCENARIO_TEMPERATURE,
) -> ChatCompletionPayload:
    return {
        "model": str(model),
        "messages": list(messages),
        "temperature": float(temperature),
    }


def _build_image_payload(*, model: str, prompt: str) -> ImageGenerationPayload:
    return {
        "model": str(model),
        "prompt": str(prompt),
        "size": IMAGE_SIZE,
        "n": 1,
    }


def upstream_error_message(body: object) -> str:
    # Some OpenAI-compatible gateways wrap the error object in a one-item list.
    if isinstance(body, list) and body:
        body = body[0]
    error = body.get("error") if isinstance(body, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    if isinstance(message, str) and message.strip():
        return message.strip()
    return DEFAULT_UPSTREAM_ERROR_MESSAGE


def _response_json(response: httpx.Response) -> object:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


async def _post_json(*, url: str, api_key: str, payload: dict, timeout_s: float | None) -> dict:
    timeout = httpx.Timeout(timeout=timeout_s)
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, headers=_auth_headers(api_key), json=payload)
    except httpx.HTTPError as exc:
        raise UpstreamTransportError(f"{url}: {exc.__class__.__name__}: {exc}") from exc

    body = _response_json(response)
    if not 200 <= response.status_code < 300:
        raise UpstreamStatusError(
            upstream_error_message(body),
            status_code=response.status_code,
            raw_snippet=sanitize_raw_snippet(body if body is not None else response.text),
        )
    if not isinstance(body, dict):
        raise UpstreamTransportError(f"{url}: non-object body {sanitize_raw_snippet(response.text)!r}")
    return body


async def post_chat_completions(
    *,
    api_key: str,
    base_url: str,
    model: str,
    messages: list[ChatCompletionMessage],
    timeout_s: float | None = None,
) -> dict:
    payload = _build_chat_completion_payload(model=model, messages=messages)
    return await _post_json(
        url=_endpoint_url(base_url=base_url, path=CHAT_COMPLETIONS_PATH),
        api_key=api_key,
        payload=dict(payload),
        timeout_s=timeout_s,
    )


async def post_image_generation(
    *,
    api_key: str,
    base_url: str,
    model: str,
    prompt: str,
    timeout_s: float | None = None,
) -> dict:
    payload = _build_image_payload(model=model, prompt=prompt)
    return await _post_json(
        url=_endpoint_url(base_url=base_url, path=IMAGE_GENERATIONS_PATH),
        api_key=api_key,
        payload=dict(payload),
        timeout_s=timeout_s,
    )


__all__ = [
    "CHAT_COMPLETIONS_PATH",
    "IMAGE_GENERATIONS_PATH",
    "ChatCompletionMessage",
    "post_chat_completions",
    "post_image_generation",
    "upstream_error_message",
]
