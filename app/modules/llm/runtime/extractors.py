from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

DEFAULT_IMAGE_MIME_TYPE = "image/png"


@dataclass(frozen=True, slots=True)
class ImagePayload:
    url: str | None = None
    base64: str | None = None
    mime_type: str = DEFAULT_IMAGE_MIME_TYPE

    def to_src(self) -> str:
        if self.url:
            return self.url
        return f"data:{self.mime_type};base64,{self.base64}"


def _non_empty_str(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _first_item(data: object, key: str) -> object:
    if not isinstance(data, dict):
        return None
    items = data.get(key)
    if isinstance(items, list) and items:
        return items[0]
    return None


def _inline_data_payload(item: object) -> ImagePayload | None:
    if not isinstance(item, dict):
        return None
    inline = item.get("inline_data")
    if not isinstance(inline, dict):
        return None
    encoded = _non_empty_str(inline.get("data"))
    if encoded is None:
        return None
    mime_type = _non_empty_str(inline.get("mime_type")) or DEFAULT_IMAGE_MIME_TYPE
    return ImagePayload(base64=encoded, mime_type=mime_type)


def _url_payload(item: dict) -> ImagePayload | None:
    url = _non_empty_str(item.get("url"))
    return ImagePayload(url=url) if url else None


def _base64_field_payload(field: str) -> Callable[[dict], ImagePayload | None]:
    def _extract(item: dict) -> ImagePayload | None:
        encoded = _non_empty_str(item.get(field))
        return ImagePayload(base64=encoded) if encoded else None

    return _extract


# Container probes and payload probes are tried in order; the first hit wins.
_CONTAINER_PROBES: tuple[Callable[[object], object], ...] = (
    lambda data: _first_item(data, "data"),
    lambda data: _first_item(data, "images"),
    lambda data: _first_item(data, "output"),
    lambda data: _first_item(data, "result"),
    lambda data: data,
)

_PAYLOAD_PROBES: tuple[Callable[[dict], ImagePayload | None], ...] = (
    _url_payload,
    _base64_field_payload("b64_json"),
    _base64_field_payload("base64"),
    _base64_field_payload("image_base64"),
    _inline_data_payload,
)


def _candidate_parts_payload(data: object) -> ImagePayload | None:
    candidate = _first_item(data, "candidates")
    if not isinstance(candidate, dict):
        return None
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    for part in parts:
        payload = _inline_data_payload(part)
        if payload is not None:
            return payload
    return None


def extract_image_payload(data: object) -> ImagePayload | None:
    for probe_container in _CONTAINER_PROBES:
        item = probe_container(data)
        if not isinstance(item, dict):
            continue
        for probe_payload in _PAYLOAD_PROBES:
            payload = probe_payload(item)
            if payload is not None:
                return payload
    return _candidate_parts_payload(data)


def extract_text_from_chat_completion(data: object) -> str:
    choice = _first_item(data, "choices")
    message = choice.get("message") if isinstance(choice, dict) else None
    content = message.get("content") if isinstance(message, dict) else None

    if isinstance(content, str) and content.strip():
        return content.strip()
    if not isinstance(content, list):
        return ""

    texts = [part["text"] for part in content if isinstance(part, dict) and isinstance(part.get("text"), str)]
    return "\n".join(texts).strip()
