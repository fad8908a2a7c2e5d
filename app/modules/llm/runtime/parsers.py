from __future__ import annotations

import json
import re

_TOKEN_REDACTION_RE = re.compile(r"\b(?:sk-|AIza)[A-Za-z0-9_\-]{8,}\b")
_LEADING_FENCE_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*```$")


def sanitize_raw_snippet(raw: object, max_len: int = 200) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, (dict, list)):
        try:
            text = json.dumps(raw, ensure_ascii=False)
        except Exception:  # noqa: BLE001
            text = str(raw)
    else:
        text = str(raw)
    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    text = _TOKEN_REDACTION_RE.sub("[REDACTED_KEY]", text)
    text = " ".join(text.split())
    if not text:
        return None
    return text[:max_len]


def strip_code_fences(raw_text: str) -> str:
    text = _LEADING_FENCE_RE.sub("", raw_text.strip(), count=1)
    return _TRAILING_FENCE_RE.sub("", text, count=1).strip()


def extract_json_fragment(raw_text: str) -> str | None:
    if not raw_text:
        return None
    left = raw_text.find("{")
    right = raw_text.rfind("}")
    if left == -1 or right == -1 or right <= left:
        return None
    return raw_text[left : right + 1]


def _loads_object(text: str) -> dict | None:
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_json_from_model_text(text: object) -> dict | None:
    """Best-effort recovery of the JSON object a model was asked to return.

    Model output may be fenced (```json ... ```) or surrounded by prose. The
    fenced body is tried as-is first, then the widest ``{...}`` slice. Returns
    ``None`` instead of raising when nothing parses.
    """
    raw = str(text or "").strip()
    if not raw:
        return None

    unfenced = strip_code_fences(raw)
    parsed = _loads_object(unfenced)
    if parsed is not None:
        return parsed

    fragment = extract_json_fragment(unfenced)
    if fragment is None:
        return None
    return _loads_object(fragment)
