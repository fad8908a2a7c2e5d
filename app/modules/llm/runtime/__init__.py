from app.modules.llm.runtime.errors import UpstreamStatusError, UpstreamTransportError
from app.modules.llm.runtime.extractors import ImagePayload, extract_image_payload, extract_text_from_chat_completion
from app.modules.llm.runtime.parsers import parse_json_from_model_text

__all__ = [
    "UpstreamStatusError",
    "UpstreamTransportError",
    "ImagePayload",
    "extract_image_payload",
    "extract_text_from_chat_completion",
    "parse_json_from_model_text",
]
