from __future__ import annotations

import asyncio
import logging

from app.config import Settings
from app.modules.llm.prompts import build_scenario_prompt
from app.modules.llm.runtime.chat_completions_client import post_chat_completions, post_image_generation
from app.modules.llm.runtime.errors import UpstreamStatusError, UpstreamTransportError
from app.modules.llm.runtime.extractors import extract_image_payload, extract_text_from_chat_completion
from app.modules.scenario.context import normalize_context
from app.modules.scenario.errors import (
    SCENARIO_ERROR_CONFIG_MISSING,
    SCENARIO_ERROR_INPUT_INVALID,
    SCENARIO_ERROR_UPSTREAM_EMPTY,
    SCENARIO_ERROR_UPSTREAM_STATUS,
    SCENARIO_ERROR_UPSTREAM_TRANSPORT,
    ScenarioError,
)
from app.modules.scenario.normalizer import parse_scenario_response, pick_string
from app.modules.scenario.placeholder import build_fallback_svg_data_uri
from app.modules.scenario.schemas import MAX_IMAGES, Scenario, ScenarioImage
from app.utils.time import current_year as default_current_year

logger = logging.getLogger(__name__)

EVENT_REQUIRED_MESSAGE = "Введите историческое событие."
API_KEY_MISSING_MESSAGE = "Не найден GEMINI_API_KEY. Добавьте ключ в файл .env и перезапустите сервер."
EMPTY_UPSTREAM_MESSAGE = "Gemini вернул пустой ответ."
UPSTREAM_TRANSPORT_MESSAGE = "Не удалось получить ответ от Gemini API."


async def generate_single_image(prompt: str, *, settings: Settings) -> ScenarioImage | None:
    try:
        data = await post_image_generation(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_image_model,
            prompt=prompt,
            timeout_s=settings.upstream_timeout_s,
        )
    except UpstreamStatusError as exc:
        logger.warning("image generation failed: status=%s message=%s", exc.status_code, exc)
        return None
    except Exception as exc:  # noqa: BLE001
        logger.warning("image generation error: %s", exc)
        return None

    payload = extract_image_payload(data)
    if payload is None:
        logger.warning("image generation returned an unrecognized payload shape")
        return None
    return ScenarioImage(src=payload.to_src(), prompt=prompt)


async def generate_scenario_images(prompts: list[str], *, settings: Settings) -> list[ScenarioImage]:
    """Generate one image per prompt concurrently, filling failed slots with placeholders."""
    selected = prompts[:MAX_IMAGES]
    results = await asyncio.gather(*(generate_single_image(prompt, settings=settings) for prompt in selected))

    images: list[ScenarioImage] = []
    for prompt, image in zip(selected, results):
        if image is None:
            image = ScenarioImage(src=build_fallback_svg_data_uri(prompt), prompt=prompt)
        images.append(image)

    fallback_count = sum(1 for image in results if image is None)
    if fallback_count:
        logger.info("substituted %d placeholder illustration(s) of %d", fallback_count, len(selected))
    return images


async def _request_model_text(*, settings: Settings, messages: list[dict]) -> str:
    try:
        data = await post_chat_completions(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            messages=messages,
            timeout_s=settings.upstream_timeout_s,
        )
    except UpstreamStatusError as exc:
        logger.warning("chat/completions failed: status=%s raw=%s", exc.status_code, exc.raw_snippet)
        raise ScenarioError(str(exc), status_code=exc.status_code, error_kind=SCENARIO_ERROR_UPSTREAM_STATUS) from exc
    except UpstreamTransportError as exc:
        logger.error("chat/completions transport error: %s", exc)
        raise ScenarioError(
            UPSTREAM_TRANSPORT_MESSAGE,
            status_code=500,
            error_kind=SCENARIO_ERROR_UPSTREAM_TRANSPORT,
        ) from exc

    model_text = extract_text_from_chat_completion(data)
    if not model_text:
        logger.warning("chat/completions returned no usable text")
        raise ScenarioError(EMPTY_UPSTREAM_MESSAGE, status_code=502, error_kind=SCENARIO_ERROR_UPSTREAM_EMPTY)
    return model_text


async def generate_scenario(
    body: dict,
    *,
    settings: Settings,
    current_year: int | None = None,
) -> Scenario:
    event = pick_string(body.get("event"))
    branch = pick_string(body.get("branch"))
    context = normalize_context(body.get("context"))
    year = current_year if current_year is not None else default_current_year()

    if not event:
        raise ScenarioError(EVENT_REQUIRED_MESSAGE, status_code=400, error_kind=SCENARIO_ERROR_INPUT_INVALID)
    if not settings.gemini_api_key:
        logger.error("GEMINI_API_KEY is not configured")
        raise ScenarioError(API_KEY_MISSING_MESSAGE, status_code=500, error_kind=SCENARIO_ERROR_CONFIG_MISSING)

    prompt = build_scenario_prompt(
        event=event,
        branch=branch,
        context=[step.model_dump() for step in context],
        current_year=year,
    )
    model_text = await _request_model_text(settings=settings, messages=prompt.to_messages())

    scenario = parse_scenario_response(model_text, year)
    if settings.gemini_enable_images and scenario.image_prompts:
        scenario.images = await generate_scenario_images(scenario.image_prompts, settings=settings)
    else:
        scenario.images = []
    return scenario
