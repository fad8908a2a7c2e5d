import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.modules.scenario import service
from app.modules.scenario.errors import INTERNAL_ERROR_MESSAGE, SCENARIO_ERROR_REQUEST_BODY, ScenarioError
from app.modules.scenario.schemas import ErrorResponse, ScenarioResponse

MAX_REQUEST_BODY_BYTES = 1_000_000

router = APIRouter(prefix="/api", tags=["alt-history"])


async def read_json_body(request: Request) -> dict:
    """Read the request body as a JSON object; anything undecodable degrades to ``{}``."""
    raw = bytearray()
    async for chunk in request.stream():
        raw.extend(chunk)
        if len(raw) > MAX_REQUEST_BODY_BYTES:
            raise ScenarioError(INTERNAL_ERROR_MESSAGE, status_code=500, error_kind=SCENARIO_ERROR_REQUEST_BODY)
    if not raw:
        return {}
    try:
        parsed = json.loads(raw.decode("utf-8"))
    except (ValueError, RecursionError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


@router.post(
    "/alt-history",
    response_model=ScenarioResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def create_alt_history(request: Request, settings: Settings = Depends(get_settings)):
    body = await read_json_body(request)
    scenario = await service.generate_scenario(body, settings=settings)
    return JSONResponse({"scenario": scenario.model_dump(by_alias=True)})
