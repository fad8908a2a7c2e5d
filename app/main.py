import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.modules.scenario.errors import INTERNAL_ERROR_MESSAGE, ScenarioError
from app.modules.scenario.router import router as scenario_router
from app.modules.static.router import router as static_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Alternate History Backend")


@app.exception_handler(ScenarioError)
async def _scenario_error_handler(_request: Request, exc: ScenarioError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("alt-history request failed: kind=%s status=%s cause=%r", exc.error_kind, exc.status_code, exc.__cause__)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": INTERNAL_ERROR_MESSAGE}, status_code=500)


# The static catch-all must stay last so API routes match first.
app.include_router(scenario_router)
app.include_router(static_router)


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Server running on http://localhost:%s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
