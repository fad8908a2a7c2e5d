from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, JSONResponse

from app.config import Settings, get_settings

INDEX_FILE = "index.html"
SERVED_METHODS = {"GET", "HEAD"}
CONTENT_TYPES = {
    ".html": "text/html; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".js": "application/javascript; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".ico": "image/x-icon",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

router = APIRouter(tags=["static"])


def resolve_public_path(public_dir: Path, url_path: str) -> Path | None:
    """Map a URL path onto ``public_dir``; ``None`` when it escapes the root."""
    root = public_dir.resolve()
    relative = url_path.lstrip("/") or INDEX_FILE
    target = (root / relative).resolve()
    if not target.is_relative_to(root):
        return None
    return target


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


@router.api_route(
    "/{full_path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
def serve_static(request: Request, full_path: str, settings: Settings = Depends(get_settings)):
    target = resolve_public_path(settings.public_dir, full_path)
    if target is None:
        return JSONResponse({"error": "Forbidden"}, status_code=403)
    if request.method not in SERVED_METHODS:
        return JSONResponse({"error": "Method Not Allowed"}, status_code=405)
    if not target.is_file():
        return JSONResponse({"error": "Not found"}, status_code=404)
    return FileResponse(target, media_type=content_type_for(target))
