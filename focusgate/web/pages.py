"""Redirect-target page server routes.

Denied requests are rewritten to this server with their original path, so
every GET path must produce a page: the file under the web root if it exists,
otherwise ``index.html``. Paths that resolve outside the web root get
``index.html`` too.
"""

from __future__ import annotations

import pathlib

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

from focusgate.constants import INDEX_PAGE
from focusgate.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["pages"])


def resolve_page(web_root: str, path: str) -> pathlib.Path:
    """Map a request path to the file to serve.

    Raises:
        FileNotFoundError: If neither the file nor the index page exists.
    """
    root = pathlib.Path(web_root).resolve()
    candidate = (root / path.lstrip("/")).resolve()

    if candidate != root and root in candidate.parents and candidate.is_file():
        return candidate

    index = root / INDEX_PAGE
    if index.is_file():
        return index
    raise FileNotFoundError(str(index))


@router.api_route("/{path:path}", methods=["GET", "HEAD"])
async def serve_page(request: Request, path: str) -> FileResponse:
    web_root: str = request.app.state.gate.config.web_root
    try:
        page = resolve_page(web_root, path)
    except FileNotFoundError:
        logger.error("Redirect page missing from web root", web_root=web_root)
        raise HTTPException(status_code=404, detail={"message": "Page not found"})
    return FileResponse(str(page))
