from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, Request
from fastapi.templating import Jinja2Templates
from starlette.responses import FileResponse, Response

from shopapp_core.deps import get_config
from shopapp_core.shopify.install import add_csp_headers, ensure_installed_on_shop

logger = logging.getLogger(__name__)

SHELL_DOCUMENT = "index.html"

router = APIRouter(tags=["ui"])


def resolve_static_file(static_dir: Path, rel_path: str) -> Path | None:
    """Map a request path onto a file inside the static dir, if one exists.

    The shell document itself is never served raw; it goes through the
    installed-shop check.
    """

    rel = rel_path.strip("/")
    if not rel or rel == SHELL_DOCUMENT:
        return None

    root = static_dir.resolve()
    candidate = (root / rel).resolve()
    if not candidate.is_relative_to(root):
        return None
    return candidate if candidate.is_file() else None


def _shell_templates(request: Request) -> Jinja2Templates:
    templates = getattr(request.app.state, "shell_templates", None)
    if templates is None:
        raise HTTPException(status_code=500, detail="Shell not initialized")
    return templates


@router.get("/{full_path:path}", include_in_schema=False, response_model=None)
async def shell(request: Request, full_path: str) -> Response:
    if full_path == "api":
        raise HTTPException(status_code=404, detail="Not Found")

    static_dir: Path = request.app.state.static_dir
    asset = resolve_static_file(static_dir, full_path)
    if asset is not None:
        return FileResponse(asset)

    shop, redirect = await ensure_installed_on_shop(request)
    if redirect is not None:
        return redirect

    if not (static_dir / SHELL_DOCUMENT).is_file():
        logger.error("Shell document missing from %s", static_dir)
        raise HTTPException(status_code=500, detail="Shell document is missing")

    config = get_config(request).shopify
    response = _shell_templates(request).TemplateResponse(
        request,
        SHELL_DOCUMENT,
        {
            "api_key": config.api_key,
            "shop": shop,
            "host": request.query_params.get("host") or "",
        },
    )
    return add_csp_headers(response, shop, config)
