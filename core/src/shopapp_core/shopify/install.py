from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.templating import Jinja2Templates
from starlette.responses import RedirectResponse, Response

from shopapp_core.config import ShopifyConfig
from shopapp_core.db.sessions import find_sessions_by_shop, load_session
from shopapp_core.deps import get_config, get_db_path
from shopapp_core.shopify.oauth import begin_auth_url
from shopapp_core.shopify.session import offline_session_id
from shopapp_core.shopify.utils import embedded_app_url, sanitize_host, sanitize_shop
from shopapp_core.ui import TEMPLATES_DIR

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _has_active_session(db_path, shop: str, config: ShopifyConfig) -> bool:
    if config.use_online_tokens:
        sessions = [s for s in find_sessions_by_shop(db_path, shop) if s.is_online]
    else:
        session = load_session(db_path, offline_session_id(shop))
        sessions = [session] if session is not None else []
    return any(s.is_active(config.scopes) for s in sessions)


def _redirect_out_of_app(request: Request, config: ShopifyConfig, url: str) -> Response:
    # Inside the admin iframe a plain 302 to OAuth is blocked; navigate the top frame.
    if request.query_params.get("embedded") == "1":
        return templates.TemplateResponse(
            request,
            "exit_iframe.html",
            {"api_key": config.api_key, "redirect_url": url},
        )
    return RedirectResponse(url=url, status_code=302)


async def ensure_installed_on_shop(request: Request) -> tuple[str, Response | None]:
    """Check the requesting shop has installed the app.

    Returns the sanitized shop and, when the request must not proceed to the
    shell, the response to send instead (OAuth or embedded-app redirect).
    """

    config = get_config(request).shopify
    shop = sanitize_shop(request.query_params.get("shop"))
    if shop is None:
        raise HTTPException(status_code=422, detail="No shop provided")

    if not _has_active_session(get_db_path(request), shop, config):
        logger.info("App not installed (or session inactive) on %s; redirecting to auth", shop)
        auth_url = f"{config.host_name}{begin_auth_url(config, shop)}"
        return shop, _redirect_out_of_app(request, config, auth_url)

    if config.is_embedded and request.query_params.get("embedded") != "1":
        host = sanitize_host(request.query_params.get("host"))
        url = embedded_app_url(api_key=config.api_key, shop=shop, host=host)
        return shop, RedirectResponse(url=url, status_code=302)

    return shop, None


def add_csp_headers(response: Response, shop: str, config: ShopifyConfig) -> Response:
    if config.is_embedded:
        response.headers["Content-Security-Policy"] = (
            f"frame-ancestors https://{shop} https://admin.shopify.com;"
        )
    else:
        response.headers["Content-Security-Policy"] = "frame-ancestors 'none';"
    return response
