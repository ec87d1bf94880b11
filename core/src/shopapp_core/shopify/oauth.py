from __future__ import annotations

import hmac
import logging
import secrets
import time
from datetime import UTC, datetime, timedelta
from typing import Any, Final
from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse

from shopapp_core.auth import SESSION_COOKIE
from shopapp_core.config import ShopifyConfig
from shopapp_core.db.sessions import store_session
from shopapp_core.deps import get_config, get_db_path
from shopapp_core.shopify.clients import exchange_code_for_token
from shopapp_core.shopify.errors import InvalidOAuthError
from shopapp_core.shopify.session import ShopSession, offline_session_id, online_session_id
from shopapp_core.shopify.utils import (
    embedded_app_url,
    sanitize_host,
    sanitize_shop,
    sign_cookie_value,
    unsign_cookie_value,
    validate_query_hmac,
)

logger = logging.getLogger(__name__)

STATE_COOKIE: Final[str] = "shopify_app_state"
STATE_COOKIE_MAX_AGE_S: Final[int] = 60
HMAC_TIMESTAMP_TOLERANCE_S: Final[int] = 90


def _secure_cookies(config: ShopifyConfig) -> bool:
    return config.host_name.startswith("https://")


def authorize_url(config: ShopifyConfig, shop: str, state: str) -> str:
    query = urlencode(
        {
            "client_id": config.api_key,
            "scope": ",".join(config.scopes),
            "redirect_uri": f"{config.host_name}{config.auth_callback_path}",
            "state": state,
            "grant_options[]": "per-user" if config.use_online_tokens else "",
        }
    )
    return f"https://{shop}/admin/oauth/authorize?{query}"


def begin_auth_url(config: ShopifyConfig, shop: str) -> str:
    return f"{config.auth_path}?{urlencode({'shop': shop})}"


def begin_oauth(config: ShopifyConfig, shop: str) -> RedirectResponse:
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(url=authorize_url(config, shop, state), status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        sign_cookie_value(state, config.api_secret),
        max_age=STATE_COOKIE_MAX_AGE_S,
        path=config.auth_callback_path,
        httponly=True,
        secure=_secure_cookies(config),
        samesite="lax",
    )
    return response


def validate_callback(
    params: dict[str, str],
    *,
    expected_state: str,
    config: ShopifyConfig,
    now: float | None = None,
) -> None:
    if not hmac.compare_digest(expected_state, params.get("state") or ""):
        raise InvalidOAuthError("OAuth state does not match the state cookie")

    if not validate_query_hmac(params, config.api_secret):
        raise InvalidOAuthError("OAuth callback HMAC validation failed")

    raw_ts = params.get("timestamp")
    if raw_ts:
        try:
            ts = int(raw_ts)
        except ValueError as e:
            raise InvalidOAuthError("OAuth callback timestamp is not an integer") from e
        current = time.time() if now is None else now
        if abs(current - ts) > HMAC_TIMESTAMP_TOLERANCE_S:
            raise InvalidOAuthError("OAuth callback timestamp is outside the tolerance")

    if not params.get("code"):
        raise InvalidOAuthError("OAuth callback is missing the authorization code")


def session_from_token_response(
    shop: str, state: str, token: dict[str, Any], *, online: bool
) -> ShopSession:
    access_token = token.get("access_token")
    if not access_token:
        raise InvalidOAuthError("Token response did not include an access token")

    if not online:
        return ShopSession(
            id=offline_session_id(shop),
            shop=shop,
            state=state,
            is_online=False,
            scope=token.get("scope"),
            access_token=access_token,
        )

    user = token.get("associated_user") or {}
    user_id = user.get("id")
    if user_id is None:
        raise InvalidOAuthError("Online token response did not include an associated user")

    expires_at = None
    if token.get("expires_in") is not None:
        expires_at = datetime.now(UTC) + timedelta(seconds=int(token["expires_in"]))

    return ShopSession(
        id=online_session_id(shop, user_id),
        shop=shop,
        state=state,
        is_online=True,
        scope=token.get("scope"),
        access_token=access_token,
        expires_at=expires_at,
        online_access_info={
            "expires_in": token.get("expires_in"),
            "associated_user_scope": token.get("associated_user_scope"),
            "associated_user": user,
        },
    )


def redirect_to_app_root(config: ShopifyConfig, shop: str, host: str | None) -> RedirectResponse:
    if config.is_embedded:
        url = embedded_app_url(api_key=config.api_key, shop=shop, host=host)
    else:
        query = {"shop": shop}
        if host:
            query["host"] = host
        url = f"/?{urlencode(query)}"
    return RedirectResponse(url=url, status_code=302)


async def auth_begin(request: Request) -> RedirectResponse:
    config = get_config(request).shopify
    shop = sanitize_shop(request.query_params.get("shop"))
    if shop is None:
        raise HTTPException(status_code=422, detail="Invalid or missing shop parameter")

    logger.info("Beginning OAuth for %s", shop)
    return begin_oauth(config, shop)


async def auth_callback(request: Request) -> RedirectResponse:
    core_config = get_config(request)
    config = core_config.shopify
    db_path = get_db_path(request)
    params = dict(request.query_params)

    shop = sanitize_shop(params.get("shop"))
    if shop is None:
        raise HTTPException(status_code=400, detail="Invalid OAuth callback")

    state = unsign_cookie_value(request.cookies.get(STATE_COOKIE), config.api_secret)
    if state is None:
        # Lost or expired state cookie: restart the flow rather than fail.
        logger.info("OAuth state cookie missing for %s; restarting auth", shop)
        return RedirectResponse(url=begin_auth_url(config, shop), status_code=302)

    try:
        validate_callback(params, expected_state=state, config=config)
    except InvalidOAuthError as e:
        logger.warning("Invalid OAuth callback for %s: %s", shop, e)
        raise HTTPException(status_code=400, detail="Invalid OAuth callback") from e

    token = await exchange_code_for_token(
        shop=shop,
        code=params["code"],
        config=config,
        timeout=core_config.client.request_timeout_s,
    )
    try:
        session = session_from_token_response(
            shop, state, token, online=config.use_online_tokens
        )
    except InvalidOAuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    store_session(db_path, session)
    logger.info("Stored %s session for %s", "online" if session.is_online else "offline", shop)

    response = redirect_to_app_root(config, shop, sanitize_host(params.get("host")))
    response.delete_cookie(STATE_COOKIE, path=config.auth_callback_path)
    if not config.is_embedded:
        response.set_cookie(
            SESSION_COOKIE,
            sign_cookie_value(session.id, config.api_secret),
            httponly=True,
            secure=_secure_cookies(config),
            samesite="lax",
        )
    return response


def build_auth_router(config: ShopifyConfig) -> APIRouter:
    router = APIRouter(tags=["auth"])
    router.add_api_route(config.auth_path, auth_begin, methods=["GET"], response_model=None)
    router.add_api_route(
        config.auth_callback_path, auth_callback, methods=["GET"], response_model=None
    )
    return router
