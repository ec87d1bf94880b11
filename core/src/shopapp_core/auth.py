from __future__ import annotations

import logging
from typing import Final
from urllib.parse import urlencode

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shopapp_core.config import ShopifyConfig
from shopapp_core.db.sessions import load_session
from shopapp_core.deps import get_config, get_db_path
from shopapp_core.shopify.errors import InvalidSessionTokenError
from shopapp_core.shopify.session import ShopSession, offline_session_id, online_session_id
from shopapp_core.shopify.session_token import decode_session_token, shop_from_payload
from shopapp_core.shopify.utils import unsign_cookie_value

logger = logging.getLogger(__name__)

SESSION_COOKIE: Final[str] = "shopify_app_session"
REAUTHORIZE_HEADER: Final[str] = "X-Shopify-API-Request-Failure-Reauthorize"
REAUTHORIZE_URL_HEADER: Final[str] = "X-Shopify-API-Request-Failure-Reauthorize-Url"

_bearer_scheme = HTTPBearer(auto_error=False)


def reauthorize_url(config: ShopifyConfig, shop: str) -> str:
    return f"{config.host_name}{config.auth_path}?{urlencode({'shop': shop})}"


def _reauthorize(config: ShopifyConfig, shop: str) -> HTTPException:
    return HTTPException(
        status_code=403,
        detail="Session is missing or no longer valid; reauthorize the app",
        headers={
            REAUTHORIZE_HEADER: "1",
            REAUTHORIZE_URL_HEADER: reauthorize_url(config, shop),
        },
    )


def _session_id_from_bearer(token: str, config: ShopifyConfig) -> tuple[str, str]:
    payload = decode_session_token(token, config)
    shop = shop_from_payload(payload)
    if config.use_online_tokens:
        user_id = payload.get("sub")
        if not user_id:
            raise InvalidSessionTokenError("Session token has no subject")
        return online_session_id(shop, user_id), shop
    return offline_session_id(shop), shop


async def require_shop_session(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Security(_bearer_scheme),  # noqa: B008
) -> ShopSession:
    """Require a stored, active session for the calling shop.

    Embedded apps authenticate with the admin-issued session token:
    - Authorization: Bearer <jwt>

    Non-embedded apps fall back to the signed session cookie set after OAuth.
    """

    config = get_config(request).shopify
    db_path = get_db_path(request)

    session_id: str | None = None
    shop: str | None = None

    if bearer is not None:
        try:
            session_id, shop = _session_id_from_bearer(bearer.credentials, config)
        except InvalidSessionTokenError as e:
            logger.info("Rejected session token: %s", e)
            raise HTTPException(status_code=401, detail="Invalid session token") from e
    elif not config.is_embedded:
        session_id = unsign_cookie_value(request.cookies.get(SESSION_COOKIE), config.api_secret)

    if not session_id:
        raise HTTPException(status_code=401, detail="Missing session token")

    session = load_session(db_path, session_id)
    if session is None or not session.is_active(config.scopes):
        raise _reauthorize(config, shop or (session.shop if session else ""))

    request.state.shopify_session = session
    return session
