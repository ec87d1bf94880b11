from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import jwt

from shopapp_core.config import ShopifyConfig
from shopapp_core.shopify.errors import InvalidSessionTokenError
from shopapp_core.shopify.utils import sanitize_shop

SESSION_TOKEN_LEEWAY_S = 10


def decode_session_token(token: str, config: ShopifyConfig) -> dict[str, Any]:
    """Decode and verify the JWT the admin hands to the embedded frontend.

    - HS256, signed with the app's API secret
    - audience must be the app's API key
    - `dest` must name a valid shop
    """

    try:
        payload = jwt.decode(
            token,
            config.api_secret,
            algorithms=["HS256"],
            audience=config.api_key,
            leeway=SESSION_TOKEN_LEEWAY_S,
            options={"require": ["exp", "dest", "aud"]},
        )
    except jwt.PyJWTError as e:
        raise InvalidSessionTokenError(f"Failed to parse session token: {e}") from e

    return payload


def shop_from_payload(payload: dict[str, Any]) -> str:
    dest = str(payload.get("dest") or "")
    shop = sanitize_shop(urlparse(dest).hostname or dest)
    if shop is None:
        raise InvalidSessionTokenError("Session token does not name a valid shop")
    return shop
