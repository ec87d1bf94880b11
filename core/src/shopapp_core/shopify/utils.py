"""Shop-domain, HMAC and signed-cookie helpers shared by the auth and webhook routes."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
from collections.abc import Mapping
from typing import Final

from shopapp_core.shopify.errors import InvalidShopError

SHOP_DOMAIN_RE: Final = re.compile(r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$")
ADMIN_STORE_RE: Final = re.compile(r"^admin\.shopify\.com/store/([a-z0-9][a-z0-9-]*)$")
ADMIN_HOST_RE: Final = re.compile(
    r"^[a-z0-9][a-z0-9-]*\.(myshopify\.com|shopify\.com|myshopify\.io)$"
)

_HMAC_EXCLUDED_PARAMS: Final = frozenset({"hmac", "signature"})


def sanitize_shop(raw: str | None, *, raise_on_invalid: bool = False) -> str | None:
    """Normalise a shop parameter to `<name>.myshopify.com`.

    Accepts the admin URL form (`admin.shopify.com/store/<name>`) as well.
    Returns None for anything else unless `raise_on_invalid` is set.
    """

    value = (raw or "").strip().lower()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix) :]
    value = value.rstrip("/")

    admin = ADMIN_STORE_RE.match(value)
    if admin:
        value = f"{admin.group(1)}.myshopify.com"

    if SHOP_DOMAIN_RE.match(value):
        return value

    if raise_on_invalid:
        raise InvalidShopError(f"Received invalid shop argument: {raw!r}")
    return None


def sanitize_host(raw: str | None) -> str | None:
    """Return the `host` parameter if it base64-decodes to a platform admin host."""

    value = (raw or "").strip()
    if not value:
        return None
    return value if decode_host(value) is not None else None


def decode_host(host: str) -> str | None:
    padded = host + "=" * (-len(host) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    decoded = decoded.strip()
    if not decoded or any(c.isspace() for c in decoded):
        return None
    for prefix in ("https://", "http://"):
        if decoded.startswith(prefix):
            decoded = decoded[len(prefix) :]
    decoded = decoded.rstrip("/")
    # Redirect targets must stay on platform admin domains.
    hostname = decoded.partition("/")[0].lower()
    if not ADMIN_HOST_RE.match(hostname):
        return None
    return decoded


def embedded_app_url(*, api_key: str, shop: str, host: str | None) -> str:
    """URL of the app inside the merchant admin."""

    decoded = decode_host(host) if host else None
    if decoded:
        return f"https://{decoded}/apps/{api_key}"
    return f"https://{shop}/admin/apps/{api_key}"


def _hmac_digest(secret: str, message: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def query_hmac_message(params: Mapping[str, str]) -> str:
    pairs = [(k, v) for k, v in params.items() if k not in _HMAC_EXCLUDED_PARAMS]
    pairs.sort(key=lambda kv: kv[0])
    return "&".join(f"{k}={v}" for k, v in pairs)


def compute_query_hmac(params: Mapping[str, str], secret: str) -> str:
    return _hmac_digest(secret, query_hmac_message(params).encode("utf-8")).hex()


def validate_query_hmac(params: Mapping[str, str], secret: str) -> bool:
    provided = params.get("hmac")
    if not provided:
        return False
    expected = compute_query_hmac(params, secret)
    return hmac.compare_digest(expected, provided.lower())


def compute_webhook_hmac(body: bytes, secret: str) -> str:
    return base64.b64encode(_hmac_digest(secret, body)).decode("ascii")


def validate_webhook_hmac(body: bytes, provided: str | None, secret: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(compute_webhook_hmac(body, secret), provided.strip())


def sign_cookie_value(value: str, secret: str) -> str:
    sig = base64.urlsafe_b64encode(_hmac_digest(secret, value.encode("utf-8")))
    return f"{value}.{sig.decode('ascii').rstrip('=')}"


def unsign_cookie_value(signed: str | None, secret: str) -> str | None:
    if not signed or "." not in signed:
        return None
    value, _, sig = signed.rpartition(".")
    expected = sign_cookie_value(value, secret).rpartition(".")[2]
    if not hmac.compare_digest(expected, sig):
        return None
    return value
