from __future__ import annotations

import base64
import hashlib
import hmac

import pytest

from shopapp_core.shopify.errors import InvalidShopError
from shopapp_core.shopify.utils import (
    compute_query_hmac,
    decode_host,
    embedded_app_url,
    sanitize_host,
    sanitize_shop,
    sign_cookie_value,
    unsign_cookie_value,
    validate_query_hmac,
    validate_webhook_hmac,
)

SECRET = "hush"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("my-shop.myshopify.com", "my-shop.myshopify.com"),
        ("  MY-SHOP.myshopify.com ", "my-shop.myshopify.com"),
        ("https://my-shop.myshopify.com/", "my-shop.myshopify.com"),
        ("admin.shopify.com/store/my-shop", "my-shop.myshopify.com"),
        ("evil.com", None),
        ("my-shop.myshopify.com.evil.com", None),
        ("", None),
        (None, None),
    ],
)
def test_sanitize_shop(raw: str | None, expected: str | None) -> None:
    assert sanitize_shop(raw) == expected


def test_sanitize_shop_can_raise() -> None:
    with pytest.raises(InvalidShopError):
        sanitize_shop("evil.com", raise_on_invalid=True)


def test_query_hmac_is_sorted_and_excludes_hmac() -> None:
    params = {"timestamp": "1337178173", "shop": "some-shop.myshopify.com", "code": "abc"}
    message = "code=abc&shop=some-shop.myshopify.com&timestamp=1337178173"
    expected = hmac.new(SECRET.encode(), message.encode(), hashlib.sha256).hexdigest()

    assert compute_query_hmac(params, SECRET) == expected
    assert validate_query_hmac({**params, "hmac": expected}, SECRET)
    assert not validate_query_hmac({**params, "hmac": "0" * 64}, SECRET)
    assert not validate_query_hmac(params, SECRET)


def test_webhook_hmac() -> None:
    body = b'{"shop_domain": "x.myshopify.com"}'
    digest = base64.b64encode(hmac.new(SECRET.encode(), body, hashlib.sha256).digest()).decode()

    assert validate_webhook_hmac(body, digest, SECRET)
    assert not validate_webhook_hmac(body + b" ", digest, SECRET)
    assert not validate_webhook_hmac(body, None, SECRET)


def test_signed_cookie_values() -> None:
    signed = sign_cookie_value("offline_x.myshopify.com", SECRET)
    assert unsign_cookie_value(signed, SECRET) == "offline_x.myshopify.com"
    assert unsign_cookie_value(signed, "other-secret") is None
    assert unsign_cookie_value("offline_x.myshopify.com", SECRET) is None
    assert unsign_cookie_value(None, SECRET) is None


def test_host_decoding_and_embedded_url() -> None:
    host = base64.b64encode(b"admin.shopify.com/store/my-shop").decode()

    assert decode_host(host) == "admin.shopify.com/store/my-shop"
    assert sanitize_host(host) == host
    assert sanitize_host("") is None
    assert (
        embedded_app_url(api_key="key", shop="my-shop.myshopify.com", host=host)
        == "https://admin.shopify.com/store/my-shop/apps/key"
    )
    assert (
        embedded_app_url(api_key="key", shop="my-shop.myshopify.com", host=None)
        == "https://my-shop.myshopify.com/admin/apps/key"
    )


@pytest.mark.parametrize(
    "decoded",
    [
        "evil.example.net",
        "https://evil.example.net/admin",
        "admin.shopify.com.evil.example.net/store/my-shop",
        "evil.example.net@admin.shopify.com",
    ],
)
def test_host_outside_platform_domains_is_rejected(decoded: str) -> None:
    host = base64.b64encode(decoded.encode()).decode()

    assert decode_host(host) is None
    assert sanitize_host(host) is None
    assert (
        embedded_app_url(api_key="key", shop="my-shop.myshopify.com", host=host)
        == "https://my-shop.myshopify.com/admin/apps/key"
    )


def test_host_on_shop_domain_is_accepted() -> None:
    host = base64.b64encode(b"my-shop.myshopify.com/admin").decode()
    assert decode_host(host) == "my-shop.myshopify.com/admin"
