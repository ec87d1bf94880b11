from __future__ import annotations

import base64
import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient
from respx import MockRouter

from shopapp_core.config import ShopifyConfig
from shopapp_core.db.sessions import load_session
from shopapp_core.shopify.errors import InvalidOAuthError
from shopapp_core.shopify.oauth import (
    STATE_COOKIE,
    session_from_token_response,
    validate_callback,
)
from shopapp_core.shopify.utils import compute_query_hmac, sign_cookie_value

API_KEY = "test-api-key"
SECRET = "test-api-secret"
SHOP = "test-shop.myshopify.com"
HOST = base64.b64encode(b"admin.shopify.com/store/test-shop").decode()


def _callback_params(state: str, **overrides: str) -> dict[str, str]:
    params = {
        "code": "0907a61c0c8d55e99db179b68161bc00",
        "host": HOST,
        "shop": SHOP,
        "state": state,
        "timestamp": str(int(time.time())),
    }
    params.update(overrides)
    params["hmac"] = compute_query_hmac(params, SECRET)
    return params


def _state_cookie(state: str) -> dict[str, str]:
    return {"Cookie": f"{STATE_COOKIE}={sign_cookie_value(state, SECRET)}"}


def test_auth_begin_redirects_to_authorize_url(client: TestClient) -> None:
    r = client.get("/api/auth", params={"shop": SHOP}, follow_redirects=False)

    assert r.status_code == 302
    location = urlparse(r.headers["location"])
    assert location.netloc == SHOP
    assert location.path == "/admin/oauth/authorize"

    query = parse_qs(location.query, keep_blank_values=True)
    assert query["client_id"] == [API_KEY]
    assert query["scope"] == ["write_products,read_orders"]
    assert query["redirect_uri"] == ["https://app.example.com/api/auth/callback"]
    assert query["grant_options[]"] == [""]
    assert query["state"][0]

    set_cookie = r.headers["set-cookie"]
    assert set_cookie.startswith(f"{STATE_COOKIE}=")
    assert "HttpOnly" in set_cookie
    assert "Path=/api/auth/callback" in set_cookie


def test_auth_begin_rejects_invalid_shop(client: TestClient) -> None:
    r = client.get("/api/auth", params={"shop": "evil.com"}, follow_redirects=False)
    assert r.status_code == 422


def test_auth_callback_stores_session_and_redirects_into_admin(
    client: TestClient, respx_mock: MockRouter
) -> None:
    route = respx_mock.post(f"https://{SHOP}/admin/oauth/access_token").mock(
        return_value=httpx.Response(
            200, json={"access_token": "shpat_new", "scope": "write_products,read_orders"}
        )
    )

    r = client.get(
        "/api/auth/callback",
        params=_callback_params("nonce-1"),
        headers=_state_cookie("nonce-1"),
        follow_redirects=False,
    )

    assert r.status_code == 302
    assert r.headers["location"] == f"https://admin.shopify.com/store/test-shop/apps/{API_KEY}"
    assert route.called

    session = load_session(client.app.state.db_path, f"offline_{SHOP}")
    assert session is not None
    assert session.access_token == "shpat_new"
    assert session.state == "nonce-1"
    assert session.is_active(["write_products", "read_orders"])


def test_auth_callback_rejects_tampered_hmac(client: TestClient) -> None:
    params = _callback_params("nonce-1")
    params["code"] = "tampered"

    r = client.get(
        "/api/auth/callback",
        params=params,
        headers=_state_cookie("nonce-1"),
        follow_redirects=False,
    )

    assert r.status_code == 400
    assert load_session(client.app.state.db_path, f"offline_{SHOP}") is None


def test_auth_callback_rejects_state_mismatch(client: TestClient) -> None:
    r = client.get(
        "/api/auth/callback",
        params=_callback_params("nonce-1"),
        headers=_state_cookie("nonce-2"),
        follow_redirects=False,
    )
    assert r.status_code == 400


def test_auth_callback_without_state_cookie_restarts_auth(client: TestClient) -> None:
    r = client.get(
        "/api/auth/callback", params=_callback_params("nonce-1"), follow_redirects=False
    )

    assert r.status_code == 302
    assert r.headers["location"] == f"/api/auth?shop={SHOP}"


def test_validate_callback_rejects_stale_timestamp() -> None:
    config = ShopifyConfig(api_key=API_KEY, api_secret=SECRET)
    params = _callback_params("s", timestamp="1000")

    with pytest.raises(InvalidOAuthError):
        validate_callback(params, expected_state="s", config=config, now=1000 + 91)

    validate_callback(params, expected_state="s", config=config, now=1000 + 30)


def test_online_token_response_builds_online_session() -> None:
    session = session_from_token_response(
        SHOP,
        "s",
        {
            "access_token": "tok",
            "scope": "write_products",
            "expires_in": 86399,
            "associated_user_scope": "write_products",
            "associated_user": {"id": 902541635, "email": "john@example.com"},
        },
        online=True,
    )

    assert session.id == f"{SHOP}_902541635"
    assert session.is_online is True
    assert session.expires_at is not None
    assert not session.is_expired()
    assert session.online_access_info["associated_user"]["id"] == 902541635
