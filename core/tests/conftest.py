from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from shopapp_core.app import create_app
from shopapp_core.db.sessions import store_session
from shopapp_core.shopify.session import ShopSession, offline_session_id

API_KEY = "test-api-key"
API_SECRET = "test-api-secret"
HOST_NAME = "https://app.example.com"
SHOP = "test-shop.myshopify.com"
SCOPES = "write_products,read_orders"
API_VERSION = "2024-01"
ACCESS_TOKEN = "shpat_test"

INDEX_HTML = """<!doctype html>
<html>
  <head><meta name="shopify-api-key" content="{{ api_key }}" /></head>
  <body><div id="shell">Page name</div></body>
</html>
"""


@pytest.fixture
def app_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("SHOPAPP_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("SHOPIFY_API_KEY", API_KEY)
    monkeypatch.setenv("SHOPIFY_API_SECRET", API_SECRET)
    monkeypatch.setenv("SCOPES", SCOPES)
    monkeypatch.setenv("HOST", HOST_NAME)
    monkeypatch.delenv("SHOPIFY_APP_URL", raising=False)
    monkeypatch.delenv("SHOPAPP_ENV", raising=False)
    monkeypatch.delenv("SHOPAPP_FRONTEND_ROOT", raising=False)

    frontend = tmp_path / "frontend"
    (frontend / "assets").mkdir(parents=True)
    (frontend / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    (frontend / "assets" / "shell.js").write_text("console.log('shell');\n", encoding="utf-8")

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def client(app_env: Path) -> Iterator[TestClient]:
    with TestClient(create_app()) as c:
        yield c


@pytest.fixture
def installed_session(client: TestClient) -> ShopSession:
    session = ShopSession(
        id=offline_session_id(SHOP),
        shop=SHOP,
        state="state-1",
        is_online=False,
        scope=SCOPES,
        access_token=ACCESS_TOKEN,
    )
    store_session(client.app.state.db_path, session)
    return session


@pytest.fixture
def session_token() -> Callable[..., str]:
    def _make(
        shop: str = SHOP,
        *,
        secret: str = API_SECRET,
        audience: str = API_KEY,
        expires_in: timedelta = timedelta(minutes=1),
        sub: str = "42",
    ) -> str:
        now = datetime.now(UTC)
        payload = {
            "iss": f"https://{shop}/admin",
            "dest": f"https://{shop}",
            "aud": audience,
            "sub": sub,
            "exp": now + expires_in,
            "nbf": now - timedelta(seconds=5),
            "iat": now - timedelta(seconds=5),
            "jti": "f8912129-1af6-4cad-9ca3-76b0f7621087",
            "sid": "aaea182f2732d44c23057c0fea584021a4485b2bd25d3eb7fd349313ad24c685",
        }
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(session_token: Callable[..., str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {session_token()}"}
