from __future__ import annotations

from datetime import UTC, datetime, timedelta

from shopapp_core.shopify.session import ShopSession, offline_session_id, online_session_id


def _session(**kwargs) -> ShopSession:
    base = {
        "id": offline_session_id("s.myshopify.com"),
        "shop": "s.myshopify.com",
        "scope": "write_products,read_orders",
        "access_token": "tok",
    }
    base.update(kwargs)
    return ShopSession(**base)


def test_session_ids() -> None:
    assert offline_session_id("s.myshopify.com") == "offline_s.myshopify.com"
    assert online_session_id("s.myshopify.com", 42) == "s.myshopify.com_42"


def test_write_scope_implies_read_scope() -> None:
    session = _session()
    assert session.is_active(["read_products", "read_orders"])
    assert session.is_active(["write_products"])
    assert not session.is_active(["write_orders"])


def test_inactive_without_token_or_when_expired() -> None:
    assert not _session(access_token=None).is_active(["read_orders"])

    past = datetime.now(UTC) - timedelta(minutes=1)
    expired = _session(expires_at=past)
    assert expired.is_expired()
    assert not expired.is_active(["read_orders"])

    future = _session(expires_at=datetime.now(UTC) + timedelta(hours=1))
    assert not future.is_expired()
    assert future.is_active(["read_orders"])
