from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def offline_session_id(shop: str) -> str:
    return f"offline_{shop}"


def online_session_id(shop: str, user_id: int | str) -> str:
    return f"{shop}_{user_id}"


def _expand_scopes(scopes: Iterable[str]) -> set[str]:
    # A write scope implicitly grants the matching read scope.
    out: set[str] = set()
    for raw in scopes:
        scope = raw.strip()
        if not scope:
            continue
        out.add(scope)
        if scope.startswith("write_"):
            out.add("read_" + scope[len("write_") :])
        elif scope.startswith("unauthenticated_write_"):
            out.add("unauthenticated_read_" + scope[len("unauthenticated_write_") :])
    return out


@dataclass(frozen=True)
class ShopSession:
    """Stored authentication context for one installed shop (or shop user)."""

    id: str
    shop: str
    state: str = ""
    is_online: bool = False
    scope: str | None = None
    access_token: str | None = None
    expires_at: datetime | None = None
    online_access_info: dict[str, Any] | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(UTC)
        return self.expires_at <= current

    def granted_scopes(self) -> set[str]:
        return _expand_scopes((self.scope or "").split(","))

    def is_active(self, scopes: Iterable[str], now: datetime | None = None) -> bool:
        if not self.access_token:
            return False
        if self.is_expired(now):
            return False
        required = _expand_scopes(scopes)
        return required.issubset(self.granted_scopes())
