from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Any

from shopapp_core.shopify.session import ShopSession


def _utc_now_sqlite_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _connect(db_path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def _loads_json(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def _format_ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def _parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


_COLUMNS = (
    "id, shop, state, is_online, scope, expires_at, access_token, online_access_info_json"
)


def _session_from_db(row: sqlite3.Row) -> ShopSession:
    return ShopSession(
        id=row["id"],
        shop=row["shop"],
        state=row["state"] or "",
        is_online=bool(int(row["is_online"])),
        scope=row["scope"],
        access_token=row["access_token"],
        expires_at=_parse_ts(row["expires_at"]),
        online_access_info=_loads_json(row["online_access_info_json"]),
    )


def store_session(db_path, session: ShopSession) -> ShopSession:
    now = _utc_now_sqlite_iso()
    info_json = (
        json.dumps(session.online_access_info, ensure_ascii=False)
        if session.online_access_info is not None
        else None
    )

    with _connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO shopify_sessions (
                id,
                shop,
                state,
                is_online,
                scope,
                expires_at,
                access_token,
                online_access_info_json,
                created_at,
                updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                shop = excluded.shop,
                state = excluded.state,
                is_online = excluded.is_online,
                scope = excluded.scope,
                expires_at = excluded.expires_at,
                access_token = excluded.access_token,
                online_access_info_json = excluded.online_access_info_json,
                updated_at = excluded.updated_at;
            """.strip(),
            (
                session.id,
                session.shop,
                session.state,
                1 if session.is_online else 0,
                session.scope,
                _format_ts(session.expires_at),
                session.access_token,
                info_json,
                now,
                now,
            ),
        )

    return session


def load_session(db_path, session_id: str) -> ShopSession | None:
    with _connect(db_path) as conn:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM shopify_sessions WHERE id = ?;",
            (session_id,),
        ).fetchone()

    return _session_from_db(row) if row is not None else None


def find_sessions_by_shop(db_path, shop: str) -> list[ShopSession]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM shopify_sessions WHERE shop = ? ORDER BY id ASC;",
            (shop,),
        ).fetchall()

    return [_session_from_db(r) for r in rows]


def delete_session(db_path, session_id: str) -> bool:
    with _connect(db_path) as conn:
        cur = conn.execute("DELETE FROM shopify_sessions WHERE id = ?;", (session_id,))
        return cur.rowcount > 0


def delete_sessions_for_shop(db_path, shop: str) -> int:
    with _connect(db_path) as conn:
        cur = conn.execute("DELETE FROM shopify_sessions WHERE shop = ?;", (shop,))
        return int(cur.rowcount)
