from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "shopify_sessions"

MIGRATIONS: list[tuple[str, str]] = [
    (
        "0001_sessions",
        f"""
CREATE TABLE IF NOT EXISTS {SESSIONS_TABLE} (
    id TEXT PRIMARY KEY,
    shop TEXT NOT NULL,
    state TEXT NOT NULL DEFAULT '',
    is_online INTEGER NOT NULL DEFAULT 0,
    scope TEXT,
    expires_at TEXT,
    access_token TEXT,
    online_access_info_json TEXT,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_shopify_sessions_shop ON {SESSIONS_TABLE}(shop);
""",
    )
]


def prepare_session_storage(db_path: Path) -> list[str]:
    """Bring the session database up to date and return the newly applied migrations.

    Creates the parent directory on first run. Already-recorded migrations
    are skipped, so calling this on every startup is a no-op once current.
    """

    db_path.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            " name TEXT PRIMARY KEY,"
            " applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"
            ");"
        )
        recorded = {row[0] for row in conn.execute("SELECT name FROM schema_migrations;")}

        pending = [(name, sql) for name, sql in MIGRATIONS if name not in recorded]
        for name, sql in pending:
            conn.executescript(sql)
            conn.execute("INSERT INTO schema_migrations (name) VALUES (?);", (name,))
            logger.info("Applied session storage migration %s to %s", name, db_path)

        sessions = conn.execute(f"SELECT COUNT(*) FROM {SESSIONS_TABLE};").fetchone()[0]

    logger.info("Session storage ready at %s (%d stored sessions)", db_path, sessions)
    return [name for name, _ in pending]
