from __future__ import annotations

from pathlib import Path

from shopapp_core.home import ShopAppPaths

DEFAULT_DB_FILENAME = "app.sqlite3"


def resolve_db_path(paths: ShopAppPaths) -> Path:
    """Resolve the session-storage SQLite database path.

    The directory follows the `db_dir` layout/override.
    """

    return paths.db_dir / DEFAULT_DB_FILENAME
