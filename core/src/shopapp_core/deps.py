from __future__ import annotations

from pathlib import Path

from fastapi import HTTPException, Request

from shopapp_core.config import CoreConfig


def get_config(request: Request) -> CoreConfig:
    config = getattr(request.app.state, "shopapp_config", None)
    if config is None:
        raise HTTPException(status_code=500, detail="Config not initialized")
    return config


def get_db_path(request: Request) -> Path:
    db_path = getattr(request.app.state, "db_path", None)
    if db_path is None:
        raise HTTPException(status_code=500, detail="DB not initialized")
    return db_path
