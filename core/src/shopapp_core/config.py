from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from shopapp_core.home import ShopAppPaths


class NetworkConfig(BaseModel):
    bind_host: str = Field(default="127.0.0.1")
    port: int = Field(default=8081, ge=1, le=65535)


class ShopifyConfig(BaseModel):
    """Credentials and routing for the partner app.

    Values normally come from the environment the platform CLI exports
    (SHOPIFY_API_KEY, SHOPIFY_API_SECRET, SCOPES, HOST).
    """

    api_key: str = Field(default="")
    api_secret: str = Field(default="")
    scopes: list[str] = Field(default_factory=lambda: ["write_products", "read_orders"])
    host_name: str = Field(
        default="http://localhost:8081",
        description="Public base URL of this app, used to build OAuth redirect URLs.",
    )
    api_version: str = Field(default="2024-01")
    is_embedded: bool = Field(default=True)
    use_online_tokens: bool = Field(default=False)
    auth_path: str = Field(default="/api/auth")
    auth_callback_path: str = Field(default="/api/auth/callback")
    webhooks_path: str = Field(default="/api/webhooks")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [s.strip() for s in value.split(",") if s.strip()]
        return value

    @field_validator("host_name")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class FrontendConfig(BaseModel):
    mode: Literal["development", "production"] = Field(default="development")
    root: str | None = Field(
        default=None,
        description="Directory holding the shell sources; defaults to ./frontend under CWD.",
    )


class ClientConfig(BaseModel):
    request_timeout_s: float = Field(default=30.0, gt=0)


class PathOverrides(BaseModel):
    db_dir: str | None = None
    logs_dir: str | None = None


class LoggingConfig(BaseModel):
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")


class CoreConfig(BaseModel):
    version: str = Field(default="1")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    shopify: ShopifyConfig = Field(default_factory=ShopifyConfig)
    frontend: FrontendConfig = Field(default_factory=FrontendConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    paths: PathOverrides = Field(default_factory=PathOverrides)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_core_config(paths: ShopAppPaths) -> CoreConfig:
    """Load config from ${SHOPAPP_HOME}/config/app.json.

    - If missing: returns defaults.
    - Validation is performed by Pydantic.
    """

    config_path = paths.app_config_path
    if not config_path.exists():
        return CoreConfig()

    raw = _read_json(config_path)
    return CoreConfig.model_validate(raw)


def write_core_config(paths: ShopAppPaths, config: CoreConfig) -> None:
    payload = config.model_dump(mode="json", exclude_none=True)
    paths.config_dir.mkdir(parents=True, exist_ok=True)
    paths.app_config_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def apply_env_overrides(config: CoreConfig, environ: dict[str, str] | None = None) -> CoreConfig:
    """Layer the platform CLI's environment variables over the file config."""

    env = os.environ if environ is None else environ

    shopify_updates: dict[str, Any] = {}
    if env.get("SHOPIFY_API_KEY"):
        shopify_updates["api_key"] = env["SHOPIFY_API_KEY"]
    if env.get("SHOPIFY_API_SECRET"):
        shopify_updates["api_secret"] = env["SHOPIFY_API_SECRET"]
    if env.get("SCOPES"):
        shopify_updates["scopes"] = env["SCOPES"]
    host = env.get("HOST") or env.get("SHOPIFY_APP_URL")
    if host:
        shopify_updates["host_name"] = host

    frontend_updates: dict[str, Any] = {}
    mode = (env.get("SHOPAPP_ENV") or "").strip().lower()
    if mode:
        frontend_updates["mode"] = "production" if mode == "production" else "development"
    if env.get("SHOPAPP_FRONTEND_ROOT"):
        frontend_updates["root"] = env["SHOPAPP_FRONTEND_ROOT"]

    # Re-validate so env values get the same coercion as file values.
    shopify = ShopifyConfig.model_validate(
        {**config.shopify.model_dump(), **shopify_updates}
    )
    frontend = config.frontend.model_copy(update=frontend_updates)
    return config.model_copy(update={"shopify": shopify, "frontend": frontend})


def resolve_configured_paths(paths: ShopAppPaths, config: CoreConfig) -> ShopAppPaths:
    """Apply user-configurable path overrides from config.

    config/ is not configurable.
    """

    def _resolve_dir(raw: str | None, default: Path) -> Path:
        if raw is None or not str(raw).strip():
            return default
        candidate = Path(raw).expanduser()
        if not candidate.is_absolute():
            candidate = (paths.home / candidate).resolve()
        else:
            candidate = candidate.resolve()
        return candidate

    db_dir = _resolve_dir(config.paths.db_dir, paths.db_dir)
    logs_dir = _resolve_dir(config.paths.logs_dir, paths.logs_dir)

    for p in (db_dir, logs_dir):
        p.mkdir(parents=True, exist_ok=True)

    return ShopAppPaths(
        home=paths.home,
        db_dir=db_dir,
        logs_dir=logs_dir,
        config_dir=paths.config_dir,
    )


def resolve_static_dir(config: CoreConfig, cwd: Path | None = None) -> Path:
    """Directory the shell is served from: frontend/dist in production, frontend/ otherwise."""

    base = Path.cwd() if cwd is None else cwd
    raw = (config.frontend.root or "").strip()
    if raw:
        root = Path(raw).expanduser()
        if not root.is_absolute():
            root = base / root
    else:
        root = base / "frontend"

    if config.frontend.mode == "production":
        root = root / "dist"
    return root.resolve()
