from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

import uvicorn

from shopapp_core.app import create_app
from shopapp_core.config import apply_env_overrides, load_core_config, resolve_configured_paths
from shopapp_core.home import ensure_shopapp_layout, resolve_shopapp_home


def resolve_port(default: int, environ: dict[str, str] | None = None) -> int:
    env = os.environ if environ is None else environ
    raw = env.get("BACKEND_PORT") or env.get("PORT")
    return int(raw) if raw else default


def main() -> None:
    home = resolve_shopapp_home()
    paths = ensure_shopapp_layout(home)
    config = apply_env_overrides(load_core_config(paths))
    paths = resolve_configured_paths(paths, config)

    log_file = paths.logs_dir / "app.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RotatingFileHandler(
                log_file,
                maxBytes=config.logging.max_size_mb * 1024 * 1024,
                backupCount=config.logging.backup_count,
            ),
            logging.StreamHandler(),
        ],
    )

    host = os.environ.get("SHOPAPP_BIND") or config.network.bind_host
    port = resolve_port(config.network.port)

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
