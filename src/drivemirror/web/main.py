from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from drivemirror.config import AppConfig, load_config
from drivemirror.manager import DriveMirror

from .api import router as api_router
from .api import set_mirror
from .principal import request_principal


def build_app(cfg: Optional[AppConfig] = None) -> FastAPI:
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(_api: FastAPI):
        mirror = DriveMirror(cfg, principal_provider=request_principal)
        set_mirror(mirror)
        try:
            yield
        finally:
            set_mirror(None)
            mirror.close()

    api = FastAPI(title="drivemirror", version="0.1.0", lifespan=lifespan)
    api.include_router(api_router)
    return api


def main(config_path: Optional[Path] = None) -> None:
    import uvicorn

    cfg = load_config(config_path)

    from drivemirror.logging_setup import setup_logging

    setup_logging(cfg.logging.level, cfg.logging.file)

    uvicorn.run(
        build_app(cfg),
        host=cfg.web_bind_host,
        port=cfg.web_port,
        log_level=cfg.logging.level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
