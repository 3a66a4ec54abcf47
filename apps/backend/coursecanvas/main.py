from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import DEV_CORS_ORIGINS, LOG_LEVEL
from .routers import courses, editor, health, media, playback, progress


def _configure_logging() -> None:
    logger = logging.getLogger("cc")
    logger.setLevel(LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False


def create_app() -> FastAPI:
    _configure_logging()
    app = FastAPI(title="coursecanvas-backend")

    app.add_middleware(
        CORSMiddleware,
        # The web frontend runs on its own dev server; identity headers must be allowed through.
        allow_origins=DEV_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(courses.router)
    app.include_router(editor.router)
    app.include_router(playback.router)
    app.include_router(progress.router)
    app.include_router(media.router)
    return app


app = create_app()
