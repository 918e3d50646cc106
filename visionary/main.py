"""
Purpose:
- FastAPI application factory and router mounts.
- Adds CORS for local dev.
- Uvicorn will serve this on 127.0.0.1:8000 by default (see `visionary serve`).
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.logging import setup_logging
from .core.settings import settings
from .api.health import router as health_router
from .api.pages import router as pages_router
from .api.vlm import router as vlm_router

def create_app() -> FastAPI:
    setup_logging(settings.log_level)
    app = FastAPI(title="Visionary API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(pages_router)
    app.include_router(health_router)
    app.include_router(vlm_router)
    return app


app = create_app()
