# Common language: Environment/ops probe that surfaces version pins, config, and whether
# the local Ollama server is up with our model pulled. Check this first when describe fails.

from fastapi import APIRouter
from ..core.settings import settings
from ..services.session import store
from ..vlm.ollama_client import get_client
import sys
from importlib.metadata import PackageNotFoundError, version

router = APIRouter(tags=["health"])

DISTRIBUTIONS = ("fastapi", "uvicorn", "pydantic", "pydantic-settings", "httpx", "pillow")

def _dist_version(dist: str) -> str:
    # distribution names, not import names ("pillow", not "PIL")
    try:
        return version(dist)
    except PackageNotFoundError:
        return "not-installed"

@router.get("/healthz")
def healthz():
    ollama = get_client().check_server(timeout=settings.probe_timeout)
    return {
        "status": "ok" if ollama["reachable"] and ollama["model_installed"] else "degraded",
        "python": sys.version.split()[0],
        "versions": {name: _dist_version(name) for name in DISTRIBUTIONS},
        "config": {
            "ollama_url": settings.ollama_url,
            "ollama_model": settings.ollama_model,
            "ollama_timeout": settings.ollama_timeout,
        },
        "sessions": len(store),
        "ollama": ollama,
    }
