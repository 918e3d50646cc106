"""
Purpose:
- Serve the single-page UI (upload/drop target, preview, Generate button, result panel).
- The page talks only to /api/v1/*; the browser never calls Ollama directly.
"""

from pathlib import Path
from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"])

INDEX_HTML = Path(__file__).resolve().parent.parent / "ui" / "index.html"

@router.get("/", response_class=HTMLResponse)
def index_page():
    return HTMLResponse(INDEX_HTML.read_text(encoding="utf-8"))
