"""
Purpose:
- Describe an ImageRecord with a local Ollama model (default: llava) via POST /api/generate.
- One non-streaming request per call; no retries. Every failure is classified into the
  error taxonomy in core/errors.py and logged before it is raised.

Notes:
- The client has no in-flight guard of its own; services/session.py owns that.
- ollama_timeout=None (the default) means an unresponsive server stalls the call.
"""

from __future__ import annotations
import logging
import threading
from typing import Any, Dict, Optional

import httpx

from ..codec.image_codec import ImageRecord
from ..core.errors import (
    ConnectivityError,
    EmptyResponseError,
    ServerError,
    UnknownError,
    ValidationError,
    VisionaryError,
)
from ..core.settings import settings

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"
TAGS_PATH = "/api/tags"

_CLIENT_SINGLETON: Optional["DescriptionClient"] = None  # cached instance
_CLIENT_LOCK = threading.Lock()

def _server_error_message(resp: httpx.Response) -> Optional[str]:
    # None -> caller substitutes the "could not parse" placeholder
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None

class DescriptionClient:
    def __init__(self, base_url: str, model: str, prompt: str,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.prompt = prompt
        self.timeout = timeout
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def build_payload(self, record: ImageRecord) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": self.prompt,
            "images": [record.payload],  # Ollama expects a list of base64 strings
            "stream": False,
        }

    def describe(self, record: Optional[ImageRecord]) -> str:
        """
        Send the image + fixed prompt and return the trimmed description.
        Raises ValidationError, ServerError, EmptyResponseError, ConnectivityError or UnknownError.
        """
        if record is None:
            raise ValidationError("Please upload an image first.")

        try:
            resp = self._http.post(GENERATE_PATH, json=self.build_payload(record))

            if not resp.is_success:
                raise ServerError(resp.status_code, _server_error_message(resp), self.model)

            data = resp.json()
            text = data.get("response") if isinstance(data, dict) else None
            if not isinstance(text, str) or not text.strip():
                raise EmptyResponseError()
            return text.strip()

        except VisionaryError as e:
            logger.error("Ollama describe failed (%s): %s", e.kind.value, e.message)
            raise
        except httpx.TransportError as e:
            # no response object at all: refused connection, DNS, timeout...
            logger.error("Could not reach Ollama at %s: %r", self.base_url, e)
            raise ConnectivityError() from e
        except Exception as e:
            logger.exception("Unexpected error calling Ollama API")
            raise UnknownError() from e

    def check_server(self, timeout: float = 3.0) -> Dict[str, Any]:
        """
        Probe GET /api/tags: is the server reachable, and is our model pulled?
        Never raises; errors are reported in the returned dict.
        """
        try:
            resp = self._http.get(TAGS_PATH, timeout=timeout)
            resp.raise_for_status()
            models = [m.get("name", "") for m in (resp.json().get("models") or []) if isinstance(m, dict)]
        except Exception as e:
            logger.warning("Ollama probe failed: %r", e)
            return {"reachable": False, "model": self.model, "model_installed": False, "error": repr(e)}

        # "llava" matches "llava:latest", "llava:13b", ...
        wanted = self.model if ":" in self.model else self.model + ":"
        installed = any(n == self.model or n.startswith(wanted) for n in models)
        return {"reachable": True, "model": self.model, "model_installed": installed, "models": models}

    def close(self) -> None:
        self._http.close()

def get_client() -> DescriptionClient:
    """
    Return a cached client configured from settings.
    """
    global _CLIENT_SINGLETON
    with _CLIENT_LOCK:
        if _CLIENT_SINGLETON is None:
            _CLIENT_SINGLETON = DescriptionClient(
                base_url=settings.ollama_url,
                model=settings.ollama_model,
                prompt=settings.prompt,
                timeout=settings.ollama_timeout,
            )
        return _CLIENT_SINGLETON
