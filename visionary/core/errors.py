"""
Purpose:
- Tagged error type for everything that can go wrong between "pick a file" and
  "show the description".
- Each failure is built with an explicit constructor at the place it is classified,
  so callers only ever need `err.kind` and `err.message`.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Optional

REMEDIATION_COMMAND = "OLLAMA_ORIGINS='*' ollama serve"
UNPARSEABLE_ERROR_BODY = "Could not parse error response."

class ErrorKind(str, Enum):
    DECODE = "decode"
    VALIDATION = "validation"
    SERVER = "server"
    EMPTY_RESPONSE = "empty_response"
    CONNECTIVITY = "connectivity"
    UNKNOWN = "unknown"

class VisionaryError(Exception):
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}

class DecodeError(VisionaryError):
    """Input could not be read or is not a data URL with a MIME type."""
    kind = ErrorKind.DECODE

class ValidationError(VisionaryError):
    """An action was attempted without a usable image, or while one is running."""
    kind = ErrorKind.VALIDATION

class ServerError(VisionaryError):
    kind = ErrorKind.SERVER

    def __init__(self, status: int, server_message: Optional[str], model: str):
        self.status = status
        self.server_message = server_message or UNPARSEABLE_ERROR_BODY
        super().__init__(
            f"Ollama API request failed with status {status}. Message: {self.server_message}. "
            f"Make sure Ollama is running and the '{model}' model is installed."
        )

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["status"] = self.status
        return out

class EmptyResponseError(VisionaryError):
    kind = ErrorKind.EMPTY_RESPONSE

    def __init__(self, message: str = "The Ollama API returned an empty description."):
        super().__init__(message)

class ConnectivityError(VisionaryError):
    kind = ErrorKind.CONNECTIVITY

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or (
            "Could not connect to the Ollama server.\n"
            "1. Is it running?\n"
            "2. Are you getting a CORS error? If so, you must restart the Ollama server with "
            "permissions for web apps. Try running this command in your terminal:\n"
            f" {REMEDIATION_COMMAND}"
        ))

class UnknownError(VisionaryError):
    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str = "An unexpected error occurred while communicating with the Ollama API."):
        super().__init__(message)
