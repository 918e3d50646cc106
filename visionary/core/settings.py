"""
Purpose:
- Centralized configuration using pydantic-settings.
- Reads from VISIONARY_* environment variables and optional .env file.
- Keeps the inference server address, model and prompt tunable without code changes.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROMPT = (
    "Describe this image in detail. What objects are present? What is the setting? "
    "What actions are taking place? What is the overall mood or feeling of the image?"
)

class Settings(BaseSettings):
    # Pydantic v2 config (env file + prefix + ignore unexpected env vars)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VISIONARY_",
        extra="ignore",
    )

    # API host/port
    host: str = Field(default="127.0.0.1", description="Bind address for FastAPI/Uvicorn")
    port: int = Field(default=8000, description="Port for FastAPI/Uvicorn")

    # CORS
    cors_allow_origins: List[str] = Field(
        default=["http://localhost:8000", "http://127.0.0.1:8000"],
        description="Allowed origins for browser apps"
    )

    # ---- Inference server (Ollama) ----
    ollama_url: str = Field(default="http://localhost:11434", description="Base URL of the local Ollama server")
    ollama_model: str = Field(default="llava", description="Multimodal model; install with `ollama pull llava`")
    prompt: str = Field(default=DEFAULT_PROMPT, description="Fixed instruction sent with every image")
    # None means no timeout: an unresponsive server stalls the call
    ollama_timeout: Optional[float] = Field(default=None, description="Seconds to wait for /api/generate")
    probe_timeout: float = Field(default=3.0, description="Seconds to wait for the /healthz server probe")

    # ---- Sessions / logging ----
    session_cookie: str = Field(default="visionary_session")
    max_sessions: int = Field(default=256, description="Least recently used sessions are dropped beyond this")
    session_ttl: float = Field(default=3600.0, description="Seconds a session may sit unused before it is dropped")
    log_level: str = Field(default="INFO")

settings = Settings()
