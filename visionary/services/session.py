"""
Purpose:
- Explicit per-browser-session state instead of ambient UI fields:
  current image, description, error and the Idle -> Requesting -> {Succeeded, Failed} machine.
- The guard lives here: a second generate() while Requesting is rejected, never sent upstream.
- Errors never escape generate(); they become one user-facing message (and are logged).

Storage:
- In-memory only (SessionStore), bounded by max_sessions and an idle TTL; nothing survives a restart.
"""

from __future__ import annotations
import logging
import threading
import time
import uuid
from collections import OrderedDict
from enum import Enum
from typing import Dict, Optional, Protocol

from pydantic import BaseModel

from ..codec.image_codec import ImageRecord
from ..core.errors import ErrorKind, ValidationError, VisionaryError
from ..core.settings import settings

logger = logging.getLogger(__name__)

UPLOAD_FAILED_MESSAGE = "Could not process the selected file. Please try another image."

class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class Describer(Protocol):
    def describe(self, record: Optional[ImageRecord]) -> str: ...

class SessionView(BaseModel):
    state: SessionState = SessionState.IDLE
    loading: bool = False
    has_image: bool = False
    content_type: Optional[str] = None
    preview: Optional[str] = None
    description: str = ""
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

class DescriptionSession:
    def __init__(self):
        self._lock = threading.Lock()
        self.state = SessionState.IDLE
        self.record: Optional[ImageRecord] = None
        self.description = ""
        self.error: Optional[str] = None
        self.error_kind: Optional[ErrorKind] = None

    def _view(self) -> SessionView:
        rec = self.record
        return SessionView(
            state=self.state,
            loading=self.state is SessionState.REQUESTING,
            has_image=rec is not None,
            content_type=rec.content_type if rec else None,
            preview=rec.preview_reference if rec else None,
            description=self.description,
            error=self.error,
            error_kind=self.error_kind,
        )

    def view(self) -> SessionView:
        with self._lock:
            return self._view()

    def _ensure_not_requesting(self) -> None:
        if self.state is SessionState.REQUESTING:
            raise ValidationError("A description is already being generated.")

    def upload(self, record: ImageRecord) -> SessionView:
        """Replace the current image wholesale and clear any old result."""
        with self._lock:
            self._ensure_not_requesting()
            self.record = record
            self.description = ""
            self.error = None
            self.error_kind = None
            self.state = SessionState.IDLE
            return self._view()

    def upload_failed(self, err: VisionaryError) -> SessionView:
        logger.warning("Upload rejected (%s): %s", err.kind.value, err.message)
        with self._lock:
            self._ensure_not_requesting()
            self.record = None
            self.description = ""
            self.error = UPLOAD_FAILED_MESSAGE
            self.error_kind = err.kind
            self.state = SessionState.IDLE
            return self._view()

    def _fail(self, err: VisionaryError, prefix: str = "") -> SessionView:
        self.description = ""
        self.error = prefix + err.message
        self.error_kind = err.kind
        self.state = SessionState.FAILED
        return self._view()

    def generate(self, client: Describer) -> SessionView:
        # Idle/Succeeded/Failed -> Requesting, only with an image present
        with self._lock:
            if self.state is SessionState.REQUESTING:
                # leave the outstanding request's state untouched
                err = ValidationError("A description is already being generated.")
                logger.warning("Rejected re-entrant describe request")
                view = self._view()
                view.error, view.error_kind = err.message, err.kind
                return view
            if self.record is None:
                logger.warning("Describe requested without an image")
                return self._fail(ValidationError("Please upload an image first."))
            record = self.record
            self.state = SessionState.REQUESTING
            self.description = ""
            self.error = None
            self.error_kind = None

        try:
            text = client.describe(record)
        except VisionaryError as e:
            with self._lock:
                return self._fail(e, prefix="Failed to generate description. ")
        except Exception as e:
            logger.exception("Describer raised outside the error taxonomy")
            with self._lock:
                self.description = ""
                self.error = "Failed to generate description. " + (str(e) or "An unknown error occurred.")
                self.error_kind = ErrorKind.UNKNOWN
                self.state = SessionState.FAILED
                return self._view()

        with self._lock:
            self.description = text
            self.state = SessionState.SUCCEEDED
            return self._view()

    def reset(self) -> SessionView:
        with self._lock:
            self._ensure_not_requesting()
            self.record = None
            self.description = ""
            self.error = None
            self.error_kind = None
            self.state = SessionState.IDLE
            return self._view()

class SessionStore:
    """
    Session id -> DescriptionSession, process-local.
    Sessions idle longer than `ttl` are pruned, and at most `max_sessions` are kept
    (least recently used go first).
    """

    def __init__(self, max_sessions: int = 256, ttl: float = 3600.0, clock=time.monotonic):
        self._lock = threading.Lock()
        self._sessions: "OrderedDict[str, DescriptionSession]" = OrderedDict()
        self._last_seen: Dict[str, float] = {}
        self.max_sessions = max(1, max_sessions)
        self.ttl = ttl
        self._clock = clock

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def _prune(self, now: float) -> None:
        # oldest first, so stop at the first one still fresh
        for sid in list(self._sessions):
            if now - self._last_seen[sid] <= self.ttl:
                break
            self._drop(sid)
        while len(self._sessions) >= self.max_sessions:
            self._drop(next(iter(self._sessions)))

    def _drop(self, sid: str) -> None:
        self._sessions.pop(sid, None)
        self._last_seen.pop(sid, None)
        logger.debug("Dropped session %s", sid)

    def get_or_create(self, session_id: Optional[str]) -> tuple[str, DescriptionSession]:
        with self._lock:
            now = self._clock()
            if session_id and session_id in self._sessions:
                if now - self._last_seen[session_id] <= self.ttl:
                    self._sessions.move_to_end(session_id)
                    self._last_seen[session_id] = now
                    return session_id, self._sessions[session_id]
                self._drop(session_id)
            self._prune(now)
            sid = self.new_id()
            sess = DescriptionSession()
            self._sessions[sid] = sess
            self._last_seen[sid] = now
            return sid, sess

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

store = SessionStore(max_sessions=settings.max_sessions, ttl=settings.session_ttl)
