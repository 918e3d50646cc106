"""
Purpose:
- /api/v1/image      upload a file into the caller's session (replaces any previous image)
- /api/v1/describe   run the description request for the session's image
- /api/v1/session    read or reset the session
- /api/v1/describe/oneshot  upload + describe without touching session state

Notes:
- Errors come back as {"ok": false, "error": {...}} with a 200, like every other route here.
- Sync handlers: FastAPI runs them in its thread pool, so other requests are served
  while a description is outstanding.
"""

from fastapi import APIRouter, File, Request, Response, UploadFile

from ..codec.image_codec import read_image
from ..core.errors import DecodeError, ValidationError, VisionaryError
from ..core.settings import settings
from ..services.session import store
from ..vlm.ollama_client import get_client

router = APIRouter(prefix="/api/v1", tags=["vlm"])

def _session(request: Request, response: Response):
    session_id = request.cookies.get(settings.session_cookie)
    sid, sess = store.get_or_create(session_id)
    if sid != session_id:
        response.set_cookie(settings.session_cookie, sid, httponly=True, samesite="lax")
    return sess

def _read_upload(image: UploadFile):
    # UploadFile is already spooled; read it whole like a FileReader would
    return read_image(image.file, content_type=image.content_type, filename=image.filename)

@router.post("/image")
def upload_image(request: Request, response: Response, image: UploadFile = File(...)):
    sess = _session(request, response)
    try:
        record = _read_upload(image)
        view = sess.upload(record)
    except DecodeError as e:
        try:
            view = sess.upload_failed(e)
        except ValidationError as busy:
            return {"ok": False, "error": busy.to_dict(), "filename": image.filename}
        return {"ok": False, "error": e.to_dict(), "filename": image.filename, "session": view.model_dump(mode="json")}
    except ValidationError as e:
        return {"ok": False, "error": e.to_dict(), "filename": image.filename}
    return {"ok": True, "filename": image.filename, "session": view.model_dump(mode="json")}

@router.post("/describe")
def describe(request: Request, response: Response):
    sess = _session(request, response)
    view = sess.generate(get_client())
    out = {"ok": view.error is None, "session": view.model_dump(mode="json")}
    if view.error is not None:
        out["error"] = {"kind": view.error_kind.value if view.error_kind else "unknown", "message": view.error}
    return out

@router.get("/session")
def get_session(request: Request, response: Response):
    sess = _session(request, response)
    return {"ok": True, "session": sess.view().model_dump(mode="json")}

@router.post("/session/reset")
def reset_session(request: Request, response: Response):
    sess = _session(request, response)
    try:
        view = sess.reset()
    except ValidationError as e:
        return {"ok": False, "error": e.to_dict()}
    return {"ok": True, "session": view.model_dump(mode="json")}

@router.post("/describe/oneshot")
def describe_oneshot(image: UploadFile = File(...)):
    try:
        record = _read_upload(image)
        text = get_client().describe(record)
    except VisionaryError as e:
        # DescriptionClient already logged it
        return {"ok": False, "error": e.to_dict(), "filename": image.filename}
    return {"ok": True, "description": text, "content_type": record.content_type, "filename": image.filename}
