import httpx
import pytest
from fastapi.testclient import TestClient

from visionary.core.errors import REMEDIATION_COMMAND
from visionary.main import app
from visionary.vlm import ollama_client


@pytest.fixture
def use_ollama(monkeypatch, make_client):
    def _use(reply):
        client, rec = make_client(reply)
        monkeypatch.setattr(ollama_client, "_CLIENT_SINGLETON", client)
        return rec
    return _use


@pytest.fixture
def web():
    with TestClient(app) as c:
        yield c


def _upload(web, data, name="cat.png", ctype="image/png"):
    return web.post("/api/v1/image", files={"image": (name, data, ctype)}).json()


def test_index_page_served(web):
    r = web.get("/")
    assert r.status_code == 200
    assert "Generate Description" in r.text
    assert "image/png, image/jpeg, image/gif, image/webp" in r.text


def test_upload_then_describe(web, use_ollama, png_bytes):
    rec = use_ollama(httpx.Response(200, json={"response": "  A red square.  "}))

    up = _upload(web, png_bytes)
    assert up["ok"] is True
    assert up["session"]["has_image"] is True
    assert up["session"]["content_type"] == "image/png"
    assert up["session"]["preview"].startswith("data:image/png;base64,")

    out = web.post("/api/v1/describe").json()
    assert out["ok"] is True
    assert out["session"]["description"] == "A red square."
    assert out["session"]["state"] == "succeeded"
    assert len(rec.requests) == 1


def test_describe_without_upload_makes_no_call(web, use_ollama):
    rec = use_ollama(httpx.Response(200, json={"response": "nope"}))
    out = web.post("/api/v1/describe").json()
    assert out["ok"] is False
    assert out["error"]["kind"] == "validation"
    assert out["error"]["message"] == "Please upload an image first."
    assert rec.requests == []


def test_describe_connectivity_error_message(web, use_ollama, png_bytes):
    use_ollama(httpx.ConnectError("refused"))
    _upload(web, png_bytes)
    out = web.post("/api/v1/describe").json()
    assert out["ok"] is False
    assert out["error"]["kind"] == "connectivity"
    assert REMEDIATION_COMMAND in out["error"]["message"]
    assert out["session"]["state"] == "failed"


def test_sessions_are_isolated_per_cookie(use_ollama, png_bytes):
    use_ollama(httpx.Response(200, json={"response": "x"}))
    with TestClient(app) as a, TestClient(app) as b:
        _upload(a, png_bytes)
        assert a.get("/api/v1/session").json()["session"]["has_image"] is True
        assert b.get("/api/v1/session").json()["session"]["has_image"] is False


def test_reset_clears_session(web, png_bytes):
    _upload(web, png_bytes)
    out = web.post("/api/v1/session/reset").json()
    assert out["ok"] is True
    assert out["session"]["has_image"] is False


def test_oneshot(web, use_ollama, png_bytes):
    rec = use_ollama(httpx.Response(200, json={"response": "A cat on a mat."}))
    r = web.post("/api/v1/describe/oneshot", files={"image": ("x.png", png_bytes, "image/png")})
    out = r.json()
    assert out == {"ok": True, "description": "A cat on a mat.", "content_type": "image/png", "filename": "x.png"}
    assert rec.bodies()[0]["stream"] is False


def test_oneshot_server_error(web, use_ollama, png_bytes):
    use_ollama(httpx.Response(500, json={"error": "model not found"}))
    out = web.post("/api/v1/describe/oneshot", files={"image": ("x.png", png_bytes, "image/png")}).json()
    assert out["ok"] is False
    assert out["error"]["kind"] == "server"
    assert out["error"]["status"] == 500
    assert "model not found" in out["error"]["message"]


def test_healthz_reports_probe(web, use_ollama):
    use_ollama(httpx.Response(200, json={"models": [{"name": "llava:latest"}]}))
    out = web.get("/healthz").json()
    assert out["status"] == "ok"
    assert out["ollama"]["model_installed"] is True
    assert out["config"]["ollama_model"] == "llava"


def test_healthz_degraded_when_unreachable(web, use_ollama):
    use_ollama(httpx.ConnectError("refused"))
    out = web.get("/healthz").json()
    assert out["status"] == "degraded"
    assert out["ollama"]["reachable"] is False


class _UnreadableFile:
    def read(self, *args):
        raise OSError("device not ready")


def _bare_request():
    from starlette.requests import Request
    return Request({"type": "http", "method": "POST", "path": "/", "headers": []})


def test_upload_read_failure_is_decode_error_not_500(monkeypatch, web):
    import tempfile

    monkeypatch.setattr(tempfile.SpooledTemporaryFile, "read", _UnreadableFile.read)
    r = web.post("/api/v1/image", files={"image": ("x.png", b"\x89PNG", "image/png")})
    assert r.status_code == 200
    out = r.json()
    assert out["ok"] is False
    assert out["error"]["kind"] == "decode"
    assert "device not ready" in out["error"]["message"]
    assert out["session"]["has_image"] is False
    assert out["session"]["error"] == "Could not process the selected file. Please try another image."


def test_upload_route_wraps_os_error():
    from fastapi import Response, UploadFile
    from visionary.api import vlm

    out = vlm.upload_image(_bare_request(), Response(), image=UploadFile(file=_UnreadableFile(), filename="x.png"))
    assert out["ok"] is False
    assert out["error"]["kind"] == "decode"


def test_oneshot_route_wraps_os_error(use_ollama):
    from fastapi import UploadFile
    from visionary.api import vlm

    rec = use_ollama(httpx.Response(200, json={"response": "unused"}))
    out = vlm.describe_oneshot(image=UploadFile(file=_UnreadableFile(), filename="x.png"))
    assert out["ok"] is False
    assert out["error"]["kind"] == "decode"
    assert rec.requests == []


def test_decode_failure_after_good_upload_clears_image(monkeypatch, web, png_bytes):
    from visionary.api import vlm
    from visionary.core.errors import DecodeError

    _upload(web, png_bytes)

    def reject(*args, **kwargs):
        raise DecodeError("Could not determine image MIME type.")

    monkeypatch.setattr(vlm, "read_image", reject)
    out = _upload(web, png_bytes)
    assert out["ok"] is False
    assert out["error"]["kind"] == "decode"
    assert out["session"]["has_image"] is False
    assert out["session"]["preview"] is None


def test_cookieless_requests_do_not_grow_store_unbounded(monkeypatch, web, png_bytes):
    from visionary.api import vlm
    from visionary.services.session import SessionStore

    small = SessionStore(max_sessions=5)
    monkeypatch.setattr(vlm, "store", small)
    for _ in range(50):
        web.cookies.clear()
        assert _upload(web, png_bytes)["ok"] is True
    assert len(small) <= 5


def test_healthz_reports_distribution_versions(web, use_ollama):
    use_ollama(httpx.Response(200, json={"models": []}))
    versions = web.get("/healthz").json()["versions"]
    assert versions["httpx"] != "not-installed"
    assert versions["pillow"] != "not-installed"
