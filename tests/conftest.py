import json
from io import BytesIO

import httpx
import pytest
from PIL import Image

from visionary.codec.image_codec import record_from_bytes
from visionary.vlm.ollama_client import DescriptionClient


class Recorder:
    """MockTransport handler that records requests and replays a canned reply."""

    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.reply, Exception):
            raise self.reply
        if callable(self.reply):
            return self.reply(request)
        return self.reply

    def bodies(self):
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def png_bytes():
    buf = BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def record(png_bytes):
    return record_from_bytes(png_bytes, content_type="image/png")


@pytest.fixture
def make_client():
    clients = []

    def _make(reply, model="llava"):
        rec = Recorder(reply)
        client = DescriptionClient(
            base_url="http://ollama.test",
            model=model,
            prompt="Describe this image.",
            transport=httpx.MockTransport(rec),
        )
        clients.append(client)
        return client, rec

    yield _make
    for c in clients:
        c.close()
