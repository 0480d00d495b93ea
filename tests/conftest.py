"""Shared pytest fixtures for testing."""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from loro.config import Settings
from loro.main import create_app
from loro.services.orchestrator import LoroService

SMALL_HOST = "small.test"
LARGE_HOST = "large.test"


def make_settings(**overrides) -> Settings:
    values: Dict[str, Any] = {
        "SMALL_MODEL_API_KEY": "test-key-small",
        "LARGE_MODEL_API_KEY": "test-key-large",
        "SMALL_MODEL_BASE_URL": f"http://{SMALL_HOST}/v1",
        "LARGE_MODEL_BASE_URL": f"http://{LARGE_HOST}/v1",
        "SMALL_MODEL_NAME": "small-model",
        "LARGE_MODEL_NAME": "large-model",
        "MAX_RETRIES": 1,
        "STATS_MAX_ENTRIES": 1000,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def sse_line(content: Optional[str] = None, finish_reason: Optional[str] = None) -> str:
    delta = {} if content is None else {"content": content}
    payload = {"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def parse_sse(body: str) -> List[str]:
    """Payloads of every `data:` frame in an event-stream body."""
    frames = []
    for block in body.split("\n\n"):
        block = block.strip()
        if block.startswith("data: "):
            frames.append(block[len("data: "):])
    return frames


class FakeUpstream:
    """
    Scripted small/large model backends behind an httpx.MockTransport.

    The large model streams `large_fragments` as separate byte deliveries.
    """

    def __init__(self):
        self.small_status = 200
        self.small_json: Dict[str, Any] = {
            "choices": [{"index": 0, "message": {"role": "assistant", "content": "嗯，"}}]
        }
        self.small_exc: Optional[Exception] = None
        self.large_status = 200
        self.large_fragments: List[str] = [
            sse_line("你好"),
            sse_line("，我是助手"),
            sse_line(finish_reason="stop"),
            "data: [DONE]\n\n",
        ]
        self.large_exc: Optional[Exception] = None
        # Raise a transport error after this many fragments
        self.large_break_after: Optional[int] = None
        self.requests: List[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, host: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def bodies_to(self, host: str) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.calls_to(host)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == SMALL_HOST:
            if self.small_exc is not None:
                raise self.small_exc
            if self.small_status >= 400:
                return httpx.Response(self.small_status, text="small model unavailable")
            return httpx.Response(200, json=self.small_json)

        if self.large_exc is not None:
            raise self.large_exc
        if self.large_status >= 400:
            return httpx.Response(self.large_status, text="large model unavailable")
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=self._large_stream(),
        )

    async def _large_stream(self):
        for i, fragment in enumerate(self.large_fragments):
            if self.large_break_after is not None and i >= self.large_break_after:
                raise httpx.ReadError("connection reset by peer")
            yield fragment.encode("utf-8")


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def service(settings, fake_upstream):
    svc = LoroService(settings, transport=fake_upstream.transport, retry_base_delay=0)
    yield svc
    await svc.aclose()


@pytest_asyncio.fixture
async def client(settings, service):
    app = create_app(settings, service=service)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
