import asyncio
import os
import sys

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from topic_chat.config import Config
from topic_chat.server.web_resource import WebServer
from topic_chat.upstream.groq_client import GroqClient

TEST_API_KEY = "test-key"
# A decommission error preceded by bytes that are not valid UTF-8.
BAD_BYTES_DECOMMISSION_BODY = (
    b"\xff\xfe" b'{"error": {"code": "model_decommissioned", "message": "gone"}}'
)


class MockGroqServer:
    """
    Scripted stand-in for Groq's OpenAI-compatible API.

    Each model id can be given a behavior; unlisted models use
    ``default_behavior``. Every completion request is recorded so tests can
    assert which models were tried and in what order.
    """

    def __init__(self):
        self.app = web.Application()
        self.app.router.add_post(
            "/openai/v1/chat/completions", self._handle_chat_completions
        )
        self.app.router.add_get("/openai/v1/models", self._handle_models)
        self.behaviors: dict[str, str] = {}
        self.default_behavior = "ok"
        self.models_behavior = "ok"
        self.requests: list[dict] = []
        self.auth_headers: list[str] = []
        self.stall_seconds = 5.0
        self.release = asyncio.Event()
        self.base_url = ""

    @property
    def requested_models(self) -> list[str]:
        return [payload.get("model") for payload in self.requests]

    async def _handle_chat_completions(self, request):
        payload = await request.json()
        self.requests.append(payload)
        self.auth_headers.append(request.headers.get("Authorization", ""))
        model = payload.get("model", "")
        behavior = self.behaviors.get(model, self.default_behavior)

        if behavior == "decommissioned":
            return web.json_response(
                {
                    "error": {
                        "message": f"The model `{model}` has been decommissioned "
                        "and is no longer supported.",
                        "type": "invalid_request_error",
                        "code": "model_decommissioned",
                    }
                },
                status=400,
            )
        if behavior == "auth":
            return web.json_response(
                {
                    "error": {
                        "message": "Invalid API Key",
                        "type": "invalid_request_error",
                        "code": "invalid_api_key",
                    }
                },
                status=401,
            )
        if behavior == "bad_bytes":
            return web.Response(status=400, body=BAD_BYTES_DECOMMISSION_BODY)
        if behavior == "empty":
            return web.json_response(self._completion(model, "   "))
        if behavior == "not_json":
            return web.Response(text="<html>gateway</html>", content_type="text/html")
        if behavior == "stall":
            try:
                await asyncio.wait_for(self.release.wait(), self.stall_seconds)
            except asyncio.TimeoutError:
                pass

        return web.json_response(self._completion(model, f"Reply from {model}"))

    async def _handle_models(self, request):
        if self.models_behavior == "bad_bytes":
            return web.Response(status=503, body=b"\xff\xfeupstream down")
        if self.models_behavior == "auth":
            return web.json_response(
                {"error": {"message": "Invalid API Key", "code": "invalid_api_key"}},
                status=401,
            )
        return web.json_response(
            {
                "object": "list",
                "data": [
                    {"id": "llama-3.3-70b-versatile", "object": "model"},
                    {"id": "llama-3.1-8b-instant", "object": "model"},
                    {"id": "qwen/qwen3-32b", "object": "model"},
                ],
            }
        )

    @staticmethod
    def _completion(model: str, content: str) -> dict:
        return {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "created": 1677652288,
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }


@pytest.fixture(autouse=True)
def clean_groq_env(monkeypatch):
    """Keep the developer's GROQ_* settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("GROQ_") or name in (
            "PORT",
            "HOST",
            "STATIC_DIR",
            "UPSTREAM_LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)


@pytest_asyncio.fixture
async def mock_groq():
    """Start the mock Groq API and yield it with ``base_url`` filled in."""
    mock_server = MockGroqServer()
    async with TestServer(mock_server.app) as server:
        mock_server.base_url = str(server.make_url("/openai/v1"))
        try:
            yield mock_server
        finally:
            # Let any stalled handler finish so the server shuts down promptly.
            mock_server.release.set()


@pytest.fixture
def make_config(mock_groq):
    """Build a Config pointed at the mock server, ignoring any .env file."""

    def _make(**overrides) -> Config:
        values = {
            "groq_api_key": TEST_API_KEY,
            "groq_base_url": mock_groq.base_url,
        }
        values.update(overrides)
        return Config(_env_file=None, **values)

    return _make


@pytest_asyncio.fixture
async def groq_client(mock_groq):
    client = GroqClient(api_key=TEST_API_KEY, base_url=mock_groq.base_url)
    await client.start()
    try:
        yield client
    finally:
        await client.close()


@pytest_asyncio.fixture
async def client(aiohttp_client, make_config):
    """Create a test client for the proxy backed by the mock Groq server."""
    server = WebServer(make_config())
    return await aiohttp_client(server.app)
