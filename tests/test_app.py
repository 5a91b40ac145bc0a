"""End-to-end tests for the HTTP surface.

The app is driven through httpx's ASGITransport; upstream providers are
mocked with respx.
"""

import json
from pathlib import Path
from typing import Dict

import pytest
import respx
from httpx import ASGITransport, AsyncClient

from helpers import OPENAI_URL, openai_body
from companion_gateway import app as app_module
from companion_gateway.app import CORS_HEADERS, app
from companion_gateway.config import GatewayConfig


@pytest.fixture(autouse=True)
def _reset_app_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset the app's global state before each test with an empty environment."""
    config = GatewayConfig(
        env_keys={},
        log_file=str(tmp_path / "test.log"),
        settings_file=str(tmp_path / "settings.json"),
    )
    monkeypatch.setattr(app_module, "_config", config)
    monkeypatch.setattr(app_module, "_settings_store", None)
    monkeypatch.setattr(app_module, "_gateway", None)
    monkeypatch.setattr(app_module, "_title_generator", None)


def _write_settings(tmp_path: Path, **values: str) -> None:
    (tmp_path / "settings.json").write_text(json.dumps(values))


def _completion_body(**overrides) -> Dict:
    body = {
        "messages": [{"role": "user", "content": "Hello"}],
        "threadId": "thread-1",
        "model": "gpt-4o-mini",
        "provider": "openai",
    }
    body.update(overrides)
    return body


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _assert_cors(resp) -> None:
    for name, value in CORS_HEADERS.items():
        assert resp.headers[name] == value


@pytest.mark.asyncio
@respx.mock
async def test_completion_success() -> None:
    respx.post(OPENAI_URL).respond(
        200, json=openai_body("Hi!", prompt_tokens=3, completion_tokens=2, total_tokens=5)
    )
    async with _client() as client:
        resp = await client.post(
            "/chat-completion", json=_completion_body(apiKeys={"openai": "sk-user"})
        )

    assert resp.status_code == 200
    assert resp.json() == {
        "content": "Hi!",
        "model": "gpt-4o-mini",
        "provider": "openai",
        "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
    }
    _assert_cors(resp)


@pytest.mark.asyncio
async def test_empty_messages_is_invalid_request() -> None:
    async with _client() as client:
        resp = await client.post("/chat-completion", json=_completion_body(messages=[]))

    assert resp.status_code == 400
    data = resp.json()
    assert data["kind"] == "InvalidRequest"
    assert data["error"] == "Messages array is required and cannot be empty"
    assert "details" not in data
    _assert_cors(resp)


@pytest.mark.asyncio
async def test_missing_model_is_invalid_request() -> None:
    body = _completion_body()
    del body["model"]
    async with _client() as client:
        resp = await client.post("/chat-completion", json=body)

    assert resp.status_code == 400
    assert resp.json()["kind"] == "InvalidRequest"


@pytest.mark.asyncio
async def test_invalid_json_is_invalid_request() -> None:
    async with _client() as client:
        resp = await client.post(
            "/chat-completion",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

    assert resp.status_code == 400
    data = resp.json()
    assert data["kind"] == "InvalidRequest"
    assert data["error"] == "Invalid JSON in request body"


@pytest.mark.asyncio
async def test_unsupported_provider() -> None:
    async with _client() as client:
        resp = await client.post(
            "/chat-completion", json=_completion_body(provider="anthropic")
        )

    assert resp.status_code == 400
    data = resp.json()
    assert data["kind"] == "UnsupportedProvider"
    assert data["error"] == "Unsupported provider: anthropic"


@pytest.mark.asyncio
async def test_missing_credential_is_401() -> None:
    async with _client() as client:
        resp = await client.post("/chat-completion", json=_completion_body())

    assert resp.status_code == 401
    data = resp.json()
    assert data["kind"] == "MissingCredential"
    assert data["error"] == "API key not found for provider: openai"
    assert "configure API key" in data["details"]


@pytest.mark.asyncio
@respx.mock
async def test_settings_key_from_store(tmp_path: Path) -> None:
    route = respx.post(OPENAI_URL).respond(200, json=openai_body())
    _write_settings(tmp_path, dangerous_openai_api_key="sk-settings")

    async with _client() as client:
        resp = await client.post("/chat-completion", json=_completion_body())

    assert resp.status_code == 200
    assert route.calls.last.request.headers["Authorization"] == "Bearer sk-settings"


@pytest.mark.asyncio
@respx.mock
async def test_upstream_status_passthrough() -> None:
    respx.post(OPENAI_URL).respond(429, text='{"error": "rate limited"}')

    async with _client() as client:
        resp = await client.post(
            "/chat-completion", json=_completion_body(apiKeys={"openai": "sk-user"})
        )

    assert resp.status_code == 429
    data = resp.json()
    assert data["kind"] == "UpstreamError"
    assert data["error"] == "openai API error: 429"
    assert data["details"] == '{"error": "rate limited"}'


@pytest.mark.asyncio
@respx.mock
async def test_malformed_upstream_is_500() -> None:
    respx.post(OPENAI_URL).respond(200, json={"choices": []})

    async with _client() as client:
        resp = await client.post(
            "/chat-completion", json=_completion_body(apiKeys={"openai": "sk-user"})
        )

    assert resp.status_code == 500
    data = resp.json()
    assert data["kind"] == "MalformedUpstreamResponse"
    assert data["details"] == "No choices in response"


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/chat-completion", "/generate-title"])
async def test_preflight(path: str) -> None:
    async with _client() as client:
        resp = await client.options(path)

    assert resp.status_code == 200
    assert resp.content == b""
    _assert_cors(resp)


@pytest.mark.asyncio
async def test_title_fallback_without_key() -> None:
    async with _client() as client:
        resp = await client.post(
            "/generate-title", json={"message": "one two three four five six seven"}
        )

    assert resp.status_code == 200
    assert resp.json() == {"title": "one two three four five"}
    _assert_cors(resp)


@pytest.mark.asyncio
@respx.mock
async def test_title_from_model(tmp_path: Path) -> None:
    respx.post(OPENAI_URL).respond(200, json=openai_body("Weekend Plans"))
    _write_settings(tmp_path, chat_using="openai", dangerous_openai_api_key="sk")

    async with _client() as client:
        resp = await client.post("/generate-title", json={"message": "what should I do"})

    assert resp.status_code == 200
    assert resp.json() == {"title": "Weekend Plans"}


@pytest.mark.asyncio
@respx.mock
async def test_title_upstream_500_still_200(tmp_path: Path) -> None:
    respx.post(OPENAI_URL).respond(500, text="boom")
    _write_settings(tmp_path, chat_using="openai", dangerous_openai_api_key="sk")

    async with _client() as client:
        resp = await client.post("/generate-title", json={"message": "hello world"})

    assert resp.status_code == 200
    assert resp.json() == {"title": "hello world"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"content": b"{not json", "headers": {"Content-Type": "application/json"}},
        {"json": {}},
        {"json": {"message": 12}},
        {"json": ["message"]},
    ],
)
async def test_title_bad_body_still_200(kwargs: Dict) -> None:
    async with _client() as client:
        resp = await client.post("/generate-title", **kwargs)

    assert resp.status_code == 200
    assert resp.json()["title"].startswith("Chat ")
