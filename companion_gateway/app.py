"""FastAPI application for the companion gateway.

Endpoints:

- ``POST /chat-completion``: provider-agnostic chat completion. Failures
  come back as ``{error, details?, kind}`` with a status matching the kind.
- ``POST /generate-title``: thread title generation. Always answers 200.

Both endpoints answer CORS preflight with permissive headers.
"""

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from companion_gateway.config import GatewayConfig, default_config, load_config
from companion_gateway.errors import GatewayError, InternalFailure, InvalidRequest
from companion_gateway.gateway import CompletionGateway, new_request_id
from companion_gateway.models import ErrorResponse
from companion_gateway.settings import JsonSettingsStore, SettingsStore
from companion_gateway.telemetry import logger, setup_logging
from companion_gateway.titles import TitleGenerator

CONFIG_PATH = os.getenv("GATEWAY_CONFIG")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}

_config: Optional[GatewayConfig] = None
_settings_store: Optional[SettingsStore] = None
_gateway: Optional[CompletionGateway] = None
_title_generator: Optional[TitleGenerator] = None


def get_config() -> GatewayConfig:
    """Return the gateway configuration (lazy-init)."""
    global _config
    if _config is None:
        _config = load_config(CONFIG_PATH) if CONFIG_PATH else default_config()
    return _config


def get_settings_store() -> Optional[SettingsStore]:
    """Return the settings accessor, or None when no settings file is configured."""
    global _settings_store
    if _settings_store is None:
        cfg = get_config()
        if cfg.settings_file:
            _settings_store = JsonSettingsStore(cfg.settings_file)
    return _settings_store


def get_gateway() -> CompletionGateway:
    """Return the completion orchestrator (lazy-init from config)."""
    global _gateway
    if _gateway is None:
        _gateway = CompletionGateway(get_config(), get_settings_store())
    return _gateway


def get_title_generator() -> TitleGenerator:
    """Return the title generator (lazy-init from config)."""
    global _title_generator
    if _title_generator is None:
        _title_generator = TitleGenerator(get_config(), get_settings_store())
    return _title_generator


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Initialize config, logging, and the gateway components on startup."""
    cfg = get_config()
    setup_logging(cfg.log_file)
    get_gateway()
    get_title_generator()
    yield


app = FastAPI(title="Companion Gateway", version="0.1.0", lifespan=lifespan)


def _json_response(status: int, content: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status, content=content, headers=CORS_HEADERS)


def _error_response(exc: GatewayError) -> JSONResponse:
    """Build a consistent JSON error response."""
    body = ErrorResponse(error=exc.message, details=exc.details, kind=exc.kind)
    return _json_response(exc.status_code, body.model_dump(exclude_none=True))


def _preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@app.options("/chat-completion")
async def chat_completion_preflight() -> Response:
    return _preflight()


@app.options("/generate-title")
async def generate_title_preflight() -> Response:
    return _preflight()


@app.post("/chat-completion", response_model=None)
async def chat_completion(request: Request) -> JSONResponse:
    """Handle a chat completion request.

    Request flow:
    1. Decode and validate the body
    2. Resolve the provider and its credential
    3. Call the provider once
    4. Return the normalized result or the classified error
    """
    request_id = new_request_id()

    try:
        body = await request.json()
    except ValueError as exc:
        return _error_response(
            InvalidRequest("Invalid JSON in request body", details=str(exc))
        )

    try:
        result = await get_gateway().complete(body, request_id=request_id)
    except GatewayError as exc:
        return _error_response(exc)

    return _json_response(200, result.model_dump())


@app.post("/generate-title", response_model=None)
async def generate_title(request: Request) -> JSONResponse:
    """Generate a title for a new thread. Always answers 200."""
    request_id = new_request_id()

    try:
        body = await request.json()
    except ValueError:
        body = None

    message = body.get("message") if isinstance(body, dict) else None
    result = await get_title_generator().generate(message, request_id=request_id)
    return _json_response(200, result.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Convert anything unexpected into the InternalFailure envelope."""
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(
        InternalFailure("Internal server error", details=type(exc).__name__)
    )
