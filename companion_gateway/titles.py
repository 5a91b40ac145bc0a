"""Title generation with a heuristic fallback chain.

Title generation is cosmetic and must never block thread creation, so it
never raises. Whenever the configured provider is unusable, no key is
available, or the call or its normalization fails, the title degrades to
the first words of the message. Each degradation is logged.
"""

import logging
from datetime import date
from typing import Mapping, Optional

import httpx

from companion_gateway.config import GatewayConfig
from companion_gateway.credentials import resolve_key
from companion_gateway.errors import GatewayError
from companion_gateway.gateway import new_request_id
from companion_gateway.models import ChatMessage, CompletionRequest, TitleResult
from companion_gateway.provider import call_provider
from companion_gateway.registry import resolve
from companion_gateway.settings import Settings, SettingsStore, load_snapshot
from companion_gateway.telemetry import log_request

TITLE_INSTRUCTION = (
    "Generate a short, concise title (max 5 words) for the following message. "
    "Only return the title, nothing else."
)
DEFAULT_TITLE_MODEL = "anthropic/claude-3-haiku"
DEFAULT_TITLE_PROVIDER = "openrouter"
TITLE_PROVIDERS = frozenset({"openai", "openrouter"})
TITLE_TEMPERATURE = 0.3
TITLE_MAX_TOKENS = 20

EMPTY_TITLE = "New Chat"
HEURISTIC_WORDS = 5
HEURISTIC_MAX_LENGTH = 30
ELLIPSIS = "..."


def heuristic_title(message: str) -> str:
    """First five words of ``message``, cut to 30 characters plus an ellipsis."""
    words = " ".join(message.split()[:HEURISTIC_WORDS])
    if not words:
        return EMPTY_TITLE
    if len(words) > HEURISTIC_MAX_LENGTH:
        return words[:HEURISTIC_MAX_LENGTH] + ELLIPSIS
    return words


def dated_title(today: Optional[date] = None) -> str:
    """Last-resort title when there is no message text to work from."""
    return "Chat {}".format((today or date.today()).isoformat())


def _fallback(
    message: str,
    reason: str,
    request_id: str,
    provider: Optional[str],
    model: Optional[str],
) -> TitleResult:
    log_request(
        operation="title",
        provider=provider,
        model=model,
        outcome="fallback",
        error=reason,
        request_id=request_id,
        level=logging.WARNING,
    )
    return TitleResult(title=heuristic_title(message))


async def generate_title(
    message: str,
    settings: Optional[Settings],
    env_keys: Optional[Mapping[str, str]],
    config: Optional[GatewayConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    request_id: Optional[str] = None,
) -> TitleResult:
    """Produce a title for a thread whose first message is ``message``.

    Never raises. See the module docstring for the fallback rules.
    """
    config = config or GatewayConfig()
    request_id = request_id or new_request_id()
    title_model = (settings and settings.utility_title_model) or DEFAULT_TITLE_MODEL
    provider = (settings and settings.chat_using) or DEFAULT_TITLE_PROVIDER

    if not isinstance(message, str):
        log_request(
            operation="title",
            provider=provider,
            model=title_model,
            outcome="fallback",
            error="Message is missing or not a string",
            request_id=request_id,
            level=logging.WARNING,
        )
        return TitleResult(title=dated_title())

    if not message.strip():
        log_request(
            operation="title",
            provider=provider,
            model=title_model,
            outcome="fallback",
            error="Message is empty",
            request_id=request_id,
            level=logging.WARNING,
        )
        return TitleResult(title=EMPTY_TITLE)

    try:
        if provider not in TITLE_PROVIDERS:
            return _fallback(
                message,
                "Unsupported provider for title generation: {}".format(provider),
                request_id,
                provider,
                title_model,
            )

        entry = resolve(provider)
        key = resolve_key(entry.name, None, settings, env_keys)
        request = CompletionRequest(
            messages=[
                ChatMessage(role="system", content=TITLE_INSTRUCTION),
                ChatMessage(role="user", content=message),
            ],
            model=title_model,
            provider=provider,
            temperature=TITLE_TEMPERATURE,
            max_tokens=TITLE_MAX_TOKENS,
        )
        result = await call_provider(entry, request, key, config, client)
    except GatewayError as exc:
        return _fallback(
            message,
            "{}: {}".format(exc.kind, exc.message),
            request_id,
            provider,
            title_model,
        )
    except Exception as exc:
        return _fallback(
            message,
            "Unexpected {}: {}".format(type(exc).__name__, exc),
            request_id,
            provider,
            title_model,
        )

    title = result.content.strip() or EMPTY_TITLE
    log_request(
        operation="title",
        provider=provider,
        model=title_model,
        outcome="success",
        usage=result.usage.model_dump(),
        key_source=key.source,
        request_id=request_id,
    )
    return TitleResult(title=title)


class TitleGenerator:
    """Title generation bound to a configuration and settings store."""

    def __init__(
        self,
        config: GatewayConfig,
        settings_store: Optional[SettingsStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.settings_store = settings_store
        self.client = client

    async def generate(
        self, message: str, request_id: Optional[str] = None
    ) -> TitleResult:
        """Load a fresh settings snapshot and generate a title. Never raises."""
        try:
            settings = load_snapshot(self.settings_store)
        except Exception as exc:
            log_request(
                operation="title",
                provider=None,
                model=None,
                outcome="fallback",
                error="Settings lookup failed: {}".format(exc),
                request_id=request_id,
                level=logging.WARNING,
            )
            settings = None
        return await generate_title(
            message,
            settings,
            self.config.env_keys,
            config=self.config,
            client=self.client,
            request_id=request_id,
        )
