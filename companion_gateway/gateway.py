"""Completion orchestrator: the entry point for chat completion requests.

Flow for one invocation::

    received -> validated -> credential resolved -> adapted
             -> dispatched -> normalized -> done

Any step may fail with a GatewayError, which ends the invocation. There is
exactly one outbound call and no retry; the gateway does not persist
messages, that is the caller's job.
"""

import uuid
from typing import Any, Optional, Union

import httpx
from pydantic import ValidationError

from companion_gateway.config import GatewayConfig
from companion_gateway.credentials import resolve_key
from companion_gateway.errors import GatewayError, InternalFailure, InvalidRequest
from companion_gateway.models import CompletionRequest, CompletionResult
from companion_gateway.provider import call_provider
from companion_gateway.registry import resolve
from companion_gateway.settings import SettingsStore, load_snapshot
from companion_gateway.telemetry import log_request

_OUTCOMES = {
    "InvalidRequest": "invalid_request",
    "UnsupportedProvider": "unsupported_provider",
    "MissingCredential": "missing_credential",
    "UpstreamError": "upstream_error",
    "MalformedUpstreamResponse": "malformed_response",
    "InternalFailure": "internal_failure",
}


def new_request_id() -> str:
    """Return a fresh gateway request id."""
    return "gw-{}".format(uuid.uuid4().hex[:12])


def _summarize(exc: ValidationError) -> str:
    return "; ".join(
        "{}: {}".format(".".join(str(p) for p in err["loc"]) or "body", err["msg"])
        for err in exc.errors()
    )


def validate_request(body: Any) -> CompletionRequest:
    """Validate a decoded request body.

    Raises:
        InvalidRequest: If the body is not an object, has no messages, lacks
            model or provider, or otherwise fails schema validation.
    """
    if isinstance(body, CompletionRequest):
        return body

    if not isinstance(body, dict):
        raise InvalidRequest(
            "Invalid JSON in request body",
            details="Request body must be a JSON object",
        )

    messages = body.get("messages")
    if not isinstance(messages, list) or not messages:
        raise InvalidRequest("Messages array is required and cannot be empty")

    if not body.get("model") or not body.get("provider"):
        raise InvalidRequest("Model and provider are required parameters")

    try:
        return CompletionRequest.model_validate(body)
    except ValidationError as exc:
        raise InvalidRequest("Invalid request body", details=_summarize(exc)) from exc


class CompletionGateway:
    """Provider-agnostic chat completion entry point.

    Args:
        config: Gateway configuration, including the captured environment keys.
        settings_store: Accessor for the deployment settings record; read
            fresh on every call. None means there is never a settings row.
        client: Optional shared httpx client (tests inject one).
    """

    def __init__(
        self,
        config: GatewayConfig,
        settings_store: Optional[SettingsStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.settings_store = settings_store
        self.client = client

    async def complete(
        self,
        body: Union[CompletionRequest, dict],
        request_id: Optional[str] = None,
    ) -> CompletionResult:
        """Run one completion.

        Args:
            body: A CompletionRequest or the decoded JSON body.
            request_id: Gateway request id for logging.

        Returns:
            The normalized CompletionResult.

        Raises:
            GatewayError: The classified failure; unexpected exceptions are
                wrapped in InternalFailure.
        """
        request_id = request_id or new_request_id()
        provider = body.get("provider") if isinstance(body, dict) else None
        model = body.get("model") if isinstance(body, dict) else None
        thread_id = body.get("threadId") if isinstance(body, dict) else None
        key_source = None

        try:
            request = validate_request(body)
            provider, model = request.provider, request.model
            thread_id = request.thread_id

            entry = resolve(request.provider)
            settings = load_snapshot(self.settings_store)
            key = resolve_key(
                entry.name, request.supplied_keys, settings, self.config.env_keys
            )
            key_source = key.source

            result = await call_provider(entry, request, key, self.config, self.client)
        except GatewayError as exc:
            self._log_failure(exc, request_id, provider, model, thread_id, key_source)
            raise
        except Exception as exc:
            failure = InternalFailure(
                "Internal server error",
                details="{}: {}".format(type(exc).__name__, exc),
            )
            self._log_failure(
                failure, request_id, provider, model, thread_id, key_source
            )
            raise failure from exc

        log_request(
            operation="completion",
            provider=result.provider,
            model=result.model,
            outcome="success",
            usage=result.usage.model_dump(),
            key_source=key_source,
            request_id=request_id,
            thread_id=thread_id,
        )
        return result

    @staticmethod
    def _log_failure(
        exc: GatewayError,
        request_id: str,
        provider: Optional[str],
        model: Optional[str],
        thread_id: Optional[str],
        key_source: Optional[str],
    ) -> None:
        log_request(
            operation="completion",
            provider=provider if isinstance(provider, str) else None,
            model=model if isinstance(model, str) else None,
            outcome=_OUTCOMES.get(exc.kind, "internal_failure"),
            error=exc.message,
            key_source=key_source,
            request_id=request_id,
            thread_id=thread_id if isinstance(thread_id, str) else None,
        )
