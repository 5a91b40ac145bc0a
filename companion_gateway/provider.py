"""Outbound call to an upstream LLM provider.

Exactly one HTTP request per invocation: no retries, no backoff. The call
is bounded by the configured timeout.
"""

from typing import Optional

import httpx

from companion_gateway.adapters import adapter_for
from companion_gateway.config import GatewayConfig
from companion_gateway.credentials import ResolvedKey
from companion_gateway.errors import InternalFailure
from companion_gateway.models import CompletionRequest, CompletionResult
from companion_gateway.registry import ProviderEntry


async def call_provider(
    entry: ProviderEntry,
    request: CompletionRequest,
    key: ResolvedKey,
    config: GatewayConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> CompletionResult:
    """Send ``request`` to the provider and normalize the answer.

    Args:
        entry: Registry entry for the target provider.
        request: The validated completion request.
        key: Credential to authenticate with.
        config: Gateway configuration (timeout, identification headers).
        client: Optional shared client; a short-lived one is created otherwise.

    Returns:
        The normalized CompletionResult.

    Raises:
        UpstreamError: If the provider returns a non-2xx response.
        MalformedUpstreamResponse: If a 2xx response has an unusable body.
        InternalFailure: If the request could not be completed at all.
    """
    adapter = adapter_for(entry.adapter_kind)
    url = entry.endpoint_for(request.model)
    headers = adapter.headers(
        entry, key.api_key, referer=config.app_referer, title=config.app_title
    )
    payload = adapter.adapt(request)

    try:
        if client is not None:
            resp = await client.post(
                url, json=payload, headers=headers, timeout=config.request_timeout
            )
        else:
            async with httpx.AsyncClient(timeout=config.request_timeout) as owned:
                resp = await owned.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise InternalFailure(
            "{} request failed".format(entry.name),
            details="{}: {}".format(type(exc).__name__, exc),
        ) from exc

    return adapter.normalize(resp.status_code, resp.text, request)
