"""Wire-format adapters: request translation and response normalization.

Each adapter kind implements one provider wire format:

- ``openai_compat`` (OpenAI, OpenRouter): chat-completions payload, answer
  in ``choices[0].message.content``, usage reported by the provider.
- ``huggingface`` (Inference API): only the last message is sent as
  ``inputs``; the answer is ``[0].generated_text`` and usage is estimated.

Hugging Face drops history on purpose: the Inference API text-generation
endpoint takes a single input string, so earlier turns are not forwarded.
"""

import json
import math
from abc import ABC, abstractmethod
from typing import Any, Dict

from pydantic import ValidationError

from companion_gateway.config import DEFAULT_APP_TITLE, DEFAULT_REFERER
from companion_gateway.errors import MalformedUpstreamResponse, UpstreamError
from companion_gateway.models import CompletionRequest, CompletionResult, UsageInfo
from companion_gateway.registry import HUGGINGFACE, OPENAI_COMPAT, ProviderEntry

HF_DEFAULT_MAX_NEW_TOKENS = 512
HF_EMPTY_RESPONSE = "No response generated"

# Coarse estimate used for Hugging Face usage only; not a tokenizer count.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate a token count at ~4 characters per token (rounded up)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _token_count(value: Any) -> int:
    """Reported usage count, with missing or invalid values read as 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return max(int(value), 0)


class ProviderAdapter(ABC):
    """Translation between a normalized request and one wire format."""

    kind: str

    def headers(
        self,
        entry: ProviderEntry,
        api_key: str,
        referer: str = DEFAULT_REFERER,
        title: str = DEFAULT_APP_TITLE,
    ) -> Dict[str, str]:
        """Build the outbound HTTP headers for ``entry``."""
        return {
            "Authorization": "Bearer {}".format(api_key),
            "Content-Type": "application/json",
        }

    @abstractmethod
    def adapt(self, request: CompletionRequest) -> Dict[str, Any]:
        """Build the provider payload for ``request``."""

    @abstractmethod
    def parse(self, data: Any, request: CompletionRequest) -> CompletionResult:
        """Turn a decoded 2xx body into a normalized result."""

    def normalize(
        self, status_code: int, raw_body: str, request: CompletionRequest
    ) -> CompletionResult:
        """Normalize a raw provider response.

        Raises:
            UpstreamError: For any non-2xx status; the body is kept verbatim.
            MalformedUpstreamResponse: If a 2xx body is not usable.
        """
        if not 200 <= status_code < 300:
            raise UpstreamError(request.provider, status_code, raw_body)

        try:
            data = json.loads(raw_body)
        except ValueError as exc:
            raise MalformedUpstreamResponse(
                "Response body is not valid JSON: {}".format(exc)
            ) from exc

        try:
            return self.parse(data, request)
        except ValidationError as exc:
            raise MalformedUpstreamResponse(str(exc)) from exc


class OpenAICompatAdapter(ProviderAdapter):
    """OpenAI chat-completions wire format, shared by OpenRouter."""

    kind = OPENAI_COMPAT

    def headers(
        self,
        entry: ProviderEntry,
        api_key: str,
        referer: str = DEFAULT_REFERER,
        title: str = DEFAULT_APP_TITLE,
    ) -> Dict[str, str]:
        headers = super().headers(entry, api_key)
        if entry.identifies_app:
            headers["HTTP-Referer"] = referer
            headers["X-Title"] = title
        return headers

    def adapt(self, request: CompletionRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": m.role, "content": m.content} for m in request.messages
            ],
            "temperature": request.temperature,
            "stream": False,
        }
        # Zero is omitted rather than sent; backends disagree on its meaning.
        if request.max_tokens is not None and request.max_tokens > 0:
            payload["max_tokens"] = request.max_tokens
        return payload

    def parse(self, data: Any, request: CompletionRequest) -> CompletionResult:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            raise MalformedUpstreamResponse()

        choice = choices[0]
        if not isinstance(choice, dict):
            raise MalformedUpstreamResponse("First choice is not an object")

        message = choice.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        usage_raw = data.get("usage")
        if not isinstance(usage_raw, dict):
            usage_raw = {}

        return CompletionResult(
            content=content or "",
            model=request.model,
            provider=request.provider,
            usage=UsageInfo(
                prompt_tokens=_token_count(usage_raw.get("prompt_tokens")),
                completion_tokens=_token_count(usage_raw.get("completion_tokens")),
                total_tokens=_token_count(usage_raw.get("total_tokens")),
            ),
        )


class HuggingFaceAdapter(ProviderAdapter):
    """Hugging Face Inference API text-generation format."""

    kind = HUGGINGFACE

    def adapt(self, request: CompletionRequest) -> Dict[str, Any]:
        max_new_tokens = request.max_tokens
        if max_new_tokens is None or max_new_tokens <= 0:
            max_new_tokens = HF_DEFAULT_MAX_NEW_TOKENS
        return {
            "inputs": request.last_message.content,
            "parameters": {
                "temperature": request.temperature,
                "max_new_tokens": max_new_tokens,
            },
        }

    def parse(self, data: Any, request: CompletionRequest) -> CompletionResult:
        content = None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            content = data[0].get("generated_text")
        if not content or not isinstance(content, str):
            content = HF_EMPTY_RESPONSE

        prompt_tokens = estimate_tokens(request.last_message.content)
        completion_tokens = estimate_tokens(content)
        return CompletionResult(
            content=content,
            model=request.model,
            provider=request.provider,
            usage=UsageInfo(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )


_ADAPTERS: Dict[str, ProviderAdapter] = {
    OPENAI_COMPAT: OpenAICompatAdapter(),
    HUGGINGFACE: HuggingFaceAdapter(),
}


def adapter_for(adapter_kind: str) -> ProviderAdapter:
    """Return the adapter implementing ``adapter_kind``."""
    try:
        return _ADAPTERS[adapter_kind]
    except KeyError:
        raise ValueError("No adapter for kind: {}".format(adapter_kind)) from None


def adapt(request: CompletionRequest, adapter_kind: str) -> Dict[str, Any]:
    """Convert ``request`` into the payload for ``adapter_kind``."""
    return adapter_for(adapter_kind).adapt(request)


def normalize(
    adapter_kind: str,
    status_code: int,
    raw_body: str,
    request: CompletionRequest,
) -> CompletionResult:
    """Normalize a raw response for ``adapter_kind`` (see ProviderAdapter)."""
    return adapter_for(adapter_kind).normalize(status_code, raw_body, request)
