"""Provider registry: static lookup from provider identifier to endpoint.

The registry is a closed table. Adding a provider means adding one entry
here and, if it speaks a new wire format, one adapter class in
``companion_gateway.adapters``.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping

from companion_gateway.errors import UnsupportedProvider

OPENAI_COMPAT = "openai_compat"
HUGGINGFACE = "huggingface"


@dataclass(frozen=True)
class ProviderEntry:
    """Registry entry for a single upstream provider."""

    name: str
    endpoint_template: str
    adapter_kind: str
    env_var: str
    settings_field: str
    identifies_app: bool = False

    def endpoint_for(self, model: str) -> str:
        """Return the concrete endpoint URL for ``model``."""
        return self.endpoint_template.format(model=model)


_REGISTRY: Dict[str, ProviderEntry] = {
    "openai": ProviderEntry(
        name="openai",
        endpoint_template="https://api.openai.com/v1/chat/completions",
        adapter_kind=OPENAI_COMPAT,
        env_var="OPENAI_API_KEY",
        settings_field="dangerous_openai_api_key",
    ),
    "openrouter": ProviderEntry(
        name="openrouter",
        endpoint_template="https://openrouter.ai/api/v1/chat/completions",
        adapter_kind=OPENAI_COMPAT,
        env_var="OPENROUTER_API_KEY",
        settings_field="dangerous_openrouter_api_key",
        identifies_app=True,
    ),
    "huggingface": ProviderEntry(
        name="huggingface",
        endpoint_template="https://api-inference.huggingface.co/models/{model}",
        adapter_kind=HUGGINGFACE,
        env_var="HUGGINGFACE_API_KEY",
        settings_field="dangerous_huggingface_api_key",
    ),
}

REGISTRY: Mapping[str, ProviderEntry] = _REGISTRY


def supported_providers() -> List[str]:
    """Return the registered provider identifiers in sorted order."""
    return sorted(_REGISTRY.keys())


def resolve(provider: str) -> ProviderEntry:
    """Look up a provider entry.

    Raises:
        UnsupportedProvider: If ``provider`` is not registered.
    """
    entry = _REGISTRY.get(provider) if isinstance(provider, str) else None
    if entry is None:
        raise UnsupportedProvider(
            str(provider),
            details="Supported providers: {}".format(", ".join(supported_providers())),
        )
    return entry
