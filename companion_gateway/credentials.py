"""Credential resolution for outbound provider calls.

Precedence, first non-empty wins:

1. key supplied with the request (held by the client),
2. key stored in the deployment settings record,
3. deployment key captured from the environment.

A user's own key therefore always overrides a shared deployment key.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from companion_gateway.errors import MissingCredential
from companion_gateway.settings import Settings

SOURCE_REQUEST = "request"
SOURCE_SETTINGS = "settings"
SOURCE_ENVIRONMENT = "environment"


@dataclass(frozen=True)
class ResolvedKey:
    """Result of API key resolution."""

    provider: str
    source: str
    api_key: str = field(repr=False)


def resolve_key(
    provider: str,
    supplied_keys: Optional[Mapping[str, str]],
    settings: Optional[Settings],
    env_keys: Optional[Mapping[str, str]],
) -> ResolvedKey:
    """Resolve the API key to use for ``provider``.

    Args:
        provider: Registered provider identifier.
        supplied_keys: Provider -> key sent with the current request.
        settings: Current settings snapshot, or None when absent.
        env_keys: Provider -> key captured from the environment.

    Returns:
        ResolvedKey with the key and where it came from.

    Raises:
        MissingCredential: If no level yields a non-empty key.
    """
    candidates = (
        (SOURCE_REQUEST, (supplied_keys or {}).get(provider)),
        (SOURCE_SETTINGS, settings.key_for(provider) if settings else None),
        (SOURCE_ENVIRONMENT, (env_keys or {}).get(provider)),
    )
    for source, key in candidates:
        if key:
            return ResolvedKey(provider=provider, source=source, api_key=key)

    raise MissingCredential(provider)
