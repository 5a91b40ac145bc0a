"""Deployment settings record consumed (read-only) by the gateway.

The settings row lives in an external store. The gateway only needs a
snapshot of it per invocation, obtained through a ``SettingsStore``.
Stores never cache: every ``load()`` reflects the current record.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, ValidationError

_logger = logging.getLogger("gateway")


class SettingsUnavailable(Exception):
    """Raised when the settings record exists but cannot be read."""


class Settings(BaseModel):
    """Snapshot of the deployment-wide settings row."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    dangerous_openai_api_key: Optional[str] = None
    dangerous_openrouter_api_key: Optional[str] = None
    dangerous_huggingface_api_key: Optional[str] = None
    chat_using: Optional[str] = None
    default_model: Optional[str] = None
    default_temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    utility_title_model: Optional[str] = None
    system_prompt: Optional[str] = None

    def key_for(self, provider: str) -> Optional[str]:
        """Return the stored API key for ``provider`` (None if unset)."""
        return getattr(self, "dangerous_{}_api_key".format(provider), None)


class SettingsStore(Protocol):
    """Accessor for the single deployment-wide settings record."""

    def load(self) -> Optional[Settings]:
        ...


class StaticSettingsStore:
    """Store that always returns the same snapshot."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings

    def load(self) -> Optional[Settings]:
        return self._settings


class JsonSettingsStore:
    """Store backed by a JSON file holding the settings row.

    The file is re-read on every call. A missing file means "no settings".
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Optional[Settings]:
        """Read the settings row.

        Raises:
            SettingsUnavailable: If the file cannot be parsed as a settings row.
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path) as f:
                raw = json.load(f)
            if raw is None:
                return None
            return Settings.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            raise SettingsUnavailable(
                "Could not read settings from {}: {}".format(self.path, exc)
            ) from exc


def load_snapshot(store: Optional[SettingsStore]) -> Optional[Settings]:
    """Fetch a fresh settings snapshot, treating read failures as absent."""
    if store is None:
        return None
    try:
        return store.load()
    except SettingsUnavailable as exc:
        _logger.error("Error fetching settings: %s", exc)
        return None
