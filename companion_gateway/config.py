"""Configuration loader for the companion gateway.

Reads an optional JSON config file with deployment parameters. Default API
keys are captured from the environment once, when the configuration is
built, and then travel with the config object; no other module reads the
environment.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from companion_gateway.registry import REGISTRY

DEFAULT_TIMEOUT = 30.0
DEFAULT_REFERER = "https://lovable.dev"
DEFAULT_APP_TITLE = "Multi-Mind Companion"


@dataclass
class GatewayConfig:
    """Top-level gateway configuration."""

    env_keys: Dict[str, str] = field(default_factory=dict)
    request_timeout: float = DEFAULT_TIMEOUT
    log_file: str = "logs/gateway.log"
    settings_file: Optional[str] = None
    app_referer: str = DEFAULT_REFERER
    app_title: str = DEFAULT_APP_TITLE


def capture_env_keys(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Snapshot provider API keys from the environment.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``).
        overrides: Provider -> env var name, replacing the registry default.

    Returns:
        Provider -> key for every provider whose variable is set and non-empty.
    """
    if environ is None:
        environ = os.environ
    overrides = overrides or {}

    keys: Dict[str, str] = {}
    for name, entry in REGISTRY.items():
        value = environ.get(overrides.get(name, entry.env_var), "")
        if value:
            keys[name] = value
    return keys


def default_config(environ: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    """Build a configuration from defaults and the environment only."""
    return GatewayConfig(env_keys=capture_env_keys(environ))


def load_config(
    path: Union[str, Path],
    environ: Optional[Mapping[str, str]] = None,
) -> GatewayConfig:
    """Load gateway configuration from a JSON file.

    Args:
        path: Path to the JSON config file.
        environ: Environment to capture default keys from (defaults to
            ``os.environ``).

    Returns:
        A fully resolved GatewayConfig instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the config file contains invalid data.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw: Dict[str, Any] = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a JSON object: {}".format(path))

    api_key_env: Dict[str, str] = {}
    for name, prov in raw.get("providers", {}).items():
        if name not in REGISTRY:
            raise ValueError("Unknown provider in config: {}".format(name))
        if "api_key_env" in prov:
            api_key_env[name] = prov["api_key_env"]

    timeout = float(raw.get("request_timeout", DEFAULT_TIMEOUT))
    if timeout <= 0:
        raise ValueError("request_timeout must be positive, got {}".format(timeout))

    return GatewayConfig(
        env_keys=capture_env_keys(environ, api_key_env),
        request_timeout=timeout,
        log_file=raw.get("log_file", "logs/gateway.log"),
        settings_file=raw.get("settings_file"),
        app_referer=raw.get("app_referer", DEFAULT_REFERER),
        app_title=raw.get("app_title", DEFAULT_APP_TITLE),
    )
