"""Shared test fixtures for the companion gateway tests."""

import json
from pathlib import Path
from typing import Dict, Optional

import pytest

from companion_gateway.config import GatewayConfig, load_config


def _make_config(tmp_path: Path, overrides: Optional[Dict] = None) -> str:
    """Write a minimal test config and return its path."""
    config = {
        "providers": {
            "openai": {"api_key_env": "TEST_OPENAI_KEY"},
        },
        "request_timeout": 12.5,
        "log_file": str(tmp_path / "test.log"),
        "settings_file": str(tmp_path / "settings.json"),
    }
    if overrides:
        config.update(overrides)

    path = tmp_path / "test_config.json"
    path.write_text(json.dumps(config))
    return str(path)


@pytest.fixture()
def test_config_path(tmp_path: Path) -> str:
    """Return the path to a temporary test config file."""
    return _make_config(tmp_path)


@pytest.fixture()
def gateway_config(tmp_path: Path) -> GatewayConfig:
    """A config with no deployment keys at all."""
    return GatewayConfig(env_keys={}, log_file=str(tmp_path / "gateway.log"))
