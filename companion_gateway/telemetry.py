"""Logging and telemetry for the companion gateway.

Emits structured log records to stdout and appends them to an append-only
log file for local review. API keys are never logged, only where a key
came from.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("gateway")


_FORMATTER = logging.Formatter(
    "%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)


def _file_handlers() -> List[logging.FileHandler]:
    return [h for h in logger.handlers if isinstance(h, logging.FileHandler)]


def setup_logging(log_file: Optional[str], level: int = logging.INFO) -> None:
    """Attach console and append-only file output to the gateway logger.

    Safe to call more than once: the console handler is added only once,
    and the file handler is swapped when ``log_file`` changes. With
    ``log_file=None`` only the console handler is kept.
    """
    logger.setLevel(level)

    has_console = any(
        type(h) is logging.StreamHandler for h in logger.handlers
    )
    if not has_console:
        console = logging.StreamHandler()
        console.setFormatter(_FORMATTER)
        logger.addHandler(console)

    target = os.path.abspath(log_file) if log_file else None
    for handler in _file_handlers():
        if handler.baseFilename == target:
            return
        logger.removeHandler(handler)
        handler.close()

    if target is None:
        return

    Path(target).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(target, mode="a", encoding="utf-8")
    file_handler.setFormatter(_FORMATTER)
    logger.addHandler(file_handler)


def log_request(
    *,
    operation: str,
    provider: Optional[str],
    model: Optional[str],
    outcome: str,
    usage: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
    key_source: Optional[str] = None,
    request_id: Optional[str] = None,
    thread_id: Optional[str] = None,
    level: int = logging.INFO
) -> None:
    """Log a single gateway invocation as one JSON line.

    Args:
        operation: "completion" or "title".
        provider: The requested provider (None if not known yet).
        model: The requested model.
        outcome: Short outcome label (e.g. "success", "missing_credential").
        usage: Token usage dict if available.
        error: Error message if the request failed.
        key_source: Which precedence level supplied the credential.
        request_id: Gateway-assigned request ID.
        thread_id: Conversation thread the request belongs to.
        level: Logging level for the record.
    """
    record: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "operation": operation,
        "provider": provider,
        "model": model,
        "outcome": outcome,
    }

    if thread_id:
        record["thread_id"] = thread_id

    if key_source:
        record["key_source"] = key_source

    if usage:
        record["usage"] = usage

    if error:
        record["error"] = error

    logger.log(level, json.dumps(record))
