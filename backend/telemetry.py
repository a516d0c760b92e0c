# backend/telemetry.py
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict

logger = logging.getLogger("dealfinder.telemetry")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_SENSITIVE_KEYS = {
    "api_key",
    "apikey",
    "authorization",
    "token",
    "access_token",
    "refresh_token",
    "client_secret",
}


def configure_logging(level: str | int = logging.INFO) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("dealfinder")
    root.setLevel(level)
    root.handlers = [handler]
    root.propagate = False

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def log_pipeline_event(event_name: str, **properties: Any) -> None:
    """
    Lightweight analytics hook for pipeline milestones.

    For now, logs to the server log.
    """
    payload: Dict[str, Any] = {"event": event_name, **properties}
    logger.info("pipeline_event: %s", payload)


def _redact_payload(data):
    """Return a deep-copied, redacted version of dict/list/scalars for safe logging."""
    if isinstance(data, dict):
        redacted = {}
        for k, v in data.items():
            if isinstance(k, str) and k.lower() in _SENSITIVE_KEYS:
                redacted[k] = "[REDACTED]"
            else:
                redacted[k] = _redact_payload(v)
        return redacted
    elif isinstance(data, list):
        return [_redact_payload(v) for v in data]
    else:
        return data


def log_vendor_call(payload, level=logging.DEBUG, logger=None):
    """Log an outbound vendor request with secrets removed."""
    logger = logger or logging.getLogger("dealfinder.vendor")
    safe = _redact_payload(deepcopy(payload))
    logger.log(level, "vendor_call %s", safe)
