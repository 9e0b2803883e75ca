from __future__ import annotations

import json
import logging
import sys
import uuid
from typing import Any, Dict, Optional

_LOGGER_NAME = "agent_signer"
_REDACT_MARKERS = ("key", "secret", "password", "token")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "warning", service_name: str = "agent-signer") -> logging.Logger:
    """
    Route structured events to stderr. stdout is reserved for command results.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(_LEVELS.get((level or "").strip().lower(), logging.WARNING))
    # Rebind on every call so the handler follows the current sys.stderr.
    for h in [h for h in logger.handlers if getattr(h, "_agent_signer", False)]:
        logger.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler._agent_signer = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    logger.service_name = service_name  # type: ignore[attr-defined]
    return logger


def build_log_context(*, request_id: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
    ctx: Dict[str, Any] = {"request_id": request_id or uuid.uuid4().hex[:16]}
    ctx.update({k: v for k, v in fields.items() if v is not None})
    return ctx


def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in data.items():
        if any(m in k.lower() for m in _REDACT_MARKERS):
            out[k] = "***REDACTED***"
        elif isinstance(v, dict):
            out[k] = _redact(v)
        else:
            out[k] = v
    return out


def log_event(
    event: str,
    *,
    ctx: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    level: str = "info",
) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    lvl = _LEVELS.get(level, logging.INFO)
    if not logger.isEnabledFor(lvl):
        return
    record = {
        "event": event,
        "service": getattr(logger, "service_name", "agent-signer"),
        **_redact(ctx or {}),
        "data": _redact(data or {}),
    }
    logger.log(lvl, json.dumps(record, sort_keys=True, default=str))
