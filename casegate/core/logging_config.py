"""Logging setup for casegate.

Every record handled during a request carries ``request_id``, ``user_id`` and
``path``. The request context middleware sets the request id and path; the
auth dependency sets the user once the bearer token is accepted. Production
writes JSON lines, development a one-line text format with the same context.
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import IO, Optional


request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
user_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default="")
request_path_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_path", default="")

_CONTEXT_FIELDS = (
    ("request_id", request_id_var),
    ("user_id", user_id_var),
    ("path", request_path_var),
)

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] user=%(user_id)s %(name)s: %(message)s"

_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "passlib": logging.ERROR,
}


class _ContextFilter(logging.Filter):
    """Copy the request context onto the record unless the caller passed it
    explicitly through ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        for attr, var in _CONTEXT_FIELDS:
            if not hasattr(record, attr):
                setattr(record, attr, var.get(""))
        return True


class _JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields become top-level keys."""

    _BUILTIN = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys())

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in self._BUILTIN or key in entry:
                continue
            # Empty context fields outside a request are noise.
            if value == "" and key in ("request_id", "user_id", "path"):
                continue
            entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


# Redaction of credentials: bearer headers, bare JWTs, key=value secrets.

_SECRET_PATTERNS = [
    re.compile(r'(?i)(bearer\s+)[a-zA-Z0-9._\-]{20,}'),
    re.compile(r'\beyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'),
    re.compile(
        r'(?i)((?:password|new_password|current_password|refresh_?token|token|secret|authorization)'
        r'["\']?\s*[=:]\s*["\']?)[^\s,\'"]{4,}'
    ),
]

_REDACTED = "***REDACTED***"


def _redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + _REDACTED if m.lastindex else _REDACTED, text)
    return text


class _SecretFilter(logging.Filter):
    """Render the message once, then strip credentials from it and from any
    cached traceback text."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        record.msg = _redact(str(record.msg))
        if record.exc_text:
            record.exc_text = _redact(record.exc_text)
        return True


def build_handler(log_format: str = "json", stream: Optional[IO[str]] = None) -> logging.Handler:
    """Stream handler with context stamping, redaction and the chosen format."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(_ContextFilter())
    handler.addFilter(_SecretFilter())
    if log_format.lower() == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Replace the root handlers with a single casegate handler.

    Args:
        log_level: Root level name, INFO when omitted.
        log_format: ``"json"`` (default) or ``"text"``.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "json").lower()

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(build_handler(fmt))
    root.setLevel(level)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logging.getLogger(__name__).info("Logging configured", extra={"level": level, "format": fmt})
