"""
Structured JSON logging with secret scrubbing and per-request context.

Every record emitted while a request is being handled carries that request's
``request_id`` (see ``bind_request_id``), so the lines for one RFQ submission
can be pulled out of the combined API log.
"""
import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

from storefront.core.config import settings

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# key=value / key: value pairs whose value must never reach the log
_SENSITIVE_PATTERNS = re.compile(
    r'(password|secret|token|api_key|apikey|authorization|credential)'
    r'[\"\']?\s*[:=]\s*[\"\']?[^\s,;\"\'}{]+',
    re.IGNORECASE,
)
_BEARER_PATTERN = re.compile(r'(Bearer\s+)[A-Za-z0-9\-_.]+', re.IGNORECASE)

_SENSITIVE_KEYS = frozenset({
    "password", "new_password", "hashed_password",
    "secret", "secret_key", "token", "access_token", "csrf_token", "csrftoken",
    "authorization", "credential", "idempotency_key",
})

_EXTRA_FIELDS = (
    "request_id", "actor_type", "actor_id", "action", "entity_type", "entity_id",
    "identifier", "path", "method", "status_code", "duration_ms", "order_id",
)


def bind_request_id(request_id: Optional[str] = None) -> str:
    """Attach a request id to the current context; generates one when absent."""
    request_id = request_id or uuid.uuid4().hex
    _request_id.set(request_id)
    return request_id


def scrub(obj):
    """Recursively redact sensitive keys from dicts and lists."""
    if isinstance(obj, dict):
        return {
            k: "***REDACTED***" if k.lower() in _SENSITIVE_KEYS else scrub(v)
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [scrub(i) for i in obj]
    return obj


def scrub_message(message: str) -> str:
    message = _BEARER_PATTERN.sub(r'\1***REDACTED***', message)
    return _SENSITIVE_PATTERNS.sub(r'\1=***REDACTED***', message)


class RequestContextFilter(logging.Filter):
    """Copies the context's request id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": scrub_message(record.getMessage()),
        }

        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exception"] = scrub_message(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


def setup_logging():
    """Configure the root logger once; later calls are no-ops."""
    root_logger = logging.getLogger()
    if any(isinstance(h.formatter, StructuredFormatter) for h in root_logger.handlers):
        return

    root_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(RequestContextFilter())
    root_logger.addHandler(handler)

    # Our access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class AuditLogger:
    """Emits ``AUDIT:`` lines for back-office changes; the DB row is written by the caller."""

    def __init__(self):
        self.logger = get_logger("audit")

    def log(
        self,
        action: str,
        actor_type: Optional[str] = None,
        actor_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        message = f"AUDIT: {action}"
        if entity_type and entity_id:
            message += f" on {entity_type}:{entity_id}"
        if details:
            message += f" - {json.dumps(scrub(details), default=str)}"

        self.logger.info(message, extra={
            "actor_type": actor_type,
            "actor_id": actor_id,
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
        })


audit_logger = AuditLogger()
