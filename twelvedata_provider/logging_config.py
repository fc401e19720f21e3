import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

_APIKEY_QUERY_RE = re.compile(r"(apikey=)([^&\s\"']+)", re.IGNORECASE)
REDACTED = "[REDACTED]"


def redact_api_key(text: str) -> str:
    """Mask the value of every ``apikey=`` query parameter in ``text``."""
    return _APIKEY_QUERY_RE.sub(r"\1" + REDACTED, text)


class ApiKeyRedactionFilter(logging.Filter):
    """Scrub ``apikey=...`` from messages and string context values.

    Installed on the handler so that URLs logged by third-party code (httpx
    logs each request URL at INFO) never reach the output with a key in them.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = redact_api_key(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = {k: redact_api_key(v) if isinstance(v, str) else v for k, v in context.items()}
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line; the ``context`` extra is merged into it.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_record.update(context)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def configure_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the root logger once.

    ``level`` and ``log_format`` fall back to ``LOG_LEVEL`` (default WARNING)
    and ``LOG_FORMAT`` (``TEXT`` or ``JSON``). Output goes to stderr so that
    series written to stdout stay clean.
    """
    root = logging.getLogger()
    if root.handlers:
        return root

    fmt = (log_format or os.environ.get("LOG_FORMAT") or "TEXT").upper()
    level_name = (level or os.environ.get("LOG_LEVEL") or "WARNING").upper()
    resolved = getattr(logging, level_name, logging.WARNING)
    root.setLevel(resolved)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.addFilter(ApiKeyRedactionFilter())
    if fmt == "JSON":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return root
