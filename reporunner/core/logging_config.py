"""Logging setup for the runner process.

Records go to stdout as JSON lines (``LOG_FORMAT=json``) or plain text.
While the execution loop works on a job, every record carries that job's id,
so process output can be matched against ``<jobs_dir>/<id>/log.txt``.
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional


# Set by the execution loop per job.
job_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("job_id", default="")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s%(job_tag)s: %(message)s"

_REDACTED = "***REDACTED***"

# Clone uris with an embedded token, GitHub tokens, key=value credentials.
_SECRET_PATTERNS = [
    (re.compile(r'(https?://)[^/\s@]+@'), r'\1' + _REDACTED + '@'),
    (re.compile(r'\bgh[pousr]_[a-zA-Z0-9]{20,}\b'), _REDACTED),
    (re.compile(r'(?i)((?:secret|password|token)[=:]\s*)[^\s,\'"]{8,}'), r'\1' + _REDACTED),
]


class _JobContextFilter(logging.Filter):
    """Stamp each record with the id of the job being executed, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job_id = job_id_var.get()
        record.job_tag = f" [{record.job_id}]" if record.job_id else ""
        return True


class _SecretFilter(logging.Filter):
    """Redact credentials from messages, arguments and traceback text."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = _redact(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(_redact(a) if isinstance(a, str) else a for a in record.args)
        if record.exc_text:
            record.exc_text = _redact(record.exc_text)
        return True


def _redact(text: str) -> str:
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class _JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields become top-level keys."""

    _STANDARD = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
        "message", "asctime", "job_id", "job_tag",
    }

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        job_id = getattr(record, "job_id", "") or job_id_var.get()
        if job_id:
            entry["job_id"] = job_id
        entry.update(
            (key, value) for key, value in record.__dict__.items() if key not in self._STANDARD
        )
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return _JsonFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Route all logging to stdout at *log_level* (default INFO).

    *log_format* is ``"json"`` (default) or ``"text"``. Existing root handlers,
    including any installed by uvicorn, are replaced.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_JobContextFilter())
    handler.addFilter(_SecretFilter())
    handler.setFormatter(_formatter((log_format or "json").lower()))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel((log_level or "INFO").upper())

    # One line per webhook delivery is already logged by the endpoint.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
