"""
Logging for the ledger and its CLI.

Ledger records carry an optional ``context`` mapping passed through
``extra`` (operation, event names, supply figures). The text formatter
appends it as ``key=value`` pairs after the message; the JSON formatter
nests it under ``"context"`` and writes integers wider than 53 bits as
decimal strings.

Secrets are scrubbed before any handler formats a record: values of
secret-looking keys, ``key=value`` pairs in messages, and bare 32-byte
hex strings (the shape of a private key; addresses are 20 bytes).
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass, replace
from logging.handlers import RotatingFileHandler
from typing import Any, Mapping, MutableMapping, Optional

ROOT_LOGGER = "cargocoin"
REDACTED = "[REDACTED]"

# Largest integer a JSON consumer using IEEE doubles reads exactly
MAX_SAFE_INTEGER = 2**53 - 1


@dataclass(frozen=True)
class LoggingOptions:
    level: str = "INFO"
    format: str = "text"  # text | json
    file: Optional[str] = None
    redact: bool = True
    max_size_mb: int = 10
    backup_count: int = 3


# -----------------------------------------------------------------------------
# Redaction
# -----------------------------------------------------------------------------

_SECRET_KEY_FRAGMENTS = (
    "api_key",
    "authorization",
    "keystore",
    "mnemonic",
    "passphrase",
    "password",
    "private_key",
    "secret",
    "seed",
)

_RE_KV = re.compile(
    r"(?P<key>private[_-]?key|mnemonic|seed|pass(?:word|phrase)|secret|api[_-]?key)"
    r"\s*[:=]\s*(?P<value>\"[^\"]*\"|'[^']*'|[^\s,;]+)",
    flags=re.IGNORECASE,
)
_RE_PRIVATE_KEY = re.compile(r"\b(?:0x)?[0-9a-fA-F]{64}\b")


def _looks_secret_key(key: str) -> bool:
    lowered = key.lower().replace("-", "_")
    return any(fragment in lowered for fragment in _SECRET_KEY_FRAGMENTS)


def redact_text(value: str) -> str:
    value = _RE_KV.sub(lambda m: f"{m.group('key')}={REDACTED}", value)
    return _RE_PRIVATE_KEY.sub(REDACTED, value)


def _redact_any(value: Any, *, depth: int, max_depth: int) -> Any:
    """Redact secret-like values in a context structure.

    Postconditions:
        - Secret-like keys have their values replaced with REDACTED
        - Integers, bools and None pass through unchanged

    Invariants:
        - Does not recurse beyond max_depth
    """
    if depth > max_depth:
        return REDACTED
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, bytes):
        return REDACTED
    if isinstance(value, Mapping):
        return {
            k: REDACTED
            if isinstance(k, str) and _looks_secret_key(k)
            else _redact_any(v, depth=depth + 1, max_depth=max_depth)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_redact_any(v, depth=depth + 1, max_depth=max_depth) for v in value]
    return value


class RedactionFilter(logging.Filter):
    def __init__(self, *, max_depth: int = 4):
        super().__init__()
        self._max_depth = max_depth

    def filter(self, record: logging.LogRecord) -> bool:
        # %-args are merged into msg before scrubbing
        record.msg = redact_text(record.getMessage())
        record.args = None

        context = getattr(record, "context", None)
        if isinstance(context, MutableMapping):
            record.context = _redact_any(context, depth=0, max_depth=self._max_depth)
        return True


# -----------------------------------------------------------------------------
# Formatters
# -----------------------------------------------------------------------------

def _json_value(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INTEGER else value
    if isinstance(value, Mapping):
        return {str(k): _json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_value(v) for v in value]
    return value


def _text_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(v) for v in value)
    return str(value)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context is not None:
            payload["context"] = _json_value(context)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text with the record's context appended as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if not isinstance(context, Mapping) or not context:
            return line
        pairs = " ".join(f"{k}={_text_value(v)}" for k, v in context.items())
        first, newline, rest = line.partition("\n")
        return f"{first} [{pairs}]{newline}{rest}"


def _formatter(fmt: str, *, timestamps: bool) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    if timestamps:
        return ContextFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    return ContextFormatter("%(levelname)s %(name)s: %(message)s")


# -----------------------------------------------------------------------------
# Setup
# -----------------------------------------------------------------------------

def _normalize_format(fmt: str) -> str:
    lowered = fmt.strip().lower()
    if lowered in {"text", "json"}:
        return lowered
    raise ValueError(f"Invalid log format: {fmt}")


def load_logging_options_from_env(base: Optional[LoggingOptions] = None) -> LoggingOptions:
    """Overlay CARGOCOIN_LOG_* variables on ``base`` (defaults if None).

    Env vars:
        - CARGOCOIN_LOG_LEVEL
        - CARGOCOIN_LOG_FORMAT
        - CARGOCOIN_LOG_FILE
        - CARGOCOIN_LOG_REDACT ("0", "false" or "no" disables redaction)

    Unset variables leave the corresponding option of ``base`` alone.
    """
    options = base if base is not None else LoggingOptions()
    overrides: dict[str, Any] = {}
    if "CARGOCOIN_LOG_LEVEL" in os.environ:
        overrides["level"] = os.environ["CARGOCOIN_LOG_LEVEL"]
    if "CARGOCOIN_LOG_FORMAT" in os.environ:
        overrides["format"] = os.environ["CARGOCOIN_LOG_FORMAT"]
    if "CARGOCOIN_LOG_FILE" in os.environ:
        overrides["file"] = os.environ["CARGOCOIN_LOG_FILE"] or None
    if "CARGOCOIN_LOG_REDACT" in os.environ:
        overrides["redact"] = os.environ["CARGOCOIN_LOG_REDACT"].strip().lower() not in {"0", "false", "no"}
    return replace(options, **overrides)


def configure_logging(options: LoggingOptions) -> None:
    """Configure the "cargocoin" logger hierarchy.

    Preconditions:
        - options.level is a valid logging level name
        - options.format in {"text", "json"}

    Postconditions:
        - Records emit to stderr, and to a rotating file when options.file is set
        - Every handler redacts unless options.redact is False
        - Earlier handlers on the hierarchy are closed and replaced
    """
    fmt = _normalize_format(options.format)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, options.level.strip().upper(), logging.INFO))

    for old in logger.handlers:
        old.close()
    logger.handlers.clear()
    logger.propagate = False

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if options.file:
        handlers.append(
            RotatingFileHandler(
                options.file,
                maxBytes=options.max_size_mb * 1024 * 1024,
                backupCount=options.backup_count,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(_formatter(fmt, timestamps=handler is not handlers[0]))
        if options.redact:
            handler.addFilter(RedactionFilter())
        logger.addHandler(handler)
