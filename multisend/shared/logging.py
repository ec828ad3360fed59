"""Logging for MultiSend.

Log records never carry keys, seed phrases or RPC credentials: every handler
installed by ``setup_logging`` sanitizes messages and context before writing.
Batch code attaches structured context (actor, token, counts, references)
through ``get_logger`` / ``log_with_context``. The JSON formatter emits it as
a ``context`` object and the human formatter appends it as ``key=value`` pairs.

Environment:
    MULTISEND_LOG_LEVEL   DEBUG, INFO (default), WARNING, ERROR, CRITICAL
    MULTISEND_LOG_FORMAT  human (default) or json
    MULTISEND_LOG_STDOUT  1/true/yes to log to stdout
    MULTISEND_LOG_DIR     directory for multisend.log (enables file logging)
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

_TRUE_VALUES = ("1", "true", "yes")

# Chatty at INFO; only shown when MultiSend itself runs at DEBUG.
NOISY_LOGGERS = ("web3", "urllib3")


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def as_int(self) -> int:
        return logging.getLevelName(self.value)


@dataclass
class LoggingConfig:
    log_level: LogLevel = LogLevel.INFO
    log_format: str = "human"
    log_to_file: bool = False
    log_to_stdout: bool = False
    log_dir: Path | None = None
    log_filename: str = "multisend.log"
    sanitize_sensitive: bool = True
    include_context: bool = True

    @classmethod
    def from_environment(cls) -> "LoggingConfig":
        try:
            log_level = LogLevel(os.getenv("MULTISEND_LOG_LEVEL", "INFO").upper())
        except ValueError:
            log_level = LogLevel.INFO

        log_format = os.getenv("MULTISEND_LOG_FORMAT", "human").lower()
        env_dir = os.getenv("MULTISEND_LOG_DIR")
        log_dir = Path(env_dir) if env_dir else None

        return cls(
            log_level=log_level,
            log_format="json" if log_format == "json" else "human",
            log_to_file=log_dir is not None,
            log_to_stdout=os.getenv("MULTISEND_LOG_STDOUT", "").lower() in _TRUE_VALUES,
            log_dir=log_dir,
        )


REDACTED = "[REDACTED]"

SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # private_key=0x<64 hex>; bare 64-hex values are transaction hashes and stay.
    (
        re.compile(
            r"(private[_-]?key['\"]?\s*[:=]\s*['\"]?)(?:0x)?[A-Fa-f0-9]{64}",
            re.IGNORECASE,
        ),
        rf"\1{REDACTED}",
    ),
    (
        re.compile(
            r"((?:mnemonic|seed[_ -]?phrase)['\"]?\s*[:=]\s*['\"]?)[a-z]+(?:\s+[a-z]+){11,23}",
            re.IGNORECASE,
        ),
        rf"\1{REDACTED}",
    ),
    # Hosted RPC endpoints carry the project key in the path: .../v3/<key>
    (
        re.compile(r"(https?://[^\s/]+/(?:v[0-9]+/)?)([A-Za-z0-9_-]{24,})"),
        rf"\1{REDACTED}",
    ),
    (
        re.compile(
            r"((?:api[_-]?key|secret|token[_-]?secret|password)['\"]?\s*[:=]\s*['\"]?)[^\s'\"&]+",
            re.IGNORECASE,
        ),
        rf"\1{REDACTED}",
    ),
]

SENSITIVE_KEYS = ("private_key", "privatekey", "mnemonic", "seed", "password", "secret", "api_key")

ADDRESS_PATTERN = re.compile(r"\b0x[0-9A-Fa-f]{40}\b")


def sanitize_message(message: str, preserve_addresses: bool = True) -> str:
    if not message:
        return message
    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    if not preserve_addresses:
        message = ADDRESS_PATTERN.sub("[ADDRESS_REDACTED]", message)
    return message


def _sanitize_value(value: Any, preserve_addresses: bool) -> Any:
    if isinstance(value, str):
        return sanitize_message(value, preserve_addresses)
    if isinstance(value, dict):
        return sanitize_dict(value, preserve_addresses)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item, preserve_addresses) for item in value]
    return value


def sanitize_dict(
    data: dict[str, Any], preserve_addresses: bool = True
) -> dict[str, Any]:
    return {
        key: REDACTED
        if any(s in str(key).lower() for s in SENSITIVE_KEYS)
        else _sanitize_value(value, preserve_addresses)
        for key, value in data.items()
    }


@dataclass
class ErrorMapping:
    error_pattern: str
    user_message: str
    log_level: LogLevel = LogLevel.ERROR
    suggest_action: str | None = None


ERROR_MAPPINGS: list[ErrorMapping] = [
    ErrorMapping(
        error_pattern="reentrant|already in flight|reentrancy",
        user_message="A batch from this account is already being processed.",
        log_level=LogLevel.WARNING,
        suggest_action="Wait for the current batch to finish before sending again.",
    ),
    ErrorMapping(
        error_pattern="settlement timed out|timeout|timed out",
        user_message="The network did not confirm the batch in time.",
        log_level=LogLevel.WARNING,
        suggest_action="Check the explorer before retrying to avoid paying twice.",
    ),
    ErrorMapping(
        error_pattern="refund failed|refundfailed",
        user_message="The excess value could not be refunded, so the batch was reverted.",
        log_level=LogLevel.ERROR,
        suggest_action="Send exactly the batch total and try again.",
    ),
    ErrorMapping(
        error_pattern="insufficient value|insufficientvalue",
        user_message="The value sent does not cover the batch total.",
        log_level=LogLevel.WARNING,
        suggest_action="Send at least the total amount shown in the summary.",
    ),
    ErrorMapping(
        error_pattern="insufficientbalance|insufficient balance|insufficient funds",
        user_message="Insufficient balance for this batch.",
        log_level=LogLevel.WARNING,
        suggest_action="Reduce the amounts or top up the sending account.",
    ),
    ErrorMapping(
        error_pattern="duplicate ?address",
        user_message="The batch contains the same address more than once.",
        log_level=LogLevel.WARNING,
        suggest_action="Merge or remove the duplicated recipients.",
    ),
    ErrorMapping(
        error_pattern="too ?many ?recipients",
        user_message="The batch has more recipients than allowed in one transaction.",
        log_level=LogLevel.WARNING,
        suggest_action="Split the list into smaller batches.",
    ),
    ErrorMapping(
        error_pattern="precision|decimal places",
        user_message="An amount has more decimal places than the token supports.",
        log_level=LogLevel.WARNING,
        suggest_action="Round the amount to the token's precision.",
    ),
    ErrorMapping(
        error_pattern="invalid.*recipient|invalid.*address|address.*invalid",
        user_message="A recipient address or amount is not valid.",
        log_level=LogLevel.WARNING,
        suggest_action="Please check the highlighted recipient.",
    ),
    ErrorMapping(
        error_pattern="no ?token ?selected",
        user_message="Select a token before sending.",
        log_level=LogLevel.WARNING,
    ),
    ErrorMapping(
        error_pattern="no ?recipients",
        user_message="Add at least one recipient before sending.",
        log_level=LogLevel.WARNING,
    ),
    ErrorMapping(
        error_pattern="zero ?total",
        user_message="The batch total must be greater than zero.",
        log_level=LogLevel.WARNING,
    ),
    ErrorMapping(
        error_pattern="connection refused|cannot connect|connection error",
        user_message="Unable to connect to the settlement service.",
        log_level=LogLevel.WARNING,
        suggest_action="Check your internet connection and try again.",
    ),
    ErrorMapping(
        error_pattern="rate limit|too many requests|429",
        user_message="Too many requests. Please slow down.",
        log_level=LogLevel.WARNING,
        suggest_action="Wait a moment and try again.",
    ),
    ErrorMapping(
        error_pattern="total ?amount ?mismatch|do not add up|does not match the committed",
        user_message="The batch amounts do not add up to the committed total.",
        log_level=LogLevel.ERROR,
        suggest_action="Send exactly the batch total or enable excess refunds.",
    ),
    ErrorMapping(
        error_pattern="rejected|reverted|execution reverted",
        user_message="The network rejected the batch. No funds were moved.",
        log_level=LogLevel.ERROR,
        suggest_action="Review the batch and try again.",
    ),
]


def get_user_friendly_error(error: Exception | str) -> tuple[str, str | None]:
    text = str(error).lower()
    for mapping in ERROR_MAPPINGS:
        if re.search(mapping.error_pattern, text):
            return mapping.user_message, mapping.suggest_action
    return "An unexpected error occurred.", None


def format_error_for_user(error: Exception | str) -> str:
    user_message, suggestion = get_user_friendly_error(error)
    return f"{user_message} {suggestion}" if suggestion else user_message


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; batch context goes under ``context``."""

    def __init__(
        self,
        sanitize: bool = True,
        include_context: bool = True,
        preserve_addresses: bool = True,
    ):
        super().__init__()
        self.sanitize = sanitize
        self.include_context = include_context
        self.preserve_addresses = preserve_addresses

    def _clean(self, value: Any) -> Any:
        if not self.sanitize:
            return value
        return _sanitize_value(value, self.preserve_addresses)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._clean(record.getMessage()),
        }
        if self.include_context:
            entry.update(module=record.module, function=record.funcName, line=record.lineno)

        context = _record_context(record)
        if context:
            entry["context"] = self._clean(context)
        if record.exc_info:
            entry["exception"] = self._clean(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``time - logger - LEVEL - message [key=value ...]``"""

    def __init__(self, sanitize: bool = True, preserve_addresses: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.sanitize = sanitize
        self.preserve_addresses = preserve_addresses

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = _record_context(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            text = f"{text} [{pairs}]"
        if self.sanitize:
            text = sanitize_message(text, self.preserve_addresses)
        return text


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that carries a ``context`` dict into every record."""

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None):
        super().__init__(logger, context or {})

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra", {}))
        context = {**self.extra, **extra.get("context", {})}
        if context:
            extra["context"] = context
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **kwargs: Any) -> "ContextAdapter":
        return ContextAdapter(self.logger, {**self.extra, **kwargs})


def get_logger(name: str, context: dict[str, Any] | None = None) -> ContextAdapter:
    return ContextAdapter(logging.getLogger(name), context)


def log_with_context(
    logger: logging.Logger | ContextAdapter,
    level: int,
    message: str,
    **context: Any,
) -> None:
    if isinstance(logger, ContextAdapter):
        logger.with_context(**context).log(level, message)
    else:
        logger.log(level, message, extra={"context": context})


_logging_initialized = False


def _build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.log_format == "json":
        return StructuredFormatter(
            sanitize=config.sanitize_sensitive,
            include_context=config.include_context,
        )
    return HumanReadableFormatter(sanitize=config.sanitize_sensitive)


def _build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if config.log_to_file:
        log_dir = config.log_dir or Path.home() / ".config" / "multisend"
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / config.log_filename, mode="a", encoding="utf-8")
        )
    if config.log_to_stdout:
        handlers.append(logging.StreamHandler(sys.stdout))
    for handler in handlers:
        handler.setFormatter(_build_formatter(config))
    return handlers


def setup_logging(config: LoggingConfig | None = None, force: bool = False) -> None:
    """Install MultiSend's handlers on the root logger once per process."""
    global _logging_initialized

    if _logging_initialized and not force:
        return

    config = config or LoggingConfig.from_environment()
    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level.as_int)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in _build_handlers(config):
        root_logger.addHandler(handler)

    noisy_level = logging.DEBUG if config.log_level == LogLevel.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    _logging_initialized = True


__all__ = [
    "LogLevel",
    "LoggingConfig",
    "ContextAdapter",
    "StructuredFormatter",
    "HumanReadableFormatter",
    "sanitize_message",
    "sanitize_dict",
    "get_user_friendly_error",
    "format_error_for_user",
    "setup_logging",
    "get_logger",
    "log_with_context",
]
