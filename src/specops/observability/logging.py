"""Structured logging for specops.

Thin layer over the standard logging module that adds:
- Keyword structured data on every log call
- A human-readable ``key=value`` formatter and a JSON-lines formatter
- ``LogContext`` for tagging every record emitted inside a block

Bulk GitHub operations interleave many tasks on one event loop, so the
context is stored in a ``contextvars.ContextVar``: each ``asyncio.Task``
sees only the context entered by its own coroutine.

Security Note:
    Endpoint paths, label names and command output come from files and
    external tools. Pass them as keyword arguments, not inside the message:

    # SAFE - value is rendered as structured data
    logger.info("Created label", label=label_name)

    # UNSAFE - CRLF in the value can forge log lines
    logger.info(f"Created label {label_name}")

Example:
    logger = get_logger(__name__)
    logger.info("Fetching existing labels", repo="cloudfoundry/capi-openapi-spec")

    with LogContext(task="GET /v3/apps - Tags"):
        logger.info("Updated issue", number=42)

    configure_logging(json_format=True, force=True)
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

#: Name of the package logger every module logger hangs off.
ROOT_LOGGER_NAME = "specops"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "specops_log_context", default={}
)


# =============================================================================
# Structured Log Record
# =============================================================================


class StructuredLogRecord(logging.LogRecord):
    """LogRecord carrying a ``structured_data`` dict next to the message."""

    structured_data: dict[str, Any]

    def __init__(
        self,
        name: str,
        level: int,
        pathname: str,
        lineno: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any] | None,
        exc_info: Any,
        func: str | None = None,
        sinfo: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Build the standard record, then attach ``structured_data``.

        Args:
            name: Logger name, e.g. ``specops.github.sync``.
            level: Numeric level.
            pathname: Source file of the logging call.
            lineno: Source line of the logging call.
            msg: Message, may contain %-placeholders.
            args: Arguments for %-formatting.
            exc_info: Exception tuple or None.
            func: Calling function name.
            sinfo: Stack info text.
            **kwargs: Only ``structured_data`` is read; defaults to ``{}``.
        """
        super().__init__(
            name, level, pathname, lineno, msg, args, exc_info, func, sinfo
        )
        self.structured_data = kwargs.get("structured_data", {})


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept arbitrary keyword data.

    Usage:
        logger = StructuredLogger("specops.example")
        logger.warning("Rate limited", attempt=2, delay_ms=20000)
    """

    def debug(
        self,
        msg: object,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log at DEBUG with structured kwargs."""
        if self.isEnabledFor(logging.DEBUG):
            self._log(
                logging.DEBUG,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def info(
        self,
        msg: object,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log at INFO with structured kwargs."""
        if self.isEnabledFor(logging.INFO):
            self._log(
                logging.INFO,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def warning(
        self,
        msg: object,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log at WARNING with structured kwargs."""
        if self.isEnabledFor(logging.WARNING):
            self._log(
                logging.WARNING,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def error(
        self,
        msg: object,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log at ERROR with structured kwargs."""
        if self.isEnabledFor(logging.ERROR):
            self._log(
                logging.ERROR,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def _log(
        self,
        level: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any] | None = None,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        """Merge active ``LogContext`` values with kwargs and emit.

        Explicit kwargs override context values of the same key. The merged
        dict travels to formatters as ``record.structured_data``.

        Args:
            level: Numeric level.
            msg: Message text.
            args: %-format arguments.
            exc_info: Exception info, or True for the current exception.
            extra: Extra record attributes; ``structured_data`` is set on it.
            stack_info: Include a stack trace.
            stacklevel: Frames to skip when locating the caller.
            **kwargs: Structured key-value pairs.
        """
        structured_data = {**_log_context.get(), **kwargs}

        if extra is None:
            extra = {}
        extra["structured_data"] = structured_data

        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )

    def makeRecord(
        self,
        name: str,
        level: int,
        fn: str,
        lno: int,
        msg: object,
        args: Any,
        exc_info: Any,
        func: str | None = None,
        extra: MutableMapping[str, object] | None = None,
        sinfo: str | None = None,
    ) -> logging.LogRecord:
        """Build a ``StructuredLogRecord`` from ``extra["structured_data"]``."""
        extra = dict(extra or {})
        record = StructuredLogRecord(
            name,
            level,
            fn,
            lno,
            msg,
            args,
            exc_info,
            func,
            sinfo,
            structured_data=extra.pop("structured_data", {}),
        )
        for key, value in extra.items():
            if key in ("message", "asctime") or key in record.__dict__:
                raise KeyError(f"Attempt to overwrite {key!r} in LogRecord")
            record.__dict__[key] = value
        return record


# =============================================================================
# Formatters
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """Console formatter: ``timestamp - name - level - message | k=v k=v``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        """Create the formatter.

        Args:
            fmt: Base format. Defaults to
                ``%(asctime)s - %(name)s - %(levelname)s - %(message)s``.
            datefmt: Date format for ``%(asctime)s``.
            include_structured: Append ``| key=value`` pairs when True.
        """
        if fmt is None:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        super().__init__(fmt, datefmt)
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        """Format the base message and append structured pairs.

        Records without ``structured_data`` (e.g. from third-party loggers)
        render as the base format only.
        """
        base = super().format(record)

        if not self.include_structured:
            return base

        structured = getattr(record, "structured_data", {})
        if not structured:
            return base

        pairs = " ".join(f"{k}={_format_value(v)}" for k, v in structured.items())
        return f"{base} | {pairs}"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, structured data merged at top level.

    Keys: ``timestamp`` (UTC ISO 8601), ``level``, ``logger``, ``message``,
    ``exception`` when present, then every structured key. Values that are
    not JSON serialisable fall back to ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_dict.update(getattr(record, "structured_data", {}))

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)


def _format_value(value: Any) -> str:
    """Render one structured value for ``StructuredFormatter``.

    None becomes ``null``, strings containing whitespace are JSON-quoted
    (so an embedded CR or LF stays on one line), dicts and lists become
    JSON, everything else uses ``str()``.

    Example:
        >>> _format_value("GET /v3/apps")
        '"GET /v3/apps"'
        >>> _format_value(["OpenAPI", "Tags"])
        '["OpenAPI", "Tags"]'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        if any(c.isspace() for c in value):
            return json.dumps(value, ensure_ascii=False)
        return value
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


# =============================================================================
# Context Management
# =============================================================================


@dataclass
class LogContext:
    """Add key-value pairs to every record logged inside the block.

    Nesting merges contexts, inner values winning. Because the storage is a
    ContextVar, concurrent asyncio tasks never see each other's context.

    Usage:
        with LogContext(repo="owner/repo"):
            with LogContext(task="GET /v3/apps - Path"):
                logger.info("Created issue")  # carries repo and task
    """

    _kwargs: dict[str, Any] = field(default_factory=dict, init=False, repr=True)
    _token: contextvars.Token[dict[str, Any]] | None = field(
        default=None, init=False, repr=False
    )

    def __init__(self, **kwargs: Any) -> None:
        self._kwargs = kwargs

    def __enter__(self) -> LogContext:
        current = _log_context.get()
        self._token = _log_context.set({**current, **self._kwargs})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


# =============================================================================
# Configuration
# =============================================================================

_configured = False
_config_lock = threading.Lock()


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Install the handler and formatter on the ``specops`` logger.

    Idempotent: later calls do nothing unless ``force=True``, which drops
    the existing handlers first. Guarded by a lock so the CLI and tests can
    call it freely.

    Args:
        level: Minimum level, int or name (``"DEBUG"``).
        json_format: Use ``JSONFormatter`` instead of ``StructuredFormatter``.
        stream: Target stream. Default ``sys.stderr``.
        include_structured: Append ``key=value`` pairs in text mode.
        force: Reconfigure even if already configured.

    Example:
        >>> buffer = io.StringIO()
        >>> configure_logging(level="DEBUG", stream=buffer, force=True)
    """
    with _config_lock:
        if force:
            _reset_logging_impl()
        _configure_logging_impl(level, json_format, stream, include_structured)


def _configure_logging_impl(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
) -> None:
    """Configure logging; caller holds ``_config_lock``."""
    global _configured

    if _configured:
        return

    logging.setLoggerClass(StructuredLogger)

    if stream is None:
        stream = sys.stderr
    handler = logging.StreamHandler(stream)

    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StructuredFormatter(include_structured=include_structured)
    handler.setFormatter(formatter)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def _reset_logging_impl() -> None:
    """Drop handlers from the package logger; caller holds ``_config_lock``."""
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    _configured = False


def reset_logging() -> None:
    """Return logging to the unconfigured state. Intended for tests."""
    with _config_lock:
        _reset_logging_impl()


def get_logger(name: str) -> StructuredLogger:
    """Return a ``StructuredLogger`` for ``name``, configuring on first use.

    Module loggers are created at import time, before the CLI has parsed
    ``--verbose``; lazy default configuration keeps those imports cheap and
    the CLI later reconfigures with ``force=True``.

    Args:
        name: Usually ``__name__``; must live under ``specops`` to reach
            the package handler.

    Returns:
        StructuredLogger accepting ``logger.info("msg", key=value)``.
    """
    if not _configured:
        with _config_lock:
            if not _configured:  # pragma: no branch
                _configure_logging_impl()

    # setLoggerClass() in configure makes this a StructuredLogger.
    return cast(StructuredLogger, logging.getLogger(name))
