"""QR Pro structured logging.

Records carry optional structured extras on top of the message:

    event        machine-readable tag, e.g. "microsite.decode_failed"
    ctx          dict of key/value context
    duration_ms  timing attached by @trace

``audit`` emits at the custom AUDIT level. ``trace`` wraps a function with
enter/done/error records and can redact arguments that may hold secrets
(WiFi passwords end up inside encoded payloads).
"""

import functools
import json
import logging
import sys
import time
import traceback
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "qrpro"

# Sits between WARNING (30) and ERROR (40)
AUDIT = 35
logging.addLevelName(AUDIT, "AUDIT")

# Silent until setup_logging() runs
logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())

CLIP_AT = 80
_REDACTED = "<redacted>"


def _clip(value: object, limit: int = CLIP_AT) -> str:
    text = str(value)
    return text if len(text) <= limit else f"{text[:limit]}..."


def _structured(record: logging.LogRecord) -> dict[str, Any]:
    """The extras both formatters render, in display order."""
    extras: dict[str, Any] = {}
    event = getattr(record, "event", None)
    if event is not None:
        extras["event"] = event
    elif record.getMessage():
        extras["msg"] = record.getMessage()
    if hasattr(record, "duration_ms"):
        extras["duration_ms"] = record.duration_ms
    ctx = getattr(record, "ctx", None)
    if ctx:
        extras["ctx"] = ctx
    if record.exc_info and record.exc_info[1] is not None:
        extras["traceback"] = traceback.format_exception(*record.exc_info)
    return extras


class JsonFormatter(logging.Formatter):
    """One JSON object per line; used for --log-file and --json-logs."""

    def format(self, record):
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "ts": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "src": record.name,
        }
        extras = _structured(record)
        if "duration_ms" in extras:
            extras["duration_ms"] = round(extras["duration_ms"], 2)
        entry.update(extras)
        return json.dumps(entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Single-line human output: time, level, logger, event, timing, context."""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        AUDIT: "35",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "31;1",
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def _level(self, record: logging.LogRecord) -> str:
        name = f"{record.levelname:<5}"
        code = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_color or code is None:
            return name
        return f"\033[{code}m{name}\033[0m"

    def format(self, record):
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        extras = _structured(record)
        line = [stamp, self._level(record), f"[{record.name}]"]
        line.append(extras.get("event") or extras.get("msg", ""))
        if "duration_ms" in extras:
            line.append(f"({extras['duration_ms']:.1f}ms)")
        if "ctx" in extras:
            line.extend(f"{key}={_clip(val)}" for key, val in extras["ctx"].items())
        text = " ".join(part for part in line if part)
        if "traceback" in extras:
            text += "\n" + "".join(extras["traceback"]).rstrip()
        return text


def setup_logging(level: str = "INFO", log_file: str | None = None,
                  json_format: bool = False) -> logging.Logger:
    """Install console (and optional JSON file) handlers on the qrpro logger.

    Args:
        level: Level name: DEBUG, INFO, AUDIT, WARNING or ERROR. Unknown
            names fall back to INFO.
        log_file: Also append JSON lines to this path.
        json_format: JSON lines on the console instead of the human format.

    Returns:
        The configured ``qrpro`` logger. Calling again replaces its handlers.
    """
    root = logging.getLogger(ROOT_LOGGER)
    numeric = logging.getLevelName(level.upper())
    root.setLevel(numeric if isinstance(numeric, int) else logging.INFO)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JsonFormatter() if json_format
                         else ConsoleFormatter(use_color=sys.stderr.isatty()))
    root.addHandler(console)

    if log_file:
        to_file = logging.FileHandler(log_file, encoding="utf-8")
        to_file.setFormatter(JsonFormatter())
        root.addHandler(to_file)
    return root


def get_logger(module_name: str) -> logging.Logger:
    """``get_logger("render")`` -> the ``qrpro.render`` logger."""
    return logging.getLogger(f"{ROOT_LOGGER}.{module_name}")


def _emit(log: logging.Logger, level: int, event: str, ctx: dict[str, Any],
          duration_ms: float | None = None, exc_info=None) -> None:
    extra: dict[str, Any] = {"event": event, "ctx": ctx}
    if duration_ms is not None:
        extra["duration_ms"] = duration_ms
    record = log.makeRecord(log.name, level, "", 0, "", (), exc_info, extra=extra)
    log.handle(record)


def audit(event: str, logger: logging.Logger | None = None, **context: Any) -> None:
    """Record a notable state change at AUDIT level.

    Args:
        event: Dotted tag such as "render.saved".
        logger: Defaults to the ``qrpro`` root logger.
        **context: Stored as the record's ``ctx``.
    """
    log = logger or logging.getLogger(ROOT_LOGGER)
    if log.isEnabledFor(AUDIT):
        _emit(log, AUDIT, event, context)


def _describe_args(args: tuple, kwargs: dict, redact: bool) -> dict[str, Any]:
    if redact:
        return {"args": [f"<{type(a).__name__}>" for a in args],
                "kwargs": dict.fromkeys(kwargs, _REDACTED)}
    shown = []
    for arg in args:
        text = repr(arg)
        # Images and long values only by type
        bulky = len(text) > 100 or "Image" in type(arg).__name__
        shown.append(f"<{type(arg).__name__}>" if bulky else _clip(text))
    return {"args": shown, "kwargs": {k: _clip(repr(v)) for k, v in kwargs.items()}}


def _describe_result(result: object) -> str:
    if isinstance(result, (str, bytes)):
        return f"{type(result).__name__}[{len(result)}]"
    if isinstance(result, (int, float, bool)) or result is None:
        return repr(result)
    if isinstance(result, (list, tuple, dict)):
        return f"{type(result).__name__}[{len(result)}]"
    return type(result).__name__


def trace(func=None, *, logger_name: str | None = None, redact: bool = False):
    """Log calls to the wrapped function.

    DEBUG ``<name>.enter`` with arguments, INFO ``<name>.done`` with timing
    and a result summary, ERROR ``<name>.error`` with the traceback before
    re-raising. With ``redact`` only argument types are logged and the
    result is summarized by type alone.

    Usable bare (``@trace``) or with options (``@trace(redact=True)``).
    """
    def decorator(fn):
        log = get_logger(logger_name or fn.__module__.removeprefix(f"{ROOT_LOGGER}."))
        name = fn.__name__

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            if log.isEnabledFor(logging.DEBUG):
                _emit(log, logging.DEBUG, f"{name}.enter", _describe_args(args, kwargs, redact))
            started = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except Exception:
                _emit(log, logging.ERROR, f"{name}.error", {"function": name},
                      duration_ms=(time.perf_counter() - started) * 1000, exc_info=sys.exc_info())
                raise
            if log.isEnabledFor(logging.INFO):
                summary = type(result).__name__ if redact else _describe_result(result)
                _emit(log, logging.INFO, f"{name}.done", {"result": summary},
                      duration_ms=(time.perf_counter() - started) * 1000)
            return result

        return wrapper

    return decorator(func) if func is not None else decorator
