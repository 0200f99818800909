"""
unheard/core/logger.py — JSONL structured logger for UNHEARD.

UnheardLogger appends one JSON object per line to
``<log_dir>/unheard_{date}.jsonl`` and starts a new file when the UTC date
changes. WARN, ERROR and CRITICAL entries are also echoed to stderr through
the stdlib logger ``unheard.jsonl``, which sits beside the package's module
loggers rather than above them. Thread-safe via threading.Lock.

The log directory is ``UNHEARD_LOG_DIR`` when set, else the configured
``logging.log_dir``, else ``logs``.

Usage::

    from unheard.core.logger import configure_logging, get_logger
    configure_logging(config.logging)        # optional, once at startup
    log = get_logger()
    log.info("dispatch", "dispatch_start", {"kind": "text"})
    log.perf("dispatch", "dispatch_done", latency_ms=12.4, data={"kind": "text"})
"""

from __future__ import annotations

import json
import logging
import os
import platform
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from unheard.core.config import LoggingConfig

_LOG_DIR_ENV = "UNHEARD_LOG_DIR"
_PACKAGE_LOGGER = "unheard"

# ── stderr echo for WARN+ entries ─────────────────────────────
_echo = logging.getLogger(f"{_PACKAGE_LOGGER}.jsonl")
if not _echo.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    _echo.addHandler(_handler)
_echo.setLevel(logging.WARNING)
_echo.propagate = False

# ── Singleton storage ─────────────────────────────────────────
_instance: Optional["UnheardLogger"] = None
_instance_lock = threading.Lock()


def _resolve_log_dir(configured: Optional[str] = None) -> Path:
    return Path(os.environ.get(_LOG_DIR_ENV) or configured or "logs")


class UnheardLogger:
    """
    JSONL structured logger.

    Entries look like::

        {"timestamp_iso": "2026-03-02T10:20:49.123456+00:00", "level": "PERF",
         "phase": "dispatch", "event": "dispatch_done",
         "data": {"kind": "voice", "failed": false}, "latency_ms": 41.2}

    ``latency_ms`` is only present on PERF entries. Values in ``data`` that
    JSON cannot encode are written with ``str()``.

    Applications share one instance through :func:`get_logger`; tests may
    construct their own against a temporary directory.

    Args:
        log_dir: Directory for the JSONL files. Resolved from the
            environment when omitted.
    """

    _LEVELS_ECHOED = {"WARN": logging.WARNING, "ERROR": logging.ERROR, "CRITICAL": logging.CRITICAL}

    def __init__(self, log_dir: Optional[Path] = None) -> None:
        self._lock = threading.Lock()
        self._log_dir = Path(log_dir) if log_dir is not None else _resolve_log_dir()
        self._file: Optional[Any] = None
        self._current_date: str = ""
        with self._lock:
            self._rotate_if_needed(datetime.now(tz=timezone.utc))
        self.info("system", "startup", {
            "python_version": sys.version,
            "platform": platform.platform(),
            "timestamp_local": datetime.now().isoformat(),
        })

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    # ── Entry points ──────────────────────────────────────────

    def info(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        """
        Record an INFO entry.

        Args:
            phase: Subsystem (``'dispatch'``, ``'voice'``, ...).
            event: Short event identifier (``'dispatch_start'``).
            data: Optional extra context.
        """
        self._emit("INFO", phase, event, data)

    def warn(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self._emit("WARN", phase, event, data)

    def error(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self._emit("ERROR", phase, event, data)

    def critical(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self._emit("CRITICAL", phase, event, data)

    def perf(
        self,
        phase: str,
        event: str,
        latency_ms: float,
        data: Optional[dict] = None,
    ) -> None:
        """Record a PERF entry carrying *latency_ms* (rounded to microseconds)."""
        self._emit("PERF", phase, event, data, latency_ms=latency_ms)

    def flush(self) -> None:
        with self._lock:
            if self._file and not self._file.closed:
                self._file.flush()

    def close(self) -> None:
        """Close the current file. A later entry reopens it."""
        with self._lock:
            if self._file and not self._file.closed:
                self._file.close()
            self._current_date = ""

    # ── Internals ─────────────────────────────────────────────

    def _emit(
        self,
        level: str,
        phase: str,
        event: str,
        data: Optional[dict],
        latency_ms: Optional[float] = None,
    ) -> None:
        now = datetime.now(tz=timezone.utc)
        record: dict[str, Any] = {
            "timestamp_iso": now.isoformat(),
            "level": level,
            "phase": phase,
            "event": event,
            "data": data or {},
        }
        if latency_ms is not None:
            record["latency_ms"] = round(latency_ms, 3)
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str)

        with self._lock:
            self._rotate_if_needed(now)
            if self._file and not self._file.closed:
                self._file.write(line + "\n")

        echo_level = self._LEVELS_ECHOED.get(level)
        if echo_level is not None:
            _echo.log(echo_level, "[%s] %s | %s", phase, event, data or {})

    def _rotate_if_needed(self, now: datetime) -> None:
        # Caller holds self._lock
        today = now.strftime("%Y-%m-%d")
        if today == self._current_date:
            return
        if self._file and not self._file.closed:
            self._file.close()
        self._current_date = today
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._file = open(  # noqa: WPS515
            self._log_dir / f"unheard_{today}.jsonl", "a", encoding="utf-8", buffering=1
        )


# ──────────────────────────────────────────────────────────────
# Process-wide instance
# ──────────────────────────────────────────────────────────────

def get_logger() -> UnheardLogger:
    """
    Return the shared :class:`UnheardLogger`, creating it on first use.

    Returns:
        The process-wide logger.
    """
    global _instance
    if _instance is None:
        with _instance_lock:
            if _instance is None:
                _instance = UnheardLogger()
    return _instance


def configure_logging(config: LoggingConfig) -> UnheardLogger:
    """
    Apply a :class:`LoggingConfig` to both logging layers.

    Sets the level of the ``unheard`` stdlib logger tree and points the shared
    JSONL logger at the configured directory, reopening it there if it was
    already writing elsewhere. ``UNHEARD_LOG_DIR`` still takes precedence.

    Args:
        config: Level and JSONL directory.

    Returns:
        The shared :class:`UnheardLogger`.
    """
    global _instance
    logging.getLogger(_PACKAGE_LOGGER).setLevel(config.level.upper())
    log_dir = _resolve_log_dir(config.log_dir)
    with _instance_lock:
        if _instance is not None and _instance.log_dir != log_dir:
            _instance.close()
            _instance = None
        if _instance is None:
            _instance = UnheardLogger(log_dir)
    return _instance
