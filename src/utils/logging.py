"""Logger factory shared by the SnapTag engine, adapters, and CLIs."""

from __future__ import annotations

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_LOG_ROOT = Path(os.getenv("SNAPTAG_LOG_DIR") or (_PROJECT_ROOT / "log"))
_LOG_FILENAME = "snaptag.log"
_RESERVED_KEYS = frozenset(logging.makeLogRecord({}).__dict__.keys()) | {"stack_info", "asctime", "message"}


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_KEYS}


class _JsonLinesFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        payload.update(_record_extras(record))

        try:
            return json.dumps(payload, ensure_ascii=False, sort_keys=True)
        except TypeError:
            # Sets, paths and dataclasses show up in extras; stringify them.
            safe_payload = {
                key: (value if isinstance(value, (str, int, float, bool, type(None))) else str(value))
                for key, value in payload.items()
            }
            return json.dumps(safe_payload, ensure_ascii=False, sort_keys=True)


class _KeyValueFormatter(logging.Formatter):
    """Console formatter that appends ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _record_extras(record)
        if not extras:
            return base

        parts = [f"{key}={value!r}" for key, value in sorted(extras.items())]
        return f"{base} | " + " ".join(parts)


def _configure_root_logger() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(os.getenv("SNAPTAG_LOG_LEVEL", "INFO").upper())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(_KeyValueFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(console_handler)

    try:
        _LOG_ROOT.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            _LOG_ROOT / _LOG_FILENAME,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
    except OSError as exc:
        root.warning("log_file_unavailable", extra={"log_root": str(_LOG_ROOT), "error": str(exc)})
        return

    file_handler.setFormatter(_JsonLinesFormatter())
    root.addHandler(file_handler)


class _MergingAdapter(logging.LoggerAdapter):
    """Adapter that merges per-call ``extra`` with the adapter-level fields."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str, extra: Dict[str, Any] | None = None) -> logging.LoggerAdapter:
    """Return a logger adapter that attaches ``extra`` to every record.

    Handlers are installed on the root logger the first time any module asks
    for a logger, unless the host application configured logging already.
    """

    _configure_root_logger()
    return _MergingAdapter(logging.getLogger(name), extra or {})


__all__ = ["get_logger"]
