"""Unified logging configuration for the command-line entrypoints.

Library modules only ever call ``logging.getLogger(__name__)``; handlers
and formatting are installed once by the entrypoint through
``setup_logging``:
    - Console handler (stderr) with optional ANSI colours
    - Optional file handler with size-based rotation
    - JSON line output for log shipping
    - Contextual fields (app, file) attached to every record
    - Python warnings routed into logging

Public API:
    setup_logging(log_level="INFO", context={"app": "sanitize"})
    push_context(file="slice_01.gcode")
    pop_context(keys=["file"])

Format examples:
    Human: 2026-03-02T09:14:55.120Z | INFO     | app=sanitize file=a.gcode | Sanitized 812 lines
    JSON:  {"t":"2026-03-02T09:14:55.120+00:00","lvl":"INFO","file":"a.gcode","msg":"..."}

Idempotent: repeated setup_logging() calls don't duplicate handlers.
"""

import contextvars
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


_context_var = contextvars.ContextVar('logging_context', default={})

# Handlers installed by setup_logging, removed on reconfiguration
_installed_handlers: List[logging.Handler] = []


class ContextFormatter(logging.Formatter):
    """Formatter that appends contextual fields from push_context().

    Supports a human-readable layout (optionally coloured) and a JSON
    line layout.
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown log format: {fmt_mode}. Use 'human' or 'json'.")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        context = _context_var.get({})
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.fmt_mode == "json":
            return self._format_json(record, ts, context)
        return self._format_human(record, ts, context)

    def _format_json(self, record: logging.LogRecord, ts: datetime, context: dict) -> str:
        log_dict = {
            't': ts.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'msg': record.getMessage(),
        }
        log_dict.update(context)
        if record.exc_info:
            log_dict['exc'] = self.formatException(record.exc_info)
        return json.dumps(log_dict)

    def _format_human(self, record: logging.LogRecord, ts: datetime, context: dict) -> str:
        ts_str = ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'

        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        parts = [ts_str, '|', level, '|']
        if context:
            parts.append(' '.join(f"{k}={v}" for k, v in context.items()))
            parts.append('|')
        parts.append(record.getMessage())

        line = ' '.join(parts)
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    capture_warnings: bool = True,
    context: Optional[Dict[str, Any]] = None,
) -> List[logging.Handler]:
    """Configure the root logger (idempotent).

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    log_file : str, optional
        Log file path; None for no file logging
    json : bool
        Emit JSON lines instead of the human layout
    color : bool
        ANSI colours on the console (ignored when stderr is not a tty)
    to_stderr : bool
        Attach a console handler on stderr
    rotate : dict, optional
        Size rotation for the file handler, e.g.
        ``{"max_bytes": 5_000_000, "backup_count": 3}``
    capture_warnings : bool
        Route Python warnings into logging
    context : dict, optional
        Initial contextual fields, e.g. ``{"app": "sanitize"}``

    Returns
    -------
    list[logging.Handler]
        Handlers installed on the root logger.

    Raises
    ------
    ValueError
        If *log_level* is not a known level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    root.setLevel(level)
    fmt_mode = "json" if json else "human"

    if to_stderr:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ContextFormatter(fmt_mode, color))
        _installed_handlers.append(console_handler)

    if log_file:
        _installed_handlers.append(_create_file_handler(log_file, rotate, fmt_mode))

    for handler in _installed_handlers:
        root.addHandler(handler)

    if context:
        push_context(**context)

    if capture_warnings:
        logging.captureWarnings(True)

    return list(_installed_handlers)


def _create_file_handler(
    log_file: str,
    rotate: Optional[Dict[str, Any]],
    fmt_mode: str,
) -> logging.Handler:
    """Create file handler with optional size rotation."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if rotate:
        handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=rotate.get('max_bytes', 5_000_000),
            backupCount=rotate.get('backup_count', 3),
            encoding='utf-8',
        )
    else:
        handler = logging.FileHandler(log_path, encoding='utf-8')

    handler.setFormatter(ContextFormatter(fmt_mode, use_color=False))
    return handler


def push_context(**kwargs) -> None:
    """Add contextual fields to all subsequent log records.

    Examples
    --------
    >>> push_context(app="sanitize")
    >>> push_context(file="slice_01.gcode")
    >>> logger.info("Loaded")  # → "... | app=sanitize file=slice_01.gcode | Loaded"
    """
    current = _context_var.get({})
    _context_var.set({**current, **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove contextual fields; all of them when *keys* is None."""
    if keys is None:
        _context_var.set({})
        return
    current = dict(_context_var.get({}))
    for key in keys:
        current.pop(key, None)
    _context_var.set(current)


def get_context() -> Dict[str, Any]:
    """Return a copy of the current contextual fields."""
    return dict(_context_var.get({}))
