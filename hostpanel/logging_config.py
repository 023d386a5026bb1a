from __future__ import annotations

import logging
import os
import re
import sys

_DEFAULT_LOG_LEVEL = "INFO"
_RESET = "\x1b[0m"
_LEVEL_COLORS = {
    "DEBUG": "\x1b[36m",
    "INFO": "\x1b[32m",
    "WARNING": "\x1b[33m",
    "ERROR": "\x1b[31m",
    "CRITICAL": "\x1b[1;31m",
}
# Third-party loggers that log every remote call at INFO, including query strings.
_NOISY_LOGGERS = ("httpx", "httpcore")
_SECRET_RE = re.compile(
    r"(?P<key>password|passwd|dbpass|secret_key|access_key|request_token)(?P<sep>['\"]?\s*[=:]\s*['\"]?)[^\s,'\"&}]+",
    re.IGNORECASE,
)


def redact_secrets(text: str) -> str:
    return _SECRET_RE.sub(lambda m: f"{m.group('key')}{m.group('sep')}***", text)


class _PanelFormatter(logging.Formatter):
    def __init__(self, *, use_color: bool) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        color = _LEVEL_COLORS.get(levelname) if self._use_color else None
        if color:
            record.levelname = f"{color}{levelname}{_RESET}"
        try:
            return redact_secrets(super().format(record))
        finally:
            record.levelname = levelname


def _should_use_color() -> bool:
    if os.getenv("NO_COLOR"):
        return False
    return sys.stderr.isatty()


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    candidate = (level or os.getenv("HOSTPANEL_LOG_LEVEL", _DEFAULT_LOG_LEVEL)).upper()
    resolved = logging.getLevelName(candidate)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(*, level: str | int | None = None, force: bool = False) -> None:
    """Install a single stderr handler on the root logger.

    Repeated calls only adjust the level unless ``force`` is set. Anything that
    looks like a credential assignment is masked before the line is written.
    """
    root = logging.getLogger()
    resolved_level = _resolve_level(level)
    root.setLevel(resolved_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))

    if root.handlers and not force:
        for handler in root.handlers:
            handler.setLevel(resolved_level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(_PanelFormatter(use_color=_should_use_color()))
    root.handlers.clear()
    root.addHandler(handler)
