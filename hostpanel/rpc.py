from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Any, Callable, Literal

import httpx

logger = logging.getLogger(__name__)

ErrorCategory = Literal["retryable", "fatal"]
ReplyKind = Literal["returncode", "json", "table", "text", "transport"]

_RETRYABLE_PATTERNS = (
    "timed out",
    "timeout",
    "temporarily unavailable",
    "connection refused",
    "connection reset",
    "name or service not known",
    "temporary failure in name resolution",
    "server disconnected",
    "too many requests",
    "rate limit",
)
_RETRYABLE_STATUS = {408, 425, 429, 500, 502, 503, 504}

_RETURNCODE_RE = re.compile(r"^-?\d+$")
_SEPARATOR_RE = re.compile(r"^[-\s]*-[-\s]*$")
_HEADER_SPLIT_RE = re.compile(r"\s{2,}")
_MAX_ERROR_DETAIL = 400


@dataclass(frozen=True)
class TableReply:
    columns: list[str]
    rows: list[dict[str, str]]


@dataclass(frozen=True)
class RemoteResult:
    """Uniform outcome of one remote call.

    ``kind`` records how the reply was interpreted, so callers can tell a
    remote rejection (``returncode``) from an unreachable remote (``transport``).
    """

    success: bool
    kind: ReplyKind
    returncode: int | None = None
    data: Any = None
    error: str | None = None
    category: ErrorCategory | None = None

    @property
    def retryable(self) -> bool:
        return self.category == "retryable"


def classify_error(*, message: str, status_code: int | None = None) -> ErrorCategory:
    if status_code is not None and status_code in _RETRYABLE_STATUS:
        return "retryable"
    text = message.lower()
    if any(pattern in text for pattern in _RETRYABLE_PATTERNS):
        return "retryable"
    return "fatal"


def _truncate(detail: str) -> str:
    detail = detail.strip()
    if len(detail) > _MAX_ERROR_DETAIL:
        return f"{detail[:_MAX_ERROR_DETAIL - 3]}..."
    return detail


def parse_table(text: str, *, min_columns: int | None = None) -> TableReply | None:
    """Parse a ``HEADER / ----- / rows`` listing.

    Header cells are separated by two or more spaces, row cells by any
    whitespace. Rows with fewer than ``min_columns`` cells (default: the header
    width) are skipped. Returns ``None`` when the text has no such shape.
    """
    lines = text.splitlines()
    if len(lines) < 2 or not _SEPARATOR_RE.match(lines[1]):
        return None
    columns = [c.strip().lower() for c in _HEADER_SPLIT_RE.split(lines[0].strip()) if c.strip()]
    if not columns:
        return None
    required = len(columns) if min_columns is None else min_columns
    rows: list[dict[str, str]] = []
    for line in lines[2:]:
        parts = line.split()
        if not parts or len(parts) < required:
            continue
        rows.append(dict(zip(columns, parts)))
    return TableReply(columns=columns, rows=rows)


def parse_reply(body: str, *, min_columns: int | None = None) -> RemoteResult:
    """Interpret an untyped reply body: return code, then JSON, then table, then text."""
    trimmed = body.strip()

    if _RETURNCODE_RE.match(trimmed):
        code = int(trimmed)
        if code == 0:
            return RemoteResult(success=True, kind="returncode", returncode=0)
        return RemoteResult(
            success=False,
            kind="returncode",
            returncode=code,
            error=f"remote command failed with returncode {code}",
            category="fatal",
        )

    if trimmed[:1] in ("{", "["):
        try:
            return RemoteResult(success=True, kind="json", data=json.loads(trimmed))
        except json.JSONDecodeError:
            logger.debug("Reply looked like JSON but did not parse; trying table format")

    table = parse_table(trimmed, min_columns=min_columns)
    if table is not None:
        return RemoteResult(success=True, kind="table", data=table)

    return RemoteResult(success=True, kind="text", data=trimmed)


def transport_failure(*, message: str, status_code: int | None = None, detail: str = "") -> RemoteResult:
    error = f"{message}: {_truncate(detail)}" if detail.strip() else message
    return RemoteResult(
        success=False,
        kind="transport",
        returncode=status_code,
        error=error,
        category=classify_error(message=f"{message} {detail}", status_code=status_code),
    )


def attempt(step: str, call: Callable[[], RemoteResult]) -> RemoteResult:
    """Run a best-effort remote step; any exception becomes a failed result."""
    try:
        return call()
    except Exception as exc:
        logger.warning("%s step raised %s: %s", step, type(exc).__name__, exc)
        return RemoteResult(success=False, kind="transport", error=str(exc), category="fatal")


def post_form(
    client: httpx.Client,
    url: str,
    *,
    data: dict[str, str],
    error_message: str,
    min_columns: int | None = None,
) -> RemoteResult:
    try:
        response = client.post(url, data=data)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        result = transport_failure(
            message=f"{error_message} (HTTP {exc.response.status_code})",
            status_code=exc.response.status_code,
            detail=exc.response.text,
        )
        logger.warning("%s (category=%s)", result.error, result.category)
        return result
    except httpx.HTTPError as exc:
        result = transport_failure(message=error_message, detail=f"{type(exc).__name__}: {exc}")
        logger.warning("%s (category=%s)", result.error, result.category)
        return result
    return parse_reply(response.text, min_columns=min_columns)
