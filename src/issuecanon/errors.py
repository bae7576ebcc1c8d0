"""Error taxonomy & redaction helpers.

Three tiers show up during reconciliation:

- fatal: locating, creating or updating the canonical issue failed. The engine
  raises :class:`ReconcileError` and stops.
- per-duplicate: commenting on / closing one duplicate failed. Logged as a
  warning, the loop moves on.
- degraded: the search fallback failed. Logged, treated as "no match".

``classify_error`` gives log lines a stable category, and ``redact`` keeps
tokens out of anything we print.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[osu]_[A-Za-z0-9]{20,40}"),  # OAuth / app installation tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)(authorization:\s*bearer\s+)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class ReconcileError(RuntimeError):
    """Raised when the canonical issue cannot be located, created or updated."""

    def __init__(self, message: str, *, issue_number: int | None = None):
        super().__init__(message)
        self.issue_number = issue_number


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    HTTP status (when the exception carries one) wins over message keywords.
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__
    status = getattr(exc, "status", None)
    details = {"status": status} if isinstance(status, int) else None

    if "rate limit" in low or "secondary rate" in low or status == 429:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True, details=details)
    if "abuse" in low:
        return ErrorInfo("github.abuse", redact(msg), name, transient=True, details=details)
    if status == 404:
        return ErrorInfo("github.not_found", redact(msg), name, details=details)
    if status in (401, 403):
        return ErrorInfo("github.permission", redact(msg), name, details=details)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True, details=details)
    return ErrorInfo("generic", redact(msg), name, details=details)


__all__ = ["ErrorInfo", "ReconcileError", "classify_error", "redact"]
