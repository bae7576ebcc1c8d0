"""Transport-level retry / backoff for the GitHub REST client.

``run_with_retries`` wraps a thunk that performs one HTTP request and returns
the ``requests.Response``. Transient responses (429, gateway errors, 403 with a
rate-limit or abuse message) and connection/timeout exceptions are retried
with exponential backoff plus jitter. Everything else is returned / raised on
the first attempt.

Environment overrides:
  ISSUECANON_RETRY_ATTEMPTS (default 3)
  ISSUECANON_RETRY_BASE (seconds base, default 0.5)
  ISSUECANON_RETRY_MAX_SLEEP (optional cap, seconds)

Only the REST collaborator uses this; matcher and engine never retry.
"""

from __future__ import annotations

import os
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import requests

TRANSIENT_TOKENS = (
    "rate limit",
    "abuse detection",
    "secondary rate",
)
TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})
FORBIDDEN = 403

_JITTER = random.SystemRandom()


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


@dataclass
class RetryConfig:
    attempts: int = field(default_factory=lambda: _env_int("ISSUECANON_RETRY_ATTEMPTS", 3))
    base_sleep: float = field(default_factory=lambda: _env_float("ISSUECANON_RETRY_BASE", 0.5))


def is_transient(output: str) -> bool:
    out_lower = output.lower()
    return any(tok in out_lower for tok in TRANSIENT_TOKENS)


def is_transient_response(response: requests.Response) -> bool:
    if response.status_code in TRANSIENT_STATUSES:
        return True
    return response.status_code == FORBIDDEN and is_transient(response.text or "")


def _retry_after(response: requests.Response | None) -> float | None:
    if response is None:
        return None
    value = response.headers.get("Retry-After") if response.headers else None
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def _compute_sleep(attempt: int, cfg: RetryConfig, response: requests.Response | None) -> float:
    explicit = _retry_after(response)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("ISSUECANON_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def run_with_retries(
    fn: Callable[[], requests.Response],
    *,
    cfg: RetryConfig | None = None,
    sleep: Callable[[float], None] | None = None,
) -> requests.Response:
    cfg = cfg or RetryConfig()
    pause = sleep or time.sleep
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):
        try:
            response = fn()
        except (requests.ConnectionError, requests.Timeout):
            if attempt >= attempts:
                raise
            pause(_compute_sleep(attempt, cfg, None))
            continue
        if attempt >= attempts or not is_transient_response(response):
            return response
        pause(_compute_sleep(attempt, cfg, response))
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "is_transient", "is_transient_response", "run_with_retries"]
