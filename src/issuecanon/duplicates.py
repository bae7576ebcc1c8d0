from __future__ import annotations

from collections.abc import Iterable

import requests

from .errors import classify_error
from .github_rest import GitHubAPIError
from .logging import StructuredLogger, get_logger
from .matcher import IssueTracker
from .models import Issue


def canonical_comment(close_comment: str, canonical: Issue) -> str:
    ref = f"#{canonical.number}"
    if canonical.html_url:
        ref += f" ({canonical.html_url})"
    return f"{close_comment}\n\nCanonical: {ref}"


def close_duplicates(
    tracker: IssueTracker,
    canonical_number: int,
    candidates: Iterable[Issue],
    comment: str,
    *,
    logger: StructuredLogger | None = None,
) -> list[int]:
    """Comment on and close every open candidate other than the canonical issue.

    Runs one duplicate at a time. A failure on one duplicate is logged and
    the remaining candidates are still processed. Returns the closed numbers.
    """
    log = logger or get_logger()
    processed: set[int] = set()
    closed: list[int] = []
    for issue in candidates:
        if issue.number == canonical_number:
            continue
        if issue.number in processed or issue.is_closed:
            continue
        processed.add(issue.number)
        try:
            tracker.create_comment(number=issue.number, body=comment)
            tracker.update_issue(number=issue.number, state="closed")
        except (GitHubAPIError, requests.RequestException) as exc:
            info = classify_error(exc)
            log.warning(
                f"Failed to close issue #{issue.number}: {info.message}",
                issue_number=issue.number,
                category=info.category,
            )
            continue
        closed.append(issue.number)
        log.log_issue_action("close_duplicate", issue.number, canonical=canonical_number)
    return closed


__all__ = ["canonical_comment", "close_duplicates"]
