"""Canonical issue reconciliation.

Given a desired title (and optionally labels) the engine decides between
reusing an existing issue and creating a new one, refreshes the chosen
issue, then optionally closes every other issue with the same title.

Decision table (``decide``):

* ``reuse`` disabled            -> ``Create``
* open match                    -> ``Reuse(issue, reopened=False)``
* closed match, ``reuse_reopen``-> reopen + re-fetch, ``Reuse(issue, reopened=True)``
* closed match, no reopen       -> ``Reuse(issue, reopened=False)`` (stays closed)
* no match                      -> ``Create``

Failures while locating, creating or updating the canonical issue raise
``ReconcileError``. Failures on individual duplicates never do.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import requests

from .config import ReconcileConfig
from .duplicates import canonical_comment, close_duplicates
from .errors import ReconcileError, redact
from .github_rest import GitHubAPIError
from .logging import StructuredLogger, get_logger
from .matcher import IssueTracker, TitleMatcher
from .models import Create, Issue, ReconcileResult, Reuse, ReuseDecision

Clock = Callable[[], datetime]

_TRACKER_ERRORS = (GitHubAPIError, requests.RequestException)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def bump_comment(reopened: bool, when: datetime) -> str:
    verb = "Reopened" if reopened else "Updated"
    return f"{verb} at {when.isoformat(timespec='seconds')}"


def build_matcher(
    config: ReconcileConfig, tracker: IssueTracker, logger: StructuredLogger | None = None
) -> TitleMatcher:
    return TitleMatcher(
        tracker,
        title=config.title,
        labels=config.labels,
        match_labels=config.match_labels,
        per_page=config.per_page,
        logger=logger,
    )


def decide(
    config: ReconcileConfig,
    matcher: TitleMatcher,
    tracker: IssueTracker,
    *,
    logger: StructuredLogger | None = None,
) -> ReuseDecision:
    log = logger or get_logger()
    if not config.reuse:
        return Create()

    issue = matcher.find_one("open")
    if issue is not None:
        log.info(f"Reusing open issue #{issue.number}", issue_number=issue.number)
        return Reuse(issue)

    issue = matcher.find_one("closed")
    if issue is None:
        log.info("No existing issue to reuse; creating a new one")
        return Create()

    if not config.reuse_reopen:
        log.info(
            f"Reusing closed issue #{issue.number} without reopening",
            issue_number=issue.number,
        )
        return Reuse(issue)

    tracker.update_issue(number=issue.number, state="open")
    reopened = tracker.get_issue(number=issue.number)
    log.log_issue_action("reopen", reopened.number, reopened.html_url)
    return Reuse(reopened, reopened=True)


def _refresh(
    config: ReconcileConfig,
    decision: Reuse,
    tracker: IssueTracker,
    clock: Clock,
    log: StructuredLogger,
) -> Issue:
    issue = decision.issue
    if config.body:
        issue = tracker.update_issue(number=issue.number, body=config.body)
        log.log_issue_action("update_body", issue.number)
    if config.bump_with_comment:
        tracker.create_comment(
            number=issue.number, body=bump_comment(decision.reopened, clock())
        )
        log.log_issue_action("bump", issue.number)
    return issue


def _create(config: ReconcileConfig, tracker: IssueTracker, log: StructuredLogger) -> Issue:
    issue = tracker.create_issue(
        title=config.title,
        body=config.body or None,
        milestone=config.milestone or None,
        labels=config.labels or None,
        assignees=config.assignees or None,
    )
    log.log_issue_action("create", issue.number, issue.html_url)
    return issue


def resolve_canonical(
    config: ReconcileConfig,
    tracker: IssueTracker,
    *,
    matcher: TitleMatcher | None = None,
    logger: StructuredLogger | None = None,
    clock: Clock | None = None,
) -> tuple[Issue, ReuseDecision]:
    log = logger or get_logger()
    matcher = matcher or build_matcher(config, tracker, log)
    try:
        decision = decide(config, matcher, tracker, logger=log)
    except _TRACKER_ERRORS as exc:
        raise ReconcileError(
            f"Failed to look up existing issues titled {config.title!r}: {redact(str(exc))}"
        ) from exc

    if isinstance(decision, Reuse):
        try:
            issue = _refresh(config, decision, tracker, clock or _utcnow, log)
        except _TRACKER_ERRORS as exc:
            raise ReconcileError(
                f"Failed to update issue #{decision.issue.number}: {redact(str(exc))}",
                issue_number=decision.issue.number,
            ) from exc
        return issue, decision

    try:
        issue = _create(config, tracker, log)
    except _TRACKER_ERRORS as exc:
        raise ReconcileError(f"Failed to create issue: {redact(str(exc))}") from exc
    return issue, decision


def reconcile(
    config: ReconcileConfig,
    tracker: IssueTracker,
    *,
    logger: StructuredLogger | None = None,
    clock: Clock | None = None,
) -> ReconcileResult:
    """Reuse or create the canonical issue, then close its duplicates."""
    log = logger or get_logger()
    matcher = build_matcher(config, tracker, log)
    with log.timed_operation("reconcile", title=config.title):
        issue, decision = resolve_canonical(
            config, tracker, matcher=matcher, logger=log, clock=clock
        )

        closed: list[int] = []
        if config.close_others:
            try:
                candidates = matcher.find_all()
            except _TRACKER_ERRORS as exc:
                raise ReconcileError(
                    f"Failed to list duplicates of #{issue.number}: {redact(str(exc))}",
                    issue_number=issue.number,
                ) from exc
            others = [c for c in candidates if c.number != issue.number]
            log.info(
                f"Found {len(others)} other issue(s) with the same title",
                issue_number=issue.number,
            )
            closed = close_duplicates(
                tracker,
                issue.number,
                others,
                canonical_comment(config.close_comment, issue),
                logger=log,
            )

    return ReconcileResult(
        issue=issue,
        created=isinstance(decision, Create),
        reopened=isinstance(decision, Reuse) and decision.reopened,
        closed_duplicates=tuple(closed),
    )


def format_result(result: ReconcileResult) -> list[str]:
    if result.created:
        head = f"[reconcile] Created canonical issue #{result.number}"
    elif result.reopened:
        head = f"[reconcile] Reopened canonical issue #{result.number}"
    else:
        head = f"[reconcile] Reused canonical issue #{result.number} ({result.issue.state})"
    lines = [head + (f" {result.html_url}" if result.html_url else "")]
    if result.closed_duplicates:
        closed = ", ".join(f"#{n}" for n in result.closed_duplicates)
        lines.append(f"  closed duplicates: {closed}")
    return lines


__all__ = [
    "bump_comment",
    "build_matcher",
    "decide",
    "format_result",
    "reconcile",
    "resolve_canonical",
]
