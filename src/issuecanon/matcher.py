"""Exact-title issue lookup.

``TitleMatcher.find_one`` walks an ordered list of passes and returns the
first hit:

* ``labeled`` – listing filtered server-side by every configured label
  (skipped when no label filter is active)
* ``title``   – listing without label filtering
* ``search``  – free-text search, re-fetched by number to get a full record

The first matching item in the tracker's listing order wins; candidates are
never ranked. ``find_all`` sweeps open and closed listings to collect every
match for duplicate cleanup.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Protocol

import requests

from .errors import classify_error
from .github_rest import GitHubAPIError
from .logging import StructuredLogger, get_logger
from .models import Issue, MatchCriteria
from .pagination import DEFAULT_PAGE_SIZE, find_first, iter_pages

SEARCH_PAGE_SIZE = 20


class IssueTracker(Protocol):
    def list_issues(
        self,
        *,
        state: str,
        labels: Iterable[str] | None = None,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> list[Issue]: ...

    def get_issue(self, *, number: int) -> Issue: ...

    def create_issue(
        self,
        *,
        title: str,
        body: str | None = None,
        milestone: str | int | None = None,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
    ) -> Issue: ...

    def update_issue(
        self, *, number: int, state: str | None = None, body: str | None = None
    ) -> Issue: ...

    def create_comment(self, *, number: int, body: str) -> None: ...

    def search_issues(self, *, query: str, per_page: int = DEFAULT_PAGE_SIZE) -> list[Issue]: ...

    def build_title_query(self, title: str, state: str) -> str: ...


MatchPass = Callable[[str], "Issue | None"]


class TitleMatcher:
    def __init__(
        self,
        tracker: IssueTracker,
        *,
        title: str,
        labels: Iterable[str] | None = None,
        match_labels: bool = True,
        per_page: int = DEFAULT_PAGE_SIZE,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.tracker = tracker
        self.title = title
        label_set = frozenset(label for label in (labels or ()) if label)
        self.label_filter: frozenset[str] | None = (
            label_set if match_labels and label_set else None
        )
        self.per_page = per_page
        self.logger = logger or get_logger()

    # --- criteria ---------------------------------------------------------
    def criteria(self, state: str, *, labeled: bool) -> MatchCriteria:
        return MatchCriteria(
            title=self.title,
            labels=self.label_filter if labeled else None,
            state=state,  # type: ignore[arg-type]
        )

    def _fetcher(self, criteria: MatchCriteria, pass_name: str) -> Callable[[int, int], list[Issue]]:
        labels = sorted(criteria.labels) if criteria.labels else None

        def fetch(page: int, per_page: int) -> list[Issue]:
            batch = self.tracker.list_issues(
                state=criteria.state, labels=labels, page=page, per_page=per_page
            )
            self.logger.debug(
                f"[{pass_name}] state={criteria.state} page={page} fetched={len(batch)}",
                pass_name=pass_name,
                state=criteria.state,
                page=page,
            )
            return batch

        return fetch

    # --- passes -----------------------------------------------------------
    def _labeled_pass(self, state: str) -> Issue | None:
        if self.label_filter is None:
            return None
        criteria = self.criteria(state, labeled=True)
        return find_first(
            self._fetcher(criteria, "labeled"), criteria.matches, per_page=self.per_page
        )

    def _title_pass(self, state: str) -> Issue | None:
        criteria = self.criteria(state, labeled=False)
        return find_first(
            self._fetcher(criteria, "title"), criteria.matches, per_page=self.per_page
        )

    def _search_pass(self, state: str) -> Issue | None:
        criteria = self.criteria(state, labeled=False)
        try:
            query = self.tracker.build_title_query(self.title, state)
            hits = self.tracker.search_issues(query=query, per_page=SEARCH_PAGE_SIZE)
            hit = next((item for item in hits if criteria.matches(item)), None)
            if hit is None:
                return None
            # Search payloads are partial; re-read the issue itself
            issue = self.tracker.get_issue(number=hit.number)
        except (GitHubAPIError, requests.RequestException, ValueError) as exc:
            info = classify_error(exc)
            self.logger.warning(
                f"[search] fallback lookup failed, treating as no match: {info.message}",
                pass_name="search",
                state=state,
                category=info.category,
            )
            return None
        # The index can lag behind state changes
        if not criteria.matches(issue) or issue.state != state:
            return None
        return issue

    def passes(self) -> list[tuple[str, MatchPass]]:
        return [
            ("labeled", self._labeled_pass),
            ("title", self._title_pass),
            ("search", self._search_pass),
        ]

    # --- public API -------------------------------------------------------
    def find_one(self, state: str) -> Issue | None:
        for name, run_pass in self.passes():
            issue = run_pass(state)
            if issue is not None:
                self.logger.debug(
                    f"[{name}] matched #{issue.number} ({state})",
                    pass_name=name,
                    state=state,
                    issue_number=issue.number,
                )
                return issue
        self.logger.debug(f"no {state} issue titled {self.title!r}", state=state)
        return None

    def _sweep(self, *, labeled: bool) -> dict[int, Issue]:
        found: dict[int, Issue] = {}
        for state in ("open", "closed"):
            criteria = self.criteria(state, labeled=labeled)
            fetch = self._fetcher(criteria, "sweep")
            for batch in iter_pages(fetch, per_page=self.per_page):
                for issue in batch:
                    if criteria.matches(issue):
                        found.setdefault(issue.number, issue)
        return found

    def find_all(self) -> list[Issue]:
        """Every exact-title match across open and closed issues, unique by number."""
        found = self._sweep(labeled=self.label_filter is not None)
        if not found and self.label_filter is not None:
            self.logger.debug("[sweep] no labeled matches; falling back to title-only")
            found = self._sweep(labeled=False)
        return list(found.values())


__all__ = ["IssueTracker", "MatchPass", "TitleMatcher"]
