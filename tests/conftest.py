"""Pytest configuration for issuecanon tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and provides an
in-memory issue tracker that honours the same keyword contract as
``GitHubRestClient``.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuecanon.github_rest import GitHubAPIError, build_title_query  # noqa: E402
from issuecanon.models import Issue  # noqa: E402


class FakeTracker:
    """Ordered in-memory issue store recording every call made against it."""

    def __init__(self, repo: str = "acme/widgets") -> None:
        self.repo = repo
        self.issues: dict[int, dict[str, Any]] = {}
        self.comments: dict[int, list[str]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.next_number = 1
        # What the search endpoint returns; empty by default (indexing lag)
        self.search_index: list[dict[str, Any]] = []
        self.search_error: Exception | None = None
        self._failures: dict[tuple[str, int | None], Exception] = {}

    # --- test helpers -----------------------------------------------------
    def add(
        self,
        number: int,
        title: str,
        *,
        state: str = "open",
        labels: Iterable[str] = (),
        body: str | None = None,
        pull_request: bool = False,
    ) -> Issue:
        payload: dict[str, Any] = {
            "number": number,
            "title": title,
            "state": state,
            "labels": [{"name": name} for name in labels],
            "body": body,
            "html_url": f"https://github.com/{self.repo}/issues/{number}",
        }
        if pull_request:
            payload["pull_request"] = {"url": f"https://api.github.com/pulls/{number}"}
        self.issues[number] = payload
        self.next_number = max(self.next_number, number + 1)
        return Issue.from_api(payload)

    def fail_on(self, op: str, number: int | None = None, exc: Exception | None = None) -> None:
        self._failures[(op, number)] = exc or GitHubAPIError(f"{op} failed", status=500)

    def ops(self, name: str) -> list[dict[str, Any]]:
        return [kw for op, kw in self.calls if op == name]

    def _record(self, op: str, number: int | None = None, **kw: Any) -> None:
        self.calls.append((op, {"number": number, **kw} if number is not None else kw))
        failure = self._failures.get((op, number)) or self._failures.get((op, None))
        if failure is not None:
            raise failure

    def _get(self, number: int) -> dict[str, Any]:
        if number not in self.issues:
            raise GitHubAPIError(f"issue #{number} not found", status=404)
        return self.issues[number]

    # --- tracker contract -------------------------------------------------
    def list_issues(
        self,
        *,
        state: str,
        labels: Iterable[str] | None = None,
        page: int = 1,
        per_page: int = 100,
    ) -> list[Issue]:
        wanted = set(labels or ())
        self._record("list", state=state, labels=sorted(wanted) or None, page=page)
        rows = [
            Issue.from_api(p)
            for p in self.issues.values()
            if state == "all" or p["state"] == state
        ]
        rows = [r for r in rows if wanted <= r.labels]
        start = (page - 1) * per_page
        return rows[start : start + per_page]

    def get_issue(self, *, number: int) -> Issue:
        self._record("get", number)
        return Issue.from_api(self._get(number))

    def create_issue(
        self,
        *,
        title: str,
        body: str | None = None,
        milestone: str | int | None = None,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
    ) -> Issue:
        self._record(
            "create",
            title=title,
            body=body,
            milestone=milestone,
            labels=list(labels) if labels is not None else None,
            assignees=list(assignees) if assignees is not None else None,
        )
        return self.add(self.next_number, title, labels=labels or (), body=body)

    def update_issue(
        self, *, number: int, state: str | None = None, body: str | None = None
    ) -> Issue:
        self._record("update", number, state=state, body=body)
        payload = self._get(number)
        if state is not None:
            payload["state"] = state
        if body is not None:
            payload["body"] = body
        return Issue.from_api(payload)

    def create_comment(self, *, number: int, body: str) -> None:
        self._record("comment", number, body=body)
        self._get(number)
        self.comments.setdefault(number, []).append(body)

    def search_issues(self, *, query: str, per_page: int = 100) -> list[Issue]:
        self._record("search", query=query)
        if self.search_error is not None:
            raise self.search_error
        return [Issue.from_api(p) for p in self.search_index][:per_page]

    def build_title_query(self, title: str, state: str) -> str:
        return build_title_query(self.repo, title, state)


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "GITHUB_REPOSITORY",
        "GITHUB_OUTPUT",
        "ISSUECANON_QUIET",
        "INPUT_TITLE",
        "INPUT_LABELS",
        "INPUT_REUSE",
        "INPUT_OWNER",
        "INPUT_REPO",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _fresh_global_logger(monkeypatch: pytest.MonkeyPatch) -> None:
    # The shared logger binds sys.stdout when first built; rebuild it per test
    import issuecanon.logging as canon_logging

    monkeypatch.setattr(canon_logging, "_GLOBAL", None)
