from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import requests

from .models import Issue
from .retry import run_with_retries

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_PAGE_SIZE = 100
USER_AGENT = "issuecanon-rest/0.2.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


def build_title_query(repo: str, title: str, state: str) -> str:
    escaped = title.replace("\\", "\\\\").replace('"', '\\"')
    return f'repo:{repo} is:issue in:title "{escaped}" state:{state}'


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the issue operations reconciliation needs."""

    token: str
    repo: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> requests.Response:
            return self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=REQUEST_TIMEOUT,
            )

        response = run_with_retries(_run)
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", DEFAULT_PAGE_SIZE)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=params)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    def _issue(self, data: Any) -> Issue:
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected issue payload from GitHub: {data!r}")
        return Issue.from_api(data)

    # ---- Issue operations --------------------------------------------
    def list_issues(
        self,
        *,
        state: str,
        labels: Iterable[str] | None = None,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> list[Issue]:
        """Fetch a single listing page. Callers drive pagination."""
        params: dict[str, Any] = {"state": state, "per_page": per_page, "page": page}
        label_list = list(labels or [])
        if label_list:
            # GitHub applies AND semantics to a comma separated label list
            params["labels"] = ",".join(label_list)
        data = self._request("GET", f"/repos/{self.repo}/issues", params=params)
        if not isinstance(data, list):
            return []
        return [Issue.from_api(entry) for entry in data if isinstance(entry, dict)]

    def get_issue(self, *, number: int) -> Issue:
        return self._issue(self._request("GET", f"/repos/{self.repo}/issues/{number}"))

    def create_issue(
        self,
        *,
        title: str,
        body: str | None = None,
        milestone: str | int | None = None,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
    ) -> Issue:
        payload: dict[str, Any] = {"title": title}
        if body:
            payload["body"] = body
        if milestone not in (None, ""):
            resolved = self._resolve_milestone(milestone)
            if resolved is not None:
                payload["milestone"] = resolved
        label_list = list(labels or [])
        if label_list:
            payload["labels"] = label_list
        assignee_list = list(assignees or [])
        if assignee_list:
            payload["assignees"] = assignee_list
        data = self._request("POST", f"/repos/{self.repo}/issues", json_body=payload)
        return self._issue(data)

    def update_issue(
        self,
        *,
        number: int,
        state: str | None = None,
        body: str | None = None,
    ) -> Issue:
        payload: dict[str, Any] = {}
        if state is not None:
            payload["state"] = state
        if body is not None:
            payload["body"] = body
        if not payload:
            return self.get_issue(number=number)
        data = self._request(
            "PATCH", f"/repos/{self.repo}/issues/{number}", json_body=payload
        )
        return self._issue(data)

    def create_comment(self, *, number: int, body: str) -> None:
        self._request(
            "POST",
            f"/repos/{self.repo}/issues/{number}/comments",
            json_body={"body": body},
        )

    def search_issues(self, *, query: str, per_page: int = DEFAULT_PAGE_SIZE) -> list[Issue]:
        data = self._request(
            "GET", "/search/issues", params={"q": query, "per_page": per_page}
        )
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        out: list[Issue] = []
        for entry in items:
            if isinstance(entry, dict) and isinstance(entry.get("number"), int):
                out.append(Issue.from_api(entry))
        return out

    def build_title_query(self, title: str, state: str) -> str:
        return build_title_query(self.repo, title, state)

    # ---- Utilities ----------------------------------------------------
    def _resolve_milestone(self, milestone: str | int) -> int | None:
        if isinstance(milestone, int):
            return milestone
        milestone = milestone.strip()
        if milestone.isdigit():
            return int(milestone)
        milestones = self._paginate(
            f"/repos/{self.repo}/milestones", params={"state": "all"}
        )
        for entry in milestones:
            if not isinstance(entry, dict):
                continue
            title = entry.get("title")
            if isinstance(title, str) and title.lower() == milestone.lower():
                number = entry.get("number")
                if isinstance(number, int):
                    return number
        return None


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "GitHubAPIError",
    "GitHubRestClient",
    "build_title_query",
]
