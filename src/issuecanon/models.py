from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

IssueState = Literal["open", "closed"]
StateFilter = Literal["open", "closed", "all"]


def _label_names(raw: Iterable[Any] | None) -> frozenset[str]:
    names: set[str] = set()
    for entry in raw or ():
        if isinstance(entry, dict):
            name = entry.get("name")
            if isinstance(name, str):
                names.add(name)
        elif isinstance(entry, str):
            names.add(entry)
    return frozenset(names)


@dataclass(frozen=True)
class Issue:
    """Read-only snapshot of a tracker issue as fetched from the API.

    Updates never mutate a snapshot; the tracker returns a fresh one.
    """

    number: int
    title: str
    state: str
    labels: frozenset[str] = frozenset()
    body: str | None = None
    html_url: str = ""
    is_pull_request: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Issue:
        number = payload.get("number")
        if not isinstance(number, int):
            raise ValueError(f"issue payload without a numeric 'number': {payload!r}")
        body = payload.get("body")
        return cls(
            number=number,
            title=str(payload.get("title") or ""),
            state=str(payload.get("state") or "open"),
            labels=_label_names(payload.get("labels")),
            body=body if isinstance(body, str) else None,
            html_url=str(payload.get("html_url") or ""),
            # Both listing and search endpoints return PRs as issues with this key
            is_pull_request=payload.get("pull_request") is not None,
            raw=dict(payload),
        )

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"


@dataclass(frozen=True)
class MatchCriteria:
    title: str
    labels: frozenset[str] | None = None
    state: StateFilter = "all"

    def matches(self, issue: Issue) -> bool:
        if issue.is_pull_request or issue.title != self.title:
            return False
        if self.labels:
            return self.labels <= issue.labels
        return True


@dataclass(frozen=True)
class Reuse:
    issue: Issue
    reopened: bool = False


@dataclass(frozen=True)
class Create:
    pass


ReuseDecision = Reuse | Create


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconciliation run, keyed off the canonical issue."""

    issue: Issue
    created: bool
    reopened: bool = False
    closed_duplicates: tuple[int, ...] = ()

    @property
    def number(self) -> int:
        return self.issue.number

    @property
    def html_url(self) -> str:
        return self.issue.html_url

    def to_outputs(self) -> dict[str, Any]:
        snapshot = self.issue.raw or {
            "number": self.issue.number,
            "title": self.issue.title,
            "state": self.issue.state,
            "labels": sorted(self.issue.labels),
            "body": self.issue.body,
            "html_url": self.issue.html_url,
        }
        return {
            "number": self.issue.number,
            "html_url": self.issue.html_url,
            "json": json.dumps(snapshot, sort_keys=True),
        }

    def summary(self) -> dict[str, Any]:
        return {
            "number": self.issue.number,
            "html_url": self.issue.html_url,
            "state": self.issue.state,
            "created": self.created,
            "reopened": self.reopened,
            "closed_duplicates": list(self.closed_duplicates),
        }


__all__ = [
    "Create",
    "Issue",
    "IssueState",
    "MatchCriteria",
    "ReconcileResult",
    "Reuse",
    "ReuseDecision",
    "StateFilter",
]
