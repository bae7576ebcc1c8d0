from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, cast

import yaml

from .github_rest import DEFAULT_API_URL, DEFAULT_PAGE_SIZE

DEFAULT_CLOSE_COMMENT = "Closing in favor of the newly created canonical issue."

_TRUTHY = re.compile(r"^(true|1|yes)$", re.IGNORECASE)


class ConfigError(RuntimeError):
    pass


def split_list(value: str | list[str] | None) -> list[str]:
    """Split a comma separated input into trimmed, non-empty entries."""
    if value is None:
        return []
    parts = value if isinstance(value, list) else str(value).split(",")
    return [str(p).strip() for p in parts if str(p).strip()]


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return bool(_TRUTHY.match(str(value).strip()))


def blank_to_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


@dataclass
class ReconcileConfig:
    owner: str | None = None
    repo: str | None = None
    title: str = ""
    body: str | None = None
    milestone: str | None = None
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    reuse: bool = False
    reuse_reopen: bool = False
    bump_with_comment: bool = False
    # Restrict matching to issues carrying every configured label
    match_labels: bool = True
    close_others: bool = True
    close_comment: str = DEFAULT_CLOSE_COMMENT
    per_page: int = DEFAULT_PAGE_SIZE
    api_url: str = DEFAULT_API_URL
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"

    @property
    def full_repo(self) -> str:
        return f"{self.owner}/{self.repo}"

    def with_overrides(self, **overrides: Any) -> ReconcileConfig:
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> ReconcileConfig:
        if not self.title or not self.title.strip():
            raise ConfigError("A non-empty issue title is required")
        if not self.owner or not self.repo:
            raise ConfigError("Target repository is required (owner/repo)")
        if self.per_page < 1:
            raise ConfigError("per_page must be a positive integer")
        return self


def _as_page_size(value: Any, source: Path) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"behavior.per_page must be an integer in {source}, got {value!r}") from exc


def parse_repo(value: str) -> tuple[str, str]:
    owner, sep, name = value.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ConfigError(f"Repository must look like owner/repo, got {value!r}")
    return owner, name


def load_config(path: str | Path, base: ReconcileConfig | None = None) -> ReconcileConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw = cast(dict[str, Any], yaml.safe_load(p.read_text()) or {})
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration root must be a mapping: {p}")
    gh = cast(dict[str, Any], raw.get("github", {}) or {})
    issue = cast(dict[str, Any], raw.get("issue", {}) or {})
    behavior = cast(dict[str, Any], raw.get("behavior", {}) or {})
    logging_config = cast(dict[str, Any], raw.get("logging", {}) or {})

    cfg = base or ReconcileConfig()
    owner, repo = cfg.owner, cfg.repo
    if gh.get("repo"):
        owner, repo = parse_repo(str(gh["repo"]))

    return replace(
        cfg,
        owner=owner,
        repo=repo,
        api_url=str(gh.get("api_url") or cfg.api_url),
        title=str(issue.get("title") or cfg.title),
        body=blank_to_none(issue.get("body")) or cfg.body,
        milestone=blank_to_none(issue.get("milestone")) or cfg.milestone,
        labels=split_list(issue.get("labels")) or cfg.labels,
        assignees=split_list(issue.get("assignees")) or cfg.assignees,
        reuse=as_bool(behavior.get("reuse"), cfg.reuse),
        reuse_reopen=as_bool(behavior.get("reuse_reopen"), cfg.reuse_reopen),
        bump_with_comment=as_bool(behavior.get("bump_with_comment"), cfg.bump_with_comment),
        match_labels=as_bool(behavior.get("match_labels"), cfg.match_labels),
        close_others=as_bool(behavior.get("close_others"), cfg.close_others),
        close_comment=str(behavior.get("close_comment") or cfg.close_comment),
        per_page=_as_page_size(behavior.get("per_page", cfg.per_page), p),
        logging_json_enabled=as_bool(logging_config.get("json_enabled"), cfg.logging_json_enabled),
        logging_level=str(logging_config.get("level") or cfg.logging_level),
    )


def config_from_env(
    environ: Mapping[str, str] | None = None, base: ReconcileConfig | None = None
) -> ReconcileConfig:
    """Overlay GitHub Actions ``INPUT_*`` values onto ``base``.

    Empty inputs leave the base value untouched. Owner/repo fall back to
    ``GITHUB_REPOSITORY`` when neither the inputs nor ``base`` provide them.
    """
    env = os.environ if environ is None else environ
    cfg = base or ReconcileConfig()

    def inp(name: str) -> str:
        return env.get(f"INPUT_{name.upper()}", "")

    owner, repo = cfg.owner, cfg.repo
    repository = env.get("GITHUB_REPOSITORY", "")
    if repository and (not owner or not repo):
        ctx_owner, ctx_repo = parse_repo(repository)
        owner = owner or ctx_owner
        repo = repo or ctx_repo
    owner = inp("owner").strip() or owner
    repo = inp("repo").strip() or repo

    return replace(
        cfg,
        owner=owner,
        repo=repo,
        title=inp("title") or cfg.title,
        body=blank_to_none(inp("body")) or cfg.body,
        milestone=blank_to_none(inp("milestone")) or cfg.milestone,
        labels=split_list(inp("labels")) or cfg.labels,
        assignees=split_list(inp("assignees")) or cfg.assignees,
        reuse=as_bool(inp("reuse"), cfg.reuse),
        reuse_reopen=as_bool(inp("reuse_reopen"), cfg.reuse_reopen),
        bump_with_comment=as_bool(inp("bump_with_comment"), cfg.bump_with_comment),
        match_labels=as_bool(inp("match_labels"), cfg.match_labels),
        close_others=as_bool(inp("close_others"), cfg.close_others),
        close_comment=inp("close_comment") or cfg.close_comment,
    )


__all__ = [
    "ConfigError",
    "DEFAULT_CLOSE_COMMENT",
    "ReconcileConfig",
    "as_bool",
    "config_from_env",
    "load_config",
    "parse_repo",
    "split_list",
]
