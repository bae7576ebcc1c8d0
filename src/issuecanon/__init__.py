"""issuecanon - keep one canonical GitHub issue per title.

High-level public API (stable):

from issuecanon import GitHubRestClient, ReconcileConfig, reconcile

cfg = ReconcileConfig(owner='acme', repo='widgets', title='Build failed', reuse=True)
client = GitHubRestClient(token=token, repo=cfg.full_repo)
result = reconcile(cfg, client)
print(result.number, result.html_url)

The CLI (``issuecanon reconcile``) delegates to this library and can also be
driven by GitHub Actions ``INPUT_*`` variables.
"""

from __future__ import annotations

from .config import ConfigError, ReconcileConfig, config_from_env, load_config
from .errors import ReconcileError
from .github_rest import GitHubAPIError, GitHubRestClient
from .matcher import IssueTracker, TitleMatcher
from .models import Create, Issue, MatchCriteria, ReconcileResult, Reuse, ReuseDecision
from .reconcile import decide, reconcile

# Version constant (sync manually with pyproject)
__version__ = "0.2.0"

__all__ = [
    "ConfigError",
    "Create",
    "GitHubAPIError",
    "GitHubRestClient",
    "Issue",
    "IssueTracker",
    "MatchCriteria",
    "ReconcileConfig",
    "ReconcileError",
    "ReconcileResult",
    "Reuse",
    "ReuseDecision",
    "TitleMatcher",
    "config_from_env",
    "decide",
    "load_config",
    "reconcile",
    "__version__",
]
