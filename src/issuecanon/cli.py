"""issuecanon CLI.

Subcommands:
  reconcile -> reuse or create the canonical issue, close duplicates
  find      -> report existing matches for a title (no mutation)

Configuration is layered: YAML file (``--config``), then GitHub Actions
``INPUT_*`` variables, then command line flags.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

import requests

from issuecanon.config import (
    ConfigError,
    ReconcileConfig,
    blank_to_none,
    config_from_env,
    load_config,
    parse_repo,
    split_list,
)
from issuecanon.env_auth import AuthError, create_env_auth_manager
from issuecanon.errors import ReconcileError, classify_error, redact
from issuecanon.github_rest import GitHubAPIError, GitHubRestClient
from issuecanon.logging import StructuredLogger, configure_logging
from issuecanon.matcher import IssueTracker
from issuecanon.models import Issue, ReconcileResult
from issuecanon.reconcile import build_matcher, format_result, reconcile

REPO_HELP = "Target repository (owner/repo); defaults to GITHUB_REPOSITORY"
FAILURE_MESSAGE = "Failed to reconcile canonical issue"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_target_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help="YAML configuration file")
    p.add_argument("--repo", help=REPO_HELP)
    p.add_argument("--title", help="Exact issue title to reconcile")
    p.add_argument("--labels", help="Comma separated labels")
    p.add_argument(
        "--match-labels",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Require every label when matching existing issues",
    )
    p.add_argument("--token", help="GitHub token (env: GITHUB_TOKEN / GH_TOKEN)")
    p.add_argument("--api-url", help="GitHub API base URL")


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="issuecanon", description="Keep a single canonical GitHub issue per title"
    )
    p.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    p.add_argument("--log-level", help="Logging level (default INFO)")
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors (env: ISSUECANON_QUIET=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    rec = sub.add_parser("reconcile", help="Reuse or create the canonical issue")
    _add_target_args(rec)
    rec.add_argument("--body", help="Issue body (replaces the body of a reused issue)")
    rec.add_argument("--body-file", type=Path, help="Read the issue body from a file")
    rec.add_argument("--milestone", help="Milestone number or title")
    rec.add_argument("--assignees", help="Comma separated assignees")
    rec.add_argument("--reuse", action=argparse.BooleanOptionalAction, default=None)
    rec.add_argument(
        "--reopen",
        dest="reuse_reopen",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reopen a reused closed issue",
    )
    rec.add_argument(
        "--bump",
        dest="bump_with_comment",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Comment on a reused issue to mark activity",
    )
    rec.add_argument("--close-others", action=argparse.BooleanOptionalAction, default=None)
    rec.add_argument("--close-comment", help="Comment posted on closed duplicates")
    rec.add_argument("--json-output", action="store_true", help="Print a JSON summary")

    fnd = sub.add_parser("find", help="List existing issues matching the title")
    _add_target_args(fnd)
    return p


def _resolve_config(args: argparse.Namespace) -> ReconcileConfig:
    cfg = ReconcileConfig()
    if args.config:
        cfg = load_config(args.config, base=cfg)
    cfg = config_from_env(base=cfg)

    overrides: dict[str, Any] = {
        "title": args.title,
        "labels": split_list(args.labels) if args.labels is not None else None,
        "match_labels": args.match_labels,
        "api_url": args.api_url,
    }
    if args.repo:
        overrides["owner"], overrides["repo"] = parse_repo(args.repo)
    if args.cmd == "reconcile":
        body = args.body
        if args.body_file is not None:
            try:
                body = args.body_file.read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigError(f"Cannot read body file {args.body_file}: {exc}") from exc
        overrides.update(
            body=blank_to_none(body),
            milestone=blank_to_none(args.milestone),
            assignees=split_list(args.assignees) if args.assignees is not None else None,
            reuse=args.reuse,
            reuse_reopen=args.reuse_reopen,
            bump_with_comment=args.bump_with_comment,
            close_others=args.close_others,
            close_comment=args.close_comment,
        )
    return cfg.with_overrides(**overrides).validate()


def _configure_logger(args: argparse.Namespace, cfg: ReconcileConfig | None) -> StructuredLogger:
    quiet = args.quiet or os.environ.get("ISSUECANON_QUIET") == "1"
    level = "WARNING" if quiet else (args.log_level or (cfg.logging_level if cfg else "INFO"))
    json_logging = args.log_json or bool(cfg and cfg.logging_json_enabled)
    return configure_logging(json_logging=json_logging, level=level)


def _build_client(cfg: ReconcileConfig, token: str | None) -> GitHubRestClient:
    manager = create_env_auth_manager()
    return GitHubRestClient(
        token=manager.require_github_token(token),
        repo=cfg.full_repo,
        base_url=cfg.api_url,
    )


def write_github_outputs(result: ReconcileResult, path: str | None = None) -> bool:
    """Append step outputs to ``$GITHUB_OUTPUT`` when running inside Actions."""
    target = path or os.environ.get("GITHUB_OUTPUT")
    if not target:
        return False
    with open(target, "a", encoding="utf-8") as fh:
        for key, value in result.to_outputs().items():
            text = str(value)
            if "\n" in text:
                fh.write(f"{key}<<ISSUECANON_EOF\n{text}\nISSUECANON_EOF\n")
            else:
                fh.write(f"{key}={text}\n")
    return True


def _cmd_reconcile(
    cfg: ReconcileConfig, args: argparse.Namespace, tracker: IssueTracker, logger: StructuredLogger
) -> int:
    result = reconcile(cfg, tracker, logger=logger)
    for line in format_result(result):
        print(line)
    if args.json_output:
        print(json.dumps(result.summary(), indent=2))
    write_github_outputs(result)
    return 0


def _describe(issue: Issue | None) -> str:
    if issue is None:
        return "none"
    return f"#{issue.number} [{issue.state}] {issue.html_url}".rstrip()


def _cmd_find(
    cfg: ReconcileConfig, args: argparse.Namespace, tracker: IssueTracker, logger: StructuredLogger
) -> int:
    matcher = build_matcher(cfg, tracker, logger)
    print(f"[find] open:   {_describe(matcher.find_one('open'))}")
    print(f"[find] closed: {_describe(matcher.find_one('closed'))}")
    matches = matcher.find_all()
    print(f"[find] all matches: {len(matches)}")
    for issue in matches:
        print(f"  {_describe(issue)}")
    return 0


def main(argv: list[str] | None = None, tracker: IssueTracker | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logger = _configure_logger(args, None)
    try:
        cfg = _resolve_config(args)
        logger = _configure_logger(args, cfg)
        logger.debug(
            f"repo={cfg.full_repo} title={cfg.title!r} labels={cfg.labels} "
            f"match_labels={cfg.match_labels}"
        )
        client = tracker if tracker is not None else _build_client(cfg, args.token)
        if args.cmd == "find":
            return _cmd_find(cfg, args, client, logger)
        return _cmd_reconcile(cfg, args, client, logger)
    except (ConfigError, AuthError) as exc:
        logger.log_error(FAILURE_MESSAGE, error=redact(str(exc)))
        print(f"[{args.cmd}] {redact(str(exc))}", file=sys.stderr)
        return 1
    except (ReconcileError, GitHubAPIError, requests.RequestException) as exc:
        info = classify_error(exc)
        logger.log_error(FAILURE_MESSAGE, error=info.message, category=info.category)
        print(f"[{args.cmd}] {FAILURE_MESSAGE}: {info.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
