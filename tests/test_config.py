from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from issuecanon.config import (
    DEFAULT_CLOSE_COMMENT,
    ConfigError,
    ReconcileConfig,
    as_bool,
    blank_to_none,
    config_from_env,
    load_config,
    parse_repo,
    split_list,
)

FULL_CONFIG = textwrap.dedent(
    """\
    github:
      repo: acme/widgets
      api_url: https://ghe.example.com/api/v3
    issue:
      title: Nightly build failed
      body: |
        See the logs.
      milestone: "Sprint 1"
      labels: [bug, ci]
      assignees: octocat, hubot
    behavior:
      reuse: true
      reuse_reopen: "yes"
      bump_with_comment: false
      match_labels: false
      close_others: false
      close_comment: Superseded.
      per_page: 50
    logging:
      json_enabled: true
      level: DEBUG
    """
)


def test_defaults_preserve_close_and_create_behaviour():
    cfg = ReconcileConfig()
    assert cfg.reuse is False
    assert cfg.match_labels is True
    assert cfg.close_others is True
    assert cfg.close_comment == DEFAULT_CLOSE_COMMENT
    assert cfg.per_page == 100


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("a, b,,c ", ["a", "b", "c"]), ("", []), (None, []), ([" x ", ""], ["x"])],
)
def test_split_list(raw, expected):
    assert split_list(raw) == expected


@pytest.mark.parametrize(
    ("raw", "default", "expected"),
    [
        ("true", False, True),
        ("YES", False, True),
        (" 1 ", False, True),
        ("false", True, False),
        ("nope", True, False),
        ("", True, True),
        (None, False, False),
        (True, False, True),
    ],
)
def test_as_bool(raw, default, expected):
    assert as_bool(raw, default) is expected


def test_parse_repo_rejects_malformed():
    assert parse_repo("acme/widgets") == ("acme", "widgets")
    for bad in ("acme", "/widgets", "acme/", "a/b/c"):
        with pytest.raises(ConfigError):
            parse_repo(bad)


def test_load_config_reads_all_sections(tmp_path: Path):
    path = tmp_path / "issuecanon.yaml"
    path.write_text(FULL_CONFIG)

    cfg = load_config(path)

    assert (cfg.owner, cfg.repo) == ("acme", "widgets")
    assert cfg.api_url == "https://ghe.example.com/api/v3"
    assert cfg.title == "Nightly build failed"
    assert cfg.body == "See the logs.\n"
    assert cfg.milestone == "Sprint 1"
    assert cfg.labels == ["bug", "ci"]
    assert cfg.assignees == ["octocat", "hubot"]
    assert cfg.reuse is True and cfg.reuse_reopen is True
    assert cfg.match_labels is False and cfg.close_others is False
    assert cfg.close_comment == "Superseded."
    assert cfg.per_page == 50
    assert cfg.logging_json_enabled is True and cfg.logging_level == "DEBUG"


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_load_config_invalid_yaml(tmp_path: Path):
    path = tmp_path / "bad.yaml"
    path.write_text("issue: [unclosed\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_config_from_env_reads_action_inputs():
    env = {
        "GITHUB_REPOSITORY": "acme/widgets",
        "INPUT_TITLE": "Build failed",
        "INPUT_BODY": "",
        "INPUT_LABELS": "bug, ci",
        "INPUT_ASSIGNEES": "",
        "INPUT_REUSE": "true",
        "INPUT_MATCH_LABELS": "",
        "INPUT_CLOSE_OTHERS": "false",
        "INPUT_CLOSE_COMMENT": "",
    }
    cfg = config_from_env(env)
    assert cfg.full_repo == "acme/widgets"
    assert cfg.title == "Build failed"
    assert cfg.body is None
    assert cfg.labels == ["bug", "ci"]
    assert cfg.assignees == []
    assert cfg.reuse is True
    assert cfg.match_labels is True
    assert cfg.close_others is False
    assert cfg.close_comment == DEFAULT_CLOSE_COMMENT


def test_config_from_env_owner_repo_inputs_override_context():
    env = {"GITHUB_REPOSITORY": "acme/widgets", "INPUT_OWNER": "other", "INPUT_REPO": "tools"}
    cfg = config_from_env(env)
    assert cfg.full_repo == "other/tools"


def test_config_from_env_keeps_base_values():
    base = ReconcileConfig(owner="acme", repo="widgets", title="From file", reuse=True)
    cfg = config_from_env({}, base=base)
    assert cfg.title == "From file"
    assert cfg.reuse is True


def test_with_overrides_ignores_none_and_rejects_unknown():
    cfg = ReconcileConfig(title="A").with_overrides(title=None, reuse=True)
    assert cfg.title == "A" and cfg.reuse is True
    with pytest.raises(ConfigError):
        cfg.with_overrides(colour="blue")


def test_validate_requires_title_and_repo():
    with pytest.raises(ConfigError, match="title"):
        ReconcileConfig(owner="a", repo="b", title="  ").validate()
    with pytest.raises(ConfigError, match="repository"):
        ReconcileConfig(title="x").validate()
    assert ReconcileConfig(owner="a", repo="b", title="x").validate().title == "x"


@pytest.mark.parametrize("value", ["lots", "null"])
def test_load_config_rejects_non_integer_page_size(tmp_path: Path, value):
    path = tmp_path / "issuecanon.yaml"
    path.write_text(f"behavior:\n  per_page: {value}\n")
    with pytest.raises(ConfigError, match="per_page"):
        load_config(path)


@pytest.mark.parametrize(("raw", "expected"), [(None, None), ("   ", None), ("\n", None), (" x ", " x ")])
def test_blank_to_none(raw, expected):
    assert blank_to_none(raw) == expected
