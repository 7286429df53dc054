"""Tests for workflow parser."""

import pytest
from gateway.src.services.workflow_parser import (
    default_workflow,
    parse_workflow_config,
    parse_workflow_dict,
    WorkflowConfigError,
)

def test_default_workflow():
    result = default_workflow()
    assert result["name"] == "Rust"
    assert result["triggers"] == {
        "push": {"branches": ["main"]},
        "pull_request": {"branches": ["main"]},
    }
    assert result["env"] == {"CARGO_TERM_COLOR": "always"}
    assert [s["name"] for s in result["steps"]] == ["Build", "Run tests", "Clippy Action"]
    assert result["steps"][0]["run"] == "cargo build --verbose"
    assert result["steps"][1]["run"] == "cargo test --verbose"
    assert result["steps"][2]["uses"] == "auguwu/clippy-action@1.3.0"
    assert result["steps"][2]["with"] == {}
    # Filled in by the runner from its step_timeout setting
    assert result["steps"][0]["timeout"] is None

def test_checkout_step_is_dropped():
    result = default_workflow()
    assert all(s["uses"] != "actions/checkout@v3" for s in result["steps"])

def test_clippy_options():
    config = """
on: push
jobs:
  lint:
    steps:
      - name: Clippy
        uses: auguwu/clippy-action@1.3.0
        with:
          deny: clippy::unwrap_used, clippy::expect_used
          all-features: true
          check-args:
          token: ghp_secret
"""
    step = parse_workflow_config(config)["steps"][0]
    assert step["with"] == {
        "deny": "clippy::unwrap_used, clippy::expect_used",
        "all-features": True,
        "token": "ghp_secret",
    }

def test_bare_on_key_loaded_as_boolean():
    # `on` is a YAML 1.1 boolean, so PyYAML keys it as True
    result = parse_workflow_dict({
        True: {"push": {"branches": ["main"]}},
        "jobs": {"build": {"steps": [{"run": "cargo build"}]}},
    })
    assert result["triggers"] == {"push": {"branches": ["main"]}}

def test_on_as_list_matches_all_branches():
    config = """
on: [push, pull_request, workflow_dispatch]
jobs:
  build:
    steps:
      - run: cargo build
"""
    result = parse_workflow_config(config)
    assert result["triggers"] == {"push": {}, "pull_request": {}}
    assert result["steps"][0]["name"] == "cargo build"

def test_ref_filters():
    config = """
on:
  push:
    branches-ignore: [ "gh-pages" ]
    tags: [ "v*" ]
  pull_request:
    branches: [ "**", "!wip/**" ]
jobs:
  build:
    steps:
      - run: cargo build
"""
    assert parse_workflow_config(config)["triggers"] == {
        "push": {"branches_ignore": ["gh-pages"], "tags": ["v*"]},
        "pull_request": {"branches": ["**", "!wip/**"]},
    }

@pytest.mark.parametrize("trigger, message", [
    ("push: {branches: [main], branches-ignore: [dev]}", "both 'branches' and 'branches-ignore'"),
    ("push: {tags: [v1], tags-ignore: [v0]}", "both 'tags' and 'tags-ignore'"),
    ("pull_request: {tags: [v1]}", "unsupported filter(s): tags"),
    ("push: {paths: [src/**]}", "unsupported filter(s): paths"),
    ("push: {branches: ['!main']}", "at least one pattern without '!'"),
    ("push: {branches: []}", "non-empty list of patterns"),
    ("push: {branches: [1]}", "non-empty list of patterns"),
])
def test_invalid_ref_filters(trigger, message):
    config = f"""
on:
  {trigger}
jobs:
  build:
    steps:
      - run: cargo build
"""
    with pytest.raises(WorkflowConfigError) as excinfo:
        parse_workflow_config(config)
    assert message in str(excinfo.value)

def test_no_supported_trigger():
    config = """
on: workflow_dispatch
jobs:
  build:
    steps:
      - run: cargo build
"""
    with pytest.raises(WorkflowConfigError, match="at least one of"):
        parse_workflow_config(config)

def test_run_and_uses_in_one_step():
    config = """
on: push
jobs:
  build:
    steps:
      - name: Run tests
        run: cargo test --verbose
        uses: auguwu/clippy-action@1.3.0
"""
    with pytest.raises(WorkflowConfigError, match="both 'run' and 'uses'"):
        parse_workflow_config(config)

def test_step_nested_inside_step():
    config = {
        "on": "push",
        "jobs": {"build": {"steps": [
            {
                "name": "Run tests",
                "run": "cargo test --verbose",
                "steps": [{"name": "Clippy Action", "uses": "auguwu/clippy-action@1.3.0"}],
            },
        ]}},
    }
    with pytest.raises(WorkflowConfigError, match="unknown keys: steps"):
        parse_workflow_dict(config)

def test_unsupported_action():
    config = """
on: push
jobs:
  build:
    steps:
      - uses: actions-rs/cargo@v1
"""
    with pytest.raises(WorkflowConfigError, match="unsupported action"):
        parse_workflow_config(config)

def test_unknown_clippy_option():
    config = """
on: push
jobs:
  build:
    steps:
      - uses: auguwu/clippy-action@1.3.0
        with:
          deny-all: true
"""
    with pytest.raises(WorkflowConfigError, match="unknown clippy option"):
        parse_workflow_config(config)

@pytest.mark.parametrize("option, message", [
    ("deny: 5", "'deny'"),
    ("all-features: yes please", "'all-features'"),
    ("warn: {pedantic: true}", "'warn'"),
])
def test_malformed_clippy_option_values(option, message):
    config = f"""
on: push
jobs:
  build:
    steps:
      - run: cargo build
      - run: cargo test
      - uses: auguwu/clippy-action@1.3.0
        with:
          {option}
"""
    with pytest.raises(WorkflowConfigError, match="invalid clippy options") as excinfo:
        parse_workflow_config(config)
    assert message in str(excinfo.value)

def test_with_on_run_step():
    config = """
on: push
jobs:
  build:
    steps:
      - run: cargo build
        with:
          args: --release
"""
    with pytest.raises(WorkflowConfigError, match="only allowed on 'uses'"):
        parse_workflow_config(config)

def test_multiple_jobs():
    config = """
on: push
jobs:
  build:
    steps:
      - run: cargo build
  lint:
    steps:
      - run: cargo clippy
"""
    with pytest.raises(WorkflowConfigError, match="exactly one job"):
        parse_workflow_config(config)

def test_missing_jobs():
    with pytest.raises(WorkflowConfigError, match="must have 'jobs'"):
        parse_workflow_config("on: push\n")

def test_only_checkout():
    config = """
on: push
jobs:
  build:
    steps:
      - uses: actions/checkout@v4
"""
    with pytest.raises(WorkflowConfigError, match="no steps besides checkout"):
        parse_workflow_config(config)

def test_timeout_and_env():
    config = """
on: push
env:
  RUST_BACKTRACE: 1
jobs:
  build:
    env:
      CARGO_INCREMENTAL: false
    steps:
      - run: cargo build
        timeout-minutes: 2
        env:
          RUSTFLAGS: -Dwarnings
"""
    result = parse_workflow_config(config)
    assert result["env"] == {"RUST_BACKTRACE": "1", "CARGO_INCREMENTAL": "false"}
    assert result["steps"][0]["timeout"] == 120
    assert result["steps"][0]["env"] == {"RUSTFLAGS": "-Dwarnings"}

def test_invalid_timeout():
    config = """
on: push
jobs:
  build:
    steps:
      - run: cargo build
        timeout-minutes: soon
"""
    with pytest.raises(WorkflowConfigError, match="timeout-minutes"):
        parse_workflow_config(config)

def test_empty_config():
    with pytest.raises(WorkflowConfigError, match="Empty"):
        parse_workflow_config("")

def test_invalid_yaml():
    with pytest.raises(WorkflowConfigError, match="Invalid YAML"):
        parse_workflow_config("on: [push\njobs: {")
