import subprocess

import pytest

from runner.src.models.step import PipelineJob

# What the gateway queues for the built-in workflow
DEFAULT_CONFIG = {
    "name": "Rust",
    "job": "build",
    "triggers": {"push": {"branches": ["main"]}, "pull_request": {"branches": ["main"]}},
    "env": {},
    "steps": [
        {"name": "Build", "run": "cargo build --verbose", "uses": None,
         "with": {}, "env": {}, "timeout": None},
        {"name": "Run tests", "run": "cargo test --verbose", "uses": None,
         "with": {}, "env": {}, "timeout": None},
        {"name": "Clippy Action", "run": None, "uses": "auguwu/clippy-action@1.3.0",
         "with": {"deny": "clippy::unwrap_used"}, "env": {}, "timeout": None},
    ],
}

def make_job(config=None, kind="push", run_id="run-1", **trigger) -> PipelineJob:
    return PipelineJob.model_validate({
        "run_id": run_id,
        "config": config or DEFAULT_CONFIG,
        "trigger": {
            "kind": kind,
            "branch": "main",
            "repo_name": "widgets",
            "repo_full_name": "acme/widgets",
            "clone_url": "https://github.com/acme/widgets.git",
            "commit_sha": "0123456789abcdef0123456789abcdef01234567",
            **trigger,
        },
        "queued_at": "2024-01-01T00:00:00",
    })

@pytest.fixture
def job() -> PipelineJob:
    return make_job()

def git(*args: str, cwd: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=ferroci", "-c", "user.email=ci@example.com", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()

@pytest.fixture
def origin(tmp_path):
    """A local repository with two commits; yields (path, [first_sha, second_sha])."""
    path = tmp_path / "origin"
    path.mkdir()
    git("init", "-q", cwd=str(path))

    shas = []
    for version in ("0.1.0", "0.2.0"):
        (path / "Cargo.toml").write_text(f'[package]\nname = "widgets"\nversion = "{version}"\n')
        git("add", "Cargo.toml", cwd=str(path))
        git("commit", "-q", "-m", f"Release {version}", cwd=str(path))
        shas.append(git("rev-parse", "HEAD", cwd=str(path)))

    return str(path), shas
