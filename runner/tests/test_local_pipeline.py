"""End to end: the built-in workflow through the executor on the local backend."""

import os
import stat

import pytest

from conftest import make_job
from gateway.src.services.workflow_parser import DEFAULT_WORKFLOW, parse_workflow_config
from runner.src.models.step import RunStatus, StepStatus
from runner.src.services.backends import LocalBackend
from runner.src.services.executor import execute_pipeline
from runner.src.services.status_reporter import RunReporter

# Stands in for cargo: echoes its invocation, fails the subcommand named in FAKE_CARGO_FAIL
FAKE_CARGO = """#!/bin/sh
echo "cargo $* color=$CARGO_TERM_COLOR in $(basename "$(pwd)")"
if [ "$1" = "$FAKE_CARGO_FAIL" ]; then
    echo "error: could not compile \\`widgets\\`" >&2
    exit 101
fi
"""

@pytest.fixture
def cargo(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "cargo"
    script.write_text(FAKE_CARGO)
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ['PATH']}")
    monkeypatch.delenv("FAKE_CARGO_FAIL", raising=False)

@pytest.fixture
def run(origin, tmp_path):
    url, shas = origin
    backend = LocalBackend(workspace_root=str(tmp_path / "runs"))
    job = make_job(parse_workflow_config(DEFAULT_WORKFLOW), clone_url=url, commit_sha=shas[1])

    async def execute():
        return await execute_pipeline(job, backend, RunReporter())

    return execute, backend, job

@pytest.mark.asyncio
async def test_default_workflow_succeeds(cargo, run):
    execute, backend, job = run

    result = await execute()

    assert result.status == RunStatus.SUCCEEDED
    assert [s.logs for s in result.steps] == [
        "cargo build --verbose color=always in repo\n",
        "cargo test --verbose color=always in repo\n",
        "cargo clippy -- color=always in repo\n",
    ]
    # Workspace is removed once the run is over
    assert not os.path.exists(os.path.dirname(backend.workspace_for(job)))

@pytest.mark.asyncio
async def test_default_workflow_stops_at_failing_test_step(cargo, run, monkeypatch):
    monkeypatch.setenv("FAKE_CARGO_FAIL", "test")
    execute, _, _ = run

    result = await execute()

    assert result.status == RunStatus.FAILED
    assert result.describe() == "failed at step 2: Run tests"
    assert result.steps[1].exit_code == 101
    assert "could not compile `widgets`" in result.steps[1].logs
    assert result.steps[2].status == StepStatus.SKIPPED
    assert result.steps[2].logs is None
