"""Tests for webhook handling."""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from gateway.src.db.database import get_db
from gateway.src.main import app
from gateway.src.models.pipeline import PipelineRun, PipelineStep
from gateway.src.models.trigger import EventKind
from gateway.src.services.github import (
    RepositoryError,
    clone_repository,
    parse_push_payload,
    parse_pull_request_payload,
    verify_signature,
)
from gateway.src.services.workflow_parser import DEFAULT_WORKFLOW

REPOSITORY = {
    "name": "test-repo",
    "full_name": "user/test-repo",
    "clone_url": "https://github.com/user/test-repo.git",
}

def push_payload(branch: str = "main") -> dict:
    return {
        "ref": f"refs/heads/{branch}",
        "repository": REPOSITORY,
        "head_commit": {
            "id": "abc123def456",
            "message": "Test commit",
        },
        "pusher": {
            "name": "testuser",
        },
    }

def pull_request_payload(base: str = "main", action: str = "opened") -> dict:
    return {
        "action": action,
        "number": 7,
        "repository": REPOSITORY,
        "pull_request": {
            "title": "Add widgets",
            "user": {"login": "contributor"},
            "base": {"ref": base},
            "head": {"ref": "widgets", "sha": "fedcba987654"},
        },
    }

class FakeResult:
    def scalar_one_or_none(self):
        return None

class FakeSession:
    def __init__(self):
        self.added = []
        self.committed = False

    async def execute(self, query):
        return FakeResult()

    def add(self, obj):
        self.added.append(obj)

    async def flush(self):
        pass

    async def commit(self):
        self.committed = True

@pytest.fixture
def session():
    fake = FakeSession()
    app.dependency_overrides[get_db] = lambda: fake
    yield fake
    app.dependency_overrides.clear()

@pytest.fixture
def client(session):
    return TestClient(app)

@pytest.fixture
def enqueue():
    with patch("gateway.src.routes.webhooks.enqueue_pipeline_run", new_callable=AsyncMock) as mock:
        yield mock

@pytest.fixture
def workflow():
    with patch("gateway.src.routes.webhooks.fetch_workflow", new_callable=AsyncMock) as mock:
        mock.return_value = DEFAULT_WORKFLOW
        yield mock

def post(client, event: str, payload: dict):
    return client.post(
        "/api/webhooks/github",
        json=payload,
        headers={"X-GitHub-Event": event},
    )

def test_parse_push_payload():
    trigger = parse_push_payload(push_payload())

    assert trigger.kind == EventKind.PUSH
    assert trigger.repo_name == "test-repo"
    assert trigger.repo_full_name == "user/test-repo"
    assert trigger.branch == "main"
    assert trigger.commit_sha == "abc123def456"
    assert trigger.actor == "testuser"

def test_parse_payload_with_after():
    """Test fallback to 'after' field for commit SHA."""
    payload = push_payload("feature")
    payload["head_commit"] = None
    payload["after"] = "xyz789"

    trigger = parse_push_payload(payload)
    assert trigger.commit_sha == "xyz789"
    assert trigger.branch == "feature"

def test_parse_pull_request_payload_uses_base_branch():
    trigger = parse_pull_request_payload(pull_request_payload(base="main"))

    assert trigger.kind == EventKind.PULL_REQUEST
    assert trigger.branch == "main"
    assert trigger.commit_sha == "fedcba987654"
    assert trigger.actor == "contributor"
    assert trigger.pull_request_number == 7

def test_verify_signature_without_secret():
    """When no secret is configured, verification should pass."""
    assert verify_signature(b"payload", "sha256=anything") is True

def test_ping(client):
    response = post(client, "ping", {"zen": "Keep it logically awesome."})
    assert response.status_code == 200
    assert response.json()["status"] == "pong"

def test_unhandled_event_is_ignored(client, enqueue):
    response = post(client, "issues", {"action": "opened"})
    assert response.json() == {
        "status": "ignored",
        "event": "issues",
        "reason": "Event type 'issues' not handled",
    }
    enqueue.assert_not_called()

def test_closed_pull_request_is_ignored(client, enqueue):
    response = post(client, "pull_request", pull_request_payload(action="closed"))
    assert response.json()["status"] == "ignored"
    enqueue.assert_not_called()

def test_invalid_json(client):
    response = client.post(
        "/api/webhooks/github",
        content=b"not json",
        headers={"X-GitHub-Event": "push", "Content-Type": "application/json"},
    )
    assert response.status_code == 400

def test_push_to_main_queues_run(client, session, workflow, enqueue):
    response = post(client, "push", push_payload("main"))

    body = response.json()
    assert body["status"] == "queued"
    assert body["steps"] == 3

    runs = [o for o in session.added if isinstance(o, PipelineRun)]
    steps = [o for o in session.added if isinstance(o, PipelineStep)]
    assert len(runs) == 1
    assert runs[0].event == "push"
    assert runs[0].branch == "main"
    assert runs[0].status == "pending"
    assert all(s.status == "pending" for s in steps)
    assert [s.name for s in sorted(steps, key=lambda s: s.step_order)] == [
        "Build", "Run tests", "Clippy Action",
    ]
    assert session.committed

    enqueue.assert_awaited_once()
    kwargs = enqueue.await_args.kwargs
    assert kwargs["run_id"] == body["run_id"]
    assert kwargs["trigger"].branch == "main"

def test_push_to_feature_branch_creates_no_run(client, session, workflow, enqueue):
    response = post(client, "push", push_payload("feature-x"))

    body = response.json()
    assert body["status"] == "skipped"
    assert "feature-x" in body["reason"]
    assert session.added == []
    enqueue.assert_not_called()

def test_pull_request_to_main_queues_run(client, session, workflow, enqueue):
    response = post(client, "pull_request", pull_request_payload(base="main"))

    assert response.json()["status"] == "queued"
    run = next(o for o in session.added if isinstance(o, PipelineRun))
    assert run.event == "pull_request"
    assert run.commit_sha == "fedcba987654"

def test_malformed_workflow_creates_no_run(client, session, workflow, enqueue):
    workflow.return_value = "on: push\njobs:\n  build:\n    steps: []\n"

    response = post(client, "push", push_payload("main"))

    body = response.json()
    assert body["status"] == "error"
    assert "at least one step" in body["reason"]
    assert session.added == []
    enqueue.assert_not_called()

def test_missing_commit_is_skipped(client, workflow, enqueue):
    payload = push_payload("main")
    payload["head_commit"] = {}

    response = post(client, "push", payload)

    assert response.json()["status"] == "skipped"
    workflow.assert_not_called()
    enqueue.assert_not_called()

def test_parse_tag_push_payload():
    payload = push_payload()
    payload["ref"] = "refs/tags/v1.2.0"

    trigger = parse_push_payload(payload)

    assert trigger.tag == "v1.2.0"
    assert trigger.branch == ""
    assert trigger.ref_name == "v1.2.0"

def test_branch_deletion_is_skipped(client, session, workflow, enqueue):
    payload = push_payload("feature-x")
    payload.update({"deleted": True, "head_commit": None, "after": "0" * 40})

    response = post(client, "push", payload)

    assert response.json()["status"] == "skipped"
    workflow.assert_not_called()
    assert session.added == []
    enqueue.assert_not_called()

def test_tag_push_with_branch_only_filter_creates_no_run(client, session, workflow, enqueue):
    payload = push_payload()
    payload["ref"] = "refs/tags/v1.2.0"

    response = post(client, "push", payload)

    assert response.json()["status"] == "skipped"
    assert session.added == []

def test_ignored_branch_creates_no_run(client, session, workflow, enqueue):
    workflow.return_value = DEFAULT_WORKFLOW.replace(
        'push:\n    branches: [ "main" ]',
        'push:\n    branches-ignore: [ "main" ]',
    )

    assert post(client, "push", push_payload("main")).json()["status"] == "skipped"
    assert post(client, "push", push_payload("feature-x")).json()["status"] == "queued"
    assert enqueue.await_count == 1

@pytest.mark.asyncio
async def test_clone_failure_removes_temp_dir(tmp_path, monkeypatch):
    clone_dir = tmp_path / "clone"
    clone_dir.mkdir()
    monkeypatch.setattr("gateway.src.services.github.tempfile.mkdtemp", lambda prefix: str(clone_dir))

    with pytest.raises(RepositoryError, match="git clone failed"):
        await clone_repository(str(tmp_path / "missing"), "abc123")

    assert not clone_dir.exists()
