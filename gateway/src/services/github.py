"""
GitHub service for webhook validation and repo operations.
"""

import asyncio
import hmac
import hashlib
import tempfile
import shutil
import os
import logging
from typing import Optional, Dict, Any, List

from gateway.src.config import get_settings
from gateway.src.models.trigger import EventKind, Trigger

logger = logging.getLogger(__name__)
settings = get_settings()

# Pull request actions that change the code under test
PULL_REQUEST_ACTIONS = ("opened", "synchronize", "reopened")

class RepositoryError(Exception):
    """Raised when a repository cannot be cloned or checked out."""
    pass

def verify_signature(payload: bytes, signature: str) -> bool:
    """Verify GitHub webhook signature."""
    if not settings.github_webhook_secret:
        # Skip verification if no secret configured (development)
        return True

    expected = "sha256=" + hmac.new(
        settings.github_webhook_secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)

async def run_git(args: List[str], cwd: Optional[str] = None, timeout: int = 60) -> str:
    """Run a git command without blocking the event loop."""
    proc = await asyncio.create_subprocess_exec(
        "git", *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    try:
        out, _ = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise RepositoryError(f"git {args[0]} timed out after {timeout}s")

    output = out.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise RepositoryError(f"git {args[0]} failed: {output.strip()}")
    return output

async def clone_repository(clone_url: str, commit_sha: str) -> str:
    """
    Clone repository to temporary directory.
    Returns path to cloned repo.
    """
    temp_dir = tempfile.mkdtemp(prefix="ferroci_")
    repo_path = os.path.join(temp_dir, "repo")

    try:
        await run_git(["clone", "--depth", "1", clone_url, repo_path], timeout=120)

        if commit_sha:
            try:
                await run_git(["fetch", "--depth", "1", "origin", commit_sha], cwd=repo_path)
            except RepositoryError as e:
                logger.warning(f"Fetching {commit_sha} failed, trying the clone as is: {e}")
            await run_git(["checkout", commit_sha], cwd=repo_path, timeout=30)

        return repo_path
    except RepositoryError:
        cleanup_repo(repo_path)
        raise

def read_workflow_file(repo_path: str) -> Optional[str]:
    """
    Read the first workflow file found in the repository.
    Returns its raw YAML text or None if there is none.
    """
    for relative in settings.workflow_paths:
        config_path = os.path.join(repo_path, relative)
        if os.path.exists(config_path):
            logger.info(f"Using workflow file {relative}")
            with open(config_path, "r") as f:
                return f.read()

    return None

def _repo_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    repo = payload.get("repository") or {}
    return {
        "repo_name": repo.get("name", ""),
        "repo_full_name": repo.get("full_name", ""),
        "clone_url": repo.get("clone_url", ""),
    }

def parse_push_payload(payload: Dict[str, Any]) -> Trigger:
    """Build a push Trigger from a GitHub push webhook payload."""
    head_commit = payload.get("head_commit") or {}

    # refs/heads/main -> branch main, refs/tags/v1 -> tag v1
    ref = payload.get("ref", "")
    branch, tag = ref, ""
    if ref.startswith("refs/heads/"):
        branch = ref[len("refs/heads/"):]
    elif ref.startswith("refs/tags/"):
        branch, tag = "", ref[len("refs/tags/"):]

    return Trigger(
        kind=EventKind.PUSH,
        branch=branch,
        tag=tag,
        commit_sha=head_commit.get("id") or payload.get("after", ""),
        commit_message=head_commit.get("message", ""),
        actor=(payload.get("pusher") or {}).get("name", ""),
        **_repo_fields(payload),
    )

def parse_pull_request_payload(payload: Dict[str, Any]) -> Trigger:
    """
    Build a pull_request Trigger from a GitHub pull_request payload.

    The branch is the base branch the pull request targets; the commit is
    the head of the pull request.
    """
    pr = payload.get("pull_request") or {}
    base = pr.get("base") or {}
    head = pr.get("head") or {}

    return Trigger(
        kind=EventKind.PULL_REQUEST,
        branch=base.get("ref", ""),
        commit_sha=head.get("sha", ""),
        commit_message=pr.get("title", ""),
        actor=(pr.get("user") or {}).get("login", ""),
        pull_request_number=payload.get("number") or pr.get("number") or 0,
        **_repo_fields(payload),
    )

def cleanup_repo(repo_path: str):
    """Clean up cloned repository."""
    if repo_path and os.path.exists(os.path.dirname(repo_path)):
        # Remove the parent temp directory
        shutil.rmtree(os.path.dirname(repo_path), ignore_errors=True)
