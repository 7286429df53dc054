"""
Per-run repository checkouts for the local backend.
"""

import asyncio
import logging
import os
import shutil
from typing import List, Optional

from runner.src.errors import WorkspaceError

logger = logging.getLogger(__name__)

async def _git(args: List[str], cwd: Optional[str], timeout: int) -> str:
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
        raise WorkspaceError(f"git {args[0]} timed out after {timeout}s")

    output = out.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise WorkspaceError(f"git {args[0]} failed: {output.strip()}")
    return output

async def checkout(clone_url: str, commit_sha: str, path: str) -> str:
    """
    Clone `clone_url` into `path` and check out `commit_sha`.
    Returns the checkout path.
    """
    if not clone_url:
        raise WorkspaceError("No clone URL for this run")

    os.makedirs(os.path.dirname(path), exist_ok=True)
    logger.info(f"Cloning {clone_url} into {path}")

    await _git(["clone", "--depth", "1", clone_url, path], cwd=None, timeout=120)

    if commit_sha:
        # The commit may not be the branch tip any more
        try:
            await _git(["fetch", "--depth", "1", "origin", commit_sha], cwd=path, timeout=60)
        except WorkspaceError as e:
            logger.warning(f"Fetching {commit_sha} failed, trying the clone as is: {e}")
        await _git(["checkout", "--detach", commit_sha], cwd=path, timeout=30)

    return path

def remove(path: str):
    """Remove a run's workspace directory."""
    if path and os.path.exists(path):
        shutil.rmtree(path, ignore_errors=True)
        logger.debug(f"Removed workspace {path}")
