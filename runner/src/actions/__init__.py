"""
Turn a workflow step into the command a backend executes.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ValidationError

from runner.src.actions.clippy import ClippyOptions
from runner.src.models.step import StepConfig

CLIPPY_ACTION = "auguwu/clippy-action"


class UnsupportedActionError(Exception):
    """Raised when a step references an action the runner cannot execute."""
    pass


class StepCommand(BaseModel):
    argv: List[str]
    # Relative to the checkout, or absolute
    working_directory: Optional[str] = None
    env: Dict[str, str] = {}


def action_name(uses: str) -> str:
    return uses.split("@", 1)[0]


def resolve_command(step: StepConfig, base_env: Optional[Dict[str, str]] = None) -> StepCommand:
    """
    Build the command for a step.

    `base_env` is the process-wide and workflow environment; the step's own
    env is layered on top.
    """
    env = dict(base_env or {})
    env.update(step.env)

    if step.run is not None:
        # Same shell semantics as a hosted runner: stop at the first failing line
        return StepCommand(argv=["/bin/sh", "-e", "-c", step.run], env=env)

    if step.uses and action_name(step.uses) == CLIPPY_ACTION:
        try:
            options = ClippyOptions.model_validate(step.with_)
        except ValidationError as e:
            raise UnsupportedActionError(f"Invalid options for {step.uses}: {e}") from e

        return StepCommand(
            argv=options.command(),
            working_directory=options.working_directory,
            env=env,
        )

    raise UnsupportedActionError(f"Step '{step.name}' uses unsupported action '{step.uses}'")


def report_token(steps: List[StepConfig]) -> Optional[str]:
    """The first clippy `token` input in the workflow, if any."""
    for step in steps:
        if step.uses and action_name(step.uses) == CLIPPY_ACTION:
            token = step.with_.get("token")
            if token:
                return str(token)
    return None


__all__ = [
    "ClippyOptions",
    "StepCommand",
    "UnsupportedActionError",
    "report_token",
    "resolve_command",
]
