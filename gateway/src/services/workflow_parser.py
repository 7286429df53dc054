"""
Workflow YAML parser and validator.

Accepts the hosting service's workflow dialect (``on`` / ``env`` / ``jobs``)
restricted to what the runner can execute: a single job of ``run`` and
``uses`` steps.
"""

import yaml
from typing import List, Dict, Any, Optional

from pydantic import ValidationError

from runner.src.actions.clippy import ClippyOptions

SUPPORTED_EVENTS = ("push", "pull_request")

# Ref filters understood per event
FILTER_KEYS = {
    "push": ("branches", "branches-ignore", "tags", "tags-ignore"),
    "pull_request": ("branches", "branches-ignore"),
}

CHECKOUT_ACTION = "actions/checkout"
CLIPPY_ACTION = "auguwu/clippy-action"
SUPPORTED_ACTIONS = (CHECKOUT_ACTION, CLIPPY_ACTION)

CLIPPY_OPTIONS = (
    "check-args",
    "warn",
    "allow",
    "deny",
    "forbid",
    "all-features",
    "args",
    "working-directory",
    "token",
)

STEP_KEYS = {"name", "run", "uses", "with", "env", "timeout-minutes", "id"}

DEFAULT_WORKFLOW = """
name: Rust

on:
  push:
    branches: [ "main" ]
  pull_request:
    branches: [ "main" ]

env:
  CARGO_TERM_COLOR: always

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
    - uses: actions/checkout@v3
    - name: Build
      run: cargo build --verbose
    - name: Run tests
      run: cargo test --verbose
    - name: Clippy Action
      uses: auguwu/clippy-action@1.3.0
"""

class WorkflowConfigError(Exception):
    """Raised when a workflow configuration is malformed."""
    pass

def parse_workflow_config(yaml_content: str) -> Dict[str, Any]:
    """Parse workflow YAML configuration from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise WorkflowConfigError(f"Invalid YAML: {e}")

    return validate_config(config)

def parse_workflow_dict(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate workflow configuration from dict."""
    return validate_config(config)

def default_workflow() -> Dict[str, Any]:
    """The built-in Build / Test / Lint workflow."""
    return parse_workflow_config(DEFAULT_WORKFLOW)

def validate_config(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate workflow configuration structure."""
    if not config:
        raise WorkflowConfigError("Empty workflow configuration")

    if not isinstance(config, dict):
        raise WorkflowConfigError("Workflow configuration must be a dictionary")

    name = config.get("name", "Unnamed Workflow")
    if not isinstance(name, str):
        raise WorkflowConfigError("Workflow 'name' must be a string")

    # YAML 1.1 loads a bare `on` key as boolean True
    if "on" in config:
        on = config["on"]
    elif True in config:
        on = config[True]
    else:
        raise WorkflowConfigError("Workflow must have 'on' defined")

    triggers = validate_triggers(on)
    env = validate_env(config.get("env", {}), "Workflow")

    if "jobs" not in config:
        raise WorkflowConfigError("Workflow must have 'jobs' defined")

    jobs = config["jobs"]
    if not isinstance(jobs, dict) or not jobs:
        raise WorkflowConfigError("Workflow 'jobs' must be a non-empty mapping")

    if len(jobs) > 1:
        raise WorkflowConfigError(
            f"Workflow must define exactly one job, got {len(jobs)}: {', '.join(map(str, jobs))}"
        )

    job_id, job = next(iter(jobs.items()))
    if not isinstance(job, dict):
        raise WorkflowConfigError(f"Job '{job_id}' must be a dictionary")

    if "steps" not in job:
        raise WorkflowConfigError(f"Job '{job_id}' must have 'steps' defined")

    steps = job["steps"]
    if not isinstance(steps, list):
        raise WorkflowConfigError(f"Job '{job_id}' 'steps' must be a list")

    if len(steps) == 0:
        raise WorkflowConfigError(f"Job '{job_id}' must have at least one step")

    env.update(validate_env(job.get("env", {}), f"Job '{job_id}'"))

    validated_steps = []
    for i, step in enumerate(steps):
        validated_step = validate_step(step, i)
        # The runner checks the repository out before the first step
        if validated_step["uses"] and action_name(validated_step["uses"]) == CHECKOUT_ACTION:
            continue
        validated_steps.append(validated_step)

    if not validated_steps:
        raise WorkflowConfigError(f"Job '{job_id}' has no steps besides checkout")

    return {
        "name": name,
        "job": str(job_id),
        "triggers": triggers,
        "env": env,
        "steps": validated_steps,
    }

def validate_triggers(on: Any) -> Dict[str, Dict[str, List[str]]]:
    """
    Normalise the `on` section to {event: {filter key: [patterns]}}.

    Filter keys are ``branches``, ``branches_ignore``, ``tags`` and
    ``tags_ignore``; an event with no filter keys runs for every ref.
    """
    if isinstance(on, str):
        on = [on]

    if isinstance(on, list):
        on = {event: None for event in on}

    if not isinstance(on, dict):
        raise WorkflowConfigError("Workflow 'on' must be a string, list or mapping")

    triggers = {}
    for event, spec in on.items():
        if event not in SUPPORTED_EVENTS:
            continue

        if spec is None:
            triggers[event] = {}
            continue

        if not isinstance(spec, dict):
            raise WorkflowConfigError(f"Trigger '{event}' must be a mapping")

        triggers[event] = validate_ref_filter(event, spec)

    if not triggers:
        raise WorkflowConfigError(
            f"Workflow must trigger on at least one of: {', '.join(SUPPORTED_EVENTS)}"
        )

    return triggers

def validate_ref_filter(event: str, spec: Dict[str, Any]) -> Dict[str, List[str]]:
    allowed = FILTER_KEYS[event]
    unknown = set(spec) - set(allowed)
    if unknown:
        raise WorkflowConfigError(
            f"Trigger '{event}' has unsupported filter(s): {', '.join(sorted(map(str, unknown)))}"
        )

    for include, ignore in (("branches", "branches-ignore"), ("tags", "tags-ignore")):
        if include in spec and ignore in spec:
            raise WorkflowConfigError(
                f"Trigger '{event}' cannot use both '{include}' and '{ignore}'"
            )

    ref_filter = {}
    for key in allowed:
        if key not in spec:
            continue

        patterns = spec[key]
        if isinstance(patterns, str):
            patterns = [patterns]
        if (
            not isinstance(patterns, list)
            or not patterns
            or not all(isinstance(p, str) and p.strip("!") for p in patterns)
        ):
            raise WorkflowConfigError(
                f"Trigger '{event}' '{key}' must be a non-empty list of patterns"
            )

        if not key.endswith("-ignore") and all(p.startswith("!") for p in patterns):
            raise WorkflowConfigError(
                f"Trigger '{event}' '{key}' needs at least one pattern without '!'"
            )

        ref_filter[key.replace("-", "_")] = patterns

    return ref_filter

def validate_env(env: Any, where: str) -> Dict[str, str]:
    if env is None:
        return {}
    if not isinstance(env, dict):
        raise WorkflowConfigError(f"{where} 'env' must be a mapping")
    # Values are stringified the way the hosting service exports them
    return {str(k): _env_value(v) for k, v in env.items()}

def _env_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)

def validate_step(step: Dict[str, Any], index: int) -> Dict[str, Any]:
    """Validate a single workflow step."""
    if not isinstance(step, dict):
        raise WorkflowConfigError(f"Step {index} must be a dictionary")

    unknown = set(step) - STEP_KEYS
    if unknown:
        raise WorkflowConfigError(
            f"Step {index} has unknown keys: {', '.join(sorted(map(str, unknown)))}"
        )

    if "run" in step and "uses" in step:
        raise WorkflowConfigError(f"Step {index} cannot have both 'run' and 'uses'")

    if "run" not in step and "uses" not in step:
        raise WorkflowConfigError(f"Step {index} missing 'run' or 'uses'")

    # Without timeout-minutes the runner applies its own step_timeout
    timeout = step.get("timeout-minutes")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise WorkflowConfigError(f"Step {index} 'timeout-minutes' must be a positive number")
        timeout = int(timeout * 60)

    validated = {
        "env": validate_env(step.get("env", {}), f"Step {index}"),
        "timeout": timeout,
        "run": None,
        "uses": None,
        "with": {},
    }

    if "run" in step:
        if not isinstance(step["run"], str) or not step["run"].strip():
            raise WorkflowConfigError(f"Step {index} 'run' must be a non-empty string")
        if "with" in step:
            raise WorkflowConfigError(f"Step {index} 'with' is only allowed on 'uses' steps")
        validated["run"] = step["run"].strip()
    else:
        validated["uses"] = validate_uses(step["uses"], index)
        validated["with"] = validate_with(step.get("with"), validated["uses"], index)

    name = step.get("name", validated["run"] or validated["uses"])
    if not isinstance(name, str):
        raise WorkflowConfigError(f"Step {index} 'name' must be a string")
    validated["name"] = name

    return validated

def action_name(uses: str) -> str:
    """Strip the version ref: 'owner/repo@v1' -> 'owner/repo'."""
    return uses.split("@", 1)[0]

def validate_uses(uses: Any, index: int) -> str:
    if not isinstance(uses, str) or not uses:
        raise WorkflowConfigError(f"Step {index} 'uses' must be a non-empty string")

    if action_name(uses) not in SUPPORTED_ACTIONS:
        raise WorkflowConfigError(f"Step {index} uses unsupported action '{uses}'")

    return uses

def validate_with(options: Any, uses: str, index: int) -> Dict[str, Any]:
    if options is None:
        return {}

    if not isinstance(options, dict):
        raise WorkflowConfigError(f"Step {index} 'with' must be a mapping")

    # Unset options (`key:` with no value) load as None; drop them
    options = {k: v for k, v in options.items() if v is not None}

    if action_name(uses) == CLIPPY_ACTION:
        unknown = set(options) - set(CLIPPY_OPTIONS)
        if unknown:
            raise WorkflowConfigError(
                f"Step {index} unknown clippy option(s): {', '.join(sorted(map(str, unknown)))}"
            )

        # Same model the runner renders the command from
        try:
            ClippyOptions.model_validate(options)
        except ValidationError as e:
            problems = "; ".join(
                f"'{'.'.join(map(str, err['loc']))}' {err['msg']}" for err in e.errors()
            )
            raise WorkflowConfigError(f"Step {index} invalid clippy options: {problems}")

    return options
