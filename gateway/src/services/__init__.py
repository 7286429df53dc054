from gateway.src.services.github import (
    verify_signature,
    clone_repository,
    read_workflow_file,
    parse_push_payload,
    parse_pull_request_payload,
    cleanup_repo,
    RepositoryError,
)
from gateway.src.services.workflow_parser import (
    parse_workflow_config,
    parse_workflow_dict,
    default_workflow,
    WorkflowConfigError,
)
from gateway.src.services.triggers import matches, branch_matches
from gateway.src.services.queue import (
    enqueue_pipeline_run,
    get_run_status,
    get_queue_length,
)

__all__ = [
    "verify_signature",
    "clone_repository",
    "read_workflow_file",
    "parse_push_payload",
    "parse_pull_request_payload",
    "cleanup_repo",
    "RepositoryError",
    "parse_workflow_config",
    "parse_workflow_dict",
    "default_workflow",
    "WorkflowConfigError",
    "matches",
    "branch_matches",
    "enqueue_pipeline_run",
    "get_run_status",
    "get_queue_length",
]
