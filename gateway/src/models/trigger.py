"""
Trigger events and branch filters.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class EventKind(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"


class Trigger(BaseModel):
    """An event that may start a run. Immutable once received."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    # Pushed branch for push events, base branch for pull requests
    branch: str
    # Set instead of branch for tag pushes
    tag: str = ""
    repo_name: str = ""
    repo_full_name: str = ""
    clone_url: str = ""
    commit_sha: str = ""
    commit_message: str = ""
    actor: str = ""
    pull_request_number: int = 0

    @property
    def ref_name(self) -> str:
        return self.tag or self.branch


class RefFilter(BaseModel):
    """
    Branch and tag patterns for one event kind.

    ``None`` means the key was not given. Include lists are evaluated in
    order, a ``!pattern`` excluding what earlier patterns included.
    """

    model_config = ConfigDict(frozen=True)

    branches: Optional[List[str]] = None
    branches_ignore: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    tags_ignore: Optional[List[str]] = None

    @property
    def filters_branches(self) -> bool:
        return self.branches is not None or self.branches_ignore is not None

    @property
    def filters_tags(self) -> bool:
        return self.tags is not None or self.tags_ignore is not None


class BranchFilter(BaseModel):
    """
    Ref filters per event kind.

    An event kind missing from ``events`` never matches. An event kind
    with an empty RefFilter matches every branch and tag.
    """

    model_config = ConfigDict(frozen=True)

    events: Dict[EventKind, RefFilter] = {}

    @classmethod
    def from_triggers(cls, triggers: Dict[str, Dict[str, Optional[List[str]]]]) -> "BranchFilter":
        return cls(events={
            EventKind(kind): RefFilter.model_validate(spec or {})
            for kind, spec in triggers.items()
        })
