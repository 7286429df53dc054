"""
Match trigger events against a workflow's branch filter.
"""

import re
from functools import lru_cache
from typing import List, Optional, Pattern

from gateway.src.models.trigger import BranchFilter, Trigger


@lru_cache(maxsize=256)
def compile_branch_pattern(pattern: str) -> Pattern[str]:
    """
    Translate a branch glob into a regex.

    `**` matches any characters, `*` any characters except `/`,
    `?` a single character except `/`.
    """
    parts = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
            continue
        if c == "*":
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts) + r"\Z")


def branch_matches(branch: str, pattern: str) -> bool:
    return compile_branch_pattern(pattern).match(branch) is not None


def evaluate_patterns(name: str, patterns: List[str]) -> bool:
    """
    Walk the patterns in order. A plain pattern includes a matching name,
    a `!pattern` excludes it again; the last pattern that matches wins.
    """
    matched = False
    for pattern in patterns:
        if pattern.startswith("!"):
            if branch_matches(name, pattern[1:]):
                matched = False
        elif branch_matches(name, pattern):
            matched = True
    return matched


def ref_matches(name: str, include: Optional[List[str]], ignore: Optional[List[str]]) -> bool:
    if include is not None:
        return evaluate_patterns(name, include)
    if ignore is not None:
        return not evaluate_patterns(name, ignore)
    return True


def matches(trigger: Trigger, branch_filter: BranchFilter) -> bool:
    """True if the trigger should start a run under the given filter."""
    ref_filter = branch_filter.events.get(trigger.kind)
    if ref_filter is None:
        return False

    if trigger.tag:
        # A filter naming only branches never runs for tags
        if not ref_filter.filters_tags:
            return not ref_filter.filters_branches
        return ref_matches(trigger.tag, ref_filter.tags, ref_filter.tags_ignore)

    # A filter naming only tags never runs for branches
    if not ref_filter.filters_branches:
        return not ref_filter.filters_tags
    return ref_matches(trigger.branch, ref_filter.branches, ref_filter.branches_ignore)
