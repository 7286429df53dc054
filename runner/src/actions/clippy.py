"""
The clippy lint action, rendered as a `cargo clippy` invocation.
"""

import shlex
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Option name -> clippy flag, in the order the flags are rendered
LINT_LEVELS = (
    ("warn", "-W"),
    ("allow", "-A"),
    ("deny", "-D"),
    ("forbid", "-F"),
)


def split_lints(value: Union[str, List[str], None]) -> List[str]:
    """'clippy::a, clippy::b' -> ['clippy::a', 'clippy::b']"""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    elif not isinstance(value, list) or not all(isinstance(lint, str) for lint in value):
        raise ValueError("must be a comma-separated string or a list of strings")
    return [lint.strip() for lint in value if lint.strip()]


def parse_flag(value: Any) -> bool:
    """Action inputs arrive as booleans or as the strings 'true' / 'false'."""
    # Empty string is how an unset action input arrives
    if value is None or value == "":
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError("must be true or false")


class ClippyOptions(BaseModel):
    """`with:` options of the clippy action. All optional."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    check_args: str = Field("", alias="check-args")
    warn: List[str] = []
    allow: List[str] = []
    deny: List[str] = []
    forbid: List[str] = []
    all_features: bool = Field(False, alias="all-features")
    args: str = ""
    working_directory: Optional[str] = Field(None, alias="working-directory")
    token: Optional[str] = None

    @field_validator("warn", "allow", "deny", "forbid", mode="before")
    @classmethod
    def _split(cls, value: Any) -> List[str]:
        return split_lints(value)

    @field_validator("check_args", "args", mode="before")
    @classmethod
    def _join(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return " ".join(shlex.quote(v) for v in value)
        if isinstance(value, str):
            return value
        raise ValueError("must be a string or a list of strings")

    @field_validator("all_features", mode="before")
    @classmethod
    def _bool(cls, value: Any) -> bool:
        return parse_flag(value)

    def lint_flags(self) -> List[str]:
        flags = []
        for option, flag in LINT_LEVELS:
            for lint in getattr(self, option):
                flags.extend([flag, lint])
        return flags

    def command(self) -> List[str]:
        """
        cargo clippy [check-args] [--all-features] -- [lint flags] [args]
        """
        argv = ["cargo", "clippy", *shlex.split(self.check_args)]
        if self.all_features:
            argv.append("--all-features")
        argv.append("--")
        argv.extend(self.lint_flags())
        argv.extend(shlex.split(self.args))
        return argv
