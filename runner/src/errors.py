"""
Runner error types.
"""


class WorkspaceError(Exception):
    """Raised when the repository cannot be prepared for a run."""
    pass


class StepExecutionError(Exception):
    """
    Raised by a backend when a step could not complete.

    Carries the step identity and whatever diagnostic output the step
    produced before it failed.
    """

    def __init__(self, step_order: int, step_name: str, message: str, logs: str = ""):
        super().__init__(message)
        self.step_order = step_order
        self.step_name = step_name
        self.logs = logs

    @property
    def diagnostic(self) -> str:
        if self.logs:
            return f"{self.logs}\n{self}"
        return str(self)
