"""Exception taxonomy for workflow authoring and execution."""

from typing import List, Optional, Sequence


class WorkflowError(Exception):
    """Base class for all workflow errors."""


class WorkflowValidationError(WorkflowError, ValueError):
    """Authoring or save-time validation failed.

    ``violations`` holds the individual problems when the error comes from
    ``validate()``; single-field rejections (blank name, blank title) carry
    an empty list.
    """

    def __init__(self, message: str, violations: Optional[Sequence] = None):
        super().__init__(message)
        self.violations: List = list(violations or [])


class CycleError(WorkflowError, ValueError):
    """Step dependencies contain a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class UnresolvedBranchError(WorkflowError):
    """A conditional step matched no branch and has no usable default."""

    def __init__(self, step_id: str, target: Optional[str] = None):
        self.step_id = step_id
        self.target = target
        if target:
            message = f"Step '{step_id}' resolved to unknown step '{target}'"
        else:
            message = f"Step '{step_id}' matched no branch and has no default next step"
        super().__init__(message)


class ExecutionStateError(WorkflowError):
    """Controller operation is not valid in the execution's current state."""


class ExecutionLimitError(ExecutionStateError):
    """Execution jumped back to earlier steps more often than allowed."""


class WorkflowNotFoundError(WorkflowError, KeyError):
    """No workflow with the requested id exists in the store."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(workflow_id)

    def __str__(self) -> str:
        return f"Workflow not found: {self.workflow_id}"
