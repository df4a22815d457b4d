"""Workflow exceptions and user-friendly error translation."""

from .exceptions import (
    CycleError,
    ExecutionLimitError,
    ExecutionStateError,
    UnresolvedBranchError,
    WorkflowError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from .translator import ErrorTranslator, UserFriendlyError

__all__ = [
    "CycleError",
    "ExecutionLimitError",
    "ExecutionStateError",
    "UnresolvedBranchError",
    "WorkflowError",
    "WorkflowNotFoundError",
    "WorkflowValidationError",
    "ErrorTranslator",
    "UserFriendlyError",
]
