"""Workflow authoring, validation and interactive execution."""

from .model import (
    Branch,
    ExecutionResult,
    Rule,
    RuleOperator,
    RuleType,
    Step,
    StepCategory,
    Workflow,
    WorkflowType,
)
from .conditions import RuleRegistry, RuleResolver, evaluate
from .validation import Violation, find_references, validate
from .ordering import prune_references, remove_step, reorder, topological_order
from .executor import ExecutionContext, ExecutionController, ExecutionStatus, StepOutcome
from .store import WorkflowRepository, WorkflowTemplateStore
from .authoring import WorkflowEditor

__all__ = [
    "Branch",
    "ExecutionResult",
    "Rule",
    "RuleOperator",
    "RuleType",
    "Step",
    "StepCategory",
    "Workflow",
    "WorkflowType",
    "RuleRegistry",
    "RuleResolver",
    "evaluate",
    "Violation",
    "find_references",
    "validate",
    "prune_references",
    "remove_step",
    "reorder",
    "topological_order",
    "ExecutionContext",
    "ExecutionController",
    "ExecutionStatus",
    "StepOutcome",
    "WorkflowRepository",
    "WorkflowTemplateStore",
    "WorkflowEditor",
]
