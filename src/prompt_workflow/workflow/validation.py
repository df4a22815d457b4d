"""Structural validation of workflows before they are saved."""

from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .model import Step, Workflow


@dataclass(frozen=True)
class Violation:
    """A single broken workflow invariant."""
    code: str
    message: str
    step_id: Optional[str] = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass(frozen=True)
class StepReference:
    """Where a step id is referenced from."""
    step_id: str  # Referencing step
    field: str  # "dependencies", "next_step_id", "default_next_step_id" or "target_step_id"
    branch_id: Optional[str] = None


def find_references(steps: Sequence[Step], target_id: str) -> List[StepReference]:
    """List every place in ``steps`` that refers to ``target_id``."""
    refs: List[StepReference] = []
    for step in steps:
        if target_id in step.dependencies:
            refs.append(StepReference(step.id, "dependencies"))
        for branch in step.conditional_branches:
            if branch.next_step_id == target_id:
                refs.append(StepReference(step.id, "next_step_id", branch.id))
            if branch.condition.target_step_id == target_id:
                refs.append(StepReference(step.id, "target_step_id", branch.id))
        if step.default_next_step_id == target_id:
            refs.append(StepReference(step.id, "default_next_step_id"))
    return refs


def validate(workflow: Workflow) -> List[Violation]:
    """Check every workflow invariant and return the violations found.

    An empty list means the workflow is safe to save and execute.
    """
    violations: List[Violation] = []
    steps = workflow.steps

    if not workflow.name.strip():
        violations.append(Violation("empty_name", "Workflow name cannot be empty"))

    counts = Counter(step.id for step in steps)
    for step_id, count in counts.items():
        if count > 1:
            violations.append(Violation(
                "duplicate_step_id",
                f"Step id '{step_id}' is used by {count} steps",
                step_id,
            ))

    actual_orders = [step.order for step in steps]
    expected_orders = list(range(1, len(steps) + 1))
    if actual_orders != expected_orders:
        violations.append(Violation(
            "order_mismatch",
            f"Step order must be {expected_orders}, got {actual_orders}",
        ))

    known = set(counts)
    for step in steps:
        if not step.title.strip():
            violations.append(Violation("empty_title", f"Step '{step.id}' has an empty title", step.id))

        for dep in step.dependencies:
            if dep == step.id:
                violations.append(Violation(
                    "self_dependency", f"Step '{step.id}' depends on itself", step.id,
                ))
            elif dep not in known:
                violations.append(Violation(
                    "dangling_dependency",
                    f"Step '{step.id}' depends on unknown step '{dep}'",
                    step.id,
                ))

        if not step.is_conditional and step.conditional_branches:
            violations.append(Violation(
                "branches_on_linear_step",
                f"Step '{step.id}' has branches but is not conditional",
                step.id,
            ))

        for branch in step.conditional_branches:
            if branch.next_step_id == step.id:
                violations.append(Violation(
                    "self_branch",
                    f"Branch '{branch.id}' of step '{step.id}' points back at its own step",
                    step.id,
                ))
            elif branch.next_step_id not in known:
                violations.append(Violation(
                    "dangling_next_step",
                    f"Branch '{branch.id}' of step '{step.id}' targets unknown step '{branch.next_step_id}'",
                    step.id,
                ))
            target = branch.condition.target_step_id
            if target is not None and target not in known:
                violations.append(Violation(
                    "dangling_rule_target",
                    f"Rule '{branch.condition.id}' of step '{step.id}' reads unknown step '{target}'",
                    step.id,
                ))

        if step.default_next_step_id is not None and step.default_next_step_id not in known:
            violations.append(Violation(
                "dangling_default_next",
                f"Step '{step.id}' defaults to unknown step '{step.default_next_step_id}'",
                step.id,
            ))

    return violations
