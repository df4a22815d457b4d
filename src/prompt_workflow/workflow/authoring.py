"""Step and branch editing on top of the template store."""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..errors.exceptions import WorkflowValidationError
from .model import Branch, Rule, Step, StepCategory, Workflow
from .ordering import prune_references, remove_step, reorder
from .store import WorkflowTemplateStore
from .validation import StepReference, find_references

logger = logging.getLogger(__name__)

# Fields a caller may change through update_step; structure goes through the
# dedicated branch and ordering methods.
EDITABLE_STEP_FIELDS = {
    "title", "description", "prompt_id", "category", "dependencies", "variables",
}


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class WorkflowEditor:
    """Authoring operations for one workflow in a store.

    Every method mutates the stored workflow in place and touches
    ``updated_at``; nothing is persisted until ``save()``.
    """

    def __init__(self, store: WorkflowTemplateStore, workflow_id: str):
        self.store = store
        self.workflow_id = workflow_id

    @property
    def workflow(self) -> Workflow:
        return self.store.get(self.workflow_id)

    def _step(self, step_id: str) -> Step:
        step = self.workflow.get_step(step_id)
        if step is None:
            raise KeyError(f"Step not found: {step_id}")
        return step

    def add_step(
        self,
        title: str,
        description: str = "",
        category: Union[StepCategory, str] = StepCategory.CUSTOM,
        dependencies: Iterable[str] = (),
        variables: Optional[Mapping[str, str]] = None,
        prompt_id: Optional[str] = None,
    ) -> Step:
        """Append a new step at the end of the workflow.

        Raises:
            WorkflowValidationError: If ``title`` is blank
        """
        if not title or not title.strip():
            raise WorkflowValidationError("Step title cannot be empty")

        workflow = self.workflow
        step = Step(
            id=_new_id("step"),
            title=title.strip(),
            description=description,
            category=category,
            dependencies=list(dependencies),
            variables=dict(variables or {}),
            prompt_id=prompt_id,
            order=len(workflow.steps) + 1,
        )
        workflow.steps.append(step)
        workflow.touch()
        logger.info(f"Added step {step.id} to workflow {workflow.id}")
        return step

    def update_step(self, step_id: str, **changes: Any) -> Step:
        """Edit descriptive fields of a step."""
        unknown = set(changes) - EDITABLE_STEP_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit step field(s): {', '.join(sorted(unknown))}")
        if "title" in changes and not (changes["title"] or "").strip():
            raise WorkflowValidationError("Step title cannot be empty")

        step = self._step(step_id)
        for name, value in changes.items():
            setattr(step, name, value)
        self.workflow.touch()
        return step

    def delete_step(self, step_id: str, prune: bool = False) -> List[StepReference]:
        """Remove a step and renumber the rest.

        References to the step from other steps are kept unless ``prune`` is
        set; the dangling references are returned so the caller can report
        them, and ``validate()`` will flag them before save.
        """
        workflow = self.workflow
        steps = remove_step(workflow.steps, step_id)
        dangling = find_references(steps, step_id)
        if prune:
            steps = prune_references(steps, step_id)
        elif dangling:
            logger.warning(
                f"Deleting step {step_id} leaves {len(dangling)} dangling reference(s) "
                f"in workflow {workflow.id}"
            )
        workflow.steps = steps
        workflow.touch()
        return [] if prune else dangling

    def move_step(self, from_index: int, to_index: int) -> List[Step]:
        """Move a step to a new position and renumber all steps."""
        workflow = self.workflow
        workflow.steps = reorder(workflow.steps, from_index, to_index)
        workflow.touch()
        return workflow.steps

    def set_conditional(
        self,
        step_id: str,
        conditional: bool = True,
        default_next_step_id: Optional[str] = None,
    ) -> Step:
        """Turn branching on or off for a step.

        Turning it off drops the step's branches and default next step.
        """
        step = self._step(step_id)
        if conditional:
            step.is_conditional = True
            step.default_next_step_id = default_next_step_id
        else:
            step.conditional_branches = []
            step.default_next_step_id = None
            step.is_conditional = False
        self.workflow.touch()
        return step

    def add_branch(
        self,
        step_id: str,
        next_step_id: str,
        condition: Union[Rule, Dict[str, Any]],
        name: str = "",
    ) -> Branch:
        """Append a branch to a conditional step."""
        step = self._step(step_id)
        if not step.is_conditional:
            raise WorkflowValidationError(f"Step '{step_id}' is not conditional")
        if next_step_id == step_id:
            raise WorkflowValidationError(f"Branch of step '{step_id}' cannot target its own step")

        rule = condition if isinstance(condition, Rule) else Rule.model_validate(
            {"id": _new_id("rule"), **condition}
        )
        branch = Branch(id=_new_id("branch"), name=name, condition=rule, next_step_id=next_step_id)
        step.conditional_branches.append(branch)
        self.workflow.touch()
        return branch

    def update_branch(
        self,
        step_id: str,
        branch_id: str,
        name: Optional[str] = None,
        next_step_id: Optional[str] = None,
        condition: Optional[Union[Rule, Dict[str, Any]]] = None,
    ) -> Branch:
        """Edit a branch in place."""
        step = self._step(step_id)
        branch = next((b for b in step.conditional_branches if b.id == branch_id), None)
        if branch is None:
            raise KeyError(f"Branch not found: {branch_id}")
        if next_step_id == step_id:
            raise WorkflowValidationError(f"Branch '{branch_id}' cannot target its own step")

        if name is not None:
            branch.name = name
        if next_step_id is not None:
            branch.next_step_id = next_step_id
        if condition is not None:
            if isinstance(condition, Rule):
                branch.condition = condition
            else:
                merged = {**branch.condition.model_dump(), **condition}
                branch.condition = Rule.model_validate(merged)
        self.workflow.touch()
        return branch

    def remove_branch(self, step_id: str, branch_id: str) -> Branch:
        step = self._step(step_id)
        for index, branch in enumerate(step.conditional_branches):
            if branch.id == branch_id:
                del step.conditional_branches[index]
                self.workflow.touch()
                return branch
        raise KeyError(f"Branch not found: {branch_id}")

    def save(self) -> Workflow:
        """Validate and publish the workflow through the store."""
        return self.store.save(self.workflow)
