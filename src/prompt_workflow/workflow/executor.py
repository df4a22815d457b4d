"""Interactive workflow execution.

An execution is an explicit ``ExecutionContext`` value: a snapshot of the
workflow's steps taken at start, plus the run's own variables and step
results. ``ExecutionController`` moves a context forward one step at a time
when the caller asks it to; nothing runs in the background.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..errors.exceptions import ExecutionLimitError, ExecutionStateError, UnresolvedBranchError
from .conditions import evaluate
from .model import ExecutionResult, Step, Workflow

logger = logging.getLogger(__name__)

ExecuteHook = Callable[[Workflow], None]


class ExecutionStatus(str, Enum):
    """Lifecycle of a single execution."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class StepOutcome:
    """Result recorded for a step within one execution."""
    step_id: str
    result: ExecutionResult
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ExecutionContext:
    """State of one run over a workflow snapshot."""
    execution_id: str
    workflow_id: str
    workflow_name: str
    snapshot: Tuple[Step, ...] = ()
    variables: Dict[str, str] = field(default_factory=dict)
    step_results: Dict[str, StepOutcome] = field(default_factory=dict)
    status: ExecutionStatus = ExecutionStatus.IDLE
    step_index: int = 0
    history: List[str] = field(default_factory=list)  # Step ids in visit order
    transitions: int = 0
    loops: int = 0  # Jumps back to the current or an earlier step
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.status == ExecutionStatus.RUNNING

    @property
    def current_step(self) -> Optional[Step]:
        if not self.is_running or not 0 <= self.step_index < len(self.snapshot):
            return None
        return self.snapshot[self.step_index]

    def position_of(self, step_id: Optional[str]) -> Optional[int]:
        """Snapshot index of ``step_id``, or None when it is not in the snapshot."""
        if step_id is None:
            return None
        for index, step in enumerate(self.snapshot):
            if step.id == step_id:
                return index
        return None


class ExecutionController:
    """Drives execution contexts through their workflow snapshots.

    The controller holds no per-run state beyond an index of active contexts;
    any number of contexts over the same workflow can be in flight.
    """

    def __init__(
        self,
        on_execute: Optional[ExecuteHook] = None,
        max_loops: int = 50,
        fallback_to_linear: bool = False,
    ):
        self.on_execute = on_execute
        self.max_loops = max_loops
        self.fallback_to_linear = fallback_to_linear
        self._active: Dict[str, ExecutionContext] = {}

    @classmethod
    def from_config(cls, config, on_execute: Optional[ExecuteHook] = None) -> "ExecutionController":
        """Build a controller from ``WorkflowConfig.execution`` settings."""
        return cls(
            on_execute=on_execute,
            max_loops=config.execution.max_loops,
            fallback_to_linear=config.execution.fallback_to_linear,
        )

    def active_executions(self) -> List[ExecutionContext]:
        return list(self._active.values())

    def current_step(self, context: ExecutionContext) -> Optional[Step]:
        """The step awaiting a result, or None once the run is over."""
        return context.current_step

    def start(
        self,
        workflow: Workflow,
        variables: Optional[Mapping[str, str]] = None,
    ) -> ExecutionContext:
        """Snapshot ``workflow`` and begin a run at its first step.

        The run's variables start from the steps' own variables (first
        definition wins) overlaid by ``variables``.
        """
        snapshot = tuple(
            step.model_copy(deep=True)
            for step in sorted(workflow.steps, key=lambda s: s.order)
        )
        merged: Dict[str, str] = {}
        for step in snapshot:
            for name, value in step.variables.items():
                merged.setdefault(name, value)
        merged.update(variables or {})

        context = ExecutionContext(
            execution_id=f"exec-{uuid.uuid4().hex[:12]}",
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            snapshot=snapshot,
            variables=merged,
            started_at=datetime.now(UTC),
        )

        if self.on_execute is not None:
            self.on_execute(workflow)

        if not snapshot:
            context.status = ExecutionStatus.COMPLETED
            context.finished_at = context.started_at
            logger.info(f"Workflow {workflow.id} has no steps, execution {context.execution_id} completed")
            return context

        context.status = ExecutionStatus.RUNNING
        context.history.append(snapshot[0].id)
        self._active[context.execution_id] = context
        logger.info(
            f"Started execution {context.execution_id} of workflow {workflow.id} "
            f"({len(snapshot)} steps)"
        )
        return context

    def resolve_next(
        self,
        context: ExecutionContext,
        step_results: Optional[Mapping[str, StepOutcome]] = None,
    ) -> Optional[int]:
        """Return the snapshot index the run moves to from its current step.

        None means the run is at its end. Does not modify ``context``.

        Raises:
            ExecutionStateError: If the context is not running
            UnresolvedBranchError: If a conditional step resolves to no step
                in the snapshot and linear fallback is disabled
        """
        self._require_running(context)
        step = context.snapshot[context.step_index]
        results = context.step_results if step_results is None else step_results

        if step.is_conditional:
            target = step.default_next_step_id
            for branch in step.conditional_branches:
                if evaluate(branch.condition, context.variables, results):
                    logger.debug(f"Step {step.id}: branch '{branch.name or branch.id}' matched")
                    target = branch.next_step_id
                    break
            position = context.position_of(target)
            if position is not None:
                return position
            if not self.fallback_to_linear:
                raise UnresolvedBranchError(step.id, target)
            logger.warning(
                f"Step {step.id} resolved to no step (target={target!r}); "
                "falling back to the next step in order"
            )

        following = context.step_index + 1
        return following if following < len(context.snapshot) else None

    def next(
        self,
        context: ExecutionContext,
        result: Union[ExecutionResult, str] = ExecutionResult.SUCCESS,
    ) -> ExecutionContext:
        """Record ``result`` for the current step and advance the run.

        The result is visible to branch rules of the current step. If the
        next step cannot be resolved the context is left untouched.
        """
        self._require_running(context)
        result = ExecutionResult(result)
        if result == ExecutionResult.PENDING:
            raise ValueError("A step cannot be advanced with a pending result")

        step = context.snapshot[context.step_index]
        outcome = StepOutcome(step_id=step.id, result=result)
        tentative = {**context.step_results, step.id: outcome}
        target = self.resolve_next(context, tentative)

        looping = target is not None and target <= context.step_index
        if looping and context.loops + 1 > self.max_loops:
            raise ExecutionLimitError(
                f"Execution {context.execution_id} exceeded {self.max_loops} loop iterations"
            )

        context.step_results[step.id] = outcome
        context.transitions += 1
        if looping:
            context.loops += 1

        if target is None:
            context.status = ExecutionStatus.COMPLETED
            context.finished_at = datetime.now(UTC)
            self._active.pop(context.execution_id, None)
            logger.info(
                f"Execution {context.execution_id} completed after {context.transitions} step(s)"
            )
            return context

        context.step_index = target
        context.history.append(context.snapshot[target].id)
        logger.debug(
            f"Execution {context.execution_id}: {step.id} ({result.value}) -> "
            f"{context.snapshot[target].id}"
        )
        return context

    def skip(self, context: ExecutionContext) -> ExecutionContext:
        """Advance past the current step, recording it as skipped."""
        return self.next(context, ExecutionResult.SKIPPED)

    def stop(self, context: ExecutionContext) -> ExecutionContext:
        """Abandon a running execution and discard its snapshot.

        The authored workflow is not affected.
        """
        self._require_running(context)
        context.status = ExecutionStatus.STOPPED
        context.snapshot = ()
        context.finished_at = datetime.now(UTC)
        self._active.pop(context.execution_id, None)
        logger.info(f"Stopped execution {context.execution_id}")
        return context

    def set_variable(self, context: ExecutionContext, name: str, value: str) -> None:
        """Set a variable for one running execution only."""
        self._require_running(context)
        context.variables[name] = value

    @staticmethod
    def _require_running(context: ExecutionContext) -> None:
        if not context.is_running:
            raise ExecutionStateError(
                f"Execution {context.execution_id} is {context.status.value}, not running"
            )
