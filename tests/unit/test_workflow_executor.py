"""Tests for ExecutionController stepping, branching and lifecycle."""

from unittest.mock import Mock

import pytest

from prompt_workflow.errors.exceptions import (
    ExecutionLimitError,
    ExecutionStateError,
    UnresolvedBranchError,
)
from prompt_workflow.workflow.executor import ExecutionController, ExecutionStatus
from prompt_workflow.workflow.model import Branch, ExecutionResult, Workflow
from prompt_workflow.workflow.templates import default_templates
from tests.unit.workflow_fixtures import (
    make_branching_workflow,
    make_linear_workflow,
    make_step,
    result_rule,
    variable_rule,
)


@pytest.fixture
def controller():
    return ExecutionController()


def _template(template_id):
    return next(t for t in default_templates() if t.id == template_id)


class TestLinearExecution:
    """Workflows without conditional steps advance in list order."""

    def test_start_positions_at_first_step(self, controller):
        context = controller.start(make_linear_workflow("a", "b", "c"))

        assert context.status == ExecutionStatus.RUNNING
        assert context.step_index == 0
        assert context.current_step.id == "a"
        assert controller.current_step(context) is context.current_step

    def test_one_next_reaches_second_step(self, controller):
        context = controller.start(make_linear_workflow("a", "b", "c"))

        controller.next(context)

        assert context.current_step.id == "b"
        assert context.status == ExecutionStatus.RUNNING

    def test_runs_to_completion(self, controller):
        context = controller.start(make_linear_workflow("a", "b", "c"))

        controller.next(context)
        controller.next(context)
        assert context.current_step.id == "c"
        controller.next(context)

        assert context.status == ExecutionStatus.COMPLETED
        assert context.current_step is None
        assert context.history == ["a", "b", "c"]
        assert context.transitions == 3
        assert context.finished_at is not None

    def test_records_results(self, controller):
        context = controller.start(make_linear_workflow("a", "b"))

        controller.next(context, ExecutionResult.FAILURE)
        controller.skip(context)

        assert context.step_results["a"].result == ExecutionResult.FAILURE
        assert context.step_results["b"].result == ExecutionResult.SKIPPED

    def test_result_accepts_string(self, controller):
        context = controller.start(make_linear_workflow("a", "b"))

        controller.next(context, "failure")

        assert context.step_results["a"].result == ExecutionResult.FAILURE

    def test_pending_result_rejected(self, controller):
        context = controller.start(make_linear_workflow("a", "b"))

        with pytest.raises(ValueError):
            controller.next(context, ExecutionResult.PENDING)

    def test_snapshot_follows_order_field(self, controller):
        workflow = make_linear_workflow("a", "b", "c", chained=False)
        workflow.steps[0].order, workflow.steps[2].order = 3, 1

        context = controller.start(workflow)

        assert [s.id for s in context.snapshot] == ["c", "b", "a"]

    def test_empty_workflow_completes_immediately(self, controller):
        context = controller.start(Workflow(id="w", name="Empty"))

        assert context.status == ExecutionStatus.COMPLETED
        assert controller.active_executions() == []


class TestConditionalExecution:
    """Branch resolution at conditional steps."""

    def test_first_matching_branch_wins_over_default(self, controller):
        context = controller.start(make_branching_workflow(), variables={"mode": "slow"})

        controller.next(context)

        assert context.current_step.id == "slow-path"

    def test_earlier_branch_takes_priority(self, controller):
        workflow = make_branching_workflow()
        route = workflow.steps[0]
        route.conditional_branches.append(
            Branch(id="b-any", condition=variable_rule("mode", "", operator="exists"), next_step_id="fallback")
        )
        context = controller.start(workflow, variables={"mode": "fast"})

        controller.next(context)

        assert context.current_step.id == "fast-path"

    def test_default_when_no_branch_matches(self, controller):
        context = controller.start(make_branching_workflow(), variables={"mode": "other"})

        controller.next(context)

        assert context.current_step.id == "fallback"

    def test_linear_after_jump(self, controller):
        context = controller.start(make_branching_workflow(), variables={"mode": "fast"})

        controller.next(context)
        controller.next(context)

        assert context.current_step.id == "slow-path"

    def test_branch_sees_current_step_result(self, controller):
        check = make_step(
            "check",
            order=1,
            is_conditional=True,
            conditional_branches=[
                Branch(id="failed", condition=result_rule("check", "failure"), next_step_id="fix"),
            ],
            default_next_step_id="done",
        )
        workflow = Workflow(
            id="w", name="W", steps=[check, make_step("fix", order=2), make_step("done", order=3)]
        )
        context = controller.start(workflow)

        controller.next(context, ExecutionResult.FAILURE)

        assert context.current_step.id == "fix"

    def test_set_variable_affects_only_that_run(self, controller):
        workflow = make_branching_workflow()
        first = controller.start(workflow)
        second = controller.start(workflow)

        controller.set_variable(first, "mode", "fast")
        controller.next(first)
        controller.next(second)

        assert first.current_step.id == "fast-path"
        assert second.current_step.id == "fallback"

    def test_resolve_next_previews_without_mutation(self, controller):
        context = controller.start(make_branching_workflow(), variables={"mode": "slow"})

        assert controller.resolve_next(context) == 2
        assert context.step_index == 0
        assert context.step_results == {}


class TestUnresolvedBranch:
    """A conditional step with nowhere to go."""

    def test_raises_and_leaves_context_unchanged(self, controller):
        context = controller.start(make_branching_workflow(default_next=None))

        with pytest.raises(UnresolvedBranchError) as exc_info:
            controller.next(context)

        assert exc_info.value.step_id == "route"
        assert context.status == ExecutionStatus.RUNNING
        assert context.step_index == 0
        assert context.step_results == {}
        assert context.transitions == 0

    def test_target_missing_from_snapshot(self, controller):
        context = controller.start(make_branching_workflow(default_next="ghost"))

        with pytest.raises(UnresolvedBranchError) as exc_info:
            controller.next(context)

        assert exc_info.value.target == "ghost"

    def test_fallback_to_linear(self):
        controller = ExecutionController(fallback_to_linear=True)
        context = controller.start(make_branching_workflow(default_next=None))

        controller.next(context)

        assert context.current_step.id == "fast-path"


class TestSnapshotIsolation:
    """Authoring edits after start() never reach a running instance."""

    def test_edits_after_start_not_visible(self, controller):
        workflow = make_linear_workflow("a", "b", "c")
        context = controller.start(workflow)

        workflow.steps[1].title = "Edited"
        workflow.steps.pop()

        assert context.snapshot[1].title == "B"
        assert len(context.snapshot) == 3

    def test_branch_edits_after_start_not_visible(self, controller):
        workflow = make_branching_workflow()
        context = controller.start(workflow, variables={"mode": "fast"})

        workflow.steps[0].conditional_branches[0].next_step_id = "slow-path"
        controller.next(context)

        assert context.current_step.id == "fast-path"

    def test_run_does_not_touch_authored_results(self, controller):
        workflow = make_linear_workflow("a", "b")
        context = controller.start(workflow)

        controller.next(context, ExecutionResult.FAILURE)

        assert workflow.steps[0].execution_result == ExecutionResult.PENDING


class TestVariables:
    def test_step_variables_merged_first_wins(self, controller):
        workflow = make_linear_workflow("a", "b")
        workflow.steps[0].variables = {"env": "staging", "region": "eu"}
        workflow.steps[1].variables = {"env": "production", "tier": "web"}

        context = controller.start(workflow)

        assert context.variables == {"env": "staging", "region": "eu", "tier": "web"}

    def test_caller_variables_override(self, controller):
        workflow = make_linear_workflow("a")
        workflow.steps[0].variables = {"env": "staging"}

        context = controller.start(workflow, variables={"env": "qa"})

        assert context.variables["env"] == "qa"


class TestLifecycle:
    """stop(), state errors and the active-execution index."""

    def test_independent_instances(self, controller):
        workflow = make_linear_workflow("a", "b", "c")
        first = controller.start(workflow)
        second = controller.start(workflow)

        controller.next(first)
        controller.next(first)

        assert first.current_step.id == "c"
        assert second.current_step.id == "a"
        assert first.execution_id != second.execution_id
        assert {c.execution_id for c in controller.active_executions()} == {
            first.execution_id, second.execution_id,
        }

    def test_stop_discards_snapshot(self, controller):
        context = controller.start(make_linear_workflow("a", "b"))

        controller.stop(context)

        assert context.status == ExecutionStatus.STOPPED
        assert context.snapshot == ()
        assert context.current_step is None
        assert controller.active_executions() == []

    def test_next_after_stop(self, controller):
        context = controller.start(make_linear_workflow("a", "b"))
        controller.stop(context)

        with pytest.raises(ExecutionStateError):
            controller.next(context)

    def test_stop_after_completion(self, controller):
        context = controller.start(make_linear_workflow("a"))
        controller.next(context)

        with pytest.raises(ExecutionStateError):
            controller.stop(context)

    def test_completed_run_leaves_active_index(self, controller):
        context = controller.start(make_linear_workflow("a"))

        controller.next(context)

        assert controller.active_executions() == []

    def test_on_execute_hook(self):
        hook = Mock()
        controller = ExecutionController(on_execute=hook)
        workflow = make_linear_workflow("a")

        controller.start(workflow)

        hook.assert_called_once_with(workflow)


class TestLoopLimit:
    """Backward jumps are capped per run."""

    def _looping_workflow(self):
        retry = make_step(
            "retry",
            order=2,
            is_conditional=True,
            conditional_branches=[
                Branch(id="again", condition=variable_rule("done", "no"), next_step_id="work"),
            ],
            default_next_step_id="finish",
        )
        return Workflow(
            id="w", name="W",
            steps=[make_step("work", order=1), retry, make_step("finish", order=3)],
        )

    def test_limit_exceeded(self):
        controller = ExecutionController(max_loops=2)
        context = controller.start(self._looping_workflow(), variables={"done": "no"})

        for _ in range(2):
            controller.next(context)  # work -> retry
            controller.next(context)  # retry -> work
        controller.next(context)

        with pytest.raises(ExecutionLimitError):
            controller.next(context)
        assert context.loops == 2
        assert context.current_step.id == "retry"
        assert context.is_running

    def test_forward_progress_is_not_a_loop(self):
        controller = ExecutionController(max_loops=1)
        context = controller.start(make_linear_workflow(*"abcdef"))

        for _ in range(6):
            controller.next(context)

        assert context.status == ExecutionStatus.COMPLETED
        assert context.loops == 0

    def test_loop_can_exit(self):
        controller = ExecutionController(max_loops=5)
        context = controller.start(self._looping_workflow(), variables={"done": "no"})

        controller.next(context)
        controller.next(context)
        controller.set_variable(context, "done", "yes")
        controller.next(context)
        controller.next(context)

        assert context.current_step.id == "finish"
        assert context.history == ["work", "retry", "work", "retry", "finish"]


class TestTestGatedTemplate:
    """The built-in branching template routes on the test result."""

    def test_passing_tests_deploy(self, controller):
        context = controller.start(_template("template-test-gated-deploy"))

        controller.next(context, ExecutionResult.SUCCESS)  # gate-tests
        controller.next(context)  # gate-check

        assert context.current_step.id == "gate-deploy"

    def test_failing_tests_loop_through_fix(self, controller):
        context = controller.start(_template("template-test-gated-deploy"))

        controller.next(context, ExecutionResult.FAILURE)  # gate-tests
        controller.next(context)  # gate-check -> gate-fix
        assert context.current_step.id == "gate-fix"
        controller.next(context)  # gate-fix -> gate-tests

        assert context.current_step.id == "gate-tests"
        assert context.loops == 1
