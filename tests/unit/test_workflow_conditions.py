"""Tests for rule evaluation and the resolver registry."""

import pytest

from prompt_workflow.workflow.conditions import RuleRegistry, RuleResolver, evaluate
from prompt_workflow.workflow.executor import StepOutcome
from prompt_workflow.workflow.model import ExecutionResult, Rule, RuleType
from tests.unit.workflow_fixtures import result_rule, variable_rule


class TestVariableRules:
    """Rules reading workflow variables."""

    def test_equals_present_variable(self):
        assert evaluate(variable_rule("x", "v"), {"x": "v"}, {}) is True

    def test_equals_absent_variable(self):
        assert evaluate(variable_rule("y", "v"), {"x": "v"}, {}) is False

    def test_not_equals(self):
        rule = variable_rule("x", "v", operator="not_equals")

        assert evaluate(rule, {"x": "w"}) is True
        assert evaluate(rule, {"x": "v"}) is False

    def test_contains_checks_expected_within_actual(self):
        rule = variable_rule("stack", "react", operator="contains")

        assert evaluate(rule, {"stack": "react+redux"}) is True
        assert evaluate(rule, {"stack": "vue"}) is False

    def test_exists(self):
        rule = variable_rule("token", "", operator="exists")

        assert evaluate(rule, {"token": "abc"}) is True
        assert evaluate(rule, {"token": ""}) is False
        assert evaluate(rule, {}) is False

    def test_not_exists(self):
        rule = variable_rule("token", "", operator="not_exists")

        assert evaluate(rule, {}) is True
        assert evaluate(rule, {"token": "abc"}) is False

    def test_missing_target_variable_resolves_empty(self):
        rule = Rule(id="r", type="variable", operator="equals", value="")

        assert evaluate(rule, {"x": "v"}) is True

    def test_inputs_not_modified(self):
        variables = {"x": "v"}
        results = {"a": StepOutcome("a", ExecutionResult.SUCCESS)}

        evaluate(variable_rule("x", "v"), variables, results)

        assert variables == {"x": "v"}
        assert list(results) == ["a"]


class TestNumericOperators:
    """greater_than / less_than parse both sides as numbers."""

    @pytest.mark.parametrize("actual,expected,result", [
        ("10", "5", True),
        ("5", "5", False),
        ("2.5", "2", True),
        (" 7 ", "3", True),
        ("-1", "0", False),
    ])
    def test_greater_than(self, actual, expected, result):
        rule = variable_rule("x", expected, operator="greater_than")

        assert evaluate(rule, {"x": actual}) is result

    def test_less_than(self):
        rule = variable_rule("x", "5", operator="less_than")

        assert evaluate(rule, {"x": "4"}) is True
        assert evaluate(rule, {"x": "6"}) is False

    def test_non_numeric_actual_never_matches(self):
        assert evaluate(variable_rule("x", "5", operator="greater_than"), {"x": "abc"}, {}) is False
        assert evaluate(variable_rule("x", "5", operator="less_than"), {"x": "abc"}, {}) is False

    def test_non_numeric_expected_never_matches(self):
        assert evaluate(variable_rule("x", "many", operator="less_than"), {"x": "3"}) is False

    def test_absent_variable_never_matches(self):
        assert evaluate(variable_rule("x", "0", operator="greater_than"), {}) is False


class TestStepResultRules:
    """Rules reading recorded step outcomes."""

    def test_matches_recorded_outcome(self):
        results = {"build": StepOutcome("build", ExecutionResult.SUCCESS)}

        assert evaluate(result_rule("build", "success"), {}, results) is True
        assert evaluate(result_rule("build", "failure"), {}, results) is False

    def test_accepts_plain_values(self):
        assert evaluate(result_rule("build", "failure"), {}, {"build": "failure"}) is True
        assert evaluate(result_rule("build", "skipped"), {}, {"build": ExecutionResult.SKIPPED}) is True

    def test_unrecorded_step(self):
        assert evaluate(result_rule("build", "success"), {}, {}) is False
        assert evaluate(result_rule("build", "", operator="not_exists"), {}, {}) is True


class TestPlaceholderRules:
    """user_input and external_api echo the rule value until resolved live."""

    @pytest.mark.parametrize("rule_type", ["user_input", "external_api"])
    def test_equals_own_value(self, rule_type):
        rule = Rule(id="r", type=rule_type, operator="equals", value="yes")

        assert evaluate(rule) is True


class TestRuleRegistry:
    """Custom resolvers can replace the defaults."""

    def test_register_custom_resolver(self):
        class ApprovedInput(RuleResolver):
            def resolve(self, rule, variables, step_results):
                return "approved"

        RuleRegistry.register(RuleType.USER_INPUT, ApprovedInput())
        rule = Rule(id="r", type="user_input", operator="equals", value="approved")
        other = Rule(id="r2", type="user_input", operator="equals", value="rejected")

        assert evaluate(rule) is True
        assert evaluate(other) is False

    def test_reset_restores_defaults(self):
        class Nothing(RuleResolver):
            def resolve(self, rule, variables, step_results):
                return None

        RuleRegistry.register(RuleType.VARIABLE, Nothing())
        assert evaluate(variable_rule("x", "v"), {"x": "v"}) is False

        RuleRegistry.reset()

        assert evaluate(variable_rule("x", "v"), {"x": "v"}) is True

    def test_resolve_returns_left_hand_value(self):
        assert RuleRegistry.resolve(variable_rule("x", "ignored"), {"x": "42"}, {}) == "42"
