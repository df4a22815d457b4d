"""Rule evaluation for conditional branches.

Each ``RuleType`` has its own resolver that produces the left-hand value of
the comparison; operators are plain functions over two strings. The registry
dispatches on ``rule.type`` so live resolution of user input or external APIs
can be swapped in later without touching the operator logic.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from .model import Rule, RuleOperator, RuleType

logger = logging.getLogger(__name__)


def _outcome_value(outcome: Any) -> str:
    """Read the result string from a recorded step outcome.

    Accepts anything with a ``result`` attribute (``StepOutcome``), an enum,
    or a plain string.
    """
    value = getattr(outcome, "result", outcome)
    if isinstance(value, Enum):
        return value.value
    return "" if value is None else str(value)


class RuleResolver(ABC):
    """Base class for left-hand value resolvers."""

    @abstractmethod
    def resolve(
        self,
        rule: Rule,
        variables: Mapping[str, str],
        step_results: Mapping[str, Any],
    ) -> Optional[str]:
        """Return the value the rule compares against ``rule.value``."""
        pass


class VariableResolver(RuleResolver):
    """Reads a workflow variable; absent variables resolve to ''."""

    def resolve(self, rule, variables, step_results) -> Optional[str]:
        if rule.target_variable is None:
            return ""
        return variables.get(rule.target_variable, "")


class StepResultResolver(RuleResolver):
    """Reads the recorded result of another step; unrecorded steps resolve to ''."""

    def resolve(self, rule, variables, step_results) -> Optional[str]:
        if rule.target_step_id is None:
            return ""
        return _outcome_value(step_results.get(rule.target_step_id))


class UserInputResolver(RuleResolver):
    """Placeholder: echoes the rule's own value until interactive input exists."""

    def resolve(self, rule, variables, step_results) -> Optional[str]:
        return rule.value


class ExternalApiResolver(RuleResolver):
    """Placeholder: echoes the rule's own value until API lookups exist."""

    def resolve(self, rule, variables, step_results) -> Optional[str]:
        return rule.value


def _as_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _greater_than(actual: Optional[str], expected: str) -> bool:
    left, right = _as_number(actual), _as_number(expected)
    if left is None or right is None:
        return False
    return left > right


def _less_than(actual: Optional[str], expected: str) -> bool:
    left, right = _as_number(actual), _as_number(expected)
    if left is None or right is None:
        return False
    return left < right


def _exists(actual: Optional[str], expected: str) -> bool:
    return actual is not None and actual != ""


OPERATORS: Dict[RuleOperator, Callable[[Optional[str], str], bool]] = {
    RuleOperator.EQUALS: lambda actual, expected: actual == expected,
    RuleOperator.NOT_EQUALS: lambda actual, expected: actual != expected,
    RuleOperator.CONTAINS: lambda actual, expected: actual is not None and expected in actual,
    RuleOperator.GREATER_THAN: _greater_than,
    RuleOperator.LESS_THAN: _less_than,
    RuleOperator.EXISTS: _exists,
    RuleOperator.NOT_EXISTS: lambda actual, expected: not _exists(actual, expected),
}


def _default_resolvers() -> Dict[RuleType, RuleResolver]:
    """Build a fresh resolver map so register() in tests doesn't leak."""
    return {
        RuleType.VARIABLE: VariableResolver(),
        RuleType.STEP_RESULT: StepResultResolver(),
        RuleType.USER_INPUT: UserInputResolver(),
        RuleType.EXTERNAL_API: ExternalApiResolver(),
    }


class RuleRegistry:
    """Registry mapping rule types to resolvers."""

    _resolvers: Dict[RuleType, RuleResolver] = _default_resolvers()

    @classmethod
    def resolve(
        cls,
        rule: Rule,
        variables: Mapping[str, str],
        step_results: Mapping[str, Any],
    ) -> Optional[str]:
        resolver = cls._resolvers.get(RuleType(rule.type))
        if resolver is None:
            logger.error(f"No resolver registered for rule type: {rule.type}")
            return None
        return resolver.resolve(rule, variables, step_results)

    @classmethod
    def evaluate(
        cls,
        rule: Rule,
        variables: Mapping[str, str],
        step_results: Mapping[str, Any],
    ) -> bool:
        """Evaluate a rule using the resolver registered for its type."""
        actual = cls.resolve(rule, variables, step_results)
        comparator = OPERATORS[RuleOperator(rule.operator)]
        matched = comparator(actual, rule.value)
        logger.debug(
            f"Rule {rule.id}: {RuleType(rule.type).value} {actual!r} "
            f"{RuleOperator(rule.operator).value} {rule.value!r} -> {matched}"
        )
        return matched

    @classmethod
    def register(cls, rule_type: RuleType, resolver: RuleResolver) -> None:
        """Register a custom resolver for a rule type."""
        cls._resolvers[rule_type] = resolver

    @classmethod
    def reset(cls) -> None:
        """Restore default resolvers (useful in tests)."""
        cls._resolvers = _default_resolvers()


def evaluate(
    rule: Rule,
    variables: Optional[Mapping[str, str]] = None,
    step_results: Optional[Mapping[str, Any]] = None,
) -> bool:
    """Return whether ``rule`` holds for the given variables and step results.

    Pure: neither mapping is modified.
    """
    return RuleRegistry.evaluate(rule, variables or {}, step_results or {})
