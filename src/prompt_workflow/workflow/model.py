"""Workflow, step, branch and rule models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class StepCategory(str, Enum):
    """Kind of work a step represents."""
    PLANNING = "planning"
    BACKEND = "backend"
    FRONTEND = "frontend"
    INTEGRATION = "integration"
    TESTING = "testing"
    DEPLOYMENT = "deployment"
    CUSTOM = "custom"
    CONDITIONAL = "conditional"


class WorkflowType(str, Enum):
    """Broad workflow family, used for grouping templates."""
    FULLSTACK = "fullstack"
    FRONTEND = "frontend"
    BACKEND = "backend"
    API = "api"
    CUSTOM = "custom"


class ExecutionResult(str, Enum):
    """Outcome recorded for a step during a run."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class RuleType(str, Enum):
    """Where a rule reads its left-hand value from."""
    VARIABLE = "variable"
    STEP_RESULT = "step_result"
    USER_INPUT = "user_input"
    EXTERNAL_API = "external_api"


class RuleOperator(str, Enum):
    """Comparison applied between the resolved value and ``Rule.value``."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


def _now() -> datetime:
    return datetime.now(UTC)


class _Record(BaseModel):
    """Base for serialized records: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )


class Rule(_Record):
    """A single comparison deciding whether a branch is taken."""

    id: str
    type: RuleType = RuleType.VARIABLE
    operator: RuleOperator = RuleOperator.EQUALS
    value: str = ""
    target_variable: Optional[str] = None
    target_step_id: Optional[str] = None


class Branch(_Record):
    """Conditional outgoing edge of a conditional step."""

    id: str
    name: str = ""
    condition: Rule
    next_step_id: str


class Step(_Record):
    """One unit of a workflow."""

    id: str
    title: str
    description: str = ""
    prompt_id: Optional[str] = None  # Opaque reference into the prompt catalog
    category: StepCategory = StepCategory.CUSTOM
    dependencies: List[str] = Field(default_factory=list)
    variables: Dict[str, str] = Field(default_factory=dict)
    order: int = 0
    is_conditional: bool = False
    conditional_branches: List[Branch] = Field(default_factory=list)
    default_next_step_id: Optional[str] = None
    execution_result: ExecutionResult = ExecutionResult.PENDING

    @field_validator("dependencies")
    @classmethod
    def dedupe_dependencies(cls, v: List[str]) -> List[str]:
        """Dependencies are a set; keep first occurrence for stable output."""
        return list(dict.fromkeys(v))


class Workflow(_Record):
    """A named, ordered sequence of steps."""

    id: str
    name: str
    description: str = ""
    type: WorkflowType = WorkflowType.CUSTOM
    steps: List[Step] = Field(default_factory=list)
    estimated_time: str = "1-2 hours"
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    is_template: bool = False

    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]

    def get_step(self, step_id: str) -> Optional[Step]:
        """Return the step with ``step_id``, or None."""
        return next((step for step in self.steps if step.id == step_id), None)

    def index_of(self, step_id: str) -> int:
        """List position of ``step_id``; raises KeyError when absent."""
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        raise KeyError(step_id)

    def touch(self) -> None:
        """Mark the workflow as modified now."""
        self.updated_at = _now()

    def to_record(self) -> dict:
        """Plain nested record with camelCase keys, as handed to save hooks."""
        return self.model_dump(mode="json", by_alias=True)
