"""Workflow template store and file-based workflow repository."""

import json
import logging
import re
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..errors.exceptions import WorkflowNotFoundError, WorkflowValidationError
from ..utils.atomic_io import atomic_write_json
from .model import Workflow, WorkflowType
from .ordering import topological_order
from .templates import default_templates
from .validation import validate

logger = logging.getLogger(__name__)

SaveHook = Callable[[Workflow], None]

# Workflow ids double as file names
_FILE_SAFE_ID = re.compile(r"[A-Za-z0-9_-]{1,128}")


def new_workflow_id() -> str:
    return f"workflow-{uuid.uuid4().hex[:12]}"


class WorkflowTemplateStore:
    """In-memory collection of authored, cloned and template workflows.

    Workflows returned by ``get`` are the live authoring objects; execution
    takes its own snapshot at start, so edits here never reach a running
    instance. ``save`` validates and publishes a copy through ``on_save``.
    """

    def __init__(
        self,
        on_save: Optional[SaveHook] = None,
        templates: Optional[Iterable[Workflow]] = None,
        require_acyclic: bool = True,
    ):
        self.on_save = on_save
        self.require_acyclic = require_acyclic
        self._workflows: Dict[str, Workflow] = {}
        for template in templates or ():
            self.add(template)

    @classmethod
    def from_config(cls, config, on_save: Optional[SaveHook] = None) -> "WorkflowTemplateStore":
        """Build a store from ``WorkflowConfig.store`` settings."""
        templates = default_templates() if config.store.load_default_templates else []
        return cls(
            on_save=on_save,
            templates=templates,
            require_acyclic=config.store.require_acyclic,
        )

    def __len__(self) -> int:
        return len(self._workflows)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def add(self, workflow: Workflow) -> Workflow:
        """Register an existing workflow, replacing any with the same id."""
        if workflow.id in self._workflows:
            logger.debug(f"Replacing workflow {workflow.id} in store")
        self._workflows[workflow.id] = workflow
        return workflow

    def create(
        self,
        name: str,
        description: str = "",
        type: Union[WorkflowType, str] = WorkflowType.CUSTOM,
        estimated_time: str = "1-2 hours",
    ) -> Workflow:
        """Create an empty workflow.

        Raises:
            WorkflowValidationError: If ``name`` is blank
        """
        if not name or not name.strip():
            raise WorkflowValidationError("Workflow name cannot be empty")

        workflow = Workflow(
            id=new_workflow_id(),
            name=name.strip(),
            description=description,
            type=type,
            estimated_time=estimated_time or "1-2 hours",
        )
        self._workflows[workflow.id] = workflow
        logger.info(f"Created workflow {workflow.id} ({workflow.name})")
        return workflow

    def get(self, workflow_id: str) -> Workflow:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def list(self, include_templates: bool = True) -> List[Workflow]:
        """All workflows in insertion order."""
        return [
            wf for wf in self._workflows.values()
            if include_templates or not wf.is_template
        ]

    def clone(self, workflow_id: str) -> Workflow:
        """Deep-copy a workflow into a new, editable, non-template workflow."""
        source = self.get(workflow_id)
        now = datetime.now(UTC)
        cloned = source.model_copy(deep=True)
        cloned.id = new_workflow_id()
        cloned.name = f"{source.name} (Copy)"
        cloned.is_template = False
        cloned.created_at = now
        cloned.updated_at = now
        self._workflows[cloned.id] = cloned
        logger.info(f"Cloned workflow {source.id} -> {cloned.id}")
        return cloned

    def update(self, workflow: Workflow) -> Workflow:
        """Replace the stored workflow with ``workflow`` and mark it modified."""
        self.get(workflow.id)
        workflow.touch()
        self._workflows[workflow.id] = workflow
        return workflow

    def delete(self, workflow_id: str) -> Workflow:
        """Remove a workflow. Built-in templates cannot be deleted."""
        workflow = self.get(workflow_id)
        if workflow.is_template:
            raise WorkflowValidationError(f"Template '{workflow_id}' cannot be deleted")
        del self._workflows[workflow_id]
        logger.info(f"Deleted workflow {workflow_id}")
        return workflow

    def save(self, workflow: Workflow) -> Workflow:
        """Validate ``workflow`` and publish a snapshot of it.

        Raises:
            WorkflowValidationError: If any invariant is violated
            CycleError: If dependencies are cyclic and the store requires acyclic workflows
        """
        violations = validate(workflow)
        if violations:
            logger.warning(
                f"Refusing to save workflow {workflow.id}: {len(violations)} violation(s)"
            )
            raise WorkflowValidationError(
                f"Workflow '{workflow.name or workflow.id}' has {len(violations)} problem(s)",
                violations,
            )
        if self.require_acyclic:
            topological_order(workflow.steps)

        self._workflows[workflow.id] = workflow
        snapshot = workflow.model_copy(deep=True)
        if self.on_save is not None:
            self.on_save(snapshot)
        logger.info(f"Saved workflow {workflow.id} ({len(workflow.steps)} steps)")
        return snapshot


class WorkflowRepository:
    """Stores workflows as JSON files, one file per workflow id."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def _path(self, workflow_id: str) -> Path:
        if not _FILE_SAFE_ID.fullmatch(workflow_id or ""):
            raise ValueError(f"Workflow id cannot be used as a file name: {workflow_id!r}")
        return self.base_dir / f"{workflow_id}.json"

    def save(self, workflow: Workflow) -> Path:
        """Write ``workflow`` atomically and return the file path."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(workflow.id)
        atomic_write_json(path, workflow.to_record())
        logger.debug(f"Wrote workflow {workflow.id} to {path}")
        return path

    def load(self, workflow_id: str) -> Optional[Workflow]:
        path = self._path(workflow_id)
        if not path.exists():
            return None
        return Workflow.model_validate(json.loads(path.read_text()))

    def list_all(self) -> List[Workflow]:
        """Load every readable workflow file; malformed files are skipped."""
        if not self.base_dir.exists():
            return []

        workflows = []
        for filepath in sorted(self.base_dir.glob("*.json")):
            try:
                workflows.append(Workflow.model_validate(json.loads(filepath.read_text())))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping malformed workflow file {filepath}: {e}")
        return workflows

    def delete(self, workflow_id: str) -> bool:
        """Delete a stored workflow. Returns True if a file was removed."""
        path = self._path(workflow_id)
        if not path.exists():
            return False
        path.unlink()
        return True
