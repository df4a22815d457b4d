"""Translate workflow errors to user-friendly messages."""

import re
from dataclasses import dataclass
from typing import List, Optional

from rich.markup import escape


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    original_error: Exception
    title: str
    explanation: str
    actions: List[str]
    documentation: Optional[str] = None
    show_technical: bool = False


class ErrorTranslator:
    """Translate technical errors to user-friendly messages."""

    ERROR_PATTERNS = {
        r"^CycleError": {
            "title": "Step dependencies form a cycle",
            "explanation": "At least one step depends, directly or indirectly, on itself, so no valid dependency order exists.",
            "actions": [
                "Inspect the cycle listed below",
                "Remove one of the dependencies on the cycle",
                "Re-check with: prompt-workflow order <workflow-id>",
            ],
        },

        r"^UnresolvedBranchError": {
            "title": "No next step for a conditional step",
            "explanation": "None of the step's branches matched and it has no usable default next step.",
            "actions": [
                "Add a default next step to the conditional step",
                "Check the branch rules against the current variables",
                "Set execution.fallback_to_linear: true to continue in list order instead",
            ],
        },

        r"^ExecutionLimitError": {
            "title": "Workflow run exceeded its loop limit",
            "explanation": "Branches jumped back to earlier steps more often than allowed.",
            "actions": [
                "Review branches that jump to earlier steps",
                "Raise execution.max_loops in the config if the loop is intended",
            ],
        },

        r"^ExecutionStateError": {
            "title": "Workflow run is not active",
            "explanation": "The requested action needs a running workflow, but this run has already completed or been stopped.",
            "actions": [
                "Start a new run: prompt-workflow run <workflow-id>",
            ],
        },

        r"^WorkflowNotFoundError": {
            "title": "Workflow not found",
            "explanation": "No saved workflow or template has that id.",
            "actions": [
                "List available workflows: prompt-workflow list",
            ],
        },

        r"^WorkflowValidationError": {
            "title": "Workflow is not valid",
            "explanation": "The workflow breaks one or more structural rules and was not changed or saved.",
            "actions": [
                "Review the problems listed below",
                "Check all problems at once: prompt-workflow validate <workflow-id>",
            ],
        },

        r"^KeyError: .(Step|Branch) not found": {
            "title": "Step or branch not found",
            "explanation": "The workflow has no step or branch with that id.",
            "actions": [
                "List the workflow's steps: prompt-workflow show <workflow-id>",
            ],
        },
    }

    def translate(self, error: Exception) -> UserFriendlyError:
        """Convert exception to user-friendly format."""
        error_str = str(error)
        error_type = type(error).__name__
        full_error = f"{error_type}: {error_str}"

        for pattern, translation in self.ERROR_PATTERNS.items():
            if re.search(pattern, full_error, re.IGNORECASE):
                return UserFriendlyError(
                    original_error=error,
                    title=translation["title"],
                    explanation=translation["explanation"],
                    actions=translation["actions"],
                    documentation=translation.get("documentation"),
                    show_technical=translation.get("show_technical", True),
                )

        # Fallback for unknown errors
        return UserFriendlyError(
            original_error=error,
            title="Unexpected error",
            explanation=error_str,
            actions=[
                "Check logs for details (run with --log-level DEBUG)",
            ],
            show_technical=True,
        )

    def format_for_cli(self, friendly_error: UserFriendlyError) -> str:
        """Format error for CLI display."""
        output = f"[bold red]{friendly_error.title}[/]\n\n"
        output += f"{escape(friendly_error.explanation)}\n\n"

        output += "[bold]How to fix:[/]\n"
        for i, action in enumerate(friendly_error.actions, 1):
            output += f"  {i}. {action}\n"

        if friendly_error.documentation:
            output += f"\n[dim]Learn more: {friendly_error.documentation}[/]"

        if friendly_error.show_technical:
            output += f"\n\n[dim]Technical details:[/]\n[dim]{escape(str(friendly_error.original_error))}[/]"
            for violation in getattr(friendly_error.original_error, "violations", []):
                output += f"\n[dim]  - {escape(str(violation))}[/]"

        return output
