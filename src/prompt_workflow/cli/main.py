"""Command-line interface for authoring and running prompt workflows."""

import logging
import sys
from pathlib import Path
from typing import Dict, Iterable

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.catalog import PromptCatalog
from ..core.config import WorkflowConfig, load_config
from ..errors.exceptions import CycleError, WorkflowError
from ..errors.translator import ErrorTranslator
from ..workflow.authoring import WorkflowEditor
from ..workflow.executor import ExecutionController
from ..workflow.model import ExecutionResult, RuleOperator, RuleType, StepCategory, WorkflowType
from ..workflow.ordering import topological_order
from ..workflow.store import WorkflowRepository, WorkflowTemplateStore
from ..workflow.validation import validate


console = Console()
translator = ErrorTranslator()
logger = logging.getLogger(__name__)

RESULT_CHOICES = {
    "success": ExecutionResult.SUCCESS,
    "failure": ExecutionResult.FAILURE,
    "skip": ExecutionResult.SKIPPED,
}


def setup_logging(level: str) -> None:
    """Send log records to stderr so command output stays clean."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _parse_vars(pairs: Iterable[str]) -> Dict[str, str]:
    variables = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected KEY=VALUE, got '{pair}'", param_hint="--var")
        key, value = pair.split("=", 1)
        variables[key.strip()] = value
    return variables


def _fail(ctx: click.Context, error: Exception) -> None:
    console.print(translator.format_for_cli(translator.translate(error)))
    ctx.exit(1)


def _build_store(ctx: click.Context) -> WorkflowTemplateStore:
    config: WorkflowConfig = ctx.obj["config"]
    repository: WorkflowRepository = ctx.obj["repository"]
    store = WorkflowTemplateStore.from_config(config, on_save=repository.save)
    for workflow in repository.list_all():
        store.add(workflow)
    return store


def _load_catalog(config: WorkflowConfig) -> PromptCatalog:
    if config.catalog_path is None:
        return PromptCatalog()
    if not config.catalog_path.exists():
        logger.warning(f"Prompt catalog not found: {config.catalog_path}")
        return PromptCatalog()
    return PromptCatalog.from_file(config.catalog_path)


@click.group()
@click.option("--config", "-c", "config_path", default="prompt-workflow.yaml",
              type=click.Path(path_type=Path), help="Config file")
@click.option("--dir", "-d", "directory", type=click.Path(path_type=Path),
              help="Directory holding saved workflows (overrides config)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"],
              case_sensitive=False), help="Log level (overrides config)")
@click.pass_context
def cli(ctx, config_path, directory, log_level):
    """Prompt Workflow - build and step through prompt workflows."""
    ctx.ensure_object(dict)
    config = load_config(config_path)
    if directory is not None:
        config = config.model_copy(
            update={"store": config.store.model_copy(update={"directory": directory})}
        )
    setup_logging(log_level or config.log_level)
    ctx.obj["config"] = config
    ctx.obj["repository"] = WorkflowRepository(config.store.directory)


@cli.command("list")
@click.option("--no-templates", is_flag=True, help="Hide built-in templates")
@click.pass_context
def list_workflows(ctx, no_templates):
    """List workflows and templates."""
    store = _build_store(ctx)

    table = Table()
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Steps", justify="right")
    table.add_column("Est. time")

    for workflow in store.list(include_templates=not no_templates):
        name = escape(workflow.name)
        if workflow.is_template:
            name += " [dim](template)[/]"
        table.add_row(
            escape(workflow.id),
            name,
            workflow.type.value,
            str(len(workflow.steps)),
            escape(workflow.estimated_time),
        )
    console.print(table)


@cli.command()
@click.argument("workflow_id")
@click.pass_context
def show(ctx, workflow_id):
    """Show the steps of a workflow."""
    try:
        workflow = _build_store(ctx).get(workflow_id)
    except WorkflowError as e:
        _fail(ctx, e)
        return
    catalog = _load_catalog(ctx.obj["config"])

    console.print(f"[bold]{escape(workflow.name)}[/] ({escape(workflow.id)})")
    if workflow.description:
        console.print(workflow.description, markup=False)
    console.print(f"[dim]Type: {workflow.type.value} | Estimated time: {escape(workflow.estimated_time)}[/]")

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Step ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Depends on")
    table.add_column("Next")

    for step in workflow.steps:
        title = escape(step.title)
        prompt = catalog.get(step.prompt_id)
        if prompt is not None:
            title += f"\n[dim]prompt: {escape(prompt.title)}[/]"
        elif step.prompt_id:
            title += f"\n[dim]prompt: {escape(step.prompt_id)}[/]"

        if step.is_conditional:
            routes = [
                escape(f"{b.name or b.id} -> {b.next_step_id}") for b in step.conditional_branches
            ]
            routes.append(escape(f"default -> {step.default_next_step_id or '(none)'}"))
            next_desc = "\n".join(routes)
        else:
            next_desc = "(in order)"

        table.add_row(
            str(step.order),
            escape(step.id),
            title,
            step.category.value,
            escape(", ".join(step.dependencies)) or "-",
            next_desc,
        )
    console.print(table)


@cli.command()
@click.argument("name")
@click.option("--description", default="", help="What the workflow accomplishes")
@click.option("--type", "workflow_type", default=WorkflowType.CUSTOM.value,
              type=click.Choice([t.value for t in WorkflowType]), help="Workflow type")
@click.option("--estimated-time", default="1-2 hours", help="Rough duration")
@click.pass_context
def create(ctx, name, description, workflow_type, estimated_time):
    """Create an empty workflow."""
    store = _build_store(ctx)
    try:
        workflow = store.create(name, description, workflow_type, estimated_time)
        store.save(workflow)
    except WorkflowError as e:
        _fail(ctx, e)
        return
    console.print(f"[green]✓ Created workflow {workflow.id}[/]")


@cli.command()
@click.argument("workflow_id")
@click.pass_context
def clone(ctx, workflow_id):
    """Clone a workflow or template into a new editable workflow."""
    store = _build_store(ctx)
    try:
        cloned = store.clone(workflow_id)
        store.save(cloned)
    except WorkflowError as e:
        _fail(ctx, e)
        return
    console.print(f"[green]✓ Cloned {escape(workflow_id)} as {cloned.id}[/] ({escape(cloned.name)})")


@cli.command("add-step")
@click.argument("workflow_id")
@click.argument("title")
@click.option("--description", default="", help="What the step accomplishes")
@click.option("--category", default=StepCategory.CUSTOM.value,
              type=click.Choice([c.value for c in StepCategory]), help="Step category")
@click.option("--depends-on", multiple=True, help="Step id this step depends on (repeatable)")
@click.option("--var", "variables", multiple=True, help="Step variable KEY=VALUE (repeatable)")
@click.option("--prompt-id", help="Prompt catalog id the step uses")
@click.pass_context
def add_step(ctx, workflow_id, title, description, category, depends_on, variables, prompt_id):
    """Append a step to a workflow."""
    store = _build_store(ctx)
    try:
        editor = WorkflowEditor(store, workflow_id)
        step = editor.add_step(
            title,
            description=description,
            category=category,
            dependencies=depends_on,
            variables=_parse_vars(variables),
            prompt_id=prompt_id,
        )
        editor.save()
    except (WorkflowError, KeyError) as e:
        _fail(ctx, e)
        return
    console.print(f"[green]✓ Added step {escape(step.id)}[/] at position {step.order}")


@cli.command("move-step")
@click.argument("workflow_id")
@click.argument("from_position", type=int)
@click.argument("to_position", type=int)
@click.pass_context
def move_step(ctx, workflow_id, from_position, to_position):
    """Move the step at FROM_POSITION to TO_POSITION (1-based)."""
    store = _build_store(ctx)
    try:
        editor = WorkflowEditor(store, workflow_id)
        steps = editor.move_step(from_position - 1, to_position - 1)
        editor.save()
    except IndexError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        ctx.exit(1)
        return
    except WorkflowError as e:
        _fail(ctx, e)
        return
    console.print("[green]✓ New order:[/] " + escape(", ".join(step.id for step in steps)))


@cli.command("remove-step")
@click.argument("workflow_id")
@click.argument("step_id")
@click.option("--prune", is_flag=True, help="Also remove references to the step from other steps")
@click.pass_context
def remove_step_cmd(ctx, workflow_id, step_id, prune):
    """Remove a step from a workflow.

    Without --prune the removal is refused when other steps still reference
    the step, since the workflow could not be saved.
    """
    store = _build_store(ctx)
    try:
        editor = WorkflowEditor(store, workflow_id)
        dangling = editor.delete_step(step_id, prune=prune)
        for ref in dangling:
            console.print(f"[yellow]  {escape(ref.step_id)}.{ref.field} still references {escape(step_id)}[/]")
        editor.save()
    except WorkflowError as e:
        _fail(ctx, e)
        return
    except KeyError as e:
        console.print(f"[red]Error: step not found: {escape(str(e))}[/]")
        ctx.exit(1)
        return
    console.print(f"[green]✓ Removed step {escape(step_id)}[/]")


@cli.command("set-conditional")
@click.argument("workflow_id")
@click.argument("step_id")
@click.option("--default-next", help="Step to go to when no branch matches")
@click.option("--off", is_flag=True, help="Make the step linear again (drops its branches)")
@click.pass_context
def set_conditional(ctx, workflow_id, step_id, default_next, off):
    """Turn branching on or off for a step."""
    store = _build_store(ctx)
    try:
        editor = WorkflowEditor(store, workflow_id)
        editor.set_conditional(step_id, not off, default_next_step_id=default_next)
        editor.save()
    except (WorkflowError, KeyError) as e:
        _fail(ctx, e)
        return
    state = "linear" if off else "conditional"
    console.print(f"[green]✓ Step {escape(step_id)} is now {state}[/]")


@cli.command("add-branch")
@click.argument("workflow_id")
@click.argument("step_id")
@click.argument("next_step_id")
@click.option("--name", default="", help="Branch label")
@click.option("--rule-type", default=RuleType.VARIABLE.value,
              type=click.Choice([t.value for t in RuleType]), help="Where the rule reads its value")
@click.option("--operator", default=RuleOperator.EQUALS.value,
              type=click.Choice([o.value for o in RuleOperator]), help="Comparison")
@click.option("--value", default="", help="Value compared against")
@click.option("--variable", "target_variable", help="Variable read by a variable rule")
@click.option("--target-step", "target_step_id", help="Step read by a step_result rule")
@click.pass_context
def add_branch(ctx, workflow_id, step_id, next_step_id, name, rule_type, operator,
               value, target_variable, target_step_id):
    """Add a branch from a conditional step to NEXT_STEP_ID."""
    store = _build_store(ctx)
    try:
        editor = WorkflowEditor(store, workflow_id)
        branch = editor.add_branch(
            step_id,
            next_step_id,
            {
                "type": rule_type,
                "operator": operator,
                "value": value,
                "target_variable": target_variable,
                "target_step_id": target_step_id,
            },
            name=name,
        )
        editor.save()
    except (WorkflowError, KeyError) as e:
        _fail(ctx, e)
        return
    console.print(f"[green]✓ Added branch {escape(branch.id)}[/] " + escape(f"{step_id} -> {next_step_id}"))


@cli.command("validate")
@click.argument("workflow_id")
@click.pass_context
def validate_cmd(ctx, workflow_id):
    """Check a workflow for broken references, order gaps and cycles."""
    try:
        workflow = _build_store(ctx).get(workflow_id)
    except WorkflowError as e:
        _fail(ctx, e)
        return

    violations = validate(workflow)
    try:
        topological_order(workflow.steps)
    except CycleError as e:
        violations.append(e)

    if not violations:
        console.print(f"[green]✓ {escape(workflow.name)} is valid[/]")
        return

    console.print(f"[red]{len(violations)} problem(s) in {escape(workflow.name)}:[/]")
    for violation in violations:
        console.print(f"  - {violation}", markup=False)
    ctx.exit(1)


@cli.command()
@click.argument("workflow_id")
@click.pass_context
def order(ctx, workflow_id):
    """Print steps in dependency order."""
    try:
        workflow = _build_store(ctx).get(workflow_id)
        step_ids = topological_order(workflow.steps)
    except WorkflowError as e:
        _fail(ctx, e)
        return

    for position, step_id in enumerate(step_ids, 1):
        step = workflow.get_step(step_id)
        console.print(f"{position}. {escape(step.title)} [dim]({escape(step_id)})[/]")


@cli.command()
@click.argument("workflow_id")
@click.option("--var", "variables", multiple=True, help="Run variable KEY=VALUE (repeatable)")
@click.pass_context
def run(ctx, workflow_id, variables):
    """Step through a workflow interactively."""
    config: WorkflowConfig = ctx.obj["config"]
    try:
        workflow = _build_store(ctx).get(workflow_id)
    except WorkflowError as e:
        _fail(ctx, e)
        return

    controller = ExecutionController.from_config(config)
    context = controller.start(workflow, variables=_parse_vars(variables))
    console.print(f"[bold cyan]Executing: {escape(workflow.name)}[/]")

    while context.is_running:
        step = context.current_step
        console.print()
        console.print(
            f"[bold]Step {context.step_index + 1} of {len(context.snapshot)}:[/] {escape(step.title)} "
            f"[dim]({step.category.value})[/]"
        )
        if step.description:
            console.print(step.description, markup=False)
        if step.dependencies:
            console.print(f"[dim]Dependencies: {escape(', '.join(step.dependencies))}[/]")

        choice = click.prompt(
            "Result",
            type=click.Choice([*RESULT_CHOICES, "stop"]),
            default="success",
        )
        if choice == "stop":
            controller.stop(context)
            console.print("[yellow]Workflow stopped[/]")
            return

        try:
            controller.next(context, RESULT_CHOICES[choice])
        except WorkflowError as e:
            controller.stop(context)
            _fail(ctx, e)
            return

    console.print()
    console.print(f"[green]✓ Workflow completed![/] ({context.transitions} step(s))")
