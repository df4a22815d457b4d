"""Step ordering and dependency-graph utilities.

All functions are pure: they return new lists and never mutate the steps
they are given.
"""

import logging
from typing import Dict, Iterator, List, Sequence, Tuple

from ..errors.exceptions import CycleError
from .model import Step

logger = logging.getLogger(__name__)


def renumber(steps: Sequence[Step]) -> List[Step]:
    """Return deep copies of ``steps`` with ``order`` set to list position (1-based)."""
    return [
        step.model_copy(update={"order": position}, deep=True)
        for position, step in enumerate(steps, start=1)
    ]


def reorder(steps: Sequence[Step], from_index: int, to_index: int) -> List[Step]:
    """Move the step at ``from_index`` to ``to_index`` and renumber every step.

    Raises:
        IndexError: If either index is outside ``0..len(steps)-1``
    """
    size = len(steps)
    for name, index in (("from_index", from_index), ("to_index", to_index)):
        if not 0 <= index < size:
            raise IndexError(f"{name} {index} out of range for {size} steps")

    items = list(steps)
    if from_index != to_index:
        moved = items.pop(from_index)
        items.insert(to_index, moved)
    return renumber(items)


def remove_step(steps: Sequence[Step], step_id: str) -> List[Step]:
    """Remove ``step_id`` and renumber the remaining steps.

    References to the removed step from other steps are left untouched;
    ``validation.validate`` reports them as dangling.

    Raises:
        KeyError: If no step has ``step_id``
    """
    remaining = [step for step in steps if step.id != step_id]
    if len(remaining) == len(steps):
        raise KeyError(step_id)
    return renumber(remaining)


def prune_references(steps: Sequence[Step], step_id: str) -> List[Step]:
    """Drop every reference to ``step_id`` from ``steps``.

    Dependencies on it are removed, branches targeting it are removed and a
    default next step pointing at it is cleared. Rules that read its result
    are kept; they resolve to '' once the step is gone.
    """
    pruned: List[Step] = []
    for original in steps:
        step = original.model_copy(deep=True)
        changed = []
        if step_id in step.dependencies:
            step.dependencies = [d for d in step.dependencies if d != step_id]
            changed.append("dependencies")
        branches = [b for b in step.conditional_branches if b.next_step_id != step_id]
        if len(branches) != len(step.conditional_branches):
            step.conditional_branches = branches
            changed.append("conditional_branches")
        if step.default_next_step_id == step_id:
            step.default_next_step_id = None
            changed.append("default_next_step_id")
        if changed:
            logger.debug(f"Pruned references to '{step_id}' from step '{step.id}': {changed}")
        pruned.append(step)
    return pruned


def topological_order(steps: Sequence[Step]) -> List[str]:
    """Return step ids ordered so every step follows its dependencies.

    Steps without ordering constraints keep their list order. Dependencies on
    ids not present in ``steps`` are ignored here; validation reports them.

    Raises:
        CycleError: If the dependencies contain a cycle
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    by_id: Dict[str, Step] = {}
    for step in steps:
        by_id.setdefault(step.id, step)
    color = {step_id: WHITE for step_id in by_id}
    order: List[str] = []

    for root in by_id:
        if color[root] != WHITE:
            continue
        color[root] = GRAY
        # Each frame is (step_id, iterator over its remaining dependencies)
        stack: List[Tuple[str, Iterator[str]]] = [(root, iter(by_id[root].dependencies))]
        while stack:
            step_id, deps = stack[-1]
            for dep in deps:
                if dep not in by_id or color[dep] == BLACK:
                    continue
                if color[dep] == GRAY:
                    # Back edge: the cycle is the stack from dep to here, closed on dep
                    path = [frame_id for frame_id, _ in stack]
                    cycle = path[path.index(dep):] + [dep]
                    raise CycleError(list(reversed(cycle)))
                color[dep] = GRAY
                stack.append((dep, iter(by_id[dep].dependencies)))
                break
            else:
                stack.pop()
                color[step_id] = BLACK
                order.append(step_id)
    return order
