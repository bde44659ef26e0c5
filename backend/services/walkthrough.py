"""
Walkthrough Navigator

Step-by-step reveal of a process guide. Each path is a linear run of
steps; reaching a decision forks two new paths (YES and NO) that are
explored side by side. Transitions are pure: they take a
WalkthroughState and return a new one.
"""

from typing import Iterable, List, Optional
import logging

from schemas.process_guide import ProcessStep, StepBranch
from schemas.process_tree import BranchCondition, END_REACHED, PathCursor, WalkthroughState
from services.step_index import StepIndex

logger = logging.getLogger(__name__)

MAIN_PATH = "main"


class WalkthroughError(Exception):
    """Raised when a walkthrough transition is not valid for the given state"""
    pass


class WalkthroughNavigator:

    def __init__(self, steps: Iterable[ProcessStep], branches: Iterable[StepBranch]):
        self.index = StepIndex(steps, branches)

    def start(self) -> WalkthroughState:
        first = self.index.first_step()
        if first is None:
            return WalkthroughState(paths={MAIN_PATH: PathCursor(start_step_id=None, cursor=END_REACHED)})
        return WalkthroughState(paths={MAIN_PATH: PathCursor(start_step_id=first.id, cursor=0)})

    def materialize(self, start_step_id: Optional[str]) -> List[ProcessStep]:
        """
        Linear sequence of steps for a path starting at start_step_id.

        Follows the regular successor rule and stops after the first decision
        step (forking continues from there), at an explicit or implicit end,
        or when a step would repeat. The decision itself is the last element so
        it can be shown before the walkthrough forks on it.
        """
        sequence: List[ProcessStep] = []
        seen = set()
        step = self.index.get(start_step_id)
        while step is not None and step.id not in seen:
            sequence.append(step)
            seen.add(step.id)
            if self.index.is_decision(step):
                break
            step = self.index.successor(step)
        return sequence

    def advance(self, state: WalkthroughState, path_id: str) -> WalkthroughState:
        cursor = self._cursor(state, path_id)
        if cursor.end_reached:
            return state

        sequence = self.materialize(cursor.start_step_id)
        if cursor.cursor < len(sequence) and self.index.is_decision(sequence[cursor.cursor]):
            # Decisions move on through fork(), not advance()
            return state

        next_index = cursor.cursor + 1
        if next_index >= len(sequence):
            logger.debug(f"Walkthrough path '{path_id}' reached the end")
            next_index = END_REACHED
        return state.with_path(path_id, cursor.model_copy(update={"cursor": next_index}))

    def fork(self, state: WalkthroughState, path_id: str, step_id: str) -> WalkthroughState:
        self._cursor(state, path_id)

        step = self.index.get(step_id)
        if step is None or not self.index.is_decision(step):
            raise WalkthroughError(f"Step '{step_id}' is not a decision step")
        if all(visible.id != step_id for visible in self.visible_steps(state, path_id)):
            raise WalkthroughError(f"Step '{step_id}' has not been reached on path '{path_id}'")

        paths = dict(state.paths)
        for condition in (BranchCondition.YES, BranchCondition.NO):
            child_path = f"{path_id}-{condition.value}"
            if child_path in paths:
                continue
            branch = self.index.branch(step.id, condition)
            target = self.index.branch_target(branch)
            paths[child_path] = PathCursor(
                start_step_id=target.id if target else None,
                cursor=0 if target else END_REACHED,
                forked_from=step.id,
                branch_description=branch.description if branch else None,
            )
        return WalkthroughState(paths=paths)

    def reset(self, state: WalkthroughState) -> WalkthroughState:
        return self.start()

    def visible_steps(self, state: WalkthroughState, path_id: str) -> List[ProcessStep]:
        cursor = self._cursor(state, path_id)
        sequence = self.materialize(cursor.start_step_id)
        if cursor.end_reached:
            return sequence
        return sequence[:cursor.cursor + 1]

    def pending_decision(self, state: WalkthroughState, path_id: str) -> Optional[ProcessStep]:
        """Revealed decision on this path that has not been forked yet."""
        visible = self.visible_steps(state, path_id)
        if not visible or not self.index.is_decision(visible[-1]):
            return None
        if f"{path_id}-{BranchCondition.YES.value}" in state.paths:
            return None
        return visible[-1]

    def _cursor(self, state: WalkthroughState, path_id: str) -> PathCursor:
        cursor = state.cursor_for(path_id)
        if cursor is None:
            raise WalkthroughError(f"Unknown walkthrough path '{path_id}'")
        return cursor
