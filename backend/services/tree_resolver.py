"""
Tree Resolver

Rebuilds the navigation tree of a process guide from its flat step and
branch rows. Malformed references and cycles degrade to END nodes; the
resolver never raises on bad data.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional, Set
import logging

from schemas.process_guide import ProcessStep, StepBranch
from schemas.process_tree import BranchCondition, NodeKind, ResolvedTree, TreeNode
from services.step_index import StepIndex

logger = logging.getLogger(__name__)


class TreeResolver:
    """
    Depth-first resolver. The visited set is scoped to the current downward
    path, so a step shared by the YES and NO side of a decision shows up on
    both sides while a true cycle is cut at a loop terminal.
    """

    def __init__(self, steps: Iterable[ProcessStep], branches: Iterable[StepBranch]):
        self.index = StepIndex(steps, branches)
        self._terminals: List[TreeNode] = []
        self._id_counts: Dict[str, int] = {}
        self._issued: Set[str] = set()

    def resolve(self) -> ResolvedTree:
        self._terminals = []
        self._id_counts = {}
        self._issued = set()

        root = TreeNode(id=self._node_id("start"), kind=NodeKind.START)
        first = self.index.first_step()
        if first is None:
            logger.debug("Process has no steps, resolving to start -> end")
        root.left = self._build(first, frozenset())

        return ResolvedTree(root=root, terminals=list(self._terminals))

    def _node_id(self, base: str) -> str:
        # A step id may itself look like "<id>~<n>", so skip suffixes already handed out
        count = self._id_counts.get(base, 0)
        node_id = base if count == 0 else f"{base}~{count}"
        while node_id in self._issued:
            count += 1
            node_id = f"{base}~{count}"
        self._id_counts[base] = count + 1
        self._issued.add(node_id)
        return node_id

    def _end(self, branch: Optional[BranchCondition] = None, description: Optional[str] = None,
             loop_origin: Optional[str] = None) -> TreeNode:
        if loop_origin is not None:
            node_id = self._node_id(f"end-loop-{loop_origin}")
        else:
            node_id = self._node_id(f"end-{len(self._terminals)}")
        node = TreeNode(
            id=node_id,
            kind=NodeKind.END,
            branch=branch,
            branch_description=description,
            loop_origin=loop_origin,
        )
        self._terminals.append(node)
        return node

    def _build(self, step: Optional[ProcessStep], visited: FrozenSet[str],
               branch: Optional[BranchCondition] = None, description: Optional[str] = None) -> TreeNode:
        if step is None:
            return self._end(branch, description)

        if step.id in visited:
            logger.debug(f"Loop guard: step '{step.id}' already on this path")
            return self._end(branch, description, loop_origin=step.id)

        visited = visited | {step.id}

        if self.index.is_decision(step):
            node = TreeNode(
                id=self._node_id(step.id),
                kind=NodeKind.DECISION,
                step=step,
                branch=branch,
                branch_description=description,
            )
            node.left = self._build_branch(step, BranchCondition.YES, visited)
            node.right = self._build_branch(step, BranchCondition.NO, visited)
            return node

        node = TreeNode(
            id=self._node_id(step.id),
            kind=NodeKind.STEP,
            step=step,
            branch=branch,
            branch_description=description,
        )
        next_step = self.index.successor(step)
        if next_step is None and step.next_step_id is not None:
            logger.debug(f"Step '{step.id}' points at missing step '{step.next_step_id}'")
        node.left = self._build(next_step, visited)
        return node

    def _build_branch(self, step: ProcessStep, condition: BranchCondition,
                      visited: FrozenSet[str]) -> TreeNode:
        branch = self.index.branch(step.id, condition)
        if branch is None:
            return self._end(condition)

        target = self.index.branch_target(branch)
        if target is None and branch.next_step_id is not None:
            logger.debug(f"Branch '{branch.id}' points at missing step '{branch.next_step_id}'")
        return self._build(target, visited, condition, branch.description or None)


def resolve(steps: Iterable[ProcessStep], branches: Iterable[StepBranch]) -> ResolvedTree:
    """Resolve one process's steps and branches into a navigation tree."""
    return TreeResolver(steps, branches).resolve()
