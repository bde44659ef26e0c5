"""
Step Index

Id-indexed view over the steps and branches of one process guide.
Holds the successor rule shared by the tree resolver and the walkthrough
navigator, so both read the flat rows the same way.
"""

from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from schemas.process_guide import ProcessStep, StepBranch
from schemas.process_tree import BranchCondition


class SuccessorKind(str, Enum):
    DECISION = "decision"
    END = "end"
    CUSTOM = "custom"
    SEQUENTIAL = "sequential"


@dataclass
class SuccessorInfo:
    kind: SuccessorKind
    next_step: Optional[ProcessStep] = None
    branches: List[StepBranch] = field(default_factory=list)


class StepIndex:
    """
    Lookup tables for one process. Inputs are never mutated.

    Duplicate step ids, duplicate step numbers and duplicate
    (step, condition) branches all resolve to the first row in input order.
    """

    def __init__(self, steps: Iterable[ProcessStep], branches: Iterable[StepBranch]):
        self.steps: List[ProcessStep] = sorted(steps, key=lambda s: s.step_number)
        self.by_id: Dict[str, ProcessStep] = {}
        self.by_number: Dict[int, ProcessStep] = {}
        for step in self.steps:
            self.by_id.setdefault(step.id, step)
            self.by_number.setdefault(step.step_number, step)

        self.branches_by_step: Dict[str, List[StepBranch]] = {}
        for branch in branches:
            self.branches_by_step.setdefault(branch.step_id, []).append(branch)

    def first_step(self) -> Optional[ProcessStep]:
        return self.steps[0] if self.steps else None

    def get(self, step_id: Optional[str]) -> Optional[ProcessStep]:
        if step_id is None:
            return None
        return self.by_id.get(step_id)

    def branches_for(self, step_id: str) -> List[StepBranch]:
        return self.branches_by_step.get(step_id, [])

    def branch(self, step_id: str, condition: BranchCondition) -> Optional[StepBranch]:
        for branch in self.branches_for(step_id):
            if branch.condition == condition.value:
                return branch
        return None

    def is_decision(self, step: ProcessStep) -> bool:
        # Both the flag and at least one branch row are required.
        return step.is_decision and len(self.branches_for(step.id)) > 0

    def branch_target(self, branch: Optional[StepBranch]) -> Optional[ProcessStep]:
        if branch is None:
            return None
        return self.get(branch.next_step_id)

    def successor(self, step: ProcessStep) -> Optional[ProcessStep]:
        """
        Successor of a regular step.

        Explicit next_step_id wins (None ends the process), otherwise the
        step numbered one higher. Returns None when the target is missing.
        """
        if step.has_explicit_next:
            if step.next_step_id is None:
                return None
            return self.get(step.next_step_id)
        return self.by_number.get(step.step_number + 1)

    def describe_successor(self, step: ProcessStep) -> SuccessorInfo:
        if self.is_decision(step):
            return SuccessorInfo(kind=SuccessorKind.DECISION, branches=list(self.branches_for(step.id)))
        if step.has_explicit_next:
            if step.next_step_id is None:
                return SuccessorInfo(kind=SuccessorKind.END)
            return SuccessorInfo(kind=SuccessorKind.CUSTOM, next_step=self.get(step.next_step_id))
        return SuccessorInfo(kind=SuccessorKind.SEQUENTIAL, next_step=self.successor(step))
