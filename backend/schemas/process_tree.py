# schemas/process_tree.py
from __future__ import annotations
from typing import Dict, Iterator, List, Optional, Tuple
from enum import Enum
from pydantic import BaseModel, Field

from schemas.process_guide import ProcessStep

# ---------- Core Enums ----------

class NodeKind(str, Enum):
    START = "start"
    STEP = "step"
    DECISION = "decision"
    END = "end"

class BranchCondition(str, Enum):
    YES = "yes"
    NO = "no"

class EdgeTag(str, Enum):
    YES = "yes"
    NO = "no"
    NORMAL = "normal"

# ---------- Resolved Tree ----------

class TreeNode(BaseModel):
    """
    Node of a resolved process tree.

    ``left`` is the primary child (the successor of a start/step node, the
    YES side of a decision) and ``right`` the NO side of a decision.
    """
    id: str
    kind: NodeKind
    step: Optional[ProcessStep] = None
    branch: Optional[BranchCondition] = None
    branch_description: Optional[str] = None
    loop_origin: Optional[str] = None
    left: Optional[TreeNode] = None
    right: Optional[TreeNode] = None

    @property
    def is_loop_terminal(self) -> bool:
        return self.kind == NodeKind.END and self.loop_origin is not None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    @property
    def yes_child(self) -> Optional[TreeNode]:
        return self.left if self.kind == NodeKind.DECISION else None

    @property
    def no_child(self) -> Optional[TreeNode]:
        return self.right if self.kind == NodeKind.DECISION else None

    @property
    def next_child(self) -> Optional[TreeNode]:
        return self.left if self.kind in (NodeKind.START, NodeKind.STEP) else None

    def children(self) -> List[Tuple[EdgeTag, TreeNode]]:
        """Children in layout order (yes before no) with their edge tags."""
        result = []
        if self.kind == NodeKind.DECISION:
            if self.left is not None:
                result.append((EdgeTag.YES, self.left))
            if self.right is not None:
                result.append((EdgeTag.NO, self.right))
        else:
            for child in (self.left, self.right):
                if child is not None:
                    result.append((EdgeTag.NORMAL, child))
        return result

class ResolvedTree(BaseModel):
    root: TreeNode
    terminals: List[TreeNode] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(n.kind in (NodeKind.STEP, NodeKind.DECISION) for n in self.nodes())

    def nodes(self) -> List[TreeNode]:
        """All nodes in pre-order, yes side before no side."""
        return [node for node, _depth in self.walk()]

    def walk(self) -> Iterator[Tuple[TreeNode, int]]:
        stack: List[Tuple[TreeNode, int]] = [(self.root, 0)]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            for _tag, child in reversed(node.children()):
                stack.append((child, depth + 1))

    def edges(self) -> List[Tuple[TreeNode, TreeNode, EdgeTag]]:
        return [
            (node, child, tag)
            for node in self.nodes()
            for tag, child in node.children()
        ]

    def find(self, node_id: str) -> Optional[TreeNode]:
        for node in self.nodes():
            if node.id == node_id:
                return node
        return None

    def depth_of(self, node_id: str) -> Optional[int]:
        for node, depth in self.walk():
            if node.id == node_id:
                return depth
        return None

# ---------- Layout ----------

class Point(BaseModel):
    x: float
    y: float

class Span(BaseModel):
    left: float
    right: float

    def overlaps(self, other: Span) -> bool:
        return self.left < other.right and other.left < self.right

class Bounds(BaseModel):
    width: float
    height: float

class LayoutEdge(BaseModel):
    id: str
    source: str
    target: str
    tag: EdgeTag = EdgeTag.NORMAL
    points: List[Point] = Field(default_factory=list)
    path: str = ""
    label: Optional[str] = None
    label_position: Optional[Point] = None

class FlowchartLayout(BaseModel):
    positions: Dict[str, Point] = Field(default_factory=dict)
    edges: List[LayoutEdge] = Field(default_factory=list)
    bounds: Bounds
    allocated_spans: Dict[str, Span] = Field(default_factory=dict)

# ---------- Walkthrough ----------

END_REACHED = -1

class PathCursor(BaseModel):
    start_step_id: Optional[str] = None
    cursor: int = Field(default=0, ge=END_REACHED)
    forked_from: Optional[str] = None
    branch_description: Optional[str] = None

    @property
    def end_reached(self) -> bool:
        return self.cursor == END_REACHED

class WalkthroughState(BaseModel):
    paths: Dict[str, PathCursor] = Field(default_factory=dict)

    def cursor_for(self, path_id: str) -> Optional[PathCursor]:
        return self.paths.get(path_id)

    def with_path(self, path_id: str, cursor: PathCursor) -> WalkthroughState:
        paths = dict(self.paths)
        paths[path_id] = cursor
        return WalkthroughState(paths=paths)
