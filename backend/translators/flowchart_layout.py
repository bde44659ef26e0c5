"""
Flowchart Layout Engine

Computes node positions and routed connectors for a resolved process tree.
Layout is a recursive subtree-width algorithm: every subtree gets a
horizontal slice proportional to its width so siblings never overlap.
Output is geometry and edge tags only; drawing is left to the renderer.
"""

from typing import Dict, List, Optional

from schemas.process_tree import (
    Bounds, EdgeTag, FlowchartLayout, LayoutEdge, NodeKind, Point, ResolvedTree, Span, TreeNode
)


class FlowchartLayoutEngine:
    """
    Deterministic top-down tree layout.
    The YES / primary child goes left, the NO child goes right.
    """

    def __init__(
        self,
        min_spacing: float = 350,
        level_height: float = 200,
        y_offset: float = 80,
        minimum_canvas_width: float = 1400,
        bottom_margin: float = 200,
        straight_epsilon: float = 10,
    ):
        self.min_spacing = min_spacing
        self.level_height = level_height
        self.y_offset = y_offset
        self.minimum_canvas_width = minimum_canvas_width
        self.bottom_margin = bottom_margin
        self.straight_epsilon = straight_epsilon

        # Shape sizes, used for connector anchors
        self.node_sizes = {
            NodeKind.START: {"width": 200, "height": 70},
            NodeKind.END: {"width": 200, "height": 70},
            NodeKind.STEP: {"width": 280, "height": 100},
            NodeKind.DECISION: {"width": 160, "height": 160},
        }

        self.label_offset = 30

    def layout(self, tree: ResolvedTree) -> FlowchartLayout:
        widths: Dict[str, float] = {}
        tree_width = self._measure(tree.root, widths)
        canvas_width = max(tree_width, self.minimum_canvas_width)

        positions: Dict[str, Point] = {}
        spans: Dict[str, Span] = {}
        self._place(tree.root, 0.0, 0, canvas_width, widths, positions, spans)

        nodes = {node.id: node for node in tree.nodes()}
        edges = [
            self._route(parent, child, tag, positions)
            for parent, child, tag in tree.edges()
        ]

        max_y = max(point.y for point in positions.values())
        return FlowchartLayout(
            positions=positions,
            edges=edges,
            bounds=Bounds(width=canvas_width, height=max_y + self.bottom_margin),
            allocated_spans={node_id: spans[node_id] for node_id in nodes},
        )

    def subtree_width(self, node: Optional[TreeNode]) -> float:
        return self._measure(node, {})

    def _measure(self, node: Optional[TreeNode], widths: Dict[str, float]) -> float:
        """Pass 1: horizontal space a subtree needs, memoized per node id."""
        if node is None:
            return 0
        if node.id in widths:
            return widths[node.id]

        if node.is_leaf:
            width = self.min_spacing
        else:
            width = self._measure(node.left, widths) + self._measure(node.right, widths) + self.min_spacing

        widths[node.id] = width
        return width

    def _place(self, node: TreeNode, x: float, depth: int, available: float,
               widths: Dict[str, float], positions: Dict[str, Point], spans: Dict[str, Span]) -> float:
        """Pass 2: position a subtree inside [x, x + available]. Returns the node's x."""
        y = depth * self.level_height + self.y_offset
        spans[node.id] = Span(left=x, right=x + available)

        if node.is_leaf:
            center = x + available / 2
        elif node.left is not None and node.right is not None:
            left_width = widths[node.left.id]
            right_width = widths[node.right.id]
            left_space = available * left_width / (left_width + right_width)
            right_space = available - left_space

            left_x = self._place(node.left, x, depth + 1, left_space, widths, positions, spans)
            right_x = self._place(node.right, x + left_space, depth + 1, right_space, widths, positions, spans)
            center = (left_x + right_x) / 2
        else:
            only_child = node.left if node.left is not None else node.right
            center = self._place(only_child, x, depth + 1, available, widths, positions, spans)

        positions[node.id] = Point(x=center, y=y)
        return center

    def _anchor_below(self, node: TreeNode, point: Point) -> float:
        return point.y + self.node_sizes[node.kind]["height"] / 2

    def _anchor_above(self, node: TreeNode, point: Point) -> float:
        return point.y - self.node_sizes[node.kind]["height"] / 2

    def _route(self, parent: TreeNode, child: TreeNode, tag: EdgeTag,
               positions: Dict[str, Point]) -> LayoutEdge:
        source = positions[parent.id]
        target = positions[child.id]

        start = Point(x=source.x, y=self._anchor_below(parent, source))
        end = Point(x=target.x, y=self._anchor_above(child, target))

        if abs(start.x - end.x) < self.straight_epsilon:
            points = [start, end]
        else:
            mid_y = (start.y + end.y) / 2
            points = [start, Point(x=start.x, y=mid_y), Point(x=end.x, y=mid_y), end]

        label = None
        label_position = None
        mid_center_y = (source.y + target.y) / 2
        if tag == EdgeTag.YES:
            label = "YES"
            offset = self.label_offset if source.x < target.x else -self.label_offset
            label_position = Point(x=source.x + offset, y=mid_center_y)
        elif tag == EdgeTag.NO:
            label = "NO"
            offset = -self.label_offset if source.x < target.x else self.label_offset
            label_position = Point(x=target.x + offset, y=mid_center_y)

        return LayoutEdge(
            id=f"edge-{parent.id}-{child.id}",
            source=parent.id,
            target=child.id,
            tag=tag,
            points=points,
            path=svg_path(points),
            label=label,
            label_position=label_position,
        )


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def svg_path(points: List[Point]) -> str:
    """SVG path data for a polyline: 'M x y L x y ...'."""
    parts = []
    for i, point in enumerate(points):
        command = "M" if i == 0 else "L"
        parts.append(f"{command} {_format_number(point.x)} {_format_number(point.y)}")
    return " ".join(parts)


def layout(tree: ResolvedTree) -> FlowchartLayout:
    """Lay out a resolved tree with the default flowchart constants."""
    return FlowchartLayoutEngine().layout(tree)
