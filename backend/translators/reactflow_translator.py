"""
React Flow Translator

Converts a resolved process tree and its computed layout to React Flow JSON.
Positions come from the layout engine; this module only adds shapes,
styling and labels, deterministically.
"""

from typing import Dict, Any
from schemas.process_tree import EdgeTag, FlowchartLayout, NodeKind, ResolvedTree, TreeNode
from translators.flowchart_layout import FlowchartLayoutEngine

class ReactFlowTranslator:
    """
    Deterministic translator from a laid-out ResolvedTree to React Flow format.
    """

    def __init__(self, layout_engine: FlowchartLayoutEngine = None):
        self.layout_engine = layout_engine or FlowchartLayoutEngine()

        # Node styling configurations
        self.node_styles = {
            NodeKind.START: {
                "shape": "ellipse",
                "borderRadius": "50%",
                "border": "3px solid #16A34A",
                "background": "#DCFCE7",
                "color": "#166534"
            },
            NodeKind.END: {
                "shape": "ellipse",
                "borderRadius": "50%",
                "border": "3px solid #DC2626",
                "background": "#FEE2E2",
                "color": "#991B1B"
            },
            NodeKind.STEP: {
                "shape": "rectangle",
                "borderRadius": "12px",
                "border": "3px solid #3B82F6",
                "background": "#DBEAFE",
                "color": "#1E40AF"
            },
            NodeKind.DECISION: {
                "shape": "diamond",
                "border": "3px solid #F59E0B",
                "background": "#FEF3C7",
                "color": "#92400E"
            }
        }

        # Edge styling per tag
        self.edge_colors = {
            EdgeTag.YES: "#10B981",
            EdgeTag.NO: "#EF4444",
            EdgeTag.NORMAL: "#3B82F6"
        }

        self.marker_end = {
            "type": "ArrowClosed",
            "width": 20,
            "height": 20
        }

    def translate(self, tree: ResolvedTree, layout: FlowchartLayout = None) -> Dict[str, Any]:
        """
        Convert a resolved tree to React Flow format.

        Args:
            tree: Resolved process tree
            layout: Precomputed layout; computed with the layout engine when omitted

        Returns:
            Dict containing nodes, edges and canvas metadata in React Flow format
        """
        if layout is None:
            layout = self.layout_engine.layout(tree)

        react_nodes = [self._convert_node(node, layout) for node in tree.nodes()]
        react_edges = [self._convert_edge(edge) for edge in layout.edges]

        return {
            "nodes": react_nodes,
            "edges": react_edges,
            "metadata": {
                "canvas_width": layout.bounds.width,
                "canvas_height": layout.bounds.height,
                "node_count": len(react_nodes),
                "terminal_count": len(tree.terminals)
            }
        }

    def _convert_node(self, node: TreeNode, layout: FlowchartLayout) -> Dict[str, Any]:
        """Convert TreeNode to React Flow node format"""
        center = layout.positions[node.id]
        size = self.layout_engine.node_sizes[node.kind]

        style = self.node_styles[node.kind].copy()
        style["width"] = size["width"]
        style["height"] = size["height"]

        react_node = {
            "id": node.id,
            "type": node.kind.value,
            # React Flow positions are top-left corners
            "position": {
                "x": center.x - size["width"] / 2,
                "y": center.y - size["height"] / 2
            },
            "data": {
                "label": self._label(node),
                "center": {"x": center.x, "y": center.y},
                "step_id": node.step.id if node.step else None,
                "step_number": node.step.step_number if node.step else None,
                "description": node.step.description if node.step else "",
                "branch": node.branch.value if node.branch else None,
                "branch_description": node.branch_description,
                "loop_origin": node.loop_origin
            },
            "style": style
        }

        return react_node

    def _label(self, node: TreeNode) -> str:
        if node.kind == NodeKind.START:
            return "START"
        if node.kind == NodeKind.END:
            return "END"
        if node.kind == NodeKind.DECISION:
            return node.step.title
        return f"Step {node.step.step_number}: {node.step.title}"

    def _convert_edge(self, edge) -> Dict[str, Any]:
        """Convert LayoutEdge to React Flow edge format"""
        color = self.edge_colors[edge.tag]

        react_edge = {
            "id": edge.id,
            "source": edge.source,
            "target": edge.target,
            "type": "step",
            "data": {
                "tag": edge.tag.value,
                "path": edge.path,
                "points": [{"x": p.x, "y": p.y} for p in edge.points]
            },
            "style": {"strokeWidth": 2.5, "stroke": color},
            "markerEnd": dict(self.marker_end, color=color)
        }

        # Add labels for decision edges
        if edge.label:
            react_edge["label"] = edge.label
            react_edge["labelStyle"] = {
                "fontSize": 14,
                "fontWeight": "bold",
                "fill": color
            }
            if edge.label_position:
                react_edge["data"]["label_position"] = {
                    "x": edge.label_position.x,
                    "y": edge.label_position.y
                }

        return react_edge
