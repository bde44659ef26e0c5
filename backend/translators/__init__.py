"""
Deterministic Translator Layer

Lays out resolved process trees and converts them to React Flow format.
All geometry is deterministic and independent of the renderer.
"""

from .flowchart_layout import FlowchartLayoutEngine, layout
from .reactflow_translator import ReactFlowTranslator

__all__ = ['FlowchartLayoutEngine', 'ReactFlowTranslator', 'layout']
