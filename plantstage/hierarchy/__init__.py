"""
Hierarchy module for the staged device tree of a not-yet-persisted plant.

This module provides:
- DeviceNode, TemplateRef, ROOT (data model)
- NodeStore (ordered staging collection with cascading remove)
- is_ancestor, check_parent, validate_nodes (integrity guard)
- TreeNode, build_tree (Grid -> Plant -> devices preview)
- to_payload, from_server_tree (submission adapter)
"""

from plantstage.hierarchy.errors import (
    StagingError, InvalidParent, CycleDetected, HasChildren, InvalidPosition,
)
from plantstage.hierarchy.nodes import ROOT, DeviceNode, TemplateRef
from plantstage.hierarchy.guard import is_ancestor, check_parent, validate_nodes
from plantstage.hierarchy.store import NodeStore
from plantstage.hierarchy.tree import TreeNode, build_tree
from plantstage.hierarchy.submission import (
    DevicePayload, ServerDevice, to_payload, to_wire, build_plant_payload, from_server_tree,
)

__all__ = [
    'StagingError',
    'InvalidParent',
    'CycleDetected',
    'HasChildren',
    'InvalidPosition',
    'ROOT',
    'DeviceNode',
    'TemplateRef',
    'is_ancestor',
    'check_parent',
    'validate_nodes',
    'NodeStore',
    'TreeNode',
    'build_tree',
    'DevicePayload',
    'ServerDevice',
    'to_payload',
    'to_wire',
    'build_plant_payload',
    'from_server_tree',
]
