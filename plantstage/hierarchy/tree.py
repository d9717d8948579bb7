"""
Preview tree construction: Grid -> Plant -> Devices -> Sub-devices.

The tree is a derived, read-only view of the staged devices. ``TreeNode`` is a
frozen dataclass with tuple children, so rendering code cannot edit it and
drift away from the store.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from plantstage.config import TreeLabels
from plantstage.hierarchy.nodes import ROOT, DeviceNode

log = logging.getLogger(__name__)

KIND_GRID = "grid"
KIND_PLANT = "plant"
KIND_DEVICE = "device"


@dataclass(frozen=True)
class TreeNode:
    """One node of the preview tree."""
    name: str
    code: str
    type_label: Optional[str] = None
    status: Optional[str] = None
    kind: str = KIND_DEVICE
    position: Optional[int] = None
    capacity: Optional[float] = None
    children: Tuple["TreeNode", ...] = field(default_factory=tuple)

    @property
    def device_count(self) -> int:
        """Number of direct children."""
        return len(self.children)

    @property
    def total_devices(self) -> int:
        """Number of device nodes in this subtree, excluding this node."""
        return sum(1 for node, _ in self.walk() if node is not self and node.kind == KIND_DEVICE)

    def walk(self) -> Iterator[Tuple["TreeNode", int]]:
        """Depth-first, pre-order traversal yielding (node, level)."""
        stack = [(self, 0)]
        while stack:
            node, level = stack.pop()
            yield node, level
            for child in reversed(node.children):
                stack.append((child, level + 1))

    def find(self, position: int) -> Optional["TreeNode"]:
        """Return the device node built from ``position``, if present."""
        for node, _ in self.walk():
            if node.kind == KIND_DEVICE and node.position == position:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Nested dictionary representation."""
        result: Dict[str, Any] = {
            'name': self.name,
            'deviceId': self.code,
            'type': self.type_label,
            'kind': self.kind,
            'deviceCount': self.device_count,
            'children': [child.to_dict() for child in self.children],
        }
        if self.status is not None:
            result['status'] = self.status
        if self.position is not None:
            result['position'] = self.position
        if self.capacity is not None:
            result['capacity'] = self.capacity
        return result


def group_children(nodes: Sequence[DeviceNode]) -> Dict[Any, List[int]]:
    """Group positions by parent_ref in one pass, preserving collection order."""
    grouped: Dict[Any, List[int]] = defaultdict(list)
    for node in nodes:
        grouped[node.parent_ref].append(node.position)
    return grouped


def build_tree(
    nodes: Sequence[DeviceNode],
    plant_label: Optional[str] = None,
    *,
    plant_code: Optional[str] = None,
    plant_status: Optional[str] = None,
    capacity: Optional[float] = None,
    labels=None,
) -> TreeNode:
    """
    Build the preview tree for a list of staged devices.

    Children are grouped by parent once and the tree is assembled bottom-up
    without recursion, so deep chains do not hit the interpreter's recursion
    limit. Devices unreachable from ROOT (only possible with a corrupt,
    cyclic input) are left out.

    Args:
        nodes: Staged devices in position order
        plant_label: Working name of the plant
        plant_code: Plant identifier shown beside the name
        plant_status: Plant status, if known
        capacity: Plant capacity in kW, if known
        labels: Optional TreeLabels overriding the Grid/Plant wording

    Returns:
        Grid root node with exactly one Plant child
    """
    if labels is None:
        labels = TreeLabels()

    by_position = {node.position: node for node in nodes}
    grouped = group_children(nodes)

    # Pre-order listing of every reachable device, then assemble in reverse
    # so each node's children already exist when it is built.
    order: List[int] = []
    stack = list(reversed(grouped.get(ROOT, [])))
    visited = set()
    while stack:
        position = stack.pop()
        if position in visited:
            continue
        visited.add(position)
        order.append(position)
        stack.extend(reversed(grouped.get(position, [])))

    built: Dict[int, TreeNode] = {}
    for position in reversed(order):
        node = by_position[position]
        built[position] = TreeNode(
            name=node.name,
            code=node.device_code,
            type_label=node.template.name,
            status=node.status,
            kind=KIND_DEVICE,
            position=position,
            children=tuple(built[child] for child in grouped.get(position, []) if child in built),
        )

    if len(built) != len(nodes):
        log.warning(f"{len(nodes) - len(built)} staged device(s) are not reachable from the plant and were left out of the preview")

    plant = TreeNode(
        name=plant_label or labels.default_plant_name,
        code=plant_code or labels.default_plant_code,
        type_label=labels.plant_type,
        status=plant_status,
        kind=KIND_PLANT,
        capacity=capacity,
        children=tuple(built[position] for position in grouped.get(ROOT, [])),
    )
    return TreeNode(
        name=labels.grid_name,
        code=labels.grid_code,
        type_label=labels.grid_type,
        kind=KIND_GRID,
        children=(plant,),
    )
