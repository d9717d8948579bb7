"""
Integrity checks for the staging hierarchy.

The functions here are pure: they look at a parent mapping (``node -> parent``,
where the parent is ``ROOT`` or another node) and never modify it. The store
runs them before committing any parent change, so a rejected operation leaves
nothing to roll back.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from plantstage.hierarchy.errors import CycleDetected, InvalidParent
from plantstage.hierarchy.nodes import ROOT, DeviceNode

log = logging.getLogger(__name__)

ParentMapping = Union[Mapping[Any, Any], Sequence[Any]]


def _as_mapping(parent_of: ParentMapping) -> Mapping[Any, Any]:
    if isinstance(parent_of, Mapping):
        return parent_of
    return dict(enumerate(parent_of))


def _is_terminal(parent) -> bool:
    return parent is None or parent == ROOT


def is_ancestor(parent_of: ParentMapping, ancestor, node) -> bool:
    """
    Return True if ``ancestor`` appears on the parent chain above ``node``.

    The walk is bounded by the number of nodes, so a corrupt mapping that
    already contains a cycle still terminates. ``ROOT`` ends the chain and is
    never reported as an ancestor.

    Args:
        parent_of: Mapping (or sequence indexed by position) of node -> parent
        ancestor: Candidate ancestor
        node: Node whose chain is walked

    Returns:
        True when ``ancestor`` is a strict ancestor of ``node``
    """
    if _is_terminal(ancestor):
        return False
    parents = _as_mapping(parent_of)
    current = node
    for _ in range(len(parents) + 1):
        parent = parents.get(current)
        if _is_terminal(parent):
            return False
        if parent == ancestor:
            return True
        current = parent
    return False


def check_parent(parent_of: ParentMapping, node, new_parent) -> None:
    """
    Validate attaching ``node`` under ``new_parent``.

    ``node`` is None when a new device is being added (it has no descendants
    yet, so only existence is checked).

    Raises:
        InvalidParent: ``new_parent`` is not ROOT and not a known node
        CycleDetected: ``new_parent`` is ``node`` itself or one of its descendants
    """
    if _is_terminal(new_parent):
        return
    parents = _as_mapping(parent_of)
    if new_parent not in parents:
        raise InvalidParent(new_parent)
    if node is None:
        return
    if new_parent == node or is_ancestor(parents, node, new_parent):
        raise CycleDetected(node, new_parent)


def find_cycles(parent_of: ParentMapping) -> List[Any]:
    """Return every node that is its own ancestor."""
    parents = _as_mapping(parent_of)
    return [node for node in parents if is_ancestor(parents, node, node)]


def validate_nodes(nodes: Sequence[DeviceNode]) -> Tuple[bool, List[str]]:
    """
    Audit a snapshot list of staged devices.

    Checks:
    1. Positions are dense and match list order (0..n-1)
    2. Every parent_ref is ROOT or the position of another device
    3. No device is its own ancestor

    Args:
        nodes: Snapshots in collection order

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []
    count = len(nodes)

    # ============= 1. DENSE POSITIONS =============
    for index, node in enumerate(nodes):
        if node.position != index:
            errors.append(f"Device '{node.name}' at slot {index} reports position {node.position}")

    # ============= 2. PARENT REFERENCES =============
    parent_of: Dict[int, Any] = {}
    for index, node in enumerate(nodes):
        parent = node.parent_ref
        if parent == ROOT:
            parent_of[index] = ROOT
            continue
        if isinstance(parent, bool) or not isinstance(parent, int) or not 0 <= parent < count:
            errors.append(f"Device '{node.name}' ({index}) has dangling parent reference {parent!r}")
            parent_of[index] = ROOT
            continue
        if parent == index:
            errors.append(f"Device '{node.name}' ({index}) is its own parent")
            parent_of[index] = ROOT
            continue
        parent_of[index] = parent

    # ============= 3. CYCLES =============
    for index in find_cycles(parent_of):
        errors.append(f"Device '{nodes[index].name}' ({index}) is its own ancestor")

    if errors:
        log.debug(f"Hierarchy validation found {len(errors)} problem(s)")
    return len(errors) == 0, errors


def require_valid(nodes: Sequence[DeviceNode], context: Optional[str] = None) -> None:
    """Raise InvalidParent with the collected messages if ``nodes`` fails validation."""
    is_valid, errors = validate_nodes(nodes)
    if not is_valid:
        prefix = f"{context}: " if context else ""
        raise InvalidParent(None, prefix + "; ".join(errors))
