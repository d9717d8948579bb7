"""
Ordered collection of staged devices.

Devices are addressed by position (their slot in the collection), which is
the only identity a device has before the backend assigns one. Internally
every device also carries a stable local key and parent links are stored as
keys, so positions and positional parent references are derived on read.
Removing devices therefore never rewrites parent pointers: the surviving
references shift automatically by the number of removed slots below them.
"""
import itertools
import logging
from collections import deque
from typing import Any, Dict, Iterator, List, Optional, Sequence

from plantstage.hierarchy.errors import HasChildren, InvalidParent, InvalidPosition
from plantstage.hierarchy.guard import check_parent, require_valid
from plantstage.hierarchy.nodes import (
    ROOT, DeviceNode, ParentRef, TemplateRef, dedupe_tag_refs, normalize_parent_ref,
)

log = logging.getLogger(__name__)


class _Slot:
    """Mutable record held by the store; never handed out to callers."""

    __slots__ = (
        'key', 'template', 'name', 'device_code', 'parent_key',
        'serial_number', 'status', 'selected_tag_refs', 'existing_id',
    )

    def __init__(
        self,
        key: int,
        template: TemplateRef,
        name: str,
        device_code: str,
        parent_key: Optional[int],
        serial_number: Optional[str],
        status: Optional[str],
        selected_tag_refs,
        existing_id: Optional[str],
    ):
        self.key = key
        self.template = template
        self.name = name
        self.device_code = device_code
        self.parent_key = parent_key  # None = attached to the plant
        self.serial_number = serial_number
        self.status = status
        self.selected_tag_refs = selected_tag_refs
        self.existing_id = existing_id


class NodeStore:
    """Staging collection supporting add, update and cascading remove."""

    MUTABLE_FIELDS = ('name', 'serial_number', 'status', 'selected_tag_refs', 'parent_ref')

    def __init__(self, default_status: Optional[str] = "ONLINE"):
        self.default_status = default_status
        self._slots: List[_Slot] = []
        self._keys = itertools.count()
        self._positions: Dict[int, int] = {}  # key -> position
        self._children_cache: Optional[Dict[Optional[int], List[int]]] = None

    # ------------------------------------------------------------------ reads

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[DeviceNode]:
        return iter(self.nodes())

    def nodes(self) -> List[DeviceNode]:
        """Snapshot of every staged device in position order."""
        return [self._snapshot(position, slot) for position, slot in enumerate(self._slots)]

    def get(self, position: int) -> DeviceNode:
        return self._snapshot(position, self._slot_at(position))

    def parent_ref(self, position: int) -> ParentRef:
        return self._parent_position(self._slot_at(position))

    def children(self, parent_ref: ParentRef = ROOT) -> List[int]:
        """Positions of the direct children of ``parent_ref`` (ROOT or a position)."""
        if parent_ref == ROOT:
            parent_key = None
        else:
            parent_key = self._slot_at(parent_ref).key
        return [self._positions[key] for key in self._children_index().get(parent_key, [])]

    def has_children(self, position: int) -> bool:
        return bool(self._children_index().get(self._slot_at(position).key))

    def descendants(self, position: int) -> List[int]:
        """
        Positions of every descendant of ``position`` (transitive closure).

        Breadth-first over the children index; the node itself is not
        included. Returned in ascending position order.
        """
        start = self._slot_at(position).key
        children = self._children_index()
        seen = {start}
        found = []
        queue = deque([start])
        while queue:
            key = queue.popleft()
            for child in children.get(key, []):
                if child in seen:
                    continue
                seen.add(child)
                found.append(child)
                queue.append(child)
        return sorted(self._positions[key] for key in found)

    def available_parents(self, excluding: Optional[int] = None, exclude_descendants: bool = False) -> List[int]:
        """
        Positions that may be offered as a parent.

        Args:
            excluding: Position of the device being edited (never its own parent)
            exclude_descendants: Also drop the edited device's subtree
        """
        if excluding is None:
            return list(range(len(self._slots)))
        self._slot_at(excluding)
        hidden = {excluding}
        if exclude_descendants:
            hidden.update(self.descendants(excluding))
        return [position for position in range(len(self._slots)) if position not in hidden]

    def count_template(self, template_id: str) -> int:
        return sum(1 for slot in self._slots if slot.template.id == template_id)

    def next_device_code(self, prefix: str) -> str:
        """``<prefix>_<n>`` with ``n`` one past the highest suffix in use for ``prefix``."""
        marker = f"{prefix}_"
        highest = 0
        for slot in self._slots:
            if not slot.device_code.startswith(marker):
                continue
            suffix = slot.device_code[len(marker):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{marker}{highest + 1}"

    # -------------------------------------------------------------- mutations

    def add(
        self,
        template: TemplateRef,
        parent_ref: Any = ROOT,
        name: Optional[str] = None,
        serial_number: Optional[str] = None,
        status: Optional[str] = None,
        selected_tag_refs=None,
        device_code: Optional[str] = None,
        existing_id: Optional[str] = None,
    ) -> int:
        """
        Append a device and return its position.

        ``name`` defaults to the template name plus an ordinal and
        ``device_code`` to ``<shortform>_<n>``.

        Raises:
            InvalidParent: ``parent_ref`` is neither ROOT nor a live position
            ValueError: the resulting name is empty
        """
        parent = self._normalize_parent(parent_ref)
        check_parent(self._parent_mapping(), None, parent)

        if name is None:
            name = f"{template.name} {self.count_template(template.id) + 1}"
        name = self._clean_name(name)

        if not device_code:
            device_code = self.next_device_code(template.shortform or template.id)

        slot = _Slot(
            key=next(self._keys),
            template=template,
            name=name,
            device_code=device_code,
            parent_key=self._key_for(parent),
            serial_number=serial_number or None,
            status=status or self.default_status,
            selected_tag_refs=dedupe_tag_refs(selected_tag_refs),
            existing_id=existing_id,
        )
        self._slots.append(slot)
        self._reindex()
        position = len(self._slots) - 1
        log.debug(f"Staged device {position} '{name}' ({device_code}) under {parent}")
        return position

    def update(self, position: int, **attrs) -> DeviceNode:
        """
        Replace mutable fields on an existing device.

        Accepted fields: name, serial_number, status, selected_tag_refs,
        parent_ref. The new parent is validated before anything is written.

        Raises:
            InvalidPosition: ``position`` is not a staged device
            InvalidParent: the new parent does not exist
            CycleDetected: the new parent is the device itself or one of its descendants
            ValueError: unknown field or empty name
        """
        unknown = sorted(set(attrs) - set(self.MUTABLE_FIELDS))
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(unknown)}")
        slot = self._slot_at(position)

        changes: Dict[str, Any] = {}
        if 'parent_ref' in attrs:
            parent = self._normalize_parent(attrs['parent_ref'])
            check_parent(self._parent_mapping(), position, parent)
            changes['parent_key'] = self._key_for(parent)
        if 'name' in attrs:
            changes['name'] = self._clean_name(attrs['name'])
        if 'serial_number' in attrs:
            changes['serial_number'] = attrs['serial_number'] or None
        if 'status' in attrs:
            changes['status'] = attrs['status'] or self.default_status
        if 'selected_tag_refs' in attrs:
            changes['selected_tag_refs'] = dedupe_tag_refs(attrs['selected_tag_refs'])

        for field_name, value in changes.items():
            setattr(slot, field_name, value)
        if 'parent_key' in changes:
            self._children_cache = None
        log.debug(f"Updated device {position}: {sorted(attrs)}")
        return self._snapshot(position, slot)

    def remove(self, position: int, cascade: bool = False) -> List[DeviceNode]:
        """
        Remove a device, and its whole subtree when ``cascade`` is set.

        The removal set is computed first and applied as one batch, so the
        store is never observed half-updated.

        Returns:
            Snapshots (with their pre-removal positions) of every removed device

        Raises:
            InvalidPosition: ``position`` is not a staged device
            HasChildren: the device has descendants and ``cascade`` is False
        """
        self._slot_at(position)
        descendants = self.descendants(position)
        if descendants and not cascade:
            raise HasChildren(position, descendants)

        removed_positions = sorted({position, *descendants})
        removed = [self.get(p) for p in removed_positions]
        doomed = set(removed_positions)
        self._slots = [slot for index, slot in enumerate(self._slots) if index not in doomed]
        self._reindex()
        log.info(f"Removed {len(removed)} staged device(s) at positions {removed_positions}")
        return removed

    def clear(self):
        self._slots = []
        self._reindex()

    def load(self, nodes: Sequence[DeviceNode]):
        """
        Replace the contents with ``nodes`` (positional snapshots).

        Raises:
            InvalidParent: the snapshot list is not a valid forest
        """
        require_valid(nodes, context="Cannot load devices")
        keys = [next(self._keys) for _ in nodes]
        slots = []
        for node, key in zip(nodes, keys):
            slots.append(_Slot(
                key=key,
                template=node.template,
                name=node.name,
                device_code=node.device_code,
                parent_key=None if node.parent_ref == ROOT else keys[node.parent_ref],
                serial_number=node.serial_number,
                status=node.status or self.default_status,
                selected_tag_refs=dedupe_tag_refs(node.selected_tag_refs),
                existing_id=node.existing_id,
            ))
        self._slots = slots
        self._reindex()
        log.info(f"Loaded {len(slots)} staged device(s)")

    @classmethod
    def from_nodes(cls, nodes: Sequence[DeviceNode], **kwargs) -> "NodeStore":
        store = cls(**kwargs)
        store.load(nodes)
        return store

    # ---------------------------------------------------------------- helpers

    def _slot_at(self, position) -> _Slot:
        if isinstance(position, bool) or not isinstance(position, int):
            raise InvalidPosition(position)
        if not 0 <= position < len(self._slots):
            raise InvalidPosition(position)
        return self._slots[position]

    def _normalize_parent(self, parent_ref) -> ParentRef:
        if parent_ref is None or (isinstance(parent_ref, str) and not parent_ref.strip()):
            raise InvalidParent(parent_ref, "Parent is required: select the plant or a parent device")
        try:
            return normalize_parent_ref(parent_ref)
        except ValueError as e:
            raise InvalidParent(parent_ref, str(e))

    def _key_for(self, parent: ParentRef) -> Optional[int]:
        if parent == ROOT:
            return None
        return self._slots[parent].key

    def _parent_position(self, slot: _Slot) -> ParentRef:
        if slot.parent_key is None:
            return ROOT
        return self._positions[slot.parent_key]

    def _parent_mapping(self) -> Dict[int, ParentRef]:
        return {position: self._parent_position(slot) for position, slot in enumerate(self._slots)}

    def _children_index(self) -> Dict[Optional[int], List[int]]:
        if self._children_cache is None:
            index: Dict[Optional[int], List[int]] = {}
            for slot in self._slots:
                index.setdefault(slot.parent_key, []).append(slot.key)
            self._children_cache = index
        return self._children_cache

    def _reindex(self):
        self._positions = {slot.key: position for position, slot in enumerate(self._slots)}
        self._children_cache = None

    def _snapshot(self, position: int, slot: _Slot) -> DeviceNode:
        return DeviceNode(
            position=position,
            template=slot.template,
            name=slot.name,
            parent_ref=self._parent_position(slot),
            device_code=slot.device_code,
            serial_number=slot.serial_number,
            status=slot.status,
            selected_tag_refs=slot.selected_tag_refs,
            existing_id=slot.existing_id,
            key=slot.key,
        )

    @staticmethod
    def _clean_name(name) -> str:
        if name is None or not str(name).strip():
            raise ValueError("Device name is required")
        return str(name).strip()

    def __repr__(self) -> str:
        return f"NodeStore(devices={len(self._slots)})"
