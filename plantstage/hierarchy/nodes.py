"""
Data model for staged devices.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

# Parent value meaning "attached directly to the plant".
ROOT = "PLANT"

ParentRef = Union[int, str]


class TemplateRef(BaseModel):
    """Reference to a device template in the external catalog."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    shortform: str = ""


@dataclass(frozen=True)
class DeviceNode:
    """
    Read-only snapshot of a staged device.

    ``position`` is the device's slot in the staging collection and
    ``parent_ref`` is either ``ROOT`` or the position of its parent. Both are
    only meaningful for the collection state the snapshot was taken from.
    """
    position: int
    template: TemplateRef
    name: str
    parent_ref: ParentRef = ROOT
    device_code: str = ""
    serial_number: Optional[str] = None
    status: Optional[str] = None
    selected_tag_refs: Tuple[str, ...] = field(default_factory=tuple)
    existing_id: Optional[str] = None
    key: Optional[int] = None

    @property
    def is_root_level(self) -> bool:
        return self.parent_ref == ROOT

    @property
    def template_name(self) -> str:
        return self.template.name

    def with_changes(self, **changes) -> "DeviceNode":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def __repr__(self) -> str:
        return f"DeviceNode(position={self.position}, name={self.name}, parent_ref={self.parent_ref})"


def normalize_parent_ref(value: Any) -> ParentRef:
    """
    Coerce a raw parent value into ``ROOT`` or a non-negative int position.

    Digit strings are accepted because positions come back from form fields
    as text. Raises ``ValueError`` for anything else, including ``None``.
    """
    if value == ROOT:
        return ROOT
    if isinstance(value, bool):
        raise ValueError(f"Invalid parent reference: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Invalid parent reference: {value!r}")
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValueError(f"Invalid parent reference: {value!r}")


def dedupe_tag_refs(tag_refs) -> Tuple[str, ...]:
    """Keep the first occurrence of every tag id, preserving order."""
    if tag_refs is None:
        return ()
    if isinstance(tag_refs, str):
        tag_refs = [tag_refs]
    seen = []
    for tag_ref in tag_refs:
        if tag_ref not in seen:
            seen.append(tag_ref)
    return tuple(seen)
