"""
Conversion between staged devices and the plant API's device shapes.

Outbound, staged devices become the ``devices`` list of a plant create/update
body. New devices have no backend id yet, so parent links are sent the way
the store holds them, positionally: ``parentDeviceId`` is the position of the
parent within the same submitted list (``None`` for devices attached to the
plant) and the backend resolves them inside the batch.

Inbound, a saved plant's flat device list (real ids, nullable real parent
ids) is turned back into positional snapshots for the store.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from plantstage.hierarchy.guard import is_ancestor
from plantstage.hierarchy.nodes import ROOT, DeviceNode, TemplateRef

log = logging.getLogger(__name__)


class DevicePayload(BaseModel):
    """One entry of the ``devices`` list sent to the plant API."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None  # backend id of a previously saved device (update instead of create)
    template_id: str = Field(alias="templateId")
    name: str
    parent_device_id: Optional[int] = Field(default=None, alias="parentDeviceId")
    serial_number: Optional[str] = Field(default=None, alias="serialNumber")
    status: Optional[str] = None
    selected_tags: List[str] = Field(default_factory=list, alias="selectedTags")

    def to_wire(self) -> Dict[str, Any]:
        """camelCase dict; ``parentDeviceId`` stays even when null, empty serials are dropped."""
        data = self.model_dump(by_alias=True)
        if not data.get('serialNumber'):
            data.pop('serialNumber', None)
        if data.get('id') is None:
            data.pop('id', None)
        return data


class ServerTemplate(BaseModel):
    model_config = ConfigDict(extra='ignore', coerce_numbers_to_str=True)

    id: Optional[str] = None
    name: Optional[str] = None
    shortform: Optional[str] = None


class ServerTag(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore', coerce_numbers_to_str=True)

    id: Optional[str] = None
    template_tag_id: Optional[str] = Field(default=None, alias="templateTagId")


class ServerDevice(BaseModel):
    """A persisted device as returned by the plant-detail API."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', coerce_numbers_to_str=True)

    id: str
    name: str = ""
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    template_id: Optional[str] = Field(default=None, alias="templateId")
    template: Optional[ServerTemplate] = None
    device_type: Optional[Union[str, Dict[str, Any]]] = Field(default=None, alias="deviceType")
    parent_device_id: Optional[str] = Field(default=None, alias="parentDeviceId")
    serial_number: Optional[str] = Field(default=None, alias="serialNumber")
    status: Optional[str] = None
    tags: List[ServerTag] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Null fields take their defaults instead of failing the record."""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    def template_ref(self) -> TemplateRef:
        """Template reference, preferring the nested template over flat fields."""
        template = self.template or ServerTemplate()
        type_name = self.device_type.get('name') if isinstance(self.device_type, dict) else self.device_type
        return TemplateRef(
            id=template.id or self.template_id or "",
            name=template.name or type_name or "",
            shortform=template.shortform or "",
        )

    def selected_tag_refs(self) -> List[str]:
        return [tag.template_tag_id for tag in self.tags if tag.template_tag_id]


def to_payload(nodes: Iterable[DeviceNode]) -> List[DevicePayload]:
    """
    Build the outbound device list.

    Args:
        nodes: Staged devices in position order (a NodeStore works too)

    Returns:
        One DevicePayload per device, in the same order
    """
    payload = []
    for node in nodes:
        payload.append(DevicePayload(
            id=node.existing_id,
            template_id=node.template.id,
            name=node.name,
            parent_device_id=None if node.parent_ref == ROOT else node.parent_ref,
            serial_number=node.serial_number,
            status=node.status,
            selected_tags=list(node.selected_tag_refs),
        ))
    return payload


def to_wire(nodes: Iterable[DeviceNode]) -> List[Dict[str, Any]]:
    """Outbound device list as plain dicts ready for JSON encoding."""
    return [entry.to_wire() for entry in to_payload(nodes)]


def build_plant_payload(plant, nodes: Iterable[DeviceNode]) -> Dict[str, Any]:
    """
    Full plant create/update body.

    ``devices`` is always present, even when empty, so that an update can
    remove every device of a saved plant.
    """
    payload = plant.to_wire()
    payload['devices'] = to_wire(nodes)
    return payload


def from_server_tree(devices: Iterable[Union[ServerDevice, Dict[str, Any]]]) -> List[DeviceNode]:
    """
    Rehydrate positional snapshots from a saved plant's device list.

    Each device takes its list index as position. A backend parent id is
    mapped to the position of the device carrying that id; null or unknown
    parents fall back to ROOT instead of failing the load. A parent link that
    would close a cycle is detached to ROOT as well.

    Args:
        devices: Raw API dicts or ServerDevice models

    Returns:
        DeviceNode snapshots in list order
    """
    records = [d if isinstance(d, ServerDevice) else ServerDevice.model_validate(d) for d in devices]

    position_by_id: Dict[str, int] = {}
    for position, record in enumerate(records):
        position_by_id.setdefault(record.id, position)

    parents: List[Any] = []
    for position, record in enumerate(records):
        parent: Any = ROOT
        if record.parent_device_id:
            found = position_by_id.get(record.parent_device_id)
            if found is None:
                log.warning(f"Device {record.id} references unknown parent {record.parent_device_id}; attaching to plant")
            elif found == position:
                log.warning(f"Device {record.id} is its own parent; attaching to plant")
            else:
                parent = found
        parents.append(parent)

    for position in range(len(parents)):
        if is_ancestor(parents, position, position):
            log.warning(f"Device {records[position].id} closes a parent cycle; attaching to plant")
            parents[position] = ROOT

    nodes = []
    for position, record in enumerate(records):
        template = record.template_ref()
        if not template.id:
            log.warning(f"Device {record.id} has no template reference")
        nodes.append(DeviceNode(
            position=position,
            template=template,
            name=record.name or template.name,
            parent_ref=parents[position],
            device_code=record.device_id or "",
            serial_number=record.serial_number or None,
            status=record.status,
            selected_tag_refs=tuple(record.selected_tag_refs()),
            existing_id=record.id,
        ))
    log.info(f"Rehydrated {len(nodes)} device(s) from saved plant")
    return nodes
