"""
Staging editor session.

Ties the node store to the template catalog and the plant details, and tracks
where the session is in its lifecycle:

    EMPTY -> POPULATED -> SUBMITTING -> SUBMITTED | FAILED

Submission is the only asynchronous step. The transport is injected as a
coroutine function; the store is never rolled back on a failed submission, so
the operator can fix the problem and submit again.
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from plantstage.catalog import TemplateCatalog
from plantstage.config import StagingConfig
from plantstage.hierarchy.errors import StagingError
from plantstage.hierarchy.nodes import ROOT, DeviceNode, ParentRef
from plantstage.hierarchy.store import NodeStore
from plantstage.hierarchy.submission import build_plant_payload, from_server_tree
from plantstage.hierarchy.tree import TreeNode, build_tree
from plantstage.plant import IncompletePlantDetails, PlantDetails

log = logging.getLogger(__name__)


class EditorState(str, Enum):
    EMPTY = "EMPTY"
    POPULATED = "POPULATED"
    SUBMITTING = "SUBMITTING"
    SUBMITTED = "SUBMITTED"
    FAILED = "FAILED"


class EditorBusy(StagingError):
    """Raised when the hierarchy is edited while a submission is in flight."""
    pass


class StagingEditor:
    """One operator session building the device hierarchy of a plant."""

    def __init__(
        self,
        catalog: TemplateCatalog,
        config: Optional[StagingConfig] = None,
        plant: Optional[PlantDetails] = None,
    ):
        self.catalog = catalog
        self.config = config or StagingConfig()
        self.plant = plant
        self.store = NodeStore(default_status=self.config.editor.default_device_status)
        self.state = EditorState.EMPTY
        self.plant_record_id: Optional[str] = None  # backend id of the plant in edit mode
        self.last_error: Optional[BaseException] = None

    @property
    def is_edit_mode(self) -> bool:
        return self.plant_record_id is not None

    # ------------------------------------------------------------ lifecycle

    def load_plant(self, record: Dict[str, Any]):
        """
        Seed the session from a saved plant (plant-detail API record with devices).

        A null status or timezone falls back to the configured plant defaults.

        Raises:
            pydantic.ValidationError: the plant fields are invalid
        """
        self._ensure_editable()
        defaults = self.config.plant
        plant = PlantDetails.from_record(record, status=defaults.status, timezone=defaults.timezone)
        nodes = from_server_tree(record.get('devices') or [])
        self.store.load(nodes)
        self.plant = plant
        self.plant_record_id = str(record['id']) if record.get('id') is not None else None
        self._settle()
        log.info(f"Loaded plant {plant.plant_id} with {len(nodes)} device(s) for editing")

    def set_plant(self, plant: PlantDetails):
        self.plant = plant

    # ------------------------------------------------------------ mutations

    def add_device(
        self,
        template_id: str,
        parent_ref: Any = ROOT,
        name: Optional[str] = None,
        serial_number: Optional[str] = None,
        status: Optional[str] = None,
        selected_tag_refs=None,
    ) -> int:
        """
        Stage a new device from a catalog template and return its position.

        When ``selected_tag_refs`` is None every template tag is selected
        (unless the configuration turns that off).
        """
        self._ensure_editable()
        template = self.catalog.get(template_id)
        self._check_status(status)
        if selected_tag_refs is None:
            selected_tag_refs = template.tag_ids() if self.config.editor.select_all_tags else []
        else:
            selected_tag_refs = self.catalog.validate_tag_refs(template_id, selected_tag_refs)

        position = self.store.add(
            template.ref(),
            parent_ref,
            name=name,
            serial_number=serial_number,
            status=status,
            selected_tag_refs=selected_tag_refs,
        )
        self._settle()
        return position

    def update_device(self, position: int, **attrs) -> DeviceNode:
        """Edit a staged device; see NodeStore.update for accepted fields."""
        self._ensure_editable()
        node = self.store.get(position)
        if 'status' in attrs:
            self._check_status(attrs['status'])
        if attrs.get('selected_tag_refs') is not None:
            if node.template.id in self.catalog:
                attrs['selected_tag_refs'] = self.catalog.validate_tag_refs(node.template.id, attrs['selected_tag_refs'])
            else:
                log.debug(f"Template {node.template.id} not in catalog; tag selection not checked")
        updated = self.store.update(position, **attrs)
        self._settle()
        return updated

    def toggle_tag(self, position: int, tag_ref: str) -> Tuple[str, ...]:
        """Select or deselect one tag on a staged device and return the new selection."""
        node = self.store.get(position)
        selected = list(node.selected_tag_refs)
        if tag_ref in selected:
            selected.remove(tag_ref)
        else:
            selected.append(tag_ref)
        return self.update_device(position, selected_tag_refs=selected).selected_tag_refs

    def remove_device(self, position: int, confirm: bool = False) -> List[DeviceNode]:
        """
        Remove a device; ``confirm`` must be set to remove one that has children.

        Raises:
            HasChildren: the device has descendants and ``confirm`` is False
        """
        self._ensure_editable()
        removed = self.store.remove(position, cascade=confirm)
        self._settle()
        return removed

    def clear(self):
        self._ensure_editable()
        self.store.clear()
        self._settle()

    # ---------------------------------------------------------------- reads

    @property
    def plant_label(self) -> str:
        if self.plant is not None:
            return self.plant.name
        return self.config.tree.default_plant_name

    def parent_choices(self, editing: Optional[int] = None) -> List[Tuple[ParentRef, str]]:
        """
        Parent options for the device form: the plant root first, then every
        device that would not create a cycle for the device being edited.
        """
        choices: List[Tuple[ParentRef, str]] = [(ROOT, f"{self.plant_label} {self.config.tree.root_suffix}")]
        for position in self.store.available_parents(editing, exclude_descendants=True):
            choices.append((position, self._device_label(self.store.get(position))))
        return choices

    def parent_label(self, position: int) -> str:
        """Human label of a device's parent."""
        parent = self.store.parent_ref(position)
        if parent == ROOT:
            return f"{self.plant_label} {self.config.tree.root_suffix}"
        return self._device_label(self.store.get(parent))

    def preview(self) -> TreeNode:
        """Grid -> Plant -> devices tree for the review step."""
        plant = self.plant
        return build_tree(
            self.store.nodes(),
            self.plant_label,
            plant_code=plant.plant_id if plant else None,
            plant_status=plant.status if plant else None,
            capacity=plant.capacity if plant else None,
            labels=self.config.tree,
        )

    def payload(self) -> Dict[str, Any]:
        """
        Plant create/update body including every staged device.

        Raises:
            IncompletePlantDetails: no plant details have been entered
        """
        if self.plant is None:
            raise IncompletePlantDetails(["Plant details"])
        return build_plant_payload(self.plant, self.store.nodes())

    # ----------------------------------------------------------- submission

    async def submit(self, send: Callable[[Dict[str, Any]], Awaitable[Any]]) -> Any:
        """
        Send the payload through ``send`` and record the outcome.

        Returns whatever ``send`` returns. On failure the state becomes FAILED
        and the exception propagates to the caller, which owns retry.
        """
        self._ensure_editable()
        body = self.payload()
        self.state = EditorState.SUBMITTING
        self.last_error = None
        mode = "update" if self.is_edit_mode else "create"
        log.info(f"Submitting plant {body['plantId']} ({mode}) with {len(body['devices'])} device(s)")
        try:
            result = await send(body)
        except Exception as e:
            self.state = EditorState.FAILED
            self.last_error = e
            log.error(f"Plant submission failed: {e}", exc_info=True)
            raise
        self.state = EditorState.SUBMITTED
        log.info(f"Plant {body['plantId']} submitted")
        return result

    # -------------------------------------------------------------- helpers

    def _ensure_editable(self):
        if self.state == EditorState.SUBMITTING:
            raise EditorBusy("A submission is in progress; wait for it to finish before editing")

    def _settle(self):
        self.state = EditorState.POPULATED if len(self.store) else EditorState.EMPTY

    def _check_status(self, status: Optional[str]):
        if status and status not in self.config.editor.device_statuses:
            raise ValueError(f"Device status must be one of {self.config.editor.device_statuses}")

    @staticmethod
    def _device_label(node: DeviceNode) -> str:
        return f"{node.device_code} - {node.name} ({node.template.name})"

    def __repr__(self) -> str:
        return f"StagingEditor(state={self.state.value}, devices={len(self.store)})"
