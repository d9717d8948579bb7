"""
Device template catalog.

Templates come from the external template API; the catalog only keeps the
entries the staging editor needs (name, shortform and available tags) and
answers lookups and tag-selection checks.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from plantstage.hierarchy.errors import StagingError
from plantstage.hierarchy.nodes import TemplateRef

log = logging.getLogger(__name__)


class UnknownTemplate(StagingError, KeyError):
    """Raised when a template id is not in the catalog."""

    def __init__(self, template_id):
        self.template_id = template_id
        super().__init__(f"Unknown device template: {template_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTagSelection(StagingError):
    """Raised when selected tags are not offered by the device's template."""

    def __init__(self, template_id: str, tag_refs: List[str]):
        self.template_id = template_id
        self.tag_refs = tag_refs
        super().__init__(f"Template {template_id} has no tag(s): {', '.join(tag_refs)}")


class TemplateTag(BaseModel):
    """A measurement tag offered by a device template."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', coerce_numbers_to_str=True)

    id: str
    name: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    data_type: Optional[str] = Field(default=None, alias="dataType")
    unit: Optional[str] = None

    @property
    def label(self) -> str:
        """Display label as shown in tag pickers, e.g. ``Active Power (kW) FLOAT``."""
        label = self.display_name or self.name or self.id
        if self.unit:
            label = f"{label} ({self.unit})"
        if self.data_type:
            label = f"{label} {self.data_type}"
        return label


class DeviceTemplate(TemplateRef):
    """Catalog entry: a template reference plus its available tags."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore', coerce_numbers_to_str=True)

    tags: List[TemplateTag] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")

    def ref(self) -> TemplateRef:
        """Plain reference without tags, as stored on staged devices."""
        return TemplateRef(id=self.id, name=self.name, shortform=self.shortform)

    def tag_ids(self) -> List[str]:
        return [tag.id for tag in self.tags]


class TemplateCatalog:
    """In-memory collection of device templates keyed by id."""

    def __init__(self, templates: Optional[Iterable[DeviceTemplate]] = None):
        self._templates: Dict[str, DeviceTemplate] = {}
        for template in templates or []:
            self.add(template)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "TemplateCatalog":
        """Build a catalog from raw template API records."""
        catalog = cls(DeviceTemplate.model_validate(record) for record in records)
        log.info(f"Loaded {len(catalog)} device template(s)")
        return catalog

    def add(self, template: DeviceTemplate):
        if template.id in self._templates:
            log.debug(f"Replacing template {template.id}")
        self._templates[template.id] = template

    def get(self, template_id: str) -> DeviceTemplate:
        try:
            return self._templates[template_id]
        except KeyError:
            raise UnknownTemplate(template_id)

    def __contains__(self, template_id) -> bool:
        return template_id in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self):
        return iter(self._templates.values())

    def active(self) -> List[DeviceTemplate]:
        """Templates that may be offered for new devices."""
        return [template for template in self._templates.values() if template.is_active]

    def default_tag_refs(self, template_id: str) -> List[str]:
        """Tags pre-selected for a newly added device: all of them."""
        return self.get(template_id).tag_ids()

    def validate_tag_refs(self, template_id: str, tag_refs: Iterable[str]) -> List[str]:
        """
        Check that every tag is offered by the template.

        Returns:
            The tag ids as a list

        Raises:
            UnknownTemplate: template is not in the catalog
            InvalidTagSelection: a tag is not offered by the template
        """
        template = self.get(template_id)
        tag_refs = list(tag_refs or [])
        available = set(template.tag_ids())
        unknown = [tag_ref for tag_ref in tag_refs if tag_ref not in available]
        if unknown:
            raise InvalidTagSelection(template_id, unknown)
        return tag_refs
