"""
Unit tests for the device template catalog
"""

import pytest
from pydantic import ValidationError

from plantstage.catalog import (
    DeviceTemplate, InvalidTagSelection, TemplateCatalog, TemplateTag, UnknownTemplate,
)
from plantstage.hierarchy import StagingError, TemplateRef


class TestTemplateModels:
    """Test template and tag parsing"""

    def test_tag_aliases(self):
        tag = TemplateTag.model_validate(
            {"id": 5, "name": "ac_power", "displayName": "AC Power", "dataType": "FLOAT", "unit": "kW"}
        )
        assert tag.id == "5"
        assert tag.display_name == "AC Power"
        assert tag.data_type == "FLOAT"
        assert tag.label == "AC Power (kW) FLOAT"

    def test_tag_label_fallbacks(self):
        assert TemplateTag(id="t1", name="raw").label == "raw"
        assert TemplateTag(id="t1").label == "t1"

    def test_template_ref(self):
        template = DeviceTemplate(id="tpl-inv", name="Inverter", shortform="INV", tags=[TemplateTag(id="a")])
        ref = template.ref()
        assert type(ref) is TemplateRef
        assert ref == TemplateRef(id="tpl-inv", name="Inverter", shortform="INV")
        assert template.tag_ids() == ["a"]

    def test_template_requires_name(self):
        with pytest.raises(ValidationError):
            DeviceTemplate(id="tpl-x")


class TestTemplateCatalog:
    """Test catalog lookups and tag checks"""

    def test_from_records(self, catalog):
        assert len(catalog) == 4
        assert "tpl-inv" in catalog
        assert catalog.get("tpl-inv").shortform == "INV"

    def test_unknown_template(self, catalog):
        with pytest.raises(UnknownTemplate) as excinfo:
            catalog.get("tpl-missing")
        assert isinstance(excinfo.value, StagingError)
        assert isinstance(excinfo.value, KeyError)
        assert "tpl-missing" in str(excinfo.value)

    def test_active(self, catalog):
        assert [t.id for t in catalog.active()] == ["tpl-trf", "tpl-inv", "tpl-str"]

    def test_default_tags(self, catalog):
        assert catalog.default_tag_refs("tpl-trf") == ["trf-oil-temp", "trf-load"]
        assert catalog.default_tag_refs("tpl-str") == []

    def test_validate_tags(self, catalog):
        assert catalog.validate_tag_refs("tpl-trf", ("trf-load",)) == ["trf-load"]
        assert catalog.validate_tag_refs("tpl-trf", None) == []
        with pytest.raises(InvalidTagSelection) as excinfo:
            catalog.validate_tag_refs("tpl-str", ["trf-load"])
        assert excinfo.value.tag_refs == ["trf-load"]

    def test_add_replaces(self):
        catalog = TemplateCatalog([DeviceTemplate(id="a", name="Old")])
        catalog.add(DeviceTemplate(id="a", name="New"))
        assert len(catalog) == 1
        assert catalog.get("a").name == "New"
