"""Shared fixtures for the staging tests."""
import pytest

from plantstage.catalog import TemplateCatalog
from plantstage.hierarchy import ROOT, NodeStore, TemplateRef

TRANSFORMER = TemplateRef(id="tpl-trf", name="Transformer", shortform="TRF")
INVERTER = TemplateRef(id="tpl-inv", name="Inverter", shortform="INV")
STRING = TemplateRef(id="tpl-str", name="String", shortform="STR")

TEMPLATE_RECORDS = [
    {
        "id": "tpl-trf",
        "name": "Transformer",
        "shortform": "TRF",
        "tags": [
            {"id": "trf-oil-temp", "name": "oil_temp", "displayName": "Oil Temperature", "dataType": "FLOAT", "unit": "C"},
            {"id": "trf-load", "name": "load", "displayName": "Load", "dataType": "FLOAT", "unit": "kVA"},
        ],
    },
    {
        "id": "tpl-inv",
        "name": "Inverter",
        "shortform": "INV",
        "tags": [
            {"id": "inv-ac-power", "name": "ac_power", "displayName": "AC Power", "dataType": "FLOAT", "unit": "kW"},
            {"id": "inv-dc-voltage", "name": "dc_voltage", "displayName": "DC Voltage", "dataType": "FLOAT", "unit": "V"},
            {"id": "inv-status", "name": "status_word", "dataType": "INT"},
        ],
    },
    {"id": "tpl-str", "name": "String", "shortform": "STR", "tags": []},
    {"id": "tpl-old", "name": "Legacy Meter", "shortform": "MTR", "isActive": False},
]


@pytest.fixture
def catalog():
    """Template catalog with a transformer, an inverter, a string and an inactive meter."""
    return TemplateCatalog.from_records(TEMPLATE_RECORDS)


@pytest.fixture
def scenario_store():
    """[A(ROOT), B(ROOT), C(parent=A), D(parent=C)]"""
    store = NodeStore()
    store.add(TRANSFORMER, ROOT, name="A")
    store.add(TRANSFORMER, ROOT, name="B")
    store.add(INVERTER, 0, name="C")
    store.add(STRING, 2, name="D")
    return store
