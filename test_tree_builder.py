"""
Unit tests for the preview tree builder
Tests the Grid -> Plant -> devices structure built from staged devices
"""

from dataclasses import FrozenInstanceError

import pytest

from plantstage.config import TreeLabels
from plantstage.hierarchy import ROOT, DeviceNode, build_tree
from plantstage.hierarchy.tree import KIND_DEVICE, KIND_GRID, KIND_PLANT
from conftest import INVERTER


class TestEmptyTree:
    """Test the synthetic top of the tree"""

    def test_only_grid_and_plant(self):
        tree = build_tree([], "Solar One")

        assert tree.kind == KIND_GRID
        assert tree.name == "Grid"
        assert tree.code == "GRID"
        assert tree.type_label == "Power Grid"
        assert tree.device_count == 1

        plant = tree.children[0]
        assert plant.kind == KIND_PLANT
        assert plant.name == "Solar One"
        assert plant.type_label == "Solar Plant"
        assert plant.children == ()
        assert plant.device_count == 0
        assert tree.total_devices == 0

    def test_default_plant_label(self):
        plant = build_tree([]).children[0]
        assert plant.name == "Plant"
        assert plant.code == "PLANT"

    def test_custom_labels(self):
        labels = TreeLabels(grid_name="Utility", grid_code="UTIL", plant_type="PV Plant")
        tree = build_tree([], "Solar One", plant_code="SOL1", plant_status="ACTIVE", capacity=500.0, labels=labels)

        assert tree.name == "Utility"
        assert tree.code == "UTIL"
        plant = tree.children[0]
        assert plant.code == "SOL1"
        assert plant.type_label == "PV Plant"
        assert plant.status == "ACTIVE"
        assert plant.capacity == 500.0


class TestDeviceTree:
    """Test device expansion below the plant"""

    def test_scenario(self, scenario_store):
        tree = build_tree(scenario_store.nodes(), "Solar One")
        plant = tree.children[0]

        assert [c.name for c in plant.children] == ["A", "B"]
        a, b = plant.children
        assert a.device_count == 1
        assert b.device_count == 0
        assert a.children[0].name == "C"
        assert a.children[0].children[0].name == "D"
        assert a.children[0].children[0].children == ()
        assert tree.total_devices == 4

    def test_device_fields(self, scenario_store):
        tree = build_tree(scenario_store.nodes(), "Solar One")
        c = tree.find(2)

        assert c.kind == KIND_DEVICE
        assert c.name == "C"
        assert c.code == "INV_1"
        assert c.type_label == "Inverter"
        assert c.status == "ONLINE"
        assert c.position == 2
        assert tree.find(99) is None

    def test_preview_tracks_store(self, scenario_store):
        scenario_store.remove(1)
        tree = build_tree(scenario_store.nodes(), "Solar One")
        plant = tree.children[0]

        assert [c.name for c in plant.children] == ["A"]
        assert tree.find(2).name == "D"

    def test_children_in_collection_order(self):
        nodes = [
            DeviceNode(position=0, template=INVERTER, name="late child", parent_ref=2),
            DeviceNode(position=1, template=INVERTER, name="early child", parent_ref=2),
            DeviceNode(position=2, template=INVERTER, name="parent", parent_ref=ROOT),
        ]
        parent = build_tree(nodes, "P").children[0].children[0]
        assert [c.name for c in parent.children] == ["late child", "early child"]

    def test_walk_levels(self, scenario_store):
        tree = build_tree(scenario_store.nodes(), "Solar One")
        assert [(node.name, level) for node, level in tree.walk()] == [
            ("Grid", 0), ("Solar One", 1), ("A", 2), ("C", 3), ("D", 4), ("B", 2),
        ]

    def test_to_dict(self, scenario_store):
        data = build_tree(scenario_store.nodes(), "Solar One", plant_code="SOL1").to_dict()

        assert data["deviceId"] == "GRID"
        plant = data["children"][0]
        assert plant["deviceId"] == "SOL1"
        assert plant["deviceCount"] == 2
        a = plant["children"][0]
        assert a["name"] == "A"
        assert a["type"] == "Transformer"
        assert a["status"] == "ONLINE"
        assert a["position"] == 0
        assert a["children"][0]["children"][0]["name"] == "D"


class TestDerivedView:
    """Test that the tree is a read-only derived view"""

    def test_frozen(self, scenario_store):
        tree = build_tree(scenario_store.nodes(), "Solar One")
        with pytest.raises(FrozenInstanceError):
            tree.name = "changed"
        assert isinstance(tree.children, tuple)

    def test_unreachable_devices_left_out(self):
        nodes = [
            DeviceNode(position=0, template=INVERTER, name="ok", parent_ref=ROOT),
            DeviceNode(position=1, template=INVERTER, name="loop a", parent_ref=2),
            DeviceNode(position=2, template=INVERTER, name="loop b", parent_ref=1),
        ]
        tree = build_tree(nodes, "P")
        assert tree.total_devices == 1

    def test_deep_chain(self):
        """Assembly is iterative, so very deep chains do not recurse"""
        depth = 3000
        nodes = [
            DeviceNode(position=i, template=INVERTER, name=f"n{i}", parent_ref=ROOT if i == 0 else i - 1)
            for i in range(depth)
        ]
        tree = build_tree(nodes, "P")
        assert tree.total_devices == depth
        deepest = max(level for _, level in tree.walk())
        assert deepest == depth + 1
