"""Tests for dotted-path helpers."""

import pytest

from homectl.core.paths import (
    assign_path,
    flatten_value,
    normalize_name,
    query_paths,
    split_path,
)
from homectl.exceptions import DiffEncodingError


def test_normalize_name():
    assert normalize_name("Living Room Lamp") == "living_room_lamp"
    assert normalize_name("lamp1") == "lamp1"


def test_flatten_value():
    value = {"on": True, "color": {"hue": 10}, "xy": [0.1, 0.2], "empty": {}}

    assert flatten_value(value, "p") == [
        ("p.on", True),
        ("p.color.hue", 10),
        ("p.xy.0", 0.1),
        ("p.xy.1", 0.2),
    ]


def test_flatten_scalar():
    assert flatten_value(None, "p") == [("p", None)]


@pytest.mark.parametrize("path", ["", "a..b", ".a", "a."])
def test_split_path_rejects_empty_segments(path):
    with pytest.raises(DiffEncodingError):
        split_path(path)


class TestAssignPath:
    """Tests for assign_path()."""

    def test_creates_intermediate_nodes(self):
        tree = {}
        assign_path(tree, "a.b.c", 1)
        assign_path(tree, "a.b.d", 2)

        assert tree == {"a": {"b": {"c": 1, "d": 2}}}

    def test_overwrite_leaf(self):
        tree = {"a": 1}
        assign_path(tree, "a", 2)
        assert tree == {"a": 2}

    def test_descend_through_leaf(self):
        tree = {}
        assign_path(tree, "a", 1)

        with pytest.raises(DiffEncodingError):
            assign_path(tree, "a.b", 2)

    def test_overwrite_subtree(self):
        tree = {}
        assign_path(tree, "a.b", 1)

        with pytest.raises(DiffEncodingError):
            assign_path(tree, "a", 2)


class TestQueryPaths:
    """Tests for query_paths()."""

    @pytest.fixture
    def tree(self):
        return {
            "devices": {
                "zigbee": {"plug": {"state": {"on": True}}},
                "hue": {
                    "lamp": {"scene": "evening", "state": {"on": False}},
                    "strip": {"state": {"on": True}},
                },
            },
            "other": {"x": {"y": {"state": 1}}},
        }

    def test_wildcards_sorted(self, tree):
        matches = query_paths(tree, "devices.*.*.state")

        assert [path for path, _ in matches] == [
            ["devices", "hue", "lamp", "state"],
            ["devices", "hue", "strip", "state"],
            ["devices", "zigbee", "plug", "state"],
        ]
        assert matches[0][1] == {"on": False}

    def test_missing_keys_skipped(self, tree):
        assert query_paths(tree, "devices.*.*.scene") == [
            (["devices", "hue", "lamp", "scene"], "evening")
        ]

    def test_literal_segments(self, tree):
        assert query_paths(tree, "devices.hue.strip.state.on") == [
            (["devices", "hue", "strip", "state", "on"], True)
        ]

    def test_no_match_through_leaf(self, tree):
        assert query_paths(tree, "devices.hue.lamp.scene.x") == []
