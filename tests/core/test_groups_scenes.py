"""Tests for the groups and scenes collaborators."""

from homectl.core.device import DeviceKey, LightState
from homectl.core.groups import (
    FlattenedGroup,
    GroupConfig,
    Groups,
    flattened_groups_to_eval_context_values,
)
from homectl.core.scenes import SceneConfig, Scenes


class TestGroups:
    """Tests for Groups."""

    def test_nested_groups_flattened(self, groups, devices, lamp1, living_room_lamp):
        flattened = groups.get_flattened_groups(devices)

        assert flattened["kitchen"] == FlattenedGroup(name="Kitchen", device_keys=(lamp1.key,))
        assert flattened["downstairs"].device_keys == (living_room_lamp.key, lamp1.key)

    def test_missing_devices_left_out(self, devices, lamp1):
        ghost = DeviceKey(integration_id="hue", device_id="404")
        groups = Groups({"g": GroupConfig(name="G", device_keys=[ghost, lamp1.key])})

        assert groups.get_flattened_groups(devices)["g"].device_keys == (lamp1.key,)

    def test_cycles_cut(self, devices, lamp1, living_room_lamp):
        groups = Groups(
            {
                "a": GroupConfig(name="A", device_keys=[lamp1.key], group_keys=["b"]),
                "b": GroupConfig(name="B", device_keys=[living_room_lamp.key], group_keys=["a"]),
            }
        )

        flattened = groups.get_flattened_groups(devices)

        assert flattened["a"].device_keys == (lamp1.key, living_room_lamp.key)
        assert flattened["b"].device_keys == (living_room_lamp.key, lamp1.key)

    def test_unknown_nested_group(self, devices):
        groups = Groups({"a": GroupConfig(name="A", group_keys=["missing"])})
        assert groups.get_flattened_groups(devices)["a"].device_keys == ()

    def test_set_get_remove(self):
        groups = Groups()
        config = GroupConfig(name="A")

        groups.set_group("a", config)
        assert groups.get_group("a") is config

        groups.remove_group("a")
        assert groups.get_group("a") is None

    def test_config_round_trip(self, lamp1):
        config = GroupConfig(name="A", device_keys=[lamp1.key], group_keys=["b"])

        data = config.to_dict()

        assert data["device_keys"] == ["hue/1"]
        assert GroupConfig.from_dict(data) == config

    def test_eval_context_values(self, groups, devices):
        values = dict(
            flattened_groups_to_eval_context_values(groups.get_flattened_groups(devices), devices)
        )

        assert values["groups.kitchen.name"] == "Kitchen"
        assert values["groups.kitchen.device_count"] == 1
        assert values["groups.kitchen.state.brightness"] == 0.5
        # Members disagree on brightness; both have no color
        assert "groups.downstairs.state.brightness" not in values
        assert values["groups.downstairs.state.color"] is None

    def test_empty_group_has_no_state(self, devices):
        groups = Groups({"empty": GroupConfig(name="Empty")})
        values = dict(
            flattened_groups_to_eval_context_values(groups.get_flattened_groups(devices), devices)
        )

        assert values == {"groups.empty.name": "Empty", "groups.empty.device_count": 0}


class TestScenes:
    """Tests for Scenes."""

    def test_override_merged_onto_state(self, scenes, devices, lamp1):
        flattened = scenes.get_flattened_scenes(devices)

        assert flattened["evening"].name == "Evening"
        assert flattened["evening"].devices[lamp1.key] == {
            "on": True,
            "brightness": 0.3,
            "color": None,
            "transition_ms": None,
        }

    def test_group_entries_expanded(self, groups, devices, lamp1, living_room_lamp):
        scenes = Scenes(
            {"off": SceneConfig(name="Off", groups={"downstairs": {"on": False}})},
            groups=groups,
        )

        resolved = scenes.get_flattened_scenes(devices)["off"].devices

        assert set(resolved) == {lamp1.key, living_room_lamp.key}
        assert resolved[living_room_lamp.key]["on"] is False
        assert resolved[living_room_lamp.key]["brightness"] == 1.0

    def test_device_entry_wins_over_group(self, groups, devices, lamp1):
        scenes = Scenes(
            {
                "mix": SceneConfig(
                    name="Mix",
                    devices={lamp1.key: {"on": True}},
                    groups={"kitchen": {"on": False}},
                )
            },
            groups=groups,
        )

        assert scenes.get_flattened_scenes(devices)["mix"].devices[lamp1.key]["on"] is True

    def test_groups_ignored_without_collaborator(self, devices):
        scenes = Scenes({"s": SceneConfig(name="S", groups={"kitchen": {"on": True}})})
        assert scenes.get_flattened_scenes(devices)["s"].devices == {}

    def test_nested_merge(self, devices):
        key = DeviceKey(integration_id="hue", device_id="1")
        colored = {key: devices[key].apply({"on": True, "color": {"hue": 10, "saturation": 1}})}
        scenes = Scenes({"s": SceneConfig(name="S", devices={key: {"color": {"hue": 200}}})})

        resolved = scenes.get_flattened_scenes(colored)["s"].devices[key]

        assert resolved["color"] == {"hue": 200, "saturation": 1.0}
        assert LightState.model_validate(resolved).on is True

    def test_missing_device_passed_through(self, devices):
        ghost = DeviceKey(integration_id="hue", device_id="404")
        override = {"on": True}
        scenes = Scenes({"s": SceneConfig(name="S", devices={ghost: override})})

        resolved = scenes.get_flattened_scenes(devices)["s"].devices[ghost]

        assert resolved == override
        assert resolved is not override

    def test_set_get_remove(self):
        scenes = Scenes()
        config = SceneConfig(name="S")

        scenes.set_scene("s", config)
        assert scenes.get_scene("s") is config

        scenes.remove_scene("s")
        assert scenes.get_scene("s") is None

    def test_config_round_trip(self, lamp1):
        config = SceneConfig(name="S", devices={lamp1.key: {"on": True}}, groups={"g": {"on": False}})

        data = config.to_dict()

        assert data["devices"] == {"hue/1": {"on": True}}
        assert SceneConfig.from_dict(data) == config
