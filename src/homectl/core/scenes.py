"""
Scenes.

A scene is a named bundle of target device states activatable as a unit.
Scenes are configured as state overrides per device (or per group) and are
resolved against a devices snapshot before rule evaluation.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from homectl.core.device import DeviceKey, DevicesState
from homectl.core.groups import Groups

logger = logging.getLogger(__name__)


@dataclass
class SceneConfig:
    """
    Configured scene.

    Attributes:
        name: Human-readable name
        devices: State override per device
        groups: State override applied to every member of a group
    """

    name: str
    devices: Dict[DeviceKey, Dict[str, Any]] = field(default_factory=dict)
    groups: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "name": self.name,
            "devices": {str(k): dict(v) for k, v in self.devices.items()},
            "groups": {k: dict(v) for k, v in self.groups.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SceneConfig":
        """Deserialize from dict."""
        return cls(
            name=data["name"],
            devices={DeviceKey.parse(k): v for k, v in data.get("devices", {}).items()},
            groups=dict(data.get("groups", {})),
        )


@dataclass
class FlattenedScene:
    """A scene resolved to one state value per device."""

    name: str
    devices: Dict[DeviceKey, Any]


FlattenedScenesConfig = Dict[str, FlattenedScene]


class Scenes:
    """
    Holds scene configuration and resolves it against device snapshots.

    Group entries need a Groups instance to expand; without one they are
    ignored.
    """

    def __init__(
        self,
        config: Optional[Dict[str, SceneConfig]] = None,
        groups: Optional[Groups] = None,
    ) -> None:
        self._config: Dict[str, SceneConfig] = dict(config or {})
        self._groups = groups

    def set_scene(self, scene_id: str, scene: SceneConfig) -> None:
        """Add or replace a scene."""
        self._config[scene_id] = scene

    def get_scene(self, scene_id: str) -> Optional[SceneConfig]:
        """Get a scene's configuration."""
        return self._config.get(scene_id)

    def remove_scene(self, scene_id: str) -> None:
        """Remove a scene."""
        self._config.pop(scene_id, None)

    def get_flattened_scenes(self, devices: DevicesState) -> FlattenedScenesConfig:
        """
        Resolve every scene to per-device state values.

        Each override is merged onto the device's current state (override
        wins). Explicit device entries win over group-derived ones. Overrides
        for devices missing from the snapshot are passed through unmerged.

        Args:
            devices: Current devices snapshot

        Returns:
            Mapping of scene ID to FlattenedScene
        """
        flattened_groups = self._groups.get_flattened_groups(devices) if self._groups else {}
        flattened: FlattenedScenesConfig = {}

        for scene_id in sorted(self._config):
            scene = self._config[scene_id]
            overrides: Dict[DeviceKey, Dict[str, Any]] = {}

            for group_id, override in scene.groups.items():
                group = flattened_groups.get(group_id)
                if group is None:
                    logger.debug(f"Scene {scene_id} references unknown group {group_id}")
                    continue
                for key in group.device_keys:
                    overrides[key] = override

            overrides.update(scene.devices)

            resolved: Dict[DeviceKey, Any] = {}
            for key, override in overrides.items():
                device = devices.get(key)
                if device is None:
                    resolved[key] = copy.deepcopy(override)
                else:
                    resolved[key] = _merge_state(device.value["state"], override)

            flattened[scene_id] = FlattenedScene(name=scene.name, devices=resolved)

        return flattened


def _merge_state(current: Any, override: Any) -> Any:
    """Deep-merge override onto current, returning a new value."""
    if not isinstance(current, dict) or not isinstance(override, dict):
        return copy.deepcopy(override)

    merged = copy.deepcopy(current)
    for key, value in override.items():
        merged[key] = _merge_state(merged.get(key), value)
    return merged
