"""
Device groups.

A group is a named collection of devices (and nested groups) usable as an
activation scope. Groups are resolved against a devices snapshot into flat
member lists, and expose aggregate values to rule evaluation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from homectl.core.device import DeviceKey, DevicesState
from homectl.core.paths import flatten_value

logger = logging.getLogger(__name__)


@dataclass
class GroupConfig:
    """Configured group membership."""

    name: str
    device_keys: List[DeviceKey] = field(default_factory=list)
    group_keys: List[str] = field(default_factory=list)  # Nested groups

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "name": self.name,
            "device_keys": [str(k) for k in self.device_keys],
            "group_keys": list(self.group_keys),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupConfig":
        """Deserialize from dict."""
        return cls(
            name=data["name"],
            device_keys=[DeviceKey.parse(k) for k in data.get("device_keys", [])],
            group_keys=list(data.get("group_keys", [])),
        )


@dataclass(frozen=True)
class FlattenedGroup:
    """A group resolved to the devices currently present."""

    name: str
    device_keys: Tuple[DeviceKey, ...]


FlattenedGroupsConfig = Dict[str, FlattenedGroup]


class Groups:
    """
    Holds group configuration and resolves it against device snapshots.
    """

    def __init__(self, config: Optional[Dict[str, GroupConfig]] = None) -> None:
        self._config: Dict[str, GroupConfig] = dict(config or {})

    def set_group(self, group_id: str, group: GroupConfig) -> None:
        """Add or replace a group."""
        self._config[group_id] = group

    def get_group(self, group_id: str) -> Optional[GroupConfig]:
        """Get a group's configuration."""
        return self._config.get(group_id)

    def remove_group(self, group_id: str) -> None:
        """Remove a group."""
        self._config.pop(group_id, None)

    def get_flattened_groups(self, devices: DevicesState) -> FlattenedGroupsConfig:
        """
        Resolve every group to its member devices.

        Nested groups are expanded recursively; cycles are cut at the first
        repeated group. Members missing from devices are left out.

        Args:
            devices: Current devices snapshot

        Returns:
            Mapping of group ID to FlattenedGroup
        """
        flattened: FlattenedGroupsConfig = {}
        for group_id in sorted(self._config):
            keys = [k for k in self._expand(group_id, set()) if k in devices]
            flattened[group_id] = FlattenedGroup(
                name=self._config[group_id].name,
                device_keys=tuple(keys),
            )
        return flattened

    def _expand(self, group_id: str, visiting: Set[str]) -> List[DeviceKey]:
        group = self._config.get(group_id)
        if group is None:
            logger.debug(f"Unknown group referenced: {group_id}")
            return []
        if group_id in visiting:
            logger.debug(f"Group cycle detected at {group_id}")
            return []

        visiting = visiting | {group_id}
        keys: List[DeviceKey] = []
        for key in group.device_keys:
            if key not in keys:
                keys.append(key)
        for nested_id in group.group_keys:
            for key in self._expand(nested_id, visiting):
                if key not in keys:
                    keys.append(key)
        return keys


def flattened_groups_to_eval_context_values(
    groups: FlattenedGroupsConfig,
    devices: DevicesState,
) -> List[Tuple[str, Any]]:
    """
    Derive namespace values for resolved groups.

    For each group this yields groups.<id>.name, groups.<id>.device_count and,
    for every state leaf all members share with an equal value,
    groups.<id>.state.<leaf>.

    Args:
        groups: Resolved groups
        devices: Current devices snapshot

    Returns:
        List of (dotted path, value) pairs
    """
    values: List[Tuple[str, Any]] = []

    for group_id in sorted(groups):
        group = groups[group_id]
        prefix = f"groups.{group_id}"
        values.append((f"{prefix}.name", group.name))
        values.append((f"{prefix}.device_count", len(group.device_keys)))

        members = [devices[k] for k in group.device_keys if k in devices]
        if not members:
            continue

        leaf_maps = [dict(flatten_value(m.value["state"], f"{prefix}.state")) for m in members]
        for path, value in leaf_maps[0].items():
            if all(_same_value(other.get(path, _MISSING), value) for other in leaf_maps[1:]):
                values.append((path, value))

    return values


_MISSING = object()


def _same_value(a: Any, b: Any) -> bool:
    # True == 1 in Python; a shared value must also share its kind
    return type(a) is type(b) and a == b
