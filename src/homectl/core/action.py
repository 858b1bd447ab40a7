"""
Domain actions produced by rule evaluation.

Actions are external instructions handed off for execution elsewhere: scene
activations and cycles, dimming, custom integration calls, routine triggers
and device writes. The expression core emits only scene activations, custom
calls, routine triggers and device writes; other producers such as remotes
emit the rest.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from homectl.core.device import Device, DeviceKey


class ActionType(Enum):
    """Kinds of actions the core can emit."""

    ACTIVATE_SCENE = "activate_scene"
    CYCLE_SCENES = "cycle_scenes"
    CUSTOM = "custom"
    DIM = "dim"
    FORCE_TRIGGER_ROUTINE = "force_trigger_routine"
    SET_DEVICE_STATE = "set_device_state"


@dataclass(frozen=True)
class ActivateSceneAction:
    """Activate a scene, optionally scoped to devices and/or groups."""

    scene_id: str
    device_keys: Optional[Tuple[DeviceKey, ...]] = None
    group_keys: Optional[FrozenSet[str]] = None

    @property
    def action_type(self) -> ActionType:
        return ActionType.ACTIVATE_SCENE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action_type.value,
            "scene_id": self.scene_id,
            "device_keys": (
                [str(k) for k in self.device_keys] if self.device_keys is not None else None
            ),
            "group_keys": sorted(self.group_keys) if self.group_keys is not None else None,
        }


@dataclass(frozen=True)
class CycleScenesAction:
    """
    Step through a list of scene activations.

    Each press of a remote or switch activates the next scene in the list.
    With nowrap set, cycling stops at the last scene instead of starting over.
    """

    scenes: Tuple[ActivateSceneAction, ...]
    nowrap: Optional[bool] = None

    @property
    def action_type(self) -> ActionType:
        return ActionType.CYCLE_SCENES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action_type.value,
            "scenes": [scene.to_dict() for scene in self.scenes],
            "nowrap": self.nowrap,
        }


@dataclass(frozen=True)
class CustomAction:
    """Run an integration-specific action with an opaque payload."""

    integration_id: str
    payload: str

    @property
    def action_type(self) -> ActionType:
        return ActionType.CUSTOM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action_type.value,
            "integration_id": self.integration_id,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class DimAction:
    """Change brightness by a relative step, optionally scoped to devices and/or groups."""

    device_keys: Optional[Tuple[DeviceKey, ...]] = None
    group_keys: Optional[FrozenSet[str]] = None
    step: Optional[float] = None

    @property
    def action_type(self) -> ActionType:
        return ActionType.DIM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action_type.value,
            "device_keys": (
                [str(k) for k in self.device_keys] if self.device_keys is not None else None
            ),
            "group_keys": sorted(self.group_keys) if self.group_keys is not None else None,
            "step": self.step,
        }


@dataclass(frozen=True)
class ForceTriggerRoutineAction:
    """Trigger a routine, ignoring its own rules."""

    routine_id: str

    @property
    def action_type(self) -> ActionType:
        return ActionType.FORCE_TRIGGER_ROUTINE

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action_type.value, "routine_id": self.routine_id}


@dataclass(frozen=True)
class SetDeviceStateAction:
    """Write a validated state to a device."""

    device: Device

    @property
    def action_type(self) -> ActionType:
        return ActionType.SET_DEVICE_STATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action_type.value,
            "device": self.device.model_dump(mode="json"),
        }


Action = (
    ActivateSceneAction
    | CycleScenesAction
    | CustomAction
    | DimAction
    | ForceTriggerRoutineAction
    | SetDeviceStateAction
)


def _parse_device_keys(data: Dict[str, Any]) -> Optional[Tuple[DeviceKey, ...]]:
    device_keys = data.get("device_keys")
    return tuple(DeviceKey.parse(k) for k in device_keys) if device_keys is not None else None


def _parse_group_keys(data: Dict[str, Any]) -> Optional[FrozenSet[str]]:
    group_keys = data.get("group_keys")
    return frozenset(group_keys) if group_keys is not None else None


def _parse_activate_scene(data: Dict[str, Any]) -> ActivateSceneAction:
    return ActivateSceneAction(
        scene_id=data["scene_id"],
        device_keys=_parse_device_keys(data),
        group_keys=_parse_group_keys(data),
    )


def parse_action(data: Dict[str, Any]) -> Action:
    """Deserialize an action from its dict form."""
    action_type = ActionType(data["action"])

    if action_type == ActionType.ACTIVATE_SCENE:
        return _parse_activate_scene(data)
    elif action_type == ActionType.CYCLE_SCENES:
        return CycleScenesAction(
            scenes=tuple(_parse_activate_scene(scene) for scene in data["scenes"]),
            nowrap=data.get("nowrap"),
        )
    elif action_type == ActionType.CUSTOM:
        return CustomAction(integration_id=data["integration_id"], payload=data["payload"])
    elif action_type == ActionType.DIM:
        return DimAction(
            device_keys=_parse_device_keys(data),
            group_keys=_parse_group_keys(data),
            step=data.get("step"),
        )
    elif action_type == ActionType.FORCE_TRIGGER_ROUTINE:
        return ForceTriggerRoutineAction(routine_id=data["routine_id"])
    else:
        return SetDeviceStateAction(device=Device.model_validate(data["device"]))
