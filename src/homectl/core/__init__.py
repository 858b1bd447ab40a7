"""
Core components of the homectl kernel.

This package contains:
- bus: Event Bus implementation
- device: Device snapshots and state shapes
- action: Actions produced by rule evaluation
- scenes / groups: Scene and group collaborators
- paths: Dotted-path helpers
"""

from homectl.core.bus import Event, EventBus, EventFilter
from homectl.core.device import Device, DeviceKey, DevicesState, devices_by_key
from homectl.core.action import (
    Action,
    ActionType,
    ActivateSceneAction,
    CustomAction,
    CycleScenesAction,
    DimAction,
    ForceTriggerRoutineAction,
    SetDeviceStateAction,
)
from homectl.core.groups import Groups, GroupConfig
from homectl.core.scenes import Scenes, SceneConfig

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "Device",
    "DeviceKey",
    "DevicesState",
    "devices_by_key",
    "Action",
    "ActionType",
    "ActivateSceneAction",
    "CustomAction",
    "CycleScenesAction",
    "DimAction",
    "ForceTriggerRoutineAction",
    "SetDeviceStateAction",
    "Groups",
    "GroupConfig",
    "Scenes",
    "SceneConfig",
]
