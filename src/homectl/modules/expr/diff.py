"""
Diff engine - turns namespace assignments into actions.

Rules may assign into device variables instead of calling built-ins:

    devices.hue.lamp.scene = "evening"      -> ActivateSceneAction
    devices.hue.lamp.state.on = True        -> SetDeviceStateAction

The changed variables are encoded into a nested tree and matched against
"devices.*.*.scene" and "devices.*.*.state".
"""

import logging
from typing import Any, Dict, List, Optional

from homectl.core.action import Action, ActivateSceneAction, SetDeviceStateAction
from homectl.core.device import Device, DevicesState
from homectl.core.paths import assign_path, normalize_name, query_paths
from homectl.exceptions import DeviceStateError

from .context import EvaluationContext, Value, from_namespace_value, values_equal

logger = logging.getLogger(__name__)

SCENE_PATTERN = "devices.*.*.scene"
STATE_PATTERN = "devices.*.*.state"

VariableDiff = Dict[str, Value]


def diff_contexts(original: EvaluationContext, final: EvaluationContext) -> VariableDiff:
    """
    Collect variables whose value changed.

    Returns:
        Mapping of path to new value for every variable in final that is new
        or differs (by value) from original
    """
    return {
        name: value
        for name, value in final.iter_variables()
        if not original.has_value(name) or not values_equal(original.get_value(name), value)
    }


def diff_to_tree(diff: VariableDiff) -> Dict[str, Any]:
    """
    Encode a diff as one nested tree.

    Raises:
        DiffEncodingError: If a path is malformed or conflicts with another
        ConversionError: If a value cannot leave the namespace
    """
    tree: Dict[str, Any] = {}
    for path in sorted(diff):
        assign_path(tree, path, from_namespace_value(diff[path]))
    return tree


def find_device_by_path(devices: DevicesState, path: List[str]) -> Optional[Device]:
    """
    Resolve a matched path (devices.<integration_id>.<name>...) to a device.

    When several devices share a normalized name, the one that owns the
    namespace path (last by device key) is returned.
    """
    if len(path) < 3:
        return None

    integration_id, name = path[1], path[2]
    for key in sorted(devices, key=str, reverse=True):
        device = devices[key]
        if device.integration_id == integration_id and normalize_name(device.name) == name:
            return device
    return None


def diff_and_translate(
    original: EvaluationContext,
    final: EvaluationContext,
    devices: DevicesState,
) -> List[Action]:
    """
    Derive actions from what an evaluation changed.

    Scene actions come first, then state actions. Paths that don't resolve to
    a device, and states that don't fit the device, are skipped.

    Args:
        original: Namespace snapshot taken before evaluation
        final: Namespace after evaluation
        devices: Devices snapshot used to build the namespace

    Returns:
        Derived actions in dispatch order
    """
    diff = diff_contexts(original, final)
    if not diff:
        return []

    logger.debug(f"The expression changed the value of the following variables: {diff}")
    tree = diff_to_tree(diff)
    actions: List[Action] = []

    for path, scene_id in query_paths(tree, SCENE_PATTERN):
        device = find_device_by_path(devices, path)
        if device is None:
            logger.debug(f"No device for {'.'.join(path)}, skipping")
            continue

        if isinstance(scene_id, str):
            actions.append(
                ActivateSceneAction(
                    scene_id=scene_id,
                    device_keys=(device.key,),
                    group_keys=None,
                )
            )

    for path, state in query_paths(tree, STATE_PATTERN):
        device = find_device_by_path(devices, path)
        if device is None:
            logger.debug(f"No device for {'.'.join(path)}, skipping")
            continue

        try:
            updated = device.apply(state)
        except DeviceStateError as e:
            logger.debug(f"Dropping state update for {device.key}: {e}")
            continue

        actions.append(SetDeviceStateAction(device=updated))

    return actions
