"""
Side-effecting built-ins and the pending command queue.

activate_scene, custom_action and trigger_routine don't act immediately: they
append a PendingCommand to a shared queue. After evaluation the queue is
drained in call order and translated into Actions.
"""

import logging
import threading
from typing import FrozenSet, List, Optional

from homectl.core.action import (
    Action,
    ActivateSceneAction,
    CustomAction,
    ForceTriggerRoutineAction,
)
from homectl.exceptions import EvaluationError

from .context import EvaluationContext, Function, Value, value_kind
from .models import (
    ActivateSceneCommand,
    CustomActionCommand,
    ForceTriggerRoutineCommand,
    PendingCommand,
)

logger = logging.getLogger(__name__)

GROUP_KEYS_VARIABLE = "group_keys"


class CommandQueue:
    """
    Append-only command list shared by the built-ins of one evaluation.

    Guarded by a re-entrant lock so built-ins may be invoked from nested
    calls within one evaluation.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._commands: List[PendingCommand] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._commands)

    def push(self, command: PendingCommand) -> None:
        with self._lock:
            self._commands.append(command)
        logger.debug(f"Queued {command}")

    def drain(self) -> List[PendingCommand]:
        """Remove and return all commands in enqueue order."""
        with self._lock:
            commands, self._commands = self._commands, []
        return commands

    def clear(self) -> None:
        with self._lock:
            self._commands.clear()


# =============================================================================
# Built-ins
# =============================================================================


def _expect_string(value: Value, function: str, parameter: str) -> str:
    if not isinstance(value, str):
        raise EvaluationError(
            f"{function}() expects a string {parameter}, got {value_kind(value)}"
        )
    return value


def make_activate_scene(queue: CommandQueue) -> Function:
    def activate_scene(context: EvaluationContext, argument: Value) -> Value:
        scene_id = _expect_string(argument, "activate_scene", "scene_id")
        queue.push(ActivateSceneCommand(scene_id=scene_id))
        return None

    return activate_scene


def make_custom_action(queue: CommandQueue) -> Function:
    def custom_action(context: EvaluationContext, argument: Value) -> Value:
        if not isinstance(argument, tuple) or len(argument) != 2:
            raise EvaluationError(
                "custom_action() expects (integration_id, payload_parts)"
            )

        integration_id = _expect_string(argument[0], "custom_action", "integration_id")
        parts = argument[1]
        # A bare string is a single part
        if isinstance(parts, str):
            parts = (parts,)
        if not isinstance(parts, tuple):
            raise EvaluationError(
                f"custom_action() expects a tuple of payload parts, got {value_kind(parts)}"
            )
        for part in parts:
            _expect_string(part, "custom_action", "payload part")

        queue.push(CustomActionCommand(integration_id=integration_id, payload="".join(parts)))
        return None

    return custom_action


def make_trigger_routine(queue: CommandQueue) -> Function:
    def trigger_routine(context: EvaluationContext, argument: Value) -> Value:
        routine_id = _expect_string(argument, "trigger_routine", "routine_id")
        queue.push(ForceTriggerRoutineCommand(routine_id=routine_id))
        return None

    return trigger_routine


def register_builtins(context: EvaluationContext, queue: CommandQueue) -> None:
    """Register the side-effecting built-ins, all backed by queue."""
    context.set_function("activate_scene", make_activate_scene(queue))
    context.set_function("custom_action", make_custom_action(queue))
    context.set_function("trigger_routine", make_trigger_routine(queue))


# =============================================================================
# Translation
# =============================================================================


def read_group_keys(context: EvaluationContext) -> Optional[FrozenSet[str]]:
    """
    Read the optional group_keys variable.

    Returns:
        Set of group IDs, or None if the variable is unset

    Raises:
        EvaluationError: If group_keys is not a tuple of strings
    """
    if not context.has_value(GROUP_KEYS_VARIABLE):
        return None

    value = context.get_value(GROUP_KEYS_VARIABLE)
    if not isinstance(value, tuple) or not all(isinstance(v, str) for v in value):
        raise EvaluationError(f"{GROUP_KEYS_VARIABLE} must be a tuple of strings")
    return frozenset(value)


def commands_to_actions(
    commands: List[PendingCommand],
    context: EvaluationContext,
) -> List[Action]:
    """
    Translate drained commands into Actions, preserving order.

    Scene activations are scoped by the group_keys variable when it is set.
    """
    actions: List[Action] = []

    for command in commands:
        if isinstance(command, ActivateSceneCommand):
            actions.append(
                ActivateSceneAction(
                    scene_id=command.scene_id,
                    device_keys=None,
                    group_keys=read_group_keys(context),
                )
            )
        elif isinstance(command, CustomActionCommand):
            actions.append(
                CustomAction(integration_id=command.integration_id, payload=command.payload)
            )
        elif isinstance(command, ForceTriggerRoutineCommand):
            actions.append(ForceTriggerRoutineAction(routine_id=command.routine_id))
        else:
            raise EvaluationError(f"Unknown pending command: {command!r}")

    return actions
