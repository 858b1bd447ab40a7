"""
Evaluation namespace and the snapshot builder.

Device, scene and group state is projected into a flat mapping of dotted
paths to scalars (bool, number, string, None or tuple). Rule expressions read
and assign these variables; built-in functions are registered alongside them.
"""

import json
import logging
import math
import threading
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from homectl.core.device import DevicesState
from homectl.core.groups import FlattenedGroupsConfig, flattened_groups_to_eval_context_values
from homectl.core.paths import PATH_SEPARATOR, flatten_value, normalize_name
from homectl.core.scenes import FlattenedScenesConfig
from homectl.exceptions import ContextError, ConversionError

logger = logging.getLogger(__name__)
debug_logger = logging.getLogger("homectl.expr.debug")

Value = Union[bool, int, float, str, None, Tuple[Any, ...]]
Function = Callable[["EvaluationContext", Value], Value]
DebugSink = Callable[[str], None]


class _NoArguments(tuple):
    """Empty tuple passed to a function called without arguments."""

    __slots__ = ()


# Compares equal to (), but a call like f(()) never receives this object
NO_ARGUMENTS: Value = _NoArguments()


# =============================================================================
# Value Kinds
# =============================================================================


def value_kind(value: Value) -> str:
    """Name the namespace kind of a value."""
    if value is None:
        return "empty"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, tuple):
        return "tuple"
    raise ConversionError(f"Not a namespace value: {type(value).__name__}")


def values_equal(a: Value, b: Value) -> bool:
    """Kind-aware equality: True and 1.0 are different values."""
    if value_kind(a) != value_kind(b):
        return False
    if isinstance(a, tuple):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def format_value(value: Value) -> str:
    """Render a value the way rule authors write it."""
    if value is None:
        return "()"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, tuple):
        return "(" + ", ".join(format_value(v) for v in value) + ")"
    return repr(value)


def to_namespace_value(value: Any) -> Value:
    """
    Convert a leaf of a structured value to a namespace scalar.

    Numbers become floats. Containers must have been flattened already.

    Raises:
        ConversionError: For lists, dicts and anything non-scalar, or numbers
            that cannot be represented as floats
    """
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError as e:
            raise ConversionError(f"Number {value} cannot be represented as a float") from e
    if isinstance(value, (list, tuple)):
        raise ConversionError("Arrays are not supported for rule evaluation")
    if isinstance(value, dict):
        raise ConversionError("Objects are not supported for rule evaluation")
    raise ConversionError(f"Unsupported value type for rule evaluation: {type(value).__name__}")


def from_namespace_value(value: Value) -> Any:
    """
    Convert a namespace value back to a structured (JSON-compatible) value.

    Raises:
        ConversionError: For non-finite floats or non-namespace values
    """
    if isinstance(value, tuple):
        return [from_namespace_value(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        raise ConversionError(f"Number {value} cannot be represented in a state value")
    value_kind(value)
    return value


# =============================================================================
# Evaluation Context
# =============================================================================


class EvaluationContext:
    """
    Flat namespace of dotted-path variables plus registered functions.

    Attributes:
        type_checks_disabled: When True, assignments may change a variable's
            kind and ordering comparisons across kinds evaluate to False
    """

    def __init__(self) -> None:
        self._variables: Dict[str, Value] = {}
        self._functions: Dict[str, Function] = {}
        self.type_checks_disabled = False

    def __len__(self) -> int:
        return len(self._variables)

    def __contains__(self, name: object) -> bool:
        return name in self._variables

    def has_value(self, name: str) -> bool:
        return name in self._variables

    def get_value(self, name: str) -> Value:
        """Get a variable's value (KeyError if unset)."""
        return self._variables[name]

    def set_value(self, name: str, value: Value) -> None:
        """
        Set a variable.

        Raises:
            ContextError: If the name is malformed or names a function
        """
        if not name or any(segment == "" for segment in name.split(PATH_SEPARATOR)):
            raise ContextError(f"Invalid variable name: {name!r}")
        if name in self._functions:
            raise ContextError(f"Cannot set variable {name!r}: a function has that name")
        value_kind(value)
        self._variables[name] = value

    def remove_prefix(self, prefix: str) -> int:
        """Remove every variable at or below prefix. Returns the count removed."""
        below = prefix + PATH_SEPARATOR
        names = [n for n in self._variables if n == prefix or n.startswith(below)]
        for name in names:
            del self._variables[name]
        return len(names)

    def iter_variables(self) -> Iterator[Tuple[str, Value]]:
        return iter(list(self._variables.items()))

    def variables(self) -> Dict[str, Value]:
        """Copy of all variables."""
        return dict(self._variables)

    def set_function(self, name: str, function: Function) -> None:
        """
        Register a function callable from expressions.

        Raises:
            ContextError: If the name is empty or already used by a variable
        """
        if not name:
            raise ContextError("Function name must not be empty")
        if name in self._variables:
            raise ContextError(f"Cannot register function {name!r}: a variable has that name")
        self._functions[name] = function

    def get_function(self, name: str) -> Optional[Function]:
        return self._functions.get(name)

    def copy(self) -> "EvaluationContext":
        """Independent copy (values are immutable, so a shallow copy suffices)."""
        other = EvaluationContext()
        other._variables = dict(self._variables)
        other._functions = dict(self._functions)
        other.type_checks_disabled = self.type_checks_disabled
        return other


# =============================================================================
# Debug Built-in
# =============================================================================


def debug_print_context(context: EvaluationContext, sink: DebugSink) -> None:
    """Emit every "name = value" pair, sorted by name."""
    lines = sorted(f"{name} = {format_value(value)}" for name, value in context.iter_variables())
    sink("\n".join(lines))


class DebugFunction:
    """
    The dbg() built-in.

    dbg() emits the whole namespace, dbg(x) emits x. Always returns None; sink
    failures are logged and never reach the expression.
    """

    def __init__(self, sink: Optional[DebugSink] = None) -> None:
        self._sink: DebugSink = sink or debug_logger.debug

    def __call__(self, context: EvaluationContext, argument: Value) -> Value:
        try:
            if argument is NO_ARGUMENTS:
                debug_print_context(context, self._sink)
            else:
                self._sink(format_value(argument))
        except Exception:
            logger.warning("dbg() sink failed", exc_info=True)
        return None


# =============================================================================
# Snapshot Builder
# =============================================================================


def state_to_eval_context(
    devices: DevicesState,
    flattened_scenes: FlattenedScenesConfig,
    flattened_groups: FlattenedGroupsConfig,
    debug_sink: Optional[DebugSink] = None,
) -> EvaluationContext:
    """
    Build the evaluation namespace from state snapshots.

    Layout:
    - devices.<integration_id>.<name>.<...>: every device value leaf
    - scenes.<scene_id>.<integration_id>.<name>.<...>: resolved scene states
    - groups.<group_id>.<...>: values derived by the groups collaborator

    Names are normalized (lowercase, spaces to underscores). When two devices
    normalize to the same path, the later one (by device key) replaces the
    earlier one's whole subtree.

    Args:
        devices: Devices snapshot
        flattened_scenes: Scenes resolved against devices
        flattened_groups: Groups resolved against devices
        debug_sink: Where dbg() output goes (default: homectl.expr.debug logger)

    Returns:
        A new EvaluationContext with dbg() registered

    Raises:
        ConversionError: If a leaf cannot be converted
        ContextError: If a variable or function cannot be registered
    """
    context = EvaluationContext()
    device_prefixes: Dict[str, str] = {}

    for key in sorted(devices, key=str):
        device = devices[key]
        prefix = (
            f"devices{PATH_SEPARATOR}{device.integration_id}"
            f"{PATH_SEPARATOR}{normalize_name(device.name)}"
        )

        if prefix in device_prefixes:
            logger.warning(
                f"Device {key} has the same namespace path as {device_prefixes[prefix]} "
                f"({prefix}), replacing it"
            )
            context.remove_prefix(prefix)
        device_prefixes[prefix] = str(key)

        for path, value in flatten_value(device.value, prefix):
            context.set_value(path, to_namespace_value(value))

    for scene_id in sorted(flattened_scenes):
        scene_prefix = f"scenes{PATH_SEPARATOR}{normalize_name(scene_id)}"

        for key, state in flattened_scenes[scene_id].devices.items():
            device = devices.get(key)
            if device is None:
                continue

            prefix = (
                f"{scene_prefix}{PATH_SEPARATOR}{device.integration_id}"
                f"{PATH_SEPARATOR}{normalize_name(device.name)}"
            )
            for path, value in flatten_value(state, prefix):
                context.set_value(path, to_namespace_value(value))

    for path, value in flattened_groups_to_eval_context_values(flattened_groups, devices):
        context.set_value(path, to_namespace_value(value))

    context.set_function("dbg", DebugFunction(debug_sink))

    logger.debug(f"Built evaluation context with {len(context)} variables")
    return context


def snapshot_key(
    devices: DevicesState,
    flattened_scenes: FlattenedScenesConfig,
    flattened_groups: FlattenedGroupsConfig,
) -> Optional[str]:
    """
    Canonical form of a (devices, scenes, groups) snapshot.

    JSON keeps true, 1 and 1.0 apart, so two snapshots share a key only if
    every leaf has the same value and the same kind.

    Returns:
        The key, or None if the snapshot holds values JSON can't encode
    """
    snapshot = {
        "devices": sorted(
            [key.integration_id, key.device_id, device.model_dump(mode="json")]
            for key, device in devices.items()
        ),
        "scenes": {
            scene_id: {
                "name": scene.name,
                "devices": sorted(
                    [key.integration_id, key.device_id, state]
                    for key, state in scene.devices.items()
                ),
            }
            for scene_id, scene in flattened_scenes.items()
        },
        "groups": {
            group_id: {
                "name": group.name,
                "device_keys": [[k.integration_id, k.device_id] for k in group.device_keys],
            }
            for group_id, group in flattened_groups.items()
        },
    }

    try:
        return json.dumps(snapshot, sort_keys=True)
    except (TypeError, ValueError):
        return None


class NamespaceCache:
    """
    Single-slot cache for built namespaces.

    The slot holds the snapshot_key() of the most recent (devices, scenes,
    groups) input together with the namespace built from it. A lookup hits
    only when the requested input has the same key. Builds run outside the
    lock; concurrent misses may build twice, and the last store wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slot: Optional[Tuple[str, EvaluationContext]] = None
        self.hits = 0
        self.misses = 0

    def get_or_build(
        self,
        devices: DevicesState,
        flattened_scenes: FlattenedScenesConfig,
        flattened_groups: FlattenedGroupsConfig,
        build: Callable[[], EvaluationContext],
    ) -> EvaluationContext:
        """
        Return a copy of the cached namespace, building it on a miss.

        Snapshots without a canonical key are built directly and never cached.

        Args:
            devices: Devices snapshot
            flattened_scenes: Resolved scenes
            flattened_groups: Resolved groups
            build: Builds the namespace for exactly these inputs

        Returns:
            An independent EvaluationContext the caller may mutate
        """
        key = snapshot_key(devices, flattened_scenes, flattened_groups)
        if key is None:
            logger.debug("Snapshot has no canonical key, building without the cache")
            return build()

        with self._lock:
            slot = self._slot

        if slot is not None and slot[0] == key:
            with self._lock:
                self.hits += 1
            return slot[1].copy()

        context = build()

        with self._lock:
            self.misses += 1
            self._slot = (key, context.copy())

        return context

    def clear(self) -> None:
        """Drop the cached namespace."""
        with self._lock:
            self._slot = None
