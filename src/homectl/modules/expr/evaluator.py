"""
Expression evaluator - one synchronous build/evaluate/diff/dispatch pass.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from homectl.core.action import Action
from homectl.core.bus import EventBus
from homectl.core.device import DevicesState
from homectl.core.groups import FlattenedGroupsConfig
from homectl.core.scenes import FlattenedScenesConfig

from .commands import CommandQueue, commands_to_actions, register_builtins
from .context import DebugSink, EvaluationContext, NamespaceCache, Value, state_to_eval_context
from .diff import diff_and_translate, diff_contexts
from .dispatcher import ActionDispatcher
from .interpreter import Expression, Interpreter, parse_expression
from .models import EvaluatorConfig

if TYPE_CHECKING:
    from homectl.core.groups import Groups
    from homectl.core.scenes import Scenes

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    """Outcome of one successful evaluation."""

    result: Value = None
    suppressed: bool = False  # Expression returned False
    actions: List[Action] = field(default_factory=list)
    changed: Dict[str, Value] = field(default_factory=dict)


class ExpressionEvaluator:
    """
    Runs rule expressions against live state and dispatches the outcome.

    Steps per evaluation:
    1. Resolve scenes and groups against the devices snapshot
    2. Build (or reuse) the namespace
    3. Relax type checks (per config)
    4. Snapshot the namespace
    5. Register activate_scene, custom_action and trigger_routine
    6. Evaluate; a False result discards everything
    7. Translate queued commands into actions
    8. Derive actions from changed variables, then publish all actions

    Every action is computed before the first is published, so a failure at
    any step dispatches nothing.
    """

    def __init__(
        self,
        bus: EventBus,
        config: Optional[EvaluatorConfig] = None,
        debug_sink: Optional[DebugSink] = None,
    ) -> None:
        self._config = config or EvaluatorConfig()
        self._dispatcher = ActionDispatcher(bus)
        self._cache = NamespaceCache()
        self._debug_sink = debug_sink

    @property
    def config(self) -> EvaluatorConfig:
        return self._config

    @property
    def cache(self) -> NamespaceCache:
        return self._cache

    def build_context(
        self,
        devices: DevicesState,
        flattened_scenes: FlattenedScenesConfig,
        flattened_groups: FlattenedGroupsConfig,
    ) -> EvaluationContext:
        """Build the namespace, through the cache when enabled."""

        def build() -> EvaluationContext:
            return state_to_eval_context(
                devices, flattened_scenes, flattened_groups, debug_sink=self._debug_sink
            )

        if not self._config.cache_namespace:
            return build()
        return self._cache.get_or_build(devices, flattened_scenes, flattened_groups, build)

    def evaluate(
        self,
        expression: Union[Expression, str],
        devices: DevicesState,
        scenes: "Scenes",
        groups: "Groups",
    ) -> EvaluationResult:
        """
        Evaluate an expression and dispatch the resulting actions.

        Args:
            expression: Parsed expression (strings are parsed first)
            devices: Devices snapshot
            scenes: Scenes collaborator
            groups: Groups collaborator

        Returns:
            EvaluationResult with the dispatched actions

        Raises:
            HomectlError: Any conversion, context, evaluation or diff encoding
                failure; nothing is dispatched in that case
        """
        if isinstance(expression, str):
            expression = parse_expression(expression)

        flattened_scenes = scenes.get_flattened_scenes(devices)
        flattened_groups = groups.get_flattened_groups(devices)

        context = self.build_context(devices, flattened_scenes, flattened_groups)
        context.type_checks_disabled = self._config.relaxed_types
        original = context.copy()

        queue = CommandQueue()
        register_builtins(context, queue)

        result = Interpreter(context).run(expression)

        if result is False:
            queue.clear()
            logger.debug("Expression evaluated to false, skipping actions")
            return EvaluationResult(result=result, suppressed=True)

        actions = commands_to_actions(queue.drain(), context)
        actions.extend(diff_and_translate(original, context, devices))

        self._dispatcher.dispatch(actions)

        return EvaluationResult(
            result=result,
            actions=actions,
            changed=diff_contexts(original, context),
        )
