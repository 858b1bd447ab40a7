"""
Expression rules for homectl.

Rules are user-authored expressions evaluated against a flat namespace of
device, scene and group state. A rule can act in two ways:
- call built-ins: activate_scene(), custom_action(), trigger_routine()
- assign into device variables, which the diff engine turns into
  scene activations and device state writes

Pipeline:

    ┌──────────────────┐   ┌────────────┐   ┌─────────────┐   ┌────────────┐
    │ Snapshot Builder │──▶│ Evaluator  │──▶│ Diff Engine │──▶│ Dispatcher │
    │   (context.py)   │   │ (builtins) │   │  (diff.py)  │   │ (EventBus) │
    └──────────────────┘   └────────────┘   └─────────────┘   └────────────┘
"""

from .models import (
    # Configuration
    EvaluatorConfig,
    ExpressionRule,
    RulesConfig,
    # Pending commands
    ActivateSceneCommand,
    CustomActionCommand,
    ForceTriggerRoutineCommand,
    PendingCommand,
)
from .context import (
    EvaluationContext,
    NamespaceCache,
    DebugFunction,
    NO_ARGUMENTS,
    state_to_eval_context,
    debug_print_context,
    to_namespace_value,
    from_namespace_value,
    values_equal,
)
from .interpreter import Expression, Interpreter, parse_expression
from .commands import CommandQueue, register_builtins, commands_to_actions
from .diff import diff_contexts, diff_to_tree, diff_and_translate
from .dispatcher import ActionDispatcher
from .evaluator import ExpressionEvaluator, EvaluationResult
from .engine import RuleEngine, EngineResult

__all__ = [
    # Evaluator
    "ExpressionEvaluator",
    "EvaluationResult",
    # Engine
    "RuleEngine",
    "EngineResult",
    # Configuration
    "EvaluatorConfig",
    "ExpressionRule",
    "RulesConfig",
    # Namespace
    "EvaluationContext",
    "NamespaceCache",
    "DebugFunction",
    "NO_ARGUMENTS",
    "state_to_eval_context",
    "debug_print_context",
    "to_namespace_value",
    "from_namespace_value",
    "values_equal",
    # Expressions
    "Expression",
    "Interpreter",
    "parse_expression",
    # Built-ins
    "CommandQueue",
    "register_builtins",
    "commands_to_actions",
    "ActivateSceneCommand",
    "CustomActionCommand",
    "ForceTriggerRoutineCommand",
    "PendingCommand",
    # Diff
    "diff_contexts",
    "diff_to_tree",
    "diff_and_translate",
    # Dispatch
    "ActionDispatcher",
]
