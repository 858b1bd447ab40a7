"""
Data models for expression rules.

Defines evaluator configuration, rule definitions, and the pending commands
built-ins queue during an evaluation.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class EvaluatorConfig:
    """Configuration for the expression evaluator."""

    version: int = 1
    cache_namespace: bool = True  # Reuse the namespace for identical snapshots
    relaxed_types: bool = True  # Allow cross-kind assignment and ordering

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "version": self.version,
            "cache_namespace": self.cache_namespace,
            "relaxed_types": self.relaxed_types,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluatorConfig":
        """Deserialize from dict."""
        return cls(
            version=data.get("version", 1),
            cache_namespace=data.get("cache_namespace", True),
            relaxed_types=data.get("relaxed_types", True),
        )


# =============================================================================
# Rules
# =============================================================================


@dataclass
class ExpressionRule:
    """A user-authored rule expression.

    The expression may read and assign namespace variables and call the
    built-ins activate_scene, custom_action, trigger_routine and dbg. If it
    evaluates to False, nothing is dispatched.
    """

    id: str
    expression: str
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        return {"id": self.id, "expression": self.expression, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpressionRule":
        """Deserialize from dict."""
        return cls(
            id=data["id"],
            expression=data["expression"],
            enabled=data.get("enabled", True),
        )


@dataclass
class RulesConfig:
    """Collection of expression rules."""

    version: int = 1
    enabled: bool = True
    rules: List[ExpressionRule] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "version": self.version,
            "enabled": self.enabled,
            "rules": [r.to_dict() for r in self.rules],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RulesConfig":
        """Deserialize from dict."""
        return cls(
            version=data.get("version", 1),
            enabled=data.get("enabled", True),
            rules=[ExpressionRule.from_dict(r) for r in data.get("rules", [])],
        )


# =============================================================================
# Pending Commands
# =============================================================================


@dataclass(frozen=True)
class ActivateSceneCommand:
    """Queued by activate_scene()."""

    scene_id: str


@dataclass(frozen=True)
class CustomActionCommand:
    """Queued by custom_action()."""

    integration_id: str
    payload: str


@dataclass(frozen=True)
class ForceTriggerRoutineCommand:
    """Queued by trigger_routine()."""

    routine_id: str


PendingCommand = ActivateSceneCommand | CustomActionCommand | ForceTriggerRoutineCommand
