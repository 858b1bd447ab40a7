"""
Rule engine - evaluates a set of expression rules against one state snapshot.

Each rule is evaluated independently: a failing rule is recorded and the
remaining rules still run.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from homectl.core.device import DevicesState
from homectl.exceptions import HomectlError

from .evaluator import ExpressionEvaluator
from .interpreter import Expression, parse_expression
from .models import ExpressionRule, RulesConfig

if TYPE_CHECKING:
    from homectl.core.groups import Groups
    from homectl.core.scenes import Scenes

logger = logging.getLogger(__name__)


@dataclass
class EngineResult:
    """Result of evaluating a rule set."""

    rules_evaluated: int = 0
    rules_triggered: int = 0
    actions_dispatched: int = 0
    errors: List[str] = field(default_factory=list)


class RuleEngine:
    """
    Holds expression rules and evaluates them.

    Expressions are parsed once, when rules are set; a rule that fails to
    parse is reported on every evaluation.
    """

    def __init__(self, evaluator: ExpressionEvaluator) -> None:
        self._evaluator = evaluator
        self._config = RulesConfig()
        self._parsed: Dict[str, Expression] = {}
        self._parse_errors: Dict[str, str] = {}

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_rules(self, config: RulesConfig) -> None:
        """Replace the rule set."""
        self._config = config
        self._parsed.clear()
        self._parse_errors.clear()

        for rule in config.rules:
            try:
                self._parsed[rule.id] = parse_expression(rule.expression)
            except HomectlError as e:
                self._parse_errors[rule.id] = str(e)
                logger.warning(f"Rule {rule.id} has an invalid expression: {e}")

        logger.debug(f"Set {len(config.rules)} rules")

    def get_rules(self) -> List[ExpressionRule]:
        return list(self._config.rules)

    def get_rule(self, rule_id: str) -> Optional[ExpressionRule]:
        for rule in self._config.rules:
            if rule.id == rule_id:
                return rule
        return None

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate_rules(
        self,
        devices: DevicesState,
        scenes: "Scenes",
        groups: "Groups",
    ) -> EngineResult:
        """
        Evaluate every enabled rule against the same snapshot.

        Returns:
            Counts of rules evaluated/triggered, actions dispatched, and one
            error message per failed rule
        """
        result = EngineResult()

        if not self._config.enabled:
            return result

        for rule in self._config.rules:
            if not rule.enabled:
                continue

            result.rules_evaluated += 1

            if rule.id in self._parse_errors:
                result.errors.append(f"{rule.id}: {self._parse_errors[rule.id]}")
                continue

            try:
                outcome = self._evaluator.evaluate(self._parsed[rule.id], devices, scenes, groups)
            except HomectlError as e:
                logger.error(f"Error evaluating rule {rule.id}: {e}", exc_info=True)
                result.errors.append(f"{rule.id}: {e}")
                continue

            if not outcome.suppressed:
                result.rules_triggered += 1
                result.actions_dispatched += len(outcome.actions)

        return result
