"""
Action dispatcher.

Publishes actions on the event bus. Dispatch is fire-and-forget: the bus
isolates subscriber failures, so nothing flows back to the evaluator.
"""

import logging
from typing import List

from homectl.core.action import Action
from homectl.core.bus import ACTION_EVENT, Event, EventBus

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Publishes Actions as "action" events, in the order given."""

    SOURCE = "expr"

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    def dispatch(self, actions: List[Action]) -> int:
        """
        Publish every action.

        Args:
            actions: Actions in dispatch order

        Returns:
            Number of actions published
        """
        for action in actions:
            logger.debug(f"Dispatching {action.action_type.value}: {action}")
            self._bus.publish(
                Event(type=ACTION_EVENT, source=self.SOURCE, payload={"action": action})
            )

        if actions:
            logger.info(f"Dispatched {len(actions)} action(s)")
        return len(actions)
