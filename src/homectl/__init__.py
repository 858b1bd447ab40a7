"""
homectl: rule evaluation core for a home automation controller.

This library provides:
- Device, scene and group snapshots
- A flat evaluation namespace built from them
- Expression rules that read state, call built-ins and assign into state
- Reconciliation of assignments into actions published on an Event Bus
"""

from homectl.core.bus import Event, EventBus, EventFilter
from homectl.core.device import Device, DeviceKey
from homectl.modules.expr import ExpressionEvaluator, RuleEngine

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "Device",
    "DeviceKey",
    "ExpressionEvaluator",
    "RuleEngine",
]
