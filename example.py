#!/usr/bin/env python3
"""
Quick example demonstrating homectl rule evaluation.

Run with: PYTHONPATH=src python3 example.py
"""

import logging

from homectl.core.bus import ACTION_EVENT, Event, EventBus, EventFilter
from homectl.core.device import Device, LightState, SensorState, devices_by_key
from homectl.core.groups import GroupConfig, Groups
from homectl.core.scenes import SceneConfig, Scenes
from homectl.modules.expr import ExpressionEvaluator, ExpressionRule, RuleEngine, RulesConfig

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

print("=" * 60)
print("homectl Example")
print("=" * 60)

# 1. Kernel components
print("\n1. Creating kernel components...")
bus = EventBus()


def print_action(event: Event):
    print(f"   → {event.payload['action'].to_dict()}")


bus.subscribe(print_action, EventFilter(event_type=ACTION_EVENT))
print("   ✓ EventBus created, printing dispatched actions")

# 2. Devices, groups and scenes
print("\n2. Building state snapshot...")
lamp = Device(
    id="1",
    name="Kitchen Lamp",
    integration_id="hue",
    state=LightState(on=False, brightness=0.5),
)
motion = Device(
    id="m1",
    name="Kitchen Motion",
    integration_id="zigbee",
    state=SensorState(value=True),
)
devices = devices_by_key([lamp, motion])
print(f"   ✓ Devices: {[str(k) for k in devices]}")

groups = Groups({"kitchen": GroupConfig(name="Kitchen", device_keys=[lamp.key])})
scenes = Scenes(
    {"cooking": SceneConfig(name="Cooking", groups={"kitchen": {"on": True, "brightness": 1.0}})},
    groups=groups,
)
print("   ✓ Group 'kitchen' and scene 'cooking' configured")

# 3. One-off expressions
print("\n3. Evaluating expressions...")
evaluator = ExpressionEvaluator(bus, debug_sink=lambda text: print(f"   dbg: {text}"))

evaluator.evaluate("dbg(scenes.cooking.hue.kitchen_lamp.brightness)", devices, scenes, groups)

result = evaluator.evaluate(
    "devices.hue.kitchen_lamp.state.on = devices.zigbee.kitchen_motion.state.value",
    devices,
    scenes,
    groups,
)
print(f"   ✓ Changed: {result.changed}")

result = evaluator.evaluate('activate_scene("cooking"); False', devices, scenes, groups)
print(f"   ✓ Suppressed: {result.suppressed}")

# 4. Rule engine
print("\n4. Running the rule engine...")
engine = RuleEngine(evaluator)
engine.set_rules(
    RulesConfig(
        rules=[
            ExpressionRule(
                id="cook_when_busy",
                expression=(
                    'group_keys = ("kitchen",); '
                    'activate_scene("cooking") if devices.zigbee.kitchen_motion.state.value '
                    "else False"
                ),
            ),
            ExpressionRule(id="broken", expression="devices.hue.missing.state.on"),
        ]
    )
)
outcome = engine.evaluate_rules(devices, scenes, groups)
print(f"   ✓ Evaluated {outcome.rules_evaluated}, triggered {outcome.rules_triggered}")
print(f"   ✓ Errors: {outcome.errors}")

print("\n" + "=" * 60)
print("Example complete!")
print("=" * 60)
