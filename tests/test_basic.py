"""
Basic smoke tests for homectl core components.
"""

from homectl import Device, DeviceKey, Event, EventBus, ExpressionEvaluator, RuleEngine
from homectl.core.device import LightState


def test_device_creation():
    """Test basic Device creation."""
    device = Device(
        id="1",
        name="Kitchen Lamp",
        integration_id="hue",
        state=LightState(on=True),
    )
    assert device.key == DeviceKey(integration_id="hue", device_id="1")
    assert device.scene is None
    assert device.value == {
        "scene": None,
        "state": {"on": True, "brightness": None, "color": None, "transition_ms": None},
    }


def test_event_bus_publish_subscribe():
    """Test basic event publishing and subscription."""
    bus = EventBus()

    # Track received events
    received = []

    def handler(event: Event):
        received.append(event)

    bus.subscribe(handler)

    event = Event(
        type="test.event",
        source="test",
        payload={"data": "value"},
    )
    bus.publish(event)

    assert len(received) == 1
    assert received[0].type == "test.event"
    assert received[0].payload["data"] == "value"


def test_rule_engine_smoke(devices, scenes, groups):
    """Test one rule flows from expression to a published action."""
    engine = RuleEngine(ExpressionEvaluator(EventBus()))
    assert engine.evaluate_rules(devices, scenes, groups).rules_evaluated == 0

    bus = EventBus()
    received = []
    bus.subscribe(received.append)
    evaluator = ExpressionEvaluator(bus)

    result = evaluator.evaluate('activate_scene("evening")', devices, scenes, groups)

    assert len(received) == 1
    assert received[0].source == "expr"
    assert received[0].payload["action"] == result.actions[0]
