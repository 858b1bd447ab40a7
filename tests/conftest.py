"""Shared fixtures: a small home with lights, a sensor, groups and scenes."""

import pytest

from homectl.core.bus import ACTION_EVENT, EventBus, EventFilter
from homectl.core.device import Device, LightState, SensorState, devices_by_key
from homectl.core.groups import GroupConfig, Groups
from homectl.core.scenes import SceneConfig, Scenes


@pytest.fixture
def lamp1():
    """Hue lamp, off at half brightness."""
    return Device(
        id="1",
        name="lamp1",
        integration_id="hue",
        state=LightState(on=False, brightness=0.5),
    )


@pytest.fixture
def living_room_lamp():
    """Hue lamp with a multi-word name, fully on."""
    return Device(
        id="2",
        name="Living Room Lamp",
        integration_id="hue",
        state=LightState(on=True, brightness=1.0),
    )


@pytest.fixture
def motion_sensor():
    """Zigbee motion sensor, no motion."""
    return Device(
        id="m1",
        name="Hall Motion",
        integration_id="zigbee",
        state=SensorState(value=False),
    )


@pytest.fixture
def devices(lamp1, living_room_lamp, motion_sensor):
    return devices_by_key([lamp1, living_room_lamp, motion_sensor])


@pytest.fixture
def groups(lamp1, living_room_lamp):
    """kitchen = [lamp1]; downstairs = [living room lamp] + kitchen."""
    return Groups(
        {
            "kitchen": GroupConfig(name="Kitchen", device_keys=[lamp1.key]),
            "downstairs": GroupConfig(
                name="Downstairs",
                device_keys=[living_room_lamp.key],
                group_keys=["kitchen"],
            ),
        }
    )


@pytest.fixture
def scenes(groups, lamp1):
    """evening dims lamp1 and turns it on."""
    return Scenes(
        {
            "evening": SceneConfig(
                name="Evening",
                devices={lamp1.key: {"on": True, "brightness": 0.3}},
            ),
        },
        groups=groups,
    )


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def dispatched(bus):
    """Actions published on the bus, in order."""
    actions = []

    def record(event):
        actions.append(event.payload["action"])

    bus.subscribe(record, EventFilter(event_type=ACTION_EVENT))
    return actions
