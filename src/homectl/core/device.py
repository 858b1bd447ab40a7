"""
Device snapshots and their state shapes.

A Device is an immutable point-in-time view of something the controller
manages. Its state is one of a small set of pydantic models; writes go through
Device.apply(), which validates the new state against the device's current
state shape and returns an updated copy.
"""

from typing import Any, Dict, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from homectl.exceptions import DeviceStateError


class DeviceKey(BaseModel):
    """Registry key of a device: integration id plus integration-local id."""

    model_config = ConfigDict(frozen=True)

    integration_id: str
    device_id: str

    def __str__(self) -> str:
        return f"{self.integration_id}/{self.device_id}"

    @classmethod
    def parse(cls, value: str) -> "DeviceKey":
        """Parse an "integration/device" string."""
        integration_id, sep, device_id = value.partition("/")
        if not sep or not integration_id or not device_id:
            raise ValueError(f"Invalid device key: {value!r}")
        return cls(integration_id=integration_id, device_id=device_id)


# =============================================================================
# State shapes
# =============================================================================


class Color(BaseModel):
    """Hue/saturation color."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    hue: float = Field(ge=0, le=360)
    saturation: float = Field(ge=0, le=1)


class LightState(BaseModel):
    """Controllable light."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    on: bool
    brightness: Optional[float] = Field(default=None, ge=0, le=1)
    color: Optional[Color] = None
    transition_ms: Optional[int] = Field(default=None, ge=0)


class SensorState(BaseModel):
    """Read-only sensor reading."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: Union[bool, float, str, None]


class CustomState(BaseModel):
    """Integration-defined state with free-form fields."""

    model_config = ConfigDict(frozen=True, extra="allow")


DeviceState = Union[LightState, SensorState, CustomState]


# =============================================================================
# Device
# =============================================================================


class Device(BaseModel):
    """
    Point-in-time snapshot of a device.

    Attributes:
        id: Integration-local device ID
        name: Human-readable name (used to build namespace paths)
        integration_id: Integration the device belongs to
        scene: Scene currently driving the device, if any
        state: Current state
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    integration_id: str
    scene: Optional[str] = None
    state: DeviceState = Field(union_mode="left_to_right")

    @property
    def key(self) -> DeviceKey:
        return DeviceKey(integration_id=self.integration_id, device_id=self.id)

    @property
    def value(self) -> Dict[str, Any]:
        """Structured value exposed to rule evaluation."""
        return {
            "scene": self.scene,
            "state": self.state.model_dump(mode="json"),
        }

    def apply(self, new_state: Any) -> "Device":
        """
        Validate a full state replacement and return the updated device.

        The new state must fit the same shape as the current one. Applying a
        state drops the active scene, since the device is now manually set.

        Args:
            new_state: Structured state value (usually a dict)

        Returns:
            A new Device carrying the validated state

        Raises:
            DeviceStateError: If the value does not fit the state shape
        """
        state_type = type(self.state)
        try:
            state = state_type.model_validate(new_state)
        except ValidationError as e:
            raise DeviceStateError(
                f"Invalid {state_type.__name__} for {self.key}: {e.error_count()} error(s)",
                device_key=str(self.key),
            ) from e

        return self.model_copy(update={"state": state, "scene": None})


DevicesState = Dict[DeviceKey, Device]


def devices_by_key(devices: Iterable[Device]) -> DevicesState:
    """Build a DevicesState snapshot from an iterable of devices."""
    return {device.key: device for device in devices}
