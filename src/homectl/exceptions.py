"""
Exception hierarchy for homectl.

Every error an evaluation can raise derives from HomectlError so callers can
catch a single type around a rule evaluation.
"""


class HomectlError(Exception):
    """Base exception for all homectl errors."""


class ConversionError(HomectlError):
    """A value could not be converted to or from a namespace scalar."""


class ContextError(HomectlError):
    """Invalid registration while building an evaluation namespace."""


class EvaluationError(HomectlError):
    """Expression parse or runtime failure, including built-in misuse."""


class DiffEncodingError(HomectlError):
    """A changed namespace path could not be encoded into the diff tree."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class DeviceStateError(HomectlError, ValueError):
    """A new state value does not fit the device's state shape."""

    def __init__(self, message: str, *, device_key: str = "") -> None:
        self.device_key = device_key
        super().__init__(message)
