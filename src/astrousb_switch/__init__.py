"""AstroUSB Switch Driver Python Interface"""

from .channel import (
    ChannelState,
    SwitchChannel,
    TransitionHandle,
    TransitionOutcome,
    quantize,
)
from .config import ChannelConfig, DriverConfig, build_registry, load_config
from .constants import DEFAULT_COMMAND_TEMPLATE, DEFAULT_PORT_COUNT, DRIVER_ID
from .driver import SwitchDriver
from .exceptions import (
    AsyncNotSupportedError,
    CommandError,
    ConnectionError,
    InvalidDefinitionError,
    InvalidSwitchIdError,
    NotWritableError,
    OutOfRangeError,
    ProfileError,
    SwitchError,
    TimeoutError,
    TransitionInProgressError,
    ValidationError,
)
from .profile import ProfileStore, YamlProfileStore
from .registry import SwitchRegistry
from .validation import ValidationResult, validate

__all__ = [
    "AsyncNotSupportedError",
    "ChannelConfig",
    "ChannelState",
    "CommandError",
    "ConnectionError",
    "DEFAULT_COMMAND_TEMPLATE",
    "DEFAULT_PORT_COUNT",
    "DRIVER_ID",
    "DriverConfig",
    "InvalidDefinitionError",
    "InvalidSwitchIdError",
    "NotWritableError",
    "OutOfRangeError",
    "ProfileError",
    "ProfileStore",
    "SwitchChannel",
    "SwitchDriver",
    "SwitchError",
    "SwitchRegistry",
    "TimeoutError",
    "TransitionHandle",
    "TransitionInProgressError",
    "TransitionOutcome",
    "ValidationError",
    "ValidationResult",
    "YamlProfileStore",
    "build_registry",
    "load_config",
    "quantize",
    "validate",
]
__version__ = "0.1.0"
