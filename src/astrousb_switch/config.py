"""
Driver configuration: serial settings and switch definitions from YAML.

Example file::

    port: /dev/ttyUSB0
    trace: false
    command_template: "{internal_id} {value}"
    channels:
      0:
        name: Mount
        description: Mount power
      3:
        name: Dew heater
        maximum: 100
        step_size: 5
        can_async: true
        duration: 2

Only ``port`` is required.  Without ``channels`` the driver exposes the
seven binary USB ports of the board.

    config = load_config("config/switch_config.yaml")
    registry = build_registry(config)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .channel import SwitchChannel
from .constants import (
    DEFAULT_BAUD,
    DEFAULT_COMMAND_TEMPLATE,
    DEFAULT_MAXIMUM,
    DEFAULT_MINIMUM,
    DEFAULT_STEP_SIZE,
    DEFAULT_TIMEOUT,
    DEFAULT_VALUE,
)
from .exceptions import ValidationError
from .registry import SwitchRegistry
from .validation import validate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChannelConfig:
    """Validated definition of a single switch."""

    internal_id: str
    name: str
    description: Optional[str] = None
    minimum: float = DEFAULT_MINIMUM
    maximum: float = DEFAULT_MAXIMUM
    step_size: float = DEFAULT_STEP_SIZE
    value: float = DEFAULT_VALUE
    writable: bool = True
    name_editable: bool = True
    can_async: bool = False
    duration: float = 0.0

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``#3 Dew heater``."""
        return f"#{self.internal_id} {self.name}"

    def to_channel(self) -> SwitchChannel:
        return SwitchChannel(
            self.name,
            self.internal_id,
            maximum=self.maximum,
            minimum=self.minimum,
            step_size=self.step_size,
            value=self.value,
            writable=self.writable,
            description=self.description,
            name_editable=self.name_editable,
            supports_async=self.can_async,
            duration=self.duration,
        )


@dataclass(frozen=True)
class DriverConfig:
    """Top-level configuration loaded from a YAML file."""

    port: str
    baud: int = DEFAULT_BAUD
    timeout: float = DEFAULT_TIMEOUT
    trace: bool = False
    command_template: str = DEFAULT_COMMAND_TEMPLATE
    expect_reply: bool = False
    channels: list[ChannelConfig] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Config loading & validation
# ---------------------------------------------------------------------------


def load_config(path: str | Path) -> DriverConfig:
    """Load and validate a driver configuration from a YAML file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValidationError: If the config is malformed or contains invalid values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    return parse_config(raw)


def parse_config(raw: Any) -> DriverConfig:
    """Validate an already-parsed YAML document."""
    if not isinstance(raw, dict):
        raise ValidationError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # -- Top-level fields ---------------------------------------------------
    port = raw.get("port")
    if not isinstance(port, str) or not port:
        raise ValidationError("Config must specify a non-empty 'port' string")

    baud = raw.get("baud", DEFAULT_BAUD)
    if isinstance(baud, bool) or not isinstance(baud, int) or baud <= 0:
        raise ValidationError(f"'baud' must be a positive integer, got {baud!r}")

    timeout = _number(raw, "timeout", DEFAULT_TIMEOUT, "Config")
    if not (timeout > 0):
        raise ValidationError(f"'timeout' must be positive, got {timeout}")

    trace = _flag(raw, "trace", False, "Config")
    expect_reply = _flag(raw, "expect_reply", False, "Config")

    command_template = raw.get("command_template", DEFAULT_COMMAND_TEMPLATE)
    if not isinstance(command_template, str) or not command_template:
        raise ValidationError("'command_template' must be a non-empty string")

    # -- Channels -----------------------------------------------------------
    raw_channels = raw.get("channels") or {}
    if not isinstance(raw_channels, dict):
        raise ValidationError("'channels' must be a mapping of internal id to switch")

    channels = [_parse_channel(key, data) for key, data in raw_channels.items()]

    return DriverConfig(
        port=port,
        baud=baud,
        timeout=timeout,
        trace=trace,
        command_template=command_template,
        expect_reply=expect_reply,
        channels=channels,
    )


def _parse_channel(key: Any, data: Any) -> ChannelConfig:
    """Parse and validate a single channel entry from the config."""
    internal_id = str(key)
    where = f"Channel {internal_id}"

    if not isinstance(data, dict):
        raise ValidationError(f"{where} config must be a mapping")

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError(f"{where}: 'name' must be a non-empty string")

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise ValidationError(f"{where}: 'description' must be a string")

    minimum = _number(data, "minimum", DEFAULT_MINIMUM, where)
    maximum = _number(data, "maximum", DEFAULT_MAXIMUM, where)
    step_size = _number(data, "step_size", DEFAULT_STEP_SIZE, where)
    value = _number(data, "value", minimum, where)

    result = validate(name, maximum, minimum, step_size, value)
    if not result:
        raise ValidationError(f"{where}: {result.reason}")

    duration = _number(data, "duration", 0.0, where)
    if not (math.isfinite(duration) and duration >= 0):
        raise ValidationError(f"{where}: 'duration' must be a non-negative number, got {duration}")

    return ChannelConfig(
        internal_id=internal_id,
        name=name,
        description=description,
        minimum=minimum,
        maximum=maximum,
        step_size=step_size,
        value=value,
        writable=_flag(data, "writable", True, where),
        name_editable=_flag(data, "name_editable", True, where),
        can_async=_flag(data, "can_async", False, where),
        duration=duration,
    )


def _number(data: dict, key: str, default: float, where: str) -> float:
    val = data.get(key, default)
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        raise ValidationError(f"{where}: '{key}' must be a number, got {val!r}")
    return float(val)


def _flag(data: dict, key: str, default: bool, where: str) -> bool:
    val = data.get(key, default)
    if not isinstance(val, bool):
        raise ValidationError(f"{where}: '{key}' must be a boolean, got {type(val).__name__}")
    return val


# ---------------------------------------------------------------------------
# Registry construction
# ---------------------------------------------------------------------------


def build_registry(config: DriverConfig) -> SwitchRegistry:
    """Create the session's channels from *config*.

    Falls back to the board's binary USB ports when no channels are listed.
    """
    if not config.channels:
        logger.debug("No channels configured, using default USB ports")
        return SwitchRegistry.usb_ports()

    registry = SwitchRegistry()
    for ch in config.channels:
        registry.add(ch.to_channel())
        logger.debug("Configured %s", ch.label)
    return registry
