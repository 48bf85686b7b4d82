"""
Profile persistence for switch definitions.

Each switch is stored as named string fields under a ``"Switch <index>"``
sub key of the driver's profile::

    store = YamlProfileStore("profile.yaml")
    save_channel(usb1, store, DRIVER_ID, 0)
    usb1 = load_channel(store, DRIVER_ID, 0, internal_id="0")

Numbers are written locale-invariantly (``"0.5"``, ``"10"``) and booleans as
``"True"`` / ``"False"``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

from .channel import SwitchChannel, format_value
from .constants import SWITCH_SUBKEY
from .exceptions import ProfileError

logger = logging.getLogger(__name__)

# Field names, in write order
NAME = "Name"
DESCRIPTION = "Description"
MINIMUM = "Minimum"
MAXIMUM = "Maximum"
STEP_SIZE = "StepSize"
CAN_WRITE = "CanWrite"
VALUE = "Value"
CAN_ASYNC = "CanAsync"
DURATION = "Duration"


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class ProfileStore:
    """In-memory profile: ``driver_id -> sub_key -> name -> value``."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, str]]] = {}

    def write_value(self, driver_id: str, name: str, sub_key: str, value: str) -> None:
        self._data.setdefault(driver_id, {}).setdefault(sub_key, {})[name] = value

    def get_value(self, driver_id: str, name: str, sub_key: str, default: str = "") -> str:
        return self._data.get(driver_id, {}).get(sub_key, {}).get(name, default)


class YamlProfileStore(ProfileStore):
    """Profile kept in a YAML file; every write is flushed to disk.

    Args:
        path: File to read from (if it exists) and write to.

    Raises:
        ProfileError: If an existing file is not a YAML mapping.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            with open(self.path) as f:
                raw = yaml.safe_load(f) or {}
            if not isinstance(raw, dict):
                raise ProfileError(f"Profile {self.path} must be a YAML mapping")
            self._data = {
                str(driver): {
                    str(sub): {str(k): str(v) for k, v in fields.items()}
                    for sub, fields in (subs or {}).items()
                }
                for driver, subs in raw.items()
            }
            logger.debug("Loaded profile %s", self.path)

    def write_value(self, driver_id: str, name: str, sub_key: str, value: str) -> None:
        super().write_value(driver_id, name, sub_key, value)
        self.flush()

    def flush(self) -> None:
        """Write the whole profile to :attr:`path`."""
        with open(self.path, "w") as f:
            yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=False)


# ---------------------------------------------------------------------------
# Channel save / load
# ---------------------------------------------------------------------------


def save_channel(channel: SwitchChannel, store: ProfileStore, driver_id: str, index: int) -> None:
    """Write *channel*'s definition and value under ``"Switch <index>"``."""
    sub_key = SWITCH_SUBKEY.format(index=index)
    store.write_value(driver_id, NAME, sub_key, channel.name)
    store.write_value(driver_id, DESCRIPTION, sub_key, channel.description)
    store.write_value(driver_id, MINIMUM, sub_key, format_value(channel.minimum))
    store.write_value(driver_id, MAXIMUM, sub_key, format_value(channel.maximum))
    store.write_value(driver_id, STEP_SIZE, sub_key, format_value(channel.step_size))
    store.write_value(driver_id, CAN_WRITE, sub_key, str(channel.writable))
    store.write_value(driver_id, VALUE, sub_key, format_value(channel.value))
    store.write_value(driver_id, CAN_ASYNC, sub_key, str(channel.supports_async))
    store.write_value(driver_id, DURATION, sub_key, format_value(channel.duration))
    logger.debug("Saved %s as %s", channel.name, sub_key)


def load_channel(
    store: ProfileStore,
    driver_id: str,
    index: int,
    internal_id: str,
    default: Optional[SwitchChannel] = None,
) -> SwitchChannel:
    """Read the switch stored under ``"Switch <index>"``.

    Fields missing from the store fall back to *default* (a binary switch
    named ``"Switch <index>"`` if not given).  The hardware sink, name
    editability and the internal id are not persisted and are taken from
    *default* / *internal_id*.

    Raises:
        ProfileError: If a stored number or boolean cannot be parsed.
        InvalidDefinitionError: If the stored definition is not legal.
    """
    sub_key = SWITCH_SUBKEY.format(index=index)
    if default is None:
        default = SwitchChannel(sub_key, internal_id)

    def text(name: str, fallback: str) -> str:
        return store.get_value(driver_id, name, sub_key, fallback)

    def number(name: str, fallback: float) -> float:
        raw = text(name, format_value(fallback))
        try:
            return float(raw)
        except ValueError as exc:
            raise ProfileError(f"{sub_key} {name}: {raw!r} is not a number") from exc

    def flag(name: str, fallback: bool) -> bool:
        raw = text(name, str(fallback)).strip().lower()
        if raw not in ("true", "false"):
            raise ProfileError(f"{sub_key} {name}: {raw!r} is not a boolean")
        return raw == "true"

    return SwitchChannel(
        name=text(NAME, default.name),
        internal_id=internal_id,
        maximum=number(MAXIMUM, default.maximum),
        minimum=number(MINIMUM, default.minimum),
        step_size=number(STEP_SIZE, default.step_size),
        value=number(VALUE, default.value),
        writable=flag(CAN_WRITE, default.writable),
        description=text(DESCRIPTION, default.description),
        name_editable=default.name_editable,
        supports_async=flag(CAN_ASYNC, default.supports_async),
        duration=number(DURATION, default.duration),
        sink=default.sink,
    )
