"""
AstroUSB Switch Driver Interface

Index-addressed switch API for the AstroUSB power controller, modelled on
the astronomy-standard switch device interface (synchronous and
asynchronous sets, state-change polling, named switches).

Each USB port is a :class:`~astrousb_switch.channel.SwitchChannel` held in
the session's :class:`~astrousb_switch.registry.SwitchRegistry`.  Committed
values are written to the controller board through a
:class:`~astrousb_switch.sink.SerialSink`.
"""

from __future__ import annotations

import logging
from typing import Optional

from .channel import SwitchChannel, TransitionHandle
from .config import DriverConfig, build_registry
from .constants import (
    DEFAULT_BAUD,
    DEFAULT_COMMAND_TEMPLATE,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DRIVER_ID,
)
from .exceptions import ConnectionError
from .profile import ProfileStore
from .registry import SwitchRegistry
from .sink import SerialSink
from .transport import SerialTransport

logger = logging.getLogger(__name__)


class SwitchDriver:
    """Switch driver session for the AstroUSB controller.

    Use as a context manager for automatic connection handling::

        with SwitchDriver('/dev/ttyUSB0') as switches:
            switches.set_switch(0, True)

    Args:
        port: Serial port of the controller board.
        baud: Baud rate.
        timeout: Serial read timeout in seconds.
        registry: Channels of this session (defaults to seven binary USB ports).
        command_template: Line template used by the :class:`SerialSink`.
        expect_reply: Wait for a reply line after each command.
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baud: int = DEFAULT_BAUD,
        timeout: float = DEFAULT_TIMEOUT,
        registry: Optional[SwitchRegistry] = None,
        command_template: str = DEFAULT_COMMAND_TEMPLATE,
        expect_reply: bool = False,
    ) -> None:
        self.port = port
        self.baud = baud
        self.timeout = timeout
        self.registry = registry if registry is not None else SwitchRegistry.usb_ports()
        self.command_template = command_template
        self.expect_reply = expect_reply
        self._tx: Optional[SerialTransport] = None

    @classmethod
    def from_config(cls, config: DriverConfig) -> SwitchDriver:
        """Build a driver from a loaded :class:`DriverConfig`."""
        if config.trace:
            logging.getLogger(__package__).setLevel(logging.DEBUG)
        return cls(
            port=config.port,
            baud=config.baud,
            timeout=config.timeout,
            registry=build_registry(config),
            command_template=config.command_template,
            expect_reply=config.expect_reply,
        )

    # -- Context manager ----------------------------------------------------

    def __enter__(self) -> SwitchDriver:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # -- Connection ---------------------------------------------------------

    def connect(self) -> None:
        """Open the serial link and route switch values to it."""
        self._tx = SerialTransport(self.port, self.baud, self.timeout)
        self._tx.open()
        self.registry.attach(SerialSink(self._tx, self.command_template, self.expect_reply))
        logger.info("Connected to %s with %d switches", self.port, len(self.registry))

    def disconnect(self) -> None:
        """Cancel running transitions and close the link (safe to call multiple times).

        A transition already committing its value is given up to
        :attr:`timeout` seconds to reach the controller before the sinks are
        detached and the port is closed.
        """
        pending = []
        for channel in self.registry:
            handle = channel.transition
            if handle is not None:
                handle.cancel()
                pending.append((channel, handle))
        for channel, handle in pending:
            if not handle.wait(self.timeout):
                logger.warning("Switch %r still committing at disconnect", channel.name)
        self.registry.attach(None)
        if self._tx is not None:
            self._tx.close()
        self._tx = None

    @property
    def is_connected(self) -> bool:
        """Return True if the serial port is open."""
        return self._tx is not None and self._tx.is_open

    def _require_connected(self) -> None:
        if not self.is_connected:
            raise ConnectionError("Not connected; call connect() first.")

    # -- Switch metadata ----------------------------------------------------

    @property
    def max_switch(self) -> int:
        """Number of switches; valid ids are ``0..max_switch-1``."""
        return len(self.registry)

    def channel(self, switch_id: int) -> SwitchChannel:
        return self.registry[switch_id]

    def get_switch_name(self, switch_id: int) -> str:
        return self.registry[switch_id].name

    def set_switch_name(self, switch_id: int, name: str) -> None:
        self.registry[switch_id].rename(name)

    def get_switch_description(self, switch_id: int) -> str:
        return self.registry[switch_id].description

    def can_write(self, switch_id: int) -> bool:
        return self.registry[switch_id].writable

    def can_async(self, switch_id: int) -> bool:
        return self.registry[switch_id].supports_async

    def min_switch_value(self, switch_id: int) -> float:
        return self.registry[switch_id].minimum

    def max_switch_value(self, switch_id: int) -> float:
        return self.registry[switch_id].maximum

    def switch_step(self, switch_id: int) -> float:
        return self.registry[switch_id].step_size

    # -- Synchronous values -------------------------------------------------

    def get_switch_value(self, switch_id: int) -> float:
        return self.registry[switch_id].value

    def get_switch(self, switch_id: int) -> bool:
        """Return ``True`` if the switch is anywhere above its minimum."""
        channel = self.registry[switch_id]
        return channel.value > channel.minimum

    def set_switch_value(self, switch_id: int, value: float) -> float:
        """Set *switch_id* to the step nearest *value* and return the applied value."""
        channel = self.registry[switch_id]
        self._require_connected()
        return channel.set_value(value)

    def set_switch(self, switch_id: int, state: bool) -> float:
        """Drive *switch_id* to its maximum (``True``) or minimum (``False``)."""
        channel = self.registry[switch_id]
        return self.set_switch_value(switch_id, channel.maximum if state else channel.minimum)

    # -- Asynchronous values ------------------------------------------------

    def set_async_value(self, switch_id: int, value: float) -> TransitionHandle:
        """Start a timed set; poll :meth:`state_change_complete` or use the handle."""
        channel = self.registry[switch_id]
        self._require_connected()
        return channel.set_value_timed(value)

    def set_async(self, switch_id: int, state: bool) -> TransitionHandle:
        channel = self.registry[switch_id]
        return self.set_async_value(switch_id, channel.maximum if state else channel.minimum)

    def cancel_async(self, switch_id: int) -> bool:
        """Cancel the running transition of *switch_id*, if any."""
        return self.registry[switch_id].cancel()

    def state_change_complete(self, switch_id: int) -> bool:
        """Return ``True`` once the last asynchronous set has finished.

        Raises:
            SwitchError: The error latched by the last asynchronous set, if it failed.
        """
        state = self.registry[switch_id].state
        if state.transition_complete and state.last_async_error is not None:
            raise state.last_async_error
        return state.transition_complete

    # -- Profile ------------------------------------------------------------

    def save_profile(self, store: ProfileStore, driver_id: str = DRIVER_ID) -> None:
        self.registry.save(store, driver_id)

    def load_profile(self, store: ProfileStore, driver_id: str = DRIVER_ID) -> None:
        self.registry.load(store, driver_id)
