"""
Hardware sinks: where committed switch values go.

A channel calls :meth:`HardwareSink.apply` once a quantized value is final.
:class:`SerialSink` renders that call into one line on a
:class:`~astrousb_switch.transport.SerialTransport` using a command template
supplied by the integrator, e.g. ``"{internal_id} {value}"``.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .channel import format_value
from .constants import DEFAULT_COMMAND_TEMPLATE
from .exceptions import CommandError
from .transport import SerialTransport

logger = logging.getLogger(__name__)


class HardwareSink(Protocol):
    """Anything that can drive a hardware line to a value."""

    def apply(self, internal_id: str, value: float) -> None: ...


class SerialSink:
    """Send each applied value as one templated line over serial.

    Args:
        transport: An open :class:`SerialTransport`.
        command_template: :meth:`str.format` template with ``internal_id``
            and ``value`` fields.
        expect_reply: Wait for (and log) a reply line after each command.
    """

    def __init__(
        self,
        transport: SerialTransport,
        command_template: str = DEFAULT_COMMAND_TEMPLATE,
        expect_reply: bool = False,
    ) -> None:
        self._tx = transport
        self.command_template = command_template
        self.expect_reply = expect_reply

    def render(self, internal_id: str, value: float) -> str:
        """Build the command line for *internal_id* at *value*."""
        try:
            return self.command_template.format(internal_id=internal_id, value=format_value(value))
        except (KeyError, IndexError, ValueError) as exc:
            raise CommandError(f"Bad command template {self.command_template!r}: {exc}") from exc

    def apply(self, internal_id: str, value: float) -> None:
        line = self.render(internal_id, value)
        if self.expect_reply:
            reply = self._tx.send(line)
            logger.debug("Line %s acknowledged: %s", internal_id, reply)
        else:
            self._tx.write_line(line)
