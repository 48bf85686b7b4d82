"""
Serial line link to the AstroUSB controller board.

The board's microcontroller reads one ASCII command per line, terminated by
LF, and may answer with a single LF-terminated line.  This module only moves
lines; the text of a command comes from :mod:`sink`.

    link = SerialTransport("/dev/ttyUSB0")
    link.open()
    link.write_line("3 1")      # USB 4 on, no answer expected
    link.send("3 1")            # same, but wait for the board's reply line
    link.close()
"""

from __future__ import annotations

import logging
import time

import serial

from .constants import DEFAULT_BAUD, DEFAULT_PORT, DEFAULT_TIMEOUT
from .exceptions import ConnectionError, TimeoutError

logger = logging.getLogger(__name__)

_EOL = b"\n"

# Bytes that trail a reply line (e.g. a CR) arrive within this window
_TRAILER_WAIT = 0.02


class SerialTransport:
    """LF-framed line link over a pyserial port (8N1).

    Args:
        port: Device path of the board, ``/dev/ttyUSB0`` or ``COM3``.
        baudrate: Line speed; the board firmware runs at 9600.
        timeout: Seconds to wait for a reply line in :meth:`send`.
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUD,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self._ser: serial.Serial | None = None

    def open(self) -> None:
        """Claim the board's port.

        Raises:
            ConnectionError: The port is missing or held by another process.
        """
        try:
            self._ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
            )
        except serial.SerialException as exc:
            raise ConnectionError(f"Cannot open {self.port}: {exc}") from exc
        logger.info("Board link open on %s (%d baud)", self.port, self.baudrate)

    def close(self) -> None:
        if self._ser is not None and self._ser.is_open:
            self._ser.close()
            logger.info("Board link on %s closed", self.port)

    @property
    def is_open(self) -> bool:
        return self._ser is not None and self._ser.is_open

    def write_line(self, line: str) -> None:
        """Send one command line and return at once.

        Raises:
            ConnectionError: The link is not open.
        """
        ser = self._port()
        logger.debug("TX: %s", line)
        ser.write(line.encode("ascii") + _EOL)
        ser.flush()

    def send(self, line: str) -> str:
        """Send one command line and return the board's answer, stripped.

        Anything left over from an earlier exchange is discarded first, so the
        answer always belongs to *line*.

        Raises:
            ConnectionError: The link is not open.
            TimeoutError: No answer line arrived within :attr:`timeout`.
        """
        ser = self._port()
        ser.reset_input_buffer()
        self.write_line(line)

        raw = ser.read_until(_EOL)
        time.sleep(_TRAILER_WAIT)
        if ser.in_waiting:
            raw += ser.read(ser.in_waiting)

        reply = raw.decode("ascii", errors="replace").strip()
        logger.debug("RX: %s", reply)
        if not reply:
            raise TimeoutError(f"No reply from controller for '{line}'")
        return reply

    def _port(self) -> serial.Serial:
        if self._ser is None or not self._ser.is_open:
            raise ConnectionError("Serial port not open; call open() first.")
        return self._ser
