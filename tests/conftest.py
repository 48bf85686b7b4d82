"""Shared pytest fixtures for AstroUSB switch tests."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import patch

import pytest

from astrousb_switch import SwitchChannel, SwitchDriver, SwitchRegistry
from astrousb_switch.transport import SerialTransport


class FakeSerial:
    """Lightweight stand-in for ``serial.Serial``.

    Implements the subset of the pyserial API used by
    :class:`~astrousb_switch.transport.SerialTransport`:
    ``write``, ``read``, ``read_until``, ``in_waiting``, ``flush``,
    ``reset_input_buffer``, ``close``, and ``is_open``.

    By default every line gets an ``OK\\n`` reply.  Call :meth:`set_response`
    to stage a custom reply for the **next** write; after that write the
    default is restored.
    """

    _DEFAULT = b"OK\n"

    def __init__(self) -> None:
        self.is_open: bool = True
        self.written: list[bytes] = []
        self._response: bytes = b""
        self._next: bytes | None = None  # staged override for next write

    # -- Helpers for tests --------------------------------------------------

    def set_response(self, text: str) -> None:
        """Stage a reply for the **next** write."""
        self._next = text.encode("ascii")

    # -- pyserial interface -------------------------------------------------

    def write(self, data: bytes) -> int:
        self.written.append(data)
        if self._next is not None:
            self._response = self._next
            self._next = None
        else:
            self._response = self._DEFAULT
        return len(data)

    @property
    def in_waiting(self) -> int:
        return len(self._response)

    def read(self, size: int = 1) -> bytes:
        data = self._response[:size]
        self._response = self._response[size:]
        return data

    def read_until(self, terminator: bytes = b"\n", size: int | None = None) -> bytes:
        """Return everything up to and including *terminator*."""
        idx = self._response.find(terminator)
        if idx == -1:
            # Terminator not found: return everything (mimics timeout)
            data = self._response
            self._response = b""
        else:
            end = idx + len(terminator)
            data = self._response[:end]
            self._response = self._response[end:]
        return data

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        pass  # keeps the staged reply

    def close(self) -> None:
        self.is_open = False


class RecordingSink:
    """Hardware sink that records every ``apply`` call."""

    def __init__(self) -> None:
        self.applied: list[tuple[str, float]] = []

    def apply(self, internal_id: str, value: float) -> None:
        self.applied.append((internal_id, value))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_serial() -> FakeSerial:
    """Return a fresh ``FakeSerial`` instance."""
    return FakeSerial()


@pytest.fixture()
def transport(fake_serial: FakeSerial) -> SerialTransport:
    """Return a ``SerialTransport`` wired to a fake serial port."""
    with patch("astrousb_switch.transport.serial.Serial", return_value=fake_serial):
        tx = SerialTransport("/dev/fake")
        tx.open()
        return tx


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def binary(sink: RecordingSink) -> SwitchChannel:
    """A writable on/off switch."""
    return SwitchChannel("USB 1", "0", sink=sink)


@pytest.fixture()
def dimmer(sink: RecordingSink) -> SwitchChannel:
    """A 0-10 switch in steps of 2 with a short timed transition."""
    return SwitchChannel(
        "Dew heater",
        "3",
        maximum=10,
        minimum=0,
        step_size=2,
        supports_async=True,
        duration=0.1,
        sink=sink,
    )


@pytest.fixture()
def registry() -> SwitchRegistry:
    return SwitchRegistry(
        [
            SwitchChannel("Mount", "0"),
            SwitchChannel(
                "Dew heater", "3", maximum=100, step_size=5, supports_async=True, duration=0.1
            ),
            SwitchChannel("Hub status", "6", writable=False, name_editable=False),
        ]
    )


@pytest.fixture()
def driver(fake_serial: FakeSerial, registry: SwitchRegistry) -> Iterator[SwitchDriver]:
    """Return a connected ``SwitchDriver`` wired to a fake serial port."""
    with patch("astrousb_switch.transport.serial.Serial", return_value=fake_serial):
        switches = SwitchDriver("/dev/fake", registry=registry)
        switches.connect()
        yield switches
        switches.disconnect()
