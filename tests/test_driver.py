"""
Test suite for the AstroUSB switch driver.

Organised by layer:

* **Transport**: serial I/O, line framing, timeouts
* **Sink**: command templates, fire-and-forget and acknowledged writes
* **Driver**: user-facing API, async sets, names, profile
* **Hardware**: integration tests against a real board (skipped by default)

Run unit tests::

    pytest

Run hardware integration tests::

    pytest -m hardware
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import suppress
from unittest.mock import patch

import pytest

from astrousb_switch import (
    DRIVER_ID,
    AsyncNotSupportedError,
    CommandError,
    ConnectionError,
    DriverConfig,
    InvalidSwitchIdError,
    NotWritableError,
    OutOfRangeError,
    ProfileStore,
    SwitchDriver,
    SwitchRegistry,
    TimeoutError,
    TransitionOutcome,
)
from astrousb_switch.sink import SerialSink
from astrousb_switch.transport import SerialTransport

# ── Constants ─────────────────────────────────────────────────────────────

HARDWARE_PORT = "/dev/ttyUSB0"
SETTLE = 2.0  # s, generous upper bound for a 0.1 s transition


class SlowSink:
    """Wraps a sink and holds each commit for *delay* seconds."""

    def __init__(self, inner, delay: float) -> None:
        self.inner = inner
        self.delay = delay
        self.entered = threading.Event()

    def apply(self, internal_id: str, value: float) -> None:
        self.entered.set()
        time.sleep(self.delay)
        self.inner.apply(internal_id, value)


# ══════════════════════════════════════════════════════════════════════════
#  Layer 1: Transport
# ══════════════════════════════════════════════════════════════════════════


class TestTransportConnection:
    """Opening, closing, and connection state."""

    def test_open_sets_is_open(self, transport):
        assert transport.is_open

    def test_close_clears_flag(self, transport):
        transport.close()
        assert not transport.is_open

    def test_write_when_closed_raises(self, transport):
        transport.close()
        with pytest.raises(ConnectionError, match="not open"):
            transport.write_line("0 1")

    def test_open_failure_raises_connection_error(self):
        import serial as _serial

        with (
            patch(
                "astrousb_switch.transport.serial.Serial",
                side_effect=_serial.SerialException("port busy"),
            ),
            pytest.raises(ConnectionError, match="Cannot open"),
        ):
            SerialTransport("/dev/nonexistent").open()


class TestTransportIO:
    """Line framing and reply reading."""

    def test_line_bytes_include_terminator(self, transport, fake_serial):
        transport.write_line("3 1")
        assert fake_serial.written[-1] == b"3 1\n"

    def test_send_returns_stripped_reply(self, transport, fake_serial):
        fake_serial.set_response("OK 3\r\n")
        assert transport.send("3 1") == "OK 3"

    def test_empty_reply_raises_timeout(self, transport, fake_serial):
        fake_serial.set_response("")
        with pytest.raises(TimeoutError, match="No reply"):
            transport.send("3 1")

    def test_trailing_bytes_drained_with_reply(self, transport, fake_serial):
        fake_serial.set_response("OK\n\r")
        assert transport.send("3 1") == "OK"
        assert fake_serial.in_waiting == 0


# ══════════════════════════════════════════════════════════════════════════
#  Layer 2: Sink
# ══════════════════════════════════════════════════════════════════════════


class TestSerialSink:
    def test_default_template(self, transport, fake_serial):
        SerialSink(transport).apply("3", 40.0)
        assert fake_serial.written[-1] == b"3 40\n"

    def test_custom_template(self, transport):
        sink = SerialSink(transport, "PWM{internal_id}={value}")
        assert sink.render("2", 0.5) == "PWM2=0.5"

    def test_bad_template_raises(self, transport):
        sink = SerialSink(transport, "{port} {value}")
        with pytest.raises(CommandError, match="template"):
            sink.render("3", 1)

    def test_expect_reply_reads_acknowledgement(self, transport, fake_serial):
        SerialSink(transport, expect_reply=True).apply("0", 1)
        assert fake_serial.written[-1] == b"0 1\n"

    def test_missing_reply_raises_timeout(self, transport, fake_serial):
        fake_serial.set_response("")
        with pytest.raises(TimeoutError):
            SerialSink(transport, expect_reply=True).apply("0", 1)


# ══════════════════════════════════════════════════════════════════════════
#  Layer 3: Driver
# ══════════════════════════════════════════════════════════════════════════


class TestDriverConnection:
    def test_connect_sets_is_connected(self, driver):
        assert driver.is_connected

    def test_disconnect_clears_flag(self, driver):
        driver.disconnect()
        assert not driver.is_connected

    def test_set_when_disconnected_raises(self, driver):
        driver.disconnect()
        with pytest.raises(ConnectionError, match="Not connected"):
            driver.set_switch(0, True)

    def test_read_when_disconnected(self, driver):
        driver.disconnect()
        assert driver.get_switch_value(0) == 0

    def test_context_manager_closes(self, fake_serial):
        with patch("astrousb_switch.transport.serial.Serial", return_value=fake_serial):
            with SwitchDriver("/dev/fake") as switches:
                assert switches.is_connected
            assert not fake_serial.is_open

    def test_default_registry_is_usb_ports(self):
        assert SwitchDriver("/dev/fake").max_switch == 7


class TestDriverMetadata:
    def test_max_switch(self, driver):
        assert driver.max_switch == 3

    def test_names_and_descriptions(self, driver):
        assert driver.get_switch_name(1) == "Dew heater"
        assert driver.get_switch_description(1) == "Dew heater"

    def test_ranges(self, driver):
        assert driver.min_switch_value(1) == 0
        assert driver.max_switch_value(1) == 100
        assert driver.switch_step(1) == 5

    def test_capabilities(self, driver):
        assert driver.can_write(0)
        assert not driver.can_write(2)
        assert driver.can_async(1)
        assert not driver.can_async(0)

    @pytest.mark.parametrize("switch_id", [-1, 3])
    def test_bad_switch_id(self, driver, switch_id):
        with pytest.raises(InvalidSwitchIdError):
            driver.get_switch_value(switch_id)

    def test_rename(self, driver):
        driver.set_switch_name(0, "Mount power")
        assert driver.get_switch_name(0) == "Mount power"

    def test_rename_locked_name(self, driver):
        with pytest.raises(NotWritableError):
            driver.set_switch_name(2, "Status")


class TestDriverSynchronous:
    def test_set_switch_on(self, driver, fake_serial):
        driver.set_switch(0, True)
        assert fake_serial.written[-1] == b"0 1\n"
        assert driver.get_switch(0) is True

    def test_set_switch_off(self, driver, fake_serial):
        driver.set_switch(0, True)
        driver.set_switch(0, False)
        assert fake_serial.written[-1] == b"0 0\n"
        assert driver.get_switch(0) is False

    def test_value_snaps_to_step(self, driver, fake_serial):
        assert driver.set_switch_value(1, 42) == 40
        assert driver.get_switch_value(1) == 40
        assert fake_serial.written[-1] == b"3 40\n"

    def test_read_only_switch_rejected(self, driver, fake_serial):
        with pytest.raises(NotWritableError):
            driver.set_switch(2, True)
        assert fake_serial.written == []

    def test_out_of_range_rejected(self, driver, fake_serial):
        with pytest.raises(OutOfRangeError):
            driver.set_switch_value(1, 101)
        assert driver.get_switch_value(1) == 0
        assert fake_serial.written == []


class TestDriverAsync:
    def test_async_set_completes(self, driver, fake_serial):
        handle = driver.set_async_value(1, 42)
        assert driver.state_change_complete(1) is False
        assert handle.wait(SETTLE)
        assert handle.outcome is TransitionOutcome.COMPLETED
        assert driver.state_change_complete(1) is True
        assert driver.get_switch_value(1) == 40
        assert fake_serial.written[-1] == b"3 40\n"

    def test_set_async_bool(self, driver):
        handle = driver.set_async(1, True)
        handle.wait(SETTLE)
        assert driver.get_switch_value(1) == 100

    def test_cancel_keeps_value(self, driver, fake_serial):
        handle = driver.set_async_value(1, 60)
        assert driver.cancel_async(1) is True
        assert handle.wait(SETTLE)
        assert handle.cancelled()
        assert driver.state_change_complete(1) is True
        assert driver.get_switch_value(1) == 0
        assert fake_serial.written == []

    def test_cancel_when_idle(self, driver):
        assert driver.cancel_async(1) is False

    def test_async_not_supported(self, driver):
        with pytest.raises(AsyncNotSupportedError):
            driver.set_async(0, True)

    def test_rejected_request_is_latched(self, driver):
        with pytest.raises(OutOfRangeError):
            driver.set_async_value(1, 500)
        with pytest.raises(OutOfRangeError):
            driver.state_change_complete(1)

    def test_sink_failure_is_latched(self, fake_serial, registry):
        with patch("astrousb_switch.transport.serial.Serial", return_value=fake_serial):
            with SwitchDriver("/dev/fake", registry=registry, command_template="{x}") as switches:
                handle = switches.set_async_value(1, 50)
                assert handle.wait(SETTLE)
                assert handle.outcome is TransitionOutcome.FAILED
                with pytest.raises(CommandError):
                    switches.state_change_complete(1)
                assert switches.get_switch_value(1) == 0

    def test_disconnect_cancels_transition(self, driver):
        handle = driver.set_async_value(1, 50)
        driver.disconnect()
        assert handle.wait(SETTLE)
        assert handle.cancelled()

    def test_disconnect_waits_for_commit(self, driver, fake_serial):
        channel = driver.channel(1)
        channel.sink = SlowSink(channel.sink, delay=0.2)
        handle = driver.set_async_value(1, 50)
        assert channel.sink.entered.wait(SETTLE)

        driver.disconnect()
        assert handle.done()
        assert handle.outcome is TransitionOutcome.COMPLETED
        assert driver.get_switch_value(1) == 50
        assert fake_serial.written[-1] == b"3 50\n"


class TestDriverProfile:
    def test_save_profile(self, driver):
        store = ProfileStore()
        driver.set_switch_value(1, 35)
        driver.save_profile(store)
        assert store.get_value(DRIVER_ID, "Name", "Switch 1") == "Dew heater"
        assert store.get_value(DRIVER_ID, "Value", "Switch 1") == "35"

    def test_load_profile_restores_names(self, driver):
        store = ProfileStore()
        driver.set_switch_name(0, "Mount power")
        driver.save_profile(store, "Test.Switch")
        driver.set_switch_name(0, "Mount")

        driver.load_profile(store, "Test.Switch")
        assert driver.get_switch_name(0) == "Mount power"


class TestDriverFromConfig:
    def test_settings_copied(self):
        config = DriverConfig(port="/dev/fake", baud=19200, command_template="S{internal_id}")
        switches = SwitchDriver.from_config(config)
        assert switches.port == "/dev/fake"
        assert switches.baud == 19200
        assert switches.command_template == "S{internal_id}"
        assert isinstance(switches.registry, SwitchRegistry)
        assert switches.max_switch == 7

    def test_trace_enables_debug_logging(self):
        package_logger = logging.getLogger("astrousb_switch")
        level = package_logger.level
        try:
            SwitchDriver.from_config(DriverConfig(port="/dev/fake", trace=True))
            assert package_logger.level == logging.DEBUG
        finally:
            package_logger.setLevel(level)


# ══════════════════════════════════════════════════════════════════════════
#  Hardware integration tests: require a real board
# ══════════════════════════════════════════════════════════════════════════


@pytest.mark.hardware
class TestHardwareIntegration:
    """Run only with ``pytest -m hardware``.

    These tests drive the USB ports of a real controller on ``/dev/ttyUSB0``.
    """

    @pytest.fixture(autouse=True)
    def _open_device(self):
        self.switches = SwitchDriver(HARDWARE_PORT)
        self.switches.connect()
        yield
        for switch_id in range(self.switches.max_switch):
            with suppress(Exception):
                self.switches.set_switch(switch_id, False)
        self.switches.disconnect()

    def test_toggle_port(self):
        self.switches.set_switch(0, True)
        assert self.switches.get_switch(0)
        self.switches.set_switch(0, False)
        assert not self.switches.get_switch(0)

    def test_all_ports_accept_commands(self):
        for switch_id in range(self.switches.max_switch):
            self.switches.set_switch(switch_id, True)
            assert self.switches.get_switch_value(switch_id) == 1
