#!/usr/bin/env python3
"""
Temperature Reader Tests for the HH42 reader

Drives TemperatureReader through a synchronous fake connection and a
manually advanced poll timer, so cadence and event order are deterministic.

Usage:
    python -m pytest hh42/tests/reader_tests.py
"""

import time
import unittest
from types import SimpleNamespace
from unittest import mock

import serial

from hh42.core.communication import SerialCommunication
from hh42.core.exceptions import CommunicationError, DeviceDisconnectedError
from hh42.core.protocol import Reading
from hh42.hardware.hh42 import TemperatureReader, EventType, ReaderState
from hh42.tests.fakes import (
    FakeClock, FakeCommunication, FakeSerialFactory, ManualPollTimer, manual_timer_factory
)

POLL = b"T\r\n"

class ReaderTestCase(unittest.TestCase):
    """Common fixture: a reader wired to fakes with recorded events."""

    def setUp(self):
        ManualPollTimer.instances = []
        self.clock = FakeClock()
        self.comm = FakeCommunication()
        self.reader = TemperatureReader(comm=self.comm,
                                        timer_factory=manual_timer_factory(self.clock))
        self.readings = []
        self.errors = []
        self.opened = []
        self.reader.register_callback(EventType.READING, self.readings.append)
        self.reader.register_callback(EventType.SERIAL_ERROR, self.errors.append)
        self.reader.register_callback(EventType.PORT_OPENED, self.opened.append)

    @property
    def timer(self):
        return ManualPollTimer.instances[-1]

    def active_timers(self):
        return [t for t in ManualPollTimer.instances if t.is_active]

class InitializeTests(ReaderTestCase):
    """Tests for opening the thermometer port."""

    def test_open_enters_host_mode_then_polls(self):
        self.reader.initialize("/dev/ttyUSB0")

        self.assertEqual(self.comm.events, [
            ("connect", "/dev/ttyUSB0", None),
            ("rts", True),
            ("write", POLL),
        ])
        self.assertEqual(self.opened, ["/dev/ttyUSB0"])
        self.assertEqual(self.reader.state, ReaderState.POLLING)
        self.assertEqual(self.reader.port_name, "/dev/ttyUSB0")

    def test_options_are_passed_through(self):
        options = {"baud_rate": 19200, "parity": "even"}
        self.reader.initialize("COM3", options)
        self.assertEqual(self.comm.events[0], ("connect", "COM3", options))

    def test_open_failure_becomes_error_event(self):
        self.comm.connect_error = CommunicationError("Connection failed: [Errno 2] No such file")

        self.reader.initialize("/dev/missing")

        self.assertEqual(self.errors, ["Connection failed: [Errno 2] No such file"])
        self.assertEqual(self.opened, [])
        self.assertEqual(self.comm.written, [])
        self.assertEqual(ManualPollTimer.instances, [])
        self.assertEqual(self.reader.state, ReaderState.CLOSED)

    def test_invalid_configuration_becomes_error_event(self):
        """Rejected options travel the same error path as transport failures."""
        reader = TemperatureReader(
            comm=SerialCommunication(serial_factory=FakeSerialFactory()),
            timer_factory=manual_timer_factory(self.clock),
        )
        errors = []
        reader.register_callback(EventType.SERIAL_ERROR, errors.append)

        reader.initialize("/dev/ttyUSB0", {"data_bits": 9})
        reader.initialize("", None)

        self.assertEqual(len(errors), 2)
        self.assertIn("Data bits", errors[0])
        self.assertIn("non-empty", errors[1])
        self.assertEqual(reader.state, ReaderState.CLOSED)

    def make_serial_reader(self):
        factory = FakeSerialFactory()
        reader = TemperatureReader(
            comm=SerialCommunication(serial_factory=factory),
            timer_factory=manual_timer_factory(self.clock),
        )
        errors = []
        reader.register_callback(EventType.SERIAL_ERROR, errors.append)
        return reader, factory, errors

    def test_unhashable_option_values_become_error_events(self):
        reader, factory, errors = self.make_serial_reader()

        reader.initialize("/dev/ttyUSB0", {"data_bits": [8]})
        reader.initialize("/dev/ttyUSB0", {"parity": ["none"]})
        reader.initialize("/dev/ttyUSB0", {"stop_bits": {1: 1}})

        self.assertEqual(len(errors), 3)
        self.assertIn("Data bits", errors[0])
        self.assertIn("Parity", errors[1])
        self.assertIn("Stop bits", errors[2])
        self.assertEqual(factory.opened, [])
        self.assertEqual(reader.state, ReaderState.CLOSED)

    def test_non_mapping_options_become_error_events(self):
        reader, factory, errors = self.make_serial_reader()

        for options in (5, "baud_rate=9600", [("baud_rate", 9600)]):
            with self.subTest(options=options):
                errors.clear()
                reader.initialize("/dev/ttyUSB0", options)
                self.assertEqual(len(errors), 1)
                self.assertIn("mapping", errors[0])

        self.assertEqual(factory.opened, [])

    def test_bad_options_after_open_close_previous_port(self):
        reader, factory, errors = self.make_serial_reader()
        reader.initialize("/dev/ttyUSB0")
        first = factory.last

        reader.initialize("/dev/ttyUSB0", {"data_bits": [8]})

        self.assertFalse(first.is_open)
        self.assertEqual(len(errors), 1)
        self.assertEqual(reader.state, ReaderState.CLOSED)

    def test_reinitialize_leaves_one_timer_and_one_connection(self):
        self.reader.initialize("/dev/ttyUSB0")
        self.reader.initialize("/dev/ttyUSB1")

        self.assertEqual(len(self.active_timers()), 1)
        self.assertIs(self.active_timers()[0], self.timer)
        self.assertEqual(self.comm.open_ports, ["/dev/ttyUSB1"])
        self.assertEqual(self.opened, ["/dev/ttyUSB0", "/dev/ttyUSB1"])

        # Teardown of the first connection precedes the second open
        kinds = [event[0] for event in self.comm.events]
        self.assertEqual(kinds, ["connect", "rts", "write", "disconnect",
                                 "connect", "rts", "write"])

    def test_reinitialize_does_not_duplicate_poll_writes(self):
        self.reader.initialize("/dev/ttyUSB0")
        self.reader.initialize("/dev/ttyUSB0")
        self.comm.written.clear()

        self.clock.advance(0.525)
        for timer in ManualPollTimer.instances:
            timer.fire_due(self.clock())

        self.assertEqual(self.comm.written, [POLL])

    def test_reinitialize_after_failure_recovers(self):
        self.comm.connect_error = CommunicationError("busy")
        self.reader.initialize("/dev/ttyUSB0")
        self.comm.connect_error = None
        self.reader.initialize("/dev/ttyUSB0")

        self.assertEqual(self.errors, ["busy"])
        self.assertEqual(self.opened, ["/dev/ttyUSB0"])
        self.assertEqual(self.reader.state, ReaderState.POLLING)

class PollingTests(ReaderTestCase):
    """Tests for the poll cadence."""

    def test_poll_cadence(self):
        self.reader.initialize("/dev/ttyUSB0")
        self.assertEqual(self.comm.written, [POLL])

        self.timer.advance(0.523)
        self.assertEqual(len(self.comm.written), 1)

        self.timer.advance(0.002)
        self.assertEqual(len(self.comm.written), 2)

        self.timer.advance(0.524 * 3)
        self.assertEqual(len(self.comm.written), 5)
        self.assertEqual(set(self.comm.written), {POLL})

    def test_stop_halts_writes_but_keeps_port_open(self):
        self.reader.initialize("/dev/ttyUSB0")
        self.timer.advance(1.1)
        self.assertEqual(len(self.comm.written), 3)

        self.reader.stop_temperature_reading()
        self.timer.advance(5.0)

        self.assertEqual(len(self.comm.written), 3)
        self.assertEqual(self.active_timers(), [])
        self.assertTrue(self.comm.is_open())
        self.assertEqual(self.reader.state, ReaderState.OPEN_IDLE)

    def test_stop_without_timer_is_noop(self):
        self.reader.stop_temperature_reading()
        self.assertEqual(self.reader.state, ReaderState.CLOSED)

    def test_ticks_do_not_wait_for_responses(self):
        """Every tick writes, whether or not the previous poll was answered."""
        self.reader.initialize("/dev/ttyUSB0")
        self.timer.advance(0.524 * 4 + 0.01)
        self.assertEqual(len(self.comm.written), 5)
        self.assertEqual(self.readings, [])

    def test_write_failure_becomes_error_event_and_polling_continues(self):
        self.reader.initialize("/dev/ttyUSB0")
        self.comm.write_error = DeviceDisconnectedError("Error sending data: write failed")

        self.timer.advance(0.525)

        self.assertEqual(self.errors, ["Error sending data: write failed"])
        self.assertEqual(self.reader.state, ReaderState.POLLING)

    def test_close_stops_polling_and_closes_port(self):
        self.reader.initialize("/dev/ttyUSB0")
        self.reader.close()

        self.assertEqual(self.active_timers(), [])
        self.assertFalse(self.comm.is_open())
        self.assertEqual(self.reader.state, ReaderState.CLOSED)

class DataTests(ReaderTestCase):
    """Tests for turning received bytes into reading events."""

    def setUp(self):
        super().setUp()
        self.reader.initialize("/dev/ttyUSB0")

    def test_single_chunk_and_split_chunks_give_same_readings(self):
        payload = b"23.5C\r\n-1.0F\r\n"
        expected = [Reading(23.5, "C"), Reading(-1.0, "F")]

        self.comm.deliver(payload)
        self.assertEqual(self.readings, expected)

        for first in range(1, len(payload)):
            for second in range(first, len(payload)):
                with self.subTest(split=(first, second)):
                    self.readings.clear()
                    self.comm.deliver(payload[:first])
                    self.comm.deliver(payload[first:second])
                    self.comm.deliver(payload[second:])
                    self.assertEqual(self.readings, expected)

    def test_echo_and_prompt_produce_nothing(self):
        self.comm.deliver(b">\r\n")
        self.comm.deliver(b"T\r\n")
        self.assertEqual(self.readings, [])
        self.assertEqual(self.errors, [])

    def test_partial_line_emits_once(self):
        self.comm.deliver(b"12.3")
        self.assertEqual(self.readings, [])
        self.comm.deliver(b"4C\r\n")
        self.assertEqual(self.readings, [Reading(12.34, "C")])

    def test_missing_unit_defaults_to_empty(self):
        self.comm.deliver(b"36.6\r\n")
        self.assertEqual(self.readings, [Reading(36.6, "")])

    def test_malformed_lines_are_dropped_silently(self):
        self.comm.deliver(b"abc\r\n12\r\n")
        self.assertEqual(self.readings, [])
        self.assertEqual(self.errors, [])

    def test_mixed_stream(self):
        self.comm.deliver(b"T\r\n 98.6 F\r\n>\r\nE01\r\n-0.5\r")
        self.comm.deliver(b"\n")
        self.assertEqual(self.readings, [Reading(98.6, "F"), Reading(-0.5, "")])

    def test_reading_payload_is_reading(self):
        self.comm.deliver(b"20.25C\r\n")
        reading = self.readings[0]
        self.assertIsInstance(reading, Reading)
        self.assertEqual(reading.as_dict(), {"temperature_value": 20.25, "unit": "C"})

    def test_failing_callback_does_not_block_others(self):
        seen = []
        self.reader.unregister_callback(EventType.READING, self.readings.append)
        self.reader.register_callback(EventType.READING, mock.Mock(side_effect=RuntimeError("boom")))
        self.reader.register_callback(EventType.READING, seen.append)

        self.comm.deliver(b"1.0C\r\n2.0C\r\n")

        self.assertEqual(seen, [Reading(1.0, "C"), Reading(2.0, "C")])

class ErrorEventTests(ReaderTestCase):
    """Tests for transport errors after the port is open."""

    def test_error_keeps_connection_and_timer(self):
        self.reader.initialize("/dev/ttyUSB0")
        self.comm.fail("device disconnected")

        self.assertEqual(self.errors, ["device disconnected"])
        self.assertTrue(self.comm.is_open())
        self.assertEqual(self.reader.state, ReaderState.POLLING)

        self.timer.advance(0.525)
        self.assertEqual(len(self.comm.written), 2)

class CallbackRegistrationTests(ReaderTestCase):
    """Tests for registering and removing callbacks."""

    def test_unknown_event_type(self):
        with self.assertRaises(ValueError):
            self.reader.register_callback("temperature", print)

    def test_duplicate_registration_is_ignored(self):
        self.reader.register_callback(EventType.READING, self.readings.append)
        self.reader.initialize("/dev/ttyUSB0")
        self.comm.deliver(b"1.0C\r\n")
        self.assertEqual(len(self.readings), 1)

    def test_unregister(self):
        self.assertTrue(self.reader.unregister_callback(EventType.READING, self.readings.append))
        self.assertFalse(self.reader.unregister_callback(EventType.READING, self.readings.append))
        self.reader.initialize("/dev/ttyUSB0")
        self.comm.deliver(b"1.0C\r\n")
        self.assertEqual(self.readings, [])

class ListPortsTests(unittest.TestCase):
    """Tests for port discovery."""

    def test_returns_port_names(self):
        ports = [SimpleNamespace(device="/dev/ttyUSB0"), SimpleNamespace(device="COM4")]
        with mock.patch("serial.tools.list_ports.comports", return_value=ports):
            self.assertEqual(TemperatureReader.list_available_ports(), ["/dev/ttyUSB0", "COM4"])

    def test_enumeration_failure_returns_empty_list(self):
        with mock.patch("serial.tools.list_ports.comports", side_effect=OSError("no sysfs")):
            with self.assertLogs("hh42.hardware.hh42", level="ERROR"):
                self.assertEqual(TemperatureReader.list_available_ports(), [])

class SerialIntegrationTests(unittest.TestCase):
    """End to end through SerialCommunication and an in-memory port."""

    def setUp(self):
        ManualPollTimer.instances = []
        self.factory = FakeSerialFactory()
        self.reader = TemperatureReader(
            comm=SerialCommunication(serial_factory=self.factory),
            timer_factory=manual_timer_factory(FakeClock()),
        )
        self.readings = []
        self.reader.register_callback(EventType.READING, self.readings.append)

    def tearDown(self):
        self.reader.close()

    def test_open_sets_rts_and_reads_from_port(self):
        self.reader.initialize("/dev/ttyUSB0")
        port = self.factory.last

        self.assertTrue(port.rts)
        self.assertEqual(port.written, [POLL])

        port.feed(b"T\r\n21.5C\r\n")
        deadline = time.monotonic() + 2.0
        while not self.readings and time.monotonic() < deadline:
            time.sleep(0.005)
        self.assertEqual(self.readings, [Reading(21.5, "C")])

    def test_reinitialize_closes_previous_port(self):
        self.reader.initialize("/dev/ttyUSB0")
        first = self.factory.last
        self.reader.initialize("/dev/ttyUSB1")

        self.assertFalse(first.is_open)
        self.assertTrue(self.factory.last.is_open)

    def test_open_failure_from_pyserial(self):
        factory = FakeSerialFactory(error=serial.SerialException("[Errno 16] Device or resource busy"))
        reader = TemperatureReader(comm=SerialCommunication(serial_factory=factory))
        errors = []
        reader.register_callback(EventType.SERIAL_ERROR, errors.append)

        reader.initialize("/dev/ttyUSB0")

        self.assertEqual(len(errors), 1)
        self.assertIn("Device or resource busy", errors[0])
        self.assertEqual(reader.state, ReaderState.CLOSED)

if __name__ == "__main__":
    unittest.main()
