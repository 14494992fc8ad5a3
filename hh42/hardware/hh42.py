from typing import Any, Callable, Dict, List, Optional
import threading

from hh42.utils.logging import get_logger, PortLoggerAdapter
from hh42.core.exceptions import HH42Error
from hh42.core.communication import SerialCommunication
from hh42.core.protocol import (
    Protocol, LineBuffer, LineKind, POLL_COMMAND, POLL_INTERVAL_SECONDS
)
from hh42.core.timer import PollTimer

# Initialize module logger
logger = get_logger(__name__)

class EventType:
    """Events emitted by the reader."""
    PORT_OPENED = "port_opened"    # Payload: port name
    SERIAL_ERROR = "serial_error"  # Payload: error message
    READING = "reading"            # Payload: Reading

class ReaderState:
    """Lifecycle states of a reader."""
    CLOSED = "closed"
    OPEN_IDLE = "open_idle"
    POLLING = "polling"

class TemperatureReader:
    """
    Polls an HH42 digital thermometer and emits parsed readings.

    Once a port is open the reader asserts RTS to put the thermometer in
    host mode, then requests a reading every 524 ms. Each line the device
    sends back is parsed; readings are delivered to the callbacks
    registered for EventType.READING and everything else is dropped.

    Errors are never raised to the caller. They are logged and delivered
    to the EventType.SERIAL_ERROR callbacks, and recovery is done by
    calling initialize() again.
    """

    def __init__(self, comm: Optional[SerialCommunication] = None,
                 timer_factory: Callable[..., PollTimer] = PollTimer):
        """
        Initialize the reader.

        Args:
            comm: Serial communication handler, a new one if not given
            timer_factory: Callable building the poll timer from
                (interval_seconds, callback)
        """
        self._comm = comm or SerialCommunication()
        self._comm.register_data_callback(self._on_data_received)
        self._comm.register_error_callback(self._on_serial_error)

        self._timer_factory = timer_factory
        self._poll_timer: Optional[PollTimer] = None
        self._buffer = LineBuffer()
        self._port_name: Optional[str] = None
        self._log = PortLoggerAdapter(logger.logger)

        self._callbacks: Dict[str, List[Callable[[Any], None]]] = {
            EventType.PORT_OPENED: [],
            EventType.SERIAL_ERROR: [],
            EventType.READING: [],
        }
        self._callback_lock = threading.Lock()

    @property
    def port_name(self) -> Optional[str]:
        return self._port_name

    @property
    def state(self) -> str:
        """Current lifecycle state, one of ReaderState."""
        if not self._comm.is_open():
            return ReaderState.CLOSED
        if self._poll_timer is not None and self._poll_timer.is_active:
            return ReaderState.POLLING
        return ReaderState.OPEN_IDLE

    def register_callback(self, event_type: str, callback: Callable[[Any], None]) -> None:
        """
        Register a callback for reader events.

        Args:
            event_type: One of the EventType values
            callback: Function called with the event payload

        Raises:
            ValueError: If the event type is unknown
        """
        if event_type not in self._callbacks:
            raise ValueError(f"Unknown event type: {event_type}")

        with self._callback_lock:
            if callback not in self._callbacks[event_type]:
                self._callbacks[event_type].append(callback)

    def unregister_callback(self, event_type: str, callback: Callable[[Any], None]) -> bool:
        """
        Unregister an event callback.

        Returns:
            bool: True if callback was removed
        """
        with self._callback_lock:
            callbacks = self._callbacks.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)
                return True
        return False

    def initialize(self, port_name: str, options: Optional[Dict[str, Any]] = None) -> None:
        """
        Open the thermometer port, replacing any previous connection.

        Polling stops and the previous port is closed before the new one
        is opened. Failures are reported through EventType.SERIAL_ERROR.

        Args:
            port_name: Serial port the thermometer is attached to
            options: Optional baud_rate, data_bits, stop_bits and parity
        """
        self.stop_temperature_reading()
        if self._comm.is_open():
            self._comm.disconnect()

        self._port_name = port_name
        self._log.set_port(port_name)

        try:
            self._comm.connect(port_name, options)
        except HH42Error as e:
            self._on_serial_error(e)
            return

        self._on_port_opened(port_name)

    def stop_temperature_reading(self) -> None:
        """Stop polling the thermometer. The port stays open."""
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
            self._log.debug("Temperature polling stopped")

    def close(self) -> None:
        """Stop polling and close the port."""
        self.stop_temperature_reading()
        self._comm.disconnect()

    @staticmethod
    def list_available_ports() -> List[str]:
        """
        Get a list of available serial ports.

        Returns:
            List[str]: Port names, empty if the ports cannot be enumerated
        """
        try:
            return SerialCommunication.list_available_ports()
        except Exception as e:
            logger.error("Error getting available ports: %s", str(e), exc_info=True)
            return []

    def _on_port_opened(self, port_name: str) -> None:
        self._log.info("Port opened successfully")

        try:
            self._enter_host_mode()
        except HH42Error as e:
            self._on_serial_error(e)

        self._request_temperature_reading()
        self._emit(EventType.PORT_OPENED, port_name)

    def _enter_host_mode(self) -> None:
        if self._comm.is_open():
            self._comm.set_rts(True)

    def _request_temperature_reading(self) -> None:
        if not self._comm.is_open():
            return

        self._send_poll_command()
        self._poll_timer = self._timer_factory(POLL_INTERVAL_SECONDS, self._send_poll_command)
        self._poll_timer.start()
        self._log.debug("Temperature polling started every %.3f s", POLL_INTERVAL_SECONDS)

    def _send_poll_command(self) -> None:
        try:
            self._comm.send_data(POLL_COMMAND)
        except HH42Error as e:
            self._on_serial_error(e)

    def _on_data_received(self, data: bytes) -> None:
        """
        Handle a chunk received from the thermometer.

        Lines completed by the chunk are emitted left to right.
        """
        for line in self._buffer.feed(data):
            result = Protocol.parse_line(line)
            if result.kind == LineKind.READING:
                self._emit(EventType.READING, result.reading)
            elif result.kind == LineKind.UNRECOGNIZED:
                self._log.debug("Unrecognized line: %r", result.line)

    def _on_serial_error(self, error: Exception) -> None:
        self._log.error("Serial port error: %s", str(error))
        self._emit(EventType.SERIAL_ERROR, str(error))

    def _emit(self, event_type: str, payload: Any) -> None:
        with self._callback_lock:
            callbacks = list(self._callbacks[event_type])

        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                self._log.error("Error in %s callback: %s", event_type, str(e), exc_info=True)
