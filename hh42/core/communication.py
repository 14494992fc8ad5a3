"""
Handles low-level serial communication with the HH42 thermometer.
"""
import serial
import serial.tools.list_ports
import time
import threading
from typing import Dict, List, Any, Optional, Callable, Mapping

from hh42.config import settings
from hh42.utils.logging import get_logger
from hh42.core.exceptions import (
    CommunicationError, DeviceDisconnectedError, ConfigurationError
)

# Initialize module logger
logger = get_logger(__name__)

DATA_BITS = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}

STOP_BITS = {
    1: serial.STOPBITS_ONE,
    2: serial.STOPBITS_TWO,
}

PARITIES = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
    "mark": serial.PARITY_MARK,
    "space": serial.PARITY_SPACE,
}

OPTION_KEYS = ("baud_rate", "data_bits", "stop_bits", "parity")

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)

def resolve_options(options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Resolve port options into pyserial keyword arguments.

    Missing or empty options fall back to the configured defaults.

    Args:
        options: Mapping with any of baud_rate, data_bits, stop_bits, parity

    Returns:
        Dict: Keyword arguments for serial.Serial

    Raises:
        ConfigurationError: If an option is unknown or out of range
    """
    if options is None:
        options = {}
    elif not isinstance(options, Mapping):
        raise ConfigurationError(f"Serial options must be a mapping, got {type(options).__name__}")

    unknown = set(options) - set(OPTION_KEYS)
    if unknown:
        names = sorted(str(key) for key in unknown)
        raise ConfigurationError(f"Unknown serial options: {', '.join(names)}")

    baud_rate = options.get("baud_rate") or settings.DEFAULT_BAUDRATE
    data_bits = options.get("data_bits") or settings.DEFAULT_DATA_BITS
    stop_bits = options.get("stop_bits") or settings.DEFAULT_STOP_BITS
    parity = options.get("parity") or settings.DEFAULT_PARITY

    if not _is_int(baud_rate) or baud_rate <= 0:
        raise ConfigurationError(f"Baud rate must be a positive integer, got {baud_rate!r}")
    if not _is_int(data_bits) or data_bits not in DATA_BITS:
        raise ConfigurationError(f"Data bits must be one of 5, 6, 7, 8, got {data_bits!r}")
    if not _is_int(stop_bits) or stop_bits not in STOP_BITS:
        raise ConfigurationError(f"Stop bits must be 1 or 2, got {stop_bits!r}")
    if not isinstance(parity, str) or parity not in PARITIES:
        raise ConfigurationError(
            f"Parity must be one of {', '.join(PARITIES)}, got {parity!r}"
        )

    return {
        "baudrate": baud_rate,
        "bytesize": DATA_BITS[data_bits],
        "stopbits": STOP_BITS[stop_bits],
        "parity": PARITIES[parity],
    }

class SerialCommunication:
    """
    Handles low-level serial communication with the thermometer.

    This class owns at most one serial connection and a background thread
    that hands raw received chunks to the registered data callback.
    """

    def __init__(self, serial_factory: Optional[Callable[..., Any]] = None):
        """
        Initialize the serial communication handler.

        Args:
            serial_factory: Callable opening a port, defaults to serial.Serial
        """
        self._serial_factory = serial_factory or serial.Serial
        self._port = None
        self._serial = None
        self._reading_thread = None
        self._stop_event = threading.Event()
        self._data_callback = None
        self._error_callback = None
        self._lock = threading.Lock()

    @staticmethod
    def list_available_ports() -> List[str]:
        """
        List all available serial ports.

        Returns:
            List[str]: List of available serial port names
        """
        return [port.device for port in serial.tools.list_ports.comports()]

    @property
    def port(self) -> Optional[str]:
        return self._port

    def connect(self, port: str, options: Optional[Dict[str, Any]] = None) -> None:
        """
        Open the serial port and start the reading thread.

        Any open connection is fully closed first.

        Args:
            port: Serial port to connect to
            options: Serial options, see resolve_options

        Raises:
            ConfigurationError: If the port name or options are invalid
            CommunicationError: If the port cannot be opened
        """
        if self._serial is not None:
            self.disconnect()

        if not isinstance(port, str) or not port:
            raise ConfigurationError("Port name must be a non-empty string")

        serial_kwargs = resolve_options(options)

        logger.debug("Connecting to %s at %d baud", port, serial_kwargs["baudrate"])

        try:
            self._serial = self._serial_factory(
                port=port,
                timeout=settings.SERIAL_TIMEOUT,
                **serial_kwargs
            )
        except (serial.SerialException, OSError, ValueError) as e:
            logger.error("Failed to connect to %s: %s", port, str(e))
            raise CommunicationError(f"Connection failed: {str(e)}") from e

        self._port = port

        self._stop_event.clear()
        self._reading_thread = threading.Thread(
            target=self._read_thread,
            args=(self._serial,),
            name="HH42SerialRead",
            daemon=True
        )
        self._reading_thread.start()

        logger.info("Connected to %s at %d baud", port, serial_kwargs["baudrate"])

    def disconnect(self) -> None:
        """
        Stop the reading thread and close the port.

        Returns only once the port is closed.
        """
        logger.debug("Disconnecting from %s", self._port)

        if self._reading_thread and self._reading_thread.is_alive():
            self._stop_event.set()
            if self._reading_thread is not threading.current_thread():
                self._reading_thread.join(timeout=settings.THREAD_JOIN_TIMEOUT)

        if self._serial is not None and self._serial.is_open:
            try:
                self._serial.close()
            except (serial.SerialException, OSError) as e:
                logger.warning("Error closing serial port: %s", str(e))

        port = self._port
        self._serial = None
        self._reading_thread = None
        self._port = None

        if port:
            logger.info("Disconnected from %s", port)

    def is_open(self) -> bool:
        """
        Check if the port is currently open.

        Returns:
            bool: True if open
        """
        return self._serial is not None and self._serial.is_open

    def set_rts(self, level: bool = True) -> None:
        """
        Drive the RTS control line.

        Args:
            level: True to assert RTS

        Raises:
            DeviceDisconnectedError: If the port is not open
        """
        if not self.is_open():
            raise DeviceDisconnectedError("Serial port is not open")

        try:
            self._serial.rts = level
            logger.debug("RTS set to %s", level)
        except (serial.SerialException, OSError) as e:
            raise CommunicationError(f"Error setting RTS: {str(e)}") from e

    def send_data(self, data: bytes) -> None:
        """
        Send raw bytes to the device.

        Args:
            data: Data to send

        Raises:
            DeviceDisconnectedError: If the port is not open or the write fails
        """
        if not self.is_open():
            raise DeviceDisconnectedError("Serial port is not open")

        with self._lock:
            try:
                self._serial.write(data)
                self._serial.flush()
                logger.debug("Sent data: %r", data)
            except (serial.SerialException, OSError) as e:
                logger.error("Error sending data: %s", str(e))
                raise DeviceDisconnectedError(f"Error sending data: {str(e)}") from e

    def register_data_callback(self, callback: Callable[[bytes], None]) -> None:
        """
        Register a callback for incoming data.

        Args:
            callback: Function to call with each received chunk
        """
        self._data_callback = callback

    def register_error_callback(self, callback: Callable[[Exception], None]) -> None:
        """
        Register a callback for read errors.

        Args:
            callback: Function to call with the exception
        """
        self._error_callback = callback

    def _read_thread(self, port: Any) -> None:
        """
        Background thread that reads data from the serial port.

        Args:
            port: The serial handle this thread was started for
        """
        logger.debug("Serial read thread started")

        while not self._stop_event.is_set():
            if not port.is_open:
                logger.warning("Serial port closed unexpectedly")
                break

            try:
                waiting = port.in_waiting
                if waiting > 0:
                    self._dispatch_data(port.read(waiting))
                else:
                    time.sleep(settings.READ_IDLE_SLEEP)
            except (serial.SerialException, OSError) as e:
                logger.error("Serial read error: %s", str(e))
                self._dispatch_error(e)
                break

        logger.debug("Serial read thread stopped")

    def _dispatch_data(self, data: bytes) -> None:
        if not data or self._data_callback is None:
            return
        try:
            self._data_callback(data)
        except Exception as e:
            logger.error("Error in data callback: %s", str(e), exc_info=True)

    def _dispatch_error(self, error: Exception) -> None:
        if self._error_callback is None:
            return
        try:
            self._error_callback(error)
        except Exception as e:
            logger.error("Error in error callback: %s", str(e), exc_info=True)
