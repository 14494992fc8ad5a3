import sys
import argparse
import threading

from hh42.config import settings
from hh42.utils.logging import setup_logging, get_logger
from hh42.hardware.hh42 import TemperatureReader, EventType

def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='HH42 Thermometer Reader')

    # Configuration options
    parser.add_argument('--profile', help='Configuration profile to load')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    # Connection options
    parser.add_argument('--list-ports', action='store_true',
                        help='List available serial ports and exit')
    parser.add_argument('--port', help='Serial port the thermometer is attached to')
    parser.add_argument('--baudrate', type=int, help='Serial baudrate')
    parser.add_argument('--data-bits', type=int, choices=[5, 6, 7, 8], help='Data bits')
    parser.add_argument('--stop-bits', type=int, choices=[1, 2], help='Stop bits')
    parser.add_argument('--parity', choices=['none', 'even', 'odd', 'mark', 'space'],
                        help='Parity')

    parser.add_argument('--duration', type=float,
                        help='Stop after this many seconds (default: run until interrupted)')

    return parser.parse_args(argv)

def apply_command_line_settings(args):
    """Apply command line arguments to settings."""
    # Load the profile first so explicit flags win over it
    if args.profile:
        if not settings.load_profile(args.profile):
            print(f"Warning: Could not load profile '{args.profile}'")

    if args.debug:
        settings.update({"DEBUG": True, "LOG_LEVEL": "DEBUG"})

    if args.port:
        settings.update({"DEFAULT_PORT": args.port})

def serial_options_from_args(args):
    """Build reader options from command line arguments."""
    return {
        "baud_rate": args.baudrate,
        "data_bits": args.data_bits,
        "stop_bits": args.stop_bits,
        "parity": args.parity,
    }

def run_reader(port, options, duration=None):
    """
    Poll the thermometer and print readings until stopped.

    Returns:
        int: Exit code
    """
    logger = get_logger("main", port=port)
    reader = TemperatureReader()
    stop_event = threading.Event()

    def on_reading(reading):
        unit = f" {reading.unit}" if reading.unit else ""
        print(f"{reading.value:.2f}{unit}", flush=True)

    def on_error(message):
        print(f"Error: {message}", file=sys.stderr, flush=True)

    reader.register_callback(EventType.READING, on_reading)
    reader.register_callback(EventType.SERIAL_ERROR, on_error)
    reader.register_callback(
        EventType.PORT_OPENED, lambda name: logger.info("Reading temperatures from %s", name)
    )

    reader.initialize(port, options)

    try:
        stop_event.wait(duration)
    except KeyboardInterrupt:
        logger.info("Reader terminated by user")
    finally:
        reader.close()

    return 0

def main(argv=None):
    """Main entry point for the application."""
    args = parse_arguments(argv)
    apply_command_line_settings(args)

    setup_logging()
    logger = get_logger("main")
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

    if settings.DEBUG:
        logger.debug("Current settings: %s", settings.as_dict())

    if args.list_ports:
        for port in TemperatureReader.list_available_ports():
            print(port)
        return 0

    port = settings.get("DEFAULT_PORT")
    if not port:
        logger.error("No port specified; use --port or set HH42_DEFAULT_PORT")
        return 1

    return run_reader(port, serial_options_from_args(args), args.duration)

if __name__ == "__main__":
    sys.exit(main())
