import logging
import sys
from pathlib import Path
from datetime import datetime
import logging.handlers
import os
import threading
from typing import Optional

from hh42.config import settings

class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds contextual information to log records.
    
    Every record gets the thread name and process ID, plus the serial
    port when one is known.
    """
    def process(self, msg, kwargs):
        extra = dict(self.extra or {})
        extra.update(kwargs.get('extra', {}))

        # Ensure port exists so formats referencing it never fail
        extra.setdefault('port', 'none')
        
        # Read and poll threads log alongside the caller's thread
        extra.setdefault('thread_name', threading.current_thread().name)
        extra.setdefault('process_id', os.getpid())
        
        kwargs['extra'] = extra
        return msg, kwargs

class PortLoggerAdapter(LoggerAdapter):
    """
    Logger adapter bound to a specific serial port.
    """
    def __init__(self, logger, port=None):
        super().__init__(logger, {'port': port or 'none'})
    
    def set_port(self, port):
        """Update the port reported by this logger."""
        self.extra['port'] = port or 'none'

class ColoredFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to console output.
    """
    COLORS = {
        'DEBUG': '\033[94m',     # Blue
        'INFO': '\033[92m',      # Green
        'WARNING': '\033[93m',   # Yellow
        'ERROR': '\033[91m',     # Red
        'CRITICAL': '\033[91m\033[1m',  # Bold Red
        'RESET': '\033[0m'       # Reset
    }

    def __init__(self, *args, is_console=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.is_console = is_console
    
    def format(self, record):
        if not self.is_console or record.levelname not in self.COLORS:
            return super().format(record)
        # Color a copy so file handlers sharing the record stay plain
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.COLORS['RESET']}"
        return super().format(colored)

def _get_detailed_formatter(for_console=False):
    """Create a detailed formatter for logs, optionally with colors."""
    fmt = settings.LOG_FORMAT
    
    if 'port' in settings.get('LOG_FORMAT_EXTRAS', []):
        fmt = "%(asctime)s - [%(port)s] - %(name)s - %(levelname)s - %(message)s"
    
    return ColoredFormatter(fmt, datefmt='%Y-%m-%d %H:%M:%S', is_console=for_console)

def setup_logging() -> logging.Logger:
    """
    Set up structured logging for the application.
    
    Returns:
        logging.Logger: Configured application logger
    """
    level_name = str(settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    
    log_dir = Path(settings.LOG_DIR)
    
    # Fall back to the working directory if the log directory is unusable
    if settings.LOG_TO_FILE:
        try:
            log_dir.mkdir(exist_ok=True, parents=True)
        except OSError as e:
            print(f"Warning: Error creating log directory: {str(e)}. Using current directory.")
            log_dir = Path('.')
    
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    
    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    
    handlers = []
    
    if settings.LOG_TO_CONSOLE:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(_get_detailed_formatter(for_console=True))
        handlers.append(console_handler)
    
    if settings.LOG_TO_FILE:
        try:
            log_file = log_dir / f"hh42_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.handlers.TimedRotatingFileHandler(
                log_file, when='midnight', backupCount=7, encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_formatter = _get_detailed_formatter(for_console=False)
            file_handler.setFormatter(file_formatter)
            handlers.append(file_handler)
            
            # Separate file for warnings and above
            error_log_file = log_dir / f"hh42_errors_{datetime.now().strftime('%Y%m%d')}.log"
            error_handler = logging.handlers.TimedRotatingFileHandler(
                error_log_file, when='midnight', backupCount=7, encoding='utf-8'
            )
            error_handler.setLevel(logging.WARNING)
            error_handler.setFormatter(file_formatter)
            handlers.append(error_handler)
            
        except OSError as e:
            print(f"Warning: Could not set up file logging: {str(e)}. Using console logging only.")
    
    for handler in handlers:
        root_logger.addHandler(handler)
    
    logger = logging.getLogger("hh42")
    logger.debug("Logging initialized. Log directory: %s", log_dir)
    
    def exception_handler(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
            extra={'port': 'uncaught_exception'}
        )
    
    sys.excepthook = exception_handler
    
    return logger

def get_logger(name: str, port: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger with the specified name and optional port context.
    
    Args:
        name: Logger name, typically module name
        port: Optional serial port the messages relate to
        
    Returns:
        LoggerAdapter: Configured logger adapter with contextual information
    """
    logger = logging.getLogger(name)
    
    if port:
        return PortLoggerAdapter(logger, port)
    return LoggerAdapter(logger, {})
