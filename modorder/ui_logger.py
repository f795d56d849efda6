import logging as _logging, sys
from typing import Callable, Dict, Optional

# Map log levels to color tags the front end understands
LOG_COLORS: Dict[str, str] = {
    "white": "white",
    "red": "#FF4444",  # errors/critical
    "green": "#44FF44",  # success info
    "yellow": "#FFFF00",  # warnings
    "blue": "#66B2FF",  # debug
}

DEFAULT_FORMAT = "%(levelname)s - %(filename)s:%(lineno)d - %(message)s"

# sink(message, color_tag)
UISink = Callable[[str, str], None]

# Module-level logger instance
_ui_logger: _logging.Logger = _logging.getLogger("UILogger")
_ui_logger.setLevel(_logging.DEBUG)  # Default level for the UI logger

# A flag to ensure handler is not added multiple times
_is_handler_setup: bool = False
_file_handler: Optional[_logging.FileHandler] = None


def color_tag(levelno: int) -> str:
    if levelno >= _logging.ERROR:
        return "red"
    if levelno >= _logging.WARNING:
        return "yellow"
    if levelno >= _logging.INFO:
        return "white"
    return "blue"


class CallbackHandler(_logging.Handler):
    """
    A logging handler that forwards formatted records to a front end sink.
    """

    _sink: Optional[UISink] = None

    @classmethod
    def set_sink(cls, sink: Optional[UISink]) -> None:
        """Sets the callable that receives (message, color_tag)."""
        cls._sink = sink

    def emit(self, record: _logging.LogRecord) -> None:
        if self._sink is None:
            # Fallback to console if no front end is attached
            _logging.StreamHandler().emit(record)
            return
        try:
            msg = self.format(record)
            self._sink(msg, color_tag(record.levelno))
        except Exception:
            self.handleError(record)


# Public functions for logging to the UI
def setup_ui_logging(sink: UISink) -> None:
    """
    Routes the UI logger to `sink`.
    Calling it again only swaps the sink.
    """
    global _is_handler_setup
    CallbackHandler.set_sink(sink)
    if not _is_handler_setup:
        handler = CallbackHandler()
        handler.setFormatter(_logging.Formatter(DEFAULT_FORMAT))
        _ui_logger.addHandler(handler)
        _ui_logger.propagate = False
        _is_handler_setup = True
        info("UI Logger initialized.")
    else:
        info("UI Logger already set up. Swapped sink.")


def teardown_ui_logging() -> None:
    """Detaches the front end sink and lets records propagate again."""
    global _is_handler_setup
    for handler in list(_ui_logger.handlers):
        if isinstance(handler, CallbackHandler):
            _ui_logger.removeHandler(handler)
    CallbackHandler.set_sink(None)
    _ui_logger.propagate = True
    _is_handler_setup = False


def setup_file_logging(path: str, level: int = _logging.DEBUG) -> _logging.FileHandler:
    """Mirrors the UI logger into `path`, replacing a previous log file."""
    global _file_handler
    stop_file_logging()
    handler = _logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_logging.Formatter("%(asctime)s " + DEFAULT_FORMAT))
    _ui_logger.addHandler(handler)
    _file_handler = handler
    return handler


def stop_file_logging() -> None:
    global _file_handler
    if _file_handler is not None:
        _ui_logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None


def debug(message: str, **kwargs) -> None:
    """Logs a debug message to the UI."""
    _ui_logger.debug(message, stacklevel=2, **kwargs)


def info(message: str, **kwargs) -> None:
    """Logs an informational message to the UI."""
    _ui_logger.info(message, stacklevel=2, **kwargs)


def warning(message: str, **kwargs) -> None:
    """Logs a warning message to the UI."""
    _ui_logger.warning(message, stacklevel=2, **kwargs)


def error(message: str, **kwargs) -> None:
    """Logs an error message to the UI."""
    _ui_logger.error(message, stacklevel=2, **kwargs)


def critical(message: str, **kwargs) -> None:
    """Logs a critical message to the UI."""
    _ui_logger.critical(message, stacklevel=2, **kwargs)


def exception(message: str, **kwargs) -> None:
    """Logs an exception to the UI."""
    _ui_logger.exception(message, stacklevel=2, **kwargs)


def basicConfig(
    level: int = _logging.DEBUG,
    format: str = "%(filename)s:%(lineno)d - %(message)s",  # options: asctime (timestamp), levelname (info,debug,...), name, filename, lineno, message
) -> None:
    """
    Configures the UI logger similar to logging.basicConfig.

    :param level: Log level (e.g., logging.DEBUG)
    :param format: Format string for log messages
    """
    if not _is_handler_setup:
        _logging.basicConfig(level=level, format=format)
        _ui_logger.setLevel(level)
    else:
        _ui_logger.setLevel(level)
        formatter = _logging.Formatter(format)

        for handler in _ui_logger.handlers:
            if isinstance(handler, CallbackHandler):
                handler.setFormatter(formatter)
                break


# Inject other attributes dynamically into the module namespace
_module = sys.modules[__name__]
for name in dir(_logging):
    if not hasattr(_module, name):  # Don't overwrite custom functions
        setattr(_module, name, getattr(_logging, name))
