import logging
import sys
from typing import Optional, TextIO

# Custom levels layered on top of the stdlib ones
TRACE_LEVEL = 5
PROGRESS_LEVEL = 22
SUCCESS_LEVEL = 25
NOTICE_LEVEL = 35
FAILURE_LEVEL = 45

for _level, _name in (
    (TRACE_LEVEL, "TRACE"),
    (PROGRESS_LEVEL, "PROGRESS"),
    (SUCCESS_LEVEL, "SUCCESS"),
    (NOTICE_LEVEL, "NOTICE"),
    (FAILURE_LEVEL, "FAILURE"),
):
    logging.addLevelName(_level, _name)


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps each record in an ANSI color picked by level name."""

    COLORS = {
        "TRACE": "\033[90m",
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "PROGRESS": "\033[94m",
        "SUCCESS": "\033[92m",
        "WARNING": "\033[33m",
        "NOTICE": "\033[96m",
        "ERROR": "\033[31m",
        "FAILURE": "\033[91m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        stream: Optional[TextIO] = None,
    ):
        super().__init__(fmt, datefmt)
        self._stream = stream if stream is not None else sys.stderr

    def _use_color(self) -> bool:
        isatty = getattr(self._stream, "isatty", None)
        return bool(isatty and isatty())

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self._use_color():
            return message
        color = self.COLORS.get(record.levelname, "")
        return f"{color}{message}{self.RESET}"


def setup_colored_logging(
    level: int = logging.INFO, stream: Optional[TextIO] = None
) -> None:
    """
    Install a single colored console handler on the root logger.

    Args:
        level: Root logging level (default: logging.INFO)
        stream: Output stream (default: sys.stderr)
    """
    stream = stream if stream is not None else sys.stderr
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        ColoredFormatter(
            fmt="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            stream=stream,
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)


class EnhancedLogger:
    """Logger wrapper exposing the custom levels as methods."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def trace(self, msg, *args, **kwargs):
        """Very detailed diagnostics (per-entry archive writes)."""
        self._logger.log(TRACE_LEVEL, msg, *args, **kwargs)

    def progress(self, msg, *args, **kwargs):
        """Periodic progress updates during long loops."""
        self._logger.log(PROGRESS_LEVEL, msg, *args, **kwargs)

    def success(self, msg, *args, **kwargs):
        self._logger.log(SUCCESS_LEVEL, msg, *args, **kwargs)

    def notice(self, msg, *args, **kwargs):
        """Something the user should act on, but not an error."""
        self._logger.log(NOTICE_LEVEL, msg, *args, **kwargs)

    def failure(self, msg, *args, **kwargs):
        """An operation that did not complete."""
        self._logger.log(FAILURE_LEVEL, msg, *args, **kwargs)

    # debug/info/warning/error/critical/isEnabledFor come from the wrapped logger
    def __getattr__(self, name):
        return getattr(self._logger, name)


def get_colored_logger(name: str) -> EnhancedLogger:
    """
    Get a logger with the custom level methods.

    Args:
        name: Logger name (typically __name__)

    Returns:
        EnhancedLogger wrapping logging.getLogger(name)
    """
    return EnhancedLogger(logging.getLogger(name))
