# ollachat/logging_config.py
from __future__ import annotations
import logging, logging.handlers, sys, traceback
from datetime import datetime
from pathlib import Path
from .constants import DEFAULT_LOG_MAX_BYTES, DEFAULT_LOG_BACKUP_COUNT, DEFAULT_LOG_FILENAME

# Third-party loggers that chatter at INFO during every request.
QUIET_LOGGERS = ("urllib3", "requests", "PIL")

_LEVEL_COLORS = {
    logging.DEBUG: "\x1b[36m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[41m",
}


def _level(name: str | None, default: int = logging.INFO) -> int:
    value = logging.getLevelName((name or "").upper())
    return value if isinstance(value, int) else default


class _ConsoleFormatter(logging.Formatter):
    """Short one-line records for stderr; colored only on a terminal."""

    def __init__(self, stream):
        super().__init__()
        self._color = hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {record.levelname[0]} {record.name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        if not self._color:
            return line
        return f"{_LEVEL_COLORS.get(record.levelno, '')}{line}\x1b[0m"


def init_logging(log_dir: Path, level: str = "INFO", log_name: str = DEFAULT_LOG_FILENAME,
                 max_bytes: int = DEFAULT_LOG_MAX_BYTES, backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
                 also_console: bool = True, console_level: str = "WARNING") -> Path:
    """
    Route every logger to a rotating file under log_dir and, optionally,
    to stderr. stdout is left to the chat itself so streamed replies are
    never interleaved with log lines.

    Calling it again replaces the handlers from the previous call.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / log_name
    file_level = _level(level)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.setLevel(file_level)

    fh = logging.handlers.RotatingFileHandler(str(log_path), maxBytes=max_bytes, backupCount=backup_count,
                                              encoding="utf-8", delay=True)
    fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s",
                                      "%Y-%m-%d %H:%M:%S"))
    fh.setLevel(file_level)
    root.addHandler(fh)

    if also_console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setFormatter(_ConsoleFormatter(sys.stderr))
        ch.setLevel(max(file_level, _level(console_level, logging.WARNING)))
        root.addHandler(ch)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    install_excepthook()
    logging.getLogger(__name__).info("Logging initialized → %s", log_path)
    return log_path


def install_excepthook():
    """Log uncaught exceptions and print a one-line FATAL summary; Ctrl+C keeps its default exit."""
    def _hook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logging.getLogger("uncaught").error("Uncaught exception", exc_info=(exc_type, exc, tb))
        msg = "".join(traceback.format_exception_only(exc_type, exc)).strip()
        sys.stderr.write(f"\nFATAL: {msg}\n")
        sys.stderr.flush()
    sys.excepthook = _hook
