"""
Logging configuration for worshipnote.

Every command run writes to:
    - the console (colored, printed through tqdm so batch checks keep
      their progress bar)
    - log_full_{ts}.log         every record, DEBUG and up
    - log_errors_{ts}.log       ERROR and CRITICAL only
    - unmatched_files_{ts}.log  sheets recovery could not link to a song
    - rename_failures_{ts}.log  sheet renames that failed, with the reason

The two report files only receive records carrying their `extra` fields;
use log_unmatched_file() and log_rename_failure() to produce them.

Log files live in {log_dir}/logs.

Usage:
    from worshipnote.core.logger import setup_logging, get_logger

    setup_logging(config.logging.directory)
    logger = get_logger(__name__)

    logger.info("Loading library")
    log_unmatched_file(logger, "old scan 3.jpg", reason="no candidate")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

import colorama
from colorama import Fore, Style
from tqdm import tqdm


# Log file name prefixes (created in log_dir/logs)
LOG_FULL_PREFIX = "log_full"
LOG_ERRORS_PREFIX = "log_errors"
UNMATCHED_FILES_PREFIX = "unmatched_files"
RENAME_FAILURES_PREFIX = "rename_failures"

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredConsoleFormatter(logging.Formatter):
    """Console formatter: "LEVEL: message" with the level name colored."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.BLUE,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Style.BRIGHT + Fore.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Fore.WHITE)
        colored_levelname = f"{color}{record.levelname}{Style.RESET_ALL}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """Console handler that prints above an active tqdm bar (check-sync)."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class ReportFileHandler(logging.Handler):
    """
    Base handler for report files fed by `extra` fields on log records.

    Subclasses set `marker_field` (records without it are ignored) and
    implement `format_entry()`.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle (None until open() is called).
    """

    marker_field = ""

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def format_entry(self, record: logging.LogRecord) -> str:
        raise NotImplementedError

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.marker_field):
            return

        if self.report_file is None:
            return

        try:
            self.report_file.write(self.format_entry(record))
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class UnmatchedFileHandler(ReportFileHandler):
    """
    Captures sheet files that recovery could not link to a song.

    Written format:

        old scan 3.jpg
        Reason: ambiguous (2 candidates)
        Candidates:
          - Amazing Grace (C) [id 1]
          - Amazing Grace (G) [id 2]

    Extra fields:
        - 'unmatched_file_name': The file that was not linked
        - 'unmatched_reason': Why it was not linked
        - 'unmatched_candidates': List of "title (chord) [id]" strings (optional)
    """

    marker_field = "unmatched_file_name"

    def format_entry(self, record: logging.LogRecord) -> str:
        file_name = getattr(record, "unmatched_file_name", "")
        reason = getattr(record, "unmatched_reason", "unknown")
        candidates = getattr(record, "unmatched_candidates", None) or []

        lines = [file_name, f"Reason: {reason}"]
        if candidates:
            lines.append("Candidates:")
            lines.extend(f"  - {candidate}" for candidate in candidates)
        return "\n".join(lines) + "\n\n"


class RenameFailureHandler(ReportFileHandler):
    """
    Captures sheet renames that failed.

    Written format:

        Old Title (C) (1).jpg -> New Title (C) (1).jpg
        Error: Sheet file not found: ...

    Extra fields:
        - 'rename_failed_old_name'
        - 'rename_failed_new_name'
        - 'rename_failed_error'
    """

    marker_field = "rename_failed_old_name"

    def format_entry(self, record: logging.LogRecord) -> str:
        old_name = getattr(record, "rename_failed_old_name", "")
        new_name = getattr(record, "rename_failed_new_name", "") or "?"
        error = getattr(record, "rename_failed_error", "")
        return f"{old_name} -> {new_name}\nError: {error}\n\n"


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, console_level: int = logging.INFO) -> Path:
    """
    Install the console, log and report handlers on the root logger.

    Called by every CLI command once config.yaml is loaded. Calling it
    again replaces the handlers of the previous run.

    Args:
        log_dir: Base directory; log files are stored in a 'logs' subdirectory.
        console_level: Minimum level shown on the console.

    Returns:
        The logs directory that was created.

    Behavior:
        1. Create log_dir/logs if it doesn't exist
        2. Configure root logger level to DEBUG, dropping previous handlers
        3. Console handler (TqdmLoggingHandler + ColoredConsoleFormatter)
        4. log_full_{timestamp}.log (DEBUG), log_errors_{timestamp}.log (ERROR+)
        5. unmatched_files_{timestamp}.log and rename_failures_{timestamp}.log

    Not thread-safe: call from the main thread before any batch check
    starts its workers.
    """
    colorama.just_fix_windows_console()

    logs_dir = log_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    _close_handlers(root_logger)

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    file_formatter = logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT)

    full_handler = logging.FileHandler(
        logs_dir / f"{LOG_FULL_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(file_formatter)
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        logs_dir / f"{LOG_ERRORS_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(file_formatter)
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    unmatched_handler = UnmatchedFileHandler(logs_dir / f"{UNMATCHED_FILES_PREFIX}_{timestamp}.log")
    unmatched_handler.open()
    root_logger.addHandler(unmatched_handler)

    rename_handler = RenameFailureHandler(logs_dir / f"{RENAME_FAILURES_PREFIX}_{timestamp}.log")
    rename_handler.open()
    root_logger.addHandler(rename_handler)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() is called will have no
        handlers and will not produce output.
    """
    return logging.getLogger(name)


def log_unmatched_file(
    logger: logging.Logger,
    file_name: str,
    reason: str,
    candidates: list[str] | None = None
) -> None:
    """
    Log a sheet file that could not be linked to a song.

    Logs a WARNING and attaches the extra fields UnmatchedFileHandler
    writes to unmatched_files.log.

    Args:
        logger: The logger to use for the message.
        file_name: The unlinked file name.
        reason: Short reason ("no candidate", "ambiguous (2 candidates)").
        candidates: Human-readable candidate descriptions, if any.
    """
    logger.warning(
        f"Unmatched sheet: {file_name} ({reason})",
        extra={
            "unmatched_file_name": file_name,
            "unmatched_reason": reason,
            "unmatched_candidates": candidates or [],
        }
    )


def log_rename_failure(
    logger: logging.Logger,
    old_name: str,
    new_name: str | None,
    error_message: str
) -> None:
    """
    Log a sheet rename that failed.

    Logs an ERROR and attaches the extra fields RenameFailureHandler
    writes to rename_failures.log.
    """
    logger.error(
        f"Rename failed: {old_name} -> {new_name or '?'} ({error_message})",
        extra={
            "rename_failed_old_name": old_name,
            "rename_failed_new_name": new_name,
            "rename_failed_error": error_message,
        }
    )


def _close_handlers(root_logger: logging.Logger) -> None:
    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)


def shutdown_logging() -> None:
    """
    Flush, close and remove every root handler.

    The CLI calls this in the finally block of each command so report
    files are complete even when the command fails.
    """
    _close_handlers(logging.getLogger())
