"""
Core module for worshipnote.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - result: Ok/Err outcome type and the ErrorKind taxonomy
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - filesystem: File capability provider (timed reads, atomic writes)
    - onedrive: OneDrive discovery and the WorshipNote_Data layout

Usage:
    from worshipnote.core import (
        Config, load_config,
        setup_logging, get_logger,
        LocalFileSystem, resolve_layout,
        WorshipNoteError, ConfigError, CacheError
    )
"""

from worshipnote.core.config import (
    Config,
    FilesConfig,
    LoggingConfig,
    StorageConfig,
    load_config,
)
from worshipnote.core.exceptions import (
    AmbiguousMatchError,
    CacheError,
    ConfigError,
    FileOperationError,
    InvalidBackupFormatError,
    InvalidInputError,
    RemoteUnavailableError,
    SourceFileMissingError,
    WorshipNoteError,
)
from worshipnote.core.filesystem import FileCapabilityProvider, LocalFileSystem
from worshipnote.core.logger import (
    get_logger,
    log_rename_failure,
    log_unmatched_file,
    setup_logging,
    shutdown_logging,
)
from worshipnote.core.onedrive import DataLayout, find_onedrive_path, resolve_layout
from worshipnote.core.result import Err, ErrorKind, Ok, Result

__all__ = [
    # Config
    "Config",
    "StorageConfig",
    "FilesConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "WorshipNoteError",
    "ConfigError",
    "CacheError",
    "InvalidInputError",
    "SourceFileMissingError",
    "AmbiguousMatchError",
    "RemoteUnavailableError",
    "InvalidBackupFormatError",
    "FileOperationError",
    # Result
    "Ok",
    "Err",
    "ErrorKind",
    "Result",
    # Files
    "FileCapabilityProvider",
    "LocalFileSystem",
    "DataLayout",
    "find_onedrive_path",
    "resolve_layout",
    # Logger
    "setup_logging",
    "get_logger",
    "log_unmatched_file",
    "log_rename_failure",
    "shutdown_logging",
]
