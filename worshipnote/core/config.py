"""
Configuration management for worshipnote.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml, plus the environment
overrides read from a .env file.

The configuration file contains:
    - Location of the WorshipNote_Data folder (auto-detected under OneDrive if unset)
    - Local cache file path (the per-machine copy of the database)
    - Optional seed dataset used on first start
    - File read timeout and worker count for batch checks
    - Log directory

Configuration File Location:
    config.yaml in the current working directory, or an explicit path.
    The file is optional: without it every setting takes its default.

Environment Overrides (.env or process environment):
    WORSHIPNOTE_DATA_DIR   Overrides storage.data_directory
    ONEDRIVE               OneDrive root used by auto-detection (Windows convention)

Example config.yaml:
    storage:
      data_directory: null                 # auto-detect <OneDrive>/WorshipNote_Data
      cache_file: "~/.worshipnote/cache.json"
      seed_file: null
      backup_directory: null               # fallback when OneDrive is unavailable

    files:
      read_timeout: 3.0
      max_workers: 4

    logging:
      directory: "~/.worshipnote"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

from worshipnote.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DATA_DIR_ENV = "WORSHIPNOTE_DATA_DIR"

DEFAULT_HOME = Path("~/.worshipnote")
DEFAULT_CACHE_FILE = DEFAULT_HOME / "cache.json"
DEFAULT_READ_TIMEOUT = 3.0
DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class StorageConfig:
    """
    Data location configuration.

    Attributes:
        data_directory: The WorshipNote_Data folder. None means auto-detect
                        it under the OneDrive root.
        cache_file: JSON file holding the local cache of both collections.
        seed_file: Optional JSON document ({songs, worshipLists}) loaded when
                   neither the cache nor the remote store has data.
        backup_directory: Where backups go when the data folder is unavailable.
    """
    data_directory: Path | None
    cache_file: Path
    seed_file: Path | None
    backup_directory: Path | None


@dataclass(frozen=True)
class FilesConfig:
    """
    File access configuration.

    Attributes:
        read_timeout: Seconds before a read is reported as a timeout.
                      OneDrive placeholders can block reads; default 3.0.
        max_workers: Threads used by batch file checks. Default 4.
    """
    read_timeout: float
    max_workers: int


@dataclass(frozen=True)
class LoggingConfig:
    """
    Attributes:
        directory: Base directory; logs go to {directory}/logs.
    """
    directory: Path


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config()
        print(f"Cache: {config.storage.cache_file}")
    """
    storage: StorageConfig
    files: FilesConfig
    logging: LoggingConfig


def load_config(config_path: Path | None = None, env_file: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file. It must exist.
                     If None, config.yaml in the current working directory
                     is used when present; otherwise defaults apply.
        env_file: Optional explicit .env file. If None, python-dotenv
                  searches for a .env file from the working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is missing, the YAML is
                     invalid, or a field has an invalid value.

    Behavior:
        1. Load .env into the process environment (existing variables win)
        2. Read and parse YAML content if a file is available
        3. Validate sections and apply defaults
        4. Apply WORSHIPNOTE_DATA_DIR override
    """
    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True), override=False)

    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        raw_config = _read_yaml(config_path)
    elif explicit:
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    _validate_config(raw_config)

    storage = _parse_storage_config(raw_config.get("storage"))
    files = _parse_files_config(raw_config.get("files"))
    logging_config = _parse_logging_config(raw_config.get("logging"))

    return Config(storage=storage, files=files, logging=logging_config)


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file is a valid "all defaults" configuration
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )
    return raw_config


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Check that every present section is a dictionary.

    Raises:
        ConfigError: If a known section has the wrong type.
    """
    for section in ("storage", "files", "logging"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_optional_path(section: dict[str, Any], key: str, field_name: str) -> Path | None:
    raw = section.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string path or null",
            details={"field": field_name}
        )
    return Path(raw.strip()).expanduser().resolve()


def _parse_storage_config(storage_section: dict[str, Any] | None) -> StorageConfig:
    """
    Parse the storage section and the WORSHIPNOTE_DATA_DIR override.

    The environment variable wins over config.yaml so a machine can point
    at a different OneDrive mount without editing the shared config.
    """
    section = storage_section or {}

    data_directory = _parse_optional_path(section, "data_directory", "storage.data_directory")
    env_data_dir = os.environ.get(DATA_DIR_ENV, "").strip()
    if env_data_dir:
        data_directory = Path(env_data_dir).expanduser().resolve()

    cache_file = _parse_optional_path(section, "cache_file", "storage.cache_file")
    if cache_file is None:
        cache_file = DEFAULT_CACHE_FILE.expanduser().resolve()

    seed_file = _parse_optional_path(section, "seed_file", "storage.seed_file")
    if seed_file is not None and not seed_file.exists():
        raise ConfigError(
            f"Seed file not found: {seed_file}",
            details={"field": "storage.seed_file", "path": str(seed_file)}
        )

    return StorageConfig(
        data_directory=data_directory,
        cache_file=cache_file,
        seed_file=seed_file,
        backup_directory=_parse_optional_path(section, "backup_directory", "storage.backup_directory"),
    )


def _parse_files_config(files_section: dict[str, Any] | None) -> FilesConfig:
    """
    Parse the files section, applying defaults.

    Raises:
        ConfigError: If read_timeout is not a positive number or
                     max_workers is not a positive integer.
    """
    read_timeout = DEFAULT_READ_TIMEOUT
    max_workers = DEFAULT_MAX_WORKERS

    if files_section is not None:
        raw_timeout = files_section.get("read_timeout")
        if raw_timeout is not None:
            if isinstance(raw_timeout, bool) or not isinstance(raw_timeout, (int, float)) or raw_timeout <= 0:
                raise ConfigError(
                    "'files.read_timeout' must be a positive number",
                    details={"field": "files.read_timeout", "value": raw_timeout}
                )
            read_timeout = float(raw_timeout)

        raw_workers = files_section.get("max_workers")
        if raw_workers is not None:
            if isinstance(raw_workers, bool) or not isinstance(raw_workers, int) or raw_workers < 1:
                raise ConfigError(
                    "'files.max_workers' must be a positive integer",
                    details={"field": "files.max_workers", "value": raw_workers}
                )
            max_workers = raw_workers

    return FilesConfig(read_timeout=read_timeout, max_workers=max_workers)


def _parse_logging_config(logging_section: dict[str, Any] | None) -> LoggingConfig:
    directory = _parse_optional_path(logging_section or {}, "directory", "logging.directory")
    if directory is None:
        directory = DEFAULT_HOME.expanduser().resolve()
    return LoggingConfig(directory=directory)
