"""Configuration of the target PostgreSQL installation and extension descriptors."""

from .control_file import (
    ControlFile,
    find_control_files,
    parse_control_file,
    read_default_version,
)
from .pg_config import PgConfig, PgConfigError, parse_major_version

__all__ = [
    "ControlFile",
    "find_control_files",
    "parse_control_file",
    "read_default_version",
    "PgConfig",
    "PgConfigError",
    "parse_major_version",
]
