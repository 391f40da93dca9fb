"""Package management for pgbrew.

This module handles fetching extension sources, keeping the cargo-pgrx
toolchain in line with what a project needs, and recording installed
extensions in the cellar.
"""

from .cellar import CellarEntry, CellarError, CellarStore, NotFound
from .downloader import ArchiveDownloader, DownloadError, ExtractionError
from .locking import LockTimeoutError, acquire_file_lock
from .source import (
    ArchiveSourceFetcher,
    GitSourceFetcher,
    InstallSource,
    LocalPath,
    RemoteRepo,
    SourceFetcher,
    SourceResolutionError,
    default_fetcher,
    parse_source,
    resolve_source,
)
from .toolchain import (
    ToolchainError,
    ToolchainInitFailed,
    ToolchainInstallFailed,
    ToolchainReconciler,
    install_version_spec,
    versions_match,
)

__all__ = [
    "CellarEntry",
    "CellarError",
    "CellarStore",
    "NotFound",
    "ArchiveDownloader",
    "DownloadError",
    "ExtractionError",
    "LockTimeoutError",
    "acquire_file_lock",
    "ArchiveSourceFetcher",
    "GitSourceFetcher",
    "InstallSource",
    "LocalPath",
    "RemoteRepo",
    "SourceFetcher",
    "SourceResolutionError",
    "default_fetcher",
    "parse_source",
    "resolve_source",
    "ToolchainError",
    "ToolchainInitFailed",
    "ToolchainInstallFailed",
    "ToolchainReconciler",
    "install_version_spec",
    "versions_match",
]
