"""
Install orchestration for pgbrew.

This module drives one extension installation from start to finish:
1. Resolve the install source to a local directory (temporary for GitHub)
2. Detect the build system
3. Read extension name (required) and version (falls back to "unknown")
4. Build and install with the detected builder
5. Determine the target PostgreSQL major version (best effort)
6. Record the installation in the cellar

The cellar is written only after step 4 succeeded. A failed build may leave
files behind in PostgreSQL's directories; cleaning those up is left to the
build tool, but pgbrew never records a half-finished install.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..config.pg_config import PgConfig, PgConfigError
from ..packages.cellar import CellarEntry, CellarStore
from ..packages.source import (
    InstallSource,
    LocalPath,
    SourceFetcher,
    default_fetcher,
    parse_source,
    resolve_source,
)
from .builder import BuilderRegistry, InstallOptions, ManifestFieldMissing, VersionFieldMissing

UNKNOWN_VERSION = "unknown"


@dataclass
class InstallResult:
    """Result of a complete install operation."""

    entry: CellarEntry
    builder_name: str
    needs_shared_preload: bool
    install_time: float


class InstallOrchestrator:
    """
    Orchestrates extension installation.

    Example usage:
        orchestrator = InstallOrchestrator(
            registry=BuildComponentFactory.create_registry(),
            cellar=CellarStore(),
            pg_config=PgConfig(),
        )
        result = orchestrator.install("github.com/user/pg_ext")
        print(f"Installed {result.entry.name} {result.entry.version}")
    """

    def __init__(
        self,
        registry: BuilderRegistry,
        cellar: CellarStore,
        pg_config: PgConfig,
        fetcher: Optional[SourceFetcher] = None,
        verbose: bool = False,
    ):
        """
        Initialize install orchestrator.

        Args:
            registry: Builders to choose from, in priority order
            cellar: Cellar receiving the installation record
            pg_config: Target PostgreSQL installation
            fetcher: Fetcher for remote sources (default: git, else archives)
            verbose: Enable verbose output
        """
        self.registry = registry
        self.cellar = cellar
        self.pg_config = pg_config
        self.fetcher = fetcher or default_fetcher(pg_config.runner)
        self.verbose = verbose

    def install(
        self,
        source: Union[str, InstallSource],
        use_sudo: bool = False,
    ) -> InstallResult:
        """
        Install an extension and record it in the cellar.

        Args:
            source: Source argument or an already parsed InstallSource
            use_sudo: Run the privileged install step through sudo

        Returns:
            InstallResult with the recorded cellar entry

        Raises:
            SourceResolutionError: If the source is invalid or cannot be fetched
            NoCompatibleBuilder: If no build system is detected
            ManifestFieldMissing: If the extension name cannot be determined
            ToolchainInstallFailed: If cargo-pgrx cannot be installed
            ToolchainInitFailed: If cargo-pgrx cannot be initialized
            BuildFailure: If the build or install step fails
        """
        start_time = time.time()
        parsed = parse_source(source) if isinstance(source, str) else source
        source_text = str(parsed) if isinstance(parsed, LocalPath) else str(source)

        print(f"Installing from {source_text}...")

        with resolve_source(parsed, self.fetcher) as directory:
            builder = self.registry.detect(directory)
            if self.verbose:
                print(f"      Build system: {builder.name}")

            name = builder.extension_name(directory)
            version = self._read_version(builder, directory)

            print(f"Building {name} {version} ({builder.name})...")
            options = InstallOptions(pg_config=self.pg_config.path, use_sudo=use_sudo)
            builder.install(directory, options)

            needs_preload = builder.needs_shared_preload(directory)

        entry = self.cellar.add(
            CellarEntry(
                name=name,
                version=version,
                source=source_text,
                pg_version=self._pg_major_version(),
                build_system=builder.name,
            )
        )

        return InstallResult(
            entry=entry,
            builder_name=builder.name,
            needs_shared_preload=needs_preload,
            install_time=time.time() - start_time,
        )

    @staticmethod
    def _read_version(builder, directory: Path) -> str:
        try:
            return builder.version(directory)
        except (ManifestFieldMissing, VersionFieldMissing) as e:
            logging.warning(f"Could not determine version: {e}")
            return UNKNOWN_VERSION

    def _pg_major_version(self) -> str:
        try:
            return self.pg_config.major_version()
        except PgConfigError as e:
            logging.warning(f"Could not determine PostgreSQL version: {e}")
            return ""
