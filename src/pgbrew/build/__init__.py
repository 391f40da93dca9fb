"""
Build system components for pgbrew.

This module provides the build system implementation including:
- Builder interface and ordered registry
- pgrx builder (Rust extensions, cargo-pgrx)
- PGXS builder (C extensions, make)
- Install orchestration
"""

from .builder import (
    Builder,
    BuilderError,
    BuilderRegistry,
    BuildFailure,
    InstallOptions,
    ManifestFieldMissing,
    NoCompatibleBuilder,
    VersionFieldMissing,
)
from .pgrx_builder import PgrxBuilder
from .pgxs_builder import PgxsBuilder
from .orchestrator import InstallOrchestrator, InstallResult
from .build_component_factory import BuildComponentFactory

__all__ = [
    "Builder",
    "BuilderError",
    "BuilderRegistry",
    "BuildFailure",
    "InstallOptions",
    "ManifestFieldMissing",
    "NoCompatibleBuilder",
    "VersionFieldMissing",
    "PgrxBuilder",
    "PgxsBuilder",
    "InstallOrchestrator",
    "InstallResult",
    "BuildComponentFactory",
]
