"""
Build component factory for pgbrew.

This module wires the builder registry and the install orchestrator
together once at startup, so the rest of the program receives them as
explicit objects instead of reaching for module-level state.
"""

from typing import Optional

from ..command_runner import CommandRunner
from ..config.pg_config import PgConfig
from ..packages.cellar import CellarStore
from ..packages.source import SourceFetcher
from ..packages.toolchain import ToolchainReconciler
from .builder import BuilderRegistry
from .orchestrator import InstallOrchestrator
from .pgrx_builder import PgrxBuilder
from .pgxs_builder import PgxsBuilder


class BuildComponentFactory:
    """
    Factory for creating build components.

    Example usage:
        registry = BuildComponentFactory.create_registry()
        orchestrator = BuildComponentFactory.create_orchestrator(
            pg_config=PgConfig(),
            cellar=CellarStore(),
        )
    """

    @staticmethod
    def create_registry(
        runner: Optional[CommandRunner] = None,
        reconciler: Optional[ToolchainReconciler] = None,
    ) -> BuilderRegistry:
        """
        Create the builder registry in priority order: pgrx, then PGXS.

        A Rust project that also ships a PGXS-looking Makefile is built
        with pgrx.

        Args:
            runner: Command runner shared by all builders
            reconciler: Toolchain reconciler for the pgrx builder

        Returns:
            Populated BuilderRegistry
        """
        runner = runner or CommandRunner()
        registry = BuilderRegistry()
        registry.register(PgrxBuilder(runner=runner, reconciler=reconciler))
        registry.register(PgxsBuilder(runner=runner))
        return registry

    @staticmethod
    def create_orchestrator(
        pg_config: PgConfig,
        cellar: CellarStore,
        fetcher: Optional[SourceFetcher] = None,
        registry: Optional[BuilderRegistry] = None,
        verbose: bool = False,
    ) -> InstallOrchestrator:
        """
        Create an install orchestrator sharing pg_config's command runner.

        Args:
            pg_config: Target PostgreSQL installation
            cellar: Cellar receiving installation records
            fetcher: Fetcher for remote sources
            registry: Builder registry (default: create_registry())
            verbose: Enable verbose output

        Returns:
            Configured InstallOrchestrator
        """
        if registry is None:
            registry = BuildComponentFactory.create_registry(runner=pg_config.runner)
        return InstallOrchestrator(
            registry=registry,
            cellar=cellar,
            pg_config=pg_config,
            fetcher=fetcher,
            verbose=verbose,
        )
