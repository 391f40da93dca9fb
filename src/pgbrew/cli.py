"""
Command-line interface for pgbrew.

This module provides the `pgbrew` CLI tool for installing and removing
PostgreSQL extensions.
"""

import argparse
import sys
from dataclasses import dataclass
from typing import Dict, Optional

from pgbrew import __version__
from pgbrew.build import BuildComponentFactory
from pgbrew.cli_utils import ErrorFormatter, setup_logging
from pgbrew.config import PgConfig, find_control_files, parse_control_file
from pgbrew.errors import PgbrewError
from pgbrew.packages import CellarStore, NotFound
from pgbrew.remove import UninstallCoordinator


@dataclass
class InstallArgs:
    """Arguments for the install command."""

    source: str
    use_sudo: bool = False
    pg_config: Optional[str] = None
    verbose: bool = False


@dataclass
class ListArgs:
    """Arguments for the list command."""

    show_all: bool = False
    pg_config: Optional[str] = None
    verbose: bool = False


@dataclass
class InfoArgs:
    """Arguments for the info command."""

    name: str
    verbose: bool = False


@dataclass
class UninstallArgs:
    """Arguments for the uninstall command."""

    name: str
    dry_run: bool = False
    use_sudo: bool = False
    pg_config: Optional[str] = None
    verbose: bool = False


def install_command(args: InstallArgs) -> None:
    """Install a PostgreSQL extension.

    Examples:
        pgbrew install github.com/supabase/pg_graphql
        pgbrew install github.com/user/monorepo/extensions/pg_kafka
        pgbrew install github.com/user/repo@v1.2.0
        pgbrew install ./my_extension --sudo
    """
    try:
        pg_config = PgConfig(args.pg_config)
        orchestrator = BuildComponentFactory.create_orchestrator(
            pg_config=pg_config,
            cellar=CellarStore(),
            verbose=args.verbose,
        )

        result = orchestrator.install(args.source, use_sudo=args.use_sudo)
        entry = result.entry

        ErrorFormatter.print_success(f"Successfully installed {entry.name} {entry.version}")
        print(f"  Run: CREATE EXTENSION {entry.name};")
        if result.needs_shared_preload:
            print()
            print(f"  {entry.name} uses background workers or shared memory.")
            print("  Add it to shared_preload_libraries in postgresql.conf:")
            print(f"    shared_preload_libraries = '{entry.name}'")
            print("  and restart PostgreSQL.")
        if args.verbose:
            print()
            print(f"Install time: {result.install_time:.2f}s")
        sys.exit(0)

    except PgbrewError as e:
        ErrorFormatter.handle_pgbrew_error("Install failed", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def list_command(args: ListArgs) -> None:
    """List installed extensions.

    Examples:
        pgbrew list            # Extensions installed by pgbrew
        pgbrew list --all      # Every extension in the PostgreSQL installation
    """
    try:
        entries = CellarStore().load()

        if args.show_all:
            _list_all(PgConfig(args.pg_config), {e.name for e in entries})
            sys.exit(0)

        if not entries:
            print("No extensions installed via pgbrew.")
            print("Use --all to see all PostgreSQL extensions.")
            sys.exit(0)

        print("Installed extensions:")
        print()
        for entry in entries:
            print(f"  {entry.name} {entry.version} (pg{entry.pg_version})")
            print(f"    Source: {entry.source}")
        sys.exit(0)

    except PgbrewError as e:
        ErrorFormatter.handle_pgbrew_error("List failed", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def _list_all(pg_config: PgConfig, tracked: set) -> None:
    ext_dir = pg_config.extension_dir
    if not ext_dir.is_dir():
        print(f"Extension directory not found: {ext_dir}")
        return

    controls = [parse_control_file(path) for path in find_control_files(ext_dir)]
    if not controls:
        print("No extensions found.")
        return

    print(f"Found {len(controls)} extensions in {ext_dir}:")
    print()

    counts: Dict[bool, int] = {True: 0, False: 0}
    for control in controls:
        via_pgbrew = control.name in tracked
        counts[via_pgbrew] += 1
        marker = "*" if via_pgbrew else " "
        version = control.version or "-"
        if control.comment:
            print(f"  {marker} {control.name:<25} {version:<10} {control.comment}")
        else:
            print(f"  {marker} {control.name:<25} {version}")

    print()
    print(
        f"Total: {len(controls)} extensions "
        + f"({counts[True]} via pgbrew, {counts[False]} external)"
    )
    print("  * = installed via pgbrew")


def info_command(args: InfoArgs) -> None:
    """Show what the cellar knows about an installed extension."""
    try:
        entry = CellarStore().get(args.name)

        installed = entry.installed_at.strftime("%Y-%m-%d %H:%M:%S") if entry.installed_at else "-"
        print(f"Name:          {entry.name}")
        print(f"Version:       {entry.version}")
        print(f"Source:        {entry.source}")
        print(f"PostgreSQL:    {entry.pg_version or '-'}")
        print(f"Build system:  {entry.build_system or '-'}")
        print(f"Installed:     {installed}")
        sys.exit(0)

    except NotFound as e:
        ErrorFormatter.print_error("Info failed", str(e))
        sys.exit(1)
    except PgbrewError as e:
        ErrorFormatter.handle_pgbrew_error("Info failed", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def uninstall_command(args: UninstallArgs) -> None:
    """Uninstall an extension.

    This removes the extension files but never runs DROP EXTENSION; the
    command refuses to run while any database still uses the extension.

    Examples:
        pgbrew uninstall pg_kafka
        pgbrew uninstall pg_kafka --dry-run
        pgbrew uninstall pg_kafka --sudo   # System PostgreSQL owned by root
    """
    try:
        coordinator = UninstallCoordinator(
            pg_config=PgConfig(args.pg_config),
            cellar=CellarStore(),
        )

        if args.dry_run:
            print(f"Dry run: would uninstall {args.name}")
            print()
        else:
            print(f"Uninstalling {args.name}...")

        result = coordinator.uninstall(args.name, dry_run=args.dry_run, use_sudo=args.use_sudo)

        if result.nothing_to_do:
            print("No extension files found.")
            sys.exit(0)

        if args.dry_run:
            if result.active_databases:
                print(f"Extension is active in {len(result.active_databases)} database(s):")
                for db in result.active_databases:
                    print(f"  - {db}")
                print()
            print(f"Would remove {len(result.files)} files:")
            for path in result.files:
                print(f"  - {path}")
            if result.tracked:
                print()
                print("Would remove from pgbrew tracking.")
            sys.exit(0)

        if result.removed:
            ErrorFormatter.print_success(f"Removed {len(result.removed)} files:")
            for path in result.removed:
                print(f"  - {path}")
        if result.failed:
            ErrorFormatter.print_warning(f"Could not remove {len(result.failed)} files:")
            for path in result.failed:
                print(f"  - {path}")
        sys.exit(0)

    except PgbrewError as e:
        ErrorFormatter.handle_pgbrew_error("Uninstall failed", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def builders_command() -> None:
    """List supported build systems in detection order."""
    for index, name in enumerate(BuildComponentFactory.create_registry().names(), start=1):
        print(f"{index}. {name}")
    sys.exit(0)


def main() -> None:
    """pgbrew - PostgreSQL extension package manager.

    Install extensions from GitHub or local directories, list them and
    remove them safely.
    """
    parser = argparse.ArgumentParser(
        prog="pgbrew",
        description="pgbrew - PostgreSQL extension package manager",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"pgbrew {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Shared options
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )
    pg_config_option = argparse.ArgumentParser(add_help=False)
    pg_config_option.add_argument(
        "--pg-config",
        default=None,
        help="Path to pg_config (default: $PG_CONFIG, then pg_config on PATH)",
    )

    # Install command
    install_parser = subparsers.add_parser(
        "install",
        parents=[common, pg_config_option],
        help="Install an extension from GitHub or a local directory",
    )
    install_parser.add_argument(
        "source",
        help="github.com/user/repo[/path][@ref] or a local directory",
    )
    install_parser.add_argument(
        "--sudo",
        action="store_true",
        help="Use sudo for the install step (needed for system PostgreSQL)",
    )

    # List command
    list_parser = subparsers.add_parser(
        "list",
        parents=[common, pg_config_option],
        help="List installed extensions",
    )
    list_parser.add_argument(
        "-a",
        "--all",
        action="store_true",
        help="Show all PostgreSQL extensions, not just those installed by pgbrew",
    )

    # Info command
    info_parser = subparsers.add_parser(
        "info",
        parents=[common],
        help="Show extension information",
    )
    info_parser.add_argument("name", help="Extension name")

    # Uninstall command
    uninstall_parser = subparsers.add_parser(
        "uninstall",
        parents=[common, pg_config_option],
        help="Uninstall an extension",
    )
    uninstall_parser.add_argument("name", help="Extension name")
    uninstall_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be removed without deleting",
    )
    uninstall_parser.add_argument(
        "--sudo",
        action="store_true",
        help="Use sudo to delete files (needed for system PostgreSQL)",
    )

    # Builders command
    subparsers.add_parser(
        "builders",
        help="List supported build systems in detection order",
    )

    # Parse arguments
    parsed_args = parser.parse_args()

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(getattr(parsed_args, "verbose", False))

    # Execute command
    if parsed_args.command == "install":
        install_command(
            InstallArgs(
                source=parsed_args.source,
                use_sudo=parsed_args.sudo,
                pg_config=parsed_args.pg_config,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "list":
        list_command(
            ListArgs(
                show_all=parsed_args.all,
                pg_config=parsed_args.pg_config,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "info":
        info_command(InfoArgs(name=parsed_args.name, verbose=parsed_args.verbose))
    elif parsed_args.command == "uninstall":
        uninstall_command(
            UninstallArgs(
                name=parsed_args.name,
                dry_run=parsed_args.dry_run,
                use_sudo=parsed_args.sudo,
                pg_config=parsed_args.pg_config,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "builders":
        builders_command()


if __name__ == "__main__":
    main()
