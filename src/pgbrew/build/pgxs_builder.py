"""Builder for C extensions using PGXS Makefiles.

A PGXS project has a Makefile that includes PostgreSQL's extension build
infrastructure and at least one ``.control`` descriptor next to it.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ..command_runner import CommandRunner, format_command
from ..config.control_file import find_control_files, read_default_version
from .builder import Builder, BuildFailure, InstallOptions, VersionFieldMissing

MAKEFILE_NAME = "Makefile"
PGXS_MARKERS = ("PGXS", "pgxs")
SHARED_PRELOAD_MARKER = "shared_preload"
BGWORKER_MARKERS = ("bgworker", "background_worker")

# pg_config may name the compiler PostgreSQL itself was built with
# (e.g. gcc-12), which is often not installed on the building machine.
DEFAULT_CC = "gcc"


class PgxsBuilder(Builder):
    """Builds C extensions with make against PGXS."""

    name = "pgxs"

    def __init__(self, runner: Optional[CommandRunner] = None):
        """Initialize PGXS builder.

        Args:
            runner: Command runner for make invocations
        """
        self.runner = runner or CommandRunner()

    @staticmethod
    def _read_makefile(directory: Path) -> Optional[str]:
        try:
            return (Path(directory) / MAKEFILE_NAME).read_text(
                encoding="utf-8", errors="replace"
            )
        except OSError:
            return None

    def detect(self, directory: Path) -> bool:
        text = self._read_makefile(directory)
        if text is None or not any(marker in text for marker in PGXS_MARKERS):
            return False
        return len(find_control_files(directory)) > 0

    def extension_name(self, directory: Path) -> str:
        """Name of the first control file, or the directory name without one."""
        control_files = find_control_files(directory)
        if not control_files:
            return Path(directory).resolve().name
        return control_files[0].stem

    def version(self, directory: Path) -> str:
        control_files = find_control_files(directory)
        if not control_files:
            raise VersionFieldMissing(f"no .control file found in {directory}")

        control_file = control_files[0]
        try:
            version = read_default_version(control_file)
        except OSError as e:
            raise VersionFieldMissing(f"cannot read {control_file}: {e}") from e
        if version is None:
            raise VersionFieldMissing(f"default_version not found in {control_file}")
        return version

    def needs_shared_preload(self, directory: Path) -> bool:
        for control_file in find_control_files(directory):
            try:
                text = control_file.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            if SHARED_PRELOAD_MARKER in text.lower():
                return True

        makefile_text = self._read_makefile(directory)
        if makefile_text is None:
            return False
        lowered = makefile_text.lower()
        return any(marker in lowered for marker in BGWORKER_MARKERS)

    @staticmethod
    def make_args(options: InstallOptions) -> List[str]:
        return [f"PG_CONFIG={options.pg_config}", f"CC={DEFAULT_CC}"]

    def install(self, directory: Path, options: InstallOptions) -> None:
        """Run make clean, make and make install.

        The clean step is best effort: a fresh checkout may have nothing
        to clean and its failure is ignored.

        Raises:
            BuildFailure: If make or make install fails
        """
        make_args = self.make_args(options)

        clean = self.runner.capture(["make", "clean"] + make_args, cwd=directory)
        if not clean.success:
            logging.debug(f"make clean failed (ignored): exit code {clean.returncode}")

        print("Running make...")
        self._run_checked(["make"] + make_args, directory)

        print("Running make install...")
        install_cmd = ["make", "install"] + make_args
        if options.use_sudo:
            install_cmd = ["sudo"] + install_cmd
        self._run_checked(install_cmd, directory)

    def _run_checked(self, cmd: List[str], directory: Path) -> None:
        result = self.runner.run(cmd, cwd=directory)
        if not result.success:
            raise BuildFailure(
                f"{format_command(cmd)} failed with exit code {result.returncode}",
                result.output,
            )
