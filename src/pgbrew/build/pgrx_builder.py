"""Builder for pgrx-based Rust extensions.

A pgrx project is a Cargo crate depending on the ``pgrx`` crate. Cargo.toml
is scanned as text with regular expressions rather than parsed as TOML, so
detection and field extraction behave the same on odd or partial manifests.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from ..command_runner import CommandRunner, format_command
from ..packages.toolchain import ToolchainReconciler
from .builder import Builder, BuildFailure, InstallOptions, ManifestFieldMissing

MANIFEST_NAME = "Cargo.toml"
TOOLCHAIN_DEPENDENCY = "pgrx"

NAME_PATTERN = re.compile(r'name\s*=\s*"([^"]+)"')
VERSION_PATTERN = re.compile(r'version\s*=\s*"([^"]+)"')

# pgrx = "0.12.9" / pgrx = "=0.12.9"
PGRX_STRING_PATTERN = re.compile(r'pgrx\s*=\s*"=?([0-9][^"]*)"')
# pgrx = { version = "0.12.9", features = [...] }
PGRX_TABLE_PATTERN = re.compile(r'pgrx\s*=\s*\{[^}]*version\s*=\s*"=?([0-9][^"]*)"')
# pgrx.workspace = true / pgrx = { workspace = true }
PGRX_WORKSPACE_PATTERN = re.compile(
    r"pgrx\s*(?:\.\s*workspace\s*=\s*true|=\s*\{[^}]*workspace\s*=\s*true)"
)
WORKSPACE_SECTION = "[workspace]"

INSTALL_TARGET_PATTERN = re.compile(r"^install\s*:", re.MULTILINE)
PGXS_MARKERS = ("PGXS", "pgxs")

WORKER_DIR_MARKERS = ("worker", "bgw")
WORKER_SOURCE_MARKERS = (
    "BackgroundWorkerBuilder",
    "BackgroundWorker::",
    "bgworker_main",
    "RegisterBackgroundWorker",
    "ParallelWorker",
    "pg_shmem_init!",
)


def extract_toolchain_requirement(manifest_text: str) -> Optional[str]:
    """Find the pgrx version requirement in manifest text.

    Recognizes the bare string form first, then the inline table form.
    A leading '=' pin is dropped.
    """
    for pattern in (PGRX_STRING_PATTERN, PGRX_TABLE_PATTERN):
        match = pattern.search(manifest_text)
        if match:
            return match.group(1)
    return None


class PgrxBuilder(Builder):
    """Builds Rust extensions with ``cargo pgrx install``."""

    name = "pgrx"

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        reconciler: Optional[ToolchainReconciler] = None,
    ):
        """Initialize pgrx builder.

        Args:
            runner: Command runner for cargo/make invocations
            reconciler: Toolchain reconciler run before each install
        """
        self.runner = runner or CommandRunner()
        self.reconciler = reconciler or ToolchainReconciler(runner=self.runner)

    @staticmethod
    def _read_manifest(directory: Path) -> Optional[str]:
        manifest = Path(directory) / MANIFEST_NAME
        try:
            return manifest.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

    def _manifest_field(self, directory: Path, pattern: "re.Pattern[str]", field: str) -> str:
        text = self._read_manifest(directory)
        if text is None:
            raise ManifestFieldMissing(f"cannot read {MANIFEST_NAME} in {directory}")

        match = pattern.search(text)
        if not match:
            raise ManifestFieldMissing(f"could not find {field} in {MANIFEST_NAME}")
        return match.group(1)

    def detect(self, directory: Path) -> bool:
        text = self._read_manifest(directory)
        return text is not None and TOOLCHAIN_DEPENDENCY in text

    def extension_name(self, directory: Path) -> str:
        return self._manifest_field(directory, NAME_PATTERN, "package name")

    def version(self, directory: Path) -> str:
        return self._manifest_field(directory, VERSION_PATTERN, "version")

    def toolchain_version_requirement(self, directory: Path) -> Optional[str]:
        """Required pgrx version for the project, or None when unspecified.

        When the crate inherits pgrx from its workspace, parent directories
        are searched for the first Cargo.toml with a ``[workspace]`` section
        and the requirement is read from there.

        Args:
            directory: Extension source directory

        Returns:
            Version requirement string ("0.12.9", "0.12", ...) or None
        """
        text = self._read_manifest(directory)
        if text is None:
            return None

        requirement = extract_toolchain_requirement(text)
        if requirement or not PGRX_WORKSPACE_PATTERN.search(text):
            return requirement

        current = Path(directory).resolve().parent
        while True:
            workspace_text = self._read_manifest(current)
            if workspace_text is not None and WORKSPACE_SECTION in workspace_text:
                logging.debug(f"Reading pgrx version from workspace {current / MANIFEST_NAME}")
                return extract_toolchain_requirement(workspace_text)

            if current.parent == current:
                logging.debug(f"No workspace manifest found above {directory}")
                return None
            current = current.parent

    def needs_shared_preload(self, directory: Path) -> bool:
        """Look for background worker code under src/.

        A directory named like a worker, or a Rust source file using a
        background/parallel worker or shared memory API, means the library
        has to be preloaded.
        """
        src_dir = Path(directory) / "src"
        if not src_dir.is_dir():
            return False

        for root, dirnames, filenames in os.walk(src_dir):
            for dirname in dirnames:
                lowered = dirname.lower()
                if any(marker in lowered for marker in WORKER_DIR_MARKERS):
                    return True

            for filename in filenames:
                if not filename.endswith(".rs"):
                    continue
                try:
                    source = (Path(root) / filename).read_text(
                        encoding="utf-8", errors="replace"
                    )
                except OSError:
                    continue
                if any(marker in source for marker in WORKER_SOURCE_MARKERS):
                    return True

        return False

    def has_custom_install(self, directory: Path) -> bool:
        """Check for a project Makefile providing its own install target.

        PGXS Makefiles are excluded; they belong to the PGXS builder.
        """
        makefile = Path(directory) / "Makefile"
        try:
            text = makefile.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False

        if any(marker in text for marker in PGXS_MARKERS):
            return False
        return INSTALL_TARGET_PATTERN.search(text) is not None

    def install(self, directory: Path, options: InstallOptions) -> None:
        """Reconcile cargo-pgrx, then build and install the extension.

        Raises:
            ToolchainInstallFailed: If cargo-pgrx cannot be installed
            ToolchainInitFailed: If cargo-pgrx cannot be initialized
            BuildFailure: If the install command fails
        """
        requirement = self.toolchain_version_requirement(directory)
        if requirement:
            self.reconciler.reconcile(requirement, options.pg_config)
        else:
            logging.info("No pgrx version requirement found, skipping toolchain check")

        if self.has_custom_install(directory):
            print("Using project Makefile install target...")
            cmd = ["make", "install", f"PG_CONFIG={options.pg_config}"]
            if options.use_sudo:
                cmd = ["sudo"] + cmd
        else:
            cmd = ["cargo", "pgrx", "install", "--release", "--pg-config", options.pg_config]
            if options.use_sudo:
                cmd.append("--sudo")

        result = self.runner.run(cmd, cwd=directory)
        if not result.success:
            raise BuildFailure(
                f"{format_command(cmd)} failed with exit code {result.returncode}",
                result.output,
            )
