"""Builder interface and registry.

This module defines the contract every extension build system implements
and the ordered registry used to pick one for a source directory.

Exactly two builders exist (pgrx and PGXS). The registry tries them in
registration order and binds a directory to the first one that detects it,
so a project satisfying several detectors always gets the same builder.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List

from ..errors import PgbrewError


class BuilderError(PgbrewError):
    """Base exception for builder errors."""

    pass


class NoCompatibleBuilder(BuilderError):
    """Raised when no registered builder recognizes a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        super().__init__(
            f"unknown project type: no compatible build system found in {self.directory}"
        )


class ManifestFieldMissing(BuilderError):
    """Raised when a required field cannot be found in a project manifest."""

    pass


class VersionFieldMissing(BuilderError):
    """Raised when an extension descriptor declares no version."""

    pass


class BuildFailure(BuilderError):
    """Raised when a build or install invocation exits non-zero.

    The captured output of the failing tool is kept verbatim in ``output``.
    """

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)


@dataclass(frozen=True)
class InstallOptions:
    """Options passed to Builder.install()."""

    pg_config: str = "pg_config"
    use_sudo: bool = False


class Builder(ABC):
    """Interface for extension build systems.

    Implementations:
    - PgrxBuilder: Rust extensions built with cargo-pgrx
    - PgxsBuilder: C extensions built with a PGXS Makefile
    """

    #: Short build system name recorded in the cellar ("pgrx", "pgxs")
    name: str = ""

    @abstractmethod
    def detect(self, directory: Path) -> bool:
        """Check whether this builder can handle the project in ``directory``."""
        pass

    @abstractmethod
    def extension_name(self, directory: Path) -> str:
        """Extract the extension name.

        Raises:
            ManifestFieldMissing: If the project declares no name
        """
        pass

    @abstractmethod
    def version(self, directory: Path) -> str:
        """Extract the extension version.

        Raises:
            ManifestFieldMissing: If a manifest declares no version
            VersionFieldMissing: If a descriptor declares no version
        """
        pass

    @abstractmethod
    def install(self, directory: Path, options: InstallOptions) -> None:
        """Build and install the extension into the target PostgreSQL.

        Raises:
            BuildFailure: If the build or install step fails
        """
        pass

    @abstractmethod
    def needs_shared_preload(self, directory: Path) -> bool:
        """Check whether the extension must be listed in shared_preload_libraries."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class BuilderRegistry:
    """Ordered collection of builders.

    Example usage:
        registry = BuilderRegistry()
        registry.register(PgrxBuilder())
        registry.register(PgxsBuilder())
        builder = registry.detect(Path("pg_trgm"))
    """

    def __init__(self) -> None:
        self._builders: List[Builder] = []

    def register(self, builder: Builder) -> None:
        """Append a builder; earlier registrations win detection ties."""
        self._builders.append(builder)

    def detect(self, directory: Path) -> Builder:
        """Find the builder for ``directory``.

        Args:
            directory: Extension source directory

        Returns:
            The first registered builder whose detect() is true

        Raises:
            NoCompatibleBuilder: If no builder matches
        """
        for builder in self._builders:
            if builder.detect(directory):
                return builder
        raise NoCompatibleBuilder(directory)

    def names(self) -> List[str]:
        """Names of registered builders in priority order."""
        return [builder.name for builder in self._builders]

    def __iter__(self) -> Iterator[Builder]:
        return iter(self._builders)

    def __len__(self) -> int:
        return len(self._builders)
