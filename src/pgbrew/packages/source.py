"""Install source parsing and resolution.

An install source is either a local directory or a GitHub repository,
optionally pointing at an extension inside a monorepo and at a ref:

    ./pg_hashids                               -> LocalPath
    github.com/user/repo                       -> RemoteRepo("github.com/user/repo")
    https://github.com/user/repo/ext/pg_kafka  -> RemoteRepo(..., subpath="ext/pg_kafka")
    github.com/user/repo@v1.2.0                -> RemoteRepo(..., ref="v1.2.0")

Remote sources are fetched into a temporary directory that only lives for
the duration of one resolve_source() context.
"""

import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from ..command_runner import CommandRunner
from ..errors import PgbrewError
from .downloader import ArchiveDownloader, DownloadError, ExtractionError

GITHUB_HOST = "github.com"


class SourceResolutionError(PgbrewError):
    """Raised when an install source is invalid or cannot be fetched."""

    pass


@dataclass(frozen=True)
class LocalPath:
    """Extension sources already on disk."""

    path: Path

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class RemoteRepo:
    """Extension sources in a GitHub repository."""

    repository_id: str
    subpath: str = ""
    ref: Optional[str] = None

    @property
    def clone_url(self) -> str:
        return f"https://{self.repository_id}.git"

    def __str__(self) -> str:
        text = self.repository_id
        if self.subpath:
            text += f"/{self.subpath}"
        if self.ref:
            text += f"@{self.ref}"
        return text


InstallSource = Union[LocalPath, RemoteRepo]


def parse_source(text: str) -> InstallSource:
    """Turn a command-line source argument into an InstallSource.

    Args:
        text: Local path or github.com/user/repo[/subpath][@ref]

    Returns:
        LocalPath or RemoteRepo

    Raises:
        SourceResolutionError: If the argument is neither
    """
    text = text.strip()
    if not text:
        raise SourceResolutionError("empty install source")

    local = Path(text).expanduser()
    if text.startswith((".", "/", "~")) or local.is_dir():
        return LocalPath(local.resolve())

    url = text
    for prefix in ("https://", "http://"):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break

    ref = None
    if "@" in url:
        url, ref = url.rsplit("@", 1)
        if not ref:
            raise SourceResolutionError(f"empty ref in source: {text}")

    if not url.startswith(GITHUB_HOST + "/"):
        raise SourceResolutionError(
            f"unsupported source {text!r}: only local directories and "
            + "GitHub repositories (github.com/user/repo) are supported"
        )

    parts = [part for part in url.rstrip("/").split("/") if part]
    if len(parts) < 3:
        raise SourceResolutionError(
            f"invalid GitHub URL {text!r}: expected github.com/user/repo"
        )

    repo_name = parts[2]
    if repo_name.endswith(".git"):
        repo_name = repo_name[: -len(".git")]

    return RemoteRepo(
        repository_id="/".join([parts[0], parts[1], repo_name]),
        subpath="/".join(parts[3:]),
        ref=ref,
    )


class SourceFetcher(ABC):
    """Produces a local checkout of a remote repository."""

    @abstractmethod
    def fetch(self, repo: RemoteRepo, dest: Path) -> Path:
        """Fetch ``repo`` into ``dest`` (which must not exist yet).

        Returns:
            Path of the checkout root

        Raises:
            SourceResolutionError: If fetching fails
        """
        pass


class GitSourceFetcher(SourceFetcher):
    """Shallow git clone of the requested ref."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def fetch(self, repo: RemoteRepo, dest: Path) -> Path:
        cmd = ["git", "clone", "--depth", "1"]
        if repo.ref:
            cmd.extend(["--branch", repo.ref])
        cmd.extend([repo.clone_url, str(dest)])

        print(f"Cloning {repo.repository_id}...")
        result = self.runner.capture(cmd)
        if not result.success:
            raise SourceResolutionError(
                f"git clone of {repo.clone_url} failed:\n{result.output}"
            )
        return dest


class ArchiveSourceFetcher(SourceFetcher):
    """Downloads the GitHub tarball of the requested ref."""

    def __init__(self, downloader: Optional[ArchiveDownloader] = None):
        self.downloader = downloader or ArchiveDownloader()

    @staticmethod
    def archive_url(repo: RemoteRepo) -> str:
        return f"https://{repo.repository_id}/archive/{repo.ref or 'HEAD'}.tar.gz"

    def fetch(self, repo: RemoteRepo, dest: Path) -> Path:
        archive = dest.parent / "source.tar.gz"
        try:
            self.downloader.download(self.archive_url(repo), archive)
            return self.downloader.extract_archive(archive, dest)
        except (DownloadError, ExtractionError) as e:
            raise SourceResolutionError(str(e)) from e
        finally:
            if archive.exists():
                archive.unlink()


def default_fetcher(runner: Optional[CommandRunner] = None) -> SourceFetcher:
    """git when available, HTTPS archives otherwise."""
    if shutil.which("git"):
        return GitSourceFetcher(runner)
    logging.info("git not found on PATH, fetching sources as archives")
    return ArchiveSourceFetcher()


@contextmanager
def resolve_source(source: InstallSource, fetcher: SourceFetcher) -> Iterator[Path]:
    """Yield a local directory holding the extension sources.

    Remote checkouts are removed when the context exits, whether the
    install succeeded or not.

    Raises:
        SourceResolutionError: If the directory does not exist or fetching fails
    """
    if isinstance(source, LocalPath):
        if not source.path.is_dir():
            raise SourceResolutionError(f"not a directory: {source.path}")
        yield source.path
        return

    with tempfile.TemporaryDirectory(prefix="pgbrew-") as temp_dir:
        checkout = fetcher.fetch(source, Path(temp_dir) / "checkout")
        directory = checkout / source.subpath if source.subpath else checkout
        if not directory.is_dir():
            raise SourceResolutionError(
                f"path {source.subpath!r} not found in {source.repository_id}"
            )
        logging.debug(f"Resolved {source} to {directory}")
        yield directory
