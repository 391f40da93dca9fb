"""Source archive downloader with progress tracking.

This module downloads repository tarballs over HTTPS and extracts them,
for machines where git is not available.
"""

import shutil
import tarfile
import tempfile
from pathlib import Path
from urllib.parse import urlparse

import requests
from tqdm import tqdm

from ..errors import PgbrewError


class DownloadError(PgbrewError):
    """Raised when download fails."""

    pass


class ExtractionError(PgbrewError):
    """Raised when archive extraction fails."""

    pass


class ArchiveDownloader:
    """Downloads and extracts source archives with progress tracking."""

    def __init__(self, chunk_size: int = 8192, timeout: float = 30):
        """Initialize downloader.

        Args:
            chunk_size: Size of chunks for streaming downloads
            timeout: Connect/read timeout in seconds for HTTP requests
        """
        self.chunk_size = chunk_size
        self.timeout = timeout

    def download(self, url: str, dest_path: Path, show_progress: bool = True) -> Path:
        """Download a file from a URL.

        Args:
            url: URL to download from
            dest_path: Destination file path
            show_progress: Whether to show progress bar

        Returns:
            Path to the downloaded file

        Raises:
            DownloadError: If download fails
        """
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        # Use temporary file during download
        temp_file = dest_path.with_suffix(dest_path.suffix + ".tmp")

        try:
            response = requests.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()

            total_size = int(response.headers.get("content-length", 0))
            filename = Path(urlparse(url).path).name

            # GitHub archives usually come without content-length
            with tqdm(
                total=total_size or None,
                unit="B",
                unit_scale=True,
                unit_divisor=1024,
                desc=f"Downloading {filename}",
                disable=not show_progress,
            ) as progress_bar:
                with open(temp_file, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            f.write(chunk)
                            progress_bar.update(len(chunk))

            if dest_path.exists():
                dest_path.unlink()
            temp_file.rename(dest_path)
            return dest_path

        except requests.RequestException as e:
            if temp_file.exists():
                temp_file.unlink()
            raise DownloadError(f"Failed to download {url}: {e}") from e

        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def extract_archive(self, archive_path: Path, dest_dir: Path) -> Path:
        """Extract a tar archive, dropping its single top-level directory.

        GitHub tarballs wrap everything in ``<repo>-<ref>/``; the contents of
        that directory end up directly in ``dest_dir``.

        Args:
            archive_path: Path to .tar.gz archive
            dest_dir: Destination directory (must not exist yet)

        Returns:
            dest_dir

        Raises:
            ExtractionError: If extraction fails
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)

        if not archive_path.exists():
            raise ExtractionError(f"Archive not found: {archive_path}")

        try:
            with tempfile.TemporaryDirectory(dir=dest_dir.parent) as staging:
                staging_path = Path(staging)
                with tarfile.open(archive_path, "r:*") as tar:
                    if hasattr(tarfile, "data_filter"):
                        tar.extractall(staging_path, filter="data")
                    else:
                        tar.extractall(staging_path)

                extracted = list(staging_path.iterdir())
                if len(extracted) == 1 and extracted[0].is_dir():
                    shutil.move(str(extracted[0]), str(dest_dir))
                else:
                    shutil.copytree(staging_path, dest_dir)

            return dest_dir

        except (OSError, tarfile.TarError) as e:
            raise ExtractionError(f"Failed to extract {archive_path}: {e}") from e
