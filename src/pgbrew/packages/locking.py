"""Exclusive file locking for the cellar.

Two pgbrew processes mutating the cellar at the same time would otherwise
lose one of the updates (both load, both save). Every load-mutate-save cycle
therefore runs under an ``fcntl.flock`` on a sidecar ``.lock`` file.
"""

import fcntl
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from ..errors import PgbrewError

DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.1


class LockTimeoutError(PgbrewError):
    """Raised when a file lock cannot be acquired within the timeout."""

    pass


def lock_path_for(file_path: Union[str, Path]) -> Path:
    target = Path(file_path)
    return target.with_suffix(target.suffix + ".lock")


@contextmanager
def acquire_file_lock(
    file_path: Union[str, Path],
    timeout: float = DEFAULT_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> Iterator[Path]:
    """Hold an exclusive lock on ``<file_path>.lock`` for the context.

    Uses non-blocking ``LOCK_EX | LOCK_NB`` attempts in a retry loop so a
    stuck holder turns into a clear error instead of a hang. The sidecar
    file is left in place; unlinking it would let a waiter lock a file
    that no longer has a name.

    Args:
        file_path: File whose sidecar lock is taken
        timeout: Seconds to wait before giving up
        poll_interval: Seconds between attempts

    Yields:
        Path of the lock file

    Raises:
        LockTimeoutError: If the lock is still held by someone else after timeout
    """
    lock_target = lock_path_for(file_path)
    lock_target.parent.mkdir(parents=True, exist_ok=True)

    start = time.monotonic()
    with open(lock_target, "a+") as fh:
        while True:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except OSError:
                if time.monotonic() - start >= timeout:
                    raise LockTimeoutError(
                        f"Could not lock {file_path} within {timeout}s "
                        + "(is another pgbrew command running?)"
                    )
                time.sleep(poll_interval)

        try:
            yield lock_target
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
