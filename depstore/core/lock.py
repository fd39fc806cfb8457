"""
Store-wide lock

Serializes every mutating operation on a store. The lock is an advisory
flock on <store>/.depstore.lock, which also holds the holder's PID.

A holder is considered stale when its process is gone. A lock file with no
readable PID is stale once it is older than the stale duration. A live
holder is never broken. A stale lock is broken by unlinking the lock file
and locking a fresh one.
"""

import fcntl
import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional, TypeVar

from .config import DEFAULT_LOCK_STALE_DURATION

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".depstore.lock"

T = TypeVar('T')


class LockError(Exception):
    """Raised when the store is locked by another live holder."""

    def __init__(self, lock_path: Path, holder_pid: Optional[int] = None):
        self.lock_path = lock_path
        self.holder_pid = holder_pid
        holder = f" by PID {holder_pid}" if holder_pid else ""
        super().__init__(f"Store is locked{holder} ({lock_path})")


class StoreLock:
    """Manages the store lock file."""

    def __init__(self, store_path: Path,
                 stale_duration: float = DEFAULT_LOCK_STALE_DURATION):
        """Initialize lock.

        Args:
            store_path: Store directory to lock
            stale_duration: Seconds after which a held lock may be broken
        """
        self.lock_path = Path(store_path) / LOCK_FILE_NAME
        self.stale_duration = stale_duration
        self.lock_fd = None
        self.locked = False

    def acquire(self, blocking: bool = False, timeout: float = None,
                wait_callback: Callable[[int], None] = None) -> bool:
        """Acquire the store lock.

        Args:
            blocking: If True, wait for the lock. If False, return immediately.
            timeout: Maximum seconds to wait when blocking (None = forever)
            wait_callback: Called with PID of holder while waiting.

        Returns:
            True if lock acquired, False if not acquired.
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + timeout if timeout is not None else None

        while True:
            # Append mode: opening must not wipe the holder's PID
            self.lock_fd = open(self.lock_path, 'a+')
            try:
                fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                self.lock_fd.close()
                self.lock_fd = None
            else:
                if self._same_file():
                    self._write_pid()
                    self.locked = True
                    return True
                # Lock file was replaced while we waited for it
                self._close()
                continue

            holder_pid = self.get_holder_pid()
            if self._is_stale(holder_pid):
                logger.warning(f"Lock holder PID {holder_pid} is stale, breaking lock")
                self.lock_path.unlink(missing_ok=True)
                continue

            if not blocking:
                return False
            if deadline is not None and time.monotonic() >= deadline:
                return False
            if wait_callback and holder_pid:
                wait_callback(holder_pid)
            time.sleep(0.5)

    def release(self):
        """Release the store lock."""
        if self.lock_fd and self.locked and self._same_file():
            # Only clear the PID if nobody broke our lock in the meantime
            self.lock_fd.truncate(0)
        self._close()

    def get_holder_pid(self) -> Optional[int]:
        """Get PID of current lock holder."""
        try:
            return int(self.lock_path.read_text().strip())
        except (OSError, ValueError):
            return None

    def _close(self):
        if self.lock_fd:
            if self.locked:
                fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
            self.lock_fd.close()
        self.lock_fd = None
        self.locked = False

    def _write_pid(self):
        self.lock_fd.seek(0)
        self.lock_fd.truncate(0)
        self.lock_fd.write(str(os.getpid()))
        self.lock_fd.flush()

    def _same_file(self) -> bool:
        """True if our descriptor still refers to the file at lock_path."""
        try:
            path_stat = self.lock_path.stat()
        except FileNotFoundError:
            return False
        fd_stat = os.fstat(self.lock_fd.fileno())
        return (path_stat.st_dev, path_stat.st_ino) == (fd_stat.st_dev, fd_stat.st_ino)

    def _is_stale(self, holder_pid: Optional[int]) -> bool:
        """A live holder is never stale; age only counts without a PID."""
        if holder_pid:
            return not self._pid_exists(holder_pid)
        try:
            age = time.time() - self.lock_path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age > self.stale_duration

    @staticmethod
    def _pid_exists(pid: int) -> bool:
        """Check if a process exists."""
        try:
            os.kill(pid, 0)
            return True
        except ProcessLookupError:
            return False
        except PermissionError:
            return True  # Process exists but we can't signal it

    def __enter__(self):
        if not self.acquire():
            raise LockError(self.lock_path, self.get_holder_pid())
        return self

    def __exit__(self, *args):
        self.release()


def with_lock(store_path: Path, operation: Callable[[], T],
              stale_duration: float = DEFAULT_LOCK_STALE_DURATION,
              wait: bool = False, timeout: float = None) -> T:
    """Run operation while holding the store lock.

    Raises:
        LockError: If another non-stale holder has the lock
    """
    lock = StoreLock(store_path, stale_duration)
    if not lock.acquire(blocking=wait, timeout=timeout):
        raise LockError(lock.lock_path, lock.get_holder_pid())
    logger.debug(f"Acquired store lock {lock.lock_path}")
    try:
        return operation()
    finally:
        lock.release()
        logger.debug(f"Released store lock {lock.lock_path}")
