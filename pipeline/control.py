import os
import fcntl
import json
import time
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Dict

logger = logging.getLogger(__name__)

LOCK_FILE_PATH = "matching_pipeline.lock"


class PipelineBusyError(RuntimeError):
    """Another scheduled run holds the pipeline lock."""

    def __init__(self, owner: Optional[Dict]):
        self.owner = owner
        who = f"{owner.get('run')} (pid {owner.get('pid')})" if owner else "another process"
        super().__init__(f"Matching pipeline is busy: held by {who}")


class PipelineController:
    """
    Exclusive file lock around scheduled runs, so the nightly batch, the
    incremental pass and the digests never overlap on one host.
    """
    def __init__(self, lock_file: str = LOCK_FILE_PATH):
        self.lock_file = lock_file
        self.file_handle = None

    def _open_file(self):
        if not self.file_handle:
            self.file_handle = open(self.lock_file, "a+")

    def acquire_lock(self, run: str, metadata: Optional[Dict] = None) -> bool:
        """
        Try to take the lock without blocking.

        Args:
            run: Name of the run taking the lock ('batch', 'incremental', ...)
            metadata: Extra owner info written into the lock file

        Returns:
            True if acquired, False if another process holds it.
        """
        self._open_file()
        try:
            fcntl.flock(self.file_handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            self.file_handle.close()
            self.file_handle = None
            return False

        self.file_handle.truncate(0)
        self.file_handle.seek(0)
        json.dump({"run": run, "pid": os.getpid(), "timestamp": time.time(), **(metadata or {})}, self.file_handle)
        self.file_handle.flush()
        logger.debug(f"Pipeline lock acquired for {run}")
        return True

    def release_lock(self):
        if not self.file_handle:
            return
        try:
            self.file_handle.truncate(0)
            fcntl.flock(self.file_handle, fcntl.LOCK_UN)
        except OSError as e:
            logger.error(f"Error releasing pipeline lock: {e}")
        finally:
            self.file_handle.close()
            self.file_handle = None

    def get_lock_info(self) -> Optional[Dict]:
        """Owner of the current lock, or None if the file is missing or empty."""
        if not os.path.exists(self.lock_file):
            return None

        try:
            with open(self.lock_file, "r") as f:
                content = f.read().strip()
        except OSError as e:
            logger.warning(f"Could not read lock info: {e}")
            return None
        if not content:
            return None
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            return None

    @contextmanager
    def hold(self, run: str, metadata: Optional[Dict] = None) -> Iterator["PipelineController"]:
        """
        Raises:
            PipelineBusyError: The lock is held elsewhere
        """
        if not self.acquire_lock(run, metadata):
            raise PipelineBusyError(self.get_lock_info())
        try:
            yield self
        finally:
            self.release_lock()
