"""
Artifact Cleanup Service

Deletes produced download files once their retention window has passed.
Each completed job schedules one deletion task; the scheduler owns those
tasks so they can be cancelled individually or all at once on shutdown.
"""
import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def delete_artifact(path: Path) -> bool:
    """
    Remove one artifact, tolerating it already being gone.

    Args:
        path: File to delete

    Returns:
        True if the file was deleted, False if it did not exist or could not
        be removed
    """
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug(f"Artifact already gone: {path}")
        return False
    except OSError as e:
        logger.error(f"Failed to delete artifact {path}: {e}")
        return False

    logger.info(f"Deleted expired artifact: {path}")
    return True


class ArtifactCleanupScheduler:
    """Owns delayed-deletion tasks for produced artifacts."""

    def __init__(self, lifetime_seconds: float):
        self.lifetime_seconds = lifetime_seconds
        self._tasks: Dict[Path, asyncio.Task] = {}

    def schedule(self, path: Path, delay_seconds: Optional[float] = None) -> asyncio.Task:
        """
        Delete ``path`` after ``delay_seconds`` (defaults to the lifetime).

        Rescheduling the same path replaces the earlier task.
        """
        path = Path(path)
        delay = self.lifetime_seconds if delay_seconds is None else delay_seconds

        self.cancel(path)
        task = asyncio.create_task(self._delete_later(path, delay))
        self._tasks[path] = task
        task.add_done_callback(lambda t, p=path: self._forget(p, t))

        logger.info(f"Scheduled deletion of {path.name} in {delay:g}s")
        return task

    def cancel(self, path: Path) -> bool:
        """Cancel a pending deletion. Returns True if one was pending."""
        task = self._tasks.pop(Path(path), None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def pending(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def shutdown(self):
        """Cancel every pending deletion and wait for the tasks to finish"""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} pending artifact deletion(s)")

    def sweep_expired(self, directory: Path) -> Tuple[int, int]:
        """
        Handle artifacts left behind by a previous run.

        Files older than the lifetime are deleted now; younger ones get a
        deletion scheduled for the remainder of their window. Must be called
        from a running event loop.

        Returns:
            Tuple of (deleted_count, scheduled_count)
        """
        directory = Path(directory)
        if not directory.is_dir():
            return (0, 0)

        now = time.time()
        deleted = 0
        scheduled = 0
        for entry in directory.iterdir():
            if not entry.is_file():
                continue
            try:
                age = now - entry.stat().st_mtime
            except FileNotFoundError:
                continue

            remaining = self.lifetime_seconds - age
            if remaining <= 0:
                if delete_artifact(entry):
                    deleted += 1
            else:
                self.schedule(entry, remaining)
                scheduled += 1

        if deleted or scheduled:
            logger.info(f"Startup sweep: deleted {deleted} expired artifact(s), rescheduled {scheduled}")
        return (deleted, scheduled)

    async def _delete_later(self, path: Path, delay: float):
        await asyncio.sleep(delay)
        delete_artifact(path)

    def _forget(self, path: Path, task: asyncio.Task):
        if self._tasks.get(path) is task:
            del self._tasks[path]
