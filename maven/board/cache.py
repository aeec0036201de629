"""
Caller-side task snapshot cache.

Holds the list the board renders from. A refresh replaces the list
wholesale; it is never patched in place.
"""
import logging
from typing import List, Optional

from .schema import Task
from .store import TaskStore

logger = logging.getLogger(__name__)


class TaskSnapshotCache:
    """Owns the task snapshot and refetches it on invalidation."""

    def __init__(self, store: TaskStore):
        self.store = store
        self.tasks: List[Task] = []
        self.is_loading = True
        self.last_error: Optional[str] = None
        self.refresh_count = 0

    def refresh(self) -> List[Task]:
        """Replace the snapshot from the store.

        On failure the previous snapshot is kept and the error recorded.
        """
        try:
            tasks = self.store.list_tasks()
        except Exception as e:
            logger.warning(f"Task snapshot refresh failed: {e}")
            self.last_error = str(e)
            self.is_loading = False
            return self.tasks

        self.tasks = list(tasks)
        self.last_error = None
        self.is_loading = False
        self.refresh_count += 1
        return self.tasks

    def invalidate(self, **_event) -> None:
        """Subscription hook for the controller's ``task_status_updated`` event."""
        self.refresh()
