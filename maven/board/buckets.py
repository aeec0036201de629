"""
Board columns and status bucketing.

Each column is a drop target whose id is exactly its status value, so a
drop's target id can be compared with a task's status directly.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Any

from .schema import Task, TaskStatus


@dataclass(frozen=True)
class Column:
    status: TaskStatus
    title: str

    @property
    def drop_id(self) -> str:
        return self.status.value


COLUMNS = (
    Column(TaskStatus.PENDING, "To Do"),
    Column(TaskStatus.IN_PROGRESS, "In Progress"),
    Column(TaskStatus.COMPLETED, "Completed"),
)

DROP_TARGETS = frozenset(c.drop_id for c in COLUMNS)


def bucket_tasks(tasks: Sequence[Task]) -> Dict[str, List[Task]]:
    """Partition tasks into one list per column, keeping snapshot order.

    Tasks whose status is not a column are left out.
    """
    buckets: Dict[str, List[Task]] = {c.drop_id: [] for c in COLUMNS}
    for task in tasks:
        bucket = buckets.get(task.status)
        if bucket is not None:
            bucket.append(task)
    return buckets


@dataclass
class BoardView:
    """What the board shows for one snapshot."""
    loading: bool
    buckets: Optional[Dict[str, List[Task]]] = None
    columns: tuple = field(default=COLUMNS)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "loading": self.loading,
            "columns": [{"id": c.drop_id, "title": c.title} for c in self.columns],
        }
        if self.buckets is not None:
            data["buckets"] = {
                status: [t.to_dict() for t in tasks]
                for status, tasks in self.buckets.items()
            }
        return data
