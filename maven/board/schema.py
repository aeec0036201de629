"""
Task board schema.

Task lifecycle on the board:
  pending → in-progress → completed

Any status can be dropped onto any other column; there is no transition
table. Tasks are created and removed outside the board, the board only
requests status changes.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any


class TaskStatus(Enum):
    """Valid task statuses, one per board column."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @classmethod
    def from_str(cls, value: Optional[str]) -> Optional["TaskStatus"]:
        """Parse a status value, None if it is not one of the columns."""
        try:
            return cls(value)
        except ValueError:
            return None


class MutationState(Enum):
    """Per-intent mutation protocol state."""
    IDLE = "idle"
    PENDING = "pending"


class NotificationKind(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Task:
    """A task record as read from the store.

    ``status`` keeps the raw stored value so that rows with a status outside
    the enumeration can still be loaded; use ``status_enum`` to classify it.
    """

    id: str
    title: str
    status: str = TaskStatus.PENDING.value
    description: Optional[str] = None
    assignee: Optional[str] = None  # Assignee's display name, read-only
    created_at: Optional[str] = None

    @property
    def status_enum(self) -> Optional[TaskStatus]:
        return TaskStatus.from_str(self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "assignee": {"full_name": self.assignee} if self.assignee else None,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from a store row or API payload.

        ``assignee`` may be a plain name or a nested ``{"full_name": ...}``
        object, as returned by an embedded profiles select.
        """
        assignee = data.get("assignee")
        if isinstance(assignee, dict):
            assignee = assignee.get("full_name")
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            description=data.get("description"),
            status=data.get("status") or "",
            assignee=assignee or None,
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class DragGesture:
    """A drop resolved to a source task and a target column.

    ``target_id`` is None when the task was dropped outside any column.
    ``source_status`` is the dragged task's status as the view saw it, if
    the view attached it to the drag.
    """
    source_id: str
    target_id: Optional[str] = None
    source_status: Optional[str] = None


@dataclass(frozen=True)
class StatusIntent:
    """A validated status change, ready to persist."""
    task_id: str
    new_status: TaskStatus

    def to_dict(self) -> Dict[str, Any]:
        return {"task_id": self.task_id, "new_status": self.new_status.value}


@dataclass
class Mutation:
    """One dispatched status change and where it is in the protocol."""
    intent: StatusIntent
    state: MutationState = MutationState.PENDING
    succeeded: Optional[bool] = None
    error: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
