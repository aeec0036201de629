"""
Task board controller: drag-and-drop status changes.

Flow for one drop:
  gesture → intent → store.update_task_status → refresh event + toast

Nothing is changed locally before the store answers. On success the
controller emits ``task_status_updated`` so the owner of the snapshot can
refetch it; on failure the snapshot is left alone and an error toast is
sent. Each drop runs as its own asyncio task: drops made before an earlier
one finishes are not queued or merged, and they may complete in any order.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set

from .buckets import BoardView, bucket_tasks
from .notifications import NotificationSink, safe_notify
from .schema import (
    DragGesture,
    Mutation,
    MutationState,
    NotificationKind,
    StatusIntent,
    Task,
    TaskStatus,
)
from .store import TaskStore

logger = logging.getLogger(__name__)

SUCCESS_TITLE = "Success"
SUCCESS_MESSAGE = "Task status updated"
ERROR_TITLE = "Error"


class TaskBoardController:
    """Renders a borrowed task snapshot and drives status mutations."""

    def __init__(self, store: TaskStore, notifier: NotificationSink):
        self.store = store
        self.notifier = notifier
        self.subscribers: Dict[str, list] = {}  # event_type -> list of callbacks
        self._tasks: Sequence[Task] = ()
        self._loading = True
        self._in_flight: Set[asyncio.Task] = set()

    # ── Events ──────────────────────────────────────────────────────────────

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type."""
        self.subscribers.setdefault(event_type, []).append(callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers."""
        for callback in self.subscribers.get(event_type, []):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")

    # ── Rendering ───────────────────────────────────────────────────────────

    def render(self, tasks: Sequence[Task], is_loading: bool) -> BoardView:
        """Take the caller's current snapshot and bucket it by status."""
        self._tasks = tasks
        self._loading = is_loading
        if is_loading:
            return BoardView(loading=True)
        return BoardView(loading=False, buckets=bucket_tasks(tasks))

    def _current_status(self, task_id: str) -> Optional[str]:
        for task in self._tasks:
            if task.id == task_id:
                return task.status
        return None

    # ── Gestures ────────────────────────────────────────────────────────────

    def resolve_intent(self, gesture: DragGesture) -> Optional[StatusIntent]:
        """Turn a drop into an intent, or None when it should do nothing.

        No-ops: dropped outside any column, dropped on something that is not
        a column, or dropped on the column the task is already in.
        """
        if not gesture.target_id:
            return None
        new_status = TaskStatus.from_str(gesture.target_id)
        if new_status is None:
            logger.debug(f"Ignoring drop of {gesture.source_id} on unknown target {gesture.target_id!r}")
            return None

        current = gesture.source_status
        if current is None:
            current = self._current_status(gesture.source_id)
        if current == new_status.value:
            return None
        return StatusIntent(task_id=gesture.source_id, new_status=new_status)

    def handle_drag_end(self, gesture: DragGesture) -> Optional["asyncio.Task[Mutation]"]:
        """Handle a finished drag. Must be called from the running event loop.

        Returns the scheduled mutation task, or None for a no-op.
        """
        if self._loading:
            return None
        intent = self.resolve_intent(gesture)
        if intent is None:
            return None
        return self.dispatch(intent)

    async def drop(self, gesture: DragGesture) -> Optional[Mutation]:
        """Handle a drag and wait for its mutation to settle."""
        pending = self.handle_drag_end(gesture)
        if pending is None:
            return None
        return await pending

    # ── Mutation protocol ───────────────────────────────────────────────────

    def dispatch(self, intent: StatusIntent) -> "asyncio.Task[Mutation]":
        """Start one status mutation without waiting for it."""
        mutation = Mutation(intent=intent)
        task = asyncio.create_task(self._run(mutation))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _run(self, mutation: Mutation) -> Mutation:
        intent = mutation.intent
        logger.info(f"Updating task {intent.task_id} → {intent.new_status.value}")
        try:
            await asyncio.to_thread(
                self.store.update_task_status, intent.task_id, intent.new_status
            )
        except Exception as e:
            mutation.state = MutationState.IDLE
            mutation.succeeded = False
            mutation.error = str(e) or e.__class__.__name__
            logger.warning(f"Status update for task {intent.task_id} failed: {mutation.error}")
            safe_notify(self.notifier, NotificationKind.ERROR, ERROR_TITLE, mutation.error)
            return mutation

        mutation.state = MutationState.IDLE
        mutation.succeeded = True
        self._emit("task_status_updated", task_id=intent.task_id, status=intent.new_status)
        safe_notify(self.notifier, NotificationKind.SUCCESS, SUCCESS_TITLE, SUCCESS_MESSAGE)
        return mutation

    @property
    def in_flight(self) -> int:
        """Number of mutations still waiting on the store."""
        return len(self._in_flight)

    async def wait_idle(self) -> List[Mutation]:
        """Wait for every mutation in flight right now."""
        if not self._in_flight:
            return []
        return list(await asyncio.gather(*list(self._in_flight)))
