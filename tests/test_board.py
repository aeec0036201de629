"""
Tests for the task board: schema, bucketing, snapshot cache and the
drag-and-drop status mutation protocol.
"""
import asyncio
import threading

import pytest

from maven.board.buckets import COLUMNS, bucket_tasks
from maven.board.cache import TaskSnapshotCache
from maven.board.controller import TaskBoardController
from maven.board.notifications import CollectingSink
from maven.board.schema import (
    DragGesture,
    MutationState,
    NotificationKind,
    StatusIntent,
    Task,
    TaskStatus,
)

from .fakes import ExplodingSink, FakeTaskStore


def make_board(tasks, fail_with=None):
    """Store + cache + controller wired the way the web layer wires them."""
    store = FakeTaskStore(tasks, fail_with=fail_with)
    cache = TaskSnapshotCache(store)
    sink = CollectingSink()
    controller = TaskBoardController(store, sink)
    controller.subscribe("task_status_updated", cache.invalidate)
    cache.refresh()
    controller.render(cache.tasks, cache.is_loading)
    return store, cache, sink, controller


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Schema
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestSchema:

    def test_status_from_str(self):
        assert TaskStatus.from_str("in-progress") == TaskStatus.IN_PROGRESS
        assert TaskStatus.from_str("in_progress") is None
        assert TaskStatus.from_str(None) is None

    def test_task_from_dict_flattens_assignee(self):
        task = Task.from_dict({
            "id": 7,
            "title": "Ship it",
            "status": "completed",
            "assignee": {"full_name": "Grace Hopper"},
        })
        assert task.id == "7"
        assert task.assignee == "Grace Hopper"
        assert task.status_enum == TaskStatus.COMPLETED
        assert task.to_dict()["assignee"] == {"full_name": "Grace Hopper"}

    def test_task_keeps_unknown_status(self):
        task = Task.from_dict({"id": "1", "title": "x", "status": "archived"})
        assert task.status == "archived"
        assert task.status_enum is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Bucketing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestBuckets:

    def test_column_ids_are_status_values(self):
        assert [c.drop_id for c in COLUMNS] == ["pending", "in-progress", "completed"]
        assert [c.title for c in COLUMNS] == ["To Do", "In Progress", "Completed"]

    def test_every_task_in_exactly_one_matching_bucket(self):
        tasks = [
            Task(id="1", title="a", status="pending"),
            Task(id="2", title="b", status="completed"),
            Task(id="3", title="c", status="in-progress"),
            Task(id="4", title="d", status="pending"),
        ]
        buckets = bucket_tasks(tasks)
        for task in tasks:
            holders = [status for status, items in buckets.items() if task in items]
            assert holders == [task.status]
        assert [t.id for t in buckets["pending"]] == ["1", "4"]

    def test_unknown_status_is_dropped(self):
        tasks = [
            Task(id="1", title="a", status="pending"),
            Task(id="2", title="b", status="archived"),
            Task(id="3", title="c", status=""),
        ]
        buckets = bucket_tasks(tasks)
        assert sum(len(v) for v in buckets.values()) == 1
        assert set(buckets) == {"pending", "in-progress", "completed"}

    def test_empty_snapshot(self):
        assert bucket_tasks([]) == {"pending": [], "in-progress": [], "completed": []}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Snapshot cache
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestSnapshotCache:

    def test_starts_loading_until_first_refresh(self):
        cache = TaskSnapshotCache(FakeTaskStore([Task(id="1", title="a")]))
        assert cache.is_loading
        cache.refresh()
        assert not cache.is_loading
        assert [t.id for t in cache.tasks] == ["1"]

    def test_refresh_replaces_snapshot_wholesale(self):
        store = FakeTaskStore([Task(id="1", title="a")])
        cache = TaskSnapshotCache(store)
        first = cache.refresh()
        second = cache.refresh()
        assert first is not second
        assert cache.refresh_count == 2

    def test_load_failure_keeps_previous_snapshot(self):
        store = FakeTaskStore([Task(id="1", title="a")])
        cache = TaskSnapshotCache(store)
        cache.refresh()
        store.fail_list = True
        cache.refresh()
        assert [t.id for t in cache.tasks] == ["1"]
        assert cache.last_error == "load failed"
        assert not cache.is_loading


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Controller: rendering and gesture resolution
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestResolveIntent:

    def setup_method(self):
        self.controller = TaskBoardController(FakeTaskStore(), CollectingSink())
        self.controller.render([Task(id="1", title="a", status="pending")], is_loading=False)

    def test_no_target_is_noop(self):
        assert self.controller.resolve_intent(DragGesture("1", None)) is None
        assert self.controller.resolve_intent(DragGesture("1", "")) is None

    def test_unknown_target_is_noop(self):
        assert self.controller.resolve_intent(DragGesture("1", "trash")) is None

    def test_same_bucket_is_noop(self):
        assert self.controller.resolve_intent(DragGesture("1", "pending")) is None

    def test_same_bucket_from_gesture_status(self):
        gesture = DragGesture("99", "completed", source_status="completed")
        assert self.controller.resolve_intent(gesture) is None

    def test_new_bucket_yields_intent(self):
        intent = self.controller.resolve_intent(DragGesture("1", "in-progress"))
        assert intent == StatusIntent(task_id="1", new_status=TaskStatus.IN_PROGRESS)

    def test_render_while_loading_has_no_buckets(self):
        view = self.controller.render([Task(id="1", title="a")], is_loading=True)
        assert view.loading
        assert view.buckets is None
        assert "buckets" not in view.to_dict()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Controller: mutation protocol
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.asyncio
async def test_drop_on_new_bucket_updates_and_refreshes():
    store, cache, sink, controller = make_board([Task(id="1", title="a", status="pending")])

    mutation = await controller.drop(DragGesture("1", "in-progress"))

    assert store.calls == [("1", TaskStatus.IN_PROGRESS)]
    assert mutation.state == MutationState.IDLE
    assert mutation.succeeded
    notes = sink.drain()
    assert [(n.kind, n.title, n.message) for n in notes] == [
        (NotificationKind.SUCCESS, "Success", "Task status updated"),
    ]
    view = controller.render(cache.tasks, cache.is_loading)
    assert [t.id for t in view.buckets["in-progress"]] == ["1"]
    assert view.buckets["pending"] == []


@pytest.mark.asyncio
async def test_store_failure_leaves_snapshot_and_notifies_once():
    store, cache, sink, controller = make_board(
        [Task(id="1", title="a", status="pending")], fail_with="network error"
    )
    refreshes_before = cache.refresh_count

    mutation = await controller.drop(DragGesture("1", "in-progress"))

    assert len(store.calls) == 1
    assert mutation.state == MutationState.IDLE
    assert mutation.succeeded is False
    assert mutation.error == "network error"
    notes = sink.drain()
    assert len(notes) == 1
    assert notes[0].kind == NotificationKind.ERROR
    assert notes[0].message == "network error"
    assert cache.refresh_count == refreshes_before
    assert cache.tasks[0].status == "pending"
    view = controller.render(cache.tasks, cache.is_loading)
    assert [t.id for t in view.buckets["pending"]] == ["1"]


@pytest.mark.asyncio
async def test_store_failure_emits_no_events():
    store = FakeTaskStore([Task(id="1", title="a", status="pending")], fail_with="boom")
    controller = TaskBoardController(store, CollectingSink())
    controller.render(store.list_tasks(), is_loading=False)
    emitted = []
    controller._emit = lambda event_type, **kwargs: emitted.append(event_type)

    await controller.drop(DragGesture("1", "completed"))

    assert emitted == []


@pytest.mark.asyncio
async def test_drop_on_current_bucket_is_silent():
    store, cache, sink, controller = make_board([Task(id="1", title="a", status="pending")])

    assert controller.handle_drag_end(DragGesture("1", "pending")) is None
    assert await controller.drop(DragGesture("1", "pending")) is None

    assert store.calls == []
    assert sink.notifications == []


@pytest.mark.asyncio
async def test_drop_outside_any_column_is_silent():
    store, cache, sink, controller = make_board([Task(id="1", title="a", status="pending")])

    assert await controller.drop(DragGesture("1", None)) is None

    assert store.calls == []
    assert sink.notifications == []


@pytest.mark.asyncio
async def test_gestures_ignored_while_loading():
    store = FakeTaskStore([Task(id="1", title="a", status="pending")])
    sink = CollectingSink()
    controller = TaskBoardController(store, sink)
    controller.render([], is_loading=True)

    assert controller.handle_drag_end(DragGesture("1", "completed")) is None
    assert store.calls == []


@pytest.mark.asyncio
async def test_unexpected_store_exception_becomes_notification():
    store, cache, sink, controller = make_board([Task(id="1", title="a", status="pending")])

    def boom(task_id, status):
        raise RuntimeError("connection reset")

    store.update_task_status = boom
    mutation = await controller.drop(DragGesture("1", "completed"))

    assert mutation.succeeded is False
    assert [n.message for n in sink.drain()] == ["connection reset"]


@pytest.mark.asyncio
async def test_failing_refresh_subscriber_does_not_block_toast():
    store, cache, sink, controller = make_board([Task(id="1", title="a", status="pending")])

    def broken(**event):
        raise RuntimeError("refetch exploded")

    controller.subscribe("task_status_updated", broken)
    mutation = await controller.drop(DragGesture("1", "completed"))

    assert mutation.succeeded
    assert [n.kind for n in sink.drain()] == [NotificationKind.SUCCESS]


@pytest.mark.asyncio
async def test_failing_sink_never_escapes_controller():
    store = FakeTaskStore([Task(id="1", title="a", status="pending")], fail_with="nope")
    controller = TaskBoardController(store, ExplodingSink())
    controller.render(store.list_tasks(), is_loading=False)

    mutation = await controller.drop(DragGesture("1", "completed"))

    assert mutation.succeeded is False


@pytest.mark.asyncio
async def test_concurrent_drops_are_independent_and_may_finish_out_of_order():
    store, cache, sink, controller = make_board([
        Task(id="1", title="a", status="pending"),
        Task(id="2", title="b", status="pending"),
    ])
    finished = []
    controller.subscribe("task_status_updated", lambda task_id, status: finished.append(task_id))
    gate = threading.Event()
    store.gates["1"] = gate

    first = controller.handle_drag_end(DragGesture("1", "completed"))
    second = controller.handle_drag_end(DragGesture("2", "in-progress"))
    assert first is not None and second is not None

    await second
    assert not first.done()
    assert controller.in_flight == 1

    gate.set()
    await controller.wait_idle()

    assert finished == ["2", "1"]
    assert {c[0] for c in store.calls} == {"1", "2"}
    assert len([n for n in sink.drain() if n.kind == NotificationKind.SUCCESS]) == 2
    assert controller.in_flight == 0
    statuses = {t.id: t.status for t in cache.tasks}
    assert statuses == {"1": "completed", "2": "in-progress"}


@pytest.mark.asyncio
async def test_repeated_drop_before_refresh_dispatches_again():
    store, cache, sink, controller = make_board([Task(id="1", title="a", status="pending")])
    gate = threading.Event()
    store.gates["1"] = gate

    a = controller.handle_drag_end(DragGesture("1", "completed"))
    b = controller.handle_drag_end(DragGesture("1", "completed"))
    gate.set()
    await asyncio.gather(a, b)

    assert len(store.calls) == 2
