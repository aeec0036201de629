#!/usr/bin/env python3
"""
Quick verification that the task board works end-to-end against SQLite.
"""
import asyncio
import tempfile
from pathlib import Path

from maven.board.cache import TaskSnapshotCache
from maven.board.controller import TaskBoardController
from maven.board.notifications import CollectingSink
from maven.board.schema import DragGesture, TaskStatus
from maven.board.store import SqliteTaskStore


async def run(db_path: str) -> bool:
    print("\n[1/5] Creating SQLite store...")
    store = SqliteTaskStore(db_path)
    print("✅ Store created")

    print("\n[2/5] Seeding a task...")
    task = store.create_task("Write launch post", description="For the landing page")
    print(f"✅ Task created: {task.id} ({task.status})")

    print("\n[3/5] Loading the snapshot and rendering the board...")
    cache = TaskSnapshotCache(store)
    sink = CollectingSink()
    controller = TaskBoardController(store, sink)
    controller.subscribe("task_status_updated", cache.invalidate)
    cache.refresh()
    view = controller.render(cache.tasks, cache.is_loading)
    print(f"✅ Buckets: { {k: len(v) for k, v in view.buckets.items()} }")

    print("\n[4/5] Dropping the task on its own column (no-op)...")
    result = await controller.drop(DragGesture(task.id, TaskStatus.PENDING.value))
    print(f"✅ Dispatched: {result is not None}, notifications: {len(sink.notifications)}")

    print("\n[5/5] Dropping the task on 'in-progress'...")
    mutation = await controller.drop(DragGesture(task.id, TaskStatus.IN_PROGRESS.value))
    view = controller.render(cache.tasks, cache.is_loading)
    moved = [t.id for t in view.buckets[TaskStatus.IN_PROGRESS.value]]
    for n in sink.drain():
        print(f"   toast: {n.kind.value} {n.title}: {n.message}")
    ok = bool(mutation and mutation.succeeded and task.id in moved)
    print("✅ Task moved" if ok else "❌ Task did not move")
    return ok


def main():
    print("=" * 60)
    print("Maven Task Board Verification")
    print("=" * 60)
    with tempfile.TemporaryDirectory() as tmp:
        ok = asyncio.run(run(str(Path(tmp) / "maven.db")))
    print("\n" + "=" * 60)
    print("All checks passed" if ok else "Verification FAILED")
    print("=" * 60)
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    main()
