"""
ContextFlow — Mind dump capture.

Quick, unstructured captures land in an inbox. Each item is later either
converted into an Inbox task in a chosen bucket or archived. Both outcomes
are terminal.
"""

from __future__ import annotations

import logging

from src.core.clock import hours_to_ms
from src.core.clock import now_ms as _now_ms
from src.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from src.data.models import (
    MindDumpItem,
    MindDumpStatus,
    Snapshot,
    Task,
    TaskState,
    new_id,
)

logger = logging.getLogger(__name__)


def find_item(snapshot: Snapshot, item_id: str) -> MindDumpItem | None:
    return next((i for i in snapshot.mind_dump_items if i.id == item_id), None)


def _require_item(snapshot: Snapshot, item_id: str) -> MindDumpItem:
    item = find_item(snapshot, item_id)
    if item is None:
        raise NotFoundError("Mind dump item", item_id)
    return item


def _replace_item(snapshot: Snapshot, item: MindDumpItem) -> tuple[MindDumpItem, ...]:
    return tuple(item if i.id == item.id else i for i in snapshot.mind_dump_items)


def add_item(
    snapshot: Snapshot, text: str, now_ms: int | None = None, bucket_id: str | None = None,
) -> tuple[Snapshot, MindDumpItem]:
    """Capture ``text`` as a new inbox item, placed first."""
    text = text.strip()
    if not text:
        raise ValidationError("Nothing to capture: text is empty.")
    if now_ms is None:
        now_ms = _now_ms()
    item = MindDumpItem(
        id=new_id("dump"), text=text, created_at=now_ms, bucket_id=bucket_id,
    )
    logger.info("Mind dump captured: %s", item.id)
    return (
        snapshot.model_copy(update={"mind_dump_items": (item, *snapshot.mind_dump_items)}),
        item,
    )


def inbox_items(snapshot: Snapshot) -> list[MindDumpItem]:
    """Open captures, newest first."""
    items = [i for i in snapshot.mind_dump_items if i.status == MindDumpStatus.INBOX]
    return sorted(items, key=lambda i: i.created_at, reverse=True)


def _ensure_open(item: MindDumpItem, action: str) -> None:
    if item.is_terminal:
        raise InvalidTransitionError(
            f"Mind dump item {item.id!r} is already {item.status}; cannot {action} it."
        )


def archive_item(snapshot: Snapshot, item_id: str) -> tuple[Snapshot, MindDumpItem]:
    """Archive an inbox item. Raises InvalidTransitionError if it is already terminal."""
    item = _require_item(snapshot, item_id)
    _ensure_open(item, "archive")
    archived = item.model_copy(update={"status": MindDumpStatus.ARCHIVED})
    logger.info("Mind dump %s archived", item_id)
    return snapshot.model_copy(update={"mind_dump_items": _replace_item(snapshot, archived)}), archived


def convert_to_task(
    item: MindDumpItem, bucket_id: str, now_ms: int | None = None,
) -> tuple[Task, MindDumpItem]:
    """Turn an inbox item into a new Inbox task in ``bucket_id``.

    Returns the new task and the item marked converted, with the task's id
    recorded for traceability.
    """
    _ensure_open(item, "convert")
    if now_ms is None:
        now_ms = _now_ms()
    task = Task(
        id=new_id("t"),
        bucket_id=bucket_id,
        title=item.text,
        state=TaskState.INBOX,
        created_at=now_ms,
        updated_at=now_ms,
    )
    converted = item.model_copy(
        update={"status": MindDumpStatus.CONVERTED, "converted_task_id": task.id},
    )
    return task, converted


def apply_conversion(
    snapshot: Snapshot, item_id: str, bucket_id: str, now_ms: int | None = None,
) -> tuple[Snapshot, Task]:
    """Convert item ``item_id`` and return the snapshot holding both results."""
    item = _require_item(snapshot, item_id)
    task, converted = convert_to_task(item, bucket_id, now_ms)
    logger.info("Mind dump %s converted to task %s in %s", item_id, task.id, bucket_id)
    return (
        snapshot.model_copy(update={
            "tasks": (*snapshot.tasks, task),
            "mind_dump_items": _replace_item(snapshot, converted),
        }),
        task,
    )


def forgotten_tasks(
    snapshot: Snapshot,
    now_ms: int,
    limit: int = 3,
    refine_hours: int | None = None,
) -> list[Task]:
    """Open loops worth a nudge: anything in Doing, or Refine left untouched too long."""
    if refine_hours is None:
        from src.config import settings
        refine_hours = settings.FORGOTTEN_REFINE_HOURS
    threshold = hours_to_ms(refine_hours)

    loops = [
        t for t in snapshot.tasks
        if t.state == TaskState.DOING
        or (t.state == TaskState.REFINE and now_ms - t.updated_at > threshold)
    ]
    return loops[:limit]
