"""Builders and clock constants shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timezone

from src.core.clock import MS_PER_HOUR, from_local
from src.data.models import (
    Bucket,
    BucketCategory,
    Session,
    SessionType,
    Snapshot,
    Task,
    TaskState,
    Workspace,
)

HOUR = MS_PER_HOUR
# Saturday 2026-02-14 09:00 UTC
NOW = from_local(datetime(2026, 2, 14, 9, 0, tzinfo=timezone.utc))

MAIN = BucketCategory.MAIN_WORK
SUPPORT = BucketCategory.SUPPORTING_HABITS
SELF_CARE = BucketCategory.SELF_CARE


def bucket(bucket_id: str, category: BucketCategory, name: str | None = None) -> Bucket:
    return Bucket(id=bucket_id, name=name or bucket_id.upper(), category=category)


def task(
    task_id: str,
    bucket_id: str,
    state: TaskState = TaskState.INBOX,
    updated_at: int = NOW,
    ready: bool = True,
    **fields,
) -> Task:
    """A task; ``ready=True`` fills in next action and done definition."""
    if ready:
        fields.setdefault("next_action", f"Open {task_id}")
        fields.setdefault("done_definition", f"{task_id} shipped")
    return Task(
        id=task_id,
        bucket_id=bucket_id,
        title=fields.pop("title", f"Task {task_id}"),
        state=state,
        created_at=fields.pop("created_at", updated_at),
        updated_at=updated_at,
        **fields,
    )


def session(
    session_id: str,
    bucket_id: str,
    started_at: int,
    minutes: int = 30,
    session_type: SessionType = SessionType.ANCHOR,
    **fields,
) -> Session:
    return Session(
        id=session_id,
        bucket_id=bucket_id,
        type=session_type,
        actual_min=minutes,
        started_at=started_at,
        ended_at=fields.pop("ended_at", started_at + minutes * 60_000),
        **fields,
    )


def snapshot_of(buckets=(), tasks=(), sessions=(), plans=(), **extra) -> Snapshot:
    """Build a small snapshot; workspaces default to one per bucket."""
    workspaces = extra.pop("workspaces", None)
    if workspaces is None:
        workspaces = [
            Workspace(id=f"ws-{b.id}", bucket_id=b.id, title=f"{b.name} Workspace")
            for b in buckets
        ]
    return Snapshot(
        buckets=tuple(buckets),
        workspaces=tuple(workspaces),
        tasks=tuple(tasks),
        sessions=tuple(sessions),
        plans=tuple(plans),
        **extra,
    )
