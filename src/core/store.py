"""
ContextFlow — State container.

Holds the single live Snapshot. Every mutation validates its input and its
cross-references, builds a new Snapshot, swaps it in, and flushes the whole
thing through the SnapshotDB. A failed flush is logged and recorded in
``last_save_ok``; the in-memory snapshot stays authoritative.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import tzinfo
from typing import TYPE_CHECKING

from src.core import capture, planning, readiness, sessions
from src.core.clock import now_ms as _now_ms
from src.core.errors import NotFoundError, ValidationError
from src.core.selection import FocusSelection, find_bucket, find_task, select_focus
from src.data.models import (
    Bucket,
    BucketCategory,
    MindDumpItem,
    Plan,
    PlanType,
    Session,
    SessionType,
    Snapshot,
    Task,
    TaskState,
    Workspace,
    WorkspaceLink,
    new_id,
)

if TYPE_CHECKING:
    from src.data.db import SnapshotDB

logger = logging.getLogger(__name__)


class Store:
    """The live snapshot plus the operations that replace it."""

    def __init__(
        self,
        db: SnapshotDB,
        snapshot: Snapshot | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        if tz is None:
            from src.config import settings
            tz = settings.tz
        self._db = db
        self._tz = tz
        self._snapshot = snapshot if snapshot is not None else db.load()
        self.last_save_ok = True

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def _commit(self, snapshot: Snapshot) -> Snapshot:
        self._snapshot = snapshot
        self.last_save_ok = self._db.save(snapshot)
        if not self.last_save_ok:
            logger.warning("Changes kept in memory only; the snapshot could not be saved")
        return snapshot

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_bucket(self, bucket_id: str) -> Bucket | None:
        return find_bucket(self._snapshot, bucket_id)

    def require_bucket(self, bucket_id: str) -> Bucket:
        bucket = self.get_bucket(bucket_id)
        if bucket is None:
            raise NotFoundError("Bucket", bucket_id)
        return bucket

    def get_task(self, task_id: str) -> Task | None:
        return find_task(self._snapshot, task_id)

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def get_workspace_for_bucket(self, bucket_id: str) -> Workspace | None:
        return next((w for w in self._snapshot.workspaces if w.bucket_id == bucket_id), None)

    def buckets(self, category: BucketCategory | None = None) -> list[Bucket]:
        return [
            b for b in self._snapshot.buckets if category is None or b.category == category
        ]

    def tasks_for_bucket(self, bucket_id: str, include_done: bool = False) -> list[Task]:
        return [
            t for t in self._snapshot.tasks
            if t.bucket_id == bucket_id and (include_done or t.state != TaskState.DONE)
        ]

    def _check_milestone(self, milestone_id: str | None) -> None:
        if milestone_id and not any(m.id == milestone_id for m in self._snapshot.milestones):
            raise NotFoundError("Milestone", milestone_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        bucket_id: str,
        title: str,
        state: TaskState = TaskState.INBOX,
        next_action: str | None = None,
        done_definition: str | None = None,
        notes: str | None = None,
        milestone_id: str | None = None,
        links: Iterable[str] = (),
        now_ms: int | None = None,
    ) -> Task:
        """Create a task, enforcing the readiness gate on its initial state."""
        self.require_bucket(bucket_id)
        self._check_milestone(milestone_id)
        draft = Task(
            id="",
            bucket_id=bucket_id,
            title=title.strip(),
            state=TaskState(state),
            next_action=next_action,
            done_definition=done_definition,
            notes=notes,
            milestone_id=milestone_id,
            links=tuple(links),
        )
        task = readiness.prepare_task_save(draft, now_ms=now_ms, is_new=True)
        self._commit(self._snapshot.model_copy(update={"tasks": (*self._snapshot.tasks, task)}))
        logger.info("Task %s created in %s as %s", task.id, bucket_id, task.state)
        return task

    def update_task(self, task: Task, now_ms: int | None = None) -> Task:
        """Replace an existing task with an edited copy, re-running the gate."""
        self.require_task(task.id)
        self.require_bucket(task.bucket_id)
        self._check_milestone(task.milestone_id)
        saved = readiness.prepare_task_save(task, now_ms=now_ms)
        self._commit(self._snapshot.model_copy(update={
            "tasks": tuple(saved if t.id == saved.id else t for t in self._snapshot.tasks),
        }))
        logger.info("Task %s saved (%s)", saved.id, saved.state)
        return saved

    def edit_task(self, task_id: str, now_ms: int | None = None, **changes) -> Task:
        """Apply field ``changes`` to a task and save it through the gate."""
        current = self.require_task(task_id)
        if "state" in changes:
            changes["state"] = TaskState(changes["state"])
        if "links" in changes:
            changes["links"] = tuple(changes["links"])
        unknown = set(changes) - set(Task.model_fields)
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        return self.update_task(current.model_copy(update=changes), now_ms=now_ms)

    def set_task_state(self, task_id: str, state: TaskState, now_ms: int | None = None) -> Task:
        task = self.edit_task(task_id, now_ms=now_ms, state=state)
        logger.info("Task %s moved to %s", task_id, task.state)
        return task

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def record_session(
        self,
        bucket_id: str,
        session_type: SessionType,
        started_at: int,
        ended_at: int,
        energy_before: int,
        task_id: str | None = None,
        **closeout,
    ) -> Session:
        """Append a completed session for an existing bucket (and task)."""
        self.require_bucket(bucket_id)
        if task_id is not None:
            self.require_task(task_id)
        session = sessions.build_session(
            bucket_id=bucket_id,
            session_type=session_type,
            started_at=started_at,
            ended_at=ended_at,
            energy_before=energy_before,
            task_id=task_id,
            **closeout,
        )
        self._commit(sessions.append_session(self._snapshot, session))
        return session

    def previous_session(self, bucket_id: str) -> Session | None:
        return sessions.previous_session(self._snapshot, bucket_id)

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def save_plan(self, plan: Plan) -> Plan:
        """Upsert a plan after checking every bucket/task it references."""
        for bucket_id in (plan.anchor_bucket_id, *plan.sprint_bucket_ids, plan.recovery_bucket_id):
            if bucket_id:
                self.require_bucket(bucket_id)
        if plan.anchor_task_id:
            self.require_task(plan.anchor_task_id)
        self._commit(planning.save_plan(self._snapshot, plan))
        return plan

    def save_nightly_plan(
        self,
        date_key: str | None = None,
        anchor_bucket_id: str | None = None,
        anchor_task_id: str | None = None,
        sprint_bucket_ids: Iterable[str] = (),
        recovery_bucket_id: str | None = None,
        now_ms: int | None = None,
    ) -> Plan:
        """Save the nightly plan; ``date_key`` defaults to tomorrow."""
        if now_ms is None:
            now_ms = _now_ms()
        if date_key is None:
            date_key = planning.tomorrow_key(now_ms, self._tz)
        plan = planning.build_nightly_plan(
            self._snapshot,
            date_key,
            anchor_bucket_id=anchor_bucket_id,
            anchor_task_id=anchor_task_id,
            sprint_bucket_ids=sprint_bucket_ids,
            recovery_bucket_id=recovery_bucket_id,
            now_ms=now_ms,
        )
        return self.save_plan(plan)

    def save_weekly_plan(
        self,
        outcomes: Iterable[str],
        date_key: str | None = None,
        now_ms: int | None = None,
    ) -> Plan:
        """Save the weekly outcomes; ``date_key`` defaults to the current ISO week."""
        if now_ms is None:
            now_ms = _now_ms()
        if date_key is None:
            date_key = planning.week_key(now_ms, self._tz)
        return self.save_plan(
            planning.build_weekly_plan(self._snapshot, date_key, outcomes, now_ms=now_ms),
        )

    def get_plan(self, plan_type: PlanType, date_key: str) -> Plan | None:
        return planning.find_plan(self._snapshot, plan_type, date_key)

    # ------------------------------------------------------------------
    # Mind dump
    # ------------------------------------------------------------------

    def add_mind_dump(self, text: str, now_ms: int | None = None) -> MindDumpItem:
        snapshot, item = capture.add_item(self._snapshot, text, now_ms)
        self._commit(snapshot)
        return item

    def archive_mind_dump(self, item_id: str) -> MindDumpItem:
        snapshot, item = capture.archive_item(self._snapshot, item_id)
        self._commit(snapshot)
        return item

    def convert_mind_dump(self, item_id: str, bucket_id: str, now_ms: int | None = None) -> Task:
        self.require_bucket(bucket_id)
        snapshot, task = capture.apply_conversion(self._snapshot, item_id, bucket_id, now_ms)
        self._commit(snapshot)
        return task

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    def save_workspace(self, workspace: Workspace) -> Workspace:
        if not any(w.id == workspace.id for w in self._snapshot.workspaces):
            raise NotFoundError("Workspace", workspace.id)
        self.require_bucket(workspace.bucket_id)
        self._commit(self._snapshot.model_copy(update={
            "workspaces": tuple(
                workspace if w.id == workspace.id else w for w in self._snapshot.workspaces
            ),
        }))
        logger.info("Workspace %s saved", workspace.id)
        return workspace

    def require_workspace(self, bucket_id: str) -> Workspace:
        self.require_bucket(bucket_id)
        workspace = self.get_workspace_for_bucket(bucket_id)
        if workspace is None:
            raise NotFoundError("Workspace for bucket", bucket_id)
        return workspace

    def add_workspace_link(self, bucket_id: str, label: str, url: str) -> WorkspaceLink:
        workspace = self.require_workspace(bucket_id)
        label, url = label.strip(), url.strip()
        if not label or not url:
            raise ValidationError("A workspace link needs both a label and a URL.")
        link = WorkspaceLink(id=new_id("link"), label=label, url=url)
        self.save_workspace(workspace.model_copy(update={"links": (*workspace.links, link)}))
        return link

    def remove_workspace_link(self, bucket_id: str, link_id: str) -> Workspace:
        workspace = self.require_workspace(bucket_id)
        links = tuple(link for link in workspace.links if link.id != link_id)
        if len(links) == len(workspace.links):
            raise NotFoundError("Link", link_id)
        return self.save_workspace(workspace.model_copy(update={"links": links}))

    def add_checklist_item(self, bucket_id: str, text: str) -> Workspace:
        workspace = self.require_workspace(bucket_id)
        text = text.strip()
        if not text:
            raise ValidationError("Checklist item must not be empty.")
        return self.save_workspace(workspace.model_copy(
            update={"startup_checklist": (*workspace.startup_checklist, text)},
        ))

    def remove_checklist_item(self, bucket_id: str, index: int) -> Workspace:
        """Remove the checklist entry at zero-based ``index``."""
        workspace = self.require_workspace(bucket_id)
        checklist = list(workspace.startup_checklist)
        if not 0 <= index < len(checklist):
            raise NotFoundError("Checklist item", str(index + 1))
        del checklist[index]
        return self.save_workspace(workspace.model_copy(
            update={"startup_checklist": tuple(checklist)},
        ))

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def focus(self, now_ms: int | None = None) -> FocusSelection:
        return select_focus(self._snapshot, now_ms=now_ms, tz=self._tz)

    def reset(self, now_ms: int | None = None) -> Snapshot:
        """Drop the stored snapshot and start over from the seed."""
        from src.data.seed import build_seed_snapshot

        self._db.clear()
        return self._commit(build_seed_snapshot(now_ms if now_ms is not None else _now_ms()))
