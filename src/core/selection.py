"""Daily focus selection — pure business logic.

Picks the day's anchor (primary deep-work bucket and task), sprint (short
touch on a neglected bucket) and recovery (self-care) buckets. An explicit
nightly plan for today wins; otherwise simple fallbacks over the bucket list
apply. Ties are broken by bucket order in the snapshot.

Plan references that no longer resolve are logged and treated as absent, so
selection falls through to the fallbacks instead of failing.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum

from src.core.clock import hours_to_ms
from src.core.clock import now_ms as _now_ms
from src.core.planning import day_key, find_plan
from src.data.models import (
    Bucket,
    BucketCategory,
    Goal,
    Milestone,
    Plan,
    PlanType,
    Session,
    Snapshot,
    Task,
    TaskState,
)

logger = logging.getLogger(__name__)

SPRINT_CATEGORIES = frozenset({BucketCategory.MAIN_WORK, BucketCategory.SUPPORTING_HABITS})


class BucketBadge(Enum):
    RESUME = "RESUME"
    STALE = "STALE"


@dataclass
class FocusSelection:
    """The day's derived focus. Any part may be None (empty state)."""

    anchor_bucket: Bucket | None
    anchor_task: Task | None
    anchor_stale: bool
    anchor_last_session: Session | None
    sprint_bucket: Bucket | None
    sprint_neglected: bool
    recovery_bucket: Bucket | None
    plan: Plan | None          # today's nightly plan, if any


@dataclass
class GoalContext:
    milestone: Milestone | None
    goal: Goal | None


def _neglect_ms(neglect_hours: int | None) -> int:
    if neglect_hours is None:
        from src.config import settings
        neglect_hours = settings.NEGLECT_HOURS
    return hours_to_ms(neglect_hours)


def _stale_ms(stale_hours: int | None) -> int:
    if stale_hours is None:
        from src.config import settings
        stale_hours = settings.STALE_TASK_HOURS
    return hours_to_ms(stale_hours)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def find_bucket(snapshot: Snapshot, bucket_id: str | None) -> Bucket | None:
    if not bucket_id:
        return None
    return next((b for b in snapshot.buckets if b.id == bucket_id), None)


def find_task(snapshot: Snapshot, task_id: str | None) -> Task | None:
    if not task_id:
        return None
    return next((t for t in snapshot.tasks if t.id == task_id), None)


def _latest(sessions: list[Session]) -> Session | None:
    # max() keeps the first of equal keys, so ties go to array order
    return max(sessions, key=lambda s: s.started_at) if sessions else None


def last_session(snapshot: Snapshot, bucket_id: str) -> Session | None:
    """The session for ``bucket_id`` with the greatest ``started_at``."""
    return _latest([s for s in snapshot.sessions if s.bucket_id == bucket_id])


def most_recent_session(snapshot: Snapshot) -> Session | None:
    return _latest(list(snapshot.sessions))


# ---------------------------------------------------------------------------
# Per-bucket and per-task flags
# ---------------------------------------------------------------------------


def is_neglected(
    snapshot: Snapshot, bucket_id: str, now_ms: int, neglect_hours: int | None = None,
) -> bool:
    """True if the bucket has no session, or its last one started over the threshold ago."""
    last = last_session(snapshot, bucket_id)
    if last is None:
        return True
    return now_ms - last.started_at > _neglect_ms(neglect_hours)


def is_resume_candidate(snapshot: Snapshot, bucket_id: str) -> bool:
    """True iff ``bucket_id`` owns the most recently started session overall."""
    latest = most_recent_session(snapshot)
    return latest is not None and latest.bucket_id == bucket_id


def is_task_stale(task: Task, now_ms: int, stale_hours: int | None = None) -> bool:
    """A Doing task untouched for longer than the threshold should be reconsidered."""
    return task.state == TaskState.DOING and now_ms - task.updated_at > _stale_ms(stale_hours)


def bucket_badge(
    snapshot: Snapshot, bucket_id: str, now_ms: int, neglect_hours: int | None = None,
) -> BucketBadge | None:
    """RESUME for the bucket owning the latest session, else STALE if neglected."""
    if is_resume_candidate(snapshot, bucket_id):
        return BucketBadge.RESUME
    if is_neglected(snapshot, bucket_id, now_ms, neglect_hours):
        return BucketBadge.STALE
    return None


def bucket_badges(
    snapshot: Snapshot, now_ms: int, neglect_hours: int | None = None,
) -> dict[str, BucketBadge]:
    """Badges for every bucket that has one, keyed by bucket id."""
    badges: dict[str, BucketBadge] = {}
    for bucket in snapshot.buckets:
        badge = bucket_badge(snapshot, bucket.id, now_ms, neglect_hours)
        if badge is not None:
            badges[bucket.id] = badge
    return badges


# ---------------------------------------------------------------------------
# Anchor / sprint / recovery
# ---------------------------------------------------------------------------


def _planned_bucket(snapshot: Snapshot, bucket_id: str | None, role: str) -> Bucket | None:
    if not bucket_id:
        return None
    bucket = find_bucket(snapshot, bucket_id)
    if bucket is None:
        logger.warning("Planned %s bucket %r not found, falling back", role, bucket_id)
    return bucket


def _has_task_in(snapshot: Snapshot, bucket_id: str, state: TaskState) -> bool:
    return any(t.bucket_id == bucket_id and t.state == state for t in snapshot.tasks)


def select_anchor(snapshot: Snapshot, plan: Plan | None) -> Bucket | None:
    """Planned anchor, else the first Main Work bucket with a Doing task, then
    with a Ready task, then the first Main Work bucket at all."""
    planned = _planned_bucket(snapshot, plan.anchor_bucket_id if plan else None, "anchor")
    if planned is not None:
        return planned

    main_work = [b for b in snapshot.buckets if b.category == BucketCategory.MAIN_WORK]
    for state in (TaskState.DOING, TaskState.READY):
        for bucket in main_work:
            if _has_task_in(snapshot, bucket.id, state):
                return bucket
    return main_work[0] if main_work else None


def resolve_anchor_task(
    snapshot: Snapshot, anchor: Bucket | None, plan: Plan | None,
) -> Task | None:
    """Planned anchor task, else the bucket's first Doing task, else its first Ready task.

    The planned task only applies while it lives in the selected anchor bucket.
    """
    if plan is not None and plan.anchor_task_id:
        task = find_task(snapshot, plan.anchor_task_id)
        if task is None:
            logger.warning("Planned anchor task %r not found, falling back", plan.anchor_task_id)
        elif anchor is not None and task.bucket_id == anchor.id:
            return task
        else:
            logger.warning(
                "Planned anchor task %r is outside the anchor bucket, falling back",
                plan.anchor_task_id,
            )

    if anchor is None:
        return None
    for state in (TaskState.DOING, TaskState.READY):
        for task in snapshot.tasks:
            if task.bucket_id == anchor.id and task.state == state:
                return task
    return None


def select_sprint(
    snapshot: Snapshot,
    plan: Plan | None,
    anchor: Bucket | None,
    now_ms: int,
    neglect_hours: int | None = None,
) -> Bucket | None:
    """First planned sprint, else a neglected Main Work/Supporting bucket, else first Supporting."""
    if plan is not None and plan.sprint_bucket_ids:
        planned = _planned_bucket(snapshot, plan.sprint_bucket_ids[0], "sprint")
        if planned is not None:
            return planned

    anchor_id = anchor.id if anchor else None
    for bucket in snapshot.buckets:
        if (
            bucket.id != anchor_id
            and bucket.category in SPRINT_CATEGORIES
            and is_neglected(snapshot, bucket.id, now_ms, neglect_hours)
        ):
            return bucket
    return next(
        (b for b in snapshot.buckets if b.category == BucketCategory.SUPPORTING_HABITS), None,
    )


def select_recovery(snapshot: Snapshot, plan: Plan | None) -> Bucket | None:
    """Planned recovery bucket, else the first Self-Care & Fun bucket."""
    planned = _planned_bucket(snapshot, plan.recovery_bucket_id if plan else None, "recovery")
    if planned is not None:
        return planned
    return next((b for b in snapshot.buckets if b.category == BucketCategory.SELF_CARE), None)


def select_focus(
    snapshot: Snapshot,
    now_ms: int | None = None,
    tz: tzinfo | None = None,
    neglect_hours: int | None = None,
    stale_hours: int | None = None,
) -> FocusSelection:
    """Derive today's anchor, sprint and recovery from the snapshot.

    Deterministic for identical inputs.
    """
    if now_ms is None:
        now_ms = _now_ms()
    plan = find_plan(snapshot, PlanType.NIGHTLY, day_key(now_ms, tz))

    anchor = select_anchor(snapshot, plan)
    anchor_task = resolve_anchor_task(snapshot, anchor, plan)
    sprint = select_sprint(snapshot, plan, anchor, now_ms, neglect_hours)

    return FocusSelection(
        anchor_bucket=anchor,
        anchor_task=anchor_task,
        anchor_stale=anchor_task is not None and is_task_stale(anchor_task, now_ms, stale_hours),
        anchor_last_session=last_session(snapshot, anchor.id) if anchor else None,
        sprint_bucket=sprint,
        sprint_neglected=(
            sprint is not None and is_neglected(snapshot, sprint.id, now_ms, neglect_hours)
        ),
        recovery_bucket=select_recovery(snapshot, plan),
        plan=plan,
    )


def goal_context(snapshot: Snapshot, task: Task | None) -> GoalContext:
    """Milestone and goal a task contributes to, for display only."""
    if task is None or not task.milestone_id:
        return GoalContext(milestone=None, goal=None)
    milestone = next((m for m in snapshot.milestones if m.id == task.milestone_id), None)
    goal = (
        next((g for g in snapshot.goals if g.id == milestone.goal_id), None)
        if milestone else None
    )
    return GoalContext(milestone=milestone, goal=goal)
