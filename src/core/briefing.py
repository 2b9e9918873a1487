"""
ContextFlow — Time-bridge briefing.

Read-only views that connect yesterday, today and tomorrow: what got done
yesterday and where it was left off, tomorrow's plan, and a per-bucket
standup. Pure functions over a snapshot and a clock value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import tzinfo

from src.core.clock import local_date, shift_days, to_local
from src.core.planning import find_plan, format_day_key
from src.core.selection import find_bucket, find_task, is_task_stale
from src.core.sessions import sessions_on_day
from src.data.models import Bucket, Plan, PlanType, Session, Snapshot, Task, TaskState

logger = logging.getLogger(__name__)


@dataclass
class YesterdaySummary:
    day: str                                   # YYYY-MM-DD
    session_count: int
    total_minutes: int
    last_session: Session | None               # latest by ended_at, carries the closeout
    completed_tasks: list[Task] = field(default_factory=list)

    @property
    def narrative(self) -> str:
        if self.session_count:
            return f"You logged {self.session_count} sessions yesterday."
        return "Fresh start today."


@dataclass
class TomorrowSummary:
    day: str
    plan: Plan | None
    anchor_bucket: Bucket | None = None
    anchor_task: Task | None = None
    sprint_buckets: list[Bucket] = field(default_factory=list)
    recovery_bucket: Bucket | None = None


@dataclass
class BucketStandup:
    bucket: Bucket
    last_session: Session | None               # yesterday's latest, by ended_at
    active_task: Task | None
    active_task_stale: bool
    ready_tasks: list[Task]
    planned_anchor: bool
    planned_sprint: bool
    planned_recovery: bool

    @property
    def has_activity(self) -> bool:
        return bool(
            self.last_session
            or self.active_task
            or self.ready_tasks
            or self.planned_anchor
            or self.planned_sprint
        )


def greeting(now_ms: int, tz: tzinfo) -> str:
    hour = to_local(now_ms, tz).hour
    if hour < 12:
        return "Good Morning."
    if hour < 17:
        return "Good Afternoon."
    return "Good Evening."


def _latest_ended(sessions: list[Session]) -> Session | None:
    return max(sessions, key=lambda s: s.ended_at or 0) if sessions else None


def yesterday_summary(snapshot: Snapshot, now_ms: int, tz: tzinfo) -> YesterdaySummary:
    """Sessions and completed tasks from the previous calendar day."""
    yesterday = shift_days(local_date(now_ms, tz), -1)
    key = format_day_key(yesterday)
    sessions = sessions_on_day(snapshot, key, tz)
    completed = [
        t for t in snapshot.tasks
        if t.state == TaskState.DONE and local_date(t.updated_at, tz) == yesterday
    ]
    return YesterdaySummary(
        day=key,
        session_count=len(sessions),
        total_minutes=sum(s.actual_min for s in sessions),
        last_session=_latest_ended(sessions),
        completed_tasks=completed,
    )


def tomorrow_summary(snapshot: Snapshot, now_ms: int, tz: tzinfo) -> TomorrowSummary:
    """Tomorrow's nightly plan with its references resolved (missing ones dropped)."""
    key = format_day_key(shift_days(local_date(now_ms, tz), 1))
    plan = find_plan(snapshot, PlanType.NIGHTLY, key)
    if plan is None:
        return TomorrowSummary(day=key, plan=None)
    sprints = [find_bucket(snapshot, bid) for bid in plan.sprint_bucket_ids]
    return TomorrowSummary(
        day=key,
        plan=plan,
        anchor_bucket=find_bucket(snapshot, plan.anchor_bucket_id),
        anchor_task=find_task(snapshot, plan.anchor_task_id),
        sprint_buckets=[b for b in sprints if b is not None],
        recovery_bucket=find_bucket(snapshot, plan.recovery_bucket_id),
    )


def bucket_standup(
    snapshot: Snapshot,
    bucket: Bucket,
    now_ms: int,
    tz: tzinfo,
    stale_hours: int | None = None,
) -> BucketStandup:
    today = local_date(now_ms, tz)
    yesterday_key = format_day_key(shift_days(today, -1))
    tomorrow_plan = find_plan(
        snapshot, PlanType.NIGHTLY, format_day_key(shift_days(today, 1)),
    )

    active = next(
        (t for t in snapshot.tasks if t.bucket_id == bucket.id and t.state == TaskState.DOING),
        None,
    )
    return BucketStandup(
        bucket=bucket,
        last_session=_latest_ended(sessions_on_day(snapshot, yesterday_key, tz, bucket.id)),
        active_task=active,
        active_task_stale=active is not None and is_task_stale(active, now_ms, stale_hours),
        ready_tasks=[
            t for t in snapshot.tasks if t.bucket_id == bucket.id and t.state == TaskState.READY
        ],
        planned_anchor=bool(tomorrow_plan and tomorrow_plan.anchor_bucket_id == bucket.id),
        planned_sprint=bool(tomorrow_plan and bucket.id in tomorrow_plan.sprint_bucket_ids),
        planned_recovery=bool(tomorrow_plan and tomorrow_plan.recovery_bucket_id == bucket.id),
    )


def standup(
    snapshot: Snapshot, now_ms: int, tz: tzinfo, stale_hours: int | None = None,
) -> list[BucketStandup]:
    """Standup rows for buckets with anything to report, in bucket order."""
    rows = [bucket_standup(snapshot, b, now_ms, tz, stale_hours) for b in snapshot.buckets]
    return [r for r in rows if r.has_activity]
