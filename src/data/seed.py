"""
ContextFlow — Seed snapshot.

The built-in starting state used whenever no prior snapshot exists (or the
stored one cannot be read): nine buckets across the three categories, one
workspace per bucket, a sample goal with two milestones and one sample task.
"""

from __future__ import annotations

from src.data.models import (
    Bucket,
    BucketCategory,
    Goal,
    Milestone,
    Snapshot,
    Task,
    TaskState,
    Workspace,
)

DEFAULT_CHECKLIST: tuple[str, ...] = (
    "Clear desk",
    "Open necessary apps",
    "Check notifications (2m limit)",
)

INITIAL_BUCKETS: tuple[Bucket, ...] = (
    # Main Work
    Bucket(id="b1", name="Academic", category=BucketCategory.MAIN_WORK, color="blue", icon="book"),
    Bucket(id="b2", name="Skill Learning", category=BucketCategory.MAIN_WORK, color="indigo", icon="code"),
    Bucket(id="b3", name="Earning Money", category=BucketCategory.MAIN_WORK, color="emerald", icon="dollar-sign"),
    # Supporting
    Bucket(id="b4", name="Time Mgmt & Planning", category=BucketCategory.SUPPORTING_HABITS, color="slate", icon="calendar"),
    Bucket(id="b5", name="Crisis Planning", category=BucketCategory.SUPPORTING_HABITS, color="orange", icon="alert-triangle"),
    # Self-Care
    Bucket(id="b6", name="Mental & Emotional", category=BucketCategory.SELF_CARE, color="purple", icon="heart"),
    Bucket(id="b7", name="Personal Growth", category=BucketCategory.SELF_CARE, color="teal", icon="sprout"),
    Bucket(id="b8", name="Fun & Relaxation", category=BucketCategory.SELF_CARE, color="pink", icon="smile"),
    Bucket(id="b9", name="Social Life", category=BucketCategory.SELF_CARE, color="rose", icon="users"),
)


def default_workspace(bucket: Bucket) -> Workspace:
    return Workspace(
        id=f"ws-{bucket.id}",
        bucket_id=bucket.id,
        title=f"{bucket.name} Workspace",
        links=(),
        startup_checklist=DEFAULT_CHECKLIST,
    )


def build_seed_snapshot(now_ms: int) -> Snapshot:
    """Return the default snapshot, stamping the sample task with ``now_ms``."""
    return Snapshot(
        buckets=INITIAL_BUCKETS,
        workspaces=tuple(default_workspace(b) for b in INITIAL_BUCKETS),
        goals=(
            Goal(id="g1", title="Master React Ecosystem",
                 description="Become a senior frontend engineer"),
        ),
        milestones=(
            Milestone(id="m1", goal_id="g1", title="Understand Advanced Hooks"),
            Milestone(id="m2", goal_id="g1", title="Build a complex Fullstack App"),
        ),
        tasks=(
            Task(
                id="t1",
                bucket_id="b2",
                title="Learn React Hooks",
                state=TaskState.READY,
                next_action="Read official docs on useReducer",
                done_definition="Create a counter app using useReducer",
                milestone_id="m1",
                created_at=now_ms,
                updated_at=now_ms,
            ),
        ),
        sessions=(),
        plans=(),
        mind_dump_items=(),
    )
