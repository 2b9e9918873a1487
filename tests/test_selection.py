"""Tests for src.core.selection — daily focus heuristic and bucket badges."""

from datetime import timezone

from helpers import HOUR, MAIN, NOW, SELF_CARE, SUPPORT, bucket, session, snapshot_of, task

from src.core.selection import (
    BucketBadge,
    bucket_badge,
    bucket_badges,
    goal_context,
    is_neglected,
    is_resume_candidate,
    is_task_stale,
    last_session,
    most_recent_session,
    select_focus,
)
from src.data.models import Goal, Milestone, Plan, PlanType, TaskState

TODAY = "2026-02-14"
UTC = timezone.utc


def nightly(**fields) -> Plan:
    return Plan(id="p1", date_key=fields.pop("date_key", TODAY), type=PlanType.NIGHTLY, **fields)


def focus(snapshot, now=NOW):
    return select_focus(snapshot, now_ms=now, tz=UTC)


# ---------------------------------------------------------------------------
# Session lookups
# ---------------------------------------------------------------------------


class TestLastSession:
    def test_picks_greatest_started_at(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            sessions=[
                session("s1", "b1", NOW - 5 * HOUR),
                session("s2", "b1", NOW - 1 * HOUR),
                session("s3", "b1", NOW - 3 * HOUR),
            ],
        )
        assert last_session(snap, "b1").id == "s2"

    def test_none_without_sessions(self):
        assert last_session(snapshot_of(buckets=[bucket("b1", MAIN)]), "b1") is None

    def test_tie_goes_to_array_order(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", MAIN)],
            sessions=[session("s1", "b1", NOW), session("s2", "b2", NOW)],
        )
        assert most_recent_session(snap).id == "s1"


class TestIsNeglected:
    def test_no_sessions_is_neglected(self):
        assert is_neglected(snapshot_of(buckets=[bucket("b1", MAIN)]), "b1", NOW) is True

    def test_just_over_threshold(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            sessions=[session("s1", "b1", NOW - 48 * HOUR - 1)],
        )
        assert is_neglected(snap, "b1", NOW) is True

    def test_just_under_threshold(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            sessions=[session("s1", "b1", NOW - 48 * HOUR + 1)],
        )
        assert is_neglected(snap, "b1", NOW) is False

    def test_exactly_at_threshold_is_not_neglected(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            sessions=[session("s1", "b1", NOW - 48 * HOUR)],
        )
        assert is_neglected(snap, "b1", NOW) is False

    def test_custom_threshold(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            sessions=[session("s1", "b1", NOW - 5 * HOUR)],
        )
        assert is_neglected(snap, "b1", NOW, neglect_hours=4) is True


class TestBadges:
    def test_resume_for_latest_session_owner(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", MAIN)],
            sessions=[session("s1", "b1", NOW - 2 * HOUR), session("s2", "b2", NOW - 1 * HOUR)],
        )
        assert is_resume_candidate(snap, "b2") is True
        assert is_resume_candidate(snap, "b1") is False
        assert bucket_badge(snap, "b2", NOW) is BucketBadge.RESUME
        assert bucket_badge(snap, "b1", NOW) is None

    def test_resume_wins_over_stale(self):
        # Only session anywhere is old: b1 is both neglected and the resume candidate
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            sessions=[session("s1", "b1", NOW - 100 * HOUR)],
        )
        assert is_neglected(snap, "b1", NOW) is True
        assert bucket_badge(snap, "b1", NOW) is BucketBadge.RESUME

    def test_stale_for_neglected_bucket(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", SUPPORT)],
            sessions=[session("s1", "b1", NOW - 100 * HOUR), session("s2", "b2", NOW - HOUR)],
        )
        assert bucket_badge(snap, "b1", NOW) is BucketBadge.STALE

    def test_badges_map(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", SUPPORT), bucket("b3", SELF_CARE)],
            sessions=[session("s1", "b1", NOW - HOUR), session("s3", "b3", NOW - 2 * HOUR)],
        )
        assert bucket_badges(snap, NOW) == {
            "b1": BucketBadge.RESUME,
            "b2": BucketBadge.STALE,
        }

    def test_no_resume_without_sessions(self):
        snap = snapshot_of(buckets=[bucket("b1", MAIN)])
        assert is_resume_candidate(snap, "b1") is False
        assert bucket_badge(snap, "b1", NOW) is BucketBadge.STALE


# ---------------------------------------------------------------------------
# Anchor
# ---------------------------------------------------------------------------


class TestAnchorSelection:
    def test_doing_beats_ready_beats_untouched(self):
        buckets = [bucket("b1", MAIN), bucket("b2", MAIN), bucket("b3", MAIN)]
        snap = snapshot_of(buckets=buckets, tasks=[
            task("t2", "b2", TaskState.READY),
            task("t3", "b3", TaskState.DOING),
        ])
        assert focus(snap).anchor_bucket.id == "b3"

    def test_ready_beats_untouched(self):
        buckets = [bucket("b1", MAIN), bucket("b2", MAIN)]
        snap = snapshot_of(buckets=buckets, tasks=[task("t2", "b2", TaskState.READY)])
        assert focus(snap).anchor_bucket.id == "b2"

    def test_ties_follow_bucket_order(self):
        buckets = [bucket("b1", MAIN), bucket("b2", MAIN)]
        snap = snapshot_of(buckets=buckets, tasks=[
            task("t2", "b2", TaskState.READY),
            task("t1", "b1", TaskState.READY),
        ])
        assert focus(snap).anchor_bucket.id == "b1"

    def test_doing_bucket_beats_untouched_bucket(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", MAIN)],
            tasks=[task("t1", "b1", TaskState.INBOX), task("t2", "b2", TaskState.DOING)],
        )
        assert focus(snap).anchor_bucket.id == "b2"

    def test_first_main_work_when_no_active_tasks(self):
        snap = snapshot_of(
            buckets=[bucket("s1", SUPPORT), bucket("b1", MAIN), bucket("b2", MAIN)],
            tasks=[task("t1", "b2", TaskState.PARKED)],
        )
        assert focus(snap).anchor_bucket.id == "b1"

    def test_ignores_active_tasks_outside_main_work(self):
        snap = snapshot_of(
            buckets=[bucket("s1", SUPPORT), bucket("b1", MAIN)],
            tasks=[task("t1", "s1", TaskState.DOING)],
        )
        assert focus(snap).anchor_bucket.id == "b1"

    def test_no_main_work_means_empty_anchor(self):
        snap = snapshot_of(buckets=[bucket("s1", SUPPORT)])
        result = focus(snap)
        assert result.anchor_bucket is None
        assert result.anchor_task is None
        assert result.anchor_stale is False

    def test_plan_anchor_wins(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("c1", SELF_CARE)],
            tasks=[task("t1", "b1", TaskState.DOING)],
            plans=[nightly(anchor_bucket_id="c1")],
        )
        result = focus(snap)
        assert result.anchor_bucket.id == "c1"
        assert result.plan.id == "p1"

    def test_plan_for_other_day_ignored(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", MAIN)],
            plans=[nightly(date_key="2026-02-15", anchor_bucket_id="b2")],
        )
        result = focus(snap)
        assert result.anchor_bucket.id == "b1"
        assert result.plan is None

    def test_weekly_plan_never_drives_anchor(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", MAIN)],
            plans=[Plan(id="w", date_key=TODAY, type=PlanType.WEEKLY, anchor_bucket_id="b2")],
        )
        assert focus(snap).anchor_bucket.id == "b1"

    def test_missing_planned_bucket_falls_back(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            plans=[nightly(anchor_bucket_id="gone")],
        )
        assert focus(snap).anchor_bucket.id == "b1"


class TestAnchorTask:
    def test_doing_preferred_over_ready(self):
        snap = snapshot_of(buckets=[bucket("b1", MAIN)], tasks=[
            task("t1", "b1", TaskState.READY),
            task("t2", "b1", TaskState.DOING),
        ])
        assert focus(snap).anchor_task.id == "t2"

    def test_ready_when_no_doing(self):
        snap = snapshot_of(buckets=[bucket("b1", MAIN)], tasks=[
            task("t0", "b1", TaskState.INBOX),
            task("t1", "b1", TaskState.READY),
        ])
        assert focus(snap).anchor_task.id == "t1"

    def test_no_task_means_bucket_level_session(self):
        snap = snapshot_of(buckets=[bucket("b1", MAIN)], tasks=[task("t0", "b1", TaskState.REFINE)])
        assert focus(snap).anchor_task is None

    def test_plan_task_wins(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            tasks=[task("t1", "b1", TaskState.DOING), task("t2", "b1", TaskState.INBOX)],
            plans=[nightly(anchor_bucket_id="b1", anchor_task_id="t2")],
        )
        assert focus(snap).anchor_task.id == "t2"

    def test_missing_plan_task_falls_back(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            tasks=[task("t1", "b1", TaskState.READY)],
            plans=[nightly(anchor_bucket_id="b1", anchor_task_id="gone")],
        )
        assert focus(snap).anchor_task.id == "t1"

    def test_plan_task_ignored_when_planned_bucket_missing(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", MAIN)],
            tasks=[task("t1", "b1", TaskState.READY), task("t2", "b2", TaskState.INBOX)],
            plans=[nightly(anchor_bucket_id="gone", anchor_task_id="t2")],
        )
        result = focus(snap)
        assert result.anchor_bucket.id == "b1"
        assert result.anchor_task.id == "t1"

    def test_plan_task_kept_when_in_fallback_bucket(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            tasks=[task("t1", "b1", TaskState.READY), task("t2", "b1", TaskState.INBOX)],
            plans=[nightly(anchor_task_id="t2")],
        )
        assert focus(snap).anchor_task.id == "t2"


class TestStaleness:
    def test_doing_task_over_a_day_is_stale(self):
        t = task("t1", "b1", TaskState.DOING, updated_at=NOW - 24 * HOUR - 1)
        assert is_task_stale(t, NOW) is True

    def test_doing_task_within_a_day_is_fresh(self):
        t = task("t1", "b1", TaskState.DOING, updated_at=NOW - 24 * HOUR)
        assert is_task_stale(t, NOW) is False

    def test_ready_task_never_stale(self):
        t = task("t1", "b1", TaskState.READY, updated_at=NOW - 100 * HOUR)
        assert is_task_stale(t, NOW) is False

    def test_focus_flags_stale_anchor(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            tasks=[task("t1", "b1", TaskState.DOING, updated_at=NOW - 30 * HOUR)],
        )
        assert focus(snap).anchor_stale is True


# ---------------------------------------------------------------------------
# Sprint and recovery
# ---------------------------------------------------------------------------


class TestSprintSelection:
    def test_plan_first_sprint_wins(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("s1", SUPPORT), bucket("s2", SUPPORT)],
            plans=[nightly(sprint_bucket_ids=["s2", "s1"])],
        )
        assert focus(snap).sprint_bucket.id == "s2"

    def test_neglected_bucket_excluding_anchor(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("b2", MAIN), bucket("s1", SUPPORT)],
            tasks=[task("t1", "b1", TaskState.DOING)],
            sessions=[session("x", "b2", NOW - 100 * HOUR)],
        )
        result = focus(snap)
        assert result.anchor_bucket.id == "b1"
        assert result.sprint_bucket.id == "b2"
        assert result.sprint_neglected is True

    def test_self_care_never_auto_sprint(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("c1", SELF_CARE), bucket("s1", SUPPORT)],
            sessions=[session("x", "s1", NOW - HOUR)],
        )
        # b1 is anchor, s1 worked recently, c1 is self-care: fall back to first Supporting
        result = focus(snap)
        assert result.sprint_bucket.id == "s1"
        assert result.sprint_neglected is False

    def test_no_candidates_gives_none(self):
        snap = snapshot_of(buckets=[bucket("b1", MAIN), bucket("c1", SELF_CARE)])
        assert focus(snap).sprint_bucket is None

    def test_missing_planned_sprint_falls_back(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN), bucket("s1", SUPPORT)],
            plans=[nightly(sprint_bucket_ids=["gone"])],
        )
        assert focus(snap).sprint_bucket.id == "s1"


class TestRecoverySelection:
    def test_plan_recovery_wins(self):
        snap = snapshot_of(
            buckets=[bucket("c1", SELF_CARE), bucket("c2", SELF_CARE)],
            plans=[nightly(recovery_bucket_id="c2")],
        )
        assert focus(snap).recovery_bucket.id == "c2"

    def test_first_self_care_bucket(self):
        snap = snapshot_of(buckets=[bucket("b1", MAIN), bucket("c1", SELF_CARE), bucket("c2", SELF_CARE)])
        assert focus(snap).recovery_bucket.id == "c1"

    def test_none_without_self_care(self):
        assert focus(snapshot_of(buckets=[bucket("b1", MAIN)])).recovery_bucket is None


class TestSelectFocus:
    def test_seed_snapshot(self, seed_snapshot):
        result = focus(seed_snapshot)
        # t1 (Ready) lives in b2 Skill Learning
        assert result.anchor_bucket.id == "b2"
        assert result.anchor_task.id == "t1"
        assert result.sprint_bucket.id == "b1"
        assert result.recovery_bucket.id == "b6"
        assert result.anchor_last_session is None

    def test_deterministic(self, seed_snapshot):
        assert focus(seed_snapshot) == focus(seed_snapshot)

    def test_anchor_last_session_reported(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            sessions=[session("s1", "b1", NOW - 3 * HOUR, closeout_next="Finish chapter 2")],
        )
        assert focus(snap).anchor_last_session.closeout_next == "Finish chapter 2"


class TestGoalContext:
    def test_resolves_milestone_and_goal(self):
        snap = snapshot_of(
            buckets=[bucket("b1", MAIN)],
            goals=(Goal(id="g1", title="Ship thesis"),),
            milestones=(Milestone(id="m1", goal_id="g1", title="Draft"),),
        )
        ctx = goal_context(snap, task("t1", "b1", milestone_id="m1"))
        assert ctx.milestone.title == "Draft"
        assert ctx.goal.title == "Ship thesis"

    def test_unlinked_task(self):
        ctx = goal_context(snapshot_of(), task("t1", "b1"))
        assert ctx.milestone is None
        assert ctx.goal is None
