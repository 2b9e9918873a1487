"""
ContextFlow — Nightly and weekly planning.

A nightly plan is keyed by calendar day (``YYYY-MM-DD``) and names the
next day's anchor, up to two sprint buckets and a recovery bucket. A weekly
plan is keyed by ISO week (``YYYY-W##``) and carries up to three must-win
outcomes. There is at most one plan per (type, date key).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, tzinfo

from src.core.clock import local_date, shift_days
from src.core.clock import now_ms as _now_ms
from src.data.models import (
    MAX_SPRINT_BUCKETS,
    MAX_WEEKLY_OUTCOMES,
    Plan,
    PlanType,
    Snapshot,
    new_id,
)

logger = logging.getLogger(__name__)


def _default_tz() -> tzinfo:
    from src.config import settings
    return settings.tz


def format_day_key(day: date) -> str:
    return day.isoformat()


def format_week_key(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def day_key(now_ms: int, tz: tzinfo | None = None) -> str:
    """Calendar-day key of ``now_ms`` in ``tz``, e.g. ``2026-02-14``."""
    return format_day_key(local_date(now_ms, tz or _default_tz()))


def tomorrow_key(now_ms: int, tz: tzinfo | None = None) -> str:
    return format_day_key(shift_days(local_date(now_ms, tz or _default_tz()), 1))


def week_key(now_ms: int, tz: tzinfo | None = None) -> str:
    """ISO-week key of ``now_ms`` in ``tz``, e.g. ``2026-W07``."""
    return format_week_key(local_date(now_ms, tz or _default_tz()))


def find_plan(snapshot: Snapshot, plan_type: PlanType, date_key: str) -> Plan | None:
    """Return the plan for (type, date key), or None."""
    for plan in snapshot.plans:
        if plan.type == plan_type and plan.date_key == date_key:
            return plan
    return None


def _cap(values: Iterable[str], limit: int, what: str) -> tuple[str, ...]:
    items = tuple(values)
    if len(items) > limit:
        logger.warning("Plan accepts at most %d %s; dropping %s", limit, what, items[limit:])
    return items[:limit]


def build_nightly_plan(
    snapshot: Snapshot,
    date_key: str,
    anchor_bucket_id: str | None = None,
    anchor_task_id: str | None = None,
    sprint_bucket_ids: Iterable[str] = (),
    recovery_bucket_id: str | None = None,
    now_ms: int | None = None,
) -> Plan:
    """Build the nightly plan for ``date_key``, reusing an existing plan's id.

    Partial plans are valid: every field is optional. Duplicate sprint ids
    are collapsed before the two-entry cap is applied.
    """
    if now_ms is None:
        now_ms = _now_ms()
    existing = find_plan(snapshot, PlanType.NIGHTLY, date_key)
    sprints = _cap(dict.fromkeys(sprint_bucket_ids), MAX_SPRINT_BUCKETS, "sprint buckets")
    return Plan(
        id=existing.id if existing else new_id("plan"),
        created_at=now_ms,
        type=PlanType.NIGHTLY,
        date_key=date_key,
        anchor_bucket_id=anchor_bucket_id,
        anchor_task_id=anchor_task_id,
        sprint_bucket_ids=sprints,
        recovery_bucket_id=recovery_bucket_id,
    )


def build_weekly_plan(
    snapshot: Snapshot,
    date_key: str,
    outcomes: Iterable[str],
    now_ms: int | None = None,
) -> Plan:
    """Build the weekly plan for ``date_key``; at most three outcomes are kept."""
    if now_ms is None:
        now_ms = _now_ms()
    existing = find_plan(snapshot, PlanType.WEEKLY, date_key)
    return Plan(
        id=existing.id if existing else new_id("plan"),
        created_at=now_ms,
        type=PlanType.WEEKLY,
        date_key=date_key,
        outcomes=_cap((o.strip() for o in outcomes), MAX_WEEKLY_OUTCOMES, "outcomes"),
    )


def save_plan(snapshot: Snapshot, plan: Plan) -> Snapshot:
    """Upsert ``plan`` and return the new snapshot.

    A plan with the same id, or the same (type, date key), is replaced in
    place; otherwise the plan is appended.
    """
    plans = list(snapshot.plans)
    for idx, existing in enumerate(plans):
        if existing.id == plan.id or (
            existing.type == plan.type and existing.date_key == plan.date_key
        ):
            plans[idx] = plan
            # Drop any other plan left on the same key
            plans = [
                p for i, p in enumerate(plans)
                if i == idx or not (p.type == plan.type and p.date_key == plan.date_key)
            ]
            logger.info("%s plan %s for %s updated", plan.type, plan.id, plan.date_key)
            break
    else:
        plans.append(plan)
        logger.info("%s plan %s for %s created", plan.type, plan.id, plan.date_key)
    return snapshot.model_copy(update={"plans": tuple(plans)})
