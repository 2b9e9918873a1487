"""
ContextFlow — Command-line interface.

Thin rendering layer over the Store: every command loads the snapshot,
performs at most one mutation (which flushes the snapshot) and prints the
result. Errors from the ContextFlowError family are printed and turned into
exit code 1.
"""

from __future__ import annotations

import argparse
import logging
import sys

from src.core.briefing import greeting, standup, tomorrow_summary, yesterday_summary
from src.core.capture import forgotten_tasks, inbox_items
from src.core.clock import now_ms as _now_ms
from src.core.errors import ContextFlowError
from src.core.planning import week_key
from src.core.selection import bucket_badges, goal_context
from src.core.store import Store
from src.data.db import SnapshotDB
from src.data.models import BucketCategory, PlanType, SessionType, TaskState

logger = logging.getLogger(__name__)

_CATEGORY_CHOICES = [c.value for c in BucketCategory]
_STATE_CHOICES = [s.value for s in TaskState]
_SESSION_CHOICES = [s.value for s in SessionType]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contextflow",
        description="ContextFlow: buckets, ready tasks, focus sessions and nightly plans.",
    )
    parser.add_argument("--db", help="SQLite file holding the snapshot (default: DATABASE_PATH)")

    sub = parser.add_subparsers(dest="cmd", required=False)

    sub.add_parser("brief", help="Show today's anchor, sprint and recovery.")
    sub.add_parser("standup", help="Yesterday / today / tomorrow per bucket.")

    buckets = sub.add_parser("buckets", help="List buckets with RESUME/STALE badges.")
    buckets.add_argument("--category", choices=_CATEGORY_CHOICES)

    tasks = sub.add_parser("tasks", help="List open tasks.")
    tasks.add_argument("--bucket", help="Only tasks in this bucket id")
    tasks.add_argument("--all", action="store_true", help="Include Done tasks")

    add = sub.add_parser("task-add", help="Create a task.")
    add.add_argument("bucket", help="Bucket id")
    add.add_argument("title")
    add.add_argument("--state", choices=_STATE_CHOICES, default=TaskState.INBOX.value)
    add.add_argument("--next-action")
    add.add_argument("--done-definition")
    add.add_argument("--notes")
    add.add_argument("--milestone")

    edit = sub.add_parser("task-edit", help="Edit a task's fields.")
    edit.add_argument("task", help="Task id")
    edit.add_argument("--title")
    edit.add_argument("--state", choices=_STATE_CHOICES)
    edit.add_argument("--next-action")
    edit.add_argument("--done-definition")
    edit.add_argument("--notes")

    state = sub.add_parser("task-state", help="Move a task to another state.")
    state.add_argument("task", help="Task id")
    state.add_argument("state", choices=_STATE_CHOICES)

    log = sub.add_parser("session-log", help="Record a completed focus session.")
    log.add_argument("bucket", help="Bucket id")
    log.add_argument("--type", choices=_SESSION_CHOICES, default=SessionType.ANCHOR.value)
    log.add_argument("--task", help="Task id worked on")
    log.add_argument("--minutes", type=int, required=True, help="Session length, ending now")
    log.add_argument("--planned", type=int, default=0, help="Planned minutes")
    log.add_argument("--energy-before", type=int, default=3)
    log.add_argument("--energy-after", type=int)
    log.add_argument("--finished", help="Closeout: what got finished")
    log.add_argument("--next", dest="next_step", help="Closeout: where to pick up")
    log.add_argument("--first-action", help="Closeout: first action next time")

    nightly = sub.add_parser("plan-nightly", help="Plan tomorrow (or --date).")
    nightly.add_argument("--date", help="Day key YYYY-MM-DD (default: tomorrow)")
    nightly.add_argument("--anchor", help="Anchor bucket id")
    nightly.add_argument("--anchor-task", help="Anchor task id")
    nightly.add_argument("--sprint", action="append", default=[], help="Sprint bucket id (max 2)")
    nightly.add_argument("--recovery", help="Recovery bucket id")

    weekly = sub.add_parser("plan-weekly", help="Set this week's must-win outcomes.")
    weekly.add_argument("outcomes", nargs="+", help="Up to three outcomes")
    weekly.add_argument("--week", help="ISO week key YYYY-W## (default: current week)")

    dump = sub.add_parser("dump-add", help="Capture a thought into the mind dump.")
    dump.add_argument("text", nargs="+")

    sub.add_parser("dump-list", help="List open mind-dump items and forgotten loops.")

    archive = sub.add_parser("dump-archive", help="Archive a mind-dump item.")
    archive.add_argument("item", help="Mind dump item id")

    convert = sub.add_parser("dump-convert", help="Turn a mind-dump item into a task.")
    convert.add_argument("item", help="Mind dump item id")
    convert.add_argument("bucket", help="Target bucket id")

    ws = sub.add_parser("workspace", help="Show a bucket's workspace: links and startup checklist.")
    ws.add_argument("bucket", help="Bucket id")

    link_add = sub.add_parser("workspace-link-add", help="Add a link to a bucket's workspace.")
    link_add.add_argument("bucket", help="Bucket id")
    link_add.add_argument("label")
    link_add.add_argument("url")

    link_rm = sub.add_parser("workspace-link-remove", help="Remove a workspace link.")
    link_rm.add_argument("bucket", help="Bucket id")
    link_rm.add_argument("link", help="Link id")

    check_add = sub.add_parser("workspace-check-add", help="Append a startup checklist item.")
    check_add.add_argument("bucket", help="Bucket id")
    check_add.add_argument("text", nargs="+")

    check_rm = sub.add_parser("workspace-check-remove", help="Remove a startup checklist item.")
    check_rm.add_argument("bucket", help="Bucket id")
    check_rm.add_argument("number", type=int, help="Item number as shown by `workspace`")

    sub.add_parser("reset", help="Discard stored data and restore the seed snapshot.")

    return parser


def _open_store(args: argparse.Namespace) -> Store:
    db = SnapshotDB(db_path=args.db) if args.db else SnapshotDB()
    if not db.available:
        print("Warning: database unavailable; showing default data, changes will not be saved.",
              file=sys.stderr)
    return Store(db)


def _warn_if_unsaved(store: Store) -> None:
    if not store.last_save_ok:
        print("Warning: changes could not be saved to disk.", file=sys.stderr)


# ---------------------------------------------------------------------------
# Read-only commands
# ---------------------------------------------------------------------------


def cmd_brief(store: Store, args: argparse.Namespace) -> int:
    now = _now_ms()
    snapshot = store.snapshot
    focus = store.focus(now)
    yesterday = yesterday_summary(snapshot, now, store.tz)

    print(greeting(now, store.tz), yesterday.narrative)
    if focus.anchor_bucket is None:
        print("Add buckets to see your brief.")
        return 0

    source = " (planned)" if focus.plan and focus.plan.anchor_bucket_id else ""
    print(f"\nANCHOR{source}: {focus.anchor_bucket.name}")
    task = focus.anchor_task
    if task is not None:
        print(f"  Action: {task.next_action or task.title}")
        print(f"  Goal:   {task.done_definition or 'Complete the task'}")
        ctx = goal_context(snapshot, task)
        if ctx.milestone is not None:
            goal = f"{ctx.goal.title} > " if ctx.goal else ""
            print(f"  For:    {goal}{ctx.milestone.title}")
    else:
        print("  No ready task. Open the bucket and define a next action.")

    last = focus.anchor_last_session
    if focus.anchor_stale:
        print("  ! In Doing for over a day. Still the right next step?")
    elif last is not None and last.closeout_next:
        print(f"  Pick up: {last.closeout_next}")
        if last.closeout_first_action:
            print(f"  Start by: {last.closeout_first_action}")
    else:
        print("  Starting fresh on this bucket.")

    if focus.sprint_bucket is not None:
        hint = "Bucket neglected. Quick 20m touch." if focus.sprint_neglected else "Keep the context warm."
        print(f"\nSPRINT: {focus.sprint_bucket.name}  ({hint})")
    if focus.recovery_bucket is not None:
        print(f"RECOVERY: {focus.recovery_bucket.name}")

    weekly = store.get_plan(PlanType.WEEKLY, week_key(now, store.tz))
    outcomes = [o for o in weekly.outcomes if o] if weekly else []
    if outcomes:
        print("\nThis week:")
        for outcome in outcomes:
            print(f"  - {outcome}")
    return 0


def cmd_standup(store: Store, args: argparse.Namespace) -> int:
    now = _now_ms()
    snapshot = store.snapshot
    yesterday = yesterday_summary(snapshot, now, store.tz)
    active = sum(1 for t in snapshot.tasks if t.state == TaskState.DOING)
    print(f"Yesterday: {yesterday.session_count} sessions, {yesterday.total_minutes} min. "
          f"Today: {active} active.")

    for row in standup(snapshot, now, store.tz):
        roles = [name for name, flag in (
            ("anchor", row.planned_anchor),
            ("sprint", row.planned_sprint),
            ("recovery", row.planned_recovery),
        ) if flag]
        print(f"\n[{row.bucket.category}] {row.bucket.name}")
        if row.last_session is not None:
            if row.last_session.closeout_finished:
                print(f"  Finished: {row.last_session.closeout_finished}")
            if row.last_session.closeout_next:
                print(f"  Context:  {row.last_session.closeout_next}")
        if row.active_task is not None:
            stale = " (stale)" if row.active_task_stale else ""
            print(f"  Doing:    {row.active_task.title}{stale}")
        if row.ready_tasks:
            print(f"  Ready:    {len(row.ready_tasks)} task(s)")
        if roles:
            print(f"  Tomorrow: {', '.join(roles)}")

    tomorrow = tomorrow_summary(snapshot, now, store.tz)
    if tomorrow.plan is None:
        print(f"\nNo plan for {tomorrow.day} yet.")
    return 0


def cmd_buckets(store: Store, args: argparse.Namespace) -> int:
    category = BucketCategory(args.category) if args.category else None
    badges = bucket_badges(store.snapshot, _now_ms())
    for bucket in store.buckets(category):
        open_tasks = store.tasks_for_bucket(bucket.id)
        ready = sum(1 for t in open_tasks if t.state == TaskState.READY)
        badge = f" [{badges[bucket.id].value}]" if bucket.id in badges else ""
        print(f"{bucket.id:<6} {bucket.name:<24} {bucket.category:<18} "
              f"{len(open_tasks)} open, {ready} ready{badge}")
    return 0


def cmd_tasks(store: Store, args: argparse.Namespace) -> int:
    if args.bucket:
        store.require_bucket(args.bucket)
    for task in store.snapshot.tasks:
        if args.bucket and task.bucket_id != args.bucket:
            continue
        if task.state == TaskState.DONE and not args.all:
            continue
        print(f"{task.id:<18} {task.state:<7} {task.bucket_id:<6} {task.title}")
        if task.next_action:
            print(f"{'':<18} next: {task.next_action}")
    return 0


def cmd_workspace(store: Store, args: argparse.Namespace) -> int:
    workspace = store.require_workspace(args.bucket)
    print(workspace.title)
    print("\nLinks:")
    if not workspace.links:
        print("  (none)")
    for link in workspace.links:
        print(f"  {link.id:<18} {link.label}: {link.url}")
    print("\nStartup checklist:")
    if not workspace.startup_checklist:
        print("  (none)")
    for number, item in enumerate(workspace.startup_checklist, start=1):
        print(f"  {number}. {item}")
    return 0


def cmd_dump_list(store: Store, args: argparse.Namespace) -> int:
    items = inbox_items(store.snapshot)
    if not items:
        print("Mind dump is empty.")
    for item in items:
        print(f"{item.id:<18} {item.text}")
    loops = forgotten_tasks(store.snapshot, _now_ms())
    if loops:
        print("\nForgotten loops:")
        for task in loops:
            print(f"  {task.id:<18} {task.state:<7} {task.title}")
    return 0


# ---------------------------------------------------------------------------
# Mutating commands
# ---------------------------------------------------------------------------


def cmd_task_add(store: Store, args: argparse.Namespace) -> int:
    task = store.create_task(
        bucket_id=args.bucket,
        title=args.title,
        state=TaskState(args.state),
        next_action=args.next_action,
        done_definition=args.done_definition,
        notes=args.notes,
        milestone_id=args.milestone,
    )
    print(f"Created {task.id} ({task.state}) in {task.bucket_id}")
    return 0


def cmd_task_edit(store: Store, args: argparse.Namespace) -> int:
    changes = {
        key: value for key, value in (
            ("title", args.title),
            ("state", args.state),
            ("next_action", args.next_action),
            ("done_definition", args.done_definition),
            ("notes", args.notes),
        ) if value is not None
    }
    task = store.edit_task(args.task, **changes)
    print(f"Saved {task.id} ({task.state})")
    return 0


def cmd_task_state(store: Store, args: argparse.Namespace) -> int:
    task = store.set_task_state(args.task, TaskState(args.state))
    print(f"{task.id} is now {task.state}")
    return 0


def cmd_session_log(store: Store, args: argparse.Namespace) -> int:
    ended = _now_ms()
    previous = store.previous_session(args.bucket)
    session = store.record_session(
        bucket_id=args.bucket,
        session_type=SessionType(args.type),
        started_at=ended - max(args.minutes, 0) * 60_000,
        ended_at=ended,
        energy_before=args.energy_before,
        task_id=args.task,
        planned_min=args.planned,
        actual_min=args.minutes,
        energy_after=args.energy_after,
        closeout_finished=args.finished,
        closeout_next=args.next_step,
        closeout_first_action=args.first_action,
    )
    print(f"Logged {session.type} session {session.id} ({session.actual_min} min)")
    if previous is not None and previous.closeout_next:
        print(f"Last time you planned: {previous.closeout_next}")
    return 0


def cmd_plan_nightly(store: Store, args: argparse.Namespace) -> int:
    plan = store.save_nightly_plan(
        date_key=args.date,
        anchor_bucket_id=args.anchor,
        anchor_task_id=args.anchor_task,
        sprint_bucket_ids=args.sprint,
        recovery_bucket_id=args.recovery,
    )
    print(f"Nightly plan saved for {plan.date_key}.")
    return 0


def cmd_plan_weekly(store: Store, args: argparse.Namespace) -> int:
    plan = store.save_weekly_plan(args.outcomes, date_key=args.week)
    print(f"Weekly outcomes saved for {plan.date_key}.")
    return 0


def cmd_dump_add(store: Store, args: argparse.Namespace) -> int:
    item = store.add_mind_dump(" ".join(args.text))
    print(f"Captured {item.id}")
    return 0


def cmd_dump_archive(store: Store, args: argparse.Namespace) -> int:
    item = store.archive_mind_dump(args.item)
    print(f"Archived {item.id}")
    return 0


def cmd_dump_convert(store: Store, args: argparse.Namespace) -> int:
    task = store.convert_mind_dump(args.item, args.bucket)
    print(f"Converted {args.item} into task {task.id} in {task.bucket_id}")
    return 0


def cmd_workspace_link_add(store: Store, args: argparse.Namespace) -> int:
    link = store.add_workspace_link(args.bucket, args.label, args.url)
    print(f"Added link {link.id} to {args.bucket}")
    return 0


def cmd_workspace_link_remove(store: Store, args: argparse.Namespace) -> int:
    store.remove_workspace_link(args.bucket, args.link)
    print(f"Removed link {args.link} from {args.bucket}")
    return 0


def cmd_workspace_check_add(store: Store, args: argparse.Namespace) -> int:
    workspace = store.add_checklist_item(args.bucket, " ".join(args.text))
    print(f"Checklist for {args.bucket} now has {len(workspace.startup_checklist)} items")
    return 0


def cmd_workspace_check_remove(store: Store, args: argparse.Namespace) -> int:
    workspace = store.remove_checklist_item(args.bucket, args.number - 1)
    print(f"Checklist for {args.bucket} now has {len(workspace.startup_checklist)} items")
    return 0


def cmd_reset(store: Store, args: argparse.Namespace) -> int:
    store.reset()
    print("Restored the seed snapshot.")
    return 0


_COMMANDS = {
    "brief": cmd_brief,
    "standup": cmd_standup,
    "buckets": cmd_buckets,
    "tasks": cmd_tasks,
    "task-add": cmd_task_add,
    "task-edit": cmd_task_edit,
    "task-state": cmd_task_state,
    "session-log": cmd_session_log,
    "plan-nightly": cmd_plan_nightly,
    "plan-weekly": cmd_plan_weekly,
    "dump-add": cmd_dump_add,
    "dump-list": cmd_dump_list,
    "dump-archive": cmd_dump_archive,
    "dump-convert": cmd_dump_convert,
    "workspace": cmd_workspace,
    "workspace-link-add": cmd_workspace_link_add,
    "workspace-link-remove": cmd_workspace_link_remove,
    "workspace-check-add": cmd_workspace_check_add,
    "workspace-check-remove": cmd_workspace_check_remove,
    "reset": cmd_reset,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    argv = list(argv) if argv is not None else list(sys.argv[1:])
    args = parser.parse_args(argv)
    if not args.cmd:
        args.cmd = "brief"

    handler = _COMMANDS.get(args.cmd)
    if handler is None:
        parser.error(f"Unknown command: {args.cmd}")
        return 2

    try:
        store = _open_store(args)
        code = handler(store, args)
    except ContextFlowError as exc:
        logger.debug("Command %s failed: %s", args.cmd, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _warn_if_unsaved(store)
    return code

