"""Task readiness gate — pure business logic.

A task may only enter Ready or Doing once it has a concrete next action and
a done definition. The rule is enforced when a state is set, not
continuously: a task that already sits in Doing is not re-checked until it
is saved again.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging

from src.core.clock import now_ms as _now_ms
from src.core.errors import ValidationError
from src.data.models import Task, TaskState, new_id

logger = logging.getLogger(__name__)

READINESS_STATES = frozenset({TaskState.READY, TaskState.DOING})

READINESS_MESSAGE = (
    "To mark as Ready or Doing, you MUST define the Next Action and Done Definition."
)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def missing_readiness_fields(task: Task) -> list[str]:
    """Return the names of readiness fields that are empty on ``task``."""
    missing = []
    if _is_blank(task.next_action):
        missing.append("next_action")
    if _is_blank(task.done_definition):
        missing.append("done_definition")
    return missing


def validate_transition(task: Task, target_state: TaskState) -> None:
    """Raise ValidationError if ``task`` may not move to ``target_state``.

    Only Ready and Doing are gated; every other transition is allowed.
    The check uses the task's current (possibly just-edited) fields.
    """
    if TaskState(target_state) not in READINESS_STATES:
        return
    missing = missing_readiness_fields(task)
    if missing:
        logger.info(
            "Task %s rejected for %s: missing %s", task.id, target_state, ", ".join(missing),
        )
        raise ValidationError(READINESS_MESSAGE)


def stamp_task(task: Task, now_ms: int, is_new: bool = False) -> Task:
    """Return ``task`` with ``updated_at`` set; new tasks also get id and ``created_at``."""
    changes: dict = {"updated_at": now_ms}
    if is_new:
        if not task.id:
            changes["id"] = new_id("t")
        if not task.created_at:
            changes["created_at"] = now_ms
    return task.model_copy(update=changes)


def prepare_task_save(task: Task, now_ms: int | None = None, is_new: bool = False) -> Task:
    """Validate a task about to be saved and stamp its timestamps.

    Raises ValidationError when the title is empty, the bucket is missing,
    or the readiness gate fails.
    """
    if _is_blank(task.title):
        raise ValidationError("Task title must not be empty.")
    if _is_blank(task.bucket_id):
        raise ValidationError("Task must belong to a bucket.")
    validate_transition(task, task.state)
    if now_ms is None:
        now_ms = _now_ms()
    return stamp_task(task, now_ms, is_new=is_new)
