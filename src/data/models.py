"""
ContextFlow — Data Models.

The whole application state is one immutable Snapshot persisted as a single
JSON blob. Collections are independent top-level tuples cross-referenced by
id; nothing is nested and nothing cascades.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 2

MAX_SPRINT_BUCKETS = 2
MAX_WEEKLY_OUTCOMES = 3


def new_id(prefix: str) -> str:
    """Return a fresh opaque id such as ``t-3f9a0c1b2d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class BucketCategory(StrEnum):
    MAIN_WORK = "Main Work"
    SUPPORTING_HABITS = "Supporting Habits"
    SELF_CARE = "Self-Care & Fun"


class TaskState(StrEnum):
    INBOX = "Inbox"
    REFINE = "Refine"
    READY = "Ready"
    DOING = "Doing"
    DONE = "Done"
    PARKED = "Parked"


class SessionType(StrEnum):
    ANCHOR = "Anchor"
    SPRINT = "Sprint"
    RECOVERY = "Recovery"


class PlanType(StrEnum):
    NIGHTLY = "Nightly"
    WEEKLY = "Weekly"


class MindDumpStatus(StrEnum):
    INBOX = "inbox"
    CONVERTED = "converted"
    ARCHIVED = "archived"


class Record(BaseModel):
    """Base for every persisted entity: frozen, camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Bucket(Record):
    """A named area of life or work that tasks are organized under."""

    id: str
    name: str
    category: BucketCategory
    color: str = "slate"
    icon: str = "folder"


class WorkspaceLink(Record):
    id: str
    label: str
    url: str


class Workspace(Record):
    """Per-bucket launch pad: links to open and a startup checklist."""

    id: str
    bucket_id: str
    title: str
    links: tuple[WorkspaceLink, ...] = ()
    startup_checklist: tuple[str, ...] = ()


class Goal(Record):
    id: str
    title: str
    description: str | None = None


class Milestone(Record):
    id: str
    goal_id: str
    title: str
    is_completed: bool = False


class Task(Record):
    """A unit of work inside one bucket.

    ``next_action`` and ``done_definition`` are required before the task may
    enter Ready or Doing; that rule is checked on transition, not here.
    """

    id: str
    bucket_id: str
    title: str
    state: TaskState = TaskState.INBOX
    next_action: str | None = None
    done_definition: str | None = None
    links: tuple[str, ...] = ()
    notes: str | None = None
    milestone_id: str | None = None
    created_at: int = 0          # epoch ms
    updated_at: int = 0          # epoch ms


class Session(Record):
    """A completed focus session. Append-only."""

    id: str
    bucket_id: str
    task_id: str | None = None
    type: SessionType
    planned_min: int = 0
    actual_min: int = 0
    energy_before: int = Field(default=3, ge=1, le=5)
    energy_after: int | None = Field(default=None, ge=1, le=5)
    closeout_finished: str | None = None
    closeout_next: str | None = None
    closeout_first_action: str | None = None
    started_at: int
    ended_at: int | None = None


class Plan(Record):
    """Nightly plan (dateKey ``YYYY-MM-DD``) or weekly plan (``YYYY-W##``)."""

    id: str
    date_key: str
    type: PlanType
    anchor_bucket_id: str | None = None
    anchor_task_id: str | None = None
    sprint_bucket_ids: tuple[str, ...] = ()
    recovery_bucket_id: str | None = None
    outcomes: tuple[str, ...] = ()
    created_at: int = 0

    @field_validator("sprint_bucket_ids")
    @classmethod
    def cap_sprints(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return v[:MAX_SPRINT_BUCKETS]

    @field_validator("outcomes")
    @classmethod
    def cap_outcomes(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return v[:MAX_WEEKLY_OUTCOMES]


class MindDumpItem(Record):
    """An unstructured capture. ``converted`` and ``archived`` are terminal."""

    id: str
    text: str
    created_at: int
    status: MindDumpStatus = MindDumpStatus.INBOX
    bucket_id: str | None = None
    converted_task_id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != MindDumpStatus.INBOX


class Snapshot(Record):
    """The entire persisted state. Mutations produce a new Snapshot."""

    schema_version: int = SCHEMA_VERSION
    buckets: tuple[Bucket, ...]
    workspaces: tuple[Workspace, ...]
    tasks: tuple[Task, ...]
    sessions: tuple[Session, ...]
    goals: tuple[Goal, ...] = ()
    milestones: tuple[Milestone, ...] = ()
    plans: tuple[Plan, ...] = ()
    mind_dump_items: tuple[MindDumpItem, ...] = ()
