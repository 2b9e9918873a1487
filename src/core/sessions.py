"""Focus session records.

Sessions are appended once the closeout is submitted and never change
afterwards. The closeout of a bucket's latest session primes the next one.
"""

from __future__ import annotations

import logging
from datetime import tzinfo

from src.core.clock import local_date
from src.core.errors import ValidationError
from src.core.selection import last_session
from src.data.models import Session, SessionType, Snapshot, new_id

logger = logging.getLogger(__name__)

ENERGY_MIN = 1
ENERGY_MAX = 5


def _check_energy(name: str, value: int | None) -> None:
    if value is None:
        return
    if not ENERGY_MIN <= value <= ENERGY_MAX:
        raise ValidationError(f"{name} must be between {ENERGY_MIN} and {ENERGY_MAX}, got {value}.")


def build_session(
    bucket_id: str,
    session_type: SessionType,
    started_at: int,
    ended_at: int,
    energy_before: int,
    energy_after: int | None = None,
    task_id: str | None = None,
    planned_min: int = 0,
    actual_min: int | None = None,
    closeout_finished: str | None = None,
    closeout_next: str | None = None,
    closeout_first_action: str | None = None,
) -> Session:
    """Validate and build a completed session.

    ``actual_min`` defaults to the whole minutes between start and end.
    Blank closeout fields are stored as absent.
    """
    if ended_at < started_at:
        raise ValidationError("Session cannot end before it starts.")
    _check_energy("Energy before", energy_before)
    _check_energy("Energy after", energy_after)
    if planned_min < 0:
        raise ValidationError("Planned minutes must not be negative.")
    if actual_min is None:
        actual_min = (ended_at - started_at) // 60_000
    elif actual_min < 0:
        raise ValidationError("Actual minutes must not be negative.")

    return Session(
        id=new_id("sess"),
        bucket_id=bucket_id,
        task_id=task_id,
        type=SessionType(session_type),
        planned_min=planned_min,
        actual_min=actual_min,
        energy_before=energy_before,
        energy_after=energy_after,
        closeout_finished=(closeout_finished or "").strip() or None,
        closeout_next=(closeout_next or "").strip() or None,
        closeout_first_action=(closeout_first_action or "").strip() or None,
        started_at=started_at,
        ended_at=ended_at,
    )


def append_session(snapshot: Snapshot, session: Session) -> Snapshot:
    logger.info(
        "%s session %s logged on %s (%d min)",
        session.type, session.id, session.bucket_id, session.actual_min,
    )
    return snapshot.model_copy(update={"sessions": (*snapshot.sessions, session)})


def previous_session(snapshot: Snapshot, bucket_id: str) -> Session | None:
    """Re-entry context: the bucket's latest session, if any."""
    return last_session(snapshot, bucket_id)


def sessions_on_day(
    snapshot: Snapshot, day: str, tz: tzinfo, bucket_id: str | None = None,
) -> list[Session]:
    """Sessions that started on calendar day ``day`` (``YYYY-MM-DD``) in ``tz``."""
    return [
        s for s in snapshot.sessions
        if local_date(s.started_at, tz).isoformat() == day
        and (bucket_id is None or s.bucket_id == bucket_id)
    ]
