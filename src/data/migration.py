"""
ContextFlow — Snapshot migration.

Stored payloads written before goals, plans and the mind dump existed lack
those collections. They are patched with empty lists before validation.
Payloads now carry ``schemaVersion``; one without it is treated as version 1.
"""

from __future__ import annotations

import logging
from typing import Any

import pydantic

from src.core.errors import PersistenceError
from src.data.models import SCHEMA_VERSION, Snapshot

logger = logging.getLogger(__name__)

# Collections added after the first release, in wire (camelCase) form
ADDITIVE_COLLECTIONS: tuple[str, ...] = ("goals", "milestones", "plans", "mindDumpItems")


def upgrade_payload(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``raw`` with missing collections defaulted.

    Existing collections are passed through untouched.
    """
    payload = dict(raw)
    version = payload.get("schemaVersion", 1)
    if not isinstance(version, int):
        raise PersistenceError(f"Invalid schemaVersion: {version!r}")
    if version > SCHEMA_VERSION:
        logger.warning(
            "Stored snapshot has schemaVersion %d, newer than %d; loading anyway",
            version, SCHEMA_VERSION,
        )

    defaulted = [name for name in ADDITIVE_COLLECTIONS if payload.get(name) is None]
    for name in defaulted:
        payload[name] = []

    if defaulted or version < SCHEMA_VERSION:
        logger.info(
            "Upgraded snapshot from schemaVersion %d to %d (defaulted: %s)",
            version, SCHEMA_VERSION, ", ".join(defaulted) or "none",
        )
    payload["schemaVersion"] = max(version, SCHEMA_VERSION)
    return payload


def snapshot_from_payload(raw: Any) -> Snapshot:
    """Validate a decoded JSON payload into a Snapshot, upgrading it first."""
    if not isinstance(raw, dict):
        raise PersistenceError(f"Snapshot payload must be an object, got {type(raw).__name__}")
    try:
        return Snapshot.model_validate(upgrade_payload(raw))
    except pydantic.ValidationError as exc:
        raise PersistenceError(f"Stored snapshot failed validation: {exc}") from exc


def snapshot_to_payload(snapshot: Snapshot) -> dict[str, Any]:
    """Return the JSON-ready, camelCase dict for ``snapshot``."""
    return snapshot.model_dump(mode="json", by_alias=True, exclude_none=True)
