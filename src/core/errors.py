"""Error taxonomy shared by the store, the core rules and the CLI."""

from __future__ import annotations


class ContextFlowError(Exception):
    """Base class for every error the application reports to the user."""


class ValidationError(ContextFlowError):
    """A mutation was rejected by a validation rule (e.g. the readiness gate)."""


class NotFoundError(ContextFlowError):
    """A referenced bucket, task, workspace, plan or item id is absent."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind} {item_id!r} not found")
        self.kind = kind
        self.item_id = item_id


class InvalidTransitionError(ContextFlowError):
    """A terminal record was asked to change state again."""


class PersistenceError(ContextFlowError):
    """The snapshot slot could not be read, parsed or written."""
