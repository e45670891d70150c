"""
Save interceptor.

Rewrites the pending change set of a session right before it is flushed:

1. A pending delete of a soft-deletable entity is cancelled and turned into
   an update that sets ``is_deleted`` and ``deleted_on``.
2. Otherwise an audited entity being inserted gets ``created_on`` (or
   ``modified_on`` when the caller already set ``created_on``), and an
   audited entity being updated gets ``modified_on``.

Rule 1 wins: a tombstoned entity never has ``modified_on`` bumped. The
rewrite only mutates in-memory state and never raises on its own.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from .common.models import AuditInfoMixin, DeletableEntityMixin

logger = logging.getLogger(__name__)


@dataclass
class ChangeSummary:
    """What a single run of the interceptor changed."""

    tombstoned: int = 0
    created: int = 0
    modified: int = 0

    @property
    def total(self) -> int:
        return self.tombstoned + self.created + self.modified

    def __bool__(self) -> bool:
        return self.total > 0


def pending_changes(session: Session) -> int:
    """Count the entities the next flush of ``session`` will write."""
    modified = [
        obj
        for obj in session.dirty
        if session.is_modified(obj, include_collections=False)
    ]
    return len(session.new) + len(modified) + len(session.deleted)


def apply_audit_info_rules(session: Session, now: datetime) -> ChangeSummary:
    """
    Apply the soft delete and audit timestamp rules to a session.

    Every save path ends up here through the session's ``before_flush``
    event, so this is the only place the rules live.

    Args:
        session: Session about to be flushed
        now: Timestamp to stamp, shared by every entity in this flush

    Returns:
        Counts of tombstoned, created and modified entities
    """
    # Snapshot first: re-adding a deleted entity makes it dirty
    deleted = list(session.deleted)
    added = list(session.new)
    updated = [
        obj
        for obj in session.dirty
        if session.is_modified(obj, include_collections=False)
    ]

    summary = ChangeSummary()

    for entity in deleted:
        if not isinstance(entity, DeletableEntityMixin):
            continue
        # Cancels the pending DELETE; the instance stays persistent
        session.add(entity)
        entity.is_deleted = True
        entity.deleted_on = now
        summary.tombstoned += 1

    for entity in added:
        if not isinstance(entity, AuditInfoMixin):
            continue
        if entity.created_on is None:
            entity.created_on = now
            summary.created += 1
        else:
            entity.modified_on = now
            summary.modified += 1

    for entity in updated:
        if not isinstance(entity, AuditInfoMixin):
            continue
        entity.modified_on = now
        summary.modified += 1

    if summary:
        logger.debug(
            "Audit rules applied at %s: %d tombstoned, %d created, %d modified",
            now.isoformat(),
            summary.tombstoned,
            summary.created,
            summary.modified,
        )

    return summary
