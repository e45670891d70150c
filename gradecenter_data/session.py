"""
SQLAlchemy session class carrying the GradeCenter persistence policies.

``GradeCenterSession`` reads the entity model and the clock from
``Session.info`` (set by the database's session factory) and:

- runs the save interceptor on every flush, whatever triggered it
  (``save_changes``, ``commit``, ``flush``, async variants);
- adds the soft delete filters to every ORM select.
"""

from typing import Any, Callable, Optional

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session, UOWTransaction

from .common.models import utcnow
from .interceptor import apply_audit_info_rules
from .registry import EntityModel

MODEL_INFO_KEY = "gradecenter.model"
CLOCK_INFO_KEY = "gradecenter.clock"


class GradeCenterSession(Session):
    """Session with soft delete filtering and audit stamping installed."""

    @property
    def entity_model(self) -> Optional[EntityModel]:
        return self.info.get(MODEL_INFO_KEY)

    @property
    def clock(self) -> Callable[[], Any]:
        return self.info.get(CLOCK_INFO_KEY, utcnow)


@event.listens_for(GradeCenterSession, "before_flush")
def _apply_rules_before_flush(
    session: GradeCenterSession, flush_context: UOWTransaction, instances: Any
) -> None:
    apply_audit_info_rules(session, session.clock())


@event.listens_for(GradeCenterSession, "do_orm_execute")
def _filter_deleted_rows(orm_execute_state: ORMExecuteState) -> None:
    model = orm_execute_state.session.info.get(MODEL_INFO_KEY)
    if model is not None:
        model.filter_orm_execute(orm_execute_state)
