"""
Declarative base and capability mixins for GradeCenter entities.

Two capabilities cut across the domain model:

- ``DeletableEntityMixin`` marks an entity as soft-deletable. Deleting it
  through a context writes a tombstone instead of removing the row, and
  default queries never return tombstones.
- ``AuditInfoMixin`` gives an entity creation and modification timestamps
  that are stamped automatically when the context saves.

Entities may carry both, one, or neither.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a string primary key."""
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator[datetime]):
    """
    Timezone-aware UTC datetime column.

    Values are converted to UTC before they are written and always come back
    with ``tzinfo=timezone.utc``, including on backends such as SQLite that
    do not keep timezone information. Naive values are assumed to be UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(
        self, value: Optional[datetime], dialect: Dialect
    ) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(
        self, value: Optional[datetime], dialect: Dialect
    ) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all GradeCenter models."""

    def __repr__(self) -> str:
        identity = getattr(self, "id", None)
        return f"<{self.__class__.__name__} id={identity!r}>"


class DeletableEntityMixin:
    """
    Soft delete capability.

    ``is_deleted`` is set by the save interceptor when the entity is removed
    from a context and is never cleared by the data layer. The index on
    ``is_deleted`` is added by the registry when the model is built.
    """

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_on: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("is_deleted", False)
        super().__init__(**kwargs)


class AuditInfoMixin:
    """
    Audit timestamp capability.

    ``created_on`` stays ``None`` until the first save stamps it; a caller may
    also supply it up front (e.g. when importing historical records), in which
    case the first save stamps ``modified_on`` instead.
    """

    created_on: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    modified_on: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class BaseModel(AuditInfoMixin, Base):
    """Audited entity with a string primary key."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("id", new_id())
        super().__init__(**kwargs)


class BaseDeletableModel(DeletableEntityMixin, BaseModel):
    """Audited, soft-deletable entity with a string primary key."""

    __abstract__ = True
