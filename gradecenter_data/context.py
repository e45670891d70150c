"""
Persistence context for the GradeCenter application.

A ``GradeCenterContext`` is one unit of work: it wraps a single
``GradeCenterSession``, exposes one typed entity set per domain entity and
saves the pending change set in one go. Open one per request (or other
logical operation), never share it between threads, and close it when done.

Example:
    db = GradeCenterDatabase(config=DataConfig(database_url="sqlite://"))
    db.create_all()

    with db.context() as ctx:
        math = ctx.subjects.add(Subject(name="Math"))
        ctx.save_changes()

        ctx.subjects.remove(math)
        ctx.save_changes()  # tombstone: math.is_deleted is True

        assert ctx.subjects.get(math.id) is None
        assert ctx.subjects.ignore_query_filters().get(math.id) is math
"""

import logging
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Type,
    TypeVar,
)

from sqlalchemy import Select, create_engine, func, select
from sqlalchemy.engine import Engine, Result
from sqlalchemy.orm import Session, sessionmaker

from .common.models import Base, DeletableEntityMixin, utcnow
from .config import DataConfig, get_config
from .interceptor import pending_changes
from .models import (
    ApplicationRole,
    ApplicationUser,
    ApplicationUserRole,
    Class,
    Curriculum,
    CurriculumSubject,
    School,
    Subject,
    UserGrade,
    UserPresence,
    UserRelation,
    UserSubject,
)
from .registry import INCLUDE_DELETED, EntityModel, build_model
from .session import CLOCK_INFO_KEY, MODEL_INFO_KEY, GradeCenterSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _entity_select(entity_type: Type[Any], include_deleted: bool) -> Select[Any]:
    statement = select(entity_type)
    if include_deleted:
        statement = statement.execution_options(**{INCLUDE_DELETED: True})
    return statement


def _count_select(entity_type: Type[Any], include_deleted: bool) -> Select[Any]:
    statement = select(func.count()).select_from(entity_type)
    if include_deleted:
        statement = statement.execution_options(**{INCLUDE_DELETED: True})
    return statement


def _hidden(entity: Any, include_deleted: bool) -> bool:
    """True when ``entity`` is a tombstone the caller did not ask for."""
    return (
        not include_deleted
        and isinstance(entity, DeletableEntityMixin)
        and bool(entity.is_deleted)
    )


class EntitySet(Generic[T]):
    """
    Typed, queryable collection of one entity type within a context.

    Reads exclude soft-deleted rows unless the set was obtained through
    ``ignore_query_filters()``.
    """

    def __init__(
        self, session: Session, entity_type: Type[T], include_deleted: bool = False
    ):
        self._session = session
        self.entity_type = entity_type
        self.include_deleted = include_deleted

    def __repr__(self) -> str:
        suffix = " (ignoring query filters)" if self.include_deleted else ""
        return f"<EntitySet {self.entity_type.__name__}{suffix}>"

    def ignore_query_filters(self) -> "EntitySet[T]":
        """
        Return a view of this set whose reads include soft-deleted rows.

        Meant for administrative and recovery queries.
        """
        logger.debug("Soft delete filter ignored for %s", self.entity_type.__name__)
        return EntitySet(self._session, self.entity_type, include_deleted=True)

    def select(self) -> Select[Any]:
        """Select statement for this set, ready for ``where``/``order_by``."""
        return _entity_select(self.entity_type, self.include_deleted)

    def add(self, entity: T) -> T:
        """Start tracking a new entity; it is inserted on the next save."""
        self._session.add(entity)
        return entity

    def add_all(self, entities: Iterable[T]) -> List[T]:
        added = list(entities)
        self._session.add_all(added)
        return added

    def remove(self, entity: T) -> None:
        """
        Mark an entity for deletion.

        Soft-deletable entities are tombstoned by the next save instead of
        being removed.
        """
        self._session.delete(entity)

    def remove_all(self, entities: Iterable[T]) -> None:
        for entity in entities:
            self._session.delete(entity)

    def get(self, ident: Any) -> Optional[T]:
        """
        Look up an entity by primary key.

        Args:
            ident: Primary key value, or a tuple for composite keys

        Returns:
            The entity, or None if it does not exist or is soft-deleted
        """
        entity = self._session.get(
            self.entity_type,
            ident,
            execution_options={INCLUDE_DELETED: self.include_deleted},
        )
        if entity is None or _hidden(entity, self.include_deleted):
            return None
        return entity

    def all(self) -> List[T]:
        return list(self._session.scalars(self.select()))

    def filter_by(self, **criteria: Any) -> List[T]:
        """Entities whose attributes equal the given values."""
        return list(self._session.scalars(self.select().filter_by(**criteria)))

    def first(self, **criteria: Any) -> Optional[T]:
        return self._session.scalars(self.select().filter_by(**criteria)).first()

    def count(self) -> int:
        statement = _count_select(self.entity_type, self.include_deleted)
        return self._session.scalar(statement) or 0

    def __iter__(self) -> Iterator[T]:
        return iter(self.all())


class GradeCenterContext:
    """
    Unit of work over the GradeCenter entities.

    Entity sets:
        schools, classes, users_relations, curriculums, subjects,
        curriculums_subjects, users_grades, users_subjects, users_presences,
        users, roles, user_roles

    Every save path (``save_changes``, ``commit``, explicit
    flushes) runs the save interceptor before any SQL is issued.
    """

    def __init__(self, session: Session):
        self.session = session

        self.schools = EntitySet(session, School)
        self.classes = EntitySet(session, Class)
        self.users_relations = EntitySet(session, UserRelation)
        self.curriculums = EntitySet(session, Curriculum)
        self.subjects = EntitySet(session, Subject)
        self.curriculums_subjects = EntitySet(session, CurriculumSubject)
        self.users_grades = EntitySet(session, UserGrade)
        self.users_subjects = EntitySet(session, UserSubject)
        self.users_presences = EntitySet(session, UserPresence)

        # Identity
        self.users = EntitySet(session, ApplicationUser)
        self.roles = EntitySet(session, ApplicationRole)
        self.user_roles = EntitySet(session, ApplicationUserRole)

    def set(self, entity_type: Type[T]) -> EntitySet[T]:
        """Entity set for any mapped entity type."""
        return EntitySet(self.session, entity_type)

    def save_changes(self, accept_all_changes_on_success: bool = True) -> int:
        """
        Write the pending change set.

        Args:
            accept_all_changes_on_success: Commit after writing. When False
                the changes are flushed inside the open transaction and the
                caller decides with ``commit()`` or ``rollback()``.

        Returns:
            Number of entities written
        """
        written = pending_changes(self.session)
        if accept_all_changes_on_success:
            self.session.commit()
        else:
            self.session.flush()
        logger.debug("Saved %d entities", written)
        return written

    def execute(self, statement: Any, include_deleted: bool = False) -> Result[Any]:
        """Execute a custom statement inside this unit of work."""
        execution_options = {INCLUDE_DELETED: include_deleted}
        return self.session.execute(statement, execution_options=execution_options)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def close(self) -> None:
        """Close the unit of work, discarding tracked entities."""
        self.session.close()

    def __enter__(self) -> "GradeCenterContext":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.close()


class GradeCenterDatabase:
    """
    Engine, entity model and session factory for one database.

    Create one per process and open a ``GradeCenterContext`` per unit of
    work with ``context()``. Sessions do not autoflush: reads never write
    pending changes, so timestamps are only stamped by a save.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        config: Optional[DataConfig] = None,
        clock: Optional[Callable[[], Any]] = None,
        base: Type[Any] = Base,
    ):
        """
        Initialize the database.

        Args:
            engine: Engine to use; built from ``config.database_url`` if omitted
            config: Data layer configuration (defaults to the global one)
            clock: Source of audit timestamps (defaults to UTC now)
            base: Declarative base whose entities are managed
        """
        self.config = config or get_config()
        self.engine = engine or create_engine(
            self.config.database_url, **self.config.get_engine_options()
        )
        self.base = base
        self.model: EntityModel = build_model(base)
        self.session_factory = sessionmaker(
            bind=self.engine,
            class_=GradeCenterSession,
            autoflush=False,
            expire_on_commit=self.config.expire_on_commit,
            info={MODEL_INFO_KEY: self.model, CLOCK_INFO_KEY: clock or utcnow},
        )

    def create_all(self) -> None:
        """Create every table of the model that does not exist yet."""
        self.base.metadata.create_all(self.engine)
        logger.info("Schema created on %s", self.engine.url)

    def drop_all(self) -> None:
        self.base.metadata.drop_all(self.engine)

    def context(self) -> GradeCenterContext:
        """Open a new unit of work."""
        return GradeCenterContext(self.session_factory())

    def dispose(self) -> None:
        self.engine.dispose()
