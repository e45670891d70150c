"""
Asynchronous persistence context.

Mirrors ``gradecenter_data.context`` over SQLAlchemy's ``AsyncSession``. The
underlying synchronous session is a ``GradeCenterSession``, so the save
interceptor and the soft delete filter are exactly the ones used by the
synchronous context. The interceptor runs inside the flush without any
suspension point, so cancelling ``save_changes_async`` can never leave a
change set half rewritten.
"""

import logging
from typing import Any, Callable, Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import Select
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .common.models import Base, utcnow
from .config import DataConfig, get_config
from .context import _count_select, _entity_select, _hidden
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


class AsyncEntitySet(Generic[T]):
    """Asynchronous counterpart of ``EntitySet``."""

    def __init__(
        self,
        session: AsyncSession,
        entity_type: Type[T],
        include_deleted: bool = False,
    ):
        self._session = session
        self.entity_type = entity_type
        self.include_deleted = include_deleted

    def __repr__(self) -> str:
        suffix = " (ignoring query filters)" if self.include_deleted else ""
        return f"<AsyncEntitySet {self.entity_type.__name__}{suffix}>"

    def ignore_query_filters(self) -> "AsyncEntitySet[T]":
        logger.debug("Soft delete filter ignored for %s", self.entity_type.__name__)
        return AsyncEntitySet(self._session, self.entity_type, include_deleted=True)

    def select(self) -> Select[Any]:
        return _entity_select(self.entity_type, self.include_deleted)

    def add(self, entity: T) -> T:
        self._session.add(entity)
        return entity

    def add_all(self, entities: Iterable[T]) -> List[T]:
        added = list(entities)
        self._session.add_all(added)
        return added

    async def remove(self, entity: T) -> None:
        await self._session.delete(entity)

    async def remove_all(self, entities: Iterable[T]) -> None:
        for entity in entities:
            await self._session.delete(entity)

    async def get(self, ident: Any) -> Optional[T]:
        entity = await self._session.get(
            self.entity_type,
            ident,
            execution_options={INCLUDE_DELETED: self.include_deleted},
        )
        if entity is None or _hidden(entity, self.include_deleted):
            return None
        return entity

    async def all(self) -> List[T]:
        result = await self._session.scalars(self.select())
        return list(result)

    async def filter_by(self, **criteria: Any) -> List[T]:
        result = await self._session.scalars(self.select().filter_by(**criteria))
        return list(result)

    async def first(self, **criteria: Any) -> Optional[T]:
        result = await self._session.scalars(self.select().filter_by(**criteria))
        return result.first()

    async def count(self) -> int:
        statement = _count_select(self.entity_type, self.include_deleted)
        return await self._session.scalar(statement) or 0


class AsyncGradeCenterContext:
    """
    Asynchronous unit of work over the GradeCenter entities.

    Exposes the same entity sets as ``GradeCenterContext``; reads, removals
    and saves are awaited.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

        self.schools = AsyncEntitySet(session, School)
        self.classes = AsyncEntitySet(session, Class)
        self.users_relations = AsyncEntitySet(session, UserRelation)
        self.curriculums = AsyncEntitySet(session, Curriculum)
        self.subjects = AsyncEntitySet(session, Subject)
        self.curriculums_subjects = AsyncEntitySet(session, CurriculumSubject)
        self.users_grades = AsyncEntitySet(session, UserGrade)
        self.users_subjects = AsyncEntitySet(session, UserSubject)
        self.users_presences = AsyncEntitySet(session, UserPresence)

        # Identity
        self.users = AsyncEntitySet(session, ApplicationUser)
        self.roles = AsyncEntitySet(session, ApplicationRole)
        self.user_roles = AsyncEntitySet(session, ApplicationUserRole)

    def set(self, entity_type: Type[T]) -> AsyncEntitySet[T]:
        return AsyncEntitySet(self.session, entity_type)

    async def save_changes_async(
        self, accept_all_changes_on_success: bool = True
    ) -> int:
        """
        Write the pending change set.

        Args:
            accept_all_changes_on_success: Commit after writing. When False
                the changes are only flushed and the transaction stays open.

        Returns:
            Number of entities written
        """
        written = pending_changes(self.session.sync_session)
        if accept_all_changes_on_success:
            await self.session.commit()
        else:
            await self.session.flush()
        logger.debug("Saved %d entities", written)
        return written

    async def execute(
        self, statement: Any, include_deleted: bool = False
    ) -> Result[Any]:
        return await self.session.execute(
            statement, execution_options={INCLUDE_DELETED: include_deleted}
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def close(self) -> None:
        await self.session.close()

    async def __aenter__(self) -> "AsyncGradeCenterContext":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if exc_type is not None:
                await self.rollback()
        finally:
            await self.close()


class AsyncGradeCenterDatabase:
    """
    Async engine, entity model and session factory for one database.

    Loaded entities are not expired on commit: expired attributes would need
    implicit IO to reload, which an ``AsyncSession`` cannot do.
    """

    def __init__(
        self,
        engine: Optional[AsyncEngine] = None,
        config: Optional[DataConfig] = None,
        clock: Optional[Callable[[], Any]] = None,
        base: Type[Any] = Base,
    ):
        self.config = config or get_config()
        if engine is None:
            if not self.config.async_database_url:
                raise ValueError("async_database_url is required without an engine")
            engine = create_async_engine(
                self.config.async_database_url, **self.config.get_engine_options()
            )
        self.engine = engine
        self.base = base
        self.model: EntityModel = build_model(base)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            sync_session_class=GradeCenterSession,
            autoflush=False,
            expire_on_commit=False,
            info={MODEL_INFO_KEY: self.model, CLOCK_INFO_KEY: clock or utcnow},
        )

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(self.base.metadata.create_all)
        logger.info("Schema created on %s", self.engine.url)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(self.base.metadata.drop_all)

    def context(self) -> AsyncGradeCenterContext:
        return AsyncGradeCenterContext(self.session_factory())

    async def dispose(self) -> None:
        await self.engine.dispose()
