"""
Entity-set registry.

Builds the entity model once per declarative base: classifies every mapped
entity by capability, adds the ``is_deleted`` index to every soft-deletable
table and prepares one soft-delete query filter per deletable entity type.

The filters are attached to ORM selects by ``GradeCenterSession`` unless the
statement carries the ``include_deleted`` execution option.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Type

from sqlalchemy import Index
from sqlalchemy.orm import ORMExecuteState, with_loader_criteria
from sqlalchemy.sql.elements import ColumnElement

from .common.exceptions import ModelConfigurationError
from .common.models import AuditInfoMixin, Base, DeletableEntityMixin

logger = logging.getLogger(__name__)

# Execution option that bypasses the soft delete filter
INCLUDE_DELETED = "include_deleted"


def not_deleted(entity_type: Any) -> ColumnElement[bool]:
    """Query filter shared by every soft-deletable entity type."""
    return entity_type.is_deleted.is_(False)


@dataclass(frozen=True)
class EntityModel:
    """
    Result of building the entity model for a declarative base.

    Attributes:
        entity_types: All mapped entity classes, ordered by table name
        deletable_types: Entity classes with the soft delete capability
        audited_types: Entity classes with the audit timestamp capability
        query_filters: Soft delete loader criteria keyed by entity class
    """

    entity_types: Tuple[Type[Any], ...]
    deletable_types: Tuple[Type[Any], ...]
    audited_types: Tuple[Type[Any], ...]
    query_filters: Dict[Type[Any], Any]

    def is_deletable(self, entity_type: Type[Any]) -> bool:
        return entity_type in self.deletable_types

    def is_audited(self, entity_type: Type[Any]) -> bool:
        return entity_type in self.audited_types

    def apply_query_filters(self, statement: Any) -> Any:
        """Attach every soft delete filter to a select statement."""
        if not self.query_filters:
            return statement
        return statement.options(*self.query_filters.values())

    def filter_orm_execute(self, orm_execute_state: ORMExecuteState) -> None:
        """
        Add the soft delete filters to an ORM select about to be executed.

        Column loads (refreshing attributes of an instance that is already
        loaded) are left alone so that tombstoned instances stay usable.
        Relationship loads are filtered as well: a parent added in the
        current unit of work was never loaded by a filtered select, so its
        collections have no criteria to inherit.
        """
        if not orm_execute_state.is_select or orm_execute_state.is_column_load:
            return

        if orm_execute_state.execution_options.get(INCLUDE_DELETED, False):
            logger.debug(
                "Soft delete filter bypassed for %s", orm_execute_state.statement
            )
            return

        orm_execute_state.statement = self.apply_query_filters(
            orm_execute_state.statement
        )


# Models already built, keyed by declarative base
_models: Dict[Type[Any], EntityModel] = {}


def build_model(base: Type[Any] = Base) -> EntityModel:
    """
    Build the entity model for a declarative base.

    Building is done once per base; later calls return the same model.
    Adding a soft-deletable entity needs no change here: every mapper is
    inspected for the capability mixins.

    Args:
        base: Declarative base whose registry lists the entities

    Returns:
        The entity model

    Raises:
        ModelConfigurationError: If a deletable entity cannot be filtered
    """
    if base in _models:
        return _models[base]

    mappers = sorted(
        base.registry.mappers,
        key=lambda m: (m.local_table.name, m.class_.__name__),
    )
    entity_types = tuple(mapper.class_ for mapper in mappers)
    deletable_types = tuple(
        t for t in entity_types if issubclass(t, DeletableEntityMixin)
    )
    audited_types = tuple(t for t in entity_types if issubclass(t, AuditInfoMixin))

    configure_indexes(deletable_types)

    query_filters = {
        entity_type: with_loader_criteria(
            entity_type, not_deleted, include_aliases=True
        )
        for entity_type in deletable_types
    }

    model = EntityModel(
        entity_types=entity_types,
        deletable_types=deletable_types,
        audited_types=audited_types,
        query_filters=query_filters,
    )
    _models[base] = model

    logger.info(
        "Entity model built: %d entities, %d soft-deletable, %d audited",
        len(entity_types),
        len(deletable_types),
        len(audited_types),
    )
    return model


def configure_indexes(deletable_types: Tuple[Type[Any], ...]) -> None:
    """
    Ensure every soft-deletable table has an index on ``is_deleted``.

    Safe to run more than once: an index that already exists is kept.

    Raises:
        ModelConfigurationError: If a table has no ``is_deleted`` column
    """
    for entity_type in deletable_types:
        table = entity_type.__mapper__.local_table
        if "is_deleted" not in table.c:
            raise ModelConfigurationError(
                entity_type.__name__,
                f"table {table.name} has no is_deleted column",
            )

        index_name = f"ix_{table.name}_is_deleted"
        if any(index.name == index_name for index in table.indexes):
            continue

        Index(index_name, table.c.is_deleted)
        logger.debug("Added index %s", index_name)

