"""
Tests for the entity-set registry.

Covers capability classification, index configuration, per-entity query
filters and model-build errors.
"""

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from gradecenter_data import (
    ApplicationRole,
    ApplicationUser,
    ApplicationUserRole,
    AuditInfoMixin,
    Base,
    Class,
    Curriculum,
    CurriculumSubject,
    DataConfig,
    DeletableEntityMixin,
    GradeCenterDatabase,
    ModelConfigurationError,
    School,
    Subject,
    UserGrade,
    UserPresence,
    UserRelation,
    UserSubject,
    build_model,
)
from gradecenter_data.registry import configure_indexes


class TestBuildModel:
    """Test classification of the GradeCenter entities."""

    def test_all_entities_registered(self):
        """Test that every mapped entity is known to the model."""
        model = build_model(Base)

        assert set(model.entity_types) == {
            School,
            Class,
            Curriculum,
            Subject,
            CurriculumSubject,
            UserRelation,
            UserGrade,
            UserSubject,
            UserPresence,
            ApplicationUser,
            ApplicationRole,
            ApplicationUserRole,
        }

    def test_capabilities(self):
        """Test deletable and audited classification."""
        model = build_model(Base)

        assert model.is_deletable(Subject)
        assert model.is_audited(Subject)
        assert model.is_deletable(CurriculumSubject)

        assert not model.is_deletable(UserRelation)
        assert model.is_audited(UserRelation)

        assert not model.is_deletable(ApplicationUserRole)
        assert not model.is_audited(ApplicationUserRole)

        assert len(model.deletable_types) == 10
        assert len(model.audited_types) == 11

    def test_one_filter_per_deletable_entity(self):
        """Test that each deletable entity type gets its own query filter."""
        model = build_model(Base)

        assert set(model.query_filters) == set(model.deletable_types)
        assert UserRelation not in model.query_filters

    def test_build_is_idempotent(self):
        """Test that building twice gives the same mapping."""
        first = build_model(Base)
        second = build_model(Base)

        assert first is second
        assert first.entity_types == second.entity_types

    def test_entity_order_is_deterministic(self):
        """Test that entities are ordered by table name."""
        model = build_model(Base)
        table_names = [t.__table__.name for t in model.entity_types]

        assert table_names == sorted(table_names)


class TestIndexes:
    """Test index configuration for soft-deletable tables."""

    def test_is_deleted_indexed(self):
        """Test that every deletable table has an is_deleted index."""
        model = build_model(Base)

        for entity_type in model.deletable_types:
            table = entity_type.__table__
            names = [index.name for index in table.indexes]
            assert names.count(f"ix_{table.name}_is_deleted") == 1

    def test_configure_indexes_twice(self):
        """Test that configuring indexes again adds nothing."""
        model = build_model(Base)
        before = {t: len(t.__table__.indexes) for t in model.deletable_types}

        configure_indexes(model.deletable_types)

        after = {t: len(t.__table__.indexes) for t in model.deletable_types}
        assert before == after

    def test_indexes_created_in_database(self, database):
        """Test that the schema carries the index."""
        indexes = inspect(database.engine).get_indexes("subjects")

        assert "ix_subjects_is_deleted" in {index["name"] for index in indexes}

    def test_non_deletable_tables_not_indexed(self):
        """Test that tables without the capability get no is_deleted index."""
        build_model(Base)

        for index in UserRelation.__table__.indexes:
            assert not index.name.endswith("_is_deleted")


class TestNewEntities:
    """Test that new entities need no registry changes."""

    def test_new_deletable_entity_is_filtered(self):
        """Test a deletable entity declared on a separate base."""

        class NotesBase(DeclarativeBase):
            pass

        class Note(DeletableEntityMixin, AuditInfoMixin, NotesBase):
            __tablename__ = "notes"

            id: Mapped[int] = mapped_column(primary_key=True)
            text: Mapped[str] = mapped_column()

        model = build_model(NotesBase)

        assert model.deletable_types == (Note,)
        assert model.audited_types == (Note,)
        assert Note in model.query_filters
        assert "ix_notes_is_deleted" in {i.name for i in Note.__table__.indexes}

    def test_new_entity_round_trip(self, clock):
        """Test soft delete of an entity declared outside the package."""

        class NotesBase(DeclarativeBase):
            pass

        class Note(DeletableEntityMixin, AuditInfoMixin, NotesBase):
            __tablename__ = "notes"

            id: Mapped[int] = mapped_column(primary_key=True)
            text: Mapped[str] = mapped_column()

        db = GradeCenterDatabase(
            engine=create_engine("sqlite://"),
            config=DataConfig(database_url="sqlite://", environment="testing"),
            clock=clock,
            base=NotesBase,
        )
        db.create_all()

        with db.context() as ctx:
            notes = ctx.set(Note)
            note = notes.add(Note(text="Parents meeting on Friday"))
            ctx.save_changes()

            notes.remove(note)
            ctx.save_changes()

            assert notes.all() == []
            assert notes.ignore_query_filters().all() == [note]
            assert note.deleted_on == clock.last

        db.dispose()

    def test_missing_is_deleted_column(self):
        """Test that a deletable entity without the column fails the build."""

        class BrokenBase(DeclarativeBase):
            pass

        class Broken(DeletableEntityMixin, BrokenBase):
            __tablename__ = "broken"

            id: Mapped[int] = mapped_column(primary_key=True)
            is_deleted = False

        with pytest.raises(ModelConfigurationError) as exc:
            build_model(BrokenBase)

        assert exc.value.entity_type == "Broken"
        assert "is_deleted" in str(exc.value)
