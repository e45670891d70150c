"""
Tests for the save interceptor rules.

The rules are exercised directly on a plain SQLAlchemy session so that the
tests see exactly what one run of the routine changes.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from gradecenter_data import (
    ApplicationRole,
    ApplicationUser,
    ApplicationUserRole,
    Base,
    Subject,
    UserRelation,
    apply_audit_info_rules,
)
from gradecenter_data.interceptor import ChangeSummary, pending_changes

NOW = datetime(2024, 10, 1, 9, 0, tzinfo=timezone.utc)
LATER = datetime(2024, 10, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_session():
    """Plain session without any listeners installed."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)

    session = Session(engine)

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def saved_subject(db_session):
    """A subject already in the database."""
    subject = Subject(name="Math", created_on=NOW)
    db_session.add(subject)
    db_session.flush()
    return subject


class TestDeleteRule:
    """Test conversion of deletes into tombstones."""

    def test_delete_becomes_update(self, db_session, saved_subject):
        """Test that the pending delete is cancelled."""
        db_session.delete(saved_subject)
        assert saved_subject in db_session.deleted

        summary = apply_audit_info_rules(db_session, LATER)

        assert saved_subject not in db_session.deleted
        assert saved_subject in db_session
        assert saved_subject.is_deleted is True
        assert saved_subject.deleted_on == LATER
        assert summary.tombstoned == 1

    def test_tombstone_written_on_flush(self, db_session, saved_subject):
        """Test that the rewritten change set reaches the database as an update."""
        db_session.delete(saved_subject)
        apply_audit_info_rules(db_session, LATER)
        db_session.flush()
        db_session.expire_all()

        reloaded = db_session.get(Subject, saved_subject.id)
        assert reloaded is not None
        assert reloaded.is_deleted is True

    def test_delete_does_not_stamp_modified_on(self, db_session, saved_subject):
        """Test that the delete rule takes precedence over the audit rule."""
        saved_subject.name = "Algebra"
        db_session.delete(saved_subject)

        summary = apply_audit_info_rules(db_session, LATER)

        assert saved_subject.modified_on is None
        assert summary.modified == 0

    def test_non_deletable_delete_untouched(self, db_session):
        """Test that deletes of other entities pass through."""
        user = ApplicationUser(user_name="teacher@school.bg", created_on=NOW)
        role = ApplicationRole(name="Teacher", created_on=NOW)
        link = ApplicationUserRole(user=user, role=role)
        db_session.add(link)
        db_session.flush()

        db_session.delete(link)
        summary = apply_audit_info_rules(db_session, LATER)

        assert link in db_session.deleted
        assert summary.tombstoned == 0


class TestAuditRule:
    """Test creation and modification stamps."""

    def test_insert_stamps_created_on(self, db_session):
        """Test stamping of a new entity."""
        subject = Subject(name="Physics")
        db_session.add(subject)

        summary = apply_audit_info_rules(db_session, NOW)

        assert subject.created_on == NOW
        assert subject.modified_on is None
        assert summary.created == 1

    def test_insert_with_created_on_stamps_modified_on(self, db_session):
        """Test that a caller-provided creation time is preserved."""
        historical = datetime(1999, 9, 15, tzinfo=timezone.utc)
        subject = Subject(name="Physics", created_on=historical)
        db_session.add(subject)

        summary = apply_audit_info_rules(db_session, NOW)

        assert subject.created_on == historical
        assert subject.modified_on == NOW
        assert summary.modified == 1

    def test_update_stamps_modified_on(self, db_session, saved_subject):
        """Test stamping of a changed entity."""
        saved_subject.name = "Mathematics"

        summary = apply_audit_info_rules(db_session, LATER)

        assert saved_subject.created_on == NOW
        assert saved_subject.modified_on == LATER
        assert summary.modified == 1

    def test_untouched_entity_not_stamped(self, db_session, saved_subject):
        """Test that clean entities are left alone."""
        summary = apply_audit_info_rules(db_session, LATER)

        assert saved_subject.modified_on is None
        assert not summary

    def test_entity_without_capabilities_untouched(self, db_session):
        """Test that link rows get no timestamps."""
        user = ApplicationUser(user_name="student@school.bg")
        role = ApplicationRole(name="Student")
        db_session.add(ApplicationUserRole(user=user, role=role))

        summary = apply_audit_info_rules(db_session, NOW)

        # Only the user and the role are audited
        assert summary.created == 2
        assert user.created_on == NOW

    def test_audited_only_entity(self, db_session):
        """Test an audited entity that is not soft-deletable."""
        parent = ApplicationUser(user_name="father@school.bg")
        child = ApplicationUser(user_name="daughter@school.bg")
        relation = UserRelation(parent=parent, child=child)
        db_session.add(relation)

        apply_audit_info_rules(db_session, NOW)

        assert relation.created_on == NOW


class TestChangeSummary:
    """Test the summary returned by the interceptor."""

    def test_total(self):
        summary = ChangeSummary(tombstoned=1, created=2, modified=3)

        assert summary.total == 6
        assert summary

    def test_empty(self):
        assert not ChangeSummary()

    def test_pending_changes(self, db_session, saved_subject):
        """Test counting what the next flush will write."""
        db_session.add(Subject(name="Chemistry"))
        saved_subject.name = "Mathematics"

        assert pending_changes(db_session) == 2
