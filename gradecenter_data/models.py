"""
Domain entities of the GradeCenter school grade-management application.

Every entity except ``UserRelation`` and ``ApplicationUserRole`` is both
soft-deletable and audited. ``UserRelation`` only carries audit timestamps
and the ``ApplicationUserRole`` link table carries neither capability.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .common.models import Base, BaseDeletableModel, BaseModel


class School(BaseDeletableModel):
    """A school and everything enrolled in it."""

    __tablename__ = "schools"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    classes: Mapped[List["Class"]] = relationship(back_populates="school")
    subjects: Mapped[List["Subject"]] = relationship(back_populates="school")
    users: Mapped[List["ApplicationUser"]] = relationship(back_populates="school")


class Class(BaseDeletableModel):
    """A school class, e.g. 10 "B"."""

    __tablename__ = "classes"
    __table_args__ = (
        CheckConstraint("year BETWEEN 1 AND 12", name="ck_classes_year"),
    )

    school_id: Mapped[str] = mapped_column(ForeignKey("schools.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    letter: Mapped[str] = mapped_column(String(5), nullable=False)

    school: Mapped["School"] = relationship(back_populates="classes")
    curriculum: Mapped[Optional["Curriculum"]] = relationship(back_populates="class_")
    students: Mapped[List["ApplicationUser"]] = relationship(back_populates="class_")

    @property
    def name(self) -> str:
        return f"{self.year}{self.letter}"


class Curriculum(BaseDeletableModel):
    """The set of subjects taught to a class."""

    __tablename__ = "curriculums"

    class_id: Mapped[str] = mapped_column(
        ForeignKey("classes.id"), nullable=False, unique=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    class_: Mapped["Class"] = relationship(back_populates="curriculum")
    curriculum_subjects: Mapped[List["CurriculumSubject"]] = relationship(
        back_populates="curriculum"
    )


class Subject(BaseDeletableModel):
    """A taught subject, e.g. Mathematics."""

    __tablename__ = "subjects"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    school_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("schools.id"), nullable=True
    )

    school: Mapped[Optional["School"]] = relationship(back_populates="subjects")
    curriculum_subjects: Mapped[List["CurriculumSubject"]] = relationship(
        back_populates="subject"
    )
    user_subjects: Mapped[List["UserSubject"]] = relationship(back_populates="subject")


class CurriculumSubject(BaseDeletableModel):
    """
    Links a subject into a curriculum.

    Keyed by its own id rather than the pair, so a subject can be linked
    again after an earlier link was soft-deleted.
    """

    __tablename__ = "curriculums_subjects"

    curriculum_id: Mapped[str] = mapped_column(
        ForeignKey("curriculums.id"), nullable=False, index=True
    )
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id"), nullable=False, index=True
    )

    curriculum: Mapped["Curriculum"] = relationship(
        back_populates="curriculum_subjects"
    )
    subject: Mapped["Subject"] = relationship(back_populates="curriculum_subjects")


class UserRelation(BaseModel):
    """Parent to child relation between two users."""

    __tablename__ = "users_relations"
    __table_args__ = (
        UniqueConstraint("parent_id", "child_id", name="uq_users_relations_pair"),
    )

    parent_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    child_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)

    parent: Mapped["ApplicationUser"] = relationship(foreign_keys=[parent_id])
    child: Mapped["ApplicationUser"] = relationship(foreign_keys=[child_id])


class UserGrade(BaseDeletableModel):
    """A grade given to a student in a subject, on the 2 to 6 scale."""

    __tablename__ = "users_grades"
    __table_args__ = (
        CheckConstraint("value >= 2 AND value <= 6", name="ck_users_grades_value"),
    )

    student_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    teacher_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    subject_id: Mapped[str] = mapped_column(ForeignKey("subjects.id"), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    student: Mapped["ApplicationUser"] = relationship(foreign_keys=[student_id])
    teacher: Mapped[Optional["ApplicationUser"]] = relationship(
        foreign_keys=[teacher_id]
    )
    subject: Mapped["Subject"] = relationship()


class UserSubject(BaseDeletableModel):
    """Enrols a user (student or teacher) in a subject; re-enrolment adds a row."""

    __tablename__ = "users_subjects"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id"), nullable=False, index=True
    )

    user: Mapped["ApplicationUser"] = relationship(back_populates="user_subjects")
    subject: Mapped["Subject"] = relationship(back_populates="user_subjects")


class UserPresence(BaseDeletableModel):
    """Attendance of a student in one lesson."""

    __tablename__ = "users_presences"

    student_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    subject_id: Mapped[str] = mapped_column(ForeignKey("subjects.id"), nullable=False)
    lesson_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    student: Mapped["ApplicationUser"] = relationship()
    subject: Mapped["Subject"] = relationship()


class ApplicationUser(BaseDeletableModel):
    """Identity user: student, parent, teacher, principal or administrator."""

    __tablename__ = "users"

    user_name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    school_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("schools.id"), nullable=True
    )
    class_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("classes.id"), nullable=True
    )

    school: Mapped[Optional["School"]] = relationship(back_populates="users")
    class_: Mapped[Optional["Class"]] = relationship(back_populates="students")
    user_roles: Mapped[List["ApplicationUserRole"]] = relationship(
        back_populates="user"
    )
    user_subjects: Mapped[List["UserSubject"]] = relationship(back_populates="user")


class ApplicationRole(BaseDeletableModel):
    """Identity role."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)

    user_roles: Mapped[List["ApplicationUserRole"]] = relationship(
        back_populates="role"
    )


class ApplicationUserRole(Base):
    """Assigns a role to a user."""

    __tablename__ = "users_roles"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), primary_key=True)
    role_id: Mapped[str] = mapped_column(ForeignKey("roles.id"), primary_key=True)

    user: Mapped["ApplicationUser"] = relationship(back_populates="user_roles")
    role: Mapped["ApplicationRole"] = relationship(back_populates="user_roles")
