"""
GradeCenter Data - persistence context for the GradeCenter school
grade-management application.

The package maps the GradeCenter entities (schools, classes, curricula,
subjects, grades, presences, user relations, identity users and roles) to a
relational database with SQLAlchemy and applies two policies to every unit
of work:

* **Soft delete**: removing a soft-deletable entity writes a tombstone
  (``is_deleted``/``deleted_on``) instead of deleting the row, and default
  queries never return tombstones.
* **Audit timestamps**: ``created_on`` and ``modified_on`` are stamped
  automatically when changes are saved.

Quick Start
-----------
>>> from gradecenter_data import DataConfig, GradeCenterDatabase, Subject
>>>
>>> db = GradeCenterDatabase(config=DataConfig(database_url="sqlite://"))
>>> db.create_all()
>>>
>>> with db.context() as ctx:
...     math = ctx.subjects.add(Subject(name="Math"))
...     ctx.save_changes()
...     ctx.subjects.remove(math)
...     ctx.save_changes()
...     deleted = ctx.subjects.ignore_query_filters().all()
"""

__version__ = "1.0.0"

from .async_context import (
    AsyncEntitySet,
    AsyncGradeCenterContext,
    AsyncGradeCenterDatabase,
)
from .common import (
    AuditInfoMixin,
    Base,
    BaseDeletableModel,
    BaseModel,
    DeletableEntityMixin,
    GradeCenterDataError,
    ModelConfigurationError,
)
from .config import DataConfig, configure, get_config, set_config
from .context import EntitySet, GradeCenterContext, GradeCenterDatabase
from .interceptor import ChangeSummary, apply_audit_info_rules
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
from .seeding import DEFAULT_ROLES, seed_roles
from .session import GradeCenterSession

__all__ = [
    # Contexts
    "GradeCenterDatabase",
    "GradeCenterContext",
    "EntitySet",
    "AsyncGradeCenterDatabase",
    "AsyncGradeCenterContext",
    "AsyncEntitySet",
    "GradeCenterSession",
    # Policies
    "EntityModel",
    "build_model",
    "INCLUDE_DELETED",
    "apply_audit_info_rules",
    "ChangeSummary",
    # Capabilities
    "Base",
    "BaseModel",
    "BaseDeletableModel",
    "DeletableEntityMixin",
    "AuditInfoMixin",
    # Entities
    "School",
    "Class",
    "Curriculum",
    "Subject",
    "CurriculumSubject",
    "UserRelation",
    "UserGrade",
    "UserSubject",
    "UserPresence",
    "ApplicationUser",
    "ApplicationRole",
    "ApplicationUserRole",
    # Seeding
    "seed_roles",
    "DEFAULT_ROLES",
    # Configuration
    "DataConfig",
    "get_config",
    "set_config",
    "configure",
    # Exceptions
    "GradeCenterDataError",
    "ModelConfigurationError",
]
