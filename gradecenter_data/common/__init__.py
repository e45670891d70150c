"""
Common building blocks shared by all GradeCenter entities.

Provides the declarative base, the deletable and audited capability mixins
and the package exceptions.
"""

from .exceptions import GradeCenterDataError, ModelConfigurationError
from .models import (
    AuditInfoMixin,
    Base,
    BaseDeletableModel,
    BaseModel,
    DeletableEntityMixin,
    UTCDateTime,
    new_id,
    utcnow,
)

__all__ = [
    # Declarative base
    "Base",
    "BaseModel",
    "BaseDeletableModel",
    # Capabilities
    "DeletableEntityMixin",
    "AuditInfoMixin",
    # Column types and helpers
    "UTCDateTime",
    "new_id",
    "utcnow",
    # Exceptions
    "GradeCenterDataError",
    "ModelConfigurationError",
]
