"""Exceptions for the GradeCenter data layer."""

from typing import Optional


class GradeCenterDataError(Exception):
    """Base exception for data layer errors."""

    def __init__(self, message: str, entity_type: Optional[str] = None):
        self.entity_type = entity_type
        super().__init__(message)


class ModelConfigurationError(GradeCenterDataError):
    """Raised when the entity model cannot be built.

    This is a startup error: the model is built once when the database is
    created and a broken mapping is never recovered from.
    """

    def __init__(self, entity_type: str, problem: str):
        super().__init__(
            f"Entity {entity_type} is misconfigured: {problem}",
            entity_type=entity_type,
        )
