"""Seed data required by every GradeCenter installation."""

import logging
from typing import Iterable, List

from .context import GradeCenterContext
from .models import ApplicationRole

logger = logging.getLogger(__name__)

ADMINISTRATOR_ROLE = "Administrator"
PRINCIPAL_ROLE = "Principal"
TEACHER_ROLE = "Teacher"
STUDENT_ROLE = "Student"
PARENT_ROLE = "Parent"

DEFAULT_ROLES = (
    ADMINISTRATOR_ROLE,
    PRINCIPAL_ROLE,
    TEACHER_ROLE,
    STUDENT_ROLE,
    PARENT_ROLE,
)


def seed_roles(
    context: GradeCenterContext, roles: Iterable[str] = DEFAULT_ROLES
) -> List[ApplicationRole]:
    """
    Create the application roles that do not exist yet.

    Soft-deleted roles count as existing: their names stay reserved and they
    are not recreated.

    Args:
        context: Unit of work to seed through
        roles: Role names to ensure

    Returns:
        The roles created by this call
    """
    existing = {
        role.name for role in context.roles.ignore_query_filters().all()
    }

    created = [
        context.roles.add(ApplicationRole(name=name))
        for name in roles
        if name not in existing
    ]

    if created:
        context.save_changes()
        logger.info("Seeded roles: %s", ", ".join(role.name for role in created))

    return created
