"""Role-based access control.

Roles are flat rather than hierarchical: a trainer is not a superset of a
student, and an enterprise employee is a student whose access may come from
their employer. Only ADMIN overrides ownership checks.
"""

from enum import Enum
from uuid import UUID


class UserRole(str, Enum):
    """Platform roles."""

    STUDENT = "student"
    TRAINER = "trainer"
    ADMIN = "admin"
    ENTERPRISE_EMPLOYEE = "enterprise_employee"


def parse_role(role: UserRole | str) -> UserRole | None:
    """Coerce a role value, returning None for unknown roles."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return parse_role(role) == UserRole.ADMIN


def is_trainer(role: UserRole | str) -> bool:
    """Check if role is TRAINER."""
    return parse_role(role) == UserRole.TRAINER


def is_enterprise_employee(role: UserRole | str) -> bool:
    return parse_role(role) == UserRole.ENTERPRISE_EMPLOYEE


def can_act_for(actor_id: UUID, actor_role: UserRole | str, owner_id: UUID) -> bool:
    """Check if the actor owns the resource or is an admin.

    Examples:
        >>> from uuid import uuid4
        >>> uid = uuid4()
        >>> can_act_for(uid, "student", uid)
        True
        >>> can_act_for(uuid4(), UserRole.ADMIN, uid)
        True
    """
    return actor_id == owner_id or is_admin(actor_role)


def can_manage_course(
    actor_id: UUID, actor_role: UserRole | str, trainer_id: UUID
) -> bool:
    """Course owner (a trainer) or admin."""
    if is_admin(actor_role):
        return True
    return is_trainer(actor_role) and actor_id == trainer_id
