"""Entitlement resolution.

``EntitlementResolver.resolve`` is the single place that decides whether a
user may access a course. A deactivated user is denied with
``account_inactive`` before any rule runs. Otherwise rules are evaluated top
to bottom and the first match wins:

1. admin
2. free course
3. enterprise assignment of the course to the user's enterprise
4. enterprise employee whose enterprise subscription covers every course
5. active personal subscription
6. active access grant for the course
7. denied: ``subscription_required`` for paid courses, otherwise
   ``enterprise_access_required``

Rules 2, 5 and 6 only apply to approved courses. Resolution only reads state.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from src.auth.permissions import UserRole
from src.core.exceptions import DenialReason
from src.core.logging import get_logger


if TYPE_CHECKING:
    from src.courses.models import Course
    from src.enterprises.service import EnterpriseService
    from src.grants.service import AccessGrantService
    from src.users.models import User


logger = get_logger(__name__)


class AccessRule(str, Enum):
    """Rule that allowed access."""

    ADMIN = "admin"
    FREE_COURSE = "free_course"
    ENTERPRISE_ASSIGNMENT = "enterprise_assignment"
    ENTERPRISE_SUBSCRIPTION = "enterprise_subscription"
    SUBSCRIPTION = "subscription"
    ACCESS_GRANT = "access_grant"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    rule: AccessRule | None = None
    reason: str | None = None

    @classmethod
    def allow(cls, rule: AccessRule) -> "AccessDecision":
        return cls(allowed=True, rule=rule)

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


class EntitlementResolver:
    """Ordered access rules over users, enterprises and grants."""

    def __init__(
        self,
        enterprises: "EnterpriseService",
        grants: "AccessGrantService",
    ):
        self.enterprises = enterprises
        self.grants = grants

    async def resolve(
        self,
        user: "User",
        course: "Course",
        now: datetime | None = None,
    ) -> AccessDecision:
        decision = await self._evaluate(user, course, now)
        logger.debug(
            "entitlement_resolved",
            target_user_id=str(user.user_id),
            course_id=str(course.course_id),
            allowed=decision.allowed,
            rule=decision.rule.value if decision.rule else None,
            reason=decision.reason,
        )
        return decision

    async def _evaluate(
        self,
        user: "User",
        course: "Course",
        now: datetime | None,
    ) -> AccessDecision:
        if not user.is_active:
            return AccessDecision.deny(DenialReason.ACCOUNT_INACTIVE)

        if user.role == UserRole.ADMIN:
            return AccessDecision.allow(AccessRule.ADMIN)

        if course.is_approved and course.is_free:
            return AccessDecision.allow(AccessRule.FREE_COURSE)

        if user.enterprise_id is not None:
            if await self.enterprises.has_course_access(
                user.enterprise_id, course.course_id
            ):
                return AccessDecision.allow(AccessRule.ENTERPRISE_ASSIGNMENT)

            if user.role == UserRole.ENTERPRISE_EMPLOYEE:
                enterprise = await self.enterprises.get_enterprise(user.enterprise_id)
                if enterprise is not None and enterprise.covers_every_course:
                    return AccessDecision.allow(AccessRule.ENTERPRISE_SUBSCRIPTION)

        if course.is_approved:
            if user.has_active_subscription(now):
                return AccessDecision.allow(AccessRule.SUBSCRIPTION)

            if await self.grants.has_active_grant(user.user_id, course.course_id):
                return AccessDecision.allow(AccessRule.ACCESS_GRANT)

        if course.price > 0:
            return AccessDecision.deny(DenialReason.SUBSCRIPTION_REQUIRED)
        return AccessDecision.deny(DenialReason.ENTERPRISE_ACCESS_REQUIRED)
