"""Tests for entitlement resolution order."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from src.auth.permissions import UserRole
from src.core.exceptions import DenialReason
from src.courses.models import ApprovalStatus, Course
from src.enterprises.models import Enterprise
from src.entitlements.resolver import AccessRule, EntitlementResolver
from src.users.models import SubscriptionPlan, User


def make_user(role: UserRole = UserRole.STUDENT, **overrides) -> User:
    return User(email="someone@test.com", name="Someone", role=role, **overrides)


def make_course(price: int = 5000, approved: bool = True) -> Course:
    return Course(
        trainer_id=uuid4(),
        title="Clinical Pharmacy",
        price=price,
        max_students=20,
        approval_status=ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING,
    )


@pytest.fixture
def enterprises():
    service = Mock()
    service.has_course_access = AsyncMock(return_value=False)
    service.get_enterprise = AsyncMock(return_value=None)
    return service


@pytest.fixture
def grants():
    service = Mock()
    service.has_active_grant = AsyncMock(return_value=False)
    return service


@pytest.fixture
def resolver(enterprises, grants) -> EntitlementResolver:
    return EntitlementResolver(enterprises, grants)


class TestRuleOrder:
    """Each rule in isolation, then precedence between them."""

    @pytest.mark.asyncio
    async def test_admin_always_allowed(self, resolver, grants) -> None:
        """Admins get access even to unapproved paid courses."""
        decision = await resolver.resolve(
            make_user(UserRole.ADMIN), make_course(approved=False)
        )
        assert decision.allowed is True
        assert decision.rule == AccessRule.ADMIN
        grants.has_active_grant.assert_not_called()

    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.STUDENT])
    @pytest.mark.asyncio
    async def test_deactivated_user_denied_first(self, resolver, grants, role) -> None:
        """Deactivation outranks every allow rule, admin included."""
        decision = await resolver.resolve(
            make_user(role, is_active=False), make_course(price=0)
        )
        assert decision.allowed is False
        assert decision.reason == DenialReason.ACCOUNT_INACTIVE
        grants.has_active_grant.assert_not_called()

    @pytest.mark.asyncio
    async def test_free_approved_course(self, resolver) -> None:
        decision = await resolver.resolve(make_user(), make_course(price=0))
        assert decision.rule == AccessRule.FREE_COURSE

    @pytest.mark.asyncio
    async def test_free_unapproved_course_denied(self, resolver) -> None:
        """A free course that is not approved gives no access."""
        decision = await resolver.resolve(make_user(), make_course(price=0, approved=False))
        assert decision.allowed is False
        assert decision.reason == DenialReason.ENTERPRISE_ACCESS_REQUIRED

    @pytest.mark.asyncio
    async def test_enterprise_assignment(self, resolver, enterprises) -> None:
        enterprises.has_course_access.return_value = True
        user = make_user(enterprise_id=uuid4())

        decision = await resolver.resolve(user, make_course())

        assert decision.rule == AccessRule.ENTERPRISE_ASSIGNMENT
        enterprises.has_course_access.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_enterprise_assignment_ignores_approval(
        self, resolver, enterprises
    ) -> None:
        """Enterprise assignment applies to unapproved courses too."""
        enterprises.has_course_access.return_value = True
        user = make_user(enterprise_id=uuid4())

        decision = await resolver.resolve(user, make_course(approved=False))

        assert decision.rule == AccessRule.ENTERPRISE_ASSIGNMENT

    @pytest.mark.asyncio
    async def test_enterprise_subscription_for_employee(
        self, resolver, enterprises
    ) -> None:
        enterprise = Enterprise(
            name="Acme", subscription_active=True, covers_all_courses=True
        )
        enterprises.get_enterprise.return_value = enterprise
        user = make_user(UserRole.ENTERPRISE_EMPLOYEE, enterprise_id=enterprise.enterprise_id)

        decision = await resolver.resolve(user, make_course())

        assert decision.rule == AccessRule.ENTERPRISE_SUBSCRIPTION

    @pytest.mark.asyncio
    async def test_enterprise_subscription_needs_employee_role(
        self, resolver, enterprises
    ) -> None:
        """A student attached to an enterprise does not inherit its subscription."""
        enterprise = Enterprise(
            name="Acme", subscription_active=True, covers_all_courses=True
        )
        enterprises.get_enterprise.return_value = enterprise
        user = make_user(UserRole.STUDENT, enterprise_id=enterprise.enterprise_id)

        decision = await resolver.resolve(user, make_course())

        assert decision.allowed is False
        enterprises.get_enterprise.assert_not_called()

    @pytest.mark.asyncio
    async def test_inactive_enterprise_subscription_denied(
        self, resolver, enterprises
    ) -> None:
        enterprise = Enterprise(
            name="Acme", subscription_active=False, covers_all_courses=True
        )
        enterprises.get_enterprise.return_value = enterprise
        user = make_user(UserRole.ENTERPRISE_EMPLOYEE, enterprise_id=enterprise.enterprise_id)

        decision = await resolver.resolve(user, make_course())

        assert decision.allowed is False
        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_active_subscription(self, resolver) -> None:
        user = make_user(
            subscription_active=True,
            subscription_plan=SubscriptionPlan.MONTHLY,
            subscription_end_date=datetime.now(UTC) + timedelta(days=3),
        )
        decision = await resolver.resolve(user, make_course())
        assert decision.rule == AccessRule.SUBSCRIPTION

    @pytest.mark.asyncio
    async def test_expired_subscription_falls_through(self, resolver) -> None:
        user = make_user(
            subscription_active=True,
            subscription_plan=SubscriptionPlan.MONTHLY,
            subscription_end_date=datetime.now(UTC) - timedelta(seconds=1),
        )
        decision = await resolver.resolve(user, make_course())
        assert decision.allowed is False
        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_subscription_does_not_cover_unapproved(self, resolver) -> None:
        user = make_user(subscription_active=True)
        decision = await resolver.resolve(user, make_course(approved=False))
        assert decision.allowed is False

    @pytest.mark.asyncio
    async def test_access_grant(self, resolver, grants) -> None:
        grants.has_active_grant.return_value = True
        decision = await resolver.resolve(make_user(), make_course())
        assert decision.rule == AccessRule.ACCESS_GRANT

    @pytest.mark.asyncio
    async def test_grant_on_unapproved_course_not_consulted(
        self, resolver, grants
    ) -> None:
        grants.has_active_grant.return_value = True
        decision = await resolver.resolve(make_user(), make_course(approved=False))
        assert decision.allowed is False
        grants.has_active_grant.assert_not_called()

    @pytest.mark.asyncio
    async def test_denied_paid_course(self, resolver) -> None:
        decision = await resolver.resolve(make_user(), make_course(price=100))
        assert decision.allowed is False
        assert decision.rule is None
        assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_first_matching_rule_wins(self, resolver, enterprises, grants) -> None:
        """Enterprise assignment is reported even when a grant also exists."""
        enterprises.has_course_access.return_value = True
        grants.has_active_grant.return_value = True
        user = make_user(enterprise_id=uuid4(), subscription_active=True)

        decision = await resolver.resolve(user, make_course())

        assert decision.rule == AccessRule.ENTERPRISE_ASSIGNMENT
        grants.has_active_grant.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolution_is_deterministic(self, resolver) -> None:
        user = make_user()
        course = make_course()
        first = await resolver.resolve(user, course)
        second = await resolver.resolve(user, course)
        assert first == second
