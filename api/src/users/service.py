# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""User service layer.

Users are never deleted; deactivation only clears ``is_active`` so historical
enrollments and approvals keep a valid reference.
"""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

from src.auth.permissions import UserRole
from src.config import get_settings
from src.core.exceptions import NotFoundError
from src.core.logging import get_logger

from .models import SubscriptionPlan, User


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class UserService:
    """Service for user records and subscriptions."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users
            (user_id, email, name, role, is_active, subscription_active,
             subscription_plan, subscription_end_date, enterprise_id,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users
            WHERE user_id = ?
        """)

        self._list_users = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users
        """)

        self._update_subscription = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET subscription_active = ?, subscription_plan = ?,
                subscription_end_date = ?, updated_at = ?
            WHERE user_id = ?
        """)

        self._update_role = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET role = ?, updated_at = ?
            WHERE user_id = ?
        """)

        self._update_enterprise = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET enterprise_id = ?, updated_at = ?
            WHERE user_id = ?
        """)

        self._update_active = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET is_active = ?, updated_at = ?
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_user(self, user_id: UUID) -> User | None:
        result = await self.session.aexecute(self._get_user, [user_id])
        row = result.one()
        return User.from_row(row) if row else None

    async def require_user(self, user_id: UUID) -> User:
        """Get a user or raise NotFoundError."""
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=str(user_id))
        return user

    async def list_active_users(self) -> list[User]:
        rows = await self.session.aexecute(self._list_users)
        return [user for user in (User.from_row(row) for row in rows) if user.is_active]

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def create_user(
        self,
        email: str,
        name: str,
        role: UserRole = UserRole.STUDENT,
        enterprise_id: UUID | None = None,
    ) -> User:
        user = User(
            email=email.lower(),
            name=name,
            role=role,
            enterprise_id=enterprise_id,
        )
        await self.session.aexecute(
            self._insert_user,
            [
                user.user_id,
                user.email,
                user.name,
                user.role.value,
                user.is_active,
                user.subscription_active,
                None,
                None,
                user.enterprise_id,
                user.created_at,
                user.updated_at,
            ],
        )
        logger.info("user_created", target_user_id=str(user.user_id), role=role.value)
        return user

    async def activate_subscription(
        self,
        user_id: UUID,
        plan: SubscriptionPlan,
        now: datetime | None = None,
    ) -> User:
        """Activate or renew a subscription.

        A renewal while still active extends from the current end date.
        """
        user = await self.require_user(user_id)
        now = now or datetime.now(UTC)
        start = now
        if user.has_active_subscription(now) and user.subscription_end_date:
            start = user.subscription_end_date
        end_date = start + timedelta(days=get_settings().plan_days(plan.value))

        await self.session.aexecute(
            self._update_subscription,
            [True, plan.value, end_date, now, user_id],
        )
        user.subscription_active = True
        user.subscription_plan = plan
        user.subscription_end_date = end_date
        user.updated_at = now

        logger.info(
            "subscription_activated",
            target_user_id=str(user_id),
            plan=plan.value,
            end_date=end_date.isoformat(),
        )
        return user

    async def cancel_subscription(self, user_id: UUID) -> User:
        user = await self.require_user(user_id)
        now = datetime.now(UTC)
        await self.session.aexecute(
            self._update_subscription,
            [False, None, None, now, user_id],
        )
        user.subscription_active = False
        user.subscription_plan = None
        user.subscription_end_date = None
        logger.info("subscription_cancelled", target_user_id=str(user_id))
        return user

    async def set_role(self, user_id: UUID, role: UserRole) -> User:
        user = await self.require_user(user_id)
        await self.session.aexecute(
            self._update_role, [role.value, datetime.now(UTC), user_id]
        )
        logger.info(
            "user_role_changed",
            target_user_id=str(user_id),
            old_role=user.role.value,
            new_role=role.value,
        )
        user.role = role
        return user

    async def set_enterprise(self, user_id: UUID, enterprise_id: UUID | None) -> User:
        user = await self.require_user(user_id)
        await self.session.aexecute(
            self._update_enterprise, [enterprise_id, datetime.now(UTC), user_id]
        )
        user.enterprise_id = enterprise_id
        logger.info(
            "user_enterprise_changed",
            target_user_id=str(user_id),
            enterprise_id=str(enterprise_id) if enterprise_id else None,
        )
        return user

    async def deactivate(self, user_id: UUID) -> User:
        """Soft-disable a user."""
        user = await self.require_user(user_id)
        await self.session.aexecute(
            self._update_active, [False, datetime.now(UTC), user_id]
        )
        user.is_active = False
        logger.info("user_deactivated", target_user_id=str(user_id))
        return user
