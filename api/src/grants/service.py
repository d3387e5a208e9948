# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Access grant service layer.

Business logic for:
- Granting course access (purchase settlement, admin overrides)
- Revoking access
- Checking for an active grant, cached in Redis when available
"""

import contextlib
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from src.config import get_settings
from src.core.logging import get_logger
from src.core.redis import access_cache_key

from .models import AccessGrant, GrantStatus, GrantType


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = get_logger(__name__)


class AccessGrantService:
    """Service for explicit per-user course entitlements."""

    def __init__(self, session: "Session", keyspace: str, redis: "Redis | None" = None):
        """Initialize with Cassandra session and optional Redis."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_grant = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.access_grants
            (user_id, course_id, grant_id, grant_type, status, granted_by,
             payment_id, notes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_user_course_grants = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.access_grants
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_grants = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.access_grants
            WHERE user_id = ?
        """)

        self._update_status = self.session.prepare(f"""
            UPDATE {self.keyspace}.access_grants
            SET status = ?, notes = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ? AND grant_id = ?
        """)

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def _active_grants(self, user_id: UUID, course_id: UUID) -> list[AccessGrant]:
        rows = await self.session.aexecute(
            self._get_user_course_grants, [user_id, course_id]
        )
        return [
            grant
            for grant in (AccessGrant.from_row(row) for row in rows)
            if grant.is_active()
        ]

    async def has_active_grant(self, user_id: UUID, course_id: UUID) -> bool:
        """Check for an active grant, consulting the Redis cache first."""
        cache_key = access_cache_key(str(user_id), str(course_id))
        if self.redis:
            with contextlib.suppress(Exception):
                cached = await self.redis.get(cache_key)
                if cached is not None:
                    return cached == "1"

        has_grant = bool(await self._active_grants(user_id, course_id))

        if self.redis:
            with contextlib.suppress(Exception):
                await self.redis.setex(
                    cache_key,
                    get_settings().access_cache_ttl_seconds,
                    "1" if has_grant else "0",
                )

        return has_grant

    async def list_user_grants(
        self, user_id: UUID, active_only: bool = True
    ) -> list[AccessGrant]:
        rows = await self.session.aexecute(self._get_user_grants, [user_id])
        grants = [AccessGrant.from_row(row) for row in rows]
        if active_only:
            grants = [g for g in grants if g.is_active()]
        return grants

    # ==========================================================================
    # Grant / Revoke
    # ==========================================================================

    async def grant(
        self,
        user_id: UUID,
        course_id: UUID,
        grant_type: GrantType,
        granted_by: UUID | None = None,
        payment_id: UUID | None = None,
        notes: str | None = None,
    ) -> AccessGrant:
        """Grant access to a course.

        Idempotent: an existing active grant is returned unchanged.
        """
        existing = await self._active_grants(user_id, course_id)
        if existing:
            logger.info(
                "access_grant_exists",
                target_user_id=str(user_id),
                course_id=str(course_id),
                grant_id=str(existing[0].grant_id),
            )
            return existing[0]

        grant = AccessGrant(
            user_id=user_id,
            course_id=course_id,
            grant_type=grant_type,
            granted_by=granted_by,
            payment_id=payment_id,
            notes=notes,
        )
        await self.session.aexecute(
            self._insert_grant,
            [
                grant.user_id,
                grant.course_id,
                grant.grant_id,
                grant.grant_type.value,
                grant.status.value,
                grant.granted_by,
                grant.payment_id,
                grant.notes,
                grant.created_at,
                grant.updated_at,
            ],
        )
        await self._invalidate_cache(user_id, course_id)

        logger.info(
            "access_granted",
            target_user_id=str(user_id),
            course_id=str(course_id),
            grant_type=grant_type.value,
            granted_by=str(granted_by) if granted_by else None,
        )
        return grant

    async def revoke(
        self,
        user_id: UUID,
        course_id: UUID,
        reason: str | None = None,
    ) -> int:
        """Revoke every active grant the user holds for the course.

        Existing enrollments are left alone; revocation only affects future
        entitlement checks.

        Returns:
            Number of grants revoked.
        """
        now = datetime.now(UTC)
        revoked = 0
        for grant in await self._active_grants(user_id, course_id):
            await self.session.aexecute(
                self._update_status,
                [
                    GrantStatus.REVOKED.value,
                    reason or grant.notes,
                    now,
                    user_id,
                    course_id,
                    grant.grant_id,
                ],
            )
            revoked += 1

        if revoked:
            await self._invalidate_cache(user_id, course_id)
            logger.info(
                "access_revoked",
                target_user_id=str(user_id),
                course_id=str(course_id),
                revoked=revoked,
            )
        return revoked

    async def _invalidate_cache(self, user_id: UUID, course_id: UUID) -> None:
        if not self.redis:
            return
        with contextlib.suppress(Exception):
            await self.redis.delete(access_cache_key(str(user_id), str(course_id)))
