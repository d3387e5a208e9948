# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Enterprise service layer."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from src.core.exceptions import NotFoundError
from src.core.logging import get_logger

from .models import Enterprise, EnterpriseCourseAccess


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class EnterpriseService:
    """Service for enterprises and enterprise course assignments."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_enterprise = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enterprises
            (enterprise_id, name, subscription_active, covers_all_courses,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._get_enterprise = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enterprises
            WHERE enterprise_id = ?
        """)

        self._update_subscription = self.session.prepare(f"""
            UPDATE {self.keyspace}.enterprises
            SET subscription_active = ?, covers_all_courses = ?, updated_at = ?
            WHERE enterprise_id = ?
        """)

        self._upsert_course_access = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enterprise_course_access
            (enterprise_id, course_id, is_active, assigned_by, assigned_at)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._get_course_access = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enterprise_course_access
            WHERE enterprise_id = ? AND course_id = ?
        """)

        self._list_course_access = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enterprise_course_access
            WHERE enterprise_id = ?
        """)

    async def create_enterprise(
        self,
        name: str,
        subscription_active: bool = False,
        covers_all_courses: bool = False,
    ) -> Enterprise:
        enterprise = Enterprise(
            name=name,
            subscription_active=subscription_active,
            covers_all_courses=covers_all_courses,
        )
        await self.session.aexecute(
            self._insert_enterprise,
            [
                enterprise.enterprise_id,
                enterprise.name,
                enterprise.subscription_active,
                enterprise.covers_all_courses,
                enterprise.created_at,
                enterprise.updated_at,
            ],
        )
        logger.info("enterprise_created", enterprise_id=str(enterprise.enterprise_id))
        return enterprise

    async def get_enterprise(self, enterprise_id: UUID) -> Enterprise | None:
        result = await self.session.aexecute(self._get_enterprise, [enterprise_id])
        row = result.one()
        return Enterprise.from_row(row) if row else None

    async def require_enterprise(self, enterprise_id: UUID) -> Enterprise:
        enterprise = await self.get_enterprise(enterprise_id)
        if enterprise is None:
            raise NotFoundError(
                "Enterprise not found", enterprise_id=str(enterprise_id)
            )
        return enterprise

    async def set_subscription(
        self,
        enterprise_id: UUID,
        active: bool,
        covers_all_courses: bool,
    ) -> Enterprise:
        enterprise = await self.require_enterprise(enterprise_id)
        now = datetime.now(UTC)
        await self.session.aexecute(
            self._update_subscription,
            [active, covers_all_courses, now, enterprise_id],
        )
        enterprise.subscription_active = active
        enterprise.covers_all_courses = covers_all_courses
        enterprise.updated_at = now
        logger.info(
            "enterprise_subscription_updated",
            enterprise_id=str(enterprise_id),
            active=active,
            covers_all_courses=covers_all_courses,
        )
        return enterprise

    # ==========================================================================
    # Course assignments
    # ==========================================================================

    async def assign_course(
        self,
        enterprise_id: UUID,
        course_id: UUID,
        assigned_by: UUID,
    ) -> EnterpriseCourseAccess:
        await self.require_enterprise(enterprise_id)
        access = EnterpriseCourseAccess(
            enterprise_id=enterprise_id,
            course_id=course_id,
            assigned_by=assigned_by,
        )
        await self.session.aexecute(
            self._upsert_course_access,
            [
                access.enterprise_id,
                access.course_id,
                True,
                access.assigned_by,
                access.assigned_at,
            ],
        )
        logger.info(
            "enterprise_course_assigned",
            enterprise_id=str(enterprise_id),
            course_id=str(course_id),
        )
        return access

    async def unassign_course(
        self,
        enterprise_id: UUID,
        course_id: UUID,
        assigned_by: UUID,
    ) -> None:
        """Deactivate an assignment. Existing enrollments are not touched."""
        await self.session.aexecute(
            self._upsert_course_access,
            [enterprise_id, course_id, False, assigned_by, datetime.now(UTC)],
        )
        logger.info(
            "enterprise_course_unassigned",
            enterprise_id=str(enterprise_id),
            course_id=str(course_id),
        )

    async def has_course_access(self, enterprise_id: UUID, course_id: UUID) -> bool:
        result = await self.session.aexecute(
            self._get_course_access, [enterprise_id, course_id]
        )
        row = result.one()
        return bool(row and row.is_active)

    async def list_courses(self, enterprise_id: UUID) -> list[EnterpriseCourseAccess]:
        rows = await self.session.aexecute(self._list_course_access, [enterprise_id])
        return [
            access
            for access in (EnterpriseCourseAccess.from_row(row) for row in rows)
            if access.is_active
        ]
