# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Course and session service layer.

Business logic for:
- Course creation by trainers
- Approval status bookkeeping (driven by the approval workflow)
- Session scheduling on approved courses, with ledger initialization
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from src.auth.permissions import UserRole, can_manage_course
from src.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from src.core.logging import get_logger

from .models import ApprovalStatus, Course, Session


if TYPE_CHECKING:
    from cassandra.cluster import Session as CassandraSession

    from src.enrollments.capacity import CapacityLedger


logger = get_logger(__name__)


class CourseService:
    """Service for courses and sessions."""

    def __init__(
        self,
        session: "CassandraSession",
        keyspace: str,
        ledger: "CapacityLedger",
    ):
        self.session = session
        self.keyspace = keyspace
        self.ledger = ledger
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (course_id, trainer_id, title, description, price, max_students,
             approval_status, review_request_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses
            WHERE course_id = ?
        """)

        self._list_courses = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses
        """)

        # Review claim: only one open review request per course
        self._claim_review = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET approval_status = ?, review_request_id = ?, updated_at = ?
            WHERE course_id = ?
            IF approval_status = ? AND review_request_id = ?
        """)

        self._close_review = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET approval_status = ?, review_request_id = ?, updated_at = ?
            WHERE course_id = ?
            IF review_request_id = ?
        """)

        self._insert_session = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.sessions
            (session_id, course_id, scheduled_at, capacity, meeting_url,
             created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_session_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.sessions_by_course
            (course_id, session_id, scheduled_at)
            VALUES (?, ?, ?)
        """)

        self._get_session = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.sessions
            WHERE session_id = ?
        """)

        self._list_course_sessions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.sessions_by_course
            WHERE course_id = ?
        """)

    # ==========================================================================
    # Courses
    # ==========================================================================

    async def create_course(
        self,
        trainer_id: UUID,
        title: str,
        price: int,
        max_students: int,
        description: str | None = None,
    ) -> Course:
        """Create a course. It stays pending until an admin approves it."""
        if price < 0:
            raise ValidationError("Price cannot be negative")
        if max_students < 1:
            raise ValidationError("A course needs room for at least one student")

        course = Course(
            trainer_id=trainer_id,
            title=title,
            description=description,
            price=price,
            max_students=max_students,
        )
        await self.session.aexecute(
            self._insert_course,
            [
                course.course_id,
                course.trainer_id,
                course.title,
                course.description,
                course.price,
                course.max_students,
                course.approval_status.value,
                None,
                course.created_at,
                course.updated_at,
            ],
        )
        logger.info(
            "course_created",
            course_id=str(course.course_id),
            trainer_id=str(trainer_id),
            price=price,
        )
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        course = await self.get_course(course_id)
        if course is None:
            raise NotFoundError("Course not found", course_id=str(course_id))
        return course

    async def list_courses(self, status: ApprovalStatus | None = None) -> list[Course]:
        rows = await self.session.aexecute(self._list_courses)
        courses = [Course.from_row(row) for row in rows]
        if status is not None:
            courses = [c for c in courses if c.approval_status == status]
        return courses

    async def open_review(self, course: Course, request_id: UUID) -> bool:
        """Mark the course as under review by ``request_id``.

        Conditioned on the status read by the caller, so two concurrent
        submissions cannot both open a review.
        """
        result = await self.session.aexecute(
            self._claim_review,
            [
                ApprovalStatus.PENDING.value,
                request_id,
                datetime.now(UTC),
                course.course_id,
                course.approval_status.value,
                course.review_request_id,
            ],
        )
        return result.was_applied

    async def close_review(
        self,
        course_id: UUID,
        request_id: UUID,
        status: ApprovalStatus,
    ) -> bool:
        """Record the outcome of the review opened by ``request_id``."""
        result = await self.session.aexecute(
            self._close_review,
            [status.value, None, datetime.now(UTC), course_id, request_id],
        )
        if result.was_applied:
            logger.info(
                "course_review_closed",
                course_id=str(course_id),
                request_id=str(request_id),
                approval_status=status.value,
            )
        return result.was_applied

    # ==========================================================================
    # Sessions
    # ==========================================================================

    async def create_session(
        self,
        course_id: UUID,
        actor_id: UUID,
        actor_role: UserRole | str,
        scheduled_at: datetime,
        meeting_url: str | None = None,
    ) -> Session:
        """Schedule a session on an approved course.

        Raises:
            NotFoundError: Unknown course
            ForbiddenError: Actor is neither the course trainer nor an admin
            ValidationError: Course is not approved
        """
        course = await self.require_course(course_id)
        if not can_manage_course(actor_id, actor_role, course.trainer_id):
            raise ForbiddenError("Only the course trainer can schedule sessions")
        if not course.is_approved:
            raise ValidationError(
                "Sessions can only be scheduled on approved courses",
                approval_status=course.approval_status.value,
            )

        session = Session(
            course_id=course_id,
            scheduled_at=scheduled_at,
            capacity=course.max_students,
            meeting_url=meeting_url,
            created_by=actor_id,
        )
        await self.ledger.initialize(session.session_id, session.capacity)
        await self.session.aexecute(
            self._insert_session,
            [
                session.session_id,
                session.course_id,
                session.scheduled_at,
                session.capacity,
                session.meeting_url,
                session.created_by,
                session.created_at,
            ],
        )
        await self.session.aexecute(
            self._insert_session_by_course,
            [session.course_id, session.session_id, session.scheduled_at],
        )
        logger.info(
            "session_created",
            session_id=str(session.session_id),
            course_id=str(course_id),
            capacity=session.capacity,
        )
        return session

    async def get_session(self, session_id: UUID) -> Session | None:
        result = await self.session.aexecute(self._get_session, [session_id])
        row = result.one()
        return Session.from_row(row) if row else None

    async def require_session(self, session_id: UUID) -> Session:
        session = await self.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found", session_id=str(session_id))
        return session

    async def list_session_ids(self, course_id: UUID) -> list[UUID]:
        rows = await self.session.aexecute(self._list_course_sessions, [course_id])
        return [row.session_id for row in rows]

    async def list_sessions(self, course_id: UUID) -> list[Session]:
        sessions = []
        for session_id in await self.list_session_ids(course_id):
            session = await self.get_session(session_id)
            if session is not None:
                sessions.append(session)
        return sorted(sessions, key=lambda s: s.scheduled_at)
