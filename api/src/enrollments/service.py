# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Enrollment state machine.

    Requested -> Confirmed -> Cancelled

``enroll`` claims the (session, user) row in Requested, reserves a seat in
the ledger and then confirms. ``Requested`` only brackets the entitlement and
capacity checks; callers never observe it on success. A claim left in
Requested longer than ``claim_timeout`` belongs to an attempt that died
mid-flight and is expired by the next enroll. A cancelled seat is never
confirmed again: enrolling again goes through every check with a new
enrollment id.
"""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

from src.auth.permissions import UserRole, can_act_for
from src.config import get_settings
from src.core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    EntitlementDeniedError,
    ForbiddenError,
    NotConfirmedError,
    NotFoundError,
)
from src.core.logging import get_logger
from src.events.models import EnrollmentCancelled, EnrollmentConfirmed

from .capacity import ReservationResult
from .models import Enrollment, EnrollmentState


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.courses.service import CourseService
    from src.entitlements.resolver import EntitlementResolver
    from src.events.bus import EventBus
    from src.users.models import User

    from .capacity import CapacityLedger


logger = get_logger(__name__)


class EnrollmentService:
    """Service driving enrollment transitions."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        ledger: "CapacityLedger",
        courses: "CourseService",
        resolver: "EntitlementResolver",
        bus: "EventBus",
        claim_timeout: int | None = None,
    ):
        self.session = session
        self.keyspace = keyspace
        self.ledger = ledger
        self.courses = courses
        self.resolver = resolver
        self.bus = bus
        self.claim_timeout = timedelta(
            seconds=claim_timeout or get_settings().enrollment_claim_timeout_seconds
        )
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._get_seat = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.session_enrollments
            WHERE session_id = ? AND user_id = ?
        """)

        self._list_session_seats = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.session_enrollments
            WHERE session_id = ?
        """)

        self._claim_new_seat = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.session_enrollments
            (session_id, user_id, enrollment_id, course_id, state,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        # Re-claim a seat whose previous enrollment was cancelled
        self._claim_cancelled_seat = self.session.prepare(f"""
            UPDATE {self.keyspace}.session_enrollments
            SET enrollment_id = ?, course_id = ?, state = ?,
                created_at = ?, updated_at = ?
            WHERE session_id = ? AND user_id = ?
            IF state = ? AND enrollment_id = ?
        """)

        self._transition_seat = self.session.prepare(f"""
            UPDATE {self.keyspace}.session_enrollments
            SET state = ?, updated_at = ?
            WHERE session_id = ? AND user_id = ?
            IF state = ? AND enrollment_id = ?
        """)

        self._upsert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_id
            (enrollment_id, session_id, user_id, course_id, state,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._upsert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrollment_id, session_id, course_id, state,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_id
            WHERE enrollment_id = ?
        """)

        self._list_by_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Transitions
    # ==========================================================================

    async def enroll(self, user: "User", session_id: UUID) -> Enrollment:
        """Enroll a user in a session.

        Raises:
            NotFoundError: Unknown session or course
            EntitlementDeniedError: The resolver denied access
            AlreadyEnrolledError: An active enrollment exists for the seat
            CapacityExceededError: The session is full
        """
        session = await self.courses.require_session(session_id)
        course = await self.courses.require_course(session.course_id)

        decision = await self.resolver.resolve(user, course)
        if not decision.allowed:
            logger.info(
                "enrollment_denied",
                target_user_id=str(user.user_id),
                session_id=str(session_id),
                reason=decision.reason,
            )
            raise EntitlementDeniedError(decision.reason)

        existing = await self._get_seat_enrollment(session_id, user.user_id)
        if existing is not None and self._is_stale_claim(existing):
            await self._expire_claim(existing)
        if existing is not None and existing.is_active:
            raise AlreadyEnrolledError(enrollment_id=str(existing.enrollment_id))

        enrollment = Enrollment(
            session_id=session_id,
            user_id=user.user_id,
            course_id=course.course_id,
        )
        if not await self._claim_seat(enrollment, existing):
            raise AlreadyEnrolledError()

        try:
            reservation = await self.ledger.try_reserve(session_id)
        except Exception:
            await self._abandon(enrollment)
            raise

        if reservation is ReservationResult.CAPACITY_EXCEEDED:
            await self._abandon(enrollment)
            raise CapacityExceededError(session_id=str(session_id))

        try:
            confirmed = await self._transition(
                enrollment, EnrollmentState.REQUESTED, EnrollmentState.CONFIRMED
            )
            if not confirmed:
                raise AlreadyEnrolledError()
            await self._write_lookups(enrollment)
        except Exception:
            await self._release_quietly(session_id)
            await self._abandon(enrollment)
            raise

        logger.info(
            "enrollment_confirmed",
            enrollment_id=str(enrollment.enrollment_id),
            target_user_id=str(user.user_id),
            session_id=str(session_id),
            rule=decision.rule.value if decision.rule else None,
        )
        await self.bus.publish(
            EnrollmentConfirmed(
                enrollment_id=enrollment.enrollment_id,
                user_id=enrollment.user_id,
                session_id=enrollment.session_id,
                course_id=enrollment.course_id,
            )
        )
        return enrollment

    async def cancel(
        self,
        enrollment_id: UUID,
        actor_id: UUID,
        actor_role: UserRole | str,
    ) -> Enrollment:
        """Cancel a confirmed enrollment and free its seat.

        Raises:
            NotFoundError: Unknown enrollment
            ForbiddenError: Actor is neither the enrollee nor an admin
            NotConfirmedError: Enrollment is not Confirmed
        """
        enrollment = await self.require_enrollment(enrollment_id)
        if not can_act_for(actor_id, actor_role, enrollment.user_id):
            raise ForbiddenError("Only the enrollee or an admin can cancel")

        cancelled = await self._transition(
            enrollment, EnrollmentState.CONFIRMED, EnrollmentState.CANCELLED
        )
        if not cancelled:
            raise NotConfirmedError(
                enrollment_id=str(enrollment_id),
            )

        try:
            await self.ledger.release(enrollment.session_id)
        except Exception:
            await self._restore_confirmed(enrollment)
            raise
        await self._write_lookups(enrollment)

        logger.info(
            "enrollment_cancelled",
            enrollment_id=str(enrollment_id),
            target_user_id=str(enrollment.user_id),
            session_id=str(enrollment.session_id),
            cancelled_by=str(actor_id),
        )
        await self.bus.publish(
            EnrollmentCancelled(
                enrollment_id=enrollment.enrollment_id,
                user_id=enrollment.user_id,
                session_id=enrollment.session_id,
                course_id=enrollment.course_id,
                cancelled_by=actor_id,
            )
        )
        return enrollment

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_enrollment(self, enrollment_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_by_id, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def require_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self.get_enrollment(enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment not found", enrollment_id=str(enrollment_id))
        return enrollment

    async def list_user_enrollments(
        self, user_id: UUID, state: EnrollmentState | None = None
    ) -> list[Enrollment]:
        rows = await self.session.aexecute(self._list_by_user, [user_id])
        enrollments = [Enrollment.from_row(row) for row in rows]
        if state is not None:
            enrollments = [e for e in enrollments if e.state == state]
        return sorted(enrollments, key=lambda e: e.created_at, reverse=True)

    async def list_session_enrollments(
        self, session_id: UUID, state: EnrollmentState | None = None
    ) -> list[Enrollment]:
        rows = await self.session.aexecute(self._list_session_seats, [session_id])
        enrollments = [Enrollment.from_row(row) for row in rows]
        if state is not None:
            enrollments = [e for e in enrollments if e.state == state]
        return enrollments

    async def list_confirmed_user_ids(self, session_id: UUID) -> list[UUID]:
        enrollments = await self.list_session_enrollments(
            session_id, EnrollmentState.CONFIRMED
        )
        return [e.user_id for e in enrollments]

    # ==========================================================================
    # Internals
    # ==========================================================================

    async def _get_seat_enrollment(
        self, session_id: UUID, user_id: UUID
    ) -> Enrollment | None:
        result = await self.session.aexecute(self._get_seat, [session_id, user_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def _claim_seat(
        self, enrollment: Enrollment, existing: Enrollment | None
    ) -> bool:
        """Write the Requested row, conditioned on what was read."""
        if existing is None:
            result = await self.session.aexecute(
                self._claim_new_seat,
                [
                    enrollment.session_id,
                    enrollment.user_id,
                    enrollment.enrollment_id,
                    enrollment.course_id,
                    enrollment.state.value,
                    enrollment.created_at,
                    enrollment.updated_at,
                ],
            )
        else:
            result = await self.session.aexecute(
                self._claim_cancelled_seat,
                [
                    enrollment.enrollment_id,
                    enrollment.course_id,
                    enrollment.state.value,
                    enrollment.created_at,
                    enrollment.updated_at,
                    enrollment.session_id,
                    enrollment.user_id,
                    EnrollmentState.CANCELLED.value,
                    existing.enrollment_id,
                ],
            )
        return result.was_applied

    async def _transition(
        self,
        enrollment: Enrollment,
        expected: EnrollmentState,
        target: EnrollmentState,
    ) -> bool:
        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._transition_seat,
            [
                target.value,
                now,
                enrollment.session_id,
                enrollment.user_id,
                expected.value,
                enrollment.enrollment_id,
            ],
        )
        if result.was_applied:
            enrollment.state = target
            enrollment.updated_at = now
        return result.was_applied

    async def _abandon(self, enrollment: Enrollment) -> None:
        """Move an unfinished claim to Cancelled so the seat can be claimed again."""
        try:
            await self._transition(enrollment, enrollment.state, EnrollmentState.CANCELLED)
        except Exception:
            logger.exception(
                "enrollment_abandon_failed",
                enrollment_id=str(enrollment.enrollment_id),
                session_id=str(enrollment.session_id),
            )

    async def _restore_confirmed(self, enrollment: Enrollment) -> None:
        """Undo a cancellation whose seat could not be given back."""
        try:
            restored = await self._transition(
                enrollment, EnrollmentState.CANCELLED, EnrollmentState.CONFIRMED
            )
        except Exception:
            logger.exception(
                "enrollment_restore_failed",
                enrollment_id=str(enrollment.enrollment_id),
                session_id=str(enrollment.session_id),
            )
            return
        logger.warning(
            "enrollment_cancel_rolled_back",
            enrollment_id=str(enrollment.enrollment_id),
            session_id=str(enrollment.session_id),
            restored=restored,
        )

    def _is_stale_claim(self, enrollment: Enrollment) -> bool:
        if enrollment.state != EnrollmentState.REQUESTED:
            return False
        return datetime.now(UTC) - enrollment.created_at > self.claim_timeout

    async def _expire_claim(self, enrollment: Enrollment) -> None:
        """Cancel a Requested claim whose attempt never finished.

        A lost swap leaves ``enrollment.state`` at Requested, so the caller
        still sees an active seat and reports it as taken.
        """
        expired = await self._transition(
            enrollment, EnrollmentState.REQUESTED, EnrollmentState.CANCELLED
        )
        if expired:
            logger.warning(
                "enrollment_claim_expired",
                enrollment_id=str(enrollment.enrollment_id),
                session_id=str(enrollment.session_id),
                created_at=enrollment.created_at.isoformat(),
            )

    async def _release_quietly(self, session_id: UUID) -> None:
        try:
            await self.ledger.release(session_id)
        except Exception:
            logger.exception("capacity_release_failed", session_id=str(session_id))

    async def _write_lookups(self, enrollment: Enrollment) -> None:
        await self.session.aexecute(
            self._upsert_by_id,
            [
                enrollment.enrollment_id,
                enrollment.session_id,
                enrollment.user_id,
                enrollment.course_id,
                enrollment.state.value,
                enrollment.created_at,
                enrollment.updated_at,
            ],
        )
        await self.session.aexecute(
            self._upsert_by_user,
            [
                enrollment.user_id,
                enrollment.enrollment_id,
                enrollment.session_id,
                enrollment.course_id,
                enrollment.state.value,
                enrollment.created_at,
                enrollment.updated_at,
            ],
        )
