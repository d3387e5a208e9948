"""Tests for the enrollment state machine against the in-memory store."""

import asyncio
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from src.auth.permissions import UserRole
from src.core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    DenialReason,
    EntitlementDeniedError,
    ForbiddenError,
    NotConfirmedError,
    NotFoundError,
)
from src.enrollments.models import Enrollment, EnrollmentState
from src.events.models import EnrollmentCancelled, EnrollmentConfirmed


class TestEnroll:
    @pytest.mark.asyncio
    async def test_enroll_free_course(self, engine, seed) -> None:
        course = await seed.course(max_students=3)
        session = await seed.session(course)
        user = await seed.user()

        enrollment = await engine.enrollment_service.enroll(user, session.session_id)

        assert enrollment.state == EnrollmentState.CONFIRMED
        assert enrollment.course_id == course.course_id
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 1

    @pytest.mark.asyncio
    async def test_enrollment_is_readable_everywhere(self, engine, seed) -> None:
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        enrollment = await engine.enrollment_service.enroll(user, session.session_id)

        service = engine.enrollment_service
        stored = await service.require_enrollment(enrollment.enrollment_id)
        assert stored.state == EnrollmentState.CONFIRMED
        assert [e.enrollment_id for e in await service.list_user_enrollments(user.user_id)] == [
            enrollment.enrollment_id
        ]
        assert await service.list_confirmed_user_ids(session.session_id) == [user.user_id]

    @pytest.mark.asyncio
    async def test_denied_without_entitlement(self, engine, seed) -> None:
        course = await seed.course(price=4900)
        session = await seed.session(course)
        user = await seed.user()

        with pytest.raises(EntitlementDeniedError) as exc_info:
            await engine.enrollment_service.enroll(user, session.session_id)

        assert exc_info.value.reason == DenialReason.SUBSCRIPTION_REQUIRED
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 0

    @pytest.mark.asyncio
    async def test_deactivated_user_cannot_enroll(self, engine, seed) -> None:
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        user = await engine.user_service.deactivate(user.user_id)

        with pytest.raises(EntitlementDeniedError) as exc_info:
            await engine.enrollment_service.enroll(user, session.session_id)

        assert exc_info.value.reason == DenialReason.ACCOUNT_INACTIVE
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 0

    @pytest.mark.asyncio
    async def test_unknown_session(self, engine, seed) -> None:
        user = await seed.user()
        with pytest.raises(NotFoundError):
            await engine.enrollment_service.enroll(user, uuid4())

    @pytest.mark.asyncio
    async def test_double_enroll_rejected(self, engine, seed) -> None:
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        await engine.enrollment_service.enroll(user, session.session_id)

        with pytest.raises(AlreadyEnrolledError):
            await engine.enrollment_service.enroll(user, session.session_id)

        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 1

    @pytest.mark.asyncio
    async def test_concurrent_double_enroll_takes_one_seat(self, engine, seed) -> None:
        course = await seed.course(max_students=5)
        session = await seed.session(course)
        user = await seed.user()

        results = await asyncio.gather(
            engine.enrollment_service.enroll(user, session.session_id),
            engine.enrollment_service.enroll(user, session.session_id),
            return_exceptions=True,
        )

        confirmed = [r for r in results if not isinstance(r, Exception)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(confirmed) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], AlreadyEnrolledError)
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 1

    @pytest.mark.asyncio
    async def test_last_seat_goes_to_one_user(self, engine, seed) -> None:
        course = await seed.course(max_students=1)
        session = await seed.session(course)
        first, second = await seed.user(), await seed.user()

        results = await asyncio.gather(
            engine.enrollment_service.enroll(first, session.session_id),
            engine.enrollment_service.enroll(second, session.session_id),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, CapacityExceededError)) == 1
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1

    @pytest.mark.asyncio
    async def test_capacity_never_exceeded_under_load(self, engine, seed) -> None:
        course = await seed.course(max_students=4)
        session = await seed.session(course)
        users = [await seed.user() for _ in range(12)]

        results = await asyncio.gather(
            *(engine.enrollment_service.enroll(u, session.session_id) for u in users),
            return_exceptions=True,
        )

        confirmed = [r for r in results if not isinstance(r, Exception)]
        assert len(confirmed) == 4
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 8
        assert all(isinstance(r, CapacityExceededError) for r in errors)
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 4
        roster = await engine.enrollment_service.list_confirmed_user_ids(session.session_id)
        assert len(roster) == 4

    @pytest.mark.asyncio
    async def test_many_students_fill_spare_seats(self, engine, seed) -> None:
        """Thirty racing enrollments on forty seats all confirm."""
        course = await seed.course(max_students=40)
        session = await seed.session(course)
        users = [await seed.user() for _ in range(30)]

        results = await asyncio.gather(
            *(engine.enrollment_service.enroll(u, session.session_id) for u in users),
            return_exceptions=True,
        )

        assert [r for r in results if isinstance(r, Exception)] == []
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 30

    @pytest.mark.asyncio
    async def test_abandoned_claim_expires(self, engine, seed) -> None:
        """A Requested row older than the claim timeout no longer blocks the seat."""
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        created = datetime.now(UTC) - timedelta(hours=1)
        stuck = Enrollment(
            session_id=session.session_id,
            user_id=user.user_id,
            course_id=course.course_id,
            created_at=created,
            updated_at=created,
        )
        assert await engine.enrollment_service._claim_seat(stuck, None)

        enrollment = await engine.enrollment_service.enroll(user, session.session_id)

        assert enrollment.enrollment_id != stuck.enrollment_id
        assert enrollment.state == EnrollmentState.CONFIRMED
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 1

    @pytest.mark.asyncio
    async def test_fresh_claim_still_blocks(self, engine, seed) -> None:
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        in_flight = Enrollment(
            session_id=session.session_id,
            user_id=user.user_id,
            course_id=course.course_id,
        )
        assert await engine.enrollment_service._claim_seat(in_flight, None)

        with pytest.raises(AlreadyEnrolledError):
            await engine.enrollment_service.enroll(user, session.session_id)

    @pytest.mark.asyncio
    async def test_full_session_leaves_seat_claimable(self, engine, seed) -> None:
        """A user turned away for capacity can enroll once a seat frees up."""
        course = await seed.course(max_students=1)
        session = await seed.session(course)
        holder, waiting = await seed.user(), await seed.user()
        held = await engine.enrollment_service.enroll(holder, session.session_id)

        with pytest.raises(CapacityExceededError):
            await engine.enrollment_service.enroll(waiting, session.session_id)

        await engine.enrollment_service.cancel(
            held.enrollment_id, holder.user_id, holder.role
        )
        enrollment = await engine.enrollment_service.enroll(waiting, session.session_id)
        assert enrollment.state == EnrollmentState.CONFIRMED

    @pytest.mark.asyncio
    async def test_storage_failure_after_reserve_returns_seat(
        self, engine, seed, cassandra
    ) -> None:
        course = await seed.course(max_students=2)
        session = await seed.session(course)
        user = await seed.user()
        cassandra.fail_on("INSERT INTO coursemarket.enrollments_by_id")

        with pytest.raises(RuntimeError):
            await engine.enrollment_service.enroll(user, session.session_id)

        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 0
        retried = await engine.enrollment_service.enroll(user, session.session_id)
        assert retried.state == EnrollmentState.CONFIRMED

    @pytest.mark.asyncio
    async def test_confirmation_published(self, engine, seed) -> None:
        received = []

        async def handler(event):
            received.append(event)

        engine.event_bus.subscribe(EnrollmentConfirmed, handler)
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()

        enrollment = await engine.enrollment_service.enroll(user, session.session_id)

        assert len(received) == 1
        assert received[0].enrollment_id == enrollment.enrollment_id
        assert received[0].user_id == user.user_id


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_releases_seat(self, engine, seed) -> None:
        course = await seed.course(max_students=1)
        session = await seed.session(course)
        user = await seed.user()
        enrollment = await engine.enrollment_service.enroll(user, session.session_id)

        cancelled = await engine.enrollment_service.cancel(
            enrollment.enrollment_id, user.user_id, user.role
        )

        assert cancelled.state == EnrollmentState.CANCELLED
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 0
        stored = await engine.enrollment_service.require_enrollment(enrollment.enrollment_id)
        assert stored.state == EnrollmentState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_twice(self, engine, seed) -> None:
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        enrollment = await engine.enrollment_service.enroll(user, session.session_id)
        await engine.enrollment_service.cancel(
            enrollment.enrollment_id, user.user_id, user.role
        )

        with pytest.raises(NotConfirmedError):
            await engine.enrollment_service.cancel(
                enrollment.enrollment_id, user.user_id, user.role
            )

        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 0

    @pytest.mark.asyncio
    async def test_other_student_cannot_cancel(self, engine, seed) -> None:
        course = await seed.course()
        session = await seed.session(course)
        owner, other = await seed.user(), await seed.user()
        enrollment = await engine.enrollment_service.enroll(owner, session.session_id)

        with pytest.raises(ForbiddenError):
            await engine.enrollment_service.cancel(
                enrollment.enrollment_id, other.user_id, other.role
            )

    @pytest.mark.asyncio
    async def test_admin_can_cancel(self, engine, seed) -> None:
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        enrollment = await engine.enrollment_service.enroll(user, session.session_id)

        cancelled = await engine.enrollment_service.cancel(
            enrollment.enrollment_id, uuid4(), UserRole.ADMIN
        )
        assert cancelled.state == EnrollmentState.CANCELLED

    @pytest.mark.asyncio
    async def test_failed_release_keeps_enrollment_confirmed(
        self, engine, seed, cassandra
    ) -> None:
        """A cancel whose seat cannot be returned leaves the seat held."""
        course = await seed.course(max_students=1)
        session = await seed.session(course)
        user, other = await seed.user(), await seed.user()
        enrollment = await engine.enrollment_service.enroll(user, session.session_id)
        cassandra.fail_on("UPDATE coursemarket.session_capacity")

        with pytest.raises(RuntimeError):
            await engine.enrollment_service.cancel(
                enrollment.enrollment_id, user.user_id, user.role
            )

        seat = await engine.enrollment_service._get_seat_enrollment(
            session.session_id, user.user_id
        )
        assert seat.state == EnrollmentState.CONFIRMED
        occupancy = await engine.capacity_ledger.occupancy(session.session_id)
        assert occupancy.occupied == 1
        with pytest.raises(CapacityExceededError):
            await engine.enrollment_service.enroll(other, session.session_id)

        cancelled = await engine.enrollment_service.cancel(
            enrollment.enrollment_id, user.user_id, user.role
        )
        assert cancelled.state == EnrollmentState.CANCELLED
        taken = await engine.enrollment_service.enroll(other, session.session_id)
        assert taken.state == EnrollmentState.CONFIRMED

    @pytest.mark.asyncio
    async def test_reenroll_after_cancel(self, engine, seed) -> None:
        """Cancelling frees the (session, user) slot for a new enrollment."""
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        first = await engine.enrollment_service.enroll(user, session.session_id)
        await engine.enrollment_service.cancel(first.enrollment_id, user.user_id, user.role)

        second = await engine.enrollment_service.enroll(user, session.session_id)

        assert second.enrollment_id != first.enrollment_id
        assert second.state == EnrollmentState.CONFIRMED
        history = await engine.enrollment_service.list_user_enrollments(user.user_id)
        assert {e.state for e in history} == {
            EnrollmentState.CONFIRMED,
            EnrollmentState.CANCELLED,
        }
        confirmed = await engine.enrollment_service.list_user_enrollments(
            user.user_id, EnrollmentState.CONFIRMED
        )
        assert [e.enrollment_id for e in confirmed] == [second.enrollment_id]

    @pytest.mark.asyncio
    async def test_cancellation_published(self, engine, seed) -> None:
        received = []

        async def handler(event):
            received.append(event)

        engine.event_bus.subscribe(EnrollmentCancelled, handler)
        course = await seed.course()
        session = await seed.session(course)
        user = await seed.user()
        enrollment = await engine.enrollment_service.enroll(user, session.session_id)
        admin_id = uuid4()

        await engine.enrollment_service.cancel(
            enrollment.enrollment_id, admin_id, UserRole.ADMIN
        )

        assert len(received) == 1
        assert received[0].cancelled_by == admin_id
