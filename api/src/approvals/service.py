# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Approval workflow for course publication and payments.

Every status change is a compare-and-swap on the request's prior status, so
two admins deciding the same request concurrently cannot both succeed. Side
effects on the subject (course status, payment settlement) run after the
swap; if they fail, the request is swapped back before the error propagates.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from src.auth.permissions import UserRole, can_manage_course, is_admin
from src.config import get_settings
from src.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    NotPendingError,
    ValidationError,
)
from src.core.logging import get_logger
from src.courses.models import ApprovalStatus
from src.events.models import ApprovalDecided, ApprovalReopened, ApprovalSubmitted
from src.grants.models import GrantType
from src.payments.models import Payment, PaymentStatus

from .models import ApprovalRequest, Decision, RequestStatus, SubjectType


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.courses.service import CourseService
    from src.events.bus import EventBus
    from src.grants.service import AccessGrantService
    from src.payments.service import PaymentService
    from src.users.service import UserService


logger = get_logger(__name__)


def split_amount(amount: int, fee_rate: Decimal) -> tuple[int, int]:
    """Split a payment into (platform_fee, trainer_share), in cents.

    The fee is rounded half-up to the cent; the trainer gets the remainder.
    """
    fee = int((Decimal(amount) * fee_rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return fee, amount - fee


class ApprovalWorkflow:
    """Pending/Approved/Rejected lifecycle shared by courses and payments."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        courses: "CourseService",
        payments: "PaymentService",
        grants: "AccessGrantService",
        users: "UserService",
        bus: "EventBus",
        fee_rate: Decimal | None = None,
    ):
        self.session = session
        self.keyspace = keyspace
        self.courses = courses
        self.payments = payments
        self.grants = grants
        self.users = users
        self.bus = bus
        self.fee_rate = fee_rate if fee_rate is not None else get_settings().platform_fee_rate
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_request = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.approval_requests
            (request_id, subject_type, subject_id, requester_id, status,
             actor_id, notes, requested_at, decided_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_request = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.approval_requests
            WHERE request_id = ?
        """)

        self._list_requests = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.approval_requests
        """)

        self._list_by_status = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.approval_requests
            WHERE status = ?
        """)

        self._transition_request = self.session.prepare(f"""
            UPDATE {self.keyspace}.approval_requests
            SET status = ?, actor_id = ?, notes = ?, decided_at = ?, updated_at = ?
            WHERE request_id = ?
            IF status = ?
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_request(self, request_id: UUID) -> ApprovalRequest | None:
        result = await self.session.aexecute(self._get_request, [request_id])
        row = result.one()
        return ApprovalRequest.from_row(row) if row else None

    async def require_request(self, request_id: UUID) -> ApprovalRequest:
        request = await self.get_request(request_id)
        if request is None:
            raise NotFoundError("Approval request not found", request_id=str(request_id))
        return request

    async def list_requests(
        self,
        status: RequestStatus | None = None,
        subject_type: SubjectType | None = None,
    ) -> list[ApprovalRequest]:
        if status is not None:
            rows = await self.session.aexecute(self._list_by_status, [status.value])
        else:
            rows = await self.session.aexecute(self._list_requests)
        requests = [ApprovalRequest.from_row(row) for row in rows]
        if subject_type is not None:
            requests = [r for r in requests if r.subject_type == subject_type]
        return sorted(requests, key=lambda r: r.requested_at)

    # ==========================================================================
    # Opening requests
    # ==========================================================================

    async def submit_course(
        self,
        course_id: UUID,
        requester_id: UUID,
        requester_role: UserRole | str,
    ) -> ApprovalRequest:
        """Submit a course for publication review.

        Raises:
            NotFoundError: Unknown course
            ForbiddenError: Requester does not own the course
            ValidationError: Course is approved or already under review
        """
        course = await self.courses.require_course(course_id)
        if not can_manage_course(requester_id, requester_role, course.trainer_id):
            raise ForbiddenError("Only the course trainer can submit it for review")
        if course.is_approved:
            raise ValidationError("Course is already approved", course_id=str(course_id))
        if course.under_review:
            raise ValidationError(
                "Course already has a pending review",
                course_id=str(course_id),
                request_id=str(course.review_request_id),
            )

        request = ApprovalRequest(
            subject_type=SubjectType.COURSE_PUBLICATION,
            subject_id=course_id,
            requester_id=requester_id,
        )
        if not await self.courses.open_review(course, request.request_id):
            raise ValidationError("Course already has a pending review", course_id=str(course_id))

        try:
            await self._insert(request)
        except Exception:
            await self.courses.close_review(
                course_id, request.request_id, course.approval_status
            )
            raise

        await self._publish_submitted(request)
        return request

    async def open_payment(self, payment: Payment) -> ApprovalRequest:
        """Open the review request for a newly recorded payment."""
        request = ApprovalRequest(
            subject_type=SubjectType.PAYMENT,
            subject_id=payment.payment_id,
            requester_id=payment.user_id,
        )
        await self._insert(request)
        await self.payments.link_approval(payment, request.request_id)
        await self._publish_submitted(request)
        return request

    # ==========================================================================
    # Transitions
    # ==========================================================================

    async def decide(
        self,
        request_id: UUID,
        actor_id: UUID,
        actor_role: UserRole | str,
        decision: Decision,
        notes: str | None = None,
    ) -> ApprovalRequest:
        """Approve or reject a pending request.

        Raises:
            ForbiddenError: Actor is not an admin
            ValidationError: Rejection without notes
            NotFoundError: Unknown request
            NotPendingError: Request is not pending
        """
        if not is_admin(actor_role):
            raise ForbiddenError("Only admins can decide approval requests")
        notes = notes.strip() if notes else None
        if decision is Decision.REJECT and not notes:
            raise ValidationError("Rejection requires notes")

        request = await self.require_request(request_id)
        outcome = decision.outcome
        previous = (request.actor_id, request.notes)
        if not await self._swap(request, RequestStatus.PENDING, outcome, actor_id, notes):
            raise NotPendingError(request_id=str(request_id), status=request.status.value)

        try:
            if request.subject_type == SubjectType.COURSE_PUBLICATION:
                await self._apply_course_decision(request, outcome)
            else:
                await self._apply_payment_decision(request, outcome, actor_id)
        except Exception:
            logger.exception(
                "approval_side_effect_failed",
                request_id=str(request_id),
                subject_type=request.subject_type.value,
                outcome=outcome.value,
            )
            await self._swap(request, outcome, RequestStatus.PENDING, *previous)
            raise

        logger.info(
            "approval_decided",
            request_id=str(request_id),
            subject_type=request.subject_type.value,
            subject_id=str(request.subject_id),
            outcome=outcome.value,
            actor_id=str(actor_id),
        )
        await self._publish_decided(request, actor_id)
        return request

    async def reopen(
        self,
        request_id: UUID,
        actor_id: UUID,
        actor_role: UserRole | str,
    ) -> ApprovalRequest:
        """Move a rejected payment request back to pending."""
        if not is_admin(actor_role):
            raise ForbiddenError("Only admins can reopen approval requests")

        request = await self.require_request(request_id)
        if request.subject_type != SubjectType.PAYMENT:
            raise ValidationError(
                "Only payment requests can be reopened; resubmit the course instead"
            )
        previous = (request.actor_id, request.notes, request.decided_at)
        if not await self._swap(
            request, RequestStatus.REJECTED, RequestStatus.PENDING, actor_id, request.notes
        ):
            raise NotPendingError(
                "Only rejected requests can be reopened",
                request_id=str(request_id),
                status=request.status.value,
            )

        try:
            payment = await self.payments.require_payment(request.subject_id)
            await self.payments.set_status(payment, PaymentStatus.PENDING)
        except Exception:
            logger.exception("approval_reopen_failed", request_id=str(request_id))
            await self._swap(
                request, RequestStatus.PENDING, RequestStatus.REJECTED, *previous
            )
            raise

        logger.info(
            "approval_reopened",
            request_id=str(request_id),
            payment_id=str(payment.payment_id),
            actor_id=str(actor_id),
        )
        await self.bus.publish(
            ApprovalReopened(
                request_id=request.request_id,
                subject_type=request.subject_type.value,
                subject_id=request.subject_id,
                requester_id=request.requester_id,
                actor_id=actor_id,
            )
        )
        return request

    async def refund(
        self,
        payment_id: UUID,
        actor_id: UUID,
        actor_role: UserRole | str,
        notes: str | None = None,
    ) -> Payment:
        """Mark an approved payment as refunded.

        Financial bookkeeping only: grants, subscriptions and enrollments
        obtained through the payment are left in place.
        """
        if not is_admin(actor_role):
            raise ForbiddenError("Only admins can refund payments")

        payment = await self.payments.require_payment(payment_id)
        if payment.approval_request_id is None:
            raise NotPendingError(
                "Payment has no approval request", payment_id=str(payment_id)
            )
        request = await self.require_request(payment.approval_request_id)
        previous = (request.actor_id, request.notes, request.decided_at)
        if not await self._swap(
            request,
            RequestStatus.APPROVED,
            RequestStatus.REFUNDED,
            actor_id,
            notes or request.notes,
        ):
            raise NotPendingError(
                "Only approved payments can be refunded",
                payment_id=str(payment_id),
                status=request.status.value,
            )

        try:
            await self.payments.set_status(payment, PaymentStatus.REFUNDED)
        except Exception:
            logger.exception("payment_refund_failed", payment_id=str(payment_id))
            await self._swap(
                request, RequestStatus.REFUNDED, RequestStatus.APPROVED, *previous
            )
            raise
        logger.info(
            "payment_refunded",
            payment_id=str(payment_id),
            request_id=str(request.request_id),
            amount=payment.amount,
            actor_id=str(actor_id),
        )
        await self._publish_decided(request, actor_id)
        return payment

    # ==========================================================================
    # Side effects
    # ==========================================================================

    async def _apply_course_decision(
        self, request: ApprovalRequest, outcome: RequestStatus
    ) -> None:
        status = (
            ApprovalStatus.APPROVED
            if outcome == RequestStatus.APPROVED
            else ApprovalStatus.REJECTED
        )
        closed = await self.courses.close_review(
            request.subject_id, request.request_id, status
        )
        if not closed:
            logger.warning(
                "course_review_mismatch",
                course_id=str(request.subject_id),
                request_id=str(request.request_id),
            )

    async def _apply_payment_decision(
        self,
        request: ApprovalRequest,
        outcome: RequestStatus,
        actor_id: UUID,
    ) -> None:
        payment = await self.payments.require_payment(request.subject_id)
        if outcome == RequestStatus.REJECTED:
            await self.payments.set_status(payment, PaymentStatus.REJECTED)
            return

        platform_fee, trainer_share = split_amount(payment.amount, self.fee_rate)
        await self.payments.record_settlement(payment, platform_fee, trainer_share)
        try:
            await self.payments.set_status(payment, PaymentStatus.APPROVED)
            if payment.is_course_purchase and payment.course_id is not None:
                await self.grants.grant(
                    user_id=payment.user_id,
                    course_id=payment.course_id,
                    grant_type=GrantType.PURCHASE,
                    granted_by=actor_id,
                    payment_id=payment.payment_id,
                )
            elif payment.plan is not None:
                await self.users.activate_subscription(payment.user_id, payment.plan)
        except Exception:
            await self.payments.set_status(payment, PaymentStatus.PENDING)
            raise

        logger.info(
            "payment_settled",
            payment_id=str(payment.payment_id),
            amount=payment.amount,
            platform_fee=platform_fee,
            trainer_share=trainer_share,
        )

    # ==========================================================================
    # Internals
    # ==========================================================================

    async def _insert(self, request: ApprovalRequest) -> None:
        await self.session.aexecute(
            self._insert_request,
            [
                request.request_id,
                request.subject_type.value,
                request.subject_id,
                request.requester_id,
                request.status.value,
                request.actor_id,
                request.notes,
                request.requested_at,
                request.decided_at,
                request.updated_at,
            ],
        )
        logger.info(
            "approval_requested",
            request_id=str(request.request_id),
            subject_type=request.subject_type.value,
            subject_id=str(request.subject_id),
        )

    async def _swap(
        self,
        request: ApprovalRequest,
        expected: RequestStatus,
        target: RequestStatus,
        actor_id: UUID | None,
        notes: str | None,
        decided_at: datetime | None = None,
    ) -> bool:
        """Compare-and-swap the request status; update ``request`` on success.

        ``decided_at`` defaults to now for decided targets and is cleared for
        Pending; a rollback passes the value it is restoring.
        """
        now = datetime.now(UTC)
        if decided_at is None and target != RequestStatus.PENDING:
            decided_at = now
        result = await self.session.aexecute(
            self._transition_request,
            [
                target.value,
                actor_id,
                notes,
                decided_at,
                now,
                request.request_id,
                expected.value,
            ],
        )
        if not result.was_applied:
            current = await self.get_request(request.request_id)
            if current is not None:
                request.status = current.status
            return False

        request.status = target
        request.actor_id = actor_id
        request.notes = notes
        request.decided_at = decided_at
        request.updated_at = now
        return True

    async def _publish_submitted(self, request: ApprovalRequest) -> None:
        await self.bus.publish(
            ApprovalSubmitted(
                request_id=request.request_id,
                subject_type=request.subject_type.value,
                subject_id=request.subject_id,
                requester_id=request.requester_id,
            )
        )

    async def _publish_decided(self, request: ApprovalRequest, actor_id: UUID) -> None:
        await self.bus.publish(
            ApprovalDecided(
                request_id=request.request_id,
                subject_type=request.subject_type.value,
                subject_id=request.subject_id,
                requester_id=request.requester_id,
                outcome=request.status.value,
                actor_id=actor_id,
                notes=request.notes,
            )
        )
