# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Payment service layer.

``PaymentService`` owns the payment rows. ``CheckoutService`` validates a
purchase or subscription, records the payment and opens its approval request.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from src.config import get_settings
from src.core.exceptions import NotFoundError, ValidationError
from src.core.logging import get_logger
from src.users.models import SubscriptionPlan

from .models import Payment, PaymentStatus, PaymentType


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.approvals.service import ApprovalWorkflow
    from src.courses.service import CourseService
    from src.entitlements.resolver import EntitlementResolver
    from src.users.models import User


logger = get_logger(__name__)


class PaymentService:
    """Storage for payments."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_payment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments
            (payment_id, user_id, payment_type, course_id, trainer_id, plan,
             amount, status, platform_fee, trainer_share, approval_request_id,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_payment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments_by_user
            (user_id, payment_id, created_at)
            VALUES (?, ?, ?)
        """)

        self._get_payment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.payments
            WHERE payment_id = ?
        """)

        self._list_user_payment_ids = self.session.prepare(f"""
            SELECT payment_id FROM {self.keyspace}.payments_by_user
            WHERE user_id = ?
        """)

        self._update_status = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET status = ?, updated_at = ?
            WHERE payment_id = ?
        """)

        self._update_settlement = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET platform_fee = ?, trainer_share = ?, updated_at = ?
            WHERE payment_id = ?
        """)

        self._update_approval_link = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET approval_request_id = ?, updated_at = ?
            WHERE payment_id = ?
        """)

    async def create_payment(self, payment: Payment) -> Payment:
        await self.session.aexecute(
            self._insert_payment,
            [
                payment.payment_id,
                payment.user_id,
                payment.payment_type.value,
                payment.course_id,
                payment.trainer_id,
                payment.plan.value if payment.plan else None,
                payment.amount,
                payment.status.value,
                payment.platform_fee,
                payment.trainer_share,
                payment.approval_request_id,
                payment.created_at,
                payment.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_payment_by_user,
            [payment.user_id, payment.payment_id, payment.created_at],
        )
        logger.info(
            "payment_created",
            payment_id=str(payment.payment_id),
            target_user_id=str(payment.user_id),
            payment_type=payment.payment_type.value,
            amount=payment.amount,
        )
        return payment

    async def get_payment(self, payment_id: UUID) -> Payment | None:
        result = await self.session.aexecute(self._get_payment, [payment_id])
        row = result.one()
        return Payment.from_row(row) if row else None

    async def require_payment(self, payment_id: UUID) -> Payment:
        payment = await self.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment not found", payment_id=str(payment_id))
        return payment

    async def list_user_payments(self, user_id: UUID) -> list[Payment]:
        rows = await self.session.aexecute(self._list_user_payment_ids, [user_id])
        payments = []
        for row in rows:
            payment = await self.get_payment(row.payment_id)
            if payment is not None:
                payments.append(payment)
        return sorted(payments, key=lambda p: p.created_at, reverse=True)

    async def set_status(self, payment: Payment, status: PaymentStatus) -> Payment:
        now = datetime.now(UTC)
        await self.session.aexecute(
            self._update_status, [status.value, now, payment.payment_id]
        )
        payment.status = status
        payment.updated_at = now
        return payment

    async def record_settlement(
        self, payment: Payment, platform_fee: int, trainer_share: int
    ) -> Payment:
        now = datetime.now(UTC)
        await self.session.aexecute(
            self._update_settlement,
            [platform_fee, trainer_share, now, payment.payment_id],
        )
        payment.platform_fee = platform_fee
        payment.trainer_share = trainer_share
        payment.updated_at = now
        return payment

    async def link_approval(self, payment: Payment, request_id: UUID) -> Payment:
        now = datetime.now(UTC)
        await self.session.aexecute(
            self._update_approval_link, [request_id, now, payment.payment_id]
        )
        payment.approval_request_id = request_id
        payment.updated_at = now
        return payment


class CheckoutService:
    """Initiates payments and hands them to the approval workflow."""

    def __init__(
        self,
        payments: PaymentService,
        approvals: "ApprovalWorkflow",
        courses: "CourseService",
        resolver: "EntitlementResolver",
    ):
        self.payments = payments
        self.approvals = approvals
        self.courses = courses
        self.resolver = resolver

    async def initiate_course_purchase(self, user: "User", course_id: UUID) -> Payment:
        """Record a course purchase awaiting admin approval.

        Raises:
            NotFoundError: Unknown course
            ValidationError: Course not purchasable, already accessible, or a
                purchase is already awaiting review
        """
        course = await self.courses.require_course(course_id)
        if not course.is_approved:
            raise ValidationError("Course is not published", course_id=str(course_id))
        if course.is_free:
            raise ValidationError("Free courses cannot be purchased")

        decision = await self.resolver.resolve(user, course)
        if decision.allowed:
            raise ValidationError(
                "User already has access to this course",
                rule=decision.rule.value if decision.rule else None,
            )

        for existing in await self.payments.list_user_payments(user.user_id):
            if existing.course_id == course_id and existing.status == PaymentStatus.PENDING:
                raise ValidationError(
                    "A purchase for this course is already awaiting review",
                    payment_id=str(existing.payment_id),
                )

        payment = Payment(
            user_id=user.user_id,
            payment_type=PaymentType.COURSE_PURCHASE,
            amount=course.price,
            course_id=course.course_id,
            trainer_id=course.trainer_id,
        )
        return await self._open(payment)

    async def initiate_subscription(
        self, user: "User", plan: SubscriptionPlan
    ) -> Payment:
        """Record a subscription payment awaiting admin approval."""
        payment = Payment(
            user_id=user.user_id,
            payment_type=PaymentType.SUBSCRIPTION,
            amount=get_settings().plan_price(plan),
            plan=plan,
        )
        return await self._open(payment)

    async def _open(self, payment: Payment) -> Payment:
        await self.payments.create_payment(payment)
        await self.approvals.open_payment(payment)
        return payment
