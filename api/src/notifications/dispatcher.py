"""Fan-out of state-change notifications to their recipients.

``dispatch`` resolves a target selector into user ids and stores one
notification per recipient. It never raises: resolution failures yield zero
recipients and per-recipient failures are skipped, both logged.

``submit`` is the fire-and-forget path used by event handlers. Work goes onto
an ``asyncio.Queue`` drained by a background worker started in the app
lifespan; without a running worker it dispatches inline. A full queue drops
the notification.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.core.context import RequestContext, get_context
from src.core.logging import get_logger
from src.events.models import (
    ApprovalDecided,
    ApprovalReopened,
    EnrollmentCancelled,
    EnrollmentConfirmed,
)

from .models import Notification, NotificationType


if TYPE_CHECKING:
    from src.courses.service import CourseService
    from src.enrollments.service import EnrollmentService
    from src.events.bus import EventBus
    from src.users.service import UserService

    from .service import NotificationService


logger = get_logger(__name__)


# ==============================================================================
# Target selectors
# ==============================================================================


class UserTarget(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["user"] = "user"
    user_id: UUID


class CourseEnrolleesTarget(BaseModel):
    """Confirmed enrollees of any session of the course."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["course_enrollees"] = "course_enrollees"
    course_id: UUID


class SessionEnrolleesTarget(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["session_enrollees"] = "session_enrollees"
    session_id: UUID


class AllUsersTarget(BaseModel):
    """Every active user."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["all_users"] = "all_users"


TargetSelector = Annotated[
    UserTarget | CourseEnrolleesTarget | SessionEnrolleesTarget | AllUsersTarget,
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class NotificationEvent:
    """What to tell the recipients."""

    type: NotificationType
    title: str
    message: str
    reference_id: UUID | None = None
    reference_type: str | None = None

    def for_user(self, user_id: UUID) -> Notification:
        return Notification(
            user_id=user_id,
            type=self.type,
            title=self.title,
            message=self.message,
            reference_id=self.reference_id,
            reference_type=self.reference_type,
        )


@dataclass(frozen=True)
class _Job:
    event: NotificationEvent
    target: Any
    context: dict[str, Any]


_APPROVAL_OUTCOMES: dict[tuple[str, str], tuple[NotificationType, str]] = {
    ("course_publication", "approved"): (NotificationType.APPROVAL, "Course approved"),
    ("course_publication", "rejected"): (NotificationType.REJECTION, "Course rejected"),
    ("payment", "approved"): (NotificationType.PAYMENT, "Payment approved"),
    ("payment", "rejected"): (NotificationType.REJECTION, "Payment rejected"),
    ("payment", "refunded"): (NotificationType.REFUND, "Payment refunded"),
}


class NotificationDispatcher:
    """Resolves recipients and delivers notifications, off the request path."""

    def __init__(
        self,
        notifications: NotificationService,
        enrollments: EnrollmentService,
        courses: CourseService,
        users: UserService,
        queue_size: int = 1000,
        poll_interval: float = 0.5,
    ) -> None:
        self.notifications = notifications
        self.enrollments = enrollments
        self.courses = courses
        self.users = users
        self.queue_size = queue_size
        self.poll_interval = poll_interval

        self._queue: asyncio.Queue[_Job] = asyncio.Queue(maxsize=queue_size)
        self._running = False
        self._worker_task: asyncio.Task | None = None

        # Counters for monitoring
        self._submitted = 0
        self._dropped = 0
        self._delivered = 0

    # ==========================================================================
    # Recipient resolution and delivery
    # ==========================================================================

    async def resolve_recipients(self, target: Any) -> list[UUID]:
        """Resolve a target selector to de-duplicated user ids, in first-seen order."""
        if isinstance(target, UserTarget):
            candidates = [target.user_id]
        elif isinstance(target, SessionEnrolleesTarget):
            candidates = await self.enrollments.list_confirmed_user_ids(target.session_id)
        elif isinstance(target, CourseEnrolleesTarget):
            candidates = []
            for session_id in await self.courses.list_session_ids(target.course_id):
                candidates.extend(
                    await self.enrollments.list_confirmed_user_ids(session_id)
                )
        elif isinstance(target, AllUsersTarget):
            candidates = [user.user_id for user in await self.users.list_active_users()]
        else:
            msg = f"Unsupported notification target: {target!r}"
            raise TypeError(msg)

        return list(dict.fromkeys(candidates))

    async def dispatch(self, event: NotificationEvent, target: Any) -> int:
        """Deliver ``event`` to every recipient of ``target``.

        Returns:
            Number of recipients a notification was stored for.
        """
        start_time = time.perf_counter()
        try:
            recipients = await self.resolve_recipients(target)
        except Exception:
            logger.exception(
                "notification_target_resolution_failed",
                target=getattr(target, "kind", repr(target)),
                notification_type=event.type.value,
            )
            return 0

        delivered = 0
        for user_id in recipients:
            try:
                await self.notifications.create_notification(event.for_user(user_id))
            except Exception:
                logger.exception(
                    "notification_delivery_failed",
                    target_user_id=str(user_id),
                    notification_type=event.type.value,
                )
                continue
            delivered += 1

        self._delivered += delivered
        logger.info(
            "notification_dispatched",
            target=target.kind,
            notification_type=event.type.value,
            recipients=len(recipients),
            delivered=delivered,
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return delivered

    # ==========================================================================
    # Fire-and-forget path
    # ==========================================================================

    async def submit(self, event: NotificationEvent, target: Any) -> bool:
        """Queue a dispatch, or run it inline when no worker is running.

        Returns:
            False if the queue was full and the notification was dropped.
        """
        if not self._running:
            await self.dispatch(event, target)
            return True

        try:
            self._queue.put_nowait(_Job(event=event, target=target, context=get_context()))
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "notification_queue_full",
                notification_type=event.type.value,
                queue_size=self.queue_size,
                dropped_total=self._dropped,
            )
            return False

        self._submitted += 1
        return True

    async def start(self) -> None:
        """Start the background worker."""
        if self._running:
            logger.warning("notification_dispatcher_already_running")
            return

        self._running = True
        self._worker_task = asyncio.create_task(
            self._worker_loop(),
            name="notification_worker",
        )
        logger.info("notification_dispatcher_started", queue_size=self.queue_size)

    async def stop(self) -> None:
        """Stop the worker and deliver whatever is still queued."""
        if not self._running:
            return

        self._running = False

        if self._worker_task:
            try:
                await asyncio.wait_for(self._worker_task, timeout=5.0)
            except TimeoutError:
                logger.warning("notification_worker_stop_timeout")
                self._worker_task.cancel()
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        while not self._queue.empty():
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            await self._run_job(job)

        logger.info(
            "notification_dispatcher_stopped",
            submitted=self._submitted,
            delivered=self._delivered,
            dropped=self._dropped,
        )

    async def _worker_loop(self) -> None:
        while self._running:
            try:
                job = await asyncio.wait_for(self._queue.get(), timeout=self.poll_interval)
            except TimeoutError:
                continue
            await self._run_job(job)

    async def _run_job(self, job: _Job) -> None:
        with RequestContext(**job.context):
            await self.dispatch(job.event, job.target)

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "queue_length": self._queue.qsize(),
            "submitted": self._submitted,
            "delivered": self._delivered,
            "dropped": self._dropped,
        }

    # ==========================================================================
    # Event subscriptions
    # ==========================================================================

    def register(self, bus: EventBus) -> None:
        """Subscribe to the state-change events that notify a user."""
        bus.subscribe(EnrollmentConfirmed, self._on_enrollment_confirmed)
        bus.subscribe(EnrollmentCancelled, self._on_enrollment_cancelled)
        bus.subscribe(ApprovalDecided, self._on_approval_decided)
        bus.subscribe(ApprovalReopened, self._on_approval_reopened)

    async def _on_enrollment_confirmed(self, event: EnrollmentConfirmed) -> None:
        await self.submit(
            NotificationEvent(
                type=NotificationType.ENROLLMENT,
                title="Enrollment confirmed",
                message="Your seat in the session is confirmed.",
                reference_id=event.session_id,
                reference_type="session",
            ),
            UserTarget(user_id=event.user_id),
        )

    async def _on_enrollment_cancelled(self, event: EnrollmentCancelled) -> None:
        await self.submit(
            NotificationEvent(
                type=NotificationType.CANCELLATION,
                title="Enrollment cancelled",
                message="Your enrollment in the session was cancelled.",
                reference_id=event.session_id,
                reference_type="session",
            ),
            UserTarget(user_id=event.user_id),
        )

    async def _on_approval_decided(self, event: ApprovalDecided) -> None:
        mapped = _APPROVAL_OUTCOMES.get((event.subject_type, event.outcome))
        if mapped is None:
            logger.warning(
                "approval_outcome_unmapped",
                subject_type=event.subject_type,
                outcome=event.outcome,
            )
            return
        notification_type, title = mapped
        message = title
        if event.notes:
            message = f"{title}: {event.notes}"
        await self.submit(
            NotificationEvent(
                type=notification_type,
                title=title,
                message=message,
                reference_id=event.subject_id,
                reference_type=event.subject_type,
            ),
            UserTarget(user_id=event.requester_id),
        )

    async def _on_approval_reopened(self, event: ApprovalReopened) -> None:
        await self.submit(
            NotificationEvent(
                type=NotificationType.REOPENED,
                title="Payment back under review",
                message="Your payment was reopened for review.",
                reference_id=event.subject_id,
                reference_type=event.subject_type,
            ),
            UserTarget(user_id=event.requester_id),
        )
