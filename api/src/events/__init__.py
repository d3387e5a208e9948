"""In-process domain events."""

from src.events.bus import EventBus, EventHandler
from src.events.models import (
    ApprovalDecided,
    ApprovalReopened,
    ApprovalSubmitted,
    DomainEvent,
    EnrollmentCancelled,
    EnrollmentConfirmed,
)


__all__ = [
    "ApprovalDecided",
    "ApprovalReopened",
    "ApprovalSubmitted",
    "DomainEvent",
    "EnrollmentCancelled",
    "EnrollmentConfirmed",
    "EventBus",
    "EventHandler",
]
