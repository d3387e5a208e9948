# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Per-session occupancy ledger.

Occupancy lives in a single ``session_capacity`` row per session and is only
ever changed through lightweight transactions conditioned on the value that
was read (``IF occupied = ?``). A reservation that loses a race re-reads and
retries after a jittered backoff, so the check and the increment are atomic
with respect to every other reservation on the same session, across processes.

Invariant: ``0 <= occupied <= capacity``.
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from src.config import get_settings
from src.core.exceptions import CapacityContentionError, NotFoundError
from src.core.logging import get_logger


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


SESSION_CAPACITY_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.session_capacity (
    session_id UUID PRIMARY KEY,
    capacity INT,
    occupied INT
)
"""

CAPACITY_TABLES_CQL = [
    SESSION_CAPACITY_TABLE_CQL,
]


class ReservationResult(str, Enum):
    RESERVED = "reserved"
    CAPACITY_EXCEEDED = "capacity_exceeded"


@dataclass(frozen=True)
class Occupancy:
    session_id: UUID
    capacity: int
    occupied: int

    @property
    def available(self) -> int:
        return max(self.capacity - self.occupied, 0)

    @property
    def is_full(self) -> bool:
        return self.occupied >= self.capacity


class CapacityLedger:
    """Atomic seat accounting for sessions.

    A lost compare-and-swap means another caller changed the row; the loser
    re-reads and tries again after a jittered backoff until ``timeout``
    seconds have passed.
    """

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        timeout: float | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
    ):
        settings = get_settings()
        self.session = session
        self.keyspace = keyspace
        self.timeout = timeout or settings.capacity_reserve_timeout_seconds
        self.backoff_base = backoff_base or settings.capacity_backoff_base_ms / 1000
        self.backoff_max = backoff_max or settings.capacity_backoff_max_ms / 1000
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_capacity = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.session_capacity
            (session_id, capacity, occupied)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_capacity = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.session_capacity
            WHERE session_id = ?
        """)

        self._swap_occupied = self.session.prepare(f"""
            UPDATE {self.keyspace}.session_capacity
            SET occupied = ?
            WHERE session_id = ?
            IF occupied = ?
        """)

    async def initialize(self, session_id: UUID, capacity: int) -> bool:
        """Create the ledger row for a new session.

        Returns:
            False if the session already had a ledger row (left untouched).
        """
        result = await self.session.aexecute(
            self._insert_capacity, [session_id, capacity, 0]
        )
        if result.was_applied:
            logger.info(
                "capacity_initialized", session_id=str(session_id), capacity=capacity
            )
        return result.was_applied

    async def occupancy(self, session_id: UUID) -> Occupancy:
        result = await self.session.aexecute(self._get_capacity, [session_id])
        row = result.one()
        if row is None:
            raise NotFoundError("Session not found", session_id=str(session_id))
        return Occupancy(
            session_id=session_id,
            capacity=row.capacity or 0,
            occupied=row.occupied or 0,
        )

    async def try_reserve(self, session_id: UUID) -> ReservationResult:
        """Take one seat if one is free.

        Raises:
            NotFoundError: The session has no ledger row.
            CapacityContentionError: Swaps kept losing until the deadline.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        attempt = 0
        while True:
            attempt += 1
            current = await self.occupancy(session_id)
            if current.is_full:
                logger.info(
                    "capacity_exceeded",
                    session_id=str(session_id),
                    capacity=current.capacity,
                )
                return ReservationResult.CAPACITY_EXCEEDED

            result = await self.session.aexecute(
                self._swap_occupied,
                [current.occupied + 1, session_id, current.occupied],
            )
            if result.was_applied:
                logger.debug(
                    "capacity_reserved",
                    session_id=str(session_id),
                    occupied=current.occupied + 1,
                    capacity=current.capacity,
                    attempt=attempt,
                )
                return ReservationResult.RESERVED

            if loop.time() >= deadline:
                logger.error(
                    "capacity_reserve_contention",
                    session_id=str(session_id),
                    attempts=attempt,
                    timeout=self.timeout,
                )
                msg = f"Could not reserve a seat on session {session_id}"
                raise CapacityContentionError(msg)
            await self._backoff(attempt)

    async def release(self, session_id: UUID) -> int:
        """Give one seat back. Never drives occupancy below zero.

        Returns:
            Occupancy after the release.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        attempt = 0
        while True:
            attempt += 1
            current = await self.occupancy(session_id)
            if current.occupied <= 0:
                logger.warning("capacity_release_underflow", session_id=str(session_id))
                return 0

            result = await self.session.aexecute(
                self._swap_occupied,
                [current.occupied - 1, session_id, current.occupied],
            )
            if result.was_applied:
                logger.debug(
                    "capacity_released",
                    session_id=str(session_id),
                    occupied=current.occupied - 1,
                )
                return current.occupied - 1

            if loop.time() >= deadline:
                msg = f"Could not release a seat on session {session_id}"
                raise CapacityContentionError(msg)
            await self._backoff(attempt)

    async def _backoff(self, attempt: int) -> None:
        """Full-jitter exponential backoff."""
        ceiling = min(self.backoff_max, self.backoff_base * 2 ** min(attempt, 10))
        await asyncio.sleep(random.uniform(0, ceiling))
