"""Shared fixtures.

``FakeCassandraSession`` runs the prepared CQL the services issue against
in-memory tables, including lightweight-transaction conditions. It yields to
the event loop before every statement so concurrent coroutines interleave the
way they would against a real cluster, while each statement (and each
compare-and-swap) still applies atomically.
"""

import asyncio
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.approvals.models import Decision
from src.auth.permissions import UserRole
from src.auth.security import create_access_token
from src.config import get_settings
from src.core.database.async_cassandra import SCHEMA
from src.main import app, create_app, init_services


# ==============================================================================
# In-memory Cassandra
# ==============================================================================


class FakeRow:
    """Row with attribute access; unknown columns read as None."""

    def __init__(self, data: dict[str, Any]):
        self.__dict__["_data"] = dict(data)

    def __getattr__(self, name: str) -> Any:
        return self._data.get(name)

    def __repr__(self) -> str:
        return f"FakeRow({self._data!r})"


class FakeResultSet:
    def __init__(self, rows: list[dict[str, Any]] | None = None, was_applied: bool = True):
        self.current_rows = [FakeRow(row) for row in rows or []]
        self.was_applied = was_applied

    def one(self) -> FakeRow | None:
        return self.current_rows[0] if self.current_rows else None

    def __iter__(self) -> Iterator[FakeRow]:
        return iter(self.current_rows)


@dataclass
class FakePrepared:
    query: str


@dataclass
class _Table:
    primary_key: list[str]
    rows: dict[tuple, dict[str, Any]] = field(default_factory=dict)

    def key_of(self, values: dict[str, Any]) -> tuple:
        return tuple(values.get(col) for col in self.primary_key)


@dataclass
class _Failure:
    fragment: str
    exc: Exception
    remaining: int


_SELECT_RE = re.compile(
    r"^SELECT (?P<cols>.+?) FROM (?P<table>\S+)"
    r"(?: WHERE (?P<where>.+?))?"
    r"(?: ORDER BY (?P<order_col>\w+)(?: (?P<order_dir>ASC|DESC))?)?"
    r"(?: LIMIT (?P<limit>\?|\d+))?"
    r"(?: ALLOW FILTERING)?$",
    re.IGNORECASE,
)
_INSERT_RE = re.compile(
    r"^INSERT INTO (?P<table>\S+) \((?P<cols>[^)]*)\) VALUES \((?P<values>[^)]*)\)"
    r"(?P<ine> IF NOT EXISTS)?$",
    re.IGNORECASE,
)
_UPDATE_RE = re.compile(
    r"^UPDATE (?P<table>\S+) SET (?P<set>.+?) WHERE (?P<where>.+?)(?: IF (?P<cond>.+))?$",
    re.IGNORECASE,
)
_DELETE_RE = re.compile(r"^DELETE FROM (?P<table>\S+) WHERE (?P<where>.+)$", re.IGNORECASE)
_CREATE_TABLE_RE = re.compile(r"^CREATE TABLE IF NOT EXISTS (?P<table>\S+) \(", re.IGNORECASE)


def _normalize(query: str) -> str:
    return " ".join(query.split())


def _table_name(qualified: str) -> str:
    return qualified.split(".")[-1]


def _balanced(text: str, start: int) -> str:
    """Content of the parenthesised group opening at ``text[start]``."""
    depth = 0
    for index in range(start, len(text)):
        if text[index] == "(":
            depth += 1
        elif text[index] == ")":
            depth -= 1
            if depth == 0:
                return text[start + 1 : index]
    msg = f"Unbalanced parentheses in: {text}"
    raise ValueError(msg)


def _split_top_level(text: str) -> list[str]:
    parts, depth, current = [], 0, []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    if current:
        parts.append("".join(current).strip())
    return parts


def _parse_assignments(clause: str, separator: str) -> list[str]:
    """Column names of ``col = ?`` terms joined by ``separator``."""
    columns = []
    for term in re.split(separator, clause, flags=re.IGNORECASE):
        column, _, value = (part.strip() for part in term.partition("="))
        if value != "?":
            msg = f"Only '?' placeholders are supported, got: {term!r}"
            raise ValueError(msg)
        columns.append(column)
    return columns


class FakeCassandraSession:
    """Subset of the async Cassandra session used by the services."""

    def __init__(self) -> None:
        self.tables: dict[str, _Table] = {}
        self.executed: list[str] = []
        self._failures: list[_Failure] = []

    # -- session API ------------------------------------------------------------

    def prepare(self, query: str) -> FakePrepared:
        return FakePrepared(_normalize(query))

    async def aexecute(self, statement: Any, params: list[Any] | None = None) -> FakeResultSet:
        query = statement.query if isinstance(statement, FakePrepared) else _normalize(statement)
        await asyncio.sleep(0)
        self.executed.append(query)
        self._maybe_fail(query)
        return self._execute(query, list(params or []))

    def set_keyspace(self, keyspace: str) -> None:
        """No-op; tables are keyed by name only."""

    # -- test helpers -------------------------------------------------------------

    def create_schema(self, keyspace: str = "coursemarket") -> None:
        for _module, statements in SCHEMA:
            for cql in statements:
                self._execute(_normalize(cql.format(keyspace=keyspace)), [])

    def fail_on(self, fragment: str, exc: Exception | None = None, times: int = 1) -> None:
        """Raise ``exc`` for the next ``times`` statements containing ``fragment``."""
        self._failures.append(
            _Failure(fragment, exc or RuntimeError("injected failure"), times)
        )

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables[table].rows.values()]

    def _maybe_fail(self, query: str) -> None:
        for failure in self._failures:
            if failure.remaining > 0 and failure.fragment in query:
                failure.remaining -= 1
                raise failure.exc

    # -- execution ----------------------------------------------------------------

    def _execute(self, query: str, params: list[Any]) -> FakeResultSet:
        keyword = query.split(" ", 1)[0].upper()
        if keyword == "CREATE":
            self._create(query)
            return FakeResultSet()
        if keyword == "SELECT":
            return self._select(query, params)
        if keyword == "INSERT":
            return self._insert(query, params)
        if keyword == "UPDATE":
            return self._update(query, params)
        if keyword == "DELETE":
            return self._delete(query, params)
        msg = f"Unsupported statement: {query}"
        raise NotImplementedError(msg)

    def _create(self, query: str) -> None:
        match = _CREATE_TABLE_RE.match(query)
        if match is None:
            return  # keyspace, index

        name = _table_name(match.group("table"))
        body = _balanced(query, match.end() - 1)
        marker = body.upper().find("PRIMARY KEY (")
        if marker >= 0:
            key_spec = _balanced(body, marker + len("PRIMARY KEY "))
            primary_key = [
                col.strip() for col in key_spec.replace("(", "").replace(")", "").split(",")
            ]
        else:
            primary_key = [
                definition.split(" ", 1)[0]
                for definition in _split_top_level(body)
                if definition.upper().endswith("PRIMARY KEY")
            ]
        self.tables.setdefault(name, _Table(primary_key=primary_key))

    def _table(self, qualified: str) -> _Table:
        name = _table_name(qualified)
        if name not in self.tables:
            msg = f"Unknown table: {name}"
            raise KeyError(msg)
        return self.tables[name]

    def _select(self, query: str, params: list[Any]) -> FakeResultSet:
        match = _SELECT_RE.match(query)
        if match is None:
            msg = f"Unsupported SELECT: {query}"
            raise NotImplementedError(msg)

        table = self._table(match.group("table"))
        where_cols = _parse_assignments(match.group("where"), r" AND ") if match.group("where") else []
        wanted = dict(zip(where_cols, params[: len(where_cols)], strict=True))
        rows = [
            row
            for row in table.rows.values()
            if all(row.get(col) == value for col, value in wanted.items())
        ]

        if match.group("order_col"):
            column = match.group("order_col")
            rows.sort(
                key=lambda row: row.get(column),
                reverse=(match.group("order_dir") or "ASC").upper() == "DESC",
            )

        limit = match.group("limit")
        if limit is not None:
            rows = rows[: params[len(where_cols)] if limit == "?" else int(limit)]

        return FakeResultSet(rows)

    def _insert(self, query: str, params: list[Any]) -> FakeResultSet:
        match = _INSERT_RE.match(query)
        if match is None:
            msg = f"Unsupported INSERT: {query}"
            raise NotImplementedError(msg)

        table = self._table(match.group("table"))
        columns = [col.strip() for col in match.group("cols").split(",")]
        values = dict(zip(columns, params, strict=True))
        key = table.key_of(values)

        if match.group("ine") and key in table.rows:
            return FakeResultSet([table.rows[key]], was_applied=False)

        table.rows[key] = {**table.rows.get(key, {}), **values}
        return FakeResultSet()

    def _update(self, query: str, params: list[Any]) -> FakeResultSet:
        match = _UPDATE_RE.match(query)
        if match is None:
            msg = f"Unsupported UPDATE: {query}"
            raise NotImplementedError(msg)

        table = self._table(match.group("table"))
        set_cols = _parse_assignments(match.group("set"), r",")
        where_cols = _parse_assignments(match.group("where"), r" AND ")
        offset = len(set_cols) + len(where_cols)
        updates = dict(zip(set_cols, params[: len(set_cols)], strict=True))
        key_values = dict(zip(where_cols, params[len(set_cols) : offset], strict=True))
        key = table.key_of(key_values)
        current = table.rows.get(key)

        condition = match.group("cond")
        if condition is not None:
            if condition.strip().upper() == "EXISTS":
                if current is None:
                    return FakeResultSet(was_applied=False)
            else:
                cond_cols = _parse_assignments(condition, r" AND ")
                expected = dict(zip(cond_cols, params[offset:], strict=True))
                observed = current or {}
                if any(observed.get(col) != value for col, value in expected.items()):
                    return FakeResultSet(
                        [current] if current is not None else [], was_applied=False
                    )

        table.rows[key] = {**(current or key_values), **updates}
        return FakeResultSet()

    def _delete(self, query: str, params: list[Any]) -> FakeResultSet:
        match = _DELETE_RE.match(query)
        if match is None:
            msg = f"Unsupported DELETE: {query}"
            raise NotImplementedError(msg)

        table = self._table(match.group("table"))
        where_cols = _parse_assignments(match.group("where"), r" AND ")
        wanted = dict(zip(where_cols, params, strict=True))
        for key in [
            key
            for key, row in table.rows.items()
            if all(row.get(col) == value for col, value in wanted.items())
        ]:
            del table.rows[key]
        return FakeResultSet()


# ==============================================================================
# Service graph
# ==============================================================================


@pytest.fixture
def cassandra() -> FakeCassandraSession:
    session = FakeCassandraSession()
    session.create_schema(get_settings().cassandra_keyspace)
    return session


@pytest.fixture
def engine(cassandra: FakeCassandraSession) -> Any:
    """Fully wired services (``app.state`` of a bare app), no Redis, inline dispatch."""
    holder = FastAPI()
    init_services(holder, cassandra)
    return holder.state


class Seeder:
    """Creates users, courses and sessions through the real services."""

    def __init__(self, state: Any):
        self.state = state
        self.admin_id = uuid4()

    async def user(
        self,
        role: UserRole = UserRole.STUDENT,
        enterprise_id: UUID | None = None,
        name: str | None = None,
    ):
        suffix = uuid4().hex[:8]
        return await self.state.user_service.create_user(
            email=f"{role.value}_{suffix}@test.com",
            name=name or f"Test {role.value.title()}",
            role=role,
            enterprise_id=enterprise_id,
        )

    async def course(
        self,
        trainer=None,
        price: int = 0,
        max_students: int = 10,
        approved: bool = True,
    ):
        trainer = trainer or await self.user(UserRole.TRAINER)
        course = await self.state.course_service.create_course(
            trainer_id=trainer.user_id,
            title="Pharmacology Basics",
            price=price,
            max_students=max_students,
        )
        if approved:
            request = await self.state.approval_workflow.submit_course(
                course.course_id, trainer.user_id, trainer.role
            )
            await self.state.approval_workflow.decide(
                request.request_id, self.admin_id, UserRole.ADMIN, Decision.APPROVE
            )
            course = await self.state.course_service.require_course(course.course_id)
        return course

    async def session(self, course, scheduled_at: datetime | None = None):
        return await self.state.course_service.create_session(
            course_id=course.course_id,
            actor_id=course.trainer_id,
            actor_role=UserRole.TRAINER,
            scheduled_at=scheduled_at or datetime.now(UTC) + timedelta(days=7),
        )


@pytest.fixture
def seed(engine: Any) -> Seeder:
    return Seeder(engine)


# ==============================================================================
# HTTP
# ==============================================================================


def make_token(user_id: UUID | str, role: UserRole) -> str:
    return create_access_token(
        {"sub": str(user_id), "role": role.value, "email": f"{role.value}@test.com"}
    )


def auth_headers(user_id: UUID | str, role: UserRole) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def client(cassandra: FakeCassandraSession) -> TestClient:
    """Client over the real app with services backed by the in-memory session.

    The lifespan is not run, so no external connections are attempted.
    """
    init_services(app, cassandra)
    return TestClient(app)


@pytest.fixture
def bare_client() -> TestClient:
    """Client over an app whose services were never initialized."""
    return TestClient(create_app())


@pytest.fixture
def admin_headers(client: TestClient) -> dict[str, str]:
    """Headers for an admin stored in the client's user service."""
    admin = asyncio.run(
        client.app.state.user_service.create_user(
            email=f"admin_{uuid4().hex[:8]}@test.com",
            name="Test Admin",
            role=UserRole.ADMIN,
        )
    )
    return auth_headers(admin.user_id, UserRole.ADMIN)
