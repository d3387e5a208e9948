"""Tests for auth permissions."""

from uuid import uuid4

import pytest

from src.auth.permissions import (
    UserRole,
    can_act_for,
    can_manage_course,
    is_admin,
    is_enterprise_employee,
    is_trainer,
    parse_role,
)


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.STUDENT.value == "student"
        assert UserRole.TRAINER.value == "trainer"
        assert UserRole.ADMIN.value == "admin"
        assert UserRole.ENTERPRISE_EMPLOYEE.value == "enterprise_employee"


class TestParseRole:
    @pytest.mark.parametrize("role", list(UserRole))
    def test_enum_passthrough(self, role: UserRole) -> None:
        assert parse_role(role) is role

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("student", UserRole.STUDENT),
            ("trainer", UserRole.TRAINER),
            ("admin", UserRole.ADMIN),
            ("enterprise_employee", UserRole.ENTERPRISE_EMPLOYEE),
        ],
    )
    def test_string_roles(self, value: str, expected: UserRole) -> None:
        assert parse_role(value) == expected

    def test_invalid_role_returns_none(self) -> None:
        """Unknown roles should not raise."""
        assert parse_role("superadmin") is None
        assert is_admin("superadmin") is False


class TestRolePredicates:
    def test_is_admin(self) -> None:
        assert is_admin(UserRole.ADMIN) is True
        assert is_admin("admin") is True
        assert is_admin(UserRole.TRAINER) is False

    def test_is_trainer(self) -> None:
        assert is_trainer("trainer") is True
        assert is_trainer(UserRole.ADMIN) is False

    def test_is_enterprise_employee(self) -> None:
        assert is_enterprise_employee(UserRole.ENTERPRISE_EMPLOYEE) is True
        assert is_enterprise_employee(UserRole.STUDENT) is False


class TestCanActFor:
    """Owner or admin."""

    def test_owner(self) -> None:
        owner = uuid4()
        assert can_act_for(owner, UserRole.STUDENT, owner) is True

    def test_other_user(self) -> None:
        assert can_act_for(uuid4(), UserRole.STUDENT, uuid4()) is False

    def test_trainer_is_not_privileged(self) -> None:
        assert can_act_for(uuid4(), UserRole.TRAINER, uuid4()) is False

    def test_admin(self) -> None:
        assert can_act_for(uuid4(), UserRole.ADMIN, uuid4()) is True


class TestCanManageCourse:
    def test_owning_trainer(self) -> None:
        trainer = uuid4()
        assert can_manage_course(trainer, UserRole.TRAINER, trainer) is True

    def test_other_trainer(self) -> None:
        assert can_manage_course(uuid4(), UserRole.TRAINER, uuid4()) is False

    def test_student_with_matching_id(self) -> None:
        """Ownership only counts for trainers."""
        user = uuid4()
        assert can_manage_course(user, UserRole.STUDENT, user) is False

    def test_admin(self) -> None:
        assert can_manage_course(uuid4(), "admin", uuid4()) is True
