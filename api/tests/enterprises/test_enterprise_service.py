"""Tests for enterprises and their course assignments."""

from uuid import uuid4

import pytest

from src.core.exceptions import NotFoundError
from src.enterprises.service import EnterpriseService


@pytest.fixture
def enterprises(cassandra) -> EnterpriseService:
    return EnterpriseService(cassandra, "coursemarket")


class TestEnterpriseService:
    @pytest.mark.asyncio
    async def test_assign_and_unassign(self, enterprises) -> None:
        enterprise = await enterprises.create_enterprise("Acme Pharmacy")
        course_id, admin_id = uuid4(), uuid4()

        await enterprises.assign_course(enterprise.enterprise_id, course_id, admin_id)
        assert await enterprises.has_course_access(enterprise.enterprise_id, course_id)
        assert len(await enterprises.list_courses(enterprise.enterprise_id)) == 1

        await enterprises.unassign_course(enterprise.enterprise_id, course_id, admin_id)
        assert not await enterprises.has_course_access(enterprise.enterprise_id, course_id)
        assert await enterprises.list_courses(enterprise.enterprise_id) == []

    @pytest.mark.asyncio
    async def test_assign_requires_enterprise(self, enterprises) -> None:
        with pytest.raises(NotFoundError):
            await enterprises.assign_course(uuid4(), uuid4(), uuid4())

    @pytest.mark.asyncio
    async def test_set_subscription(self, enterprises) -> None:
        enterprise = await enterprises.create_enterprise("Rede Sul")

        await enterprises.set_subscription(
            enterprise.enterprise_id, active=True, covers_all_courses=True
        )

        stored = await enterprises.require_enterprise(enterprise.enterprise_id)
        assert stored.subscription_active is True
        assert stored.covers_all_courses is True

    @pytest.mark.asyncio
    async def test_no_assignment(self, enterprises) -> None:
        enterprise = await enterprises.create_enterprise("Rede Norte")
        assert not await enterprises.has_course_access(enterprise.enterprise_id, uuid4())
