"""Unit tests for customer_service.py."""

import pytest
from sqlalchemy import select

from src.models.audit_log import AuditLog
from src.models.customer import CustomerCategory
from src.services.customer_service import CustomerService
from src.services.errors import BillingValidationError, MissingFieldError, NotFoundError


class TestCreateCustomer:
    async def test_create(self, async_db_session):
        service = CustomerService(async_db_session)

        customer = await service.create_customer(
            name="  Budi Santoso ",
            address="RT 01",
            phone="0812 3456 789",
            category=CustomerCategory.BUSINESS,
            initial_reading=120,
            actor="admin",
        )

        assert customer.id is not None
        assert customer.name == "Budi Santoso"
        assert customer.category == CustomerCategory.BUSINESS
        assert customer.last_reading == 120

        audit = (await async_db_session.execute(select(AuditLog))).scalar_one()
        assert audit.entity_type == "customer"
        assert audit.action == "create"
        assert audit.actor == "admin"
        assert audit.changes["last_reading"] == 120

    async def test_defaults(self, async_db_session):
        customer = await CustomerService(async_db_session).create_customer(name="Ani")
        assert customer.address == ""
        assert customer.phone is None
        assert customer.category == CustomerCategory.STANDARD
        assert customer.last_reading == 0

    async def test_empty_name_rejected(self, async_db_session):
        with pytest.raises(MissingFieldError):
            await CustomerService(async_db_session).create_customer(name="   ")

    async def test_negative_reading_rejected(self, async_db_session):
        with pytest.raises(BillingValidationError):
            await CustomerService(async_db_session).create_customer(name="Ani", initial_reading=-5)


class TestUpdateAndList:
    async def test_update_only_given_fields(self, async_db_session):
        service = CustomerService(async_db_session)
        customer = await service.create_customer(name="Ani", phone="0812", initial_reading=50)

        updated = await service.update_customer(
            customer.id, category=CustomerCategory.SOCIAL, last_reading=60
        )

        assert updated.category == CustomerCategory.SOCIAL
        assert updated.last_reading == 60
        assert updated.name == "Ani"
        assert updated.phone == "0812"

    async def test_clear_phone(self, async_db_session):
        service = CustomerService(async_db_session)
        customer = await service.create_customer(name="Ani", phone="0812")
        assert (await service.update_customer(customer.id, phone="")).phone is None

    async def test_update_missing_customer(self, async_db_session):
        with pytest.raises(NotFoundError):
            await CustomerService(async_db_session).update_customer(404, name="X")

    async def test_list_sorted_and_searched(self, async_db_session):
        service = CustomerService(async_db_session)
        await service.create_customer(name="citra", address="Dusun Kulon")
        await service.create_customer(name="Budi", address="Dusun Wetan")
        await service.create_customer(name="Ani", address="Dusun Kulon")

        assert [c.name for c in await service.list_customers()] == ["Ani", "Budi", "citra"]
        assert [c.name for c in await service.list_customers("KULON")] == ["Ani", "citra"]
        assert [c.name for c in await service.list_customers("bud")] == ["Budi"]

    async def test_search_wildcards_match_literally(self, async_db_session):
        service = CustomerService(async_db_session)
        await service.create_customer(name="Budi", address="RT_01")
        await service.create_customer(name="Ani", address="RT 01")
        await service.create_customer(name="Toko 100%", address="Pasar")

        assert [c.name for c in await service.list_customers("rt_01")] == ["Budi"]
        assert [c.name for c in await service.list_customers("%")] == ["Toko 100%"]
        assert await service.list_customers("\\") == []
