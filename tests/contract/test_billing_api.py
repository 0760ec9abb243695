"""Contract tests for the billing HTTP API."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.api.billing import get_change_feed, get_clock
from src.models.transaction import Transaction, TransactionDirection
from src.services import get_async_session
from src.services.snapshot_service import ChangeFeed


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
async def client(session_factory, clock, feed):
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_change_feed] = lambda: feed

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _create_customer(client, **overrides):
    payload = {"name": "Budi", "phone": "0812-3456-789", "initial_reading": 100}
    payload.update(overrides)
    response = await client.post("/api/customers", json=payload)
    assert response.status_code == 201
    return response.json()


async def _record(client, customer_id, reading, notify=False):
    return await client.post(
        "/api/readings",
        json={"customer_id": customer_id, "reading": reading, "notify": notify},
        headers={"X-Operator": "petugas"},
    )


class TestCustomers:
    async def test_create_and_list(self, client):
        await _create_customer(client, name="Budi", address="Dusun Kulon")
        await _create_customer(client, name="Ani", address="Dusun Wetan")

        response = await client.get("/api/customers")
        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Ani", "Budi"]

        response = await client.get("/api/customers", params={"search": "kulon"})
        assert [c["name"] for c in response.json()] == ["Budi"]

    async def test_update(self, client):
        customer = await _create_customer(client)

        response = await client.patch(
            f"/api/customers/{customer['id']}", json={"category": "business", "phone": None}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["category"] == "business"
        assert body["phone"] is None
        assert body["name"] == "Budi"

    async def test_empty_name(self, client):
        response = await client.post("/api/customers", json={"name": " "})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    async def test_unknown_customer(self, client):
        response = await client.patch("/api/customers/999", json={"name": "X"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"


class TestReadings:
    async def test_record_reading(self, client):
        customer = await _create_customer(client)

        response = await _record(client, customer["id"], 115, notify=True)

        assert response.status_code == 201
        body = response.json()
        assert body["bill"]["usage"] == 15
        assert Decimal(body["bill"]["usage_fee"]) == Decimal("22500")
        assert Decimal(body["bill"]["amount"]) == Decimal("29500")
        assert body["bill"]["is_paid"] is False
        assert body["arrears_count"] == 0
        assert Decimal(body["total_payable"]) == Decimal("29500")
        assert body["notice_link"].startswith("https://wa.me/628123456789?text=")

    async def test_arrears_carried(self, client, clock):
        customer = await _create_customer(client)
        await _record(client, customer["id"], 115)
        clock.set(2024, 2, 5, 9)

        body = (await _record(client, customer["id"], 130)).json()

        assert body["arrears_count"] == 1
        assert Decimal(body["arrears_total"]) == Decimal("29500")
        assert Decimal(body["total_payable"]) == Decimal("59000")

    async def test_no_notice_without_phone(self, client):
        customer = await _create_customer(client, phone=None)
        body = (await _record(client, customer["id"], 115, notify=True)).json()
        assert body["notice_link"] is None

    async def test_reading_below_previous(self, client):
        customer = await _create_customer(client)

        response = await _record(client, customer["id"], 90)

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert "previous reading (100)" in error["message"]

    async def test_preview(self, client):
        customer = await _create_customer(client)

        response = await client.post(
            "/api/readings/preview", json={"customer_id": customer["id"], "reading": 115}
        )

        assert response.status_code == 200
        assert Decimal(response.json()["amount"]) == Decimal("29500")
        bills = (await client.get(f"/api/customers/{customer['id']}/bills")).json()
        assert bills == []


class TestBills:
    async def test_mark_paid_and_unpaid(self, client, clock):
        customer = await _create_customer(client)
        bill = (await _record(client, customer["id"], 115)).json()["bill"]
        clock.set(2024, 1, 15, 9)

        paid = await client.post(f"/api/bills/{bill['id']}/paid")
        assert paid.status_code == 200
        assert paid.json()["is_paid"] is True
        assert Decimal(paid.json()["penalty"]) == Decimal("5000")
        assert Decimal(paid.json()["amount"]) == Decimal("34500")

        unpaid = await client.post(f"/api/bills/{bill['id']}/unpaid")
        assert unpaid.json()["is_paid"] is False
        assert Decimal(unpaid.json()["amount"]) == Decimal("29500")
        assert unpaid.json()["paid_at"] is None

    async def test_list_filters(self, client):
        customer = await _create_customer(client)
        bill = (await _record(client, customer["id"], 115)).json()["bill"]
        await client.post(f"/api/bills/{bill['id']}/paid")

        paid = (await client.get("/api/bills", params={"status": "paid"})).json()
        unpaid = (await client.get("/api/bills", params={"status": "unpaid"})).json()
        other = (await client.get("/api/bills", params={"period": "2023-12"})).json()

        assert [b["id"] for b in paid] == [bill["id"]]
        assert unpaid == []
        assert other == []

    async def test_unknown_bill(self, client):
        response = await client.post("/api/bills/999/paid")
        assert response.status_code == 404

    async def test_history(self, client, clock):
        customer = await _create_customer(client)
        bill = (await _record(client, customer["id"], 115)).json()["bill"]
        clock.set(2024, 1, 15, 9)
        await client.post(f"/api/bills/{bill['id']}/paid", headers={"X-Operator": "bendahara"})

        history = (await client.get(f"/api/bills/{bill['id']}/history")).json()

        assert [entry["action"] for entry in history] == ["create", "mark_paid"]
        assert history[0]["actor"] == "petugas"
        assert history[1]["actor"] == "bendahara"
        assert Decimal(history[1]["changes"]["after"]["amount"]) == Decimal("34500")
        assert history[1]["changes"]["before"]["is_paid"] is False

        missing = await client.get("/api/bills/999/history")
        assert missing.status_code == 404


class TestCashBook:
    async def test_ledger_scenario(self, client, clock):
        customer = await _create_customer(client)
        bill = (await _record(client, customer["id"], 115)).json()["bill"]
        await client.post(
            "/api/transactions",
            json={
                "direction": "in",
                "description": "Iuran anggota",
                "amount": "100000",
                "occurred_at": "2024-01-03T10:00:00+07:00",
            },
        )
        await client.post(
            "/api/transactions",
            json={
                "direction": "out",
                "description": "Perbaikan pipa",
                "amount": "40000",
                "occurred_at": "2024-01-20T10:00:00+07:00",
            },
        )
        clock.set(2024, 1, 15, 9)
        await client.post(f"/api/bills/{bill['id']}/paid")

        overview = (await client.get("/api/ledger", params={"period": "2024-01"})).json()
        assert Decimal(overview["period_summary"]["inflow"]) == Decimal("134500")
        assert Decimal(overview["period_summary"]["outflow"]) == Decimal("40000")
        assert Decimal(overview["period_summary"]["balance"]) == Decimal("94500")

        book = (await client.get("/api/transactions", params={"period": "2024-01"})).json()
        assert book["total_pages"] == 1
        assert [entry["is_manual"] for entry in book["entries"]] == [True, False, True]

        periods = (await client.get("/api/ledger/periods")).json()
        assert [p["period"] for p in periods] == ["2024-01"]

    async def test_invalid_amount(self, client):
        response = await client.post(
            "/api/transactions", json={"direction": "in", "description": "Iuran", "amount": "0"}
        )
        assert response.status_code == 422

    async def test_delete(self, client):
        created = await client.post(
            "/api/transactions",
            json={"direction": "out", "description": "ATK", "amount": "2000"},
            headers={"X-Operator": "bendahara"},
        )
        assert created.status_code == 201

        response = await client.delete(f"/api/transactions/{created.json()['id']}")

        assert response.status_code == 204
        book = (await client.get("/api/transactions")).json()
        assert book["entries"] == []

    async def test_delete_synthesized_row_conflicts(self, client, session_factory):
        async with session_factory() as session:
            legacy = Transaction(
                direction=TransactionDirection.INFLOW,
                description="Imported bill payment",
                amount=Decimal("29500"),
                occurred_at=datetime(2024, 1, 3, tzinfo=timezone.utc),
                is_manual=False,
            )
            session.add(legacy)
            await session.commit()
            legacy_id = legacy.id

        response = await client.delete(f"/api/transactions/{legacy_id}")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "protected_transaction"


class TestDashboardAndReports:
    async def test_dashboard(self, client):
        customer = await _create_customer(client)
        await _record(client, customer["id"], 115)

        body = (await client.get("/api/dashboard")).json()

        assert body["period"] == "2024-01"
        assert body["customer_count"] == 1
        assert body["usage_this_period"] == 15
        assert body["unpaid_count"] == 1

    async def test_report_download(self, client):
        customer = await _create_customer(client)
        await _record(client, customer["id"], 115)

        response = await client.get("/api/reports/2024-01")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "laporan-kas-2024-01.csv" in response.headers["content-disposition"]
        assert response.text.splitlines()[0] == "Laporan Buku Kas"
        assert response.text.splitlines()[-1] == "Budi,100,115,29500,0,0,Belum Bayar"

    async def test_report_invalid_period(self, client):
        response = await client.get("/api/reports/2024-13")
        assert response.status_code == 422

    async def test_health(self, client):
        assert (await client.get("/health")).json() == {"status": "ok"}


class TestChangeFeed:
    async def test_mutations_publish_snapshots(self, client, feed):
        snapshots = []
        feed.subscribe(snapshots.append)

        customer = await _create_customer(client)
        await _record(client, customer["id"], 115)

        assert len(snapshots) == 2
        assert len(snapshots[-1].bills) == 1
