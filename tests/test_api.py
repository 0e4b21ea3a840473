from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import main
from storage import SQLStore


def _memory_store() -> SQLStore:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = SQLStore(engine)
    store.initialize_schema()
    return store


@pytest.fixture
def client():
    store = _memory_store()
    main.app.dependency_overrides[main.get_active_store] = lambda: store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def disconnected_client():
    store = SQLStore(None)
    main.app.dependency_overrides[main.get_active_store] = lambda: store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def _amount(value) -> Decimal:
    return Decimal(str(value))


def test_create_and_list_transactions(client):
    resp = client.post(
        "/api/transactions",
        json={
            "date": "2025-03-01",
            "amount": "120",
            "description": "Barra 1",
            "category": "Venta Diaria",
            "type": "INCOME",
        },
    )
    assert resp.status_code == 200
    items = resp.json()
    assert len(items) == 1
    assert _amount(items[0]["amount"]) == Decimal("120")

    listed = client.get("/api/transactions", params={"section": "caja", "month": "2025-03"})
    assert [t["description"] for t in listed.json()] == ["Barra 1"]
    assert client.get("/api/transactions", params={"month": "2025-04"}).json() == []


def test_invalid_payloads_are_rejected(client):
    resp = client.post(
        "/api/transactions",
        json={"date": "2025-03-01", "amount": "-1", "description": "X", "type": "EXPENSE"},
    )
    assert resp.status_code == 422
    assert client.get("/api/views/bar").status_code == 400
    assert client.get("/api/dashboard", params={"month": "2025-13"}).status_code == 400


def test_disconnected_reads_are_empty_and_writes_fail(disconnected_client):
    assert disconnected_client.get("/api/transactions").json() == []
    assert disconnected_client.get("/api/status").json()["connected"] is False

    resp = disconnected_client.post("/api/suppliers", json={"name": "Frío SL"})
    assert resp.status_code == 503
    assert resp.json() == {"detail": "DB_NOT_CONNECTED"}
    assert disconnected_client.post("/admin/init-schema").status_code == 503


def test_disconnected_session_and_recurring_writes_fail(disconnected_client):
    day = "2025-03-01"
    for resp in (
        disconnected_client.delete(f"/api/sessions/{day}"),
        disconnected_client.post("/admin/post-recurring", params={"month": "2025-03"}),
        disconnected_client.put(f"/api/sessions/{day}/incomes", json={"values": {}}),
        disconnected_client.put(f"/api/sessions/{day}/payments", json={"cash": "10"}),
    ):
        assert resp.status_code == 503
        assert resp.json() == {"detail": "DB_NOT_CONNECTED"}


def test_negative_payment_cannot_make_room_for_excess(client):
    day = "2025-03-01"
    client.put(f"/api/sessions/{day}/incomes", json={"values": {"Barra 1": "100"}})

    resp = client.put(f"/api/sessions/{day}/payments", json={"cash": "-50", "card": "150"})

    assert resp.json()["rejected"] == ["cash", "card"]
    stored = client.get(f"/api/sessions/{day}").json()["payments"]
    assert stored["cash"] is None
    assert stored["card"] is None
    assert _amount(stored["difference"]) == Decimal("100")


def test_session_flow(client):
    day = "2025-03-01"
    client.post("/api/sessions", json={"date": day, "title": "Noche de apertura"})
    employee = client.post(
        "/api/employees", json={"name": "Ana", "type": "HOURLY", "cost": "12.5"}
    ).json()[0]

    incomes = client.put(f"/api/sessions/{day}/incomes", json={"values": {"Barra 1": "100"}})
    assert _amount(incomes.json()["incomes"]["Barra 1"]) == Decimal("100")

    staff = client.put(f"/api/sessions/{day}/staff/{employee['id']}", json={"hours": "4"})
    assert _amount(staff.json()["staff"][0]["amount"]) == Decimal("50")

    assert client.post(
        f"/api/sessions/{day}/expenses", json={"description": "Hielo", "amount": "10"}
    ).status_code == 200
    assert client.post(
        f"/api/sessions/{day}/expenses", json={"description": "", "amount": "10"}
    ).status_code == 400

    first = client.put(f"/api/sessions/{day}/payments", json={"cash": "60"})
    assert first.json()["rejected"] == []
    second = client.put(f"/api/sessions/{day}/payments", json={"card": "50"})
    assert second.json()["rejected"] == ["card"]
    assert _amount(second.json()["payments"]["difference"]) == Decimal("40")

    detail = client.get(f"/api/sessions/{day}").json()
    assert detail["title"] == "Noche de apertura"
    assert _amount(detail["summary"]["net"]) == Decimal("40")

    sessions = client.get("/api/sessions").json()
    assert [s["title"] for s in sessions] == ["Noche de apertura"]

    client.delete(f"/api/sessions/{day}")
    assert client.get("/api/transactions").json() == []
    assert len(client.get("/api/employees").json()) == 1


def test_unknown_employee_for_staff_hours(client):
    resp = client.put("/api/sessions/2025-03-01/staff/missing", json={"hours": "4"})
    assert resp.status_code == 404


def test_rankings_and_dashboard(client):
    for supplier, amount in (("A", "10"), ("B", "30"), ("A", "20"), ("C", "10")):
        client.post(
            "/api/transactions",
            json={
                "date": "2025-03-01",
                "amount": amount,
                "description": "Compra",
                "category": "Mercadería",
                "type": "EXPENSE",
                "supplier": supplier,
            },
        )
    ranking = client.get("/api/rankings/suppliers").json()
    assert [r["name"] for r in ranking] == ["A", "B", "C"]

    dashboard = client.get("/api/dashboard", params={"month": "2025-03"}).json()
    assert _amount(dashboard["summary"]["total_expense"]) == Decimal("70")
    assert dashboard["month"] == "2025-03"


def test_recurring_posting_endpoint(client):
    client.post(
        "/api/fixed-expenses",
        json={"name": "Local", "default_amount": "900", "is_recurring": True},
    )
    first = client.post("/admin/post-recurring", params={"month": "2025-03"}).json()
    second = client.post("/admin/post-recurring", params={"month": "2025-03"}).json()
    assert first == {"month": "2025-03", "posted": 1}
    assert second["posted"] == 0


def test_csv_export(client):
    client.post(
        "/api/transactions",
        json={
            "date": "2025-03-01",
            "amount": "12.50",
            "description": "Hielo",
            "category": "Mercadería",
            "type": "EXPENSE",
        },
    )
    resp = client.get("/transactions/export.csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.splitlines()
    assert lines[0] == "ID,Fecha,Tipo,Categoría,Descripción,Proveedor,Monto"
    assert lines[1].endswith(',2025-03-01,EXPENSE,Mercadería,"Hielo",,12.5')
