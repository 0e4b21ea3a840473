from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine

from models import Category, EmployeeType, TransactionType
from periods import month_period
from schemas import EmployeeIn, TransactionIn
from services import build_services
from sessions import CashSessionService, PaymentBreakdown, staff_description
from storage import NotConnectedError, SQLStore

DAY = date(2025, 3, 1)


def _setup():
    engine = create_engine("sqlite:///:memory:")
    store = SQLStore(engine)
    store.initialize_schema()
    services = build_services(store)
    return services, CashSessionService(services.transactions, services.employees)


def _hourly_employee(services, name: str = "Ana", cost: str = "12.5"):
    services.employees.save(
        EmployeeIn(name=name, type=EmployeeType.hourly, cost=Decimal(cost))
    )
    return next(e for e in services.employees.list_all() if e.name == name)


def test_save_incomes_creates_one_row_per_positive_source():
    services, sessions = _setup()

    sessions.save_incomes(DAY, {"Barra 1": "120"})

    rows = services.transactions.for_date(DAY)
    assert len(rows) == 1
    row = rows[0]
    assert row.description == "Barra 1"
    assert row.amount == Decimal("120")
    assert row.category == Category.venta_diaria
    assert row.type == TransactionType.income
    assert sessions.summary(DAY).total_income == Decimal("120")


def test_save_incomes_updates_in_place_and_deletes_cleared_sources():
    services, sessions = _setup()
    sessions.save_incomes(DAY, {"Barra 1": "120", "VIP": "80"})
    first_id = next(
        t.id for t in services.transactions.for_date(DAY) if t.description == "Barra 1"
    )

    sessions.save_incomes(DAY, {"Barra 1": "150,5", "VIP": ""})

    rows = services.transactions.for_date(DAY)
    assert [(t.id, t.description, t.amount) for t in rows] == [
        (first_id, "Barra 1", Decimal("150.5"))
    ]
    assert sessions.income_values(DAY)["VIP"] == 0


def test_save_incomes_ignores_unparsable_input_for_new_sources():
    services, sessions = _setup()
    sessions.save_incomes(DAY, {"Barra 2": "abc", "Puerta": "0"})
    assert services.transactions.for_date(DAY) == []


def test_session_summary_nets_expenses_and_staff():
    services, sessions = _setup()
    employee = _hourly_employee(services)
    sessions.save_incomes(DAY, {"Barra 1": "300"})
    sessions.add_expense(DAY, "Hielo", "20")
    sessions.set_hourly_hours(DAY, employee, "4")

    summary = sessions.summary(DAY)
    assert summary.total_income == Decimal("300")
    assert summary.direct_expenses == Decimal("20")
    assert summary.staff_cost == Decimal("50")
    assert summary.net == Decimal("230")


def test_add_expense_requires_description_and_positive_amount():
    services, sessions = _setup()
    assert sessions.add_expense(DAY, "  ", "20") is None
    assert sessions.add_expense(DAY, "Hielo", "") is None
    assert sessions.add_expense(DAY, "Hielo", "-5") is None
    assert services.transactions.for_date(DAY) == []

    record = sessions.add_expense(DAY, "Hielo", "7.5")
    assert record is not None
    assert [t.description for t in sessions.direct_expenses(DAY)] == ["Hielo"]


def test_hourly_staff_cost_and_hours_label():
    services, sessions = _setup()
    employee = _hourly_employee(services)

    record = sessions.set_hourly_hours(DAY, employee, "4")

    assert record is not None
    assert record.amount == Decimal("50")
    assert record.description == "Ana (4h)"
    assert record.category == Category.personal_horas
    entry = sessions.hourly_staff(DAY)[0]
    assert entry.hours == Decimal("4")
    assert entry.amount == Decimal("50")


def test_hourly_staff_row_without_label_derives_hours():
    services, sessions = _setup()
    employee = _hourly_employee(services)
    services.transactions.create(
        TransactionIn(
            date=DAY,
            amount=Decimal("50"),
            description="Ana",
            category=Category.personal_horas,
            type=TransactionType.expense,
        )
    )

    assert sessions.hourly_staff(DAY)[0].hours == Decimal("4")


def test_hourly_staff_update_reuses_row_and_zero_removes_it():
    services, sessions = _setup()
    employee = _hourly_employee(services)
    first = sessions.set_hourly_hours(DAY, employee, "4")
    second = sessions.set_hourly_hours(DAY, employee, "6")

    assert second.id == first.id
    assert second.description == "Ana (6h)"
    assert len(services.transactions.for_date(DAY)) == 1

    assert sessions.set_hourly_hours(DAY, employee, "0") is None
    assert services.transactions.for_date(DAY) == []


def test_staff_description_uses_shortest_number():
    assert staff_description("Ana", Decimal("4.0")) == "Ana (4h)"
    assert staff_description("Ana", Decimal("2.50")) == "Ana (2.5h)"


def test_payment_breakdown_guard_rejects_excess():
    breakdown = PaymentBreakdown(total_income=Decimal("100"))

    assert breakdown.apply("cash", "60") is True
    assert breakdown.apply("card", "50") is False

    assert breakdown.cash == Decimal("60")
    assert breakdown.card is None
    assert breakdown.total == Decimal("60")
    assert breakdown.difference == Decimal("40")


def test_payment_breakdown_allows_exact_match_and_rejects_unknown_field():
    breakdown = PaymentBreakdown(total_income=Decimal("100"))
    assert breakdown.apply("cash", "60")
    assert breakdown.apply("card", "40")
    assert breakdown.difference == 0
    with pytest.raises(ValueError):
        breakdown.apply("cheque", "1")


def test_payment_rows_are_stored_outside_totals():
    services, sessions = _setup()
    sessions.save_incomes(DAY, {"Barra 1": "100"})
    breakdown = sessions.payment_breakdown(DAY)
    breakdown.apply("cash", "60")
    breakdown.apply("card", "40")
    sessions.save_payments(DAY, breakdown)

    stored = sessions.payment_breakdown(DAY)
    assert stored.cash == Decimal("60")
    assert stored.card == Decimal("40")
    assert stored.transfer is None
    assert sessions.summary(DAY).total_income == Decimal("100")
    month = services.dashboard.monthly(month_period("2025-03"))
    assert month["summary"].total_income == Decimal("100")

    stored.apply("card", "")
    sessions.save_payments(DAY, stored)
    descriptions = {t.description for t in services.transactions.for_date(DAY)}
    assert descriptions == {"Barra 1", "Cobro: Efectivo"}


def test_create_session_and_titles():
    services, sessions = _setup()
    assert sessions.create_session(DAY, "   ") is None

    sessions.create_session(DAY, "Fiesta de Carnaval")
    sessions.save_incomes(date(2025, 3, 8), {"Barra 1": "50"})

    headers = sessions.list_sessions()
    assert [(h.date, h.title) for h in headers] == [
        (date(2025, 3, 8), "Sesión 08/03"),
        (DAY, "Fiesta de Carnaval"),
    ]


def test_delete_session_removes_all_rows_for_date():
    services, sessions = _setup()
    employee = _hourly_employee(services)
    sessions.save_incomes(DAY, {"Barra 1": "100", "VIP": "50"})
    sessions.add_expense(DAY, "Hielo", "10")
    sessions.set_hourly_hours(DAY, employee, "2")
    sessions.save_incomes(date(2025, 3, 8), {"Barra 1": "70"})

    sessions.delete_session(DAY)

    assert services.transactions.for_date(DAY) == []
    assert len(services.transactions.for_date(date(2025, 3, 8))) == 1


def test_payment_breakdown_rejects_negative_values():
    breakdown = PaymentBreakdown(total_income=Decimal("100"))

    assert breakdown.apply("cash", "-50") is False
    assert breakdown.apply("card", "150") is False

    assert breakdown.cash is None
    assert breakdown.card is None
    assert breakdown.total == 0


def test_session_writes_fail_without_connection():
    services = build_services(SQLStore(None))
    sessions = CashSessionService(services.transactions, services.employees)

    with pytest.raises(NotConnectedError):
        sessions.save_incomes(DAY, {})
    with pytest.raises(NotConnectedError):
        sessions.save_payments(DAY, PaymentBreakdown(total_income=Decimal("0")))
    with pytest.raises(NotConnectedError):
        sessions.add_expense(DAY, "", None)
    with pytest.raises(NotConnectedError):
        sessions.delete_session(DAY)
