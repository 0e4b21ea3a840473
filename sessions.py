"""Daily cash session reconciliation.

A session is every transaction sharing one calendar date. Its pieces are
joined by value, not by key: static income sources by exact description,
hourly staff rows by the employee name prefix and payment breakdown rows by
the reserved category plus a fixed description literal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional

from csv_utils import format_decimal, parse_optional_amount
from metrics import ZERO, caja_metrics, parse_hours
from models import Category, TransactionType
from schemas import EmployeeRecord, TransactionRecord
from services import EmployeeService, TransactionService, new_id

logger = logging.getLogger(__name__)

STATIC_INCOME_SOURCES: tuple[str, ...] = (
    "Barra 1",
    "Barra 2",
    "Barra 3",
    "Barra 4",
    "Restaurante",
    "VIP",
    "Tickets",
    "Puerta",
    "Vapers",
    "Shishas",
)

PAYMENT_DESCRIPTIONS: dict[str, str] = {
    "cash": "Cobro: Efectivo",
    "card": "Cobro: Tarjeta",
    "transfer": "Cobro: Transferencia",
}
PAYMENT_FIELDS: tuple[str, ...] = tuple(PAYMENT_DESCRIPTIONS)


@dataclass(frozen=True)
class SessionSummary:
    total_income: Decimal
    direct_expenses: Decimal
    staff_cost: Decimal
    net: Decimal


@dataclass(frozen=True)
class SessionHeader:
    date: date
    title: str


@dataclass(frozen=True)
class HourlyStaffEntry:
    employee_id: str
    name: str
    hourly_cost: Decimal
    hours: Decimal
    amount: Decimal
    transaction_id: Optional[str]


@dataclass
class PaymentBreakdown:
    """How a session's income was collected.

    ``apply`` refuses negative values and any edit that would push the three
    fields above the session income; the rejected value is dropped and the
    old one stays.
    """

    total_income: Decimal
    cash: Optional[Decimal] = None
    card: Optional[Decimal] = None
    transfer: Optional[Decimal] = None

    def value(self, field_name: str) -> Decimal:
        return getattr(self, field_name) or ZERO

    @property
    def total(self) -> Decimal:
        return sum((self.value(f) for f in PAYMENT_FIELDS), ZERO)

    @property
    def difference(self) -> Decimal:
        return self.total_income - self.total

    def apply(self, field_name: str, raw_value: object) -> bool:
        if field_name not in PAYMENT_FIELDS:
            raise ValueError(f"Unknown payment field: {field_name}")
        new_value = parse_optional_amount(raw_value)
        if new_value is not None and new_value < 0:
            logger.debug(f"payment_rejected: field={field_name} value={new_value} negative")
            return False
        others = sum(
            (self.value(f) for f in PAYMENT_FIELDS if f != field_name), ZERO
        )
        if others + (new_value or ZERO) > self.total_income:
            logger.debug(
                f"payment_rejected: field={field_name} value={new_value} "
                f"income={self.total_income}"
            )
            return False
        setattr(self, field_name, new_value)
        return True


def staff_description(name: str, hours: Decimal) -> str:
    return f"{name} ({format_decimal(hours)}h)"


def _is_static_income(txn: TransactionRecord, source: str) -> bool:
    return (
        txn.description == source
        and txn.type == TransactionType.income
        and txn.category == Category.venta_diaria
    )


class CashSessionService:
    def __init__(
        self, transactions: TransactionService, employees: EmployeeService
    ) -> None:
        self.transactions = transactions
        self.employees = employees

    def transactions_for(self, day: date) -> list[TransactionRecord]:
        return self.transactions.for_date(day)

    def summary(self, day: date) -> SessionSummary:
        rows = self.transactions_for(day)
        income = sum(
            (
                t.amount
                for t in rows
                if t.type == TransactionType.income
                and t.category == Category.venta_diaria
            ),
            ZERO,
        )
        direct = sum(
            (
                t.amount
                for t in rows
                if t.type == TransactionType.expense
                and t.category == Category.gasto_caja
            ),
            ZERO,
        )
        staff = sum(
            (t.amount for t in rows if t.category == Category.personal_horas), ZERO
        )
        return SessionSummary(
            total_income=income,
            direct_expenses=direct,
            staff_cost=staff,
            net=income - direct - staff,
        )

    # Incomes

    def _find_income(self, day: date, source: str) -> Optional[TransactionRecord]:
        for txn in self.transactions_for(day):
            if _is_static_income(txn, source):
                return txn
        return None

    def income_values(self, day: date) -> dict[str, Decimal]:
        values: dict[str, Decimal] = {}
        for source in STATIC_INCOME_SOURCES:
            existing = self._find_income(day, source)
            values[source] = existing.amount if existing else ZERO
        return values

    def save_incomes(self, day: date, values: Mapping[str, object]) -> None:
        """Write the static income sources one by one.

        Each source re-reads the session before writing, so an id is never
        reused from a stale list.
        """
        self.transactions.require_connection()
        for source in STATIC_INCOME_SOURCES:
            amount = parse_optional_amount(values.get(source))
            existing = self._find_income(day, source)
            if amount is not None and amount > 0:
                self.transactions.upsert(
                    TransactionRecord(
                        id=existing.id if existing else new_id(),
                        date=day,
                        amount=amount,
                        description=source,
                        category=Category.venta_diaria,
                        type=TransactionType.income,
                    )
                )
            elif existing is not None and (amount is None or amount == 0):
                self.transactions.delete(existing.id)

    # Direct expenses

    def direct_expenses(self, day: date) -> list[TransactionRecord]:
        return [
            t
            for t in self.transactions_for(day)
            if t.category == Category.gasto_caja and t.type == TransactionType.expense
        ]

    def add_expense(
        self, day: date, description: str, amount: object
    ) -> Optional[TransactionRecord]:
        self.transactions.require_connection()
        value = parse_optional_amount(amount)
        description = (description or "").strip()
        if not description or value is None or value <= 0:
            return None
        record = TransactionRecord(
            id=new_id(),
            date=day,
            amount=value,
            description=description,
            category=Category.gasto_caja,
            type=TransactionType.expense,
        )
        self.transactions.upsert(record)
        return record

    def remove_transaction(self, transaction_id: str) -> list[TransactionRecord]:
        return self.transactions.delete(transaction_id)

    # Hourly staff

    def _find_staff_row(
        self, day: date, employee: EmployeeRecord
    ) -> Optional[TransactionRecord]:
        for txn in self.transactions_for(day):
            if txn.category == Category.personal_horas and txn.description.startswith(
                employee.name
            ):
                return txn
        return None

    def hourly_staff(self, day: date) -> list[HourlyStaffEntry]:
        entries: list[HourlyStaffEntry] = []
        for employee in self.employees.hourly():
            row = self._find_staff_row(day, employee)
            if row is None:
                hours = amount = ZERO
            else:
                hours = parse_hours(row.description, row.amount, employee.cost)
                amount = row.amount
            entries.append(
                HourlyStaffEntry(
                    employee_id=employee.id,
                    name=employee.name,
                    hourly_cost=employee.cost,
                    hours=hours,
                    amount=amount,
                    transaction_id=row.id if row else None,
                )
            )
        return entries

    def set_hourly_hours(
        self, day: date, employee: EmployeeRecord, hours_value: object
    ) -> Optional[TransactionRecord]:
        self.transactions.require_connection()
        hours = parse_optional_amount(hours_value)
        existing = self._find_staff_row(day, employee)
        if hours is not None and hours > 0:
            record = TransactionRecord(
                id=existing.id if existing else new_id(),
                date=day,
                amount=hours * employee.cost,
                description=staff_description(employee.name, hours),
                category=Category.personal_horas,
                type=TransactionType.expense,
            )
            self.transactions.upsert(record)
            return record
        if existing is not None:
            self.transactions.delete(existing.id)
        return None

    # Payment breakdown

    def _find_payment_row(
        self, day: date, description: str
    ) -> Optional[TransactionRecord]:
        for txn in self.transactions_for(day):
            if txn.description == description and txn.category == Category.desglose_pago:
                return txn
        return None

    def payment_breakdown(self, day: date) -> PaymentBreakdown:
        breakdown = PaymentBreakdown(total_income=self.summary(day).total_income)
        for field_name, description in PAYMENT_DESCRIPTIONS.items():
            row = self._find_payment_row(day, description)
            setattr(breakdown, field_name, row.amount if row else None)
        return breakdown

    def save_payments(self, day: date, breakdown: PaymentBreakdown) -> None:
        self.transactions.require_connection()
        for field_name, description in PAYMENT_DESCRIPTIONS.items():
            value = getattr(breakdown, field_name)
            existing = self._find_payment_row(day, description)
            if value is not None and value > 0:
                self.transactions.upsert(
                    TransactionRecord(
                        id=existing.id if existing else new_id(),
                        date=day,
                        amount=value,
                        description=description,
                        category=Category.desglose_pago,
                        type=TransactionType.income,
                    )
                )
            elif existing is not None:
                self.transactions.delete(existing.id)

    # Whole sessions

    def create_session(self, day: date, title: str) -> Optional[TransactionRecord]:
        self.transactions.require_connection()
        title = (title or "").strip()
        if not title:
            return None
        record = TransactionRecord(
            id=new_id(),
            date=day,
            amount=ZERO,
            description=title,
            category=Category.venta_diaria,
            type=TransactionType.income,
        )
        self.transactions.upsert(record)
        return record

    def title_for(self, day: date, rows: Optional[list[TransactionRecord]] = None) -> str:
        rows = rows if rows is not None else self.transactions_for(day)
        for txn in rows:
            if (
                txn.category == Category.venta_diaria
                and txn.description not in STATIC_INCOME_SOURCES
            ):
                return txn.description
        return f"Sesión {day.strftime('%d/%m')}"

    def list_sessions(self) -> list[SessionHeader]:
        all_rows = self.transactions.list_all()
        headers = []
        for day in caja_metrics(all_rows).sorted_dates:
            rows = [t for t in all_rows if t.date == day]
            headers.append(SessionHeader(date=day, title=self.title_for(day, rows)))
        return headers

    def delete_session(self, day: date) -> list[TransactionRecord]:
        return self.transactions.delete_for_date(day)
