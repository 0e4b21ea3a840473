from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Literal, Optional, Sequence

from models import (
    CATEGORIES_BY_SECTION,
    Category,
    EmployeeType,
    Section,
    TransactionType,
    category_excluded_from_totals,
    in_section,
)
from periods import Period
from schemas import EmployeeRecord, TransactionRecord

ZERO = Decimal("0")
FALLBACK_GROUP = "Otros"
HOURS_PATTERN = re.compile(r"\(([\d.]+)h\)\s*$")


@dataclass(frozen=True)
class FinancialSummary:
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    net_balance: Decimal = ZERO


@dataclass(frozen=True)
class RankedAmount:
    name: str
    amount: Decimal


@dataclass(frozen=True)
class BreakdownItem:
    category: str
    amount: Decimal
    percentage: float


@dataclass(frozen=True)
class ExpenseBreakdown:
    items: list[BreakdownItem]
    total_expenses: Decimal


@dataclass(frozen=True)
class CajaMetrics:
    session_count: int
    accumulated_net: Decimal
    total_net: Decimal
    sorted_dates: list[date] = field(default_factory=list)


@dataclass(frozen=True)
class PersonalStats:
    total_employees: int
    monthly_fixed_cost: Decimal
    variable_cost: Decimal


@dataclass(frozen=True)
class EmployeeMonthStats:
    employee_id: str
    name: str
    type: EmployeeType
    hours: Decimal
    variable_cost: Decimal
    display_cost: Decimal


def calculate_summary(transactions: Iterable[TransactionRecord]) -> FinancialSummary:
    income = ZERO
    expense = ZERO
    for txn in transactions:
        if txn.type == TransactionType.income:
            income += txn.amount
        else:
            expense += txn.amount
    return FinancialSummary(
        total_income=income, total_expense=expense, net_balance=income - expense
    )


def clean_transactions(
    transactions: Iterable[TransactionRecord],
) -> list[TransactionRecord]:
    return [t for t in transactions if not category_excluded_from_totals(t.category)]


def transactions_in_period(
    transactions: Iterable[TransactionRecord], period: Period
) -> list[TransactionRecord]:
    return [t for t in transactions if period.contains(t.date)]


def transactions_for_section(
    transactions: Sequence[TransactionRecord],
    section: Section,
    *,
    year: Optional[Period] = None,
) -> list[TransactionRecord]:
    """Transactions shown by one dashboard view.

    The cash view also lists hourly staff and payment breakdown rows, so it
    works on the raw list; every other view starts from the clean list.
    """
    if section == Section.caja:
        return [
            t
            for t in transactions
            if in_section(t.category, Section.caja)
            or t.category == Category.personal_horas
            or t.category == Category.desglose_pago
        ]
    clean = clean_transactions(transactions)
    if section == Section.anual:
        if year is None:
            raise ValueError("Annual view requires a year")
        return transactions_in_period(clean, year)
    return [t for t in clean if in_section(t.category, section)]


def section_summary(transactions: Iterable[TransactionRecord]) -> FinancialSummary:
    return calculate_summary(clean_transactions(transactions))


def search_transactions(
    transactions: Iterable[TransactionRecord], query: Optional[str]
) -> list[TransactionRecord]:
    if not query or not query.strip():
        return list(transactions)
    needle = query.strip().lower()
    return [
        t
        for t in transactions
        if needle in t.description.lower()
        or needle in (t.supplier or "").lower()
        or needle in t.category.lower()
    ]


def rank_expenses(
    transactions: Iterable[TransactionRecord],
    key: Literal["supplier", "description"],
) -> list[RankedAmount]:
    totals: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        name = (txn.supplier if key == "supplier" else txn.description) or FALLBACK_GROUP
        totals[name] = totals.get(name, ZERO) + txn.amount
    ranked = [RankedAmount(name=name, amount=amount) for name, amount in totals.items()]
    # sorted() is stable, so equal totals keep first-seen order.
    return sorted(ranked, key=lambda item: item.amount, reverse=True)


def expense_breakdown(
    transactions: Iterable[TransactionRecord], total_income: Decimal
) -> ExpenseBreakdown:
    estructura = proveedores = personal_fijo = personal_horas = caja = ZERO
    total = ZERO
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        if in_section(txn.category, Section.estructura):
            estructura += txn.amount
        elif in_section(txn.category, Section.proveedores):
            proveedores += txn.amount
        elif txn.category == Category.personal_horas:
            personal_horas += txn.amount
        elif txn.category in (Category.nomina_fija, Category.seguridad_social):
            personal_fijo += txn.amount
        elif txn.category == Category.gasto_caja:
            caja += txn.amount
        total += txn.amount

    def pct(amount: Decimal) -> float:
        if total_income > 0:
            return float(amount / total_income * 100)
        return 0.0

    items = [
        BreakdownItem("Estructura", estructura, pct(estructura)),
        BreakdownItem("Proveedores", proveedores, pct(proveedores)),
        BreakdownItem("Personal Fijo", personal_fijo, pct(personal_fijo)),
        BreakdownItem("Personal Horas", personal_horas, pct(personal_horas)),
        BreakdownItem("Gastos Caja", caja, pct(caja)),
    ]
    return ExpenseBreakdown(items=items, total_expenses=total)


def caja_metrics(transactions: Sequence[TransactionRecord]) -> CajaMetrics:
    clean = clean_transactions(transactions)
    dates = {t.date for t in clean if in_section(t.category, Section.caja)}
    fixed_or_supplier = (
        *CATEGORIES_BY_SECTION[Section.estructura],
        *CATEGORIES_BY_SECTION[Section.proveedores],
        Category.nomina_fija,
    )
    variable = [t for t in clean if t.category not in fixed_or_supplier]
    return CajaMetrics(
        session_count=len(dates),
        accumulated_net=calculate_summary(variable).net_balance,
        total_net=calculate_summary(clean).net_balance,
        sorted_dates=sorted(dates, reverse=True),
    )


def parse_hours(description: str, amount: Decimal, cost: Decimal) -> Decimal:
    """Hours worked recorded in an hourly-staff row.

    Reads the trailing ``(Xh)`` label written when the row was saved; rows
    without it fall back to ``amount / cost``.
    """
    match = HOURS_PATTERN.search(description)
    if match:
        try:
            return Decimal(match.group(1))
        except ArithmeticError:
            pass
    if cost > 0:
        return amount / cost
    return ZERO


def personal_stats(
    employees: Sequence[EmployeeRecord], month_transactions: Iterable[TransactionRecord]
) -> PersonalStats:
    fixed_cost = sum(
        (e.cost + (e.extras or ZERO) for e in employees if e.type == EmployeeType.fixed),
        ZERO,
    )
    variable = sum(
        (t.amount for t in month_transactions if t.category == Category.personal_horas),
        ZERO,
    )
    return PersonalStats(
        total_employees=len(employees),
        monthly_fixed_cost=fixed_cost,
        variable_cost=variable,
    )


def employee_month_stats(
    employee: EmployeeRecord, month_transactions: Iterable[TransactionRecord]
) -> EmployeeMonthStats:
    rows = [
        t
        for t in month_transactions
        if t.category == Category.personal_horas and employee.name in t.description
    ]
    variable = sum((t.amount for t in rows), ZERO)
    hours = sum((parse_hours(t.description, t.amount, employee.cost) for t in rows), ZERO)
    if employee.type == EmployeeType.fixed:
        display = employee.cost + (employee.extras or ZERO)
    else:
        display = variable
    return EmployeeMonthStats(
        employee_id=employee.id,
        name=employee.name,
        type=employee.type,
        hours=hours,
        variable_cost=variable,
        display_cost=display,
    )
