from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel

from metrics import (
    CajaMetrics,
    RankedAmount,
    caja_metrics,
    calculate_summary,
    clean_transactions,
    employee_month_stats,
    expense_breakdown,
    personal_stats,
    rank_expenses,
    search_transactions,
    section_summary,
    transactions_for_section,
    transactions_in_period,
)
from models import EmployeeType, Section, TransactionType
from periods import Period
from recurrence import pending_recurring_postings
from schemas import (
    EmployeeIn,
    EmployeeRecord,
    FixedExpenseIn,
    FixedExpenseRecord,
    SupplierIn,
    SupplierRecord,
    TransactionIn,
    TransactionRecord,
)
from storage import NotConnectedError, Store, StoreOperationError, table_name

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


def new_id() -> str:
    return str(uuid.uuid4())


class ListCache:
    """Full-table lists keyed by table name.

    Entries only live until the next successful write to the same table; the
    store stays the source of truth.
    """

    def __init__(self) -> None:
        self._lists: dict[str, list] = {}

    def get(self, key: str) -> Optional[list]:
        return self._lists.get(key)

    def put(self, key: str, items: list) -> None:
        self._lists[key] = list(items)

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._lists.clear()
        else:
            self._lists.pop(key, None)


class RecordService(Generic[R]):
    record_type: type[R]
    label = "Record"

    def __init__(self, store: Store, cache: Optional[ListCache] = None) -> None:
        self.store = store
        self.cache = cache if cache is not None else ListCache()
        self.key = table_name(self.record_type)

    def list_all(self) -> list[R]:
        cached = self.cache.get(self.key)
        if cached is not None:
            return list(cached)
        try:
            items = self.store.list(self.record_type)
        except NotConnectedError:
            logger.debug(f"list_skipped: table={self.key} reason=not_connected")
            return []
        except Exception:
            logger.exception(f"list_failed: table={self.key}")
            return []
        self.cache.put(self.key, items)
        return list(items)

    def get(self, record_id: str) -> R:
        for item in self.list_all():
            if item.id == record_id:
                return item
        raise ValueError(f"{self.label} not found")

    def fresh_list(self) -> list[R]:
        """Read straight from the store for a write path; failures propagate."""
        try:
            items = self.store.list(self.record_type)
        except NotConnectedError:
            raise
        except Exception as exc:
            logger.exception(f"list_failed: table={self.key}")
            raise StoreOperationError(f"Failed to list {self.key}") from exc
        self.cache.put(self.key, items)
        return list(items)

    def require_connection(self) -> None:
        if not self.store.is_connected():
            raise NotConnectedError()

    def upsert(self, record: R) -> list[R]:
        self._write("upsert", lambda: self.store.upsert(record))
        return self.list_all()

    def delete(self, record_id: str) -> list[R]:
        self._write("delete", lambda: self.store.delete(self.record_type, record_id))
        return self.list_all()

    def delete_many(self, ids: Iterable[str]) -> list[R]:
        id_list = list(ids)
        self._write(
            "delete_many", lambda: self.store.delete_many(self.record_type, id_list)
        )
        return self.list_all()

    def _write(self, action: str, operation: Callable[[], None]) -> None:
        try:
            operation()
        except NotConnectedError:
            raise
        except Exception as exc:
            logger.exception(f"{action}_failed: table={self.key}")
            raise StoreOperationError(f"Failed to {action} {self.key}") from exc
        self.cache.invalidate(self.key)
        logger.info(f"{action}: table={self.key}")


class TransactionService(RecordService[TransactionRecord]):
    record_type = TransactionRecord
    label = "Transaction"

    def create(self, data: TransactionIn) -> list[TransactionRecord]:
        record = TransactionRecord(
            id=data.id or new_id(),
            date=data.date,
            amount=data.amount,
            description=data.description.strip(),
            category=data.category,
            type=data.type,
            supplier=(data.supplier or "").strip() or None,
        )
        return self.upsert(record)

    def for_date(self, day: date) -> list[TransactionRecord]:
        return [t for t in self.list_all() if t.date == day]

    def in_period(self, period: Period) -> list[TransactionRecord]:
        return transactions_in_period(self.list_all(), period)

    def search(self, query: Optional[str]) -> list[TransactionRecord]:
        return search_transactions(self.list_all(), query)

    def delete_for_date(self, day: date) -> list[TransactionRecord]:
        doomed = [t.id for t in self.fresh_list() if t.date == day]
        if not doomed:
            return self.list_all()
        logger.info(f"delete_for_date: date={day.isoformat()} count={len(doomed)}")
        return self.delete_many(doomed)


class EmployeeService(RecordService[EmployeeRecord]):
    record_type = EmployeeRecord
    label = "Employee"

    def save(self, data: EmployeeIn) -> list[EmployeeRecord]:
        record = EmployeeRecord(
            id=data.id or new_id(),
            name=data.name.strip(),
            type=data.type,
            cost=data.cost,
            extras=data.extras if data.type == EmployeeType.fixed else None,
            active=data.active,
        )
        return self.upsert(record)

    def hourly(self) -> list[EmployeeRecord]:
        return [e for e in self.list_all() if e.type == EmployeeType.hourly]


class SupplierService(RecordService[SupplierRecord]):
    record_type = SupplierRecord
    label = "Supplier"

    def save(self, data: SupplierIn) -> list[SupplierRecord]:
        return self.upsert(SupplierRecord(id=data.id or new_id(), name=data.name.strip()))


class FixedExpenseService(RecordService[FixedExpenseRecord]):
    record_type = FixedExpenseRecord
    label = "Fixed expense"

    def save(self, data: FixedExpenseIn) -> list[FixedExpenseRecord]:
        record = FixedExpenseRecord(
            id=data.id or new_id(),
            name=data.name.strip(),
            default_category=data.default_category,
            default_amount=data.default_amount,
            is_recurring=data.is_recurring,
        )
        return self.upsert(record)

    def post_recurring(self, month: Period, transactions: TransactionService) -> int:
        """Post this month's recurring structural costs that are still missing."""
        pending = pending_recurring_postings(
            self.fresh_list(),
            transactions_in_period(transactions.fresh_list(), month),
            month,
        )
        for item in pending:
            transactions.upsert(
                TransactionRecord(
                    id=new_id(),
                    date=month.start,
                    amount=item.default_amount,
                    description=item.name,
                    category=item.default_category,
                    type=TransactionType.expense,
                )
            )
        if pending:
            logger.info(f"post_recurring: month={month.slug} posted={len(pending)}")
        return len(pending)


class DashboardService:
    def __init__(
        self, transactions: TransactionService, employees: EmployeeService
    ) -> None:
        self.transactions = transactions
        self.employees = employees

    def monthly(self, month: Period) -> dict[str, object]:
        month_data = transactions_in_period(
            clean_transactions(self.transactions.list_all()), month
        )
        summary = calculate_summary(month_data)
        return {
            "month": month.slug,
            "summary": summary,
            "breakdown": expense_breakdown(month_data, summary.total_income),
        }

    def section_view(
        self, section: Section, *, year: Optional[Period] = None
    ) -> dict[str, object]:
        items = transactions_for_section(
            self.transactions.list_all(), section, year=year
        )
        return {
            "section": section.value,
            "summary": section_summary(items),
            "transactions": items,
        }

    def supplier_ranking(self) -> list[RankedAmount]:
        items = transactions_for_section(
            self.transactions.list_all(), Section.proveedores
        )
        return rank_expenses(items, "supplier")

    def concept_ranking(self) -> list[RankedAmount]:
        items = transactions_for_section(
            self.transactions.list_all(), Section.estructura
        )
        return rank_expenses(items, "description")

    def annual(self, year: Period) -> dict[str, object]:
        items = transactions_for_section(
            self.transactions.list_all(), Section.anual, year=year
        )
        return {"year": year.slug, "summary": calculate_summary(items), "transactions": items}

    def caja(self) -> CajaMetrics:
        return caja_metrics(self.transactions.list_all())

    def personal(self, month: Period) -> dict[str, object]:
        employees = self.employees.list_all()
        month_data = transactions_in_period(
            clean_transactions(self.transactions.list_all()), month
        )
        return {
            "month": month.slug,
            "stats": personal_stats(employees, month_data),
            "employees": [employee_month_stats(e, month_data) for e in employees],
        }


@dataclass
class ServiceSet:
    transactions: TransactionService
    employees: EmployeeService
    suppliers: SupplierService
    fixed_expenses: FixedExpenseService
    dashboard: DashboardService


def build_services(store: Store, cache: Optional[ListCache] = None) -> ServiceSet:
    cache = cache if cache is not None else ListCache()
    transactions = TransactionService(store, cache)
    employees = EmployeeService(store, cache)
    return ServiceSet(
        transactions=transactions,
        employees=employees,
        suppliers=SupplierService(store, cache),
        fixed_expenses=FixedExpenseService(store, cache),
        dashboard=DashboardService(transactions, employees),
    )
