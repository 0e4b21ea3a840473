from datetime import date, datetime
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from config import get_settings
from models import TransactionType
from periods import Period
from schemas import FixedExpenseRecord, TransactionRecord


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def is_postable(item: FixedExpenseRecord) -> bool:
    return (
        item.is_recurring
        and item.default_amount is not None
        and item.default_amount > 0
    )


def already_posted(
    item: FixedExpenseRecord, month_transactions: Iterable[TransactionRecord]
) -> bool:
    # Fixed expense items carry no foreign key; the posted row is matched by
    # label and category like every other value-based join.
    return any(
        t.type == TransactionType.expense
        and t.description == item.name
        and t.category == item.default_category
        for t in month_transactions
    )


def pending_recurring_postings(
    items: Sequence[FixedExpenseRecord],
    month_transactions: Sequence[TransactionRecord],
    month: Period,
) -> list[FixedExpenseRecord]:
    in_month = [t for t in month_transactions if month.contains(t.date)]
    return [
        item
        for item in items
        if is_postable(item) and not already_posted(item, in_month)
    ]
