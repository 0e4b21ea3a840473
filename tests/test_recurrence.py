from datetime import date
from decimal import Decimal

from models import Category, TransactionType
from periods import month_period
from recurrence import already_posted, is_postable, pending_recurring_postings
from schemas import FixedExpenseRecord, TransactionRecord


def _item(name: str, amount=Decimal("900"), recurring: bool = True) -> FixedExpenseRecord:
    return FixedExpenseRecord(
        id=name,
        name=name,
        default_category=Category.alquiler,
        default_amount=amount,
        is_recurring=recurring,
    )


def _posted(name: str, day: date, category: Category = Category.alquiler) -> TransactionRecord:
    return TransactionRecord(
        id=f"{name}-{day}",
        date=day,
        amount=Decimal("900"),
        description=name,
        category=category,
        type=TransactionType.expense,
    )


def test_is_postable_needs_recurring_flag_and_amount():
    assert is_postable(_item("Local"))
    assert not is_postable(_item("Local", recurring=False))
    assert not is_postable(_item("Local", amount=None))
    assert not is_postable(_item("Local", amount=Decimal("0")))


def test_already_posted_matches_name_and_category():
    item = _item("Local")
    assert already_posted(item, [_posted("Local", date(2025, 3, 1))])
    assert not already_posted(item, [_posted("Local", date(2025, 3, 1), Category.marketing)])
    assert not already_posted(item, [_posted("Luz", date(2025, 3, 1))])


def test_pending_postings_only_look_at_target_month():
    items = [_item("Local"), _item("Leasing cafetera")]
    rows = [_posted("Local", date(2025, 3, 5)), _posted("Leasing cafetera", date(2025, 2, 1))]

    pending = pending_recurring_postings(items, rows, month_period("2025-03"))

    assert [item.name for item in pending] == ["Leasing cafetera"]
