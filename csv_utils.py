import csv
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Optional, Sequence

from schemas import TransactionRecord

EXPORT_HEADER = ["ID", "Fecha", "Tipo", "Categoría", "Descripción", "Proveedor", "Monto"]


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    return value


def format_decimal(value: Decimal) -> str:
    """Shortest plain rendering: ``Decimal("50.00")`` -> ``"50"``, ``12.50`` -> ``"12.5"``."""
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return format(value.normalize(), "f")


def parse_amount(value: str) -> Decimal:
    clean = value.strip().replace("€", "").replace("$", "").replace(" ", "")
    clean = clean.replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    return amount


def parse_optional_amount(value: object) -> Optional[Decimal]:
    """Lenient form-field parsing: blank or unparsable input yields ``None``."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value).strip()
    if not text:
        return None
    try:
        return parse_amount(text)
    except ValueError:
        return None


def _quoted(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def export_transactions(transactions: Sequence[TransactionRecord]) -> str:
    output = StringIO()
    output.write(",".join(EXPORT_HEADER) + "\n")
    for txn in transactions:
        # The description column is always quoted, so it is written by hand.
        head = StringIO()
        csv.writer(head, lineterminator="").writerow(
            [txn.id, txn.date.isoformat(), txn.type.value, txn.category]
        )
        tail = StringIO()
        csv.writer(tail, lineterminator="").writerow(
            [sanitize_csv_value(txn.supplier or ""), format_decimal(txn.amount)]
        )
        description = _quoted(sanitize_csv_value(txn.description))
        output.write(f"{head.getvalue()},{description},{tail.getvalue()}\n")
    return output.getvalue()
