import csv
import re
from io import StringIO
from typing import Optional, Sequence

from models import Transaction

EXPORT_HEADER = [
    "ID",
    "Name",
    "Amount",
    "Description",
    "Category",
    "Type",
    "Date",
    "Created At",
]

# Cells a spreadsheet would evaluate or turn into a link/command when opened.
_FORMULA_PREFIXES = ("=", "+", "-", "@")
_RISKY_TEXT = re.compile(r"^(cmd|powershell|bash|sh)\b|^https?://", re.IGNORECASE)


def sanitize_csv_value(value: Optional[str]) -> str:
    """Return ``value`` trimmed, tab-prefixed when it could run as a formula."""
    text = (value or "").strip()
    if not text:
        return ""
    if text.startswith(_FORMULA_PREFIXES) or _RISKY_TEXT.match(text):
        return "\t" + text
    return text


def export_transactions(transactions: Sequence[Transaction]) -> str:
    """Render transactions as RFC 4180 CSV (CRLF rows, quoted where needed)."""
    output = StringIO()
    writer = csv.writer(output, lineterminator="\r\n")
    writer.writerow(EXPORT_HEADER)
    for txn in transactions:
        writer.writerow(
            [
                txn.id,
                sanitize_csv_value(txn.name),
                f"{txn.amount_cents / 100:.2f}",
                sanitize_csv_value(txn.description),
                sanitize_csv_value(txn.category),
                txn.type.value,
                txn.date.isoformat(),
                txn.created_at.isoformat(),
            ]
        )
    return output.getvalue()
