import csv
import io
import math
from datetime import datetime

import structlog

from finance import normalize_category

log = structlog.get_logger(__name__)

EXPORT_HEADERS = ['ID', 'Date', 'Merchant', 'Amount', 'Category']

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d")


def parse_date(value):
    value = (value or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_transactions_csv(text):
    """
    Parse ``date,merchant,amount[,category]`` rows into transaction dicts.

    The first row is a header. Rows that are too short, have no
    merchant, or carry a bad amount or date are skipped.
    """
    reader = csv.reader(io.StringIO(text))
    next(reader, None)

    transactions = []
    for line_no, columns in enumerate(reader, start=2):
        if len(columns) < 3:
            continue
        date_str, merchant, amount_str = columns[:3]
        category = columns[3] if len(columns) > 3 else ''

        merchant = merchant.strip()
        if not merchant:
            log.warning("csv_row_skipped", line=line_no, reason="missing merchant")
            continue

        try:
            amount = float(amount_str.strip())
        except ValueError:
            log.warning("csv_row_skipped", line=line_no, reason="invalid amount")
            continue
        if not math.isfinite(amount):
            log.warning("csv_row_skipped", line=line_no, reason="invalid amount")
            continue

        tx_date = parse_date(date_str)
        if tx_date is None:
            log.warning("csv_row_skipped", line=line_no, reason="invalid date")
            continue

        transactions.append({
            'date': tx_date,
            'merchant': merchant,
            'amount': amount,
            'category': normalize_category(category) if category.strip() else 'Other',
        })
    return transactions


def transactions_to_csv(transactions):
    out = io.StringIO()
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(EXPORT_HEADERS)
    for t in transactions:
        writer.writerow([
            t['id'],
            t['date'].strftime('%Y-%m-%d'),
            t['merchant'],
            t['amount'],
            t['category'],
        ])
    return out.getvalue()
