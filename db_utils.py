"""Row loaders shared across blueprints. All take an open dictionary cursor."""

from finance import SAVINGS_CATEGORY

TRANSACTION_COLUMNS = (
    "id, date, merchant, amount, category, is_recurring, recurrence_period, next_due_date, is_auto_generated"
)


def transaction_from_row(row):
    return {
        "id": row['id'],
        "date": row['date'],
        "merchant": row['merchant'],
        "amount": float(row['amount']),
        "category": row['category'],
        "is_recurring": bool(row.get('is_recurring')),
        "recurrence_period": row.get('recurrence_period'),
        "next_due_date": row.get('next_due_date'),
        "is_auto_generated": bool(row.get('is_auto_generated')),
    }


def fetch_transactions(cur, user_id):
    cur.execute(
        f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE user_id=%s ORDER BY date DESC, id DESC",
        (user_id,)
    )
    return [transaction_from_row(row) for row in cur.fetchall()]


def fetch_transaction(cur, user_id, transaction_id):
    cur.execute(
        f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE id=%s AND user_id=%s",
        (transaction_id, user_id)
    )
    row = cur.fetchone()
    return transaction_from_row(row) if row else None


def insert_transactions(cur, user_id, transactions):
    cur.executemany(
        "INSERT INTO transactions (user_id, date, merchant, amount, category, is_recurring, recurrence_period, "
        "next_due_date, is_auto_generated) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
        [
            (user_id, t['date'], t['merchant'], t['amount'], t['category'],
             int(bool(t.get('is_recurring'))), t.get('recurrence_period'), t.get('next_due_date'),
             int(bool(t.get('is_auto_generated'))))
            for t in transactions
        ]
    )


def fetch_budgets(cur, user_id):
    cur.execute("SELECT id, category, target FROM budgets WHERE user_id=%s ORDER BY category", (user_id,))
    return [
        {"id": row['id'], "category": row['category'], "target": float(row['target'])}
        for row in cur.fetchall()
    ]


def fetch_goals(cur, user_id):
    cur.execute(
        "SELECT id, name, target_amount, allocation FROM goals WHERE user_id=%s ORDER BY id",
        (user_id,)
    )
    return [
        {"id": row['id'], "name": row['name'], "target_amount": float(row['target_amount']),
         "allocation": float(row['allocation'])}
        for row in cur.fetchall()
    ]


def fetch_savings(cur, user_id):
    cur.execute(
        "SELECT COALESCE(SUM(ABS(amount)), 0) AS total FROM transactions WHERE user_id=%s AND category=%s",
        (user_id, SAVINGS_CATEGORY)
    )
    return float(cur.fetchone()['total'])
