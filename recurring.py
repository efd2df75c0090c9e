"""
Recurring transaction scheduling.

A recurring transaction is a "master" row with ``is_recurring`` set, a
``recurrence_period`` and a ``next_due_date``. Whenever the schedule is
processed, every period that has come due (up to and including today) is
turned into an ordinary auto-generated transaction and the master's due
date moves past today.
"""

from datetime import date, timedelta

import structlog
from dateutil.relativedelta import relativedelta

log = structlog.get_logger(__name__)

RECURRENCE_PERIODS = ("daily", "weekly", "monthly", "yearly")

# Unknown periods push the due date far enough out to end the catch-up loop.
RUNAWAY_GUARD_YEARS = 100


def advance(d, period):
    if period == "daily":
        return d + timedelta(days=1)
    if period == "weekly":
        return d + timedelta(weeks=1)
    if period == "monthly":
        return d + relativedelta(months=1)
    if period == "yearly":
        return d + relativedelta(years=1)
    return d + relativedelta(years=RUNAWAY_GUARD_YEARS)


def first_due_date(start, period):
    """Due date of the first repeat of a transaction dated ``start``."""
    if period not in RECURRENCE_PERIODS:
        return None
    return advance(start, period)


def materialize(transaction, today):
    """
    Catch a single master transaction up to ``today``.

    Returns ``(instances, next_due_date)``. ``instances`` is empty when the
    transaction is not recurring or not yet due, in which case the due date
    is returned unchanged.
    """
    due = transaction.get('next_due_date')
    if not transaction.get('is_recurring') or due is None or due > today:
        return [], due

    period = transaction.get('recurrence_period')
    instances = []
    while due <= today:
        instances.append({
            'merchant': transaction['merchant'],
            'amount': transaction['amount'],
            'category': transaction['category'],
            'date': due,
            'is_recurring': False,
            'recurrence_period': None,
            'next_due_date': None,
            'is_auto_generated': True,
        })
        due = advance(due, period)
    return instances, due


def materialize_all(transactions, today):
    instances = []
    due_dates = {}
    for t in transactions:
        generated, due = materialize(t, today)
        if generated:
            instances.extend(generated)
            due_dates[t['id']] = due
    return instances, due_dates


def process_recurring(cur, user_id, today=None):
    """Write out every due occurrence for one user. The caller commits."""
    today = today or date.today()
    cur.execute(
        "SELECT id, date, merchant, amount, category, is_recurring, recurrence_period, next_due_date "
        "FROM transactions WHERE user_id=%s AND is_recurring=1 AND next_due_date <= %s",
        (user_id, today)
    )
    masters = [
        {**row, 'amount': float(row['amount'])}
        for row in cur.fetchall()
    ]
    instances, due_dates = materialize_all(masters, today)
    if not instances:
        return 0

    cur.executemany(
        "INSERT INTO transactions (user_id, date, merchant, amount, category, is_recurring, is_auto_generated) "
        "VALUES (%s, %s, %s, %s, %s, 0, 1)",
        [(user_id, t['date'], t['merchant'], t['amount'], t['category']) for t in instances]
    )
    for master_id, due in due_dates.items():
        cur.execute(
            "UPDATE transactions SET next_due_date=%s WHERE id=%s AND user_id=%s",
            (due, master_id, user_id)
        )
    log.info("recurring_materialized", user_id=user_id, created=len(instances), masters=len(due_dates))
    return len(instances)
