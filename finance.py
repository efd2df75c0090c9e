"""
Money math shared by the dashboard, budgets, goals and AI views.

Transactions are plain dicts as read from the ``transactions`` table with
``amount`` converted to float. Amounts are signed: positive values are
expenses, negative values are income.
"""

from datetime import date, datetime

CATEGORIES = [
    "Food", "Textbooks", "Transportation", "Entertainment", "Utilities",
    "Rent", "Salary", "Savings Goal", "Other",
]

BUDGET_CATEGORIES = ["Food", "Textbooks", "Transportation", "Entertainment", "Utilities", "Rent"]

SAVINGS_CATEGORY = "Savings Goal"


def normalize_category(name):
    """Map free text onto one of CATEGORIES, falling back to Other."""
    wanted = (name or "").strip().lower()
    for category in CATEGORIES:
        if category.lower() == wanted:
            return category
    return "Other"


def signed_amount(amount, kind):
    amount = abs(float(amount))
    return -amount if kind == "income" else amount


def spending_by_category(transactions):
    spending = {}
    for t in transactions:
        if t['amount'] > 0:
            spending[t['category']] = spending.get(t['category'], 0.0) + t['amount']
    return spending


def totals(transactions):
    spending = sum(t['amount'] for t in transactions if t['amount'] > 0)
    income = sum(abs(t['amount']) for t in transactions if t['amount'] < 0)
    return {
        "spending": spending,
        "income": income,
        "net_flow": income - spending,
    }


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def monthly_flow(transactions):
    """Income and spending per calendar month, most recent month first."""
    buckets = {}
    for t in transactions:
        d = _as_date(t['date'])
        key = (d.year, d.month)
        bucket = buckets.setdefault(key, {"income": 0.0, "spending": 0.0})
        if t['amount'] < 0:
            bucket["income"] += abs(t['amount'])
        else:
            bucket["spending"] += t['amount']

    return [
        {"month": date(year, month, 1).strftime("%b %Y"), **buckets[(year, month)]}
        for year, month in sorted(buckets, reverse=True)
    ]


def month_totals(transactions, today):
    """Totals restricted to the calendar month containing ``today``."""
    return totals([t for t in transactions
                   if _as_date(t['date']).year == today.year and _as_date(t['date']).month == today.month])


def sort_newest_first(transactions):
    return sorted(transactions, key=lambda t: (_as_date(t['date']), t.get('id') or 0), reverse=True)


def recent(transactions, limit=5):
    return sort_newest_first(transactions)[:limit]


def total_savings(transactions):
    return sum(abs(t['amount']) for t in transactions if t['category'] == SAVINGS_CATEGORY)


def goals_with_progress(goals, savings):
    result = []
    for goal in goals:
        current = savings * goal['allocation'] / 100.0
        target = goal['target_amount']
        progress = (current / target * 100.0) if target > 0 else 0.0
        result.append({**goal, "current_amount": current, "progress": progress})
    return result


def allocation_total(goals):
    return sum(g['allocation'] for g in goals)


def goal_progress_overall(goals):
    target = sum(g['target_amount'] for g in goals)
    if target <= 0:
        return 0.0
    return sum(g['current_amount'] for g in goals) / target * 100.0


def budget_progress(budgets, spending):
    result = []
    for budget in budgets:
        spent = spending.get(budget['category'], 0.0)
        target = budget['target']
        percent = min(spent / target * 100.0, 100.0) if target > 0 else 100.0
        result.append({
            **budget,
            "spent": spent,
            "remaining": target - spent,
            "progress": percent,
            "overspent": spent > target,
        })
    return result
