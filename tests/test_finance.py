"""
Test suite for the money math in finance.py.
"""

import pytest
from datetime import date, datetime

import finance


def _t(amount, category='Food', when=date(2024, 3, 10), id=1):
    return {'id': id, 'amount': amount, 'category': category, 'date': when}


class TestCategories:
    """Test category helpers."""

    @pytest.mark.parametrize("raw,expected", [
        ('food', 'Food'),
        ('  Savings goal ', 'Savings Goal'),
        ('Crypto', 'Other'),
        ('', 'Other'),
        (None, 'Other'),
    ])
    def test_normalize_category(self, raw, expected):
        assert finance.normalize_category(raw) == expected

    def test_signed_amount(self):
        assert finance.signed_amount('25', 'expense') == 25.0
        assert finance.signed_amount(25, 'income') == -25.0
        assert finance.signed_amount(-25, 'expense') == 25.0

    def test_budget_categories_are_categories(self):
        assert set(finance.BUDGET_CATEGORIES) <= set(finance.CATEGORIES)


class TestTotals:
    """Test spending and income totals."""

    def test_totals(self):
        transactions = [_t(-1200.0, 'Salary'), _t(300.0, 'Rent'), _t(45.5)]
        assert finance.totals(transactions) == {'spending': 345.5, 'income': 1200.0, 'net_flow': 854.5}

    def test_totals_empty(self):
        assert finance.totals([]) == {'spending': 0, 'income': 0, 'net_flow': 0}

    def test_spending_by_category_ignores_income(self):
        transactions = [_t(20.0), _t(5.0), _t(-100.0, 'Salary'), _t(60.0, 'Textbooks')]
        assert finance.spending_by_category(transactions) == {'Food': 25.0, 'Textbooks': 60.0}

    def test_month_totals_limits_to_month(self):
        transactions = [
            _t(-500.0, 'Salary', date(2024, 3, 1)),
            _t(100.0, when=date(2024, 3, 31)),
            _t(999.0, when=date(2024, 2, 29)),
        ]
        result = finance.month_totals(transactions, date(2024, 3, 15))
        assert result == {'spending': 100.0, 'income': 500.0, 'net_flow': 400.0}

    def test_monthly_flow_newest_first(self):
        transactions = [
            _t(10.0, when=date(2024, 1, 5)),
            _t(-50.0, 'Salary', when=date(2024, 3, 2)),
            _t(20.0, when=datetime(2024, 3, 9, 12, 30)),
        ]
        assert finance.monthly_flow(transactions) == [
            {'month': 'Mar 2024', 'income': 50.0, 'spending': 20.0},
            {'month': 'Jan 2024', 'income': 0.0, 'spending': 10.0},
        ]

    def test_recent_sorted_and_limited(self):
        transactions = [_t(1.0, when=date(2024, 1, d), id=d) for d in range(1, 9)]
        assert [t['id'] for t in finance.recent(transactions)] == [8, 7, 6, 5, 4]


class TestGoals:
    """Test savings goal math."""

    def test_total_savings_uses_absolute_amounts(self):
        transactions = [_t(100.0, 'Savings Goal'), _t(-50.0, 'Savings Goal'), _t(30.0)]
        assert finance.total_savings(transactions) == 150.0

    def test_goals_with_progress(self):
        goals = [
            {'id': 1, 'name': 'Laptop', 'target_amount': 500.0, 'allocation': 60.0},
            {'id': 2, 'name': 'Trip', 'target_amount': 0.0, 'allocation': 40.0},
        ]
        result = finance.goals_with_progress(goals, 1000.0)
        assert result[0]['current_amount'] == 600.0
        assert result[0]['progress'] == pytest.approx(120.0)
        assert result[1]['progress'] == 0.0

    def test_goal_progress_overall(self):
        goals = [
            {'target_amount': 500.0, 'current_amount': 250.0},
            {'target_amount': 500.0, 'current_amount': 0.0},
        ]
        assert finance.goal_progress_overall(goals) == 25.0
        assert finance.goal_progress_overall([]) == 0.0

    def test_allocation_total(self):
        assert finance.allocation_total([{'allocation': 60.0}, {'allocation': 15.5}]) == 75.5


class TestBudgetProgress:
    """Test budget progress bars."""

    def test_under_budget(self):
        result = finance.budget_progress([{'id': 1, 'category': 'Food', 'target': 200.0}], {'Food': 50.0})[0]
        assert result['spent'] == 50.0
        assert result['remaining'] == 150.0
        assert result['progress'] == 25.0
        assert result['overspent'] is False

    def test_overspent_caps_progress(self):
        result = finance.budget_progress([{'id': 1, 'category': 'Food', 'target': 100.0}], {'Food': 130.0})[0]
        assert result['progress'] == 100.0
        assert result['remaining'] == -30.0
        assert result['overspent'] is True

    def test_no_spending(self):
        result = finance.budget_progress([{'id': 1, 'category': 'Rent', 'target': 700.0}], {})[0]
        assert result['spent'] == 0.0
        assert result['progress'] == 0.0
