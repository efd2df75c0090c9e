"""
FinTrack Test Suite

- test_auth.py: Signup, login and logout
- test_dashboard.py: Dashboard totals, streaks, achievements and the health check
- test_transactions.py: Transaction CRUD, CSV import/export, smart import and categorize
- test_recurring.py: Recurring schedule math, processing and the CLI command
- test_budgets.py / test_goals.py: Budget and savings goal management
- test_achievements.py, test_advice.py, test_settings.py, test_help.py: Remaining pages
- test_finance.py, test_csv_utils.py, test_ai_flows.py: Pure helpers and AI flows
- test_security.py: Authentication, CSRF and input validation

Run all tests:
    pytest tests/

Run with verbose output:
    pytest tests/ -v
"""
