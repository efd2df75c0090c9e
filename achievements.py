from datetime import timedelta

import structlog

log = structlog.get_logger(__name__)

ACHIEVEMENTS = [
    {'id': 'budget-master-food', 'name': 'Budget Master: Food',
     'description': 'Keep your food spending under budget for a month.'},
    {'id': 'budget-master-entertainment', 'name': 'Budget Master: Entertainment',
     'description': 'Keep your entertainment spending under budget for a month.'},
    {'id': 'budget-master-transportation', 'name': 'Budget Master: Transportation',
     'description': 'Keep your transportation spending under budget for a month.'},
    {'id': 'budget-master-utilities', 'name': 'Budget Master: Utilities',
     'description': 'Keep your utility spending under budget for a month.'},
    {'id': 'budget-master-rent', 'name': 'Budget Master: Rent',
     'description': 'Keep your rent spending under budget for a month.'},
    {'id': 'on-a-roll-3', 'name': 'On a Roll!', 'description': 'Log in for 3 days in a row.'},
    {'id': 'weekly-warrior-7', 'name': 'Weekly Warrior', 'description': 'Log in for 7 days in a row.'},
    {'id': 'transaction-tracker-10', 'name': 'Transaction Tracker', 'description': 'Log at least 10 transactions.'},
]

ACHIEVEMENTS_BY_ID = {a['id']: a for a in ACHIEVEMENTS}


def budget_achievement_id(category):
    return "budget-master-" + category.lower().replace(" ", "-")


def update_streak(last_login, streak, today):
    """Return ``(streak, last_login)`` after a visit on ``today``."""
    if last_login == today:
        return streak or 1, last_login
    if last_login == today - timedelta(days=1):
        return (streak or 0) + 1, today
    return 1, today


def streak_achievements(streak):
    earned = set()
    if streak >= 3:
        earned.add('on-a-roll-3')
    if streak >= 7:
        earned.add('weekly-warrior-7')
    return earned


def earned(streak, transaction_count, spending, budgets):
    ids = streak_achievements(streak)
    if transaction_count >= 10:
        ids.add('transaction-tracker-10')
    for budget in budgets:
        spent = spending.get(budget['category'], 0.0)
        if 0 < spent <= budget['target']:
            ids.add(budget_achievement_id(budget['category']))
    return {i for i in ids if i in ACHIEVEMENTS_BY_ID}


def with_status(unlocked_ids):
    return [{**a, 'achieved': a['id'] in unlocked_ids} for a in ACHIEVEMENTS]


def fetch_unlocked(cur, user_id):
    cur.execute("SELECT achievement_id FROM user_achievements WHERE user_id=%s", (user_id,))
    return {row['achievement_id'] for row in cur.fetchall()}


def unlock(cur, user_id, earned_ids, unlocked_ids):
    """Store newly earned achievements and return them. The caller commits."""
    new_ids = sorted(set(earned_ids) - set(unlocked_ids))
    for achievement_id in new_ids:
        cur.execute(
            "INSERT IGNORE INTO user_achievements (user_id, achievement_id) VALUES (%s, %s)",
            (user_id, achievement_id)
        )
        log.info("achievement_unlocked", user_id=user_id, achievement_id=achievement_id)
    return [ACHIEVEMENTS_BY_ID[i] for i in new_ids]


def unlocked_message(achievement):
    return f'Achievement Unlocked! You\'ve earned the "{achievement["name"]}" medal.'
