from datetime import date

import structlog
from flask import Blueprint, render_template, current_app, flash

import achievements
import finance
from ai_flows import AIServiceError, get_financial_health
from auth_utils import login_required, current_user_id
from db_utils import fetch_transactions, fetch_budgets, fetch_goals
from recurring import process_recurring

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='')

log = structlog.get_logger(__name__)

def _load_dashboard(user_id, today):
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            process_recurring(cur, user_id, today)

            transactions = fetch_transactions(cur, user_id)
            budgets = fetch_budgets(cur, user_id)
            goals = fetch_goals(cur, user_id)

            # Daily streak
            cur.execute("SELECT last_login_date, daily_streak FROM users WHERE id=%s", (user_id,))
            user = cur.fetchone() or {'last_login_date': None, 'daily_streak': 1}
            streak, last_login = achievements.update_streak(user['last_login_date'], user['daily_streak'], today)
            if last_login != user['last_login_date'] or streak != user['daily_streak']:
                cur.execute(
                    "UPDATE users SET daily_streak=%s, last_login_date=%s WHERE id=%s",
                    (streak, last_login, user_id)
                )

            spending = finance.spending_by_category(transactions)
            unlocked = achievements.fetch_unlocked(cur, user_id)
            earned = achievements.earned(streak, len(transactions), spending, budgets)
            new_achievements = achievements.unlock(cur, user_id, earned, unlocked)
            conn.commit()
    finally:
        conn.close()

    for achievement in new_achievements:
        flash(achievements.unlocked_message(achievement), "success")

    savings = finance.total_savings(transactions)
    goals = finance.goals_with_progress(goals, savings)
    return {
        "transactions": transactions,
        "totals": finance.totals(transactions),
        "month_totals": finance.month_totals(transactions, today),
        "spending": sorted(spending.items(), key=lambda item: item[1], reverse=True),
        "monthly_flow": finance.monthly_flow(transactions),
        "recent": finance.recent(transactions),
        "goals": goals,
        "goal_progress": finance.goal_progress_overall(goals),
        "savings": savings,
        "streak": streak,
    }

def _render(data, health=None):
    return render_template(
        "dashboard.html",
        totals=data["totals"],
        spending=data["spending"],
        pie_labels=[name for name, _ in data["spending"]],
        pie_values=[value for _, value in data["spending"]],
        monthly_flow=data["monthly_flow"],
        recent=data["recent"],
        goals=data["goals"],
        savings=data["savings"],
        streak=data["streak"],
        health=health,
    )

@dashboard_bp.route('/')
@login_required
def index():
    data = _load_dashboard(current_user_id(), date.today())
    return _render(data)

@dashboard_bp.route('/health', methods=['POST'])
@login_required
def health():
    data = _load_dashboard(current_user_id(), date.today())
    analysis = None
    try:
        analysis = get_financial_health(
            income=data["month_totals"]["income"],
            spending=data["month_totals"]["spending"],
            goal_progress=data["goal_progress"],
        )
    except AIServiceError as e:
        log.warning("financial_health_failed", user_id=current_user_id(), error=str(e))
        flash("Could not analyze your finances right now. Please try again.", "error")
    return _render(data, health=analysis)
