from flask import Blueprint, render_template, current_app, flash

import achievements
from auth_utils import login_required, current_user_id

achievements_bp = Blueprint('achievements', __name__, url_prefix='/achievements')

@achievements_bp.route('/')
@login_required
def index():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            cur.execute("SELECT daily_streak FROM users WHERE id=%s", (current_user_id(),))
            row = cur.fetchone()
            streak = row['daily_streak'] if row else 1

            unlocked = achievements.fetch_unlocked(cur, current_user_id())
            new_achievements = achievements.unlock(
                cur, current_user_id(), achievements.streak_achievements(streak), unlocked
            )
            conn.commit()
    finally:
        conn.close()

    for achievement in new_achievements:
        flash(achievements.unlocked_message(achievement), "success")
        unlocked.add(achievement['id'])

    return render_template(
        'achievements.html',
        achievements=achievements.with_status(unlocked),
        streak=streak,
    )
