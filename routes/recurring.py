from flask import Blueprint, render_template, current_app

from auth_utils import login_required, current_user_id
from db_utils import fetch_transactions

recurring_bp = Blueprint('recurring', __name__, url_prefix='/recurring')

@recurring_bp.route('/')
@login_required
def index():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            transactions = fetch_transactions(cur, current_user_id())
    finally:
        conn.close()

    scheduled = [t for t in transactions if t['is_recurring']]
    return render_template('recurring.html', transactions=scheduled)
