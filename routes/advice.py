import structlog
from flask import Blueprint, render_template, request, current_app, flash

from ai_flows import AIServiceError, get_investment_advice
from auth_utils import login_required, current_user_id
from db_utils import fetch_savings

advice_bp = Blueprint('advice', __name__, url_prefix='/advice')

log = structlog.get_logger(__name__)

@advice_bp.route('/', methods=['GET', 'POST'])
@login_required
def index():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            savings = fetch_savings(cur, current_user_id())
    finally:
        conn.close()

    advice = None
    if request.method == 'POST':
        try:
            advice = get_investment_advice(max(0.0, savings))
        except AIServiceError as e:
            log.warning("investment_advice_failed", user_id=current_user_id(), error=str(e))
            flash("Could not get advice at this time. Please try again.", "error")

    return render_template('advice.html', savings=savings, advice=advice)
