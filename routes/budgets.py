import math

import structlog
from flask import Blueprint, render_template, request, redirect, url_for, current_app, flash

from auth_utils import login_required, current_user_id
from db_utils import fetch_transactions, fetch_budgets
from finance import BUDGET_CATEGORIES, budget_progress, spending_by_category

budgets_bp = Blueprint('budgets', __name__, url_prefix='/budgets')

log = structlog.get_logger(__name__)

def _parse_target(value):
    try:
        target = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(target) or target <= 0:
        return None
    return target

@budgets_bp.route('/')
@login_required
def index():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            transactions = fetch_transactions(cur, current_user_id())
            budgets = fetch_budgets(cur, current_user_id())
    finally:
        conn.close()

    used = {b['category'] for b in budgets}
    return render_template(
        'budgets.html',
        budgets=budget_progress(budgets, spending_by_category(transactions)),
        available_categories=[c for c in BUDGET_CATEGORIES if c not in used],
    )

@budgets_bp.route('/add', methods=['POST'])
@login_required
def add_budget():
    category = request.form.get('category', '').strip()
    target = _parse_target(request.form.get('target'))

    if category not in BUDGET_CATEGORIES:
        flash("Category is required.", "error")
        return redirect(url_for('budgets.index'))
    if target is None:
        flash("Target must be a positive number.", "error")
        return redirect(url_for('budgets.index'))

    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            cur.execute("SELECT id FROM budgets WHERE user_id=%s AND category=%s", (current_user_id(), category))
            if cur.fetchone():
                flash(f"You already have a budget for {category}.", "error")
                return redirect(url_for('budgets.index'))
            cur.execute(
                "INSERT INTO budgets (user_id, category, target) VALUES (%s, %s, %s)",
                (current_user_id(), category, target)
            )
            conn.commit()
    finally:
        conn.close()

    log.info("budget_added", user_id=current_user_id(), category=category)
    flash(f"Budget for {category} saved.", "success")
    return redirect(url_for('budgets.index'))

@budgets_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
def edit_budget(id):
    target = _parse_target(request.form.get('target'))
    if target is None:
        flash("Target must be a positive number.", "error")
        return redirect(url_for('budgets.index'))

    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            cur.execute("SELECT id FROM budgets WHERE id=%s AND user_id=%s", (id, current_user_id()))
            if not cur.fetchone():
                return "Budget not found", 404
            cur.execute(
                "UPDATE budgets SET target=%s WHERE id=%s AND user_id=%s",
                (target, id, current_user_id())
            )
            conn.commit()
    finally:
        conn.close()

    flash("Budget updated.", "success")
    return redirect(url_for('budgets.index'))

@budgets_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
def delete_budget(id):
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM budgets WHERE id=%s AND user_id=%s", (id, current_user_id()))
            conn.commit()
    finally:
        conn.close()
    return redirect(url_for('budgets.index'))
