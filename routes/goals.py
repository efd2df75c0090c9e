import math
from datetime import date

import structlog
from flask import Blueprint, render_template, request, redirect, url_for, current_app, flash

from ai_flows import AIServiceError, get_smart_goal_allocations
from auth_utils import login_required, current_user_id
from db_utils import fetch_goals, fetch_savings, fetch_transactions
from finance import allocation_total, goals_with_progress, month_totals, total_savings

goals_bp = Blueprint('goals', __name__, url_prefix='/goals')

log = structlog.get_logger(__name__)

MAX_ALLOCATION = 100.0

def _number(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None

# Allocations are stored as NUMERIC(5,2); compare at that precision.
def _exceeds_cap(total):
    return round(total, 2) > MAX_ALLOCATION

def _parse_goal_form(form):
    name = form.get('name', '').strip()
    target = _number(form.get('target_amount'))
    allocation = _number(form.get('allocation', '0') or '0')

    if len(name) < 3:
        return None, "Goal name must be at least 3 characters."
    if target is None or target <= 0:
        return None, "Target amount must be a positive number."
    if allocation is None or not 0 <= allocation <= MAX_ALLOCATION:
        return None, "Allocation must be between 0 and 100 percent."
    return {"name": name, "target_amount": target, "allocation": allocation}, None

def _render_goals(goals, savings, suggestions=None, monthly_savings=None):
    goals = goals_with_progress(goals, savings)
    return render_template(
        'goals.html',
        goals=goals,
        savings=savings,
        allocated=allocation_total(goals),
        suggestions=suggestions,
        monthly_savings=monthly_savings,
    )

@goals_bp.route('/')
@login_required
def index():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            goals = fetch_goals(cur, current_user_id())
            savings = fetch_savings(cur, current_user_id())
    finally:
        conn.close()
    return _render_goals(goals, savings)

@goals_bp.route('/add', methods=['POST'])
@login_required
def add_goal():
    goal, error = _parse_goal_form(request.form)
    if error:
        flash(error, "error")
        return redirect(url_for('goals.index'))

    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            existing = fetch_goals(cur, current_user_id())
            if _exceeds_cap(allocation_total(existing) + goal['allocation']):
                flash("Goal allocations cannot add up to more than 100%.", "error")
                return redirect(url_for('goals.index'))
            cur.execute(
                "INSERT INTO goals (user_id, name, target_amount, allocation) VALUES (%s, %s, %s, %s)",
                (current_user_id(), goal['name'], goal['target_amount'], goal['allocation'])
            )
            conn.commit()
    finally:
        conn.close()

    log.info("goal_added", user_id=current_user_id())
    flash("Goal added.", "success")
    return redirect(url_for('goals.index'))

@goals_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
def edit_goal(id):
    goal, error = _parse_goal_form(request.form)
    if error:
        flash(error, "error")
        return redirect(url_for('goals.index'))

    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            existing = fetch_goals(cur, current_user_id())
            if not any(g['id'] == id for g in existing):
                return "Goal not found", 404
            others = [g for g in existing if g['id'] != id]
            if _exceeds_cap(allocation_total(others) + goal['allocation']):
                flash("Goal allocations cannot add up to more than 100%.", "error")
                return redirect(url_for('goals.index'))
            cur.execute(
                "UPDATE goals SET name=%s, target_amount=%s, allocation=%s WHERE id=%s AND user_id=%s",
                (goal['name'], goal['target_amount'], goal['allocation'], id, current_user_id())
            )
            conn.commit()
    finally:
        conn.close()

    flash("Goal updated.", "success")
    return redirect(url_for('goals.index'))

@goals_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
def delete_goal(id):
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM goals WHERE id=%s AND user_id=%s", (id, current_user_id()))
            conn.commit()
    finally:
        conn.close()
    return redirect(url_for('goals.index'))

@goals_bp.route('/allocations', methods=['POST'])
@login_required
def update_allocations():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            goals = fetch_goals(cur, current_user_id())
            allocations = {}
            for goal in goals:
                value = _number(request.form.get(f"allocation-{goal['id']}", goal['allocation']))
                if value is None or not 0 <= value <= MAX_ALLOCATION:
                    flash("Allocation must be between 0 and 100 percent.", "error")
                    return redirect(url_for('goals.index'))
                allocations[goal['id']] = value

            if _exceeds_cap(sum(allocations.values())):
                flash("Goal allocations cannot add up to more than 100%.", "error")
                return redirect(url_for('goals.index'))

            for goal_id, value in allocations.items():
                cur.execute(
                    "UPDATE goals SET allocation=%s WHERE id=%s AND user_id=%s",
                    (value, goal_id, current_user_id())
                )
            conn.commit()
    finally:
        conn.close()

    flash("Allocations saved.", "success")
    return redirect(url_for('goals.index'))

@goals_bp.route('/smart-allocate', methods=['POST'])
@login_required
def smart_allocate():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            transactions = fetch_transactions(cur, current_user_id())
            goals = fetch_goals(cur, current_user_id())
    finally:
        conn.close()

    savings = total_savings(transactions)
    if not goals:
        flash("Add a goal before asking for an allocation plan.", "error")
        return redirect(url_for('goals.index'))

    monthly_savings = _number(request.form.get('monthly_savings') or None)
    if monthly_savings is None:
        monthly_savings = month_totals(transactions, date.today())["net_flow"]
    monthly_savings = max(0.0, monthly_savings)

    suggestions = None
    try:
        suggestions = get_smart_goal_allocations(goals_with_progress(goals, savings), monthly_savings)
    except AIServiceError as e:
        log.warning("smart_allocation_failed", user_id=current_user_id(), error=str(e))
        flash("Could not suggest allocations right now. Please try again.", "error")

    return _render_goals(goals, savings, suggestions=suggestions, monthly_savings=monthly_savings)
