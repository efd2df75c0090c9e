from datetime import date

import mysql.connector
import structlog
from flask import Blueprint, render_template, request, redirect, url_for, current_app, session, flash
from werkzeug.security import generate_password_hash, check_password_hash

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

log = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 8

DEFAULT_GOAL = {"name": "Save for a new laptop", "target_amount": 500, "allocation": 100}

@auth_bp.route('/signup', methods=['GET', 'POST'])
def signup():
    if request.method == 'POST':
        first_name = request.form.get('first_name', '').strip()
        last_name = request.form.get('last_name', '').strip()
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')

        if not first_name or not last_name or not email or not password:
            return "All fields required", 400

        if len(password) < MIN_PASSWORD_LENGTH:
            flash(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", "error")
            return redirect(url_for('auth.signup'))

        today = date.today()
        conn = current_app.db_pool.get_connection()
        try:
            with conn.cursor(dictionary=True) as cur:
                cur.execute("SELECT id FROM users WHERE email=%s", (email,))
                if cur.fetchone():
                    return "Email already exists", 400
                try:
                    cur.execute(
                        "INSERT INTO users (email, password_hash, first_name, last_name, college, degree, "
                        "graduation_year, last_login_date, daily_streak) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
                        (email, generate_password_hash(password), first_name, last_name,
                         'Your College', 'Your Major', today.year + 4, today, 1)
                    )
                    user_id = cur.lastrowid
                    cur.execute(
                        "INSERT INTO goals (user_id, name, target_amount, allocation) VALUES (%s, %s, %s, %s)",
                        (user_id, DEFAULT_GOAL["name"], DEFAULT_GOAL["target_amount"], DEFAULT_GOAL["allocation"])
                    )
                    conn.commit()
                except mysql.connector.IntegrityError:
                    conn.rollback()
                    return "Email already exists", 400
        finally:
            conn.close()

        log.info("user_registered", user_id=user_id)
        session.clear()
        session['user_id'] = user_id
        session['user_name'] = first_name
        flash("Welcome to FinTrack! Tell us a bit about yourself.", "success")
        return redirect(url_for('settings.index'))

    return render_template('auth/signup.html')


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')

        conn = current_app.db_pool.get_connection()
        try:
            with conn.cursor(dictionary=True) as cur:
                cur.execute("SELECT id, first_name, password_hash FROM users WHERE email=%s", (email,))
                user = cur.fetchone()
        finally:
            conn.close()

        if not user or not check_password_hash(user['password_hash'], password):
            flash("Invalid credentials. Want to sign up?", "error")
            return redirect(url_for('auth.login'))

        session.clear()
        session['user_id'] = user['id']
        session['user_name'] = user['first_name']
        log.info("user_logged_in", user_id=user['id'])

        return redirect(url_for('dashboard.index'))

    return render_template('auth/login.html')


@auth_bp.route('/logout')
def logout():
    session.clear()
    return redirect(url_for('auth.login'))
