import secrets
from datetime import date

import click
import mysql.connector
import structlog
from flask import Flask, render_template, current_app
from flask.cli import with_appcontext
from flask_wtf.csrf import CSRFProtect

from config import Config
from log_utils import configure_logging
from recurring import process_recurring
from routes.auth import auth_bp
from routes.dashboard import dashboard_bp
from routes.transactions import transactions_bp
from routes.recurring import recurring_bp
from routes.budgets import budgets_bp
from routes.goals import goals_bp
from routes.achievements import achievements_bp
from routes.advice import advice_bp
from routes.settings import settings_bp
from routes.help import help_bp

csrf = CSRFProtect()

log = structlog.get_logger(__name__)

def clamp_filter(value, min_val=0, max_val=100):
    try:
        return max(min(float(value), max_val), min_val)
    except (ValueError, TypeError):
        return 0

def currency_filter(value):
    try:
        return "${:,.2f}".format(float(value))
    except (ValueError, TypeError):
        return "$0.00"

def signed_currency_filter(amount):
    """Income shows as a credit, expenses as a debit."""
    amount = float(amount)
    if amount < 0:
        return "+ " + currency_filter(abs(amount))
    return "- " + currency_filter(amount)

def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.config.get("SECRET_KEY"):
        app.config["SECRET_KEY"] = secrets.token_hex(32)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    config_class.init_db(app)
    csrf.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(recurring_bp)
    app.register_blueprint(budgets_bp)
    app.register_blueprint(goals_bp)
    app.register_blueprint(achievements_bp)
    app.register_blueprint(advice_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(help_bp)

    app.jinja_env.filters['clamp'] = clamp_filter
    app.jinja_env.filters['currency'] = currency_filter
    app.jinja_env.filters['signed_currency'] = signed_currency_filter

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['X-XSS-Protection'] = '1; mode=block'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        return response

    @app.errorhandler(mysql.connector.Error)
    def database_error(error):
        log.error("database_error", error=str(error))
        return render_template('error.html', message="Could not connect to the database."), 503

    app.cli.add_command(process_recurring_command)

    return app

@click.command('process-recurring')
@with_appcontext
def process_recurring_command():
    """Create every due recurring transaction for all users."""
    today = date.today()
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            cur.execute(
                "SELECT DISTINCT user_id FROM transactions WHERE is_recurring=1 AND next_due_date <= %s",
                (today,)
            )
            user_ids = [row['user_id'] for row in cur.fetchall()]
            created = 0
            for user_id in user_ids:
                created += process_recurring(cur, user_id, today)
            conn.commit()
    finally:
        conn.close()
    click.echo(f"Created {created} transactions for {len(user_ids)} users.")
