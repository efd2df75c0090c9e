import re

import structlog
from flask import Blueprint, render_template, request, redirect, url_for, current_app, session, flash, jsonify

from ai_flows import AIServiceError, answer_help_question
from auth_utils import login_required, current_user_id

help_bp = Blueprint('help', __name__, url_prefix='')

log = structlog.get_logger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MESSAGE_TYPES = ('question', 'testimonial')

FAQ = [
    {
        "question": "How do I add a new transaction?",
        "answer": 'Open the "Transactions" page and click "Add Transaction". Pick expense or income, '
                  'fill in the details and save.',
    },
    {
        "question": "What is the AI Financial Health Check-up?",
        "answer": "The check-up on your dashboard analyzes your income, spending, and goal progress to give "
                  "you a financial score from 0-100, along with what you're doing well and where you can improve.",
    },
    {
        "question": "How do budgets work?",
        "answer": 'On the "Budgets" page you can set monthly spending limits for different categories. '
                  "The progress bars show how much you've spent against each target.",
    },
    {
        "question": "How do savings goals work?",
        "answer": "Every transaction in the 'Savings Goal' category adds to your savings. Each goal receives "
                  "its allocated percentage of those savings; allocations can add up to at most 100%.",
    },
    {
        "question": "Can I import transactions from a file?",
        "answer": 'Yes! Use "Import CSV" with columns date, merchant, amount and optionally category, or '
                  '"Smart Import" to let the AI read a statement PDF or screenshot.',
    },
    {
        "question": "How do recurring transactions work?",
        "answer": "Mark a transaction as recurring and choose how often it repeats. A new transaction is "
                  "created automatically each time it comes due.",
    },
]

def _validate_contact(form):
    data = {
        "first_name": form.get('first_name', '').strip(),
        "last_name": form.get('last_name', '').strip(),
        "email": form.get('email', '').strip(),
        "message": form.get('message', '').strip(),
        "message_type": form.get('message_type', ''),
        "consent_to_display": form.get('consent_to_display') == 'on',
    }
    errors = []
    if not data['first_name']:
        errors.append("First name is required")
    if not data['last_name']:
        errors.append("Last name is required")
    if not EMAIL_RE.match(data['email']):
        errors.append("Invalid email address")
    if len(data['message']) < 10:
        errors.append("Message must be at least 10 characters long")
    if data['message_type'] not in MESSAGE_TYPES:
        errors.append("Please select a message type.")
    return data, errors

@help_bp.route('/help/')
@login_required
def index():
    return render_template('help.html', faq=FAQ, question=None, answer=None)

@help_bp.route('/help/ask', methods=['POST'])
@login_required
def ask():
    question = request.form.get('question', '').strip()
    if not question:
        flash("Please enter a question.", "error")
        return redirect(url_for('help.index'))

    answer = None
    try:
        answer = answer_help_question(question)
    except AIServiceError as e:
        log.warning("help_question_failed", user_id=current_user_id(), error=str(e))
        flash("Could not get an answer at this time. Please try again later.", "error")
    return render_template('help.html', faq=FAQ, question=question, answer=answer)

@help_bp.route('/help/chat', methods=['POST'])
@login_required
def chat():
    payload = request.get_json(silent=True) or {}
    question = (payload.get('question') or '').strip()
    if not question:
        return jsonify(error="Please enter a question."), 400
    try:
        answer = answer_help_question(question)
    except AIServiceError as e:
        log.warning("chat_failed", user_id=current_user_id(), error=str(e))
        return jsonify(error="Could not get an answer at this time. Please try again."), 503
    return jsonify(answer=answer)

@help_bp.route('/help/contact', methods=['POST'])
def contact():
    data, errors = _validate_contact(request.form)
    back = url_for('help.index') if 'user_id' in session else url_for('help.testimonials')
    if errors:
        flash(", ".join(errors), "error")
        return redirect(back)

    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor() as cur:
            if data['message_type'] == 'testimonial' and data['consent_to_display']:
                cur.execute(
                    "INSERT INTO testimonials (first_name, last_name, email, message) VALUES (%s, %s, %s, %s)",
                    (data['first_name'], data['last_name'], data['email'], data['message'])
                )
            else:
                cur.execute(
                    "INSERT INTO contact_messages (first_name, last_name, email, message, message_type, "
                    "consent_to_display) VALUES (%s, %s, %s, %s, %s, %s)",
                    (data['first_name'], data['last_name'], data['email'], data['message'],
                     data['message_type'], int(data['consent_to_display']))
                )
            conn.commit()
    finally:
        conn.close()

    log.info("contact_message_saved", message_type=data['message_type'])
    flash("Thanks for reaching out! Your message has been sent.", "success")
    return redirect(back)

@help_bp.route('/testimonials')
def testimonials():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            cur.execute(
                "SELECT first_name, last_name, message, created_at FROM testimonials ORDER BY created_at DESC LIMIT 20"
            )
            rows = cur.fetchall()
    finally:
        conn.close()
    return render_template('testimonials.html', testimonials=rows)
