import math
import mimetypes
from datetime import date, datetime

import structlog
from flask import (Blueprint, render_template, request, redirect, url_for, current_app, flash,
                   abort, Response, jsonify)

from ai_flows import AIServiceError, categorize_transaction, extract_transactions_from_document
from auth_utils import login_required, current_user_id
from csv_utils import parse_transactions_csv, transactions_to_csv
from db_utils import fetch_transactions, fetch_transaction, insert_transactions
from finance import CATEGORIES, signed_amount
from recurring import RECURRENCE_PERIODS, first_due_date

transactions_bp = Blueprint('transactions', __name__, url_prefix='/transactions')

log = structlog.get_logger(__name__)

def _allowed_file(filename, extensions):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in extensions

def _redirect_back(default_endpoint='transactions.index'):
    target = request.form.get('next', '')
    if target.startswith('/') and not target.startswith('//'):
        return redirect(target)
    return redirect(url_for(default_endpoint))

def _parse_transaction_form(form):
    """Validate the add/edit form. Returns ``(transaction, error)``."""
    kind = form.get('type', 'expense')
    merchant = form.get('merchant', '').strip()
    category = form.get('category', '').strip()
    is_recurring = form.get('is_recurring') in ('on', 'true', '1')
    period = form.get('recurrence_period') or None

    if kind not in ('expense', 'income'):
        return None, "You must select a transaction type."
    if not merchant:
        return None, "Merchant is required."
    try:
        amount = float(form.get('amount', ''))
    except ValueError:
        return None, "Amount must be a positive number."
    if not math.isfinite(amount) or amount <= 0:
        return None, "Amount must be a positive number."
    try:
        tx_date = datetime.strptime(form.get('date', ''), '%Y-%m-%d').date()
    except ValueError:
        return None, "Date is required."
    if tx_date > date.today():
        return None, "Date cannot be in the future."
    if category not in CATEGORIES:
        return None, "Category is required."
    if is_recurring and period not in RECURRENCE_PERIODS:
        return None, "Recurrence frequency is required for recurring transactions."

    return {
        'merchant': merchant,
        'amount': signed_amount(amount, kind),
        'date': tx_date,
        'category': category,
        'is_recurring': is_recurring,
        'recurrence_period': period if is_recurring else None,
        'next_due_date': first_due_date(tx_date, period) if is_recurring else None,
    }, None

@transactions_bp.route('/')
@login_required
def index():
    category = request.args.get('category', 'All')

    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            transactions = fetch_transactions(cur, current_user_id())
    finally:
        conn.close()

    # Masters live on the recurring page; their generated instances show here.
    visible = [t for t in transactions if not t['is_recurring']]
    if category != 'All':
        visible = [t for t in visible if t['category'] == category]

    return render_template(
        'transactions.html',
        transactions=visible,
        categories=['All'] + CATEGORIES,
        selected_category=category,
    )

@transactions_bp.route('/add', methods=['GET', 'POST'])
@login_required
def add_transaction():
    if request.method == 'POST':
        transaction, error = _parse_transaction_form(request.form)
        if error:
            flash(error, "error")
            return render_template('transaction_form.html', transaction=None, form=request.form,
                                   categories=CATEGORIES, periods=RECURRENCE_PERIODS, today=date.today()), 400

        conn = current_app.db_pool.get_connection()
        try:
            with conn.cursor() as cur:
                insert_transactions(cur, current_user_id(), [transaction])
                conn.commit()
        finally:
            conn.close()

        log.info("transaction_added", user_id=current_user_id(), recurring=transaction['is_recurring'])
        flash("Transaction added", "success")
        return _redirect_back()

    return render_template('transaction_form.html', transaction=None, form={},
                           categories=CATEGORIES, periods=RECURRENCE_PERIODS, today=date.today())

@transactions_bp.route('/edit/<int:id>', methods=['GET', 'POST'])
@login_required
def edit_transaction(id):
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            existing = fetch_transaction(cur, current_user_id(), id)
            if not existing:
                abort(404)

            if request.method == 'GET':
                return render_template('transaction_form.html', transaction=existing, form={},
                                       categories=CATEGORIES, periods=RECURRENCE_PERIODS, today=date.today())

            transaction, error = _parse_transaction_form(request.form)
            if error:
                flash(error, "error")
                return render_template('transaction_form.html', transaction=existing, form=request.form,
                                       categories=CATEGORIES, periods=RECURRENCE_PERIODS, today=date.today()), 400

            # An unchanged schedule keeps its stored due date.
            if (existing['is_recurring'] and transaction['is_recurring']
                    and existing['date'] == transaction['date']
                    and existing['recurrence_period'] == transaction['recurrence_period']
                    and existing['next_due_date']):
                transaction['next_due_date'] = existing['next_due_date']

            cur.execute(
                "UPDATE transactions SET date=%s, merchant=%s, amount=%s, category=%s, is_recurring=%s, "
                "recurrence_period=%s, next_due_date=%s WHERE id=%s AND user_id=%s",
                (transaction['date'], transaction['merchant'], transaction['amount'], transaction['category'],
                 int(transaction['is_recurring']), transaction['recurrence_period'],
                 transaction['next_due_date'], id, current_user_id())
            )
            conn.commit()
    finally:
        conn.close()

    flash("Transaction updated", "success")
    return _redirect_back()

@transactions_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
def delete_transaction(id):
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM transactions WHERE id=%s AND user_id=%s", (id, current_user_id()))
            conn.commit()
    finally:
        conn.close()
    flash("Transaction deleted", "success")
    return _redirect_back()

@transactions_bp.route('/export.csv')
@login_required
def export_csv():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            transactions = fetch_transactions(cur, current_user_id())
    finally:
        conn.close()

    return Response(
        transactions_to_csv(transactions),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=fintrack_report.csv'},
    )

@transactions_bp.route('/import', methods=['POST'])
@login_required
def import_csv():
    file = request.files.get('file')
    if not file or not file.filename:
        flash("No file selected. Please select a CSV file to import.", "error")
        return redirect(url_for('transactions.index'))
    if not _allowed_file(file.filename, {'csv'}):
        flash("Please upload a .csv file.", "error")
        return redirect(url_for('transactions.index'))

    try:
        text = file.read().decode('utf-8-sig')
    except UnicodeDecodeError:
        flash("Import failed. There was an error processing your file.", "error")
        return redirect(url_for('transactions.index'))

    transactions = parse_transactions_csv(text)
    if transactions:
        conn = current_app.db_pool.get_connection()
        try:
            with conn.cursor() as cur:
                insert_transactions(cur, current_user_id(), transactions)
                conn.commit()
        finally:
            conn.close()

    log.info("csv_imported", user_id=current_user_id(), count=len(transactions))
    flash(f"Import successful. {len(transactions)} transactions have been added.", "success")
    return redirect(url_for('transactions.index'))

@transactions_bp.route('/smart-import', methods=['POST'])
@login_required
def smart_import():
    file = request.files.get('file')
    if not file or not file.filename:
        flash("No file selected. Please select a file to analyze.", "error")
        return redirect(url_for('transactions.index'))
    if not _allowed_file(file.filename, current_app.config['ALLOWED_IMPORT_EXT']):
        flash("Unsupported file type. Upload a CSV, PDF or image.", "error")
        return redirect(url_for('transactions.index'))

    mime_type = file.mimetype
    if not mime_type or mime_type == 'application/octet-stream':
        mime_type = mimetypes.guess_type(file.filename)[0] or 'application/octet-stream'

    try:
        extracted = extract_transactions_from_document(file.read(), mime_type)
    except AIServiceError as e:
        log.warning("smart_import_failed", user_id=current_user_id(), error=str(e))
        flash("An error occurred while analyzing the document. The file might be unsupported or corrupt.", "error")
        return redirect(url_for('transactions.index'))

    if not extracted:
        flash("The AI could not find any transactions in this document. Please try a different file.", "error")
        return redirect(url_for('transactions.index'))

    return render_template('import_review.html', transactions=extracted, categories=CATEGORIES)

@transactions_bp.route('/smart-import/confirm', methods=['POST'])
@login_required
def confirm_smart_import():
    rows = zip(
        request.form.getlist('date'),
        request.form.getlist('merchant'),
        request.form.getlist('amount'),
        request.form.getlist('category'),
    )
    transactions = []
    for date_str, merchant, amount_str, category in rows:
        merchant = merchant.strip()
        try:
            tx_date = datetime.strptime(date_str, '%Y-%m-%d').date()
            amount = float(amount_str)
        except ValueError:
            log.warning("smart_import_row_skipped", user_id=current_user_id(), reason="invalid date or amount")
            continue
        if not merchant or not math.isfinite(amount):
            log.warning("smart_import_row_skipped", user_id=current_user_id(), reason="invalid merchant or amount")
            continue
        transactions.append({
            'date': tx_date,
            'merchant': merchant,
            'amount': amount,
            'category': category if category in CATEGORIES else 'Other',
        })

    if not transactions:
        flash("No transactions to import.", "error")
        return redirect(url_for('transactions.index'))

    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor() as cur:
            insert_transactions(cur, current_user_id(), transactions)
            conn.commit()
    finally:
        conn.close()

    flash(f"Import successful! {len(transactions)} transactions have been added.", "success")
    return redirect(url_for('transactions.index'))

@transactions_bp.route('/categorize', methods=['POST'])
@login_required
def categorize():
    payload = request.get_json(silent=True) or {}
    description = (payload.get('description') or '').strip()
    if not description:
        return jsonify(error="Please enter a merchant name to categorize."), 400

    try:
        category = categorize_transaction(description)
    except AIServiceError as e:
        log.warning("categorize_failed", user_id=current_user_id(), error=str(e))
        return jsonify(error="Could not automatically categorize this transaction."), 503
    return jsonify(category=category)
