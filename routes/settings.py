from datetime import date

from flask import Blueprint, render_template, request, redirect, url_for, current_app, session, flash

from auth_utils import login_required, current_user_id

settings_bp = Blueprint('settings', __name__, url_prefix='/settings')

PROFILE_FIELDS = ('first_name', 'last_name', 'college', 'degree', 'graduation_year')

def _validate_profile(form):
    profile = {field: form.get(field, '').strip() for field in PROFILE_FIELDS}
    if not profile['first_name']:
        return None, "First name is required."
    if not profile['last_name']:
        return None, "Last name is required."
    if not profile['college']:
        return None, "College name is required."
    if not profile['degree']:
        return None, "Degree name is required."
    try:
        profile['graduation_year'] = int(profile['graduation_year'])
    except ValueError:
        return None, "Graduation year must be a number."
    if profile['graduation_year'] < date.today().year:
        return None, "Year must be in the future."
    return profile, None

@settings_bp.route('/', methods=['GET', 'POST'])
@login_required
def index():
    conn = current_app.db_pool.get_connection()
    try:
        with conn.cursor(dictionary=True) as cur:
            if request.method == 'POST':
                profile, error = _validate_profile(request.form)
                if error:
                    flash(error, "error")
                    return redirect(url_for('settings.index'))
                cur.execute(
                    "UPDATE users SET first_name=%s, last_name=%s, college=%s, degree=%s, graduation_year=%s "
                    "WHERE id=%s",
                    (profile['first_name'], profile['last_name'], profile['college'], profile['degree'],
                     profile['graduation_year'], current_user_id())
                )
                conn.commit()
                session['user_name'] = profile['first_name']
                flash("Profile Updated. Your information has been saved successfully.", "success")
                return redirect(url_for('settings.index'))

            cur.execute(
                "SELECT email, first_name, last_name, college, degree, graduation_year FROM users WHERE id=%s",
                (current_user_id(),)
            )
            user = cur.fetchone()
    finally:
        conn.close()

    return render_template('settings.html', user=user)
