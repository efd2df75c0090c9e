from functools import wraps
from flask import session, redirect, url_for, request

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if 'user_id' not in session:
            if request.is_json:
                return {"error": "Authentication required"}, 401
            return redirect(url_for('auth.login'))
        return fn(*args, **kwargs)
    return wrapper

def current_user_id():
    return session['user_id']
