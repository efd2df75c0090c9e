"""
Test suite for authentication routes.
Tests cover signup, login and logout.
"""

import mysql.connector
import pytest
from werkzeug.security import generate_password_hash

from tests.conftest import make_mock_connection, login_session


class TestSignup:
    """Test user registration."""

    def test_signup_page_renders(self, client):
        """Signup page should be accessible."""
        response = client.get('/auth/signup')
        assert response.status_code == 200
        assert b'Sign Up' in response.data

    def test_signup_valid_user(self, client_no_csrf, app_no_csrf):
        """Valid signup should create the user with a default goal and log them in."""
        conn, cursor = make_mock_connection()
        cursor.fetchone.return_value = None  # No existing user
        cursor.lastrowid = 42
        app_no_csrf.db_pool.get_connection.return_value = conn

        response = client_no_csrf.post('/auth/signup', data={
            'first_name': 'Alex',
            'last_name': 'Student',
            'email': 'Alex@College.edu',
            'password': 'securepassword123',
        }, follow_redirects=False)

        assert response.status_code == 302
        assert '/settings/' in response.headers.get('Location', '')

        statements = [c.args[0] for c in cursor.execute.call_args_list]
        assert any(s.startswith('INSERT INTO users') for s in statements)
        goal_call = [c for c in cursor.execute.call_args_list if c.args[0].startswith('INSERT INTO goals')][0]
        assert goal_call.args[1] == (42, 'Save for a new laptop', 500, 100)
        conn.commit.assert_called_once()

        user_call = [c for c in cursor.execute.call_args_list if c.args[0].startswith('INSERT INTO users')][0]
        assert user_call.args[1][0] == 'alex@college.edu'

        with client_no_csrf.session_transaction() as sess:
            assert sess.get('user_id') == 42
            assert sess.get('user_name') == 'Alex'

    def test_signup_duplicate_email(self, client_no_csrf, app_no_csrf):
        """Signup with existing email should return error."""
        conn, cursor = make_mock_connection()
        cursor.fetchone.return_value = {'id': 1}  # Email exists
        app_no_csrf.db_pool.get_connection.return_value = conn

        response = client_no_csrf.post('/auth/signup', data={
            'first_name': 'Another',
            'last_name': 'User',
            'email': 'existing@example.com',
            'password': 'securepassword123',
        })

        assert response.status_code == 400
        conn.commit.assert_not_called()

    def test_signup_email_taken_between_check_and_insert(self, client_no_csrf, app_no_csrf):
        """A duplicate key raised by the insert is reported like any duplicate email."""
        conn, cursor = make_mock_connection()
        cursor.fetchone.return_value = None

        def execute(sql, params=None):
            if sql.startswith('INSERT INTO users'):
                raise mysql.connector.IntegrityError(msg="Duplicate entry for key 'email'", errno=1062)
        cursor.execute.side_effect = execute
        app_no_csrf.db_pool.get_connection.return_value = conn

        response = client_no_csrf.post('/auth/signup', data={
            'first_name': 'Racing',
            'last_name': 'User',
            'email': 'race@example.com',
            'password': 'securepassword123',
        })

        assert response.status_code == 400
        assert b'Email already exists' in response.data
        conn.commit.assert_not_called()
        conn.close.assert_called_once()
        with client_no_csrf.session_transaction() as sess:
            assert 'user_id' not in sess

    def test_signup_password_too_short(self, client_no_csrf, app_no_csrf):
        """Signup with password < 8 chars should be rejected."""
        response = client_no_csrf.post('/auth/signup', data={
            'first_name': 'Test',
            'last_name': 'User',
            'email': 'test@example.com',
            'password': 'short',
        }, follow_redirects=False)

        assert response.status_code == 302
        assert '/auth/signup' in response.headers.get('Location', '')

    def test_signup_missing_fields(self, client_no_csrf, app_no_csrf):
        """Signup with missing fields should be rejected."""
        response = client_no_csrf.post('/auth/signup', data={
            'first_name': '',
            'last_name': 'User',
            'email': 'test@example.com',
            'password': 'password12345',
        }, follow_redirects=False)

        assert response.status_code == 400


class TestLogin:
    """Test user login."""

    def test_login_page_renders(self, client):
        """Login page should be accessible."""
        response = client.get('/auth/login')
        assert response.status_code == 200

    def test_login_valid_credentials(self, client_no_csrf, app_no_csrf):
        """Valid login should set session and redirect to dashboard."""
        conn, cursor = make_mock_connection()
        cursor.fetchone.return_value = {
            'id': 1,
            'first_name': 'Alex',
            'password_hash': generate_password_hash('correctpassword'),
        }
        app_no_csrf.db_pool.get_connection.return_value = conn

        response = client_no_csrf.post('/auth/login', data={
            'email': 'alex@college.edu',
            'password': 'correctpassword',
        }, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers.get('Location', '').endswith('/')

        with client_no_csrf.session_transaction() as sess:
            assert sess.get('user_id') == 1
            assert sess.get('user_name') == 'Alex'

    def test_login_invalid_password(self, client_no_csrf, app_no_csrf):
        """Login with wrong password should fail."""
        conn, cursor = make_mock_connection()
        cursor.fetchone.return_value = {
            'id': 1,
            'first_name': 'Alex',
            'password_hash': generate_password_hash('correctpassword'),
        }
        app_no_csrf.db_pool.get_connection.return_value = conn

        response = client_no_csrf.post('/auth/login', data={
            'email': 'alex@college.edu',
            'password': 'wrongpassword',
        }, follow_redirects=False)

        assert response.status_code == 302
        assert '/auth/login' in response.headers.get('Location', '')

        with client_no_csrf.session_transaction() as sess:
            assert 'user_id' not in sess

    def test_login_nonexistent_user(self, client_no_csrf, app_no_csrf):
        """Login with non-existent email should fail."""
        conn, cursor = make_mock_connection()
        cursor.fetchone.return_value = None
        app_no_csrf.db_pool.get_connection.return_value = conn

        response = client_no_csrf.post('/auth/login', data={
            'email': 'nonexistent@example.com',
            'password': 'anypassword',
        }, follow_redirects=False)

        assert response.status_code == 302
        assert '/auth/login' in response.headers.get('Location', '')

    def test_login_email_case_insensitive(self, client_no_csrf, app_no_csrf):
        """Email should be lowercased before the lookup."""
        conn, cursor = make_mock_connection()
        cursor.fetchone.return_value = None
        app_no_csrf.db_pool.get_connection.return_value = conn

        client_no_csrf.post('/auth/login', data={
            'email': 'TEST@EXAMPLE.COM',
            'password': 'password123',
        })

        assert cursor.execute.call_args.args[1] == ('test@example.com',)


class TestLogout:
    """Test user logout."""

    def test_logout_clears_session(self, client_no_csrf, app_no_csrf):
        """Logout should clear session and redirect to login."""
        login_session(client_no_csrf)

        response = client_no_csrf.get('/auth/logout', follow_redirects=False)

        assert response.status_code == 302
        assert '/auth/login' in response.headers.get('Location', '')

        with client_no_csrf.session_transaction() as sess:
            assert 'user_id' not in sess


class TestPasswordSecurity:
    """Test password handling security."""

    def test_min_password_length_defined(self):
        """MIN_PASSWORD_LENGTH should be at least 8."""
        from routes.auth import MIN_PASSWORD_LENGTH
        assert MIN_PASSWORD_LENGTH >= 8

    def test_password_hashing_works(self):
        """Passwords should be properly hashed."""
        from werkzeug.security import check_password_hash
        password = 'test_password_123'
        hashed = generate_password_hash(password)

        assert hashed != password
        assert check_password_hash(hashed, password) is True
        assert check_password_hash(hashed, 'wrong_password') is False
