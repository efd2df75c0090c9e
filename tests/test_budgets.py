"""
Test suite for budget routes.
"""

import pytest

from tests.conftest import tx_row


class TestBudgetsPage:
    """Test the budgets page."""

    def test_requires_auth(self, client):
        response = client.get('/budgets/')
        assert response.status_code == 302

    def test_shows_progress_and_overspend(self, logged_in_client, mock_db):
        conn, cursor = mock_db
        cursor.fetchall.side_effect = [
            [tx_row(1, amount=80.0, category='Food'), tx_row(2, amount=70.0, category='Food'),
             tx_row(3, amount=20.0, category='Entertainment')],
            [{'id': 1, 'category': 'Entertainment', 'target': 50},
             {'id': 2, 'category': 'Food', 'target': 100}],
        ]

        response = logged_in_client.get('/budgets/')

        assert response.status_code == 200
        assert b'$150.00 / $100.00' in response.data
        assert b'$50.00 over budget' in response.data
        assert b'$30.00 left' in response.data

    def test_used_categories_not_offered(self, logged_in_client, mock_db):
        conn, cursor = mock_db
        cursor.fetchall.side_effect = [[], [{'id': 1, 'category': 'Rent', 'target': 800}]]

        response = logged_in_client.get('/budgets/')

        assert b'<option value="Rent">' not in response.data
        assert b'<option value="Food">' in response.data


class TestBudgetMutations:
    """Test adding, editing and deleting budgets."""

    def test_add_budget(self, logged_in_client, mock_db):
        conn, cursor = mock_db
        cursor.fetchone.return_value = None

        response = logged_in_client.post('/budgets/add', data={'category': 'Food', 'target': '300'})

        assert response.status_code == 302
        cursor.execute.assert_called_with(
            "INSERT INTO budgets (user_id, category, target) VALUES (%s, %s, %s)", (1, 'Food', 300.0)
        )
        conn.commit.assert_called_once()

    def test_add_duplicate_category(self, logged_in_client, mock_db):
        conn, cursor = mock_db
        cursor.fetchone.return_value = {'id': 3}

        response = logged_in_client.post('/budgets/add', data={'category': 'Food', 'target': '300'},
                                         follow_redirects=False)

        assert response.status_code == 302
        conn.commit.assert_not_called()

    @pytest.mark.parametrize("data", [
        {'category': 'Salary', 'target': '100'},
        {'category': 'Food', 'target': '0'},
        {'category': 'Food', 'target': '-20'},
        {'category': 'Food', 'target': 'lots'},
    ])
    def test_add_invalid(self, logged_in_client, mock_db, data):
        conn, cursor = mock_db

        logged_in_client.post('/budgets/add', data=data)

        cursor.execute.assert_not_called()

    def test_edit_budget(self, logged_in_client, mock_db):
        conn, cursor = mock_db
        cursor.fetchone.return_value = {'id': 4}

        response = logged_in_client.post('/budgets/edit/4', data={'target': '250.50'})

        assert response.status_code == 302
        cursor.execute.assert_called_with(
            "UPDATE budgets SET target=%s WHERE id=%s AND user_id=%s", (250.5, 4, 1)
        )

    def test_edit_missing_budget(self, logged_in_client, mock_db):
        conn, cursor = mock_db
        cursor.fetchone.return_value = None

        response = logged_in_client.post('/budgets/edit/99', data={'target': '10'})

        assert response.status_code == 404

    def test_delete_budget(self, logged_in_client, mock_db):
        conn, cursor = mock_db

        logged_in_client.post('/budgets/delete/4')

        cursor.execute.assert_called_with("DELETE FROM budgets WHERE id=%s AND user_id=%s", (4, 1))
