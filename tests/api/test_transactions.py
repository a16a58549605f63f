"""
Tests for account and transaction API endpoints.

These test the HTTP layer: status codes, response format,
and error translation. Business logic is tested in
tests/services.
"""

from datetime import timedelta

from ledger_engine.api.deps import get_authorizer
from ledger_engine.clock import utcnow
from ledger_engine.main import app
from ledger_engine.models import AuditLog
from ledger_engine.security import RoleAuthorizer


def create_account(client, account_type="SAVINGS", initial_deposit="500.00", email="api@test.com"):
    customer = client.post("/customers", json={
        "first_name": "Api", "last_name": "User", "email": email,
    }).json()
    response = client.post("/accounts", json={
        "customer_id": customer["id"],
        "account_type": account_type,
        "initial_deposit": initial_deposit,
    })
    assert response.status_code == 201
    return response.json()


class TestAccounts:

    def test_open_account_returns_balances(self, client):
        account = create_account(client)

        assert account["account_number"].startswith("ACC")
        assert account["status"] == "ACTIVE"
        assert float(account["balance"]) == 500.00

    def test_duplicate_customer_email_returns_400(self, client):
        payload = {"first_name": "A", "last_name": "B", "email": "dup@test.com"}
        client.post("/customers", json=payload)

        response = client.post("/customers", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_INPUT"

    def test_unknown_account_returns_404(self, client):
        response = client.get("/accounts/ACC000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "ACCOUNT_NOT_FOUND"

    def test_close_with_balance_returns_409(self, client):
        account = create_account(client, initial_deposit="0.01")

        response = client.post(f"/accounts/{account['account_number']}/close")

        assert response.status_code == 409
        assert response.json()["error"] == "NON_ZERO_BALANCE"

    def test_customer_accounts_listed(self, client):
        account = create_account(client)

        response = client.get(f"/customers/{account['customer_id']}/accounts")

        assert [a["account_number"] for a in response.json()] == [account["account_number"]]


class TestMoneyMovement:

    def test_transfer_returns_snapshots(self, client):
        a = create_account(client, email="a@test.com")
        b = create_account(client, initial_deposit="300.00", email="b@test.com")

        response = client.post("/transactions/transfer", json={
            "source_account_number": a["account_number"],
            "target_account_number": b["account_number"],
            "amount": "200.00",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "COMPLETED"
        assert float(data["source_balance_after"]) == 300.00
        assert float(data["target_balance_after"]) == 500.00

    def test_insufficient_funds_returns_422_and_records_failure(self, client):
        account = create_account(client)

        response = client.post("/transactions/withdraw", json={
            "account_number": account["account_number"],
            "amount": "600.00",
        })

        assert response.status_code == 422
        assert response.json()["error"] == "INSUFFICIENT_FUNDS"
        history = client.get(f"/accounts/{account['account_number']}/transactions").json()
        assert [t["status"] for t in history] == ["FAILED"]

    def test_non_positive_amount_rejected_by_schema(self, client):
        account = create_account(client)

        response = client.post("/transactions/deposit", json={
            "account_number": account["account_number"],
            "amount": "0",
        })

        assert response.status_code == 422

    def test_amount_finer_than_four_places_rejected_by_schema(self, client):
        account = create_account(client)

        response = client.post("/transactions/deposit", json={
            "account_number": account["account_number"],
            "amount": "0.00001",
        })

        assert response.status_code == 422
        history = client.get(f"/accounts/{account['account_number']}/transactions").json()
        assert history == []

    def test_same_account_transfer_returns_400(self, client):
        account = create_account(client)

        response = client.post("/transactions/transfer", json={
            "source_account_number": account["account_number"],
            "target_account_number": account["account_number"],
            "amount": "1.00",
        })

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_TRANSFER"

    def test_reverse_deposit(self, client):
        account = create_account(client, initial_deposit="200.00")
        deposit = client.post("/transactions/deposit", json={
            "account_number": account["account_number"],
            "amount": "75.00",
        }).json()

        response = client.post(
            f"/transactions/{deposit['transaction_id']}/reverse",
            json={"reason": "Duplicate"},
        )

        assert response.status_code == 201
        assert response.json()["transaction_type"] == "REVERSAL"
        original = client.get(f"/transactions/{deposit['transaction_id']}").json()
        assert original["status"] == "REVERSED"
        balance = client.get(f"/accounts/{account['account_number']}").json()["balance"]
        assert float(balance) == 200.00

    def test_reverse_denied_returns_403(self, client):
        account = create_account(client)
        deposit = client.post("/transactions/deposit", json={
            "account_number": account["account_number"],
            "amount": "5.00",
        }).json()
        app.dependency_overrides[get_authorizer] = lambda: RoleAuthorizer({"boss": {"ADMIN"}})

        denied = client.post(
            f"/transactions/{deposit['transaction_id']}/reverse",
            json={"reason": "No"},
            headers={"X-Acting-User": "teller"},
        )
        allowed = client.post(
            f"/transactions/{deposit['transaction_id']}/reverse",
            json={"reason": "Yes"},
            headers={"X-Acting-User": "boss"},
        )

        assert denied.status_code == 403
        assert allowed.status_code == 201


class TestScheduledEndpoints:

    def test_schedule_list_and_execute(self, client):
        a = create_account(client, email="a@test.com")
        b = create_account(client, initial_deposit="100.00", email="b@test.com")
        when = (utcnow() + timedelta(hours=1)).isoformat()

        scheduled = client.post("/transactions/schedule", json={
            "source_account_number": a["account_number"],
            "target_account_number": b["account_number"],
            "amount": "25.00",
            "scheduled_date": when,
        })
        assert scheduled.status_code == 201
        assert scheduled.json()["status"] == "SCHEDULED"

        listed = client.get("/transactions/scheduled").json()
        assert [t["transaction_id"] for t in listed] == [scheduled.json()["transaction_id"]]

        executed = client.post(f"/transactions/{scheduled.json()['transaction_id']}/execute")
        assert executed.status_code == 200
        assert executed.json()["status"] == "COMPLETED"
        assert client.get("/transactions/scheduled").json() == []

    def test_schedule_in_past_returns_400(self, client):
        account = create_account(client)

        response = client.post("/transactions/schedule", json={
            "source_account_number": account["account_number"],
            "amount": "5.00",
            "transaction_type": "DEPOSIT",
            "scheduled_date": "2000-01-01T00:00:00",
        })

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_SCHEDULE_DATE"

    def test_schedule_with_utc_offset_accepted(self, client):
        account = create_account(client)

        response = client.post("/transactions/schedule", json={
            "source_account_number": account["account_number"],
            "amount": "5.00",
            "transaction_type": "DEPOSIT",
            "scheduled_date": "2099-01-01T02:00:00+02:00",
        })

        assert response.status_code == 201
        assert response.json()["scheduled_date"] == "2099-01-01T00:00:00"

    def test_schedule_with_z_suffix_accepted(self, client):
        account = create_account(client)

        response = client.post("/transactions/schedule", json={
            "source_account_number": account["account_number"],
            "amount": "5.00",
            "transaction_type": "DEPOSIT",
            "scheduled_date": "2099-01-01T00:00:00Z",
        })

        assert response.status_code == 201
        assert response.json()["scheduled_date"] == "2099-01-01T00:00:00"


class TestReportsAndAudit:

    def test_weekly_report(self, client):
        account = create_account(client)
        client.post("/transactions/deposit", json={
            "account_number": account["account_number"], "amount": "10.00",
        })

        report = client.get("/transactions/reports/weekly").json()

        assert report["period"] == "WEEKLY"
        assert report["total_count"] == 1
        assert report["active_accounts"] == 1

    def test_mutations_are_audited_with_acting_user(self, client, db_session):
        client.post(
            "/customers",
            json={"first_name": "A", "last_name": "B", "email": "audit@test.com"},
            headers={"X-Acting-User": "clerk-7"},
        )

        rows = db_session.query(AuditLog).order_by(AuditLog.id).all()
        assert [(r.actor, r.operation, r.outcome.value) for r in rows] == [
            ("clerk-7", "create_customer", "STARTED"),
            ("clerk-7", "create_customer", "COMPLETED"),
        ]
