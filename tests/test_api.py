"""
Sanprinon Lite - API Endpoint Tests

Routes, status codes and the error payload shape.
"""

import pytest
from decimal import Decimal

from app.models.lease import LateFeeType, LeaseStatus
from tests.conftest import ADMIN_SECRET, CRON_SECRET, count_entries, create_lease, create_scheduled_expense


def double_entry_body(**overrides):
    body = {
        "debit_account_code": "1200",
        "credit_account_code": "4000",
        "amount": "1200.00",
        "description": "Monthly Rent - March 2026",
        "entry_date": "2026-03-01",
    }
    body.update(overrides)
    return body


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestLedgerEndpoints:

    @pytest.mark.asyncio
    async def test_post_double_entry(self, client, session_factory):
        response = await client.post("/api/v1/ledger/entries/double", json=double_entry_body())

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["total_debits"]) == Decimal(data["total_credits"]) == Decimal("1200.00")
        assert [e["debit_credit"] for e in data["entries"]] == ["DR", "CR"]
        assert await count_entries(session_factory) == 2

    @pytest.mark.asyncio
    async def test_repeated_key_is_already_done(self, client, session_factory):
        body = double_entry_body(idempotency_key="rent-2026-03")
        first = await client.post("/api/v1/ledger/entries/double", json=body)
        second = await client.post("/api/v1/ledger/entries/double", json=body)

        assert first.status_code == 201
        assert second.status_code == 409
        detail = second.json()["detail"]
        assert detail["code"] == "DUPLICATE_ENTRY"
        assert detail["outcome"] == "already_done"
        assert "timestamp" in detail
        assert await count_entries(session_factory) == 2

    @pytest.mark.asyncio
    async def test_unbalanced_legs_are_rejected(self, client, session_factory):
        response = await client.post(
            "/api/v1/ledger/entries/balanced",
            json={"entries": [
                {"account_code": "5000", "amount": "100.00", "direction": "DR", "description": "Plumber"},
                {"account_code": "1000", "amount": "90.00", "direction": "CR", "description": "Plumber"},
            ]},
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "UNBALANCED_TRANSACTION"
        assert detail["outcome"] == "rejected"
        assert await count_entries(session_factory) == 0

    @pytest.mark.asyncio
    async def test_invalid_amount_is_rejected(self, client):
        response = await client.post(
            "/api/v1/ledger/entries",
            json={"account_code": "1000", "amount": "-5", "direction": "DR", "description": "Bad"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_AMOUNT"

    @pytest.mark.asyncio
    async def test_list_and_get_entries(self, client):
        posted = (await client.post("/api/v1/ledger/entries/double", json=double_entry_body())).json()
        entry_id = posted["entries"][0]["id"]

        listed = await client.get("/api/v1/ledger/entries", params={"account_code": "1200"})
        fetched = await client.get(f"/api/v1/ledger/entries/{entry_id}")

        assert [e["id"] for e in listed.json()] == [entry_id]
        assert fetched.json()["account_code"] == "1200"

    @pytest.mark.asyncio
    async def test_unknown_entry_is_404(self, client):
        response = await client.get("/api/v1/ledger/entries/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "ENTRY_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_void_requires_admin_secret(self, client):
        posted = (await client.post("/api/v1/ledger/entries/double", json=double_entry_body())).json()
        url = f"/api/v1/ledger/entries/{posted['entries'][0]['id']}"

        response = await client.request("DELETE", url, json={"reason": "Posted twice"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_void_entry(self, client):
        posted = (await client.post("/api/v1/ledger/entries/double", json=double_entry_body())).json()
        debit_id, credit_id = [e["id"] for e in posted["entries"]]

        by_bearer = await client.request(
            "DELETE",
            f"/api/v1/ledger/entries/{debit_id}",
            json={"reason": "Posted twice", "voided_by": "owner"},
            headers={"Authorization": f"Bearer {ADMIN_SECRET}"},
        )
        by_api_key = await client.request(
            "DELETE",
            f"/api/v1/ledger/entries/{credit_id}",
            json={"reason": "Posted twice"},
            headers={"X-API-Key": ADMIN_SECRET},
        )

        assert by_bearer.status_code == 200
        assert by_bearer.json()["status"] == "VOID"
        assert by_bearer.json()["voided_by"] == "owner"
        assert by_api_key.json()["status"] == "VOID"

        balance = await client.get("/api/v1/ledger/accounts/1200/balance")
        assert Decimal(balance.json()["balance"]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_accounts_and_balance(self, client):
        await client.post("/api/v1/ledger/entries/double", json=double_entry_body())

        accounts = await client.get("/api/v1/ledger/accounts")
        balance = await client.get("/api/v1/ledger/accounts/4000/balance")

        assert "1200" in [a["code"] for a in accounts.json()]
        assert balance.json()["normal_balance"] == "CR"
        assert Decimal(balance.json()["balance"]) == Decimal("1200.00")


class TestReportEndpoints:

    @pytest.mark.asyncio
    async def test_trial_balance(self, client):
        await client.post("/api/v1/ledger/entries/double", json=double_entry_body())

        response = await client.get("/api/v1/reports/trial-balance")

        assert response.status_code == 200
        data = response.json()
        assert data["is_balanced"] is True
        assert Decimal(data["total_debits"]) == Decimal("1200.00")
        assert {i["account_code"] for i in data["items"]} == {"1200", "4000"}

    @pytest.mark.asyncio
    async def test_tenant_balances(self, client, test_lease):
        await client.post(
            "/api/v1/ledger/entries/double",
            json=double_entry_body(lease_id=str(test_lease.id)),
        )

        listed = await client.get("/api/v1/reports/tenant-balances")
        single = await client.get(f"/api/v1/reports/tenant-balances/{test_lease.id}")

        assert [row["lease_id"] for row in listed.json()] == [str(test_lease.id)]
        assert single.json()["tenant_name"] == "Jordan Tenant"
        assert Decimal(single.json()["balance"]) == Decimal("1200.00")


class TestBillingEndpoints:

    @pytest.mark.asyncio
    async def test_charge_rent_once_per_month(self, client, rent_charge, test_lease):
        url = f"/api/v1/leases/{test_lease.id}/charge-rent"

        first = await client.post(url, json={"charge_date": "2026-03-02"})
        second = await client.post(url, json={"charge_date": "2026-03-15"})
        forced = await client.post(url, json={"charge_date": "2026-03-15", "manual": True})

        assert first.status_code == 201
        assert Decimal(first.json()["amount"]) == Decimal("1200.00")
        assert first.json()["debit"]["account_code"] == "1200"
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "INVALID_STATE"
        assert second.json()["detail"]["message"] == "Rent already charged for March 2026"
        assert forced.status_code == 409
        assert forced.json()["detail"]["outcome"] == "already_done"

    @pytest.mark.asyncio
    async def test_charge_rent_on_ended_lease(self, client, db_session):
        lease = await create_lease(db_session, status=LeaseStatus.ENDED)

        response = await client.post(f"/api/v1/leases/{lease.id}/charge-rent")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_STATE"
        assert response.json()["detail"]["outcome"] == "rejected"

    @pytest.mark.asyncio
    async def test_record_payment(self, client, test_lease):
        response = await client.post(
            "/api/v1/payments",
            json={"lease_id": str(test_lease.id), "amount": "500.00", "reference": "CHK-9"},
        )

        assert response.status_code == 201
        assert response.json()["credit"]["account_code"] == "1200"
        assert response.json()["description"].endswith("[CHK-9]")

    @pytest.mark.asyncio
    async def test_charge_late_fee(self, client, db_session):
        lease = await create_lease(db_session, late_fee_amount="75.00", late_fee_type=LateFeeType.FLAT)

        refused = await client.post(f"/api/v1/leases/{lease.id}/charge-late-fee", json={"charge_date": "2026-03-06"})
        charged = await client.post(
            f"/api/v1/leases/{lease.id}/charge-late-fee",
            json={"charge_date": "2026-03-06", "manual": True},
        )

        assert refused.status_code == 409
        assert refused.json()["detail"]["message"] == "Lease has no outstanding balance"
        assert charged.status_code == 201
        assert charged.json()["credit"]["account_code"] == "4010"
        assert Decimal(charged.json()["amount"]) == Decimal("75.00")


class TestDepositEndpoints:

    @pytest.mark.asyncio
    async def test_receive_return_and_status(self, client, test_lease):
        received = await client.post("/api/v1/deposits/receive", json={
            "lease_id": str(test_lease.id),
            "amount": "1000.00",
            "received_date": "2026-01-01",
        })
        assert received.status_code == 201
        assert received.json()["credit"]["account_code"] == "2100"

        held = await client.get(f"/api/v1/deposits/status/{test_lease.id}")
        assert Decimal(held.json()["balance_held"]) == Decimal("1000.00")

        too_much = await client.post("/api/v1/deposits/return", json={
            "lease_id": str(test_lease.id),
            "amount": "1000.01",
            "returned_date": "2026-06-30",
        })
        assert too_much.status_code == 409
        assert too_much.json()["detail"]["code"] == "INVALID_STATE"

        returned = await client.post("/api/v1/deposits/return", json={
            "lease_id": str(test_lease.id),
            "amount": "850.00",
            "deductions": [{"description": "Wall repair", "amount": "150.00", "account_code": "5000"}],
            "returned_date": "2026-06-30",
        })
        assert returned.status_code == 201
        assert Decimal(returned.json()["total_deductions"]) == Decimal("150.00")
        assert len(returned.json()["entries"]) == 4

        held = await client.get(f"/api/v1/deposits/status/{test_lease.id}")
        assert Decimal(held.json()["balance_held"]) == Decimal("0.00")


class TestExpenseEndpoints:

    @pytest.mark.asyncio
    async def test_record_and_list_expenses(self, client):
        created = await client.post("/api/v1/expenses", json={
            "account_code": "5030",
            "amount": "1800.00",
            "description": "Property tax installment",
            "expense_date": "2026-03-15",
        })
        wrong_type = await client.post("/api/v1/expenses", json={
            "account_code": "1000",
            "amount": "5.00",
            "description": "Cash is not an expense",
        })
        listed = await client.get(
            "/api/v1/expenses", params={"start_date": "2026-03-01", "end_date": "2026-03-31"}
        )

        assert created.status_code == 201
        assert created.json()["credit"]["account_code"] == "1000"
        assert wrong_type.status_code == 422
        assert wrong_type.json()["detail"]["code"] == "ACCOUNT_TYPE_MISMATCH"
        assert [row["account_code"] for row in listed.json()] == ["5030"]

    @pytest.mark.asyncio
    async def test_pending_expense_review(self, client, db_session):
        await create_scheduled_expense(db_session, description="Pest control", requires_confirmation=True)
        run = await client.post(
            "/api/v1/cron/daily-expenses",
            params={"run_date": "2026-03-01"},
            headers={"X-Cron-Secret": CRON_SECRET},
        )
        assert run.status_code == 200
        assert run.json()["job_name"] == "daily-expenses"
        assert run.json()["charges_pending"] == 1
        assert run.json()["results"][0]["lease_id"] is None

        pending = await client.get("/api/v1/pending-expenses")
        assert [p["description"] for p in pending.json()] == ["Pest control - March 2026"]
        pending_id = pending.json()[0]["id"]

        confirmed = await client.post(
            f"/api/v1/pending-expenses/{pending_id}/confirm", json={"resolved_by": "owner"}
        )
        again = await client.post(f"/api/v1/pending-expenses/{pending_id}/skip")

        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "CONFIRMED"
        assert confirmed.json()["ledger_entry_id"] is not None
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_daily_expenses_requires_cron_secret(self, client):
        response = await client.post("/api/v1/cron/daily-expenses")

        assert response.status_code == 401


class TestCronEndpoints:

    @pytest.mark.asyncio
    async def test_requires_cron_secret(self, client):
        response = await client.post("/api/v1/cron/daily-charges")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_daily_charges_run(self, client, rent_charge):
        response = await client.get(
            "/api/v1/cron/daily-charges",
            params={"run_date": "2026-03-01"},
            headers={"X-Cron-Secret": CRON_SECRET},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "SUCCESS"
        assert data["charges_posted"] == 1
        assert data["results"][0]["status"] == "posted"

        logs = await client.get("/api/v1/cron/logs")
        assert len(logs.json()) == 1
        assert logs.json()[0]["id"] == data["cron_log_id"]

    @pytest.mark.asyncio
    async def test_bearer_token_accepted(self, client, rent_charge):
        response = await client.post(
            "/api/v1/cron/daily-charges?run_date=2026-03-01",
            headers={"Authorization": f"Bearer {CRON_SECRET}"},
        )

        assert response.status_code == 200


class TestReconciliationEndpoints:

    @pytest.mark.asyncio
    async def test_reconciliation_flow(self, client, bank_account):
        await client.post("/api/v1/ledger/entries/double", json=double_entry_body(
            debit_account_code="1000",
            credit_account_code="1200",
            amount="500.00",
            description="Deposit",
            entry_date="2026-03-05",
        ))

        created = await client.post("/api/v1/reconciliations", json={
            "bank_account_id": str(bank_account.id),
            "start_date": "2026-03-01",
            "end_date": "2026-03-31",
            "statement_balance": "490.00",
            "lines": [
                {"line_date": "2026-03-05", "description": "DEPOSIT", "amount": "500.00"},
                {"line_date": "2026-03-28", "description": "FEE", "amount": "-10.00"},
            ],
        })
        assert created.status_code == 201
        rec = created.json()
        assert [line["status"] for line in rec["lines"]] == ["MATCHED", "UNMATCHED"]
        fee_line_id = rec["lines"][1]["id"]

        blocked = await client.post(f"/api/v1/reconciliations/{rec['id']}/finalize", json={})
        assert blocked.status_code == 409
        assert blocked.json()["detail"]["code"] == "INVALID_STATE"

        excluded = await client.post(
            f"/api/v1/reconciliations/{rec['id']}/exclude",
            json={"line_id": fee_line_id},
        )
        assert excluded.json()["status"] == "EXCLUDED"

        final = await client.post(
            f"/api/v1/reconciliations/{rec['id']}/finalize",
            json={"finalized_by": "bookkeeper"},
        )
        assert final.status_code == 200
        assert final.json()["status"] == "FINALIZED"
        assert Decimal(final.json()["ledger_balance"]) == Decimal("500.00")

        fetched = await client.get(f"/api/v1/reconciliations/{rec['id']}")
        assert fetched.json()["finalized_by"] == "bookkeeper"
