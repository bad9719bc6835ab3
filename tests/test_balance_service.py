"""
Sanprinon Lite - Balance Calculator Tests
"""

import pytest
from datetime import date
from decimal import Decimal

from app.config import Settings
from app.models.accounting import EntryDirection
from app.services.balance_service import BalanceService, net_balance, signed_amount
from app.services.lease_billing_service import LeaseBillingService
from app.services.ledger_service import EntryParams, LedgerService
from app.utils.error_handling import AccountNotFoundException
from tests.conftest import create_charge, create_lease


class TestSignConvention:
    """Normal-side entries add, the others subtract."""

    def test_signed_amount(self):
        assert signed_amount(Decimal("10"), EntryDirection.DR, EntryDirection.DR) == Decimal("10")
        assert signed_amount(Decimal("10"), EntryDirection.CR, EntryDirection.DR) == Decimal("-10")
        assert signed_amount(Decimal("10"), EntryDirection.CR, EntryDirection.CR) == Decimal("10")

    def test_net_balance(self):
        totals = {EntryDirection.DR: Decimal("1200.00"), EntryDirection.CR: Decimal("500.00")}

        assert net_balance(totals, EntryDirection.DR) == Decimal("700.00")
        assert net_balance(totals, EntryDirection.CR) == Decimal("-700.00")
        assert net_balance({}, EntryDirection.DR) == Decimal("0.00")


class TestBalanceService:
    """Balances derived from POSTED entries."""

    @pytest.mark.asyncio
    async def test_rent_then_payment(self, db_session, settings: Settings, rent_charge, test_lease):
        billing = LeaseBillingService(db_session, settings)
        await billing.charge_rent(test_lease.id, charge_date=date(2026, 3, 1))
        await billing.record_payment(test_lease.id, Decimal("500.00"), payment_date=date(2026, 3, 10))

        balances = BalanceService(db_session)
        assert await balances.get_account_balance("1200") == Decimal("700.00")
        assert await balances.get_account_balance("4000") == Decimal("1200.00")
        assert await balances.get_account_balance("1000") == Decimal("500.00")
        assert await balances.get_lease_balance(test_lease.id) == Decimal("700.00")

    @pytest.mark.asyncio
    async def test_as_of_excludes_later_entries(self, db_session):
        service = LedgerService(db_session)
        await service.post_entry("1000", "100.00", "DR", "Early", date(2026, 3, 1), idempotency_key="early")
        await service.post_entry("1000", "40.00", "CR", "Late", date(2026, 3, 20), idempotency_key="late")

        balances = BalanceService(db_session)
        assert await balances.get_account_balance("1000", as_of=date(2026, 3, 15)) == Decimal("100.00")
        assert await balances.get_account_balance("1000") == Decimal("60.00")

    @pytest.mark.asyncio
    async def test_liability_balance_grows_with_credits(self, db_session):
        service = LedgerService(db_session)
        await service.post_double_entry(
            EntryParams("1000", Decimal("100.00"), EntryDirection.DR, "Deposit in", date(2026, 3, 1)),
            EntryParams("2100", Decimal("100.00"), EntryDirection.CR, "Deposit in", date(2026, 3, 1)),
        )
        await service.post_double_entry(
            EntryParams("2100", Decimal("40.00"), EntryDirection.DR, "Partial refund", date(2026, 3, 15)),
            EntryParams("1000", Decimal("40.00"), EntryDirection.CR, "Partial refund", date(2026, 3, 15)),
        )

        assert await BalanceService(db_session).get_account_balance("2100") == Decimal("60.00")

    @pytest.mark.asyncio
    async def test_unknown_account(self, db_session):
        with pytest.raises(AccountNotFoundException):
            await BalanceService(db_session).get_account_balance("9999")

    @pytest.mark.asyncio
    async def test_account_with_no_entries_is_zero(self, db_session):
        assert await BalanceService(db_session).get_account_balance("5000") == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_account_balance_report(self, db_session):
        await LedgerService(db_session).post_entry("5000", "80.00", "DR", "Plumber", date(2026, 3, 3))

        report = await BalanceService(db_session).get_account_balance_report("5000")

        assert report.account_name == "Repairs & Maintenance"
        assert report.normal_balance == EntryDirection.DR
        assert report.balance == Decimal("80.00")


class TestReports:
    """Trial balance and tenant balances."""

    @pytest.mark.asyncio
    async def test_trial_balance_is_balanced(self, db_session):
        service = LedgerService(db_session)
        await service.post_double_entry(
            EntryParams("1200", Decimal("1200.00"), EntryDirection.DR, "Rent", date(2026, 3, 1), idempotency_key="tb:1"),
            EntryParams("4000", Decimal("1200.00"), EntryDirection.CR, "Rent", date(2026, 3, 1), idempotency_key="tb:2"),
        )
        await service.post_double_entry(
            EntryParams("5000", Decimal("300.00"), EntryDirection.DR, "Repair", date(2026, 3, 2), idempotency_key="tb:3"),
            EntryParams("1000", Decimal("300.00"), EntryDirection.CR, "Repair", date(2026, 3, 2), idempotency_key="tb:4"),
        )

        report = await BalanceService(db_session).get_trial_balance()

        assert report.is_balanced
        assert report.total_debits == Decimal("1500.00")
        assert report.total_credits == Decimal("1500.00")
        items = {item.account_code: item for item in report.items}
        assert set(items) == {"1000", "1200", "4000", "5000"}
        # Cash went negative, so it shows on the credit side
        assert items["1000"].credit_balance == Decimal("300.00")
        assert items["1000"].debit_balance == Decimal("0")
        assert items["4000"].credit_balance == Decimal("1200.00")

    @pytest.mark.asyncio
    async def test_trial_balance_include_zero(self, db_session):
        report = await BalanceService(db_session).get_trial_balance(include_zero=True)

        assert report.is_balanced
        assert len(report.items) > 0
        assert all(item.debit_balance == 0 and item.credit_balance == 0 for item in report.items)

    @pytest.mark.asyncio
    async def test_tenant_balances(self, db_session, settings: Settings):
        owing = await create_lease(db_session, tenant_name="Owes Rent")
        paid_up = await create_lease(db_session, tenant_name="Paid Up")
        await create_charge(db_session, owing)
        await create_charge(db_session, paid_up, amount="900.00")

        billing = LeaseBillingService(db_session, settings)
        await billing.charge_rent(owing.id, charge_date=date(2026, 3, 1))
        await billing.charge_rent(paid_up.id, charge_date=date(2026, 3, 1))
        await billing.record_payment(paid_up.id, Decimal("900.00"), payment_date=date(2026, 3, 2))

        balances = await BalanceService(db_session).get_tenant_balances()

        assert [b.tenant_name for b in balances] == ["Owes Rent"]
        assert balances[0].balance == Decimal("1200.00")

        everyone = await BalanceService(db_session).get_tenant_balances(include_zero=True)
        assert {b.tenant_name for b in everyone} == {"Owes Rent", "Paid Up"}
