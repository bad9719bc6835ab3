"""Initial ledger schema

Revision ID: 20261019_0900_initial_ledger_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

from app.models.accounting import NORMAL_BALANCES
from app.services.account_registry import DEFAULT_CHART_OF_ACCOUNTS

# revision identifiers, used by Alembic.
revision = '20261019_0900_initial_ledger_schema'
down_revision = None
branch_labels = None
depends_on = None


account_type_enum = sa.Enum('ASSET', 'LIABILITY', 'EQUITY', 'INCOME', 'EXPENSE', name='accounttype')
entry_direction_enum = sa.Enum('DR', 'CR', name='entrydirection')
entry_status_enum = sa.Enum('POSTED', 'VOID', name='entrystatus')
lease_status_enum = sa.Enum('DRAFT', 'ACTIVE', 'ENDED', 'TERMINATED', name='leasestatus')
late_fee_type_enum = sa.Enum('FLAT', 'PERCENTAGE', name='latefeetype')
pending_expense_status_enum = sa.Enum('PENDING', 'CONFIRMED', 'SKIPPED', name='pendingexpensestatus')
cron_status_enum = sa.Enum('SUCCESS', 'PARTIAL', 'FAILED', name='cronrunstatus')
reconciliation_status_enum = sa.Enum('IN_PROGRESS', 'FINALIZED', name='reconciliationstatus')
line_status_enum = sa.Enum('UNMATCHED', 'MATCHED', 'EXCLUDED', name='reconciliationlinestatus')
match_confidence_enum = sa.Enum('AUTO', 'MANUAL', name='matchconfidence')
webhook_status_enum = sa.Enum('RECEIVED', 'PROCESSED', 'FAILED', 'IGNORED', name='webhookeventstatus')


def _timestamps(updated: bool = True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        )
    return columns


def upgrade() -> None:
    # =========================================================================
    # CHART OF ACCOUNTS
    # =========================================================================
    chart_of_accounts = op.create_table(
        'chart_of_accounts',
        sa.Column('code', sa.String(10), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', account_type_enum, nullable=False),
        sa.Column('normal_balance', entry_direction_enum, nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('code', name='pk_chart_of_accounts'),
    )

    # =========================================================================
    # LEASES & SCHEDULED CHARGES
    # =========================================================================
    op.create_table(
        'leases',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_name', sa.String(255), nullable=False),
        sa.Column('unit_name', sa.String(100), nullable=True),
        sa.Column('property_name', sa.String(255), nullable=True),
        sa.Column('status', lease_status_enum, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('late_fee_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('late_fee_type', late_fee_type_enum, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_leases'),
    )

    op.create_table(
        'scheduled_charges',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('lease_id', sa.Uuid(), nullable=False),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('account_code', sa.String(10), nullable=False, server_default='4000'),
        sa.Column('charge_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_charged_date', sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_scheduled_charges'),
        sa.ForeignKeyConstraint(['lease_id'], ['leases.id'], name='fk_scheduled_charges_lease_id_leases'),
        sa.CheckConstraint('charge_day >= 1 AND charge_day <= 28', name='ck_scheduled_charges_charge_day_range'),
        sa.CheckConstraint('amount > 0', name='ck_scheduled_charges_positive_amount'),
    )
    op.create_index('ix_scheduled_charges_lease_id', 'scheduled_charges', ['lease_id'])

    # =========================================================================
    # LEDGER ENTRIES
    # =========================================================================
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('account_code', sa.String(10), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('debit_credit', entry_direction_enum, nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('lease_id', sa.Uuid(), nullable=True),
        sa.Column('posted_by', sa.String(100), nullable=False),
        sa.Column('status', entry_status_enum, nullable=False, server_default='POSTED'),
        sa.Column('idempotency_key', sa.String(100), nullable=False),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by', sa.String(100), nullable=True),
        sa.Column('void_reason', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_ledger_entries'),
        sa.ForeignKeyConstraint(
            ['account_code'], ['chart_of_accounts.code'],
            name='fk_ledger_entries_account_code_chart_of_accounts',
        ),
        sa.ForeignKeyConstraint(['lease_id'], ['leases.id'], name='fk_ledger_entries_lease_id_leases'),
        sa.UniqueConstraint('idempotency_key', name='uq_ledger_entries_idempotency_key'),
        sa.CheckConstraint('amount > 0', name='ck_ledger_entries_positive_amount'),
    )
    op.create_index('ix_ledger_entries_account_date', 'ledger_entries', ['account_code', 'entry_date'])
    op.create_index('ix_ledger_entries_lease', 'ledger_entries', ['lease_id'])
    op.create_index('ix_ledger_entries_status', 'ledger_entries', ['status'])

    # Ledger rows may only move POSTED -> VOID; deletes are refused outright
    op.execute("""
        CREATE OR REPLACE FUNCTION ledger_entries_protect() RETURNS trigger AS $$
        BEGIN
            IF TG_OP = 'DELETE' THEN
                RAISE EXCEPTION 'ledger_entries rows cannot be deleted; void them instead';
            END IF;
            IF OLD.status = 'VOID' THEN
                RAISE EXCEPTION 'voided ledger entries cannot be changed';
            END IF;
            IF NEW.id IS DISTINCT FROM OLD.id
                OR NEW.entry_date IS DISTINCT FROM OLD.entry_date
                OR NEW.account_code IS DISTINCT FROM OLD.account_code
                OR NEW.amount IS DISTINCT FROM OLD.amount
                OR NEW.debit_credit IS DISTINCT FROM OLD.debit_credit
                OR NEW.description IS DISTINCT FROM OLD.description
                OR NEW.lease_id IS DISTINCT FROM OLD.lease_id
                OR NEW.posted_by IS DISTINCT FROM OLD.posted_by
                OR NEW.idempotency_key IS DISTINCT FROM OLD.idempotency_key
                OR NEW.created_at IS DISTINCT FROM OLD.created_at THEN
                RAISE EXCEPTION 'ledger entries are append-only; only voiding is allowed';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER ledger_entries_protect
        BEFORE UPDATE OR DELETE ON ledger_entries
        FOR EACH ROW EXECUTE FUNCTION ledger_entries_protect();
    """)

    # =========================================================================
    # SCHEDULED & PENDING EXPENSES
    # =========================================================================
    op.create_table(
        'scheduled_expenses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('property_name', sa.String(255), nullable=False),
        sa.Column('vendor_name', sa.String(255), nullable=True),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('account_code', sa.String(10), nullable=False),
        sa.Column('charge_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('requires_confirmation', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_posted_date', sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_scheduled_expenses'),
        sa.CheckConstraint('charge_day >= 1 AND charge_day <= 28', name='ck_scheduled_expenses_charge_day_range'),
        sa.CheckConstraint('amount > 0', name='ck_scheduled_expenses_positive_amount'),
    )

    op.create_table(
        'pending_expenses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('scheduled_expense_id', sa.Uuid(), nullable=False),
        sa.Column('property_name', sa.String(255), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('account_code', sa.String(10), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('period', sa.String(7), nullable=False),
        sa.Column('status', pending_expense_status_enum, nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by', sa.String(100), nullable=True),
        sa.Column('ledger_entry_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_pending_expenses'),
        sa.ForeignKeyConstraint(
            ['scheduled_expense_id'], ['scheduled_expenses.id'],
            name='fk_pending_expenses_scheduled_expense_id_scheduled_expenses',
        ),
        sa.ForeignKeyConstraint(
            ['ledger_entry_id'], ['ledger_entries.id'],
            name='fk_pending_expenses_ledger_entry_id_ledger_entries',
        ),
        sa.UniqueConstraint('scheduled_expense_id', 'period', name='uq_pending_expense_period'),
        sa.CheckConstraint('amount > 0', name='ck_pending_expenses_positive_amount'),
    )
    op.create_index('ix_pending_expenses_scheduled_expense_id', 'pending_expenses', ['scheduled_expense_id'])

    # =========================================================================
    # CRON LOGS
    # =========================================================================
    op.create_table(
        'cron_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_name', sa.String(100), nullable=False),
        sa.Column('status', cron_status_enum, nullable=False),
        sa.Column('charges_posted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('charges_skipped', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('charges_errored', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('duration_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_cron_logs'),
    )
    op.create_index('ix_cron_logs_job_name', 'cron_logs', ['job_name'])

    # =========================================================================
    # BANK RECONCILIATION
    # =========================================================================
    op.create_table(
        'bank_accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('account_code', sa.String(10), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_bank_accounts'),
        sa.ForeignKeyConstraint(
            ['account_code'], ['chart_of_accounts.code'],
            name='fk_bank_accounts_account_code_chart_of_accounts',
        ),
    )

    op.create_table(
        'reconciliations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('bank_account_id', sa.Uuid(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('statement_balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('ledger_balance', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', reconciliation_status_enum, nullable=False),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finalized_by', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_reconciliations'),
        sa.ForeignKeyConstraint(
            ['bank_account_id'], ['bank_accounts.id'],
            name='fk_reconciliations_bank_account_id_bank_accounts',
        ),
    )
    op.create_index('ix_reconciliations_bank_account_id', 'reconciliations', ['bank_account_id'])

    op.create_table(
        'reconciliation_lines',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('reconciliation_id', sa.Uuid(), nullable=False),
        sa.Column('line_date', sa.Date(), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('status', line_status_enum, nullable=False),
        sa.Column('ledger_entry_id', sa.Uuid(), nullable=True),
        sa.Column('matched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('match_confidence', match_confidence_enum, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_reconciliation_lines'),
        sa.ForeignKeyConstraint(
            ['reconciliation_id'], ['reconciliations.id'],
            name='fk_reconciliation_lines_reconciliation_id_reconciliations',
        ),
        sa.ForeignKeyConstraint(
            ['ledger_entry_id'], ['ledger_entries.id'],
            name='fk_reconciliation_lines_ledger_entry_id_ledger_entries',
        ),
    )
    op.create_index('ix_reconciliation_lines_reconciliation_id', 'reconciliation_lines', ['reconciliation_id'])

    # =========================================================================
    # WEBHOOK EVENTS
    # =========================================================================
    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('status', webhook_status_enum, nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('lease_id', sa.Uuid(), nullable=True),
        sa.Column('payment_intent_id', sa.String(255), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('raw_event', sa.JSON(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_webhook_events'),
        sa.UniqueConstraint('event_id', name='uq_webhook_events_event_id'),
    )

    # =========================================================================
    # SEED DEFAULT CHART OF ACCOUNTS
    # =========================================================================
    op.bulk_insert(chart_of_accounts, [
        {
            'code': code,
            'name': name,
            'type': account_type.value,
            'normal_balance': NORMAL_BALANCES[account_type].value,
            'active': True,
        }
        for code, name, account_type in DEFAULT_CHART_OF_ACCOUNTS
    ])


def downgrade() -> None:
    op.drop_table('webhook_events')
    op.drop_index('ix_reconciliation_lines_reconciliation_id', table_name='reconciliation_lines')
    op.drop_table('reconciliation_lines')
    op.drop_index('ix_reconciliations_bank_account_id', table_name='reconciliations')
    op.drop_table('reconciliations')
    op.drop_table('bank_accounts')
    op.drop_index('ix_cron_logs_job_name', table_name='cron_logs')
    op.drop_table('cron_logs')
    op.drop_index('ix_pending_expenses_scheduled_expense_id', table_name='pending_expenses')
    op.drop_table('pending_expenses')
    op.drop_table('scheduled_expenses')
    op.execute("DROP TRIGGER IF EXISTS ledger_entries_protect ON ledger_entries")
    op.execute("DROP FUNCTION IF EXISTS ledger_entries_protect()")
    op.drop_index('ix_ledger_entries_status', table_name='ledger_entries')
    op.drop_index('ix_ledger_entries_lease', table_name='ledger_entries')
    op.drop_index('ix_ledger_entries_account_date', table_name='ledger_entries')
    op.drop_table('ledger_entries')
    op.drop_index('ix_scheduled_charges_lease_id', table_name='scheduled_charges')
    op.drop_table('scheduled_charges')
    op.drop_table('leases')
    op.drop_table('chart_of_accounts')

    bind = op.get_bind()
    for enum in (
        webhook_status_enum, match_confidence_enum, line_status_enum,
        reconciliation_status_enum, cron_status_enum, pending_expense_status_enum,
        late_fee_type_enum, lease_status_enum,
        entry_status_enum, entry_direction_enum, account_type_enum,
    ):
        enum.drop(bind, checkfirst=True)
