"""
Sanprinon Lite - Append-only Guards

Session-level listeners that keep ledger entries and cron logs append-only
no matter which code path touches them:

- ORM deletes of either model are refused at flush.
- A flushed LedgerEntry may only change its void fields, and only away
  from POSTED. CronLog rows may not change at all.
- Bulk DELETE statements against ledger_entries are refused, and bulk
  UPDATEs are refused unless issued by the void path.

PostgreSQL deployments add a BEFORE DELETE trigger on top (see the alembic
migration).
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import ORMExecuteState, Session

from app.models.accounting import EntryStatus, LedgerEntry
from app.models.cron import CronLog
from app.utils.error_handling import LedgerImmutableError

# Execution option set by the void manager on its conditional UPDATE
VOID_EXECUTION_OPTION = "ledger_void"

VOID_FIELDS = frozenset({"status", "voided_at", "voided_by", "void_reason"})


def _changed_fields(obj) -> set:
    state = inspect(obj)
    return {attr.key for attr in state.attrs if attr.history.has_changes()}


@event.listens_for(Session, "before_flush")
def guard_append_only_rows(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, LedgerEntry):
            raise LedgerImmutableError(f"Ledger entry {obj.id} cannot be deleted; void it instead")
        if isinstance(obj, CronLog):
            raise LedgerImmutableError(f"Cron log {obj.id} cannot be deleted")

    for obj in session.dirty:
        if isinstance(obj, CronLog) and _changed_fields(obj):
            raise LedgerImmutableError(f"Cron log {obj.id} is immutable")
        if not isinstance(obj, LedgerEntry):
            continue
        changed = _changed_fields(obj)
        if not changed:
            continue
        illegal = changed - VOID_FIELDS
        if illegal:
            raise LedgerImmutableError(
                f"Ledger entry {obj.id} is immutable; attempted to change {sorted(illegal)}"
            )
        previous = inspect(obj).attrs.status.history.deleted
        if previous and previous[0] == EntryStatus.VOID:
            raise LedgerImmutableError(f"Ledger entry {obj.id} is already void")


@event.listens_for(Session, "do_orm_execute")
def guard_bulk_ledger_statements(orm_execute_state: ORMExecuteState):
    if not (orm_execute_state.is_delete or orm_execute_state.is_update):
        return
    table = getattr(orm_execute_state.statement, "table", None)
    if table is None or getattr(table, "name", None) != LedgerEntry.__tablename__:
        return
    if orm_execute_state.is_delete:
        raise LedgerImmutableError("Bulk deletes of ledger entries are not allowed")
    if not orm_execute_state.execution_options.get(VOID_EXECUTION_OPTION, False):
        raise LedgerImmutableError("Ledger entries may only be updated by the void operation")
