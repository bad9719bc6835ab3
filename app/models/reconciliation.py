"""
Sanprinon Lite - Bank Reconciliation Models

A reconciliation is a matching session between bank statement lines and
ledger entries on the bank account's GL code. Once FINALIZED neither the
session nor its lines change.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Date, DateTime, ForeignKey, Numeric, String, Text, Uuid, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


class ReconciliationStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    FINALIZED = "FINALIZED"


class ReconciliationLineStatus(str, Enum):
    UNMATCHED = "UNMATCHED"
    MATCHED = "MATCHED"
    EXCLUDED = "EXCLUDED"


class MatchConfidence(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class BankAccount(BaseModel):
    """Bank account mapped to a ledger (GL) account."""

    __tablename__ = "bank_accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_code: Mapped[str] = mapped_column(
        String(10), ForeignKey("chart_of_accounts.code"), nullable=False
    )


class Reconciliation(BaseModel):
    """Bank statement vs ledger matching session."""

    __tablename__ = "reconciliations"

    bank_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bank_accounts.id"), nullable=False, index=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    statement_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    ledger_balance: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[ReconciliationStatus] = mapped_column(
        SQLEnum(ReconciliationStatus, name="reconciliationstatus"),
        default=ReconciliationStatus.IN_PROGRESS,
        nullable=False,
    )
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    bank_account: Mapped["BankAccount"] = relationship(lazy="joined")
    lines: Mapped[List["ReconciliationLine"]] = relationship(
        back_populates="reconciliation",
        lazy="selectin",
        order_by="ReconciliationLine.line_date",
    )

    @property
    def is_finalized(self) -> bool:
        return self.status == ReconciliationStatus.FINALIZED


class ReconciliationLine(BaseModel):
    """One bank statement line. Amount is signed: deposits positive."""

    __tablename__ = "reconciliation_lines"

    reconciliation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reconciliations.id"), nullable=False, index=True
    )
    line_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[ReconciliationLineStatus] = mapped_column(
        SQLEnum(ReconciliationLineStatus, name="reconciliationlinestatus"),
        default=ReconciliationLineStatus.UNMATCHED,
        nullable=False,
    )
    ledger_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("ledger_entries.id"), nullable=True
    )
    matched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    match_confidence: Mapped[Optional[MatchConfidence]] = mapped_column(
        SQLEnum(MatchConfidence, name="matchconfidence"), nullable=True
    )

    reconciliation: Mapped["Reconciliation"] = relationship(back_populates="lines")
