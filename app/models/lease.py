"""
Sanprinon Lite - Lease & Scheduled Charge Models

Leases are kept to the fields the ledger needs: status and start date gate
whether recurring charges are due, and the late fee terms price a late fee.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Date, ForeignKey, Integer, Numeric, String,
    Uuid, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


class LeaseStatus(str, Enum):
    """Lease lifecycle states."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    TERMINATED = "TERMINATED"


class LateFeeType(str, Enum):
    """How a lease's late fee amount is interpreted."""
    FLAT = "FLAT"
    # late_fee_amount is a percentage of the monthly rent charge
    PERCENTAGE = "PERCENTAGE"


class Lease(BaseModel):
    """A tenant's lease on a unit."""

    __tablename__ = "leases"

    tenant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    property_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[LeaseStatus] = mapped_column(
        SQLEnum(LeaseStatus, name="leasestatus"),
        default=LeaseStatus.DRAFT,
        nullable=False,
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    late_fee_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    late_fee_type: Mapped[Optional[LateFeeType]] = mapped_column(
        SQLEnum(LateFeeType, name="latefeetype"),
        nullable=True,
    )

    @property
    def label(self) -> str:
        parts = [p for p in (self.property_name, self.unit_name) if p]
        return f"{self.tenant_name} ({' / '.join(parts)})" if parts else self.tenant_name


class ScheduledCharge(BaseModel):
    """
    Recurring billing instruction bound to a lease.

    Mutated only by the scheduler (last_charged_date) or by lease management.
    """

    __tablename__ = "scheduled_charges"

    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # Resolved against the chart of accounts at posting time
    account_code: Mapped[str] = mapped_column(String(10), default="4000", nullable=False)
    charge_day: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_charged_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    lease: Mapped["Lease"] = relationship(lazy="joined")

    __table_args__ = (
        CheckConstraint("charge_day >= 1 AND charge_day <= 28", name="charge_day_range"),
        CheckConstraint("amount > 0", name="positive_amount"),
    )

    def charged_in_month(self, today: date) -> bool:
        """True when the last charge falls in today's calendar month and year."""
        last = self.last_charged_date
        return last is not None and last.year == today.year and last.month == today.month
