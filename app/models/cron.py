"""
Sanprinon Lite - Cron Log Model

One row per scheduler run. Rows are written once and never changed.
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Integer, JSON, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.base import CreatedAtMixin


class CronRunStatus(str, Enum):
    """Outcome of a scheduler run."""
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class CronLog(Base, CreatedAtMixin):
    """Audit record of a scheduler run."""

    __tablename__ = "cron_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    status: Mapped[CronRunStatus] = mapped_column(
        SQLEnum(CronRunStatus, name="cronrunstatus"), nullable=False
    )
    charges_posted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    charges_skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    charges_errored: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<CronLog {self.job_name} {self.status.value} at {self.created_at}>"
