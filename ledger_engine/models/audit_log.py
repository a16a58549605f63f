"""
Audit log model.

Records who invoked which core operation and how it ended.
Written through its own session, so an entry survives even when
the audited operation rolls back.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Text, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.clock import utcnow
from ledger_engine.models.base import Base
from ledger_engine.models.enums import AuditOutcome


class AuditLog(Base):
    """
    Immutable record of an audited call.

    Audit logs are append-only. You never update or delete one.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    actor: Mapped[str] = mapped_column(String(100), nullable=False)
    operation: Mapped[str] = mapped_column(String(100), nullable=False)
    outcome: Mapped[AuditOutcome] = mapped_column(
        SAEnum(AuditOutcome, name="audit_outcome_enum"), nullable=False
    )
    details: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
