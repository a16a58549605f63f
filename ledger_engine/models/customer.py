"""
Customer model.

Represents an account holder. The ledger core only needs the
customer's status (accounts can only be opened for ACTIVE
customers) and the link from customer to accounts.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Enum as SAEnum, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.clock import utcnow
from ledger_engine.models.base import Base
from ledger_engine.models.enums import CustomerStatus


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[CustomerStatus] = mapped_column(
        SAEnum(CustomerStatus, name="customer_status_enum", create_constraint=True),
        nullable=False,
        default=CustomerStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    accounts: Mapped[list["Account"]] = relationship(back_populates="customer")

    @property
    def is_active(self) -> bool:
        return self.status == CustomerStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Customer {self.first_name} {self.last_name} ({self.status.value})>"
