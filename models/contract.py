# models/contract.py
import enum
from datetime import date, datetime
from typing import Optional
from sqlalchemy import (
     Column, Integer, String, Numeric, Date, Boolean, Text, DateTime, ForeignKey, Enum, Index, func
)
from sqlalchemy.orm import relationship
from .base import Base


class ContractStatus(str, enum.Enum):
     """Lifecycle status of a rental contract."""
     PENDING = "PENDING"
     ACTIVE = "ACTIVE"
     EXPIRED = "EXPIRED"
     RENEWED = "RENEWED"
     CANCELLED = "CANCELLED"
     SUPERSEDED = "SUPERSEDED"


# Statuses that still occupy the flat for their date range
LIVE_STATUSES = (ContractStatus.PENDING, ContractStatus.ACTIVE)

TERMINATED_STATUSES = (
     ContractStatus.EXPIRED,
     ContractStatus.RENEWED,
     ContractStatus.CANCELLED,
     ContractStatus.SUPERSEDED,
)


class Contract(Base):
     """
     Contract model - a rental agreement for one flat over a date range.

     Contracts are never deleted. Renewal and modification create a new
     row that points back through `previous_contract_id`; the old row keeps
     its terms and moves to RENEWED or SUPERSEDED.
     """
     __tablename__ = "contracts"

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Foreign keys
     flat_id = Column(
          Integer,
          ForeignKey("flats.id"),
          nullable=False,
          index=True
     )
     previous_contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=True)

     # Tenant details
     tenant_name = Column(String(255), nullable=False)
     tenant_contact = Column(String(100), nullable=True)
     tenant_email = Column(String(255), nullable=True)

     # Terms
     start_date = Column(Date, nullable=False)
     end_date = Column(Date, nullable=False)
     monthly_rent = Column(Numeric(12, 2), nullable=False)
     day_of_month = Column(Integer, nullable=False)
     security_deposit = Column(Numeric(12, 2), nullable=True)
     notes = Column(Text, nullable=True)

     status = Column(
          Enum(ContractStatus, name="contract_status", create_constraint=True),
          default=ContractStatus.PENDING,
          nullable=False,
          index=True
     )
     dues_generated = Column(Boolean, default=False, nullable=False)

     # Cancellation
     cancellation_reason = Column(Text, nullable=True)
     cancellation_date = Column(Date, nullable=True)
     cancelled_by = Column(String(100), nullable=True)
     deposit_refunded = Column(Boolean, default=False, nullable=False)

     # Status audit
     status_changed_at = Column(DateTime, nullable=True)
     status_changed_by = Column(String(100), nullable=True)
     status_change_reason = Column(String(500), nullable=True)

     created_by = Column(String(100), nullable=True)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, onupdate=func.now(), nullable=True)

     # Relationships
     flat = relationship("Flat", back_populates="contracts")
     monthly_dues = relationship("MonthlyDue", back_populates="contract")

     __table_args__ = (
          Index("ix_contracts_flat_dates", "flat_id", "start_date", "end_date"),
     )

     def __repr__(self):
          return f"<Contract(id={self.id}, flat_id={self.flat_id}, status='{self.status.value}', start_date={self.start_date}, end_date={self.end_date})>"

     @property
     def is_live(self) -> bool:
          """PENDING or ACTIVE."""
          return self.status in LIVE_STATUSES

     @property
     def is_terminated(self) -> bool:
          return self.status in TERMINATED_STATUSES

     @property
     def is_modifiable(self) -> bool:
          """Terms may only be rewritten before any dues exist."""
          return not self.dues_generated and self.is_live

     def covers(self, start: date, end: date) -> bool:
          """Inclusive intersection with [start, end]."""
          return self.start_date <= end and self.end_date >= start

     def change_status(
          self,
          new_status: ContractStatus,
          changed_by: str,
          reason: Optional[str] = None,
          changed_at: Optional[datetime] = None
     ) -> None:
          """Move to `new_status` and stamp the audit fields."""
          self.status = new_status
          self.status_changed_at = changed_at or datetime.now()
          self.status_changed_by = changed_by
          self.status_change_reason = reason
