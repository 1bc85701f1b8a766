# models/monthly_due.py
import enum
from datetime import date
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
     Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Enum, Index, func, text
)
from sqlalchemy.orm import relationship
from .base import Base
from exceptions import BusinessRuleError

ZERO = Decimal("0.00")


class DueStatus(str, enum.Enum):
     """Payment status of a monthly due."""
     UNPAID = "UNPAID"
     PARTIALLY_PAID = "PARTIALLY_PAID"
     PAID = "PAID"
     OVERDUE = "OVERDUE"
     CANCELLED = "CANCELLED"


# Statuses that can still receive money
OPEN_STATUSES = (DueStatus.UNPAID, DueStatus.PARTIALLY_PAID, DueStatus.OVERDUE)


class DueSource(str, enum.Enum):
     """Which process created the due."""
     CONTRACT = "CONTRACT"
     BUILDING = "BUILDING"
     AD_HOC = "AD_HOC"


class MonthlyDue(Base):
     """
     MonthlyDue model - one rent obligation for a flat on a due date.

     Invariants kept by the transition methods below:
     - 0 <= paid_amount <= due_amount
     - status PAID implies paid_amount == due_amount
     - cancelled dues are kept, never deleted

     Bulk building generation is idempotent per (flat_id, due_date) through a
     filtered unique index on BUILDING dues.
     """
     __tablename__ = "monthly_dues"

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Foreign keys
     flat_id = Column(
          Integer,
          ForeignKey("flats.id"),
          nullable=False,
          index=True
     )
     contract_id = Column(
          Integer,
          ForeignKey("contracts.id"),
          nullable=True,
          index=True
     )

     # Amounts
     due_date = Column(Date, nullable=False, index=True)
     due_amount = Column(Numeric(12, 2), nullable=False)
     base_rent = Column(Numeric(12, 2), nullable=True)
     additional_charges = Column(Numeric(12, 2), nullable=True)
     additional_charges_description = Column(String(500), nullable=True)
     paid_amount = Column(Numeric(12, 2), default=ZERO, nullable=False)
     payment_date = Column(Date, nullable=True)

     status = Column(
          Enum(DueStatus, name="due_status", create_constraint=True),
          default=DueStatus.UNPAID,
          nullable=False,
          index=True
     )
     source = Column(
          Enum(DueSource, name="due_source", create_constraint=True),
          default=DueSource.CONTRACT,
          nullable=False
     )
     description = Column(String(500), nullable=True)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, onupdate=func.now(), nullable=True)

     # Relationships
     flat = relationship("Flat", back_populates="monthly_dues")
     contract = relationship("Contract", back_populates="monthly_dues")
     allocations = relationship("PaymentAllocation", back_populates="due")

     __table_args__ = (
          Index(
               "ux_monthly_dues_building_flat_date",
               "flat_id",
               "due_date",
               unique=True,
               sqlite_where=text("source = 'BUILDING'"),
               postgresql_where=text("source = 'BUILDING'"),
               mssql_where=text("source = 'BUILDING'"),
          ),
     )

     def __repr__(self):
          return f"<MonthlyDue(id={self.id}, flat_id={self.flat_id}, due_date={self.due_date}, amount={self.due_amount}, status='{self.status.value}')>"

     @property
     def outstanding_amount(self) -> Decimal:
          return self.due_amount - (self.paid_amount or ZERO)

     @property
     def is_paid(self) -> bool:
          return self.status == DueStatus.PAID

     @property
     def is_open(self) -> bool:
          """Can still receive a payment."""
          return self.status in OPEN_STATUSES

     def mark_fully_paid(self, amount: Decimal, payment_date: date) -> None:
          """Settle the whole due in one go."""
          if not self.is_open:
               raise BusinessRuleError(f"Due {self.id} cannot be paid in status {self.status.value}")
          if amount != self.due_amount:
               raise BusinessRuleError(
                    f"Full payment of {amount} does not match due amount {self.due_amount}"
               )
          self.paid_amount = amount
          self.payment_date = payment_date
          self.status = DueStatus.PAID

     def mark_partially_paid(self, increment: Decimal, payment_date: date) -> None:
          """
          Add `increment` to the paid amount.

          Reaching the due amount settles the due as PAID.
          """
          if not self.is_open:
               raise BusinessRuleError(f"Due {self.id} cannot be paid in status {self.status.value}")
          if increment <= ZERO:
               raise BusinessRuleError("Payment increment must be positive")
          new_paid = (self.paid_amount or ZERO) + increment
          if new_paid > self.due_amount:
               raise BusinessRuleError(
                    f"Payment of {increment} exceeds outstanding amount {self.outstanding_amount}"
               )
          self.paid_amount = new_paid
          self.payment_date = payment_date
          self.status = DueStatus.PAID if new_paid == self.due_amount else DueStatus.PARTIALLY_PAID

     def mark_overdue(self, today: date) -> None:
          if self.status != DueStatus.UNPAID or self.due_date >= today:
               raise BusinessRuleError(f"Due {self.id} is not an unpaid past-due obligation")
          self.status = DueStatus.OVERDUE

     def cancel(self, note: Optional[str] = None) -> None:
          """Cancel an unsettled due, appending `note` to the description."""
          if self.status == DueStatus.PAID:
               raise BusinessRuleError(f"Due {self.id} is already paid and cannot be cancelled")
          if self.status == DueStatus.CANCELLED:
               raise BusinessRuleError(f"Due {self.id} is already cancelled")
          self.status = DueStatus.CANCELLED
          if note:
               self.description = f"{self.description or ''}{note}"

     def reverse(self) -> None:
          """Undo every payment applied to this due."""
          self.paid_amount = ZERO
          self.payment_date = None
          self.status = DueStatus.UNPAID

     def reverse_allocation(self, amount: Decimal) -> None:
          """Take back one payment's share of this due."""
          remaining = (self.paid_amount or ZERO) - amount
          if remaining < ZERO:
               raise BusinessRuleError(
                    f"Cannot reverse {amount} from due {self.id}; only {self.paid_amount} was paid"
               )
          if self.status == DueStatus.CANCELLED:
               # A cancelled obligation stays cancelled; only the money comes back
               self.paid_amount = remaining
               if remaining == ZERO:
                    self.payment_date = None
               return
          if remaining == ZERO:
               self.reverse()
               return
          self.paid_amount = remaining
          self.status = DueStatus.PARTIALLY_PAID
