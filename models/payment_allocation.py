# models/payment_allocation.py
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from .base import Base


class PaymentAllocation(Base):
     """
     PaymentAllocation model - the part of a payment applied to one due.

     Deleting a payment walks these rows to give back exactly what was applied.
     """
     __tablename__ = "payment_allocations"

     id = Column(Integer, primary_key=True, autoincrement=True)
     payment_id = Column(
          Integer,
          ForeignKey("payments.id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )
     due_id = Column(
          Integer,
          ForeignKey("monthly_dues.id"),
          nullable=False,
          index=True
     )
     amount_applied = Column(Numeric(12, 2), nullable=False)

     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     payment = relationship("Payment", back_populates="allocations")
     due = relationship("MonthlyDue", back_populates="allocations")

     def __repr__(self):
          return f"<PaymentAllocation(payment_id={self.payment_id}, due_id={self.due_id}, amount_applied={self.amount_applied})>"
