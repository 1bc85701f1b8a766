# models/payment.py
import enum
from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from .base import Base


class PaymentMethod(str, enum.Enum):
     """How the tenant paid."""
     CASH = "CASH"
     BANK_TRANSFER = "BANK_TRANSFER"
     CREDIT_CARD = "CREDIT_CARD"
     DEBIT_CARD = "DEBIT_CARD"
     CHECK = "CHECK"
     ONLINE_PAYMENT = "ONLINE_PAYMENT"
     OTHER = "OTHER"


class Payment(Base):
     """
     Payment model - money received from a flat's tenant.

     The amount is spread over the flat's open dues when the payment is
     recorded; the split is kept in PaymentAllocation rows. Financial fields
     are immutable after creation, and `version` guards concurrent edits of
     the descriptive ones.
     """
     __tablename__ = "payments"

     id = Column(Integer, primary_key=True, autoincrement=True)

     flat_id = Column(
          Integer,
          ForeignKey("flats.id"),
          nullable=False,
          index=True
     )

     amount = Column(Numeric(12, 2), nullable=False)
     payment_date = Column(DateTime, nullable=False, index=True)
     payment_method = Column(
          Enum(PaymentMethod, name="payment_method", create_constraint=True),
          default=PaymentMethod.CASH,
          nullable=False
     )
     reference_number = Column(String(100), nullable=True)
     receipt_number = Column(String(100), nullable=True)
     description = Column(String(500), nullable=True)
     notes = Column(Text, nullable=True)

     recorded_by_id = Column(Integer, nullable=True)
     recorded_by = Column(String(100), nullable=True)

     version = Column(Integer, nullable=False)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, onupdate=func.now(), nullable=True)

     # Relationships
     flat = relationship("Flat", back_populates="payments")
     allocations = relationship(
          "PaymentAllocation",
          back_populates="payment",
          cascade="all, delete-orphan",
          order_by="PaymentAllocation.id"
     )

     __mapper_args__ = {"version_id_col": version}

     def __repr__(self):
          return f"<Payment(id={self.id}, flat_id={self.flat_id}, amount={self.amount}, payment_date={self.payment_date})>"
