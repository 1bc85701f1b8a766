# services/payment_service.py
"""
Payment Service - records tenant payments and spreads them over dues.

A payment is applied oldest-due-first to the flat's open dues. Each
(payment, due) share is stored as a PaymentAllocation so deleting the
payment gives back exactly what it paid, whatever happened in between.
"""
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from exceptions import BusinessRuleError, ConcurrencyConflictError, NotFoundError, ValidationError
from models import Flat, MonthlyDue, Payment, PaymentAllocation, PaymentMethod
from models.monthly_due import OPEN_STATUSES, ZERO
from services.actor import Actor
from services.clock import Clock, system_clock
from services.events import EventPublisher, PaymentRecorded, default_publisher
from services.locking import FlatLocks, flat_locks

logger = logging.getLogger(__name__)


class PaymentService:
     """Service class for payment recording and allocation."""

     def __init__(
          self,
          db: Session,
          publisher: Optional[EventPublisher] = None,
          clock: Optional[Clock] = None,
          locks: Optional[FlatLocks] = None
     ):
          self.db = db
          self.publisher = publisher or default_publisher
          self.clock = clock or system_clock
          self.locks = locks or flat_locks

     def create_payment(
          self,
          flat_id: int,
          amount: Decimal,
          actor: Actor,
          payment_method: PaymentMethod = PaymentMethod.CASH,
          payment_date: Optional[datetime] = None,
          reference_number: Optional[str] = None,
          receipt_number: Optional[str] = None,
          description: Optional[str] = None,
          notes: Optional[str] = None
     ) -> Payment:
          """
          Record a payment and allocate it to the flat's open dues.

          Args:
               flat_id: Paying flat
               amount: Positive amount, at most the flat's outstanding balance
               actor: Who recorded the payment
               payment_date: Defaults to now

          Returns:
               The flushed Payment with its allocations

          Raises:
               ValidationError: If the amount is not positive
               NotFoundError: If the flat doesn't exist
               BusinessRuleError: If the amount exceeds the outstanding balance (nothing is written)
          """
          if amount is None or amount <= 0:
               raise ValidationError("Payment amount must be positive", field="amount")

          with self.locks.hold(self.db, flat_id) as flat:
               outstanding = self.calculate_outstanding_balance(flat_id)
               if amount > outstanding:
                    raise BusinessRuleError(
                         f"Payment amount {amount} exceeds outstanding balance {outstanding}",
                         details={"flat_id": flat_id, "outstanding_balance": str(outstanding)},
                    )

               paid_at = payment_date or self.clock.now()
               payment = Payment(
                    flat_id=flat_id,
                    amount=amount,
                    payment_date=paid_at,
                    payment_method=payment_method,
                    reference_number=reference_number,
                    receipt_number=receipt_number,
                    description=description,
                    notes=notes,
                    recorded_by_id=actor.id,
                    recorded_by=actor.username,
               )
               self.db.add(payment)
               self.db.flush()

               allocations = self._allocate(payment, flat_id, paid_at.date())
               self.db.flush()

          logger.info(
               "Recorded payment %s of %s for flat %s across %d dues",
               payment.id, amount, flat_id, len(allocations)
          )
          self.publisher.publish(
               PaymentRecorded(
                    payment_id=payment.id,
                    flat_id=flat_id,
                    building_id=flat.building_id,
                    amount=amount,
                    payment_date=paid_at,
                    tenant_name=flat.tenant_name,
                    tenant_email=flat.tenant_email,
                    allocated_due_ids=tuple(a.due_id for a in allocations),
               )
          )
          return payment

     def update_payment(
          self,
          payment_id: int,
          expected_version: Optional[int] = None,
          payment_method: Optional[PaymentMethod] = None,
          reference_number: Optional[str] = None,
          receipt_number: Optional[str] = None,
          description: Optional[str] = None,
          notes: Optional[str] = None
     ) -> Payment:
          """
          Edit the descriptive fields of a payment. Amount, date and flat are fixed.

          Raises:
               NotFoundError: If the payment doesn't exist
               ConcurrencyConflictError: If the payment changed since `expected_version`
          """
          payment = self.get_payment(payment_id)
          if expected_version is not None and expected_version != payment.version:
               raise ConcurrencyConflictError("Payment", payment_id)

          if payment_method is not None:
               payment.payment_method = payment_method
          if reference_number is not None:
               payment.reference_number = reference_number
          if receipt_number is not None:
               payment.receipt_number = receipt_number
          if description is not None:
               payment.description = description
          if notes is not None:
               payment.notes = notes

          try:
               self.db.flush()
          except StaleDataError:
               raise ConcurrencyConflictError("Payment", payment_id)
          return payment

     def delete_payment(self, payment_id: int) -> None:
          """Delete a payment and give back every amount it applied."""
          payment = self.get_payment(payment_id)
          with self.locks.hold(self.db, payment.flat_id):
               for allocation in list(payment.allocations):
                    allocation.due.reverse_allocation(allocation.amount_applied)
               self.db.delete(payment)
               try:
                    self.db.flush()
               except StaleDataError:
                    raise ConcurrencyConflictError("Payment", payment_id)
          logger.info("Deleted payment %s for flat %s", payment_id, payment.flat_id)

     # -----------------------------------------------------------------------
     # Queries
     # -----------------------------------------------------------------------

     def get_payment(self, payment_id: int) -> Payment:
          payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
          if not payment:
               raise NotFoundError("Payment", payment_id)
          return payment

     def get_allocations(self, payment_id: int) -> List[PaymentAllocation]:
          return self.get_payment(payment_id).allocations

     def get_payments_by_flat(self, flat_id: int) -> List[Payment]:
          return (
               self.db.query(Payment)
               .filter(Payment.flat_id == flat_id)
               .order_by(Payment.payment_date.desc(), Payment.id.desc())
               .all()
          )

     def get_payments_by_building(
          self,
          building_id: int,
          start_date: Optional[date] = None,
          end_date: Optional[date] = None
     ) -> List[Payment]:
          return (
               self._building_query(building_id, start_date, end_date)
               .order_by(Payment.payment_date.desc(), Payment.id.desc())
               .all()
          )

     def get_total_payments_by_building(
          self,
          building_id: int,
          start_date: Optional[date] = None,
          end_date: Optional[date] = None
     ) -> Decimal:
          payments = self._building_query(building_id, start_date, end_date).all()
          return sum((p.amount for p in payments), ZERO)

     def calculate_outstanding_balance(self, flat_id: int) -> Decimal:
          """Sum of what is still owed on the flat's open dues."""
          dues = (
               self.db.query(MonthlyDue)
               .filter(MonthlyDue.flat_id == flat_id, MonthlyDue.status.in_(OPEN_STATUSES))
               .all()
          )
          return sum((due.outstanding_amount for due in dues), ZERO)

     # -----------------------------------------------------------------------
     # Helpers
     # -----------------------------------------------------------------------

     def _allocate(self, payment: Payment, flat_id: int, paid_on: date) -> List[PaymentAllocation]:
          """Apply the payment to open dues, oldest first."""
          open_dues = (
               self.db.query(MonthlyDue)
               .filter(MonthlyDue.flat_id == flat_id, MonthlyDue.status.in_(OPEN_STATUSES))
               .order_by(MonthlyDue.due_date.asc(), MonthlyDue.id.asc())
               .all()
          )

          remaining = payment.amount
          allocations = []
          for due in open_dues:
               if remaining <= ZERO:
                    break
               outstanding = due.outstanding_amount
               applied = min(remaining, outstanding)
               if applied <= ZERO:
                    continue
               if applied == due.due_amount:
                    due.mark_fully_paid(applied, paid_on)
               else:
                    due.mark_partially_paid(applied, paid_on)
               allocation = PaymentAllocation(payment=payment, due=due, amount_applied=applied)
               self.db.add(allocation)
               allocations.append(allocation)
               remaining -= applied
          return allocations

     def _building_query(self, building_id: int, start_date: Optional[date], end_date: Optional[date]):
          query = (
               self.db.query(Payment)
               .join(Flat, Payment.flat_id == Flat.id)
               .filter(Flat.building_id == building_id)
          )
          if start_date is not None:
               query = query.filter(Payment.payment_date >= datetime.combine(start_date, time.min))
          if end_date is not None:
               query = query.filter(Payment.payment_date <= datetime.combine(end_date, time.max))
          return query
