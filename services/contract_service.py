# services/contract_service.py
"""
Contract Service - lifecycle rules for rental contracts.

Handles creation, renewal, cancellation and modification, the daily status
sweep, and the contract queries used by the API. Every mutating operation
validates before writing, runs in the caller's session, and triggers due
generation in that same session so a failure rolls the whole operation back.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from exceptions import BusinessRuleError, ContractOverlapError, NotFoundError, ValidationError
from models import Contract, ContractStatus, Flat, MonthlyDue, DueStatus
from models.contract import LIVE_STATUSES
from services.actor import Actor, SYSTEM_ACTOR
from services.clock import Clock, system_clock
from services.due_calculator import add_months
from services.due_generation_service import DueGenerationService
from services.events import (
     ContractCancelled,
     ContractCreated,
     ContractModified,
     ContractRenewed,
     ContractStatusChanged,
     EventPublisher,
     default_publisher,
)
from services.locking import FlatLocks, flat_locks

logger = logging.getLogger(__name__)

# A due still owed after its date counts against the tenant
ARREARS_STATUSES = (DueStatus.UNPAID, DueStatus.OVERDUE)


class ContractService:
     """Service class for contract lifecycle operations."""

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
          self.dues = DueGenerationService(db, self.publisher, self.clock)

     # -----------------------------------------------------------------------
     # Lifecycle
     # -----------------------------------------------------------------------

     def create_contract(
          self,
          flat_id: int,
          tenant_name: str,
          start_date: date,
          end_date: date,
          monthly_rent: Decimal,
          day_of_month: int,
          actor: Actor,
          tenant_contact: Optional[str] = None,
          tenant_email: Optional[str] = None,
          security_deposit: Optional[Decimal] = None,
          notes: Optional[str] = None,
          generate_dues_immediately: bool = False
     ) -> Contract:
          """
          Create a contract for a flat.

          A contract starting today is ACTIVE right away; one starting later
          is PENDING until the status sweep reaches its start date.

          Args:
               flat_id: Flat being rented
               tenant_name: Tenant full name
               start_date: First day of the contract (today or later)
               end_date: Last day of the contract, after start_date
               monthly_rent: Rent per month, positive
               day_of_month: Day rent falls due, 1-31
               actor: Who is creating the contract
               generate_dues_immediately: Create the due schedule in the same transaction

          Returns:
               The flushed Contract

          Raises:
               ValidationError: If dates, rent or day of month are invalid
               NotFoundError: If the flat doesn't exist
               BusinessRuleError: If the flat is inactive
               ContractOverlapError: If a live contract intersects the period
          """
          today = self.clock.today()
          if not tenant_name or not tenant_name.strip():
               raise ValidationError("Tenant name is required", field="tenant_name")
          self._validate_terms(start_date, end_date, monthly_rent, day_of_month)
          if start_date < today:
               raise ValidationError("Start date cannot be in the past", field="start_date")

          with self.locks.hold(self.db, flat_id) as flat:
               if not flat.is_active:
                    raise BusinessRuleError(f"Flat {flat.flat_number} is not active")
               self._check_overlap(flat_id, start_date, end_date)

               contract = Contract(
                    flat=flat,
                    tenant_name=tenant_name.strip(),
                    tenant_contact=tenant_contact,
                    tenant_email=tenant_email,
                    start_date=start_date,
                    end_date=end_date,
                    monthly_rent=monthly_rent,
                    day_of_month=day_of_month,
                    security_deposit=security_deposit,
                    notes=notes,
                    status=ContractStatus.ACTIVE if start_date == today else ContractStatus.PENDING,
                    dues_generated=False,
                    deposit_refunded=False,
                    created_by=actor.username,
               )
               self.db.add(contract)
               self.db.flush()

               if generate_dues_immediately:
                    self.dues.generate_for_contract(contract)

          logger.info(
               "Created contract %s for flat %s (%s to %s) by %s",
               contract.id, flat_id, start_date, end_date, actor.username
          )
          self.publisher.publish(
               ContractCreated(
                    contract_id=contract.id,
                    flat_id=flat_id,
                    start_date=start_date,
                    end_date=end_date,
                    monthly_rent=monthly_rent,
                    generate_dues_immediately=generate_dues_immediately,
                    created_by=actor.username,
               )
          )
          return contract

     def renew_contract(
          self,
          contract_id: int,
          actor: Actor,
          new_end_date: Optional[date] = None,
          new_monthly_rent: Optional[Decimal] = None,
          new_security_deposit: Optional[Decimal] = None,
          new_day_of_month: Optional[int] = None,
          notes: Optional[str] = None,
          generate_dues_immediately: bool = False
     ) -> Contract:
          """
          Renew an ACTIVE contract with a follow-on contract.

          The new contract starts the day after the current one ends and is
          PENDING. Omitted terms are carried over; a missing end date extends
          by one year. The current contract becomes RENEWED.

          Returns:
               The new Contract

          Raises:
               NotFoundError: If the contract doesn't exist
               BusinessRuleError: If the contract is not ACTIVE
               ValidationError: If the new end date is not after the current end
               ContractOverlapError: If the new period collides with another live contract
          """
          current = self.get_contract(contract_id)
          if current.status != ContractStatus.ACTIVE:
               raise BusinessRuleError(
                    f"Only active contracts can be renewed. Current status: {current.status.value}"
               )

          end_date = new_end_date or add_months(current.end_date, 12)
          if end_date <= current.end_date:
               raise ValidationError(
                    "New end date must be after current end date", field="new_end_date"
               )
          start_date = current.end_date + timedelta(days=1)
          rent = new_monthly_rent if new_monthly_rent is not None else current.monthly_rent
          day_of_month = new_day_of_month if new_day_of_month is not None else current.day_of_month
          # A renewal may be a single day long, so only the money terms are checked here
          self._validate_rent_and_day(rent, day_of_month)

          with self.locks.hold(self.db, current.flat_id) as flat:
               self._check_overlap(current.flat_id, start_date, end_date, exclude_ids=(current.id,))

               renewed = Contract(
                    flat=flat,
                    tenant_name=current.tenant_name,
                    tenant_contact=current.tenant_contact,
                    tenant_email=current.tenant_email,
                    start_date=start_date,
                    end_date=end_date,
                    monthly_rent=rent,
                    day_of_month=day_of_month,
                    security_deposit=(
                         new_security_deposit if new_security_deposit is not None
                         else current.security_deposit
                    ),
                    notes=notes if notes is not None else current.notes,
                    status=ContractStatus.PENDING,
                    dues_generated=False,
                    deposit_refunded=False,
                    previous_contract_id=current.id,
                    created_by=actor.username,
               )
               self.db.add(renewed)
               self.db.flush()

               reason = f"Renewed with contract ID: {renewed.id}"
               current.change_status(ContractStatus.RENEWED, actor.username, reason, self.clock.now())
               self.db.flush()

               if generate_dues_immediately:
                    self.dues.generate_extension(renewed, current.end_date + timedelta(days=1))

          logger.info("Renewed contract %s as %s by %s", current.id, renewed.id, actor.username)
          self.publisher.publish(
               ContractStatusChanged(
                    contract_id=current.id,
                    old_status=ContractStatus.ACTIVE.value,
                    new_status=ContractStatus.RENEWED.value,
                    reason=reason,
               )
          )
          self.publisher.publish(
               ContractRenewed(
                    old_contract_id=current.id,
                    new_contract_id=renewed.id,
                    flat_id=current.flat_id,
                    new_end_date=end_date,
                    generate_dues_immediately=generate_dues_immediately,
                    renewed_by=actor.username,
               )
          )
          return renewed

     def cancel_contract(
          self,
          contract_id: int,
          reason: str,
          actor: Actor,
          effective_date: Optional[date] = None,
          cancel_unpaid_dues: bool = True,
          refund_deposit: bool = False
     ) -> Contract:
          """
          Cancel a PENDING or ACTIVE contract.

          Paid dues are never touched; open dues are cancelled when
          `cancel_unpaid_dues` is set.

          Raises:
               NotFoundError: If the contract doesn't exist
               BusinessRuleError: If the contract is already cancelled or otherwise terminated
               ValidationError: If the reason is blank or the effective date is in the future
          """
          contract = self.get_contract(contract_id)
          if contract.status == ContractStatus.CANCELLED:
               raise BusinessRuleError("Contract is already cancelled")
          if contract.is_terminated:
               raise BusinessRuleError(
                    f"Cannot cancel a contract with status: {contract.status.value}"
               )
          if not reason or not reason.strip():
               raise ValidationError("Cancellation reason is required", field="reason")

          today = self.clock.today()
          effective = effective_date or today
          if effective > today:
               raise ValidationError(
                    "Cancellation effective date cannot be in the future", field="effective_date"
               )

          old_status = contract.status
          contract.cancellation_reason = reason
          contract.cancellation_date = effective
          contract.cancelled_by = actor.username
          contract.deposit_refunded = refund_deposit
          contract.change_status(ContractStatus.CANCELLED, actor.username, reason, self.clock.now())
          self.db.flush()

          cancelled_dues = 0
          if cancel_unpaid_dues:
               cancelled_dues = self.dues.cancel_unpaid_dues(contract)

          logger.info(
               "Cancelled contract %s by %s (%d dues cancelled)",
               contract.id, actor.username, cancelled_dues
          )
          self.publisher.publish(
               ContractStatusChanged(
                    contract_id=contract.id,
                    old_status=old_status.value,
                    new_status=ContractStatus.CANCELLED.value,
                    reason=reason,
               )
          )
          self.publisher.publish(
               ContractCancelled(
                    contract_id=contract.id,
                    flat_id=contract.flat_id,
                    cancellation_reason=reason,
                    cancellation_date=effective,
                    cancel_unpaid_dues=cancel_unpaid_dues,
                    refund_deposit=refund_deposit,
                    cancelled_dues_count=cancelled_dues,
                    cancelled_by=actor.username,
               )
          )
          return contract

     def modify_contract(
          self,
          contract_id: int,
          effective_date: date,
          actor: Actor,
          new_monthly_rent: Optional[Decimal] = None,
          new_day_of_month: Optional[int] = None,
          new_end_date: Optional[date] = None,
          new_security_deposit: Optional[Decimal] = None,
          notes: Optional[str] = None,
          regenerate_dues: bool = True
     ) -> Contract:
          """
          Replace a contract's terms with a superseding contract.

          Only contracts without generated dues can be modified. The new
          contract keeps the start date and status; the old one becomes
          SUPERSEDED.

          Args:
               effective_date: Date the new terms apply from, inside the contract period
               regenerate_dues: Rebuild the due schedule for the new terms

          Returns:
               The new Contract

          Raises:
               NotFoundError: If the contract doesn't exist
               BusinessRuleError: If the contract is not modifiable
               ValidationError: If the terms are invalid or nothing changes
               ContractOverlapError: If a new end date collides with another live contract
          """
          current = self.get_contract(contract_id)
          if not current.is_modifiable:
               raise BusinessRuleError(
                    "Contract cannot be modified. Either dues have been generated or "
                    f"contract status ({current.status.value}) does not allow modification"
               )

          rent = new_monthly_rent if new_monthly_rent is not None else current.monthly_rent
          day_of_month = new_day_of_month if new_day_of_month is not None else current.day_of_month
          end_date = new_end_date or current.end_date
          deposit = (
               new_security_deposit if new_security_deposit is not None
               else current.security_deposit
          )
          self._validate_terms(current.start_date, end_date, rent, day_of_month)
          if effective_date < current.start_date or effective_date > end_date:
               raise ValidationError(
                    "Effective date must fall within the contract period", field="effective_date"
               )

          changes = []
          if rent != current.monthly_rent:
               changes.append(f"Monthly rent: {current.monthly_rent} -> {rent}")
          if day_of_month != current.day_of_month:
               changes.append(f"Day of month: {current.day_of_month} -> {day_of_month}")
          if end_date != current.end_date:
               changes.append(f"End date: {current.end_date} -> {end_date}")
          if deposit != current.security_deposit:
               changes.append(f"Security deposit: {current.security_deposit} -> {deposit}")
          if not changes:
               raise ValidationError("No contract terms were changed")
          modification_details = "; ".join(changes)

          with self.locks.hold(self.db, current.flat_id) as flat:
               self._check_overlap(
                    current.flat_id, current.start_date, end_date, exclude_ids=(current.id,)
               )

               modified = Contract(
                    flat=flat,
                    tenant_name=current.tenant_name,
                    tenant_contact=current.tenant_contact,
                    tenant_email=current.tenant_email,
                    start_date=current.start_date,
                    end_date=end_date,
                    monthly_rent=rent,
                    day_of_month=day_of_month,
                    security_deposit=deposit,
                    notes=notes if notes is not None else current.notes,
                    status=current.status,
                    dues_generated=False,
                    deposit_refunded=False,
                    previous_contract_id=current.id,
                    created_by=actor.username,
               )
               self.db.add(modified)
               self.db.flush()

               old_status = current.status
               reason = f"Superseded by modified contract ID: {modified.id}"
               current.change_status(ContractStatus.SUPERSEDED, actor.username, reason, self.clock.now())
               self.db.flush()

               if regenerate_dues:
                    self.dues.regenerate_for_modification(current, modified, effective_date)

          logger.info(
               "Modified contract %s as %s by %s: %s",
               current.id, modified.id, actor.username, modification_details
          )
          self.publisher.publish(
               ContractStatusChanged(
                    contract_id=current.id,
                    old_status=old_status.value,
                    new_status=ContractStatus.SUPERSEDED.value,
                    reason=reason,
               )
          )
          self.publisher.publish(
               ContractModified(
                    old_contract_id=current.id,
                    new_contract_id=modified.id,
                    flat_id=current.flat_id,
                    effective_date=effective_date,
                    modification_details=modification_details,
                    regenerate_dues=regenerate_dues,
                    modified_by=actor.username,
               )
          )
          return modified

     def generate_dues(self, contract_id: int) -> List[MonthlyDue]:
          """Generate the due schedule for a contract created without one."""
          contract = self.get_contract(contract_id)
          if not contract.is_live:
               raise BusinessRuleError(
                    f"Cannot generate dues for a contract with status: {contract.status.value}"
               )
          return self.dues.generate_for_contract(contract)

     def update_contract_statuses(self) -> Dict[str, int]:
          """
          Daily sweep: activate PENDING contracts that have started and expire
          ACTIVE contracts past their end date.

          Safe to run repeatedly. A failure on one contract is logged and the
          sweep moves on.

          Returns:
               {"activated": n, "expired": m}
          """
          today = self.clock.today()

          pending = (
               self.db.query(Contract)
               .filter(Contract.status == ContractStatus.PENDING, Contract.start_date <= today)
               .all()
          )
          activated = self._sweep(
               pending, ContractStatus.ACTIVE, "Contract activated on start date"
          )

          active = (
               self.db.query(Contract)
               .filter(Contract.status == ContractStatus.ACTIVE, Contract.end_date < today)
               .all()
          )
          expired = self._sweep(active, ContractStatus.EXPIRED, "Contract expired")

          logger.info("Contract status sweep: %d activated, %d expired", activated, expired)
          return {"activated": activated, "expired": expired}

     # -----------------------------------------------------------------------
     # Queries
     # -----------------------------------------------------------------------

     def get_contract(self, contract_id: int) -> Contract:
          """
          Raises:
               NotFoundError: If the contract doesn't exist
          """
          contract = self.db.query(Contract).filter(Contract.id == contract_id).first()
          if not contract:
               raise NotFoundError("Contract", contract_id)
          return contract

     def get_active_contract_for_flat(self, flat_id: int) -> Optional[Contract]:
          return (
               self.db.query(Contract)
               .filter(Contract.flat_id == flat_id, Contract.status == ContractStatus.ACTIVE)
               .order_by(Contract.start_date.desc())
               .first()
          )

     def has_active_contract(self, flat_id: int) -> bool:
          return self.get_active_contract_for_flat(flat_id) is not None

     def list_contracts_by_flat(self, flat_id: int) -> List[Contract]:
          return (
               self.db.query(Contract)
               .filter(Contract.flat_id == flat_id)
               .order_by(Contract.start_date.desc(), Contract.id.desc())
               .all()
          )

     def list_contracts_by_building(
          self,
          building_id: int,
          page: int = 1,
          page_size: int = 50
     ) -> Tuple[List[Contract], int]:
          """Newest first. Returns (contracts, total)."""
          query = (
               self.db.query(Contract)
               .join(Flat, Contract.flat_id == Flat.id)
               .filter(Flat.building_id == building_id)
          )
          total = query.count()
          contracts = (
               query.order_by(Contract.created_at.desc(), Contract.id.desc())
               .offset((page - 1) * page_size)
               .limit(page_size)
               .all()
          )
          return contracts, total

     def search_by_tenant_name(
          self,
          name: str,
          page: int = 1,
          page_size: int = 50
     ) -> Tuple[List[Contract], int]:
          """Case-insensitive substring match. Returns (contracts, total)."""
          pattern = f"%{name.strip().lower()}%"
          query = self.db.query(Contract).filter(func.lower(Contract.tenant_name).like(pattern))
          total = query.count()
          contracts = (
               query.order_by(Contract.created_at.desc(), Contract.id.desc())
               .offset((page - 1) * page_size)
               .limit(page_size)
               .all()
          )
          return contracts, total

     def list_expiring_contracts(self, days_ahead: int = 30) -> List[Contract]:
          """ACTIVE contracts ending between today and today + days_ahead."""
          today = self.clock.today()
          return (
               self._expiring_query(today, days_ahead)
               .order_by(Contract.end_date.asc())
               .all()
          )

     def list_contracts_with_overdue_dues(self) -> List[Contract]:
          today = self.clock.today()
          return (
               self.db.query(Contract)
               .filter(
                    Contract.status == ContractStatus.ACTIVE,
                    Contract.monthly_dues.any(self._arrears_criteria(today))
               )
               .order_by(Contract.id.asc())
               .all()
          )

     def list_renewable_contracts(self, days_ahead: int = 30) -> List[Contract]:
          """Expiring contracts whose tenant has nothing overdue."""
          today = self.clock.today()
          return (
               self._expiring_query(today, days_ahead)
               .filter(~Contract.monthly_dues.any(self._arrears_criteria(today)))
               .order_by(Contract.end_date.asc())
               .all()
          )

     def get_contract_chain(self, contract_id: int) -> List[Contract]:
          """Contract history oldest-first, following previous_contract_id."""
          chain = [self.get_contract(contract_id)]
          seen = {contract_id}
          while chain[-1].previous_contract_id is not None:
               previous_id = chain[-1].previous_contract_id
               if previous_id in seen:
                    break
               seen.add(previous_id)
               previous = self.db.query(Contract).filter(Contract.id == previous_id).first()
               if previous is None:
                    break
               chain.append(previous)
          chain.reverse()
          return chain

     def get_contract_statistics(self, building_id: int) -> dict:
          """Contract counts by status and rent roll for a building."""
          rows = (
               self.db.query(Contract.status, func.count(Contract.id))
               .join(Flat, Contract.flat_id == Flat.id)
               .filter(Flat.building_id == building_id)
               .group_by(Contract.status)
               .all()
          )
          counts = {status: count for status, count in rows}
          total_rent = (
               self.db.query(func.coalesce(func.sum(Contract.monthly_rent), 0))
               .join(Flat, Contract.flat_id == Flat.id)
               .filter(Flat.building_id == building_id, Contract.status == ContractStatus.ACTIVE)
               .scalar()
          )
          return {
               "building_id": building_id,
               "total_contracts": sum(counts.values()),
               "active_contracts": counts.get(ContractStatus.ACTIVE, 0),
               "pending_contracts": counts.get(ContractStatus.PENDING, 0),
               "expired_contracts": counts.get(ContractStatus.EXPIRED, 0),
               "cancelled_contracts": counts.get(ContractStatus.CANCELLED, 0),
               "renewed_contracts": counts.get(ContractStatus.RENEWED, 0),
               "superseded_contracts": counts.get(ContractStatus.SUPERSEDED, 0),
               "total_monthly_rent": Decimal(str(total_rent or 0)),
          }

     def is_date_range_available(
          self,
          flat_id: int,
          start_date: date,
          end_date: date,
          exclude_contract_id: Optional[int] = None
     ) -> bool:
          exclude = (exclude_contract_id,) if exclude_contract_id is not None else ()
          return not self._overlapping(flat_id, start_date, end_date, exclude)

     # -----------------------------------------------------------------------
     # Helpers
     # -----------------------------------------------------------------------

     @staticmethod
     def _validate_terms(start_date: date, end_date: date, monthly_rent: Decimal, day_of_month: int) -> None:
          if end_date <= start_date:
               raise ValidationError("End date must be after start date", field="end_date")
          ContractService._validate_rent_and_day(monthly_rent, day_of_month)

     @staticmethod
     def _validate_rent_and_day(monthly_rent: Decimal, day_of_month: int) -> None:
          if monthly_rent is None or monthly_rent <= 0:
               raise ValidationError("Monthly rent must be positive", field="monthly_rent")
          if day_of_month is None or not 1 <= day_of_month <= 31:
               raise ValidationError("Day of month must be between 1 and 31", field="day_of_month")

     def _overlapping(
          self,
          flat_id: int,
          start_date: date,
          end_date: date,
          exclude_ids: Sequence[int] = ()
     ) -> List[Contract]:
          query = self.db.query(Contract).filter(
               Contract.flat_id == flat_id,
               Contract.status.in_(LIVE_STATUSES),
               Contract.start_date <= end_date,
               Contract.end_date >= start_date,
          )
          if exclude_ids:
               query = query.filter(Contract.id.notin_(exclude_ids))
          return query.all()

     def _check_overlap(
          self,
          flat_id: int,
          start_date: date,
          end_date: date,
          exclude_ids: Sequence[int] = ()
     ) -> None:
          conflicts = self._overlapping(flat_id, start_date, end_date, exclude_ids)
          if conflicts:
               raise ContractOverlapError(flat_id, [c.id for c in conflicts])

     def _expiring_query(self, today: date, days_ahead: int):
          return self.db.query(Contract).filter(
               Contract.status == ContractStatus.ACTIVE,
               Contract.end_date >= today,
               Contract.end_date <= today + timedelta(days=days_ahead),
          )

     @staticmethod
     def _arrears_criteria(today: date):
          return (MonthlyDue.status.in_(ARREARS_STATUSES)) & (MonthlyDue.due_date < today)

     def _sweep(self, contracts: List[Contract], new_status: ContractStatus, reason: str) -> int:
          changed = 0
          for contract in contracts:
               old_status = contract.status
               try:
                    with self.db.begin_nested():
                         contract.change_status(new_status, SYSTEM_ACTOR.username, reason, self.clock.now())
               except Exception:
                    logger.exception(
                         "Failed to move contract %s from %s to %s",
                         contract.id, old_status.value, new_status.value
                    )
                    continue
               changed += 1
               self.publisher.publish(
                    ContractStatusChanged(
                         contract_id=contract.id,
                         old_status=old_status.value,
                         new_status=new_status.value,
                         reason=reason,
                    )
               )
          return changed
