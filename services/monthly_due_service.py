# services/monthly_due_service.py
"""
Monthly Due Service - building-level due operations and reporting.

Covers bulk generation for a building, ad hoc dues, the overdue sweep,
debtor lists and collection rates. Contract-driven schedules live in
DueGenerationService.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import DEFAULT_DUE_DAY
from exceptions import BusinessRuleError, NotFoundError, ValidationError
from models import ApartmentBuilding, Contract, Flat, MonthlyDue, DueStatus, DueSource
from models.monthly_due import OPEN_STATUSES, ZERO
from services.clock import Clock, system_clock
from services.due_calculator import adjust_day_of_month, period_label
from services.events import EventPublisher, MonthlyDuesGenerated, default_publisher

logger = logging.getLogger(__name__)


class MonthlyDueService:
     """Service class for monthly due business logic."""

     def __init__(
          self,
          db: Session,
          publisher: Optional[EventPublisher] = None,
          clock: Optional[Clock] = None
     ):
          self.db = db
          self.publisher = publisher or default_publisher
          self.clock = clock or system_clock

     # -----------------------------------------------------------------------
     # Generation
     # -----------------------------------------------------------------------

     def generate_dues_for_building(
          self,
          building_id: int,
          due_date: date,
          due_amount: Optional[Decimal] = None,
          description: Optional[str] = None,
          use_flat_rent: bool = False,
          fallback_amount: Optional[Decimal] = None
     ) -> Tuple[List[MonthlyDue], int]:
          """
          Create one due per active flat of a building for `due_date`.

          Flats that already have a building due on that date are skipped,
          including ones inserted concurrently (caught by the unique index).

          Args:
               building_id: Building to bill
               due_date: Due date for every flat
               due_amount: Uniform amount; in flat-rent mode the last fallback
               description: Defaults to "Monthly rent for <Month YYYY>"
               use_flat_rent: Bill each flat its own monthly rent
               fallback_amount: Amount for flats without a rent in flat-rent mode

          Returns:
               (created dues, skipped count)

          Raises:
               NotFoundError: If the building doesn't exist
               ValidationError: If no usable amount was given
          """
          building = self._get_building(building_id)
          if not use_flat_rent and (due_amount is None or due_amount <= 0):
               raise ValidationError("Due amount must be positive", field="due_amount")
          if use_flat_rent and due_amount is not None and due_amount <= 0:
               raise ValidationError("Due amount must be positive", field="due_amount")

          description = description or f"Monthly rent for {period_label(due_date)}"
          flats = (
               self.db.query(Flat)
               .filter(Flat.building_id == building.id, Flat.is_active.is_(True))
               .order_by(Flat.id.asc())
               .all()
          )

          created: List[MonthlyDue] = []
          skipped = 0
          for flat in flats:
               amount = due_amount
               if use_flat_rent:
                    amount = flat.monthly_rent or fallback_amount or due_amount
               if amount is None or amount <= 0:
                    logger.warning("No amount to bill flat %s, skipping", flat.id)
                    skipped += 1
                    continue

               if self._building_due_exists(flat.id, due_date):
                    skipped += 1
                    continue

               due = MonthlyDue(
                    flat_id=flat.id,
                    due_date=due_date,
                    due_amount=amount,
                    base_rent=amount,
                    paid_amount=ZERO,
                    status=DueStatus.UNPAID,
                    source=DueSource.BUILDING,
                    description=description,
               )
               try:
                    with self.db.begin_nested():
                         self.db.add(due)
               except IntegrityError:
                    logger.info("Due for flat %s on %s already exists, skipping", flat.id, due_date)
                    skipped += 1
                    continue
               created.append(due)

          logger.info(
               "Generated %d dues for building %s on %s (%d skipped)",
               len(created), building_id, due_date, skipped
          )
          if created:
               self.publisher.publish(
                    MonthlyDuesGenerated(
                         building_id=building_id,
                         year=due_date.year,
                         month=due_date.month,
                         count=len(created),
                         due_date=due_date,
                    )
               )
          return created, skipped

     def generate_monthly_dues_automatically(self) -> Dict[int, int]:
          """
          Monthly run: bill every building that has a default fee, due on the
          configured day of the current month. One building failing does not
          stop the others.

          Returns:
               {building_id: dues created}
          """
          today = self.clock.today()
          due_date = adjust_day_of_month(today, DEFAULT_DUE_DAY)
          buildings = (
               self.db.query(ApartmentBuilding)
               .filter(ApartmentBuilding.default_monthly_fee > 0)
               .order_by(ApartmentBuilding.id.asc())
               .all()
          )

          results = {}
          for building in buildings:
               try:
                    with self.db.begin_nested():
                         created, _ = self.generate_dues_for_building(
                              building.id, due_date, due_amount=building.default_monthly_fee
                         )
               except Exception:
                    logger.exception("Automatic due generation failed for building %s", building.id)
                    continue
               results[building.id] = len(created)
          return results

     def create_ad_hoc_due(
          self,
          flat_id: int,
          due_date: date,
          due_amount: Optional[Decimal] = None,
          description: Optional[str] = None,
          base_rent: Optional[Decimal] = None,
          additional_charges: Optional[Decimal] = None,
          additional_charges_description: Optional[str] = None,
          contract_id: Optional[int] = None
     ) -> MonthlyDue:
          """
          Create a single due for a flat.

          When `due_amount` is omitted it is base rent plus additional charges.

          Raises:
               NotFoundError: If the flat or contract doesn't exist
               ValidationError: If the amount is not positive or the contract is for another flat
          """
          flat = self._get_flat(flat_id)
          if contract_id is not None:
               contract = self.db.query(Contract).filter(Contract.id == contract_id).first()
               if contract is None:
                    raise NotFoundError("Contract", contract_id)
               if contract.flat_id != flat.id:
                    raise ValidationError("Contract does not belong to the flat", field="contract_id")

          if due_amount is None:
               due_amount = (base_rent or ZERO) + (additional_charges or ZERO)
          if due_amount <= 0:
               raise ValidationError("Due amount must be positive", field="due_amount")

          due = MonthlyDue(
               flat_id=flat.id,
               contract_id=contract_id,
               due_date=due_date,
               due_amount=due_amount,
               base_rent=base_rent if base_rent is not None else due_amount,
               additional_charges=additional_charges,
               additional_charges_description=additional_charges_description,
               paid_amount=ZERO,
               status=DueStatus.UNPAID,
               source=DueSource.AD_HOC,
               description=description or f"Monthly rent for {period_label(due_date)}",
          )
          self.db.add(due)
          self.db.flush()
          logger.info("Created ad hoc due %s for flat %s", due.id, flat_id)
          return due

     # -----------------------------------------------------------------------
     # Single due changes
     # -----------------------------------------------------------------------

     def get_due(self, due_id: int) -> MonthlyDue:
          due = self.db.query(MonthlyDue).filter(MonthlyDue.id == due_id).first()
          if not due:
               raise NotFoundError("Monthly due", due_id)
          return due

     def update_due(
          self,
          due_id: int,
          due_amount: Optional[Decimal] = None,
          due_date: Optional[date] = None,
          description: Optional[str] = None,
          additional_charges: Optional[Decimal] = None,
          additional_charges_description: Optional[str] = None
     ) -> MonthlyDue:
          """
          Edit an unsettled due.

          Raises:
               BusinessRuleError: If the due is PAID or CANCELLED, or a building due
                    would land on a date that already has one
               ValidationError: If the new amount is not positive or below what was already paid
          """
          due = self.get_due(due_id)
          if due.status in (DueStatus.PAID, DueStatus.CANCELLED):
               raise BusinessRuleError(f"Cannot update a due with status: {due.status.value}")

          if due_amount is not None:
               if due_amount <= 0:
                    raise ValidationError("Due amount must be positive", field="due_amount")
               if due_amount < due.paid_amount:
                    raise ValidationError(
                         "Due amount cannot be less than the amount already paid", field="due_amount"
                    )
               due.due_amount = due_amount
               if due.paid_amount > ZERO and due.paid_amount == due_amount:
                    due.status = DueStatus.PAID
          if due_date is not None and due_date != due.due_date:
               if due.source == DueSource.BUILDING and self._building_due_exists(due.flat_id, due_date):
                    raise BusinessRuleError(
                         f"Flat {due.flat_id} already has a building due on {due_date}",
                         details={"flat_id": due.flat_id, "due_date": due_date.isoformat()},
                    )
               due.due_date = due_date
          if description is not None:
               due.description = description
          if additional_charges is not None:
               due.additional_charges = additional_charges
          if additional_charges_description is not None:
               due.additional_charges_description = additional_charges_description

          self.db.flush()
          return due

     def cancel_due(self, due_id: int) -> MonthlyDue:
          due = self.get_due(due_id)
          due.cancel()
          self.db.flush()
          logger.info("Cancelled due %s", due_id)
          return due

     # -----------------------------------------------------------------------
     # Sweeps
     # -----------------------------------------------------------------------

     def update_overdue_statuses(self) -> int:
          """
          Daily sweep: UNPAID dues past their date become OVERDUE.

          Returns:
               Number of dues marked overdue
          """
          today = self.clock.today()
          candidates = (
               self.db.query(MonthlyDue)
               .filter(MonthlyDue.status == DueStatus.UNPAID, MonthlyDue.due_date < today)
               .all()
          )

          count = 0
          for due in candidates:
               try:
                    with self.db.begin_nested():
                         due.mark_overdue(today)
               except Exception:
                    logger.exception("Failed to mark due %s overdue", due.id)
                    continue
               count += 1

          logger.info("Marked %d dues overdue", count)
          return count

     # -----------------------------------------------------------------------
     # Queries and reporting
     # -----------------------------------------------------------------------

     def get_dues_by_flat(self, flat_id: int, status: Optional[DueStatus] = None) -> List[MonthlyDue]:
          query = self.db.query(MonthlyDue).filter(MonthlyDue.flat_id == flat_id)
          if status is not None:
               query = query.filter(MonthlyDue.status == status)
          return query.order_by(MonthlyDue.due_date.desc(), MonthlyDue.id.desc()).all()

     def get_overdue_dues_for_building(self, building_id: int) -> List[MonthlyDue]:
          today = self.clock.today()
          return (
               self.db.query(MonthlyDue)
               .join(Flat, MonthlyDue.flat_id == Flat.id)
               .filter(Flat.building_id == building_id, self._arrears(today))
               .order_by(MonthlyDue.due_date.asc(), MonthlyDue.id.asc())
               .all()
          )

     def calculate_total_debt(self, flat_id: int) -> Decimal:
          """Outstanding amount of the flat's past-due dues."""
          today = self.clock.today()
          dues = (
               self.db.query(MonthlyDue)
               .filter(MonthlyDue.flat_id == flat_id, self._arrears(today))
               .all()
          )
          return sum((due.outstanding_amount for due in dues), ZERO)

     def get_debtors_for_building(self, building_id: int) -> List[dict]:
          """Flats with past-due dues and what they owe, largest debt first."""
          debtors: Dict[int, dict] = {}
          for due in self.get_overdue_dues_for_building(building_id):
               entry = debtors.get(due.flat_id)
               if entry is None:
                    flat = due.flat
                    entry = {
                         "flat_id": flat.id,
                         "flat_number": flat.flat_number,
                         "tenant_name": flat.tenant_name,
                         "tenant_email": flat.tenant_email,
                         "overdue_count": 0,
                         "total_debt": ZERO,
                         "oldest_due_date": due.due_date,
                    }
                    debtors[due.flat_id] = entry
               entry["overdue_count"] += 1
               entry["total_debt"] += due.outstanding_amount
          return sorted(debtors.values(), key=lambda d: (-d["total_debt"], d["flat_id"]))

     def calculate_collection_rate(self, building_id: int, start_date: date, end_date: date) -> float:
          """
          Percentage of the building's dues in [start_date, end_date] that are
          fully paid. Cancelled dues are left out; no dues counts as 100%.
          """
          if end_date < start_date:
               raise ValidationError("End date must not be before start date", field="end_date")
          dues = (
               self.db.query(MonthlyDue.status)
               .join(Flat, MonthlyDue.flat_id == Flat.id)
               .filter(
                    Flat.building_id == building_id,
                    MonthlyDue.due_date >= start_date,
                    MonthlyDue.due_date <= end_date,
                    MonthlyDue.status != DueStatus.CANCELLED,
               )
               .all()
          )
          if not dues:
               return 100.0
          paid = sum(1 for (status,) in dues if status == DueStatus.PAID)
          return round(paid * 100.0 / len(dues), 2)

     # -----------------------------------------------------------------------
     # Helpers
     # -----------------------------------------------------------------------

     @staticmethod
     def _arrears(today: date):
          """Open dues whose date has passed (marked OVERDUE or not yet swept)."""
          return or_(
               MonthlyDue.status == DueStatus.OVERDUE,
               (MonthlyDue.status.in_(OPEN_STATUSES)) & (MonthlyDue.due_date < today),
          )

     def _building_due_exists(self, flat_id: int, due_date: date) -> bool:
          return (
               self.db.query(MonthlyDue.id)
               .filter(
                    MonthlyDue.flat_id == flat_id,
                    MonthlyDue.due_date == due_date,
                    MonthlyDue.source == DueSource.BUILDING,
               )
               .first()
               is not None
          )

     def _get_building(self, building_id: int) -> ApartmentBuilding:
          building = self.db.query(ApartmentBuilding).filter(ApartmentBuilding.id == building_id).first()
          if not building:
               raise NotFoundError("Building", building_id)
          return building

     def _get_flat(self, flat_id: int) -> Flat:
          flat = self.db.query(Flat).filter(Flat.id == flat_id).first()
          if not flat:
               raise NotFoundError("Flat", flat_id)
          return flat
