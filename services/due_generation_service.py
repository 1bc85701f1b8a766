# services/due_generation_service.py
"""
Due Generation Service - turns contract terms into monthly dues.

All writes happen in the caller's session; nothing here commits. The
contract service calls in after flushing the contract row so the whole
lifecycle operation lands in one transaction.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from exceptions import BusinessRuleError
from models import Contract, MonthlyDue, DueStatus, DueSource
from models.monthly_due import OPEN_STATUSES, ZERO
from services.clock import Clock, system_clock
from services.due_calculator import (
     adjust_day_of_month,
     due_dates_between,
     next_due_date,
     period_label,
)
from services.events import EventPublisher, MonthlyDuesGenerated, default_publisher

logger = logging.getLogger(__name__)

CANCELLATION_NOTE = " - Cancelled due to contract cancellation"


def contract_due_description(contract_id: int, due_date: date, suffix: str = "") -> str:
     return f"Contract #{contract_id} - Monthly rent for {period_label(due_date)}{suffix}"


class DueGenerationService:
     """Service class for creating and retiring contract dues."""

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
     # Queries
     # -----------------------------------------------------------------------

     def get_dues_for_contract(self, contract_id: int) -> List[MonthlyDue]:
          return (
               self.db.query(MonthlyDue)
               .filter(MonthlyDue.contract_id == contract_id)
               .order_by(MonthlyDue.due_date.asc(), MonthlyDue.id.asc())
               .all()
          )

     def dues_exist_for_contract(self, contract: Contract) -> bool:
          return (
               self.db.query(MonthlyDue.id)
               .filter(
                    MonthlyDue.contract_id == contract.id,
                    MonthlyDue.source == DueSource.CONTRACT
               )
               .first()
               is not None
          )

     @staticmethod
     def preview_schedule(
          start_date: date,
          end_date: date,
          day_of_month: int,
          monthly_rent: Decimal,
          contract_id: Optional[int] = None
     ) -> List[dict]:
          """
          Dues a contract with these terms would produce. Nothing is persisted.

          Returns:
               List of {"due_date", "due_amount", "description"} dicts
          """
          return [
               {
                    "due_date": due_date,
                    "due_amount": monthly_rent,
                    "description": (
                         contract_due_description(contract_id, due_date)
                         if contract_id is not None
                         else f"Monthly rent for {period_label(due_date)}"
                    ),
               }
               for due_date in due_dates_between(start_date, end_date, day_of_month)
          ]

     # -----------------------------------------------------------------------
     # Generation
     # -----------------------------------------------------------------------

     def generate_for_contract(self, contract: Contract) -> List[MonthlyDue]:
          """
          Create the full due schedule for a contract.

          Args:
               contract: Flushed contract (must have an id)

          Returns:
               Created MonthlyDue objects in date order

          Raises:
               BusinessRuleError: If dues were already generated for the contract
          """
          if contract.dues_generated:
               raise BusinessRuleError(
                    f"Dues have already been generated for contract ID: {contract.id}"
               )
          if self.dues_exist_for_contract(contract):
               raise BusinessRuleError(
                    f"Dues already exist for contract ID: {contract.id}"
               )

          dates = due_dates_between(contract.start_date, contract.end_date, contract.day_of_month)
          dues = [
               self._build_due(contract, due_date, contract_due_description(contract.id, due_date))
               for due_date in dates
          ]
          self.db.add_all(dues)
          contract.dues_generated = True
          self.db.flush()

          logger.info("Generated %d dues for contract %s", len(dues), contract.id)
          self._publish_generated(contract, dues)
          return dues

     def generate_extension(self, contract: Contract, extension_start: date) -> List[MonthlyDue]:
          """
          Create dues from `extension_start` through the contract end.

          Used after a renewal; the contract's `dues_generated` flag is left as is.
          """
          current = adjust_day_of_month(extension_start, contract.day_of_month)
          if current < extension_start:
               current = next_due_date(current, contract.day_of_month)

          dues = []
          while current <= contract.end_date:
               dues.append(
                    self._build_due(
                         contract,
                         current,
                         contract_due_description(contract.id, current, " (Extension)")
                    )
               )
               current = next_due_date(current, contract.day_of_month)

          self.db.add_all(dues)
          self.db.flush()

          logger.info(
               "Generated %d extension dues for contract %s from %s",
               len(dues), contract.id, extension_start
          )
          self._publish_generated(contract, dues)
          return dues

     def regenerate_for_modification(
          self,
          old_contract: Contract,
          new_contract: Contract,
          effective_date: date
     ) -> List[MonthlyDue]:
          """
          Replace the unsettled part of a schedule after a contract modification.

          Dues that carry money, are cancelled, or fall before `effective_date`
          stay on the old contract. The rest are deleted and re-created for the
          new contract from the earliest removed date, at the new rent and day.
          If the old contract never had dues, the new one gets a full schedule.

          Returns:
               Newly created MonthlyDue objects
          """
          existing = self.get_dues_for_contract(old_contract.id)
          if not existing:
               return self.generate_for_contract(new_contract)

          removable = [
               due for due in existing
               if due.status in (DueStatus.UNPAID, DueStatus.OVERDUE)
               and due.due_date >= effective_date
               and not due.allocations
          ]

          created: List[MonthlyDue] = []
          if removable:
               restart = min(due.due_date for due in removable)
               for due in removable:
                    self.db.delete(due)
               self.db.flush()

               current = adjust_day_of_month(restart, new_contract.day_of_month)
               while current <= new_contract.end_date:
                    created.append(
                         self._build_due(
                              new_contract,
                              current,
                              contract_due_description(new_contract.id, current, " (Modified)")
                         )
                    )
                    current = next_due_date(current, new_contract.day_of_month)
               self.db.add_all(created)

          new_contract.dues_generated = True
          self.db.flush()

          logger.info(
               "Regenerated dues for contract %s -> %s: kept %d, removed %d, created %d",
               old_contract.id, new_contract.id,
               len(existing) - len(removable), len(removable), len(created)
          )
          self._publish_generated(new_contract, created)
          return created

     def cancel_unpaid_dues(self, contract: Contract, note: str = CANCELLATION_NOTE) -> int:
          """
          Cancel every open due of a contract. Paid dues are untouched.

          Returns:
               Number of dues cancelled
          """
          open_dues = (
               self.db.query(MonthlyDue)
               .filter(
                    MonthlyDue.contract_id == contract.id,
                    MonthlyDue.status.in_(OPEN_STATUSES)
               )
               .all()
          )
          for due in open_dues:
               due.cancel(note)
          self.db.flush()

          logger.info("Cancelled %d unpaid dues for contract %s", len(open_dues), contract.id)
          return len(open_dues)

     # -----------------------------------------------------------------------
     # Helpers
     # -----------------------------------------------------------------------

     @staticmethod
     def _build_due(contract: Contract, due_date: date, description: str) -> MonthlyDue:
          return MonthlyDue(
               flat_id=contract.flat_id,
               contract_id=contract.id,
               due_date=due_date,
               due_amount=contract.monthly_rent,
               base_rent=contract.monthly_rent,
               paid_amount=ZERO,
               status=DueStatus.UNPAID,
               source=DueSource.CONTRACT,
               description=description,
          )

     def _publish_generated(self, contract: Contract, dues: List[MonthlyDue]) -> None:
          if not dues:
               return
          first = dues[0].due_date
          building_id = contract.flat.building_id if contract.flat is not None else None
          self.publisher.publish(
               MonthlyDuesGenerated(
                    building_id=building_id,
                    year=first.year,
                    month=first.month,
                    count=len(dues),
                    due_date=first,
                    contract_id=contract.id,
               )
          )
