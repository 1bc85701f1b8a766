# services/events.py
"""
Domain events and publishers.

Services publish after their database work for an operation has been
flushed. Publishers run in-process and must not raise into the caller:
a failing subscriber is logged and the remaining subscribers still run.
"""
import logging
from dataclasses import dataclass, asdict, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional, Type

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
     @property
     def name(self) -> str:
          return type(self).__name__


@dataclass(frozen=True)
class ContractCreated(DomainEvent):
     contract_id: int
     flat_id: int
     start_date: date
     end_date: date
     monthly_rent: Decimal
     generate_dues_immediately: bool
     created_by: Optional[str] = None


@dataclass(frozen=True)
class ContractRenewed(DomainEvent):
     old_contract_id: int
     new_contract_id: int
     flat_id: int
     new_end_date: date
     generate_dues_immediately: bool
     renewed_by: Optional[str] = None


@dataclass(frozen=True)
class ContractCancelled(DomainEvent):
     contract_id: int
     flat_id: int
     cancellation_reason: str
     cancellation_date: date
     cancel_unpaid_dues: bool
     refund_deposit: bool
     cancelled_dues_count: int = 0
     cancelled_by: Optional[str] = None


@dataclass(frozen=True)
class ContractModified(DomainEvent):
     old_contract_id: int
     new_contract_id: int
     flat_id: int
     effective_date: date
     modification_details: str
     regenerate_dues: bool
     modified_by: Optional[str] = None


@dataclass(frozen=True)
class ContractStatusChanged(DomainEvent):
     contract_id: int
     old_status: str
     new_status: str
     reason: Optional[str] = None


@dataclass(frozen=True)
class MonthlyDuesGenerated(DomainEvent):
     building_id: Optional[int]
     year: int
     month: int
     count: int
     due_date: date
     contract_id: Optional[int] = None


@dataclass(frozen=True)
class PaymentRecorded(DomainEvent):
     payment_id: int
     flat_id: int
     building_id: int
     amount: Decimal
     payment_date: datetime
     tenant_name: Optional[str] = None
     tenant_email: Optional[str] = None
     allocated_due_ids: tuple = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Publishers
# ---------------------------------------------------------------------------

class EventPublisher:
     """Sink for domain events."""

     def publish(self, event: DomainEvent) -> None:
          raise NotImplementedError


class LoggingEventPublisher(EventPublisher):
     """Default publisher: writes each event to the log."""

     def publish(self, event: DomainEvent) -> None:
          logger.info("Event %s: %s", event.name, asdict(event))


class InMemoryEventPublisher(EventPublisher):
     """Collects events in a list. Used by tests and by preview tooling."""

     def __init__(self):
          self.events: List[DomainEvent] = []

     def publish(self, event: DomainEvent) -> None:
          self.events.append(event)

     def of_type(self, event_type: Type[DomainEvent]) -> List[DomainEvent]:
          return [e for e in self.events if isinstance(e, event_type)]


class CompositeEventPublisher(EventPublisher):
     """Fans out to several subscribers."""

     def __init__(self, *subscribers: Callable[[DomainEvent], None]):
          self.subscribers = list(subscribers)

     def subscribe(self, subscriber: Callable[[DomainEvent], None]) -> None:
          self.subscribers.append(subscriber)

     def publish(self, event: DomainEvent) -> None:
          for subscriber in self.subscribers:
               try:
                    subscriber(event)
               except Exception:
                    logger.exception("Subscriber %r failed handling %s", subscriber, event.name)


default_publisher = LoggingEventPublisher()
