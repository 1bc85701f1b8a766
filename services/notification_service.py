# services/notification_service.py
"""
Tenant notifications (stub).

Subscribes to domain events and logs the message that would be sent.
Delivery (email/SMS) is handled outside this service.
"""
import logging
from typing import List

from models import Contract
from services.events import (
     ContractCancelled,
     ContractCreated,
     ContractRenewed,
     DomainEvent,
     PaymentRecorded,
)

logger = logging.getLogger(__name__)


class ContractNotificationListener:
     """Callable subscriber for CompositeEventPublisher."""

     def __init__(self):
          self.sent: List[str] = []

     def __call__(self, event: DomainEvent) -> None:
          message = self._message_for(event)
          if message is None:
               return
          self.sent.append(message)
          logger.info("Notification: %s", message)

     @staticmethod
     def _message_for(event: DomainEvent):
          if isinstance(event, ContractCreated):
               return (
                    f"Contract #{event.contract_id} created for flat {event.flat_id} "
                    f"from {event.start_date} to {event.end_date}"
               )
          if isinstance(event, ContractRenewed):
               return (
                    f"Contract #{event.old_contract_id} renewed as #{event.new_contract_id} "
                    f"until {event.new_end_date}"
               )
          if isinstance(event, ContractCancelled):
               return f"Contract #{event.contract_id} cancelled: {event.cancellation_reason}"
          if isinstance(event, PaymentRecorded) and event.tenant_email:
               return f"Payment of {event.amount} received from {event.tenant_email}"
          return None

     def notify_expiring(self, contracts: List[Contract]) -> int:
          """Send an expiry reminder for each contract. Returns how many were sent."""
          for contract in contracts:
               message = (
                    f"Contract #{contract.id} for {contract.tenant_name} "
                    f"expires on {contract.end_date}"
               )
               self.sent.append(message)
               logger.info("Notification: %s", message)
          return len(contracts)
