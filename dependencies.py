# dependencies.py
"""
Shared FastAPI dependencies: token verification, the acting user, and
service construction.
"""
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from config import JWT_ALGORITHM, JWT_SECRET
from database import get_session
from exceptions import InsufficientPermissionsError
from services import ContractService, DueGenerationService, MonthlyDueService, PaymentService
from services.actor import Actor
from services.clock import Clock, system_clock
from services.events import CompositeEventPublisher, EventPublisher, LoggingEventPublisher
from services.notification_service import ContractNotificationListener

MANAGER_ROLES = ("admin", "manager")

notification_listener = ContractNotificationListener()
event_publisher = CompositeEventPublisher(LoggingEventPublisher().publish, notification_listener)


# Token Auth Dependency
def verify_token(request: Request) -> dict:
     auth = request.headers.get("Authorization")
     if not auth or not auth.startswith("Bearer "):
          raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
     token = auth.split(" ")[1]
     try:
          return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
     except JWTError:
          raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")


def get_actor(token: dict = Depends(verify_token)) -> Actor:
     """Build the acting user from token claims."""
     username = token.get("username") or token.get("email") or f"user-{token.get('id')}"
     return Actor(id=token.get("id"), username=username, role=token.get("role"))


def require_manager(actor: Actor = Depends(get_actor)) -> Actor:
     """Only admins and managers may change contracts, dues and payments."""
     if actor.role not in MANAGER_ROLES:
          raise InsufficientPermissionsError("Only admins and managers can perform this action")
     return actor


def get_publisher() -> EventPublisher:
     return event_publisher


def get_clock() -> Clock:
     return system_clock


# ---------------------------------------------------------------------------
# Service factories
# ---------------------------------------------------------------------------

def get_contract_service(
     db: Session = Depends(get_session),
     publisher: EventPublisher = Depends(get_publisher),
     clock: Clock = Depends(get_clock),
) -> ContractService:
     return ContractService(db, publisher=publisher, clock=clock)


def get_due_generation_service(
     db: Session = Depends(get_session),
     publisher: EventPublisher = Depends(get_publisher),
     clock: Clock = Depends(get_clock),
) -> DueGenerationService:
     return DueGenerationService(db, publisher=publisher, clock=clock)


def get_monthly_due_service(
     db: Session = Depends(get_session),
     publisher: EventPublisher = Depends(get_publisher),
     clock: Clock = Depends(get_clock),
) -> MonthlyDueService:
     return MonthlyDueService(db, publisher=publisher, clock=clock)


def get_payment_service(
     db: Session = Depends(get_session),
     publisher: EventPublisher = Depends(get_publisher),
     clock: Clock = Depends(get_clock),
) -> PaymentService:
     return PaymentService(db, publisher=publisher, clock=clock)
