# models/__init__.py
from .base import Base
from .building import ApartmentBuilding
from .flat import Flat
from .contract import Contract, ContractStatus
from .monthly_due import MonthlyDue, DueStatus, DueSource
from .payment import Payment, PaymentMethod
from .payment_allocation import PaymentAllocation

__all__ = [
     "Base",
     "ApartmentBuilding",
     "Flat",
     "Contract",
     "ContractStatus",
     "MonthlyDue",
     "DueStatus",
     "DueSource",
     "Payment",
     "PaymentMethod",
     "PaymentAllocation",
]
