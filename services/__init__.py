# services/__init__.py
"""
Business logic services for rental contracts, dues and payments.
"""
from .contract_service import ContractService
from .due_generation_service import DueGenerationService
from .monthly_due_service import MonthlyDueService
from .payment_service import PaymentService

__all__ = [
     "ContractService",
     "DueGenerationService",
     "MonthlyDueService",
     "PaymentService",
]
