# schemas/__init__.py
from .contract import (
     ContractCreate,
     ContractRenew,
     ContractCancel,
     ContractModify,
     ContractResponse,
     ContractListResponse,
)
from .monthly_due import (
     BuildingDueGenerate,
     AdHocDueCreate,
     MonthlyDueUpdate,
     MonthlyDueResponse,
)
from .payment import (
     PaymentCreate,
     PaymentUpdate,
     PaymentResponse,
)

__all__ = [
     "ContractCreate",
     "ContractRenew",
     "ContractCancel",
     "ContractModify",
     "ContractResponse",
     "ContractListResponse",
     "BuildingDueGenerate",
     "AdHocDueCreate",
     "MonthlyDueUpdate",
     "MonthlyDueResponse",
     "PaymentCreate",
     "PaymentUpdate",
     "PaymentResponse",
]
