# routers/__init__.py
from .contracts import router as contracts_router
from .monthly_dues import router as monthly_dues_router
from .payments import router as payments_router

__all__ = [
     "contracts_router",
     "monthly_dues_router",
     "payments_router",
]
