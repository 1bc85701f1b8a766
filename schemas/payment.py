# schemas/payment.py
"""
Pydantic schemas for payment recording API.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models.payment import PaymentMethod


class PaymentCreate(BaseModel):
     """Request body for POST /api/payments."""

     flat_id: int = Field(..., gt=0, description="Paying flat")
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Cannot exceed the outstanding balance")
     payment_method: PaymentMethod = PaymentMethod.CASH
     payment_date: Optional[datetime] = Field(None, description="Defaults to now")
     reference_number: Optional[str] = Field(None, max_length=100)
     receipt_number: Optional[str] = Field(None, max_length=100)
     description: Optional[str] = Field(None, max_length=500)
     notes: Optional[str] = None

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "flat_id": 1,
                    "amount": 1200.00,
                    "payment_method": "BANK_TRANSFER",
                    "reference_number": "TRX-2026-0001",
               }
          }
     )


class PaymentUpdate(BaseModel):
     """Only descriptive fields can change after a payment is recorded."""

     expected_version: Optional[int] = Field(None, ge=1, description="Version the client last read")
     payment_method: Optional[PaymentMethod] = None
     reference_number: Optional[str] = Field(None, max_length=100)
     receipt_number: Optional[str] = Field(None, max_length=100)
     description: Optional[str] = Field(None, max_length=500)
     notes: Optional[str] = None


class PaymentAllocationResponse(BaseModel):
     due_id: int
     amount_applied: Decimal
     due_date: Optional[date] = None

     model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
     id: int
     flat_id: int
     amount: Decimal
     payment_date: datetime
     payment_method: PaymentMethod
     reference_number: Optional[str] = None
     receipt_number: Optional[str] = None
     description: Optional[str] = None
     notes: Optional[str] = None
     recorded_by: Optional[str] = None
     version: int
     allocations: List[PaymentAllocationResponse] = []


class PaymentListResponse(BaseModel):
     payments: List[PaymentResponse]
     total: int
     total_amount: Decimal


class OutstandingBalanceResponse(BaseModel):
     flat_id: int
     outstanding_balance: Decimal
