# schemas/monthly_due.py
"""
Pydantic schemas for Monthly Due API request/response validation.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models.monthly_due import DueStatus, DueSource


class BuildingDueGenerate(BaseModel):
     """Schema for bulk generating one due per active flat of a building."""
     due_date: date
     due_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
     description: Optional[str] = Field(None, max_length=500)
     use_flat_rent: bool = Field(False, description="Bill each flat its own monthly rent")
     fallback_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "due_date": "2026-11-15",
                    "due_amount": 750.00,
                    "description": "Monthly maintenance fee"
               }
          }
     )


class AdHocDueCreate(BaseModel):
     """Schema for creating a single due for a flat."""
     flat_id: int = Field(..., gt=0)
     due_date: date
     due_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
     base_rent: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     additional_charges: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     additional_charges_description: Optional[str] = Field(None, max_length=500)
     description: Optional[str] = Field(None, max_length=500)
     contract_id: Optional[int] = Field(None, gt=0)


class MonthlyDueUpdate(BaseModel):
     """Schema for editing an unsettled due."""
     due_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
     due_date: Optional[date] = None
     description: Optional[str] = Field(None, max_length=500)
     additional_charges: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     additional_charges_description: Optional[str] = Field(None, max_length=500)


class MonthlyDueResponse(BaseModel):
     """Schema for monthly due response."""
     id: int
     flat_id: int
     contract_id: Optional[int] = None
     due_date: date
     due_amount: Decimal
     base_rent: Optional[Decimal] = None
     additional_charges: Optional[Decimal] = None
     additional_charges_description: Optional[str] = None
     paid_amount: Decimal
     payment_date: Optional[date] = None
     status: DueStatus
     source: DueSource
     description: Optional[str] = None
     created_at: Optional[datetime] = None

     model_config = ConfigDict(from_attributes=True)


class MonthlyDueListResponse(BaseModel):
     dues: List[MonthlyDueResponse]
     total: int


class BuildingDueGenerateResponse(BaseModel):
     building_id: int
     due_date: date
     created_count: int
     skipped_count: int
     dues: List[MonthlyDueResponse]


class DebtorResponse(BaseModel):
     flat_id: int
     flat_number: str
     tenant_name: Optional[str] = None
     tenant_email: Optional[str] = None
     overdue_count: int
     total_debt: Decimal
     oldest_due_date: date


class CollectionRateResponse(BaseModel):
     building_id: int
     start_date: date
     end_date: date
     collection_rate: float


class OverdueSweepResponse(BaseModel):
     marked_overdue: int
