# schemas/contract.py
"""
Pydantic schemas for Contract API request/response validation.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models.contract import ContractStatus


class ContractCreate(BaseModel):
     """Schema for creating a new contract."""
     flat_id: int = Field(..., gt=0, description="Flat ID (must exist and be active)")
     tenant_name: str = Field(..., min_length=1, max_length=255)
     tenant_contact: Optional[str] = Field(None, max_length=100)
     tenant_email: Optional[str] = Field(None, max_length=255)
     start_date: date = Field(..., description="First day of the contract (today or later)")
     end_date: date = Field(..., description="Last day of the contract")
     monthly_rent: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
     day_of_month: int = Field(..., ge=1, le=31, description="Day of month rent is due")
     security_deposit: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     notes: Optional[str] = None
     generate_dues_immediately: bool = Field(False, description="Create the due schedule right away")

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "flat_id": 1,
                    "tenant_name": "Jane Doe",
                    "tenant_contact": "+90 555 000 0000",
                    "tenant_email": "jane@example.com",
                    "start_date": "2026-11-01",
                    "end_date": "2027-10-31",
                    "monthly_rent": 1000.00,
                    "day_of_month": 5,
                    "security_deposit": 2000.00,
                    "generate_dues_immediately": True
               }
          }
     )


class ContractRenew(BaseModel):
     """Schema for renewing an active contract. Omitted terms are carried over."""
     new_end_date: Optional[date] = Field(None, description="Defaults to one year after the current end")
     new_monthly_rent: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
     new_security_deposit: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     new_day_of_month: Optional[int] = Field(None, ge=1, le=31)
     notes: Optional[str] = None
     generate_dues_immediately: bool = False


class ContractCancel(BaseModel):
     """Schema for cancelling a contract."""
     reason: str = Field(..., min_length=1, max_length=1000)
     reason_category: Optional[str] = Field(None, max_length=50)
     effective_date: Optional[date] = Field(None, description="Defaults to today; cannot be in the future")
     cancel_unpaid_dues: bool = True
     refund_deposit: bool = False


class ContractModify(BaseModel):
     """Schema for modifying contract terms before dues exist."""
     effective_date: date
     new_monthly_rent: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
     new_day_of_month: Optional[int] = Field(None, ge=1, le=31)
     new_end_date: Optional[date] = None
     new_security_deposit: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     notes: Optional[str] = None
     regenerate_dues: bool = True


class ContractResponse(BaseModel):
     """Schema for contract response."""
     id: int
     flat_id: int
     tenant_name: str
     tenant_contact: Optional[str] = None
     tenant_email: Optional[str] = None
     start_date: date
     end_date: date
     monthly_rent: Decimal
     day_of_month: int
     security_deposit: Optional[Decimal] = None
     status: ContractStatus
     dues_generated: bool
     previous_contract_id: Optional[int] = None
     notes: Optional[str] = None
     cancellation_reason: Optional[str] = None
     cancellation_date: Optional[date] = None
     cancelled_by: Optional[str] = None
     deposit_refunded: bool = False
     status_changed_at: Optional[datetime] = None
     status_changed_by: Optional[str] = None
     status_change_reason: Optional[str] = None
     created_by: Optional[str] = None
     created_at: Optional[datetime] = None

     # Optional related data
     flat_number: Optional[str] = None
     building_id: Optional[int] = None

     model_config = ConfigDict(from_attributes=True)


class ContractListResponse(BaseModel):
     """Schema for paginated contract list response."""
     contracts: List[ContractResponse]
     total: int
     page: int = 1
     page_size: int = 50


class ContractStatisticsResponse(BaseModel):
     building_id: int
     total_contracts: int
     active_contracts: int
     pending_contracts: int
     expired_contracts: int
     cancelled_contracts: int
     renewed_contracts: int
     superseded_contracts: int
     total_monthly_rent: Decimal


class DuePreviewItem(BaseModel):
     due_date: date
     due_amount: Decimal
     description: str


class StatusSweepResponse(BaseModel):
     activated: int
     expired: int


class AvailabilityResponse(BaseModel):
     flat_id: int
     start_date: date
     end_date: date
     available: bool


class ActiveContractCheckResponse(BaseModel):
     flat_id: int
     has_active_contract: bool
