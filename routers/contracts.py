# routers/contracts.py
"""
Contract API routes.

Lifecycle endpoints (create, renew, cancel, modify, generate dues, status
sweep) require an admin or manager token; reads need any valid token.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from dependencies import (
     get_contract_service,
     get_due_generation_service,
     require_manager,
     verify_token,
)
from exceptions import NotFoundError, ValidationError
from models import Contract
from schemas.contract import (
     ActiveContractCheckResponse,
     AvailabilityResponse,
     ContractCancel,
     ContractCreate,
     ContractListResponse,
     ContractModify,
     ContractRenew,
     ContractResponse,
     ContractStatisticsResponse,
     DuePreviewItem,
     StatusSweepResponse,
)
from schemas.monthly_due import MonthlyDueResponse
from services import ContractService, DueGenerationService
from services.actor import Actor

router = APIRouter(prefix="/api/contracts", tags=["contracts"])


@router.post(
     "",
     response_model=ContractResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a new contract"
)
def create_contract(
     body: ContractCreate,
     service: ContractService = Depends(get_contract_service),
     actor: Actor = Depends(require_manager),
):
     """
     Create a rental contract for a flat.

     - **start_date**: today or later; a contract starting today is ACTIVE, later ones PENDING
     - **day_of_month**: 1-31, clamped to shorter months
     - **generate_dues_immediately**: create the full due schedule in the same transaction
     """
     contract = service.create_contract(
          flat_id=body.flat_id,
          tenant_name=body.tenant_name,
          start_date=body.start_date,
          end_date=body.end_date,
          monthly_rent=body.monthly_rent,
          day_of_month=body.day_of_month,
          actor=actor,
          tenant_contact=body.tenant_contact,
          tenant_email=body.tenant_email,
          security_deposit=body.security_deposit,
          notes=body.notes,
          generate_dues_immediately=body.generate_dues_immediately,
     )
     return _build_contract_response(contract)


# ---------------------------------------------------------------------------
# Collection queries
# ---------------------------------------------------------------------------

@router.get(
     "/search",
     response_model=ContractListResponse,
     summary="Search contracts by tenant name"
)
def search_contracts(
     q: str = Query(..., min_length=1, description="Part of the tenant name"),
     page: int = Query(1, ge=1, description="Page number"),
     page_size: int = Query(50, ge=1, le=100, description="Items per page"),
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     contracts, total = service.search_by_tenant_name(q, page=page, page_size=page_size)
     return ContractListResponse(
          contracts=[_build_contract_response(c) for c in contracts],
          total=total,
          page=page,
          page_size=page_size
     )


@router.get(
     "/expiring",
     response_model=List[ContractResponse],
     summary="Active contracts ending soon"
)
def list_expiring_contracts(
     days: int = Query(30, ge=0, le=365, description="Days ahead to look"),
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     return [_build_contract_response(c) for c in service.list_expiring_contracts(days)]


@router.get(
     "/renewable",
     response_model=List[ContractResponse],
     summary="Expiring contracts with no overdue dues"
)
def list_renewable_contracts(
     days: int = Query(30, ge=0, le=365, description="Days ahead to look"),
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     return [_build_contract_response(c) for c in service.list_renewable_contracts(days)]


@router.get(
     "/overdue",
     response_model=List[ContractResponse],
     summary="Active contracts with overdue dues"
)
def list_contracts_with_overdue_dues(
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     return [_build_contract_response(c) for c in service.list_contracts_with_overdue_dues()]


@router.get(
     "/preview-dues",
     response_model=List[DuePreviewItem],
     summary="Preview the due schedule for contract terms"
)
def preview_dues(
     start_date: date,
     end_date: date,
     day_of_month: int = Query(..., ge=1, le=31),
     monthly_rent: Decimal = Query(..., gt=0),
     token: dict = Depends(verify_token),
):
     if end_date <= start_date:
          raise ValidationError("End date must be after start date", field="end_date")
     return DueGenerationService.preview_schedule(start_date, end_date, day_of_month, monthly_rent)


@router.post(
     "/status-sweep",
     response_model=StatusSweepResponse,
     summary="Activate started and expire ended contracts"
)
def run_status_sweep(
     service: ContractService = Depends(get_contract_service),
     actor: Actor = Depends(require_manager),
):
     return StatusSweepResponse(**service.update_contract_statuses())


@router.get(
     "/flat/{flat_id}",
     response_model=List[ContractResponse],
     summary="Get contracts for a flat"
)
def get_contracts_by_flat(
     flat_id: int,
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     """Contract history for a flat, latest start date first."""
     return [_build_contract_response(c) for c in service.list_contracts_by_flat(flat_id)]


@router.get(
     "/flat/{flat_id}/active",
     response_model=ContractResponse,
     summary="Get the active contract for a flat"
)
def get_active_contract(
     flat_id: int,
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     contract = service.get_active_contract_for_flat(flat_id)
     if contract is None:
          raise NotFoundError("Active contract for flat", flat_id)
     return _build_contract_response(contract)


@router.get(
     "/flat/{flat_id}/has-active",
     response_model=ActiveContractCheckResponse,
     summary="Check whether a flat has an active contract"
)
def has_active_contract(
     flat_id: int,
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     return ActiveContractCheckResponse(
          flat_id=flat_id, has_active_contract=service.has_active_contract(flat_id)
     )


@router.get(
     "/flat/{flat_id}/availability",
     response_model=AvailabilityResponse,
     summary="Check whether a date range is free for a new contract"
)
def check_availability(
     flat_id: int,
     start_date: date,
     end_date: date,
     exclude_contract_id: Optional[int] = None,
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     """A range is free when no PENDING or ACTIVE contract of the flat overlaps it."""
     if end_date < start_date:
          raise ValidationError("End date must not be before start date", field="end_date")
     return AvailabilityResponse(
          flat_id=flat_id,
          start_date=start_date,
          end_date=end_date,
          available=service.is_date_range_available(
               flat_id, start_date, end_date, exclude_contract_id=exclude_contract_id
          ),
     )


@router.get(
     "/building/{building_id}",
     response_model=ContractListResponse,
     summary="Get contracts for a building"
)
def get_contracts_by_building(
     building_id: int,
     page: int = Query(1, ge=1, description="Page number"),
     page_size: int = Query(50, ge=1, le=100, description="Items per page"),
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     contracts, total = service.list_contracts_by_building(building_id, page=page, page_size=page_size)
     return ContractListResponse(
          contracts=[_build_contract_response(c) for c in contracts],
          total=total,
          page=page,
          page_size=page_size
     )


@router.get(
     "/building/{building_id}/statistics",
     response_model=ContractStatisticsResponse,
     summary="Contract counts and rent roll for a building"
)
def get_contract_statistics(
     building_id: int,
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     return ContractStatisticsResponse(**service.get_contract_statistics(building_id))


# ---------------------------------------------------------------------------
# Single contract
# ---------------------------------------------------------------------------

@router.get(
     "/{contract_id}",
     response_model=ContractResponse,
     summary="Get a specific contract"
)
def get_contract(
     contract_id: int,
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     return _build_contract_response(service.get_contract(contract_id))


@router.get(
     "/{contract_id}/chain",
     response_model=List[ContractResponse],
     summary="Renewal and modification history of a contract"
)
def get_contract_chain(
     contract_id: int,
     service: ContractService = Depends(get_contract_service),
     token: dict = Depends(verify_token),
):
     return [_build_contract_response(c) for c in service.get_contract_chain(contract_id)]


@router.get(
     "/{contract_id}/dues",
     response_model=List[MonthlyDueResponse],
     summary="Dues generated for a contract"
)
def get_contract_dues(
     contract_id: int,
     service: ContractService = Depends(get_contract_service),
     dues: DueGenerationService = Depends(get_due_generation_service),
     token: dict = Depends(verify_token),
):
     contract = service.get_contract(contract_id)
     return [MonthlyDueResponse.model_validate(d) for d in dues.get_dues_for_contract(contract.id)]


@router.post(
     "/{contract_id}/generate-dues",
     response_model=List[MonthlyDueResponse],
     status_code=status.HTTP_201_CREATED,
     summary="Generate the due schedule for a contract"
)
def generate_contract_dues(
     contract_id: int,
     service: ContractService = Depends(get_contract_service),
     actor: Actor = Depends(require_manager),
):
     return [MonthlyDueResponse.model_validate(d) for d in service.generate_dues(contract_id)]


@router.post(
     "/{contract_id}/renew",
     response_model=ContractResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Renew an active contract"
)
def renew_contract(
     contract_id: int,
     body: ContractRenew,
     service: ContractService = Depends(get_contract_service),
     actor: Actor = Depends(require_manager),
):
     """Creates the follow-on contract; the current one becomes RENEWED."""
     renewed = service.renew_contract(
          contract_id,
          actor=actor,
          new_end_date=body.new_end_date,
          new_monthly_rent=body.new_monthly_rent,
          new_security_deposit=body.new_security_deposit,
          new_day_of_month=body.new_day_of_month,
          notes=body.notes,
          generate_dues_immediately=body.generate_dues_immediately,
     )
     return _build_contract_response(renewed)


@router.post(
     "/{contract_id}/cancel",
     response_model=ContractResponse,
     summary="Cancel a contract"
)
def cancel_contract(
     contract_id: int,
     body: ContractCancel,
     service: ContractService = Depends(get_contract_service),
     actor: Actor = Depends(require_manager),
):
     reason = body.reason
     if body.reason_category:
          reason = f"[{body.reason_category}] {reason}"
     contract = service.cancel_contract(
          contract_id,
          reason=reason,
          actor=actor,
          effective_date=body.effective_date,
          cancel_unpaid_dues=body.cancel_unpaid_dues,
          refund_deposit=body.refund_deposit,
     )
     return _build_contract_response(contract)


@router.post(
     "/{contract_id}/modify",
     response_model=ContractResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Modify contract terms"
)
def modify_contract(
     contract_id: int,
     body: ContractModify,
     service: ContractService = Depends(get_contract_service),
     actor: Actor = Depends(require_manager),
):
     """Creates the superseding contract; the current one becomes SUPERSEDED."""
     modified = service.modify_contract(
          contract_id,
          effective_date=body.effective_date,
          actor=actor,
          new_monthly_rent=body.new_monthly_rent,
          new_day_of_month=body.new_day_of_month,
          new_end_date=body.new_end_date,
          new_security_deposit=body.new_security_deposit,
          notes=body.notes,
          regenerate_dues=body.regenerate_dues,
     )
     return _build_contract_response(modified)


def _build_contract_response(contract: Contract) -> ContractResponse:
     """
     Helper function to build ContractResponse with flat data.
     """
     response = ContractResponse.model_validate(contract)
     if contract.flat is not None:
          response.flat_number = contract.flat.flat_number
          response.building_id = contract.flat.building_id
     return response
