# routers/monthly_dues.py
"""
Monthly due API routes.

Bulk generation per building, ad hoc dues, edits and cancellation, the
overdue sweep, and the debtor/collection reports.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from dependencies import get_monthly_due_service, require_manager, verify_token
from models.monthly_due import DueStatus
from schemas.monthly_due import (
     AdHocDueCreate,
     BuildingDueGenerate,
     BuildingDueGenerateResponse,
     CollectionRateResponse,
     DebtorResponse,
     MonthlyDueListResponse,
     MonthlyDueResponse,
     MonthlyDueUpdate,
     OverdueSweepResponse,
)
from services import MonthlyDueService
from services.actor import Actor

router = APIRouter(prefix="/api/monthly-dues", tags=["monthly-dues"])


@router.post(
     "",
     response_model=MonthlyDueResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a single due for a flat"
)
def create_ad_hoc_due(
     body: AdHocDueCreate,
     service: MonthlyDueService = Depends(get_monthly_due_service),
     actor: Actor = Depends(require_manager),
):
     """
     Create one due outside any schedule.

     - **due_amount**: if omitted, base_rent + additional_charges
     - **contract_id**: optional, must belong to the same flat
     """
     due = service.create_ad_hoc_due(
          flat_id=body.flat_id,
          due_date=body.due_date,
          due_amount=body.due_amount,
          description=body.description,
          base_rent=body.base_rent,
          additional_charges=body.additional_charges,
          additional_charges_description=body.additional_charges_description,
          contract_id=body.contract_id,
     )
     return MonthlyDueResponse.model_validate(due)


@router.post(
     "/overdue-sweep",
     response_model=OverdueSweepResponse,
     summary="Mark unpaid past-due dues as overdue"
)
def run_overdue_sweep(
     service: MonthlyDueService = Depends(get_monthly_due_service),
     actor: Actor = Depends(require_manager),
):
     return OverdueSweepResponse(marked_overdue=service.update_overdue_statuses())


# ---------------------------------------------------------------------------
# Building level
# ---------------------------------------------------------------------------

@router.post(
     "/building/{building_id}/generate",
     response_model=BuildingDueGenerateResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Generate dues for every active flat in a building"
)
def generate_building_dues(
     building_id: int,
     body: BuildingDueGenerate,
     service: MonthlyDueService = Depends(get_monthly_due_service),
     actor: Actor = Depends(require_manager),
):
     """Flats that already have a building due on the date are skipped and counted."""
     created, skipped = service.generate_dues_for_building(
          building_id,
          due_date=body.due_date,
          due_amount=body.due_amount,
          description=body.description,
          use_flat_rent=body.use_flat_rent,
          fallback_amount=body.fallback_amount,
     )
     return BuildingDueGenerateResponse(
          building_id=building_id,
          due_date=body.due_date,
          created_count=len(created),
          skipped_count=skipped,
          dues=[MonthlyDueResponse.model_validate(d) for d in created],
     )


@router.get(
     "/building/{building_id}/overdue",
     response_model=MonthlyDueListResponse,
     summary="Past-due dues in a building"
)
def get_overdue_dues(
     building_id: int,
     service: MonthlyDueService = Depends(get_monthly_due_service),
     token: dict = Depends(verify_token),
):
     dues = service.get_overdue_dues_for_building(building_id)
     return MonthlyDueListResponse(
          dues=[MonthlyDueResponse.model_validate(d) for d in dues],
          total=len(dues),
     )


@router.get(
     "/building/{building_id}/debtors",
     response_model=List[DebtorResponse],
     summary="Flats with overdue dues and their debt"
)
def get_debtors(
     building_id: int,
     service: MonthlyDueService = Depends(get_monthly_due_service),
     token: dict = Depends(verify_token),
):
     return [DebtorResponse(**d) for d in service.get_debtors_for_building(building_id)]


@router.get(
     "/building/{building_id}/collection-rate",
     response_model=CollectionRateResponse,
     summary="Share of dues paid in a period"
)
def get_collection_rate(
     building_id: int,
     start_date: date = Query(..., description="Period start (inclusive)"),
     end_date: date = Query(..., description="Period end (inclusive)"),
     service: MonthlyDueService = Depends(get_monthly_due_service),
     token: dict = Depends(verify_token),
):
     rate = service.calculate_collection_rate(building_id, start_date, end_date)
     return CollectionRateResponse(
          building_id=building_id,
          start_date=start_date,
          end_date=end_date,
          collection_rate=rate,
     )


# ---------------------------------------------------------------------------
# Flat level and single due
# ---------------------------------------------------------------------------

@router.get(
     "/flat/{flat_id}",
     response_model=MonthlyDueListResponse,
     summary="Get dues for a flat"
)
def get_dues_by_flat(
     flat_id: int,
     status: Optional[DueStatus] = Query(None, description="Filter by status"),
     service: MonthlyDueService = Depends(get_monthly_due_service),
     token: dict = Depends(verify_token),
):
     dues = service.get_dues_by_flat(flat_id, status=status)
     return MonthlyDueListResponse(
          dues=[MonthlyDueResponse.model_validate(d) for d in dues],
          total=len(dues),
     )


@router.get(
     "/{due_id}",
     response_model=MonthlyDueResponse,
     summary="Get a specific due"
)
def get_due(
     due_id: int,
     service: MonthlyDueService = Depends(get_monthly_due_service),
     token: dict = Depends(verify_token),
):
     return MonthlyDueResponse.model_validate(service.get_due(due_id))


@router.put(
     "/{due_id}",
     response_model=MonthlyDueResponse,
     summary="Update an unsettled due"
)
def update_due(
     due_id: int,
     body: MonthlyDueUpdate,
     service: MonthlyDueService = Depends(get_monthly_due_service),
     actor: Actor = Depends(require_manager),
):
     due = service.update_due(due_id, **body.model_dump(exclude_unset=True))
     return MonthlyDueResponse.model_validate(due)


@router.patch(
     "/{due_id}/cancel",
     response_model=MonthlyDueResponse,
     summary="Cancel a due"
)
def cancel_due(
     due_id: int,
     service: MonthlyDueService = Depends(get_monthly_due_service),
     actor: Actor = Depends(require_manager),
):
     return MonthlyDueResponse.model_validate(service.cancel_due(due_id))
