# routers/payments.py
"""
Payment API.

POST /api/payments records a payment and allocates it to the flat's open
dues, oldest first. Amount and date are fixed once recorded; deleting a
payment reverses its allocations.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from dependencies import get_payment_service, require_manager, verify_token
from models import Payment
from schemas.payment import (
     OutstandingBalanceResponse,
     PaymentAllocationResponse,
     PaymentCreate,
     PaymentListResponse,
     PaymentResponse,
     PaymentUpdate,
)
from services import PaymentService
from services.actor import Actor

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post(
     "",
     response_model=PaymentResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Record a payment"
)
def create_payment(
     body: PaymentCreate,
     service: PaymentService = Depends(get_payment_service),
     actor: Actor = Depends(require_manager),
):
     """
     Record a payment for a flat.

     Rejected with 409 if the amount is more than the flat owes.
     """
     payment = service.create_payment(
          flat_id=body.flat_id,
          amount=body.amount,
          actor=actor,
          payment_method=body.payment_method,
          payment_date=body.payment_date,
          reference_number=body.reference_number,
          receipt_number=body.receipt_number,
          description=body.description,
          notes=body.notes,
     )
     return _build_payment_response(payment)


@router.get(
     "/flat/{flat_id}",
     response_model=PaymentListResponse,
     summary="Get payments for a flat"
)
def get_payments_by_flat(
     flat_id: int,
     service: PaymentService = Depends(get_payment_service),
     token: dict = Depends(verify_token),
):
     payments = service.get_payments_by_flat(flat_id)
     return PaymentListResponse(
          payments=[_build_payment_response(p) for p in payments],
          total=len(payments),
          total_amount=sum(p.amount for p in payments),
     )


@router.get(
     "/flat/{flat_id}/balance",
     response_model=OutstandingBalanceResponse,
     summary="Outstanding balance for a flat"
)
def get_outstanding_balance(
     flat_id: int,
     service: PaymentService = Depends(get_payment_service),
     token: dict = Depends(verify_token),
):
     return OutstandingBalanceResponse(
          flat_id=flat_id,
          outstanding_balance=service.calculate_outstanding_balance(flat_id),
     )


@router.get(
     "/building/{building_id}",
     response_model=PaymentListResponse,
     summary="Get payments for a building"
)
def get_payments_by_building(
     building_id: int,
     start_date: Optional[date] = Query(None, description="From date (inclusive)"),
     end_date: Optional[date] = Query(None, description="To date (inclusive)"),
     service: PaymentService = Depends(get_payment_service),
     token: dict = Depends(verify_token),
):
     payments = service.get_payments_by_building(building_id, start_date, end_date)
     return PaymentListResponse(
          payments=[_build_payment_response(p) for p in payments],
          total=len(payments),
          total_amount=service.get_total_payments_by_building(building_id, start_date, end_date),
     )


@router.get(
     "/{payment_id}",
     response_model=PaymentResponse,
     summary="Get a specific payment"
)
def get_payment(
     payment_id: int,
     service: PaymentService = Depends(get_payment_service),
     token: dict = Depends(verify_token),
):
     return _build_payment_response(service.get_payment(payment_id))


@router.get(
     "/{payment_id}/allocations",
     response_model=List[PaymentAllocationResponse],
     summary="How a payment was split over dues"
)
def get_payment_allocations(
     payment_id: int,
     service: PaymentService = Depends(get_payment_service),
     token: dict = Depends(verify_token),
):
     return [_build_allocation_response(a) for a in service.get_allocations(payment_id)]


@router.put(
     "/{payment_id}",
     response_model=PaymentResponse,
     summary="Update payment details"
)
def update_payment(
     payment_id: int,
     body: PaymentUpdate,
     service: PaymentService = Depends(get_payment_service),
     actor: Actor = Depends(require_manager),
):
     """Only method, reference, receipt, description and notes can change."""
     payment = service.update_payment(payment_id, **body.model_dump(exclude_unset=True))
     return _build_payment_response(payment)


@router.delete(
     "/{payment_id}",
     status_code=status.HTTP_204_NO_CONTENT,
     summary="Delete a payment and reverse its allocations"
)
def delete_payment(
     payment_id: int,
     service: PaymentService = Depends(get_payment_service),
     actor: Actor = Depends(require_manager),
):
     service.delete_payment(payment_id)
     return None


def _build_allocation_response(allocation) -> PaymentAllocationResponse:
     return PaymentAllocationResponse(
          due_id=allocation.due_id,
          amount_applied=allocation.amount_applied,
          due_date=allocation.due.due_date if allocation.due is not None else None,
     )


def _build_payment_response(payment: Payment) -> PaymentResponse:
     """
     Helper function to build PaymentResponse with its allocations.
     """
     return PaymentResponse(
          id=payment.id,
          flat_id=payment.flat_id,
          amount=payment.amount,
          payment_date=payment.payment_date,
          payment_method=payment.payment_method,
          reference_number=payment.reference_number,
          receipt_number=payment.receipt_number,
          description=payment.description,
          notes=payment.notes,
          recorded_by=payment.recorded_by,
          version=payment.version,
          allocations=[_build_allocation_response(a) for a in payment.allocations],
     )
