"""Debt endpoints - amortization schedules and installment payments"""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from homeos_finance.api.dependencies import get_debt_service, get_request_id, parse_uuid
from homeos_finance.api.v1.schemas import (
    DebtResponse,
    InstallmentSchema,
    PayInstallmentRequest,
    ScheduleRequest,
    ScheduleResponse,
)
from homeos_finance.domain.amortization import generate_schedule
from homeos_finance.domain.exceptions import (
    DomainValidationError,
    EntityNotFoundError,
    InstallmentStateError,
    ScheduleRegenerationError,
)
from homeos_finance.domain.models import DebtInstallment
from homeos_finance.services.debts import DebtService

router = APIRouter()


def to_schedule_response(installments: List[DebtInstallment], debt_id: Optional[str] = None) -> ScheduleResponse:
    return ScheduleResponse(
        debt_id=debt_id,
        total_principal=sum((i.principal_amount for i in installments), Decimal("0.00")),
        total_interest=sum((i.interest_amount for i in installments), Decimal("0.00")),
        installments=[
            InstallmentSchema(
                number=i.number,
                due_date=i.due_date,
                total_amount=i.total_amount,
                principal_amount=i.principal_amount,
                interest_amount=i.interest_amount,
                remaining_balance=i.remaining_balance,
                paid_date=i.paid_date,
                transaction_id=str(i.transaction_id) if i.transaction_id else None,
            )
            for i in installments
        ],
    )


@router.post("/debts/schedule/simulate", response_model=ScheduleResponse)
def simulate_schedule(request_body: ScheduleRequest):
    """Compute an amortization schedule from terms without saving anything"""
    try:
        installments = generate_schedule(
            principal=request_body.principal,
            monthly_rate=request_body.monthly_rate,
            total_installments=request_body.total_installments,
            amortization_type=request_body.amortization_type,
            start_date=request_body.start_date,
            bullet_policy=request_body.bullet_policy,
        )
    except DomainValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return to_schedule_response(installments)


@router.get("/debts/{debt_id}/amortization-schedule", response_model=ScheduleResponse)
def get_amortization_schedule(
    debt_id: str,
    user_id: str = Query(..., description="User identifier"),
    service: DebtService = Depends(get_debt_service),
):
    """
    Retrieve a debt's schedule.

    Returns:
        Stored installments, or the schedule computed from the debt's terms
        when none has been saved
    """
    debt_uuid = parse_uuid(debt_id, "debt")
    try:
        installments = service.get_schedule(user_id, debt_uuid)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Debt not found")
    except DomainValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return to_schedule_response(installments, debt_id)


@router.post("/debts/{debt_id}/amortization-schedule/regenerate", response_model=ScheduleResponse)
def regenerate_amortization_schedule(
    debt_id: str,
    request: Request,
    user_id: str = Query(..., description="User identifier"),
    service: DebtService = Depends(get_debt_service),
):
    """Replace the stored schedule; refused once any installment is paid"""
    debt_uuid = parse_uuid(debt_id, "debt")
    try:
        installments = service.regenerate_schedule(user_id, debt_uuid)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Debt not found")
    except ScheduleRegenerationError as e:
        service.db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except DomainValidationError as e:
        service.db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        service.db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    return to_schedule_response(installments, debt_id)


@router.post("/debts/{debt_id}/pay-installment", response_model=DebtResponse)
def pay_installment(
    debt_id: str,
    request_body: PayInstallmentRequest,
    request: Request,
    service: DebtService = Depends(get_debt_service),
):
    """Mark the next installment of a debt as paid"""
    debt_uuid = parse_uuid(debt_id, "debt")
    transaction_uuid = (
        parse_uuid(request_body.transaction_id, "transaction") if request_body.transaction_id else None
    )

    try:
        debt, _ = service.pay_installment(
            request_body.user_id,
            debt_uuid,
            request_body.installment_number,
            request_body.payment_date,
            transaction_uuid,
        )
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Debt not found")
    except InstallmentStateError as e:
        service.db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except DomainValidationError as e:
        service.db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        service.db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    return DebtResponse(
        debt_id=str(debt.id),
        status=debt.status.value,
        installments_paid=debt.installments_paid,
        total_installments=debt.total_installments,
        current_balance=debt.current_balance,
    )
