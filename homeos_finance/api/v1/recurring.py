"""Recurring transaction endpoints - editing, generation, preview and monitoring"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from homeos_finance.api.dependencies import get_generation_coordinator, get_request_id, get_today, parse_uuid
from homeos_finance.api.v1.schemas import (
    GenerateRequest,
    GenerateResponse,
    GenerationFailureSchema,
    GenerationStatsResponse,
    PreviewResponse,
    RecurringTransactionResponse,
    UpdateRecurringRequest,
)
from homeos_finance.domain.exceptions import DataIntegrityError, DomainValidationError, EntityNotFoundError
from homeos_finance.domain.models import RecurringTransaction
from homeos_finance.services.generation import RecurringGenerationCoordinator

router = APIRouter()


@router.post("/recurring-transactions/generate", response_model=GenerateResponse)
def generate_recurring_transactions(
    request_body: GenerateRequest,
    today: date = Depends(get_today),
    coordinator: RecurringGenerationCoordinator = Depends(get_generation_coordinator),
):
    """
    Generate every due occurrence up to as_of (default today).

    Safe to retry: occurrences that already exist are skipped. Failures of
    individual recurrences are reported without failing the request.
    """
    as_of = request_body.as_of or today
    report = coordinator.generate_due(request_body.user_id, as_of)

    return GenerateResponse(
        user_id=report.user_id,
        as_of=report.as_of,
        generated_count=report.generated_count,
        skipped_existing=report.skipped_existing,
        generated_transaction_ids=[str(txn_id) for txn_id in report.generated_transaction_ids],
        failures=[
            GenerationFailureSchema(recurring_id=str(f.recurring_id), reason=f.reason, message=f.message)
            for f in report.failures
        ],
        timed_out=report.timed_out,
    )


@router.get("/recurring-transactions/stats", response_model=GenerationStatsResponse)
def get_generation_stats(
    user_id: str = Query(..., description="User identifier"),
    today: date = Depends(get_today),
    coordinator: RecurringGenerationCoordinator = Depends(get_generation_coordinator),
):
    stats = coordinator.stats(user_id, today)
    return GenerationStatsResponse(
        user_id=user_id,
        active_count=stats.active_count,
        total_count=stats.total_count,
        next_due_date=stats.next_due_date,
        last_run_at=stats.last_run_at,
        pending_count=stats.pending_count,
    )


@router.get("/recurring-transactions/{recurring_id}/preview", response_model=PreviewResponse)
def preview_recurring_transaction(
    recurring_id: str,
    user_id: str = Query(..., description="User identifier"),
    count: int = Query(12, ge=1, le=120),
    coordinator: RecurringGenerationCoordinator = Depends(get_generation_coordinator),
):
    """Next occurrences from the cursor, without generating anything"""
    recurring_uuid = parse_uuid(recurring_id, "recurring transaction")
    try:
        occurrences = coordinator.preview(user_id, recurring_uuid, count)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Recurring transaction not found")
    except DataIntegrityError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return PreviewResponse(recurring_id=recurring_id, occurrences=occurrences)


def to_recurring_response(recurring: RecurringTransaction) -> RecurringTransactionResponse:
    return RecurringTransactionResponse(
        recurring_id=str(recurring.id),
        description=recurring.description,
        type=recurring.type,
        amount_type=recurring.amount_type,
        amount=recurring.amount,
        frequency=recurring.frequency,
        day_of_month=recurring.day_of_month,
        use_last_day=recurring.use_last_day,
        start_date=recurring.start_date,
        end_date=recurring.end_date,
        account_id=str(recurring.account_id) if recurring.account_id else None,
        credit_card_id=str(recurring.credit_card_id) if recurring.credit_card_id else None,
        next_occurrence=recurring.next_occurrence,
        is_active=recurring.is_active,
    )


@router.put("/recurring-transactions/{recurring_id}", response_model=RecurringTransactionResponse)
def update_recurring_transaction(
    recurring_id: str,
    request_body: UpdateRecurringRequest,
    request: Request,
    coordinator: RecurringGenerationCoordinator = Depends(get_generation_coordinator),
):
    """
    Edit a recurring definition.

    The cursor is reseeded from the edited schedule; occurrences that were
    already generated are kept and never generated again.
    """
    recurring_uuid = parse_uuid(recurring_id, "recurring transaction")
    changes = request_body.model_dump(exclude_unset=True, exclude={"user_id"})
    for field in ("category_id", "account_id", "credit_card_id"):
        if changes.get(field) is not None:
            changes[field] = parse_uuid(changes[field], field.removesuffix("_id").replace("_", " "))

    try:
        recurring = coordinator.edit(request_body.user_id, recurring_uuid, **changes)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Recurring transaction not found")
    except DomainValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DataIntegrityError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    return to_recurring_response(recurring)


@router.patch("/recurring-transactions/{recurring_id}/toggle", response_model=RecurringTransactionResponse)
def toggle_recurring_transaction(
    recurring_id: str,
    user_id: str = Query(..., description="User identifier"),
    coordinator: RecurringGenerationCoordinator = Depends(get_generation_coordinator),
):
    """Activate or deactivate a recurring definition"""
    recurring_uuid = parse_uuid(recurring_id, "recurring transaction")
    try:
        recurring = coordinator.toggle(user_id, recurring_uuid)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Recurring transaction not found")
    except DataIntegrityError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return to_recurring_response(recurring)
