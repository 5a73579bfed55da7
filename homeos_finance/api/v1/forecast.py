"""GET /v1/cash-flow/forecast - Projected balance trajectory"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from homeos_finance.api.dependencies import get_forecast_service, get_request_id, get_today
from homeos_finance.api.v1.schemas import CashFlowDataPointSchema, CashFlowForecastResponse, ForecastEventSchema
from homeos_finance.config import settings
from homeos_finance.domain.exceptions import DataIntegrityError, DomainValidationError
from homeos_finance.services.forecast import CashFlowForecastService

router = APIRouter()


@router.get("/cash-flow/forecast", response_model=CashFlowForecastResponse)
def get_forecast(
    request: Request,
    user_id: str = Query(..., description="User identifier"),
    months: int = Query(settings.default_forecast_months, description="Forecast horizon in months"),
    today: date = Depends(get_today),
    service: CashFlowForecastService = Depends(get_forecast_service),
):
    """
    Project the user's combined account balance.

    Returns:
        Data points ordered by date with running balance; variable
        recurring amounts are flagged as estimates
    """
    request_id = get_request_id(request)

    try:
        forecast = service.forecast(user_id, months, today=today)
    except DomainValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DataIntegrityError as e:
        logging.error(f"Forecast integrity error: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logging.error(f"Unexpected forecast error: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    lowest = min(forecast.data_points, key=lambda p: p.balance)

    return CashFlowForecastResponse(
        user_id=user_id,
        starting_balance=forecast.starting_balance,
        start_date=forecast.start_date,
        end_date=forecast.end_date,
        total_incoming=forecast.total_incoming,
        total_outgoing=forecast.total_outgoing,
        lowest_balance=lowest.balance,
        lowest_balance_date=lowest.date,
        data_points=[
            CashFlowDataPointSchema(
                date=point.date,
                balance=point.balance,
                incoming=point.incoming,
                outgoing=point.outgoing,
                description=point.description,
                includes_estimate=point.includes_estimate,
                events=[
                    ForecastEventSchema(
                        date=event.date,
                        amount=event.amount,
                        type=event.type,
                        source=event.source,
                        description=event.description,
                        amount_type=event.amount_type,
                    )
                    for event in point.events
                ],
            )
            for point in forecast.data_points
        ],
    )
