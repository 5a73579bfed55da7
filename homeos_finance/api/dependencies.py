"""Dependency injection for FastAPI endpoints"""

import uuid
from datetime import date

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from homeos_finance.infrastructure.database.session import get_db
from homeos_finance.services.debts import DebtService
from homeos_finance.services.forecast import CashFlowForecastService
from homeos_finance.services.generation import RecurringGenerationCoordinator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_today() -> date:
    """Reference date for forecasts and generation; overridden in tests"""
    return date.today()


def parse_uuid(value: str, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {what} ID format")


def get_forecast_service(db: Session = Depends(get_db)) -> CashFlowForecastService:
    return CashFlowForecastService(db)


def get_generation_coordinator(db: Session = Depends(get_db)) -> RecurringGenerationCoordinator:
    return RecurringGenerationCoordinator(db)


def get_debt_service(db: Session = Depends(get_db)) -> DebtService:
    return DebtService(db)
