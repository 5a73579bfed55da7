"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from homeos_finance.domain.models import (
    AmortizationType,
    AmountType,
    BulletInterestPolicy,
    ForecastEventSource,
    Frequency,
    TransactionType,
)


class ForecastEventSchema(BaseModel):
    """Single projected movement contributing to a data point"""

    date: date
    amount: Decimal
    type: TransactionType
    source: ForecastEventSource
    description: str
    amount_type: AmountType


class CashFlowDataPointSchema(BaseModel):
    date: date
    balance: Decimal
    incoming: Decimal
    outgoing: Decimal
    description: str
    includes_estimate: bool = False
    events: List[ForecastEventSchema] = []


class CashFlowForecastResponse(BaseModel):
    """Response for GET /v1/cash-flow/forecast"""

    user_id: str
    starting_balance: Decimal
    start_date: date
    end_date: date
    total_incoming: Decimal
    total_outgoing: Decimal
    lowest_balance: Decimal
    lowest_balance_date: date
    data_points: List[CashFlowDataPointSchema]


class InstallmentSchema(BaseModel):
    """Single installment in an amortization schedule"""

    number: int
    due_date: date
    total_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal
    paid_date: Optional[date] = None
    transaction_id: Optional[str] = None


class ScheduleRequest(BaseModel):
    """Request body for POST /v1/debts/schedule/simulate"""

    principal: Decimal
    monthly_rate: Decimal = Field(..., description="Monthly rate as a fraction, 0.01 = 1%")
    total_installments: int
    amortization_type: AmortizationType
    start_date: date
    bullet_policy: Optional[BulletInterestPolicy] = None


class ScheduleResponse(BaseModel):
    debt_id: Optional[str] = None
    total_principal: Decimal
    total_interest: Decimal
    installments: List[InstallmentSchema]


class PayInstallmentRequest(BaseModel):
    """Request body for POST /v1/debts/{debt_id}/pay-installment"""

    user_id: str = Field(..., min_length=1)
    installment_number: int = Field(..., ge=1)
    payment_date: date
    transaction_id: Optional[str] = None


class DebtResponse(BaseModel):
    debt_id: str
    status: str
    installments_paid: int
    total_installments: int
    current_balance: Decimal


class GenerateRequest(BaseModel):
    """Request body for POST /v1/recurring-transactions/generate"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    as_of: Optional[date] = Field(None, description="Generate occurrences due up to this date (default today)")


class GenerationFailureSchema(BaseModel):
    recurring_id: str
    reason: str
    message: str


class GenerateResponse(BaseModel):
    user_id: str
    as_of: date
    generated_count: int
    skipped_existing: int
    generated_transaction_ids: List[str]
    failures: List[GenerationFailureSchema]
    timed_out: bool = False


class PreviewResponse(BaseModel):
    recurring_id: str
    occurrences: List[date]


class GenerationStatsResponse(BaseModel):
    user_id: str
    active_count: int
    total_count: int
    next_due_date: Optional[date] = None
    last_run_at: Optional[datetime] = None
    pending_count: int


class UpdateRecurringRequest(BaseModel):
    """
    Request body for PUT /v1/recurring-transactions/{recurring_id}

    Only the fields sent are changed. Identifier fields and day_of_month
    and end_date accept null to clear them.
    """

    user_id: str = Field(..., min_length=1)
    description: str = Field(None, min_length=1)
    amount_type: AmountType = None
    amount: Decimal = Field(None, gt=0)
    frequency: Frequency = None
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    use_last_day: bool = None
    start_date: date = None
    end_date: Optional[date] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    credit_card_id: Optional[str] = None


class RecurringTransactionResponse(BaseModel):
    recurring_id: str
    description: str
    type: TransactionType
    amount_type: AmountType
    amount: Decimal
    frequency: Frequency
    day_of_month: Optional[int] = None
    use_last_day: bool
    start_date: date
    end_date: Optional[date] = None
    account_id: Optional[str] = None
    credit_card_id: Optional[str] = None
    next_occurrence: Optional[date] = None
    is_active: bool
